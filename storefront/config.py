# storefront.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

"""
Configuration centrale du backend boutique.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe, JWT)
- Expose les délais d'attente des appels externes (store, Stripe, livraison reset)
- Sécurité: CORS/hosts, HSTS
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _int_env(name: str, default: int) -> int:
    try:
        return int(_clean_env(os.getenv(name)) or default)
    except ValueError:
        return default

def _float_env(name: str, default: float) -> float:
    try:
        return float(_clean_env(os.getenv(name)) or default)
    except ValueError:
        return default

# Supabase: URL et clé service (le backend écrit au nom des utilisateurs)
# - SUPABASE_URL peut parfois être sans schéma: on préfixe en https:// si nécessaire
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

STORE_TIMEOUT_SECONDS = _float_env("STORE_TIMEOUT_SECONDS", 10.0)

# JWT: jetons Bearer (login) et liens de retour de paiement signés
JWT_SECRET = _clean_env(os.getenv("JWT_SECRET") or "")
JWT_ALGORITHM = "HS256"
JWT_EXPIRES_SECONDS = _int_env("JWT_EXPIRES_SECONDS", 60 * 60)
CALLBACK_TOKEN_EXPIRES_SECONDS = _int_env("CALLBACK_TOKEN_EXPIRES_SECONDS", 24 * 60 * 60)

# Stripe: clé secrète, secret webhook, délai réseau et devise du checkout
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or os.getenv("STRIPE_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")
STRIPE_TIMEOUT_SECONDS = _float_env("STRIPE_TIMEOUT_SECONDS", 10.0)
CHECKOUT_CURRENCY = _clean_env(os.getenv("CHECKOUT_CURRENCY") or "eur").lower()

# URL publique utilisée pour construire les URLs de retour (success/cancel)
PUBLIC_BASE_URL = _clean_env(os.getenv("PUBLIC_BASE_URL") or "http://localhost:8000").rstrip("/")

# Reset mot de passe: canal de livraison hors bande (webhook HTTP) et durée de validité
PASSWORD_RESET_DELIVERY_URL = _clean_env(os.getenv("PASSWORD_RESET_DELIVERY_URL") or "")
PASSWORD_RESET_DELIVERY_TIMEOUT = _float_env("PASSWORD_RESET_DELIVERY_TIMEOUT", 10.0)
PASSWORD_RESET_TOKEN_TTL_SECONDS = _int_env("PASSWORD_RESET_TOKEN_TTL_SECONDS", 30 * 60)

# Sécurité: HSTS si servi en HTTPS
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")

# CORS / hosts
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]

# Logs applicatifs (les loggers storefront.* héritent de ce niveau)
LOG_LEVEL = _clean_env(os.getenv("LOG_LEVEL") or "info").upper()
