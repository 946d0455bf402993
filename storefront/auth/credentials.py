"""
Service d'identifiants (feuille, sans accès store):
- hash/vérification des mots de passe (bcrypt, sel aléatoire)
- émission/vérification des jetons Bearer (JWT HS256, 1h)
- signature des liens de retour de paiement (JWT à audience dédiée)
- jetons de réinitialisation à usage unique (aléatoires, seul le SHA-256 est stocké)
"""
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Tuple

import bcrypt
import jwt

from storefront import config

CALLBACK_AUDIENCE = "payment-callback"


def _require_secret() -> str:
    if not config.JWT_SECRET:
        raise RuntimeError("JWT_SECRET manquant")
    return config.JWT_SECRET

# --- Mots de passe ---

def hash_password(plaintext: str) -> str:
    return bcrypt.hashpw(plaintext.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

def verify_password(plaintext: str, digest: str) -> bool:
    if not plaintext or not digest:
        return False
    try:
        return bcrypt.checkpw(plaintext.encode("utf-8"), digest.encode("utf-8"))
    except ValueError:
        # digest non bcrypt (ancienne donnée, corruption)
        return False

# --- Jetons Bearer ---

def issue_token(user: Dict[str, Any]) -> str:
    """
    Signe {email, role, _id} avec une expiration JWT_EXPIRES_SECONDS.
    Ne jamais inclure le mot de passe ni son hash.
    """
    now = datetime.now(timezone.utc)
    claims = {
        "email": user.get("email"),
        "role": user.get("role") or "customer",
        "_id": str(user.get("id") or ""),
        "iat": now,
        "exp": now + timedelta(seconds=config.JWT_EXPIRES_SECONDS),
    }
    return jwt.encode(claims, _require_secret(), algorithm=config.JWT_ALGORITHM)

def decode_token(token: str) -> Dict[str, Any]:
    """
    Vérifie signature + expiration. Lève jwt.PyJWTError si invalide.
    Un lien de retour signé (claim aud) est refusé par PyJWT faute d'audience attendue.
    """
    return jwt.decode(
        token,
        _require_secret(),
        algorithms=[config.JWT_ALGORITHM],
        options={"require": ["exp", "_id"]},
    )

# --- Liens de retour de paiement ---

def sign_callback(order_id: str, outcome: str) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(order_id),
        "outcome": outcome,
        "aud": CALLBACK_AUDIENCE,
        "iat": now,
        "exp": now + timedelta(seconds=config.CALLBACK_TOKEN_EXPIRES_SECONDS),
    }
    return jwt.encode(claims, _require_secret(), algorithm=config.JWT_ALGORITHM)

def verify_callback(signature: str, order_id: str, outcome: str) -> bool:
    if not signature:
        return False
    try:
        claims = jwt.decode(
            signature,
            _require_secret(),
            algorithms=[config.JWT_ALGORITHM],
            audience=CALLBACK_AUDIENCE,
        )
    except jwt.PyJWTError:
        return False
    return claims.get("sub") == str(order_id) and claims.get("outcome") == outcome

# --- Jetons de réinitialisation ---

def new_reset_token() -> Tuple[str, str]:
    """Retourne (jeton en clair à livrer, empreinte SHA-256 à stocker)."""
    token = secrets.token_urlsafe(32)
    return token, hash_reset_token(token)

def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

def reset_token_matches(token: str, stored_hash: str) -> bool:
    if not token or not stored_hash:
        return False
    return secrets.compare_digest(hash_reset_token(token), stored_hash)
