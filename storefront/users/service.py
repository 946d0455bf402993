"""Couche service du domaine Utilisateurs.
Inscription, connexion, profil, bannissement et réinitialisation du mot de passe.
Le store est passé explicitement (client Supabase injecté par la vue).
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx
from supabase import Client

from storefront import config
from storefront.auth import credentials
from storefront.errors import BadRequest, Conflict, Forbidden, NotFound
from storefront.utils.validators import normalize_email
from . import repository
from .models import (
    RegisterRequest,
    UpdateUserRequest,
    PasswordResetConfirm,
    public_user,
)

logger = logging.getLogger(__name__)

WRONG_PASSWORD_MESSAGE = "Wrong password, please try again!"
RESET_REQUESTED_MESSAGE = "If an account exists for this email, a reset token has been sent"
INVALID_RESET_MESSAGE = "Invalid or expired reset token"

# --- Inscription / connexion ---

def register(client: Client, req: RegisterRequest) -> Dict[str, Any]:
    """Inscription:
    - l'email a déjà été validé par le modèle (400 avant toute écriture)
    - refuse un email déjà utilisé (409), y compris en cas de course (contrainte d'unicité)
    - stocke uniquement le hash bcrypt du mot de passe
    """
    email = normalize_email(req.email)
    if repository.get_user_by_email(client, email):
        raise Conflict("Email already registered")
    row = repository.insert_user(client, {
        "firstname": req.firstname.strip(),
        "lastname": req.lastname.strip(),
        "email": email,
        "password": credentials.hash_password(req.password),
        "avatar": req.avatar,
        "role": "customer",
        "ban_status": False,
        "order_ids": [],
    })
    logger.info("users.register id=%s", row.get("id"))
    return public_user(row)

def login(client: Client, email: str, password: str) -> Dict[str, Any]:
    """Connexion: vérifie le hash puis émet un jeton {email, role, _id} valable 1h."""
    user = repository.get_user_by_email(client, normalize_email(email))
    if not user:
        raise NotFound("User not found")
    if not credentials.verify_password(password, user.get("password") or ""):
        raise BadRequest(WRONG_PASSWORD_MESSAGE)
    if user.get("ban_status"):
        raise Forbidden("This account has been banned")
    token = credentials.issue_token(user)
    return {"userData": public_user(user), "token": token}

# --- Profil / administration ---

def list_users(client: Client, limit: int = 100) -> List[Dict[str, Any]]:
    return [public_user(u) for u in repository.list_users(client, limit=limit)]

def get_user(client: Client, user_id: str) -> Dict[str, Any]:
    user = repository.get_user_by_id(client, user_id)
    if not user:
        raise NotFound("User not found")
    return public_user(user)

def update_user(client: Client, user_id: str, req: UpdateUserRequest) -> Dict[str, Any]:
    data = req.model_dump(exclude_unset=True, exclude_none=True)
    if not data:
        raise BadRequest("No fields to update")
    if "password" in data:
        data["password"] = credentials.hash_password(data["password"])
    if "email" in data:
        data["email"] = normalize_email(data["email"])
    row = repository.update_user(client, user_id, data)
    if not row:
        raise NotFound("User not found")
    return public_user(row)

def delete_user(client: Client, user_id: str) -> None:
    if not repository.delete_user(client, user_id):
        raise NotFound("User not found")
    logger.info("users.delete id=%s", user_id)

def set_ban_status(client: Client, user_id: str, banned: bool) -> Dict[str, Any]:
    row = repository.update_user(client, user_id, {"ban_status": banned})
    if not row:
        raise NotFound("User not found")
    logger.info("users.set_ban_status id=%s banned=%s", user_id, banned)
    return public_user(row)

# --- Réinitialisation du mot de passe ---

def deliver_reset_token(email: str, token: str, expires_at: datetime) -> bool:
    """
    Livre le jeton hors bande: POST JSON vers PASSWORD_RESET_DELIVERY_URL (service d'emailing).
    Retourne False si aucun canal n'est configuré. Le jeton n'est jamais loggé.
    """
    if not config.PASSWORD_RESET_DELIVERY_URL:
        logger.warning("users.deliver_reset_token: PASSWORD_RESET_DELIVERY_URL non configuré, jeton non livré")
        return False
    resp = httpx.post(
        config.PASSWORD_RESET_DELIVERY_URL,
        json={"email": email, "token": token, "expires_at": expires_at.isoformat()},
        timeout=config.PASSWORD_RESET_DELIVERY_TIMEOUT,
    )
    resp.raise_for_status()
    return True

def request_password_reset(client: Client, email: str) -> None:
    """
    Génère un jeton aléatoire à usage unique (seule son empreinte est stockée) et le livre hors bande.
    Réponse identique que le compte existe ou non; un échec de livraison est loggé sans être exposé.
    """
    email = normalize_email(email)
    user = repository.get_user_by_email(client, email)
    if not user:
        logger.info("users.request_password_reset: no account for requested email")
        return
    token, digest = credentials.new_reset_token()
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=config.PASSWORD_RESET_TOKEN_TTL_SECONDS)
    repository.update_user(client, user["id"], {
        "reset_token_hash": digest,
        "reset_token_expires_at": expires_at.isoformat(),
    })
    try:
        deliver_reset_token(email, token, expires_at)
    except httpx.HTTPError:
        logger.exception("users.request_password_reset: delivery failed user_id=%s", user["id"])

def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value:
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)

def confirm_password_reset(client: Client, req: PasswordResetConfirm) -> None:
    user = repository.get_user_by_email(client, normalize_email(req.email))
    if not user or not credentials.reset_token_matches(req.token, user.get("reset_token_hash") or ""):
        raise BadRequest(INVALID_RESET_MESSAGE)
    expires_at = _parse_datetime(user.get("reset_token_expires_at"))
    if not expires_at or expires_at <= datetime.now(timezone.utc):
        raise BadRequest(INVALID_RESET_MESSAGE)
    repository.update_user(client, user["id"], {
        "password": credentials.hash_password(req.new_password),
        "reset_token_hash": None,
        "reset_token_expires_at": None,
    })
    logger.info("users.confirm_password_reset id=%s", user["id"])
