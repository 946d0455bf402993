from fastapi import Request, Depends
from typing import Optional, Dict, Any
import logging
import jwt
from supabase import Client

from storefront.auth import credentials
from storefront.errors import Unauthorized, Forbidden
from storefront.infra.dependencies import get_db
from storefront.users import repository as users_repository

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
CUSTOMER_ROLE = "customer"


def bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.lower().startswith("bearer "):
        return None
    return auth_header[7:].strip() or None


def get_current_user(request: Request, client: Client = Depends(get_db)) -> Dict[str, Any]:
    """
    Résout l'utilisateur courant depuis l'en-tête Authorization: Bearer <jwt>.
    - 401 si en-tête absent, jeton mal formé, signature invalide ou expiré
    - 401 si le compte n'existe plus, 403 s'il est banni
    Retour: {id, email, role, token}
    """
    token = bearer_token(request)
    if not token:
        raise Unauthorized("Missing bearer token")

    try:
        claims = credentials.decode_token(token)
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired, please log in again")
    except jwt.PyJWTError:
        raise Unauthorized("Invalid token")

    user = users_repository.get_user_by_id(client, claims["_id"])
    if not user:
        raise Unauthorized("Account no longer exists")
    if user.get("ban_status"):
        raise Forbidden("This account has been banned")
    return {"id": str(user["id"]), "email": user.get("email"), "role": user.get("role") or CUSTOMER_ROLE, "token": token}


def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user


def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != ADMIN_ROLE:
        raise Forbidden("Admin access required")
    return user


def require_self_or_admin(user: Dict[str, Any], user_id: str) -> None:
    if user.get("role") != ADMIN_ROLE and str(user.get("id")) != str(user_id):
        raise Forbidden("Access denied")
