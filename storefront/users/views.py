# module storefront.users.views

"""Endpoints du domaine Utilisateurs (/api/v1/users).
- Inscription et connexion (publics, rate-limités)
- Profil courant depuis le jeton Bearer
- Administration: liste, suppression, bannissement
- Réinitialisation du mot de passe par jeton à usage unique livré hors bande
"""
from typing import Any, Dict
from fastapi import APIRouter, Depends, Response
from starlette.status import HTTP_201_CREATED, HTTP_204_NO_CONTENT
from supabase import Client

from storefront.infra.dependencies import get_db
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import require_user, require_admin, require_self_or_admin
from . import service
from .models import (
    RegisterRequest,
    LoginRequest,
    UpdateUserRequest,
    PasswordResetRequest,
    PasswordResetConfirm,
)

api_router = APIRouter(prefix="/api/v1/users", tags=["Users API"])


@api_router.post("", status_code=HTTP_201_CREATED)
def register(req: RegisterRequest, client: Client = Depends(get_db)):
    """Inscription: 400 si email mal formé (avant écriture), 409 si email déjà utilisé."""
    return service.register(client, req)


@api_router.post("/login", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def login(req: LoginRequest, client: Client = Depends(get_db)):
    """Connexion: retourne {userData, token}; 400 si mot de passe erroné (aucun jeton émis)."""
    return service.login(client, req.email, req.password)


@api_router.post("/password-reset", dependencies=[Depends(optional_rate_limit(times=3, seconds=60))])
def request_password_reset(req: PasswordResetRequest, client: Client = Depends(get_db)):
    service.request_password_reset(client, req.email)
    return {"message": service.RESET_REQUESTED_MESSAGE}


@api_router.post("/password-reset/confirm", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def confirm_password_reset(req: PasswordResetConfirm, client: Client = Depends(get_db)):
    service.confirm_password_reset(client, req)
    return {"message": "Password updated"}


@api_router.get("")
def list_users(limit: int = 100, client: Client = Depends(get_db), admin: Dict[str, Any] = Depends(require_admin)):
    return service.list_users(client, limit=limit)


@api_router.get("/profile")
def get_profile(user: Dict[str, Any] = Depends(require_user), client: Client = Depends(get_db)):
    """Profil de l'utilisateur identifié par le jeton Bearer."""
    return service.get_user(client, user["id"])


@api_router.get("/{user_id}")
def get_user(user_id: str, user: Dict[str, Any] = Depends(require_user), client: Client = Depends(get_db)):
    require_self_or_admin(user, user_id)
    return service.get_user(client, user_id)


@api_router.put("/{user_id}")
def update_user(
    user_id: str,
    req: UpdateUserRequest,
    user: Dict[str, Any] = Depends(require_user),
    client: Client = Depends(get_db),
):
    """Mise à jour du profil (soi-même ou admin). Rôle et bannissement passent par les routes admin."""
    require_self_or_admin(user, user_id)
    return service.update_user(client, user_id, req)


@api_router.delete("/{user_id}", status_code=HTTP_204_NO_CONTENT)
def delete_user(user_id: str, client: Client = Depends(get_db), admin: Dict[str, Any] = Depends(require_admin)):
    service.delete_user(client, user_id)
    return Response(status_code=HTTP_204_NO_CONTENT)


@api_router.put("/{user_id}/ban")
def ban_user(user_id: str, client: Client = Depends(get_db), admin: Dict[str, Any] = Depends(require_admin)):
    user = service.set_ban_status(client, user_id, True)
    return {"message": "User banned successfully!", "user": user}


@api_router.put("/{user_id}/unban")
def unban_user(user_id: str, client: Client = Depends(get_db), admin: Dict[str, Any] = Depends(require_admin)):
    user = service.set_ban_status(client, user_id, False)
    return {"message": "User unbanned successfully!", "user": user}
