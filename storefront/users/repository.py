"""Couche d'accès aux données (Supabase) pour le domaine Utilisateurs (table users).
Les erreurs du store sont traduites en erreurs applicatives (storefront.errors);
un identifiant mal formé est traité comme « introuvable ».
"""
import logging
from typing import Any, Dict, List, Optional
from supabase import Client

from storefront.errors import InternalError
from storefront.infra.errors import translate_store_error, first_row, store_error_code, INVALID_TEXT_REPRESENTATION

logger = logging.getLogger(__name__)

TABLE = "users"


def list_users(client: Client, limit: int = 100) -> List[dict]:
    try:
        res = (
            client.table(TABLE)
            .select("*")
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []
    except Exception as e:
        raise translate_store_error("users.list_users", e) from e


def get_user_by_id(client: Client, user_id: str) -> Optional[dict]:
    """Récupère un utilisateur par id. None si introuvable ou id mal formé."""
    if not user_id:
        return None
    try:
        res = client.table(TABLE).select("*").eq("id", str(user_id)).limit(1).execute()
        return first_row(res)
    except Exception as e:
        if store_error_code(e) == INVALID_TEXT_REPRESENTATION:
            return None
        raise translate_store_error("users.get_user_by_id", e) from e


def get_user_by_email(client: Client, email: str) -> Optional[dict]:
    if not email:
        return None
    try:
        res = client.table(TABLE).select("*").eq("email", email.strip().lower()).limit(1).execute()
        return first_row(res)
    except Exception as e:
        raise translate_store_error("users.get_user_by_email", e) from e


def insert_user(client: Client, data: Dict[str, Any]) -> dict:
    """Insère un utilisateur. Conflict si l'email existe déjà (contrainte d'unicité)."""
    try:
        res = client.table(TABLE).insert(data).execute()
    except Exception as e:
        raise translate_store_error("users.insert_user", e) from e
    row = first_row(res)
    if not row:
        logger.error("users.insert_user: insert returned no row")
        raise InternalError()
    return row


def update_user(client: Client, user_id: str, data: Dict[str, Any]) -> Optional[dict]:
    """Met à jour un utilisateur et retourne la ligne à jour, None si introuvable."""
    try:
        res = client.table(TABLE).update(data).eq("id", str(user_id)).execute()
        return first_row(res)
    except Exception as e:
        if store_error_code(e) == INVALID_TEXT_REPRESENTATION:
            return None
        raise translate_store_error("users.update_user", e) from e


def delete_user(client: Client, user_id: str) -> bool:
    try:
        res = client.table(TABLE).delete().eq("id", str(user_id)).execute()
        return bool(res.data)
    except Exception as e:
        if store_error_code(e) == INVALID_TEXT_REPRESENTATION:
            return False
        raise translate_store_error("users.delete_user", e) from e


def append_order_id(client: Client, user_id: str, order_id: str) -> Optional[dict]:
    """
    Ajoute order_id à la fin de users.order_ids (lecture puis écriture d'une seule ligne).
    Retourne la ligne à jour, None si l'utilisateur n'existe pas.
    """
    user = get_user_by_id(client, user_id)
    if not user:
        return None
    order_ids = list(user.get("order_ids") or [])
    order_ids.append(str(order_id))
    return update_user(client, user_id, {"order_ids": order_ids})


def remove_order_id(client: Client, user_id: str, order_id: str) -> Optional[dict]:
    user = get_user_by_id(client, user_id)
    if not user:
        return None
    order_ids = [oid for oid in (user.get("order_ids") or []) if str(oid) != str(order_id)]
    return update_user(client, user_id, {"order_ids": order_ids})
