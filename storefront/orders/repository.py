from typing import Any, Dict, Iterable, List, Optional
import logging
from supabase import Client

from storefront.errors import InternalError
from storefront.infra.errors import translate_store_error, first_row, store_error_code, INVALID_TEXT_REPRESENTATION

logger = logging.getLogger(__name__)

TABLE = "orders"

def insert_order(client: Client, data: Dict[str, Any]) -> dict:
    """Insère une commande. BadRequest si violation de schéma, InternalError sinon."""
    try:
        res = client.table(TABLE).insert(data).execute()
    except Exception as e:
        raise translate_store_error("orders.insert_order", e) from e
    row = first_row(res)
    if not row:
        logger.error("orders.insert_order: insert returned no row")
        raise InternalError()
    return row

def get_order(client: Client, order_id: str) -> Optional[dict]:
    if not order_id:
        return None
    try:
        res = client.table(TABLE).select("*").eq("id", str(order_id)).limit(1).execute()
        return first_row(res)
    except Exception as e:
        if store_error_code(e) == INVALID_TEXT_REPRESENTATION:
            return None
        raise translate_store_error("orders.get_order", e) from e

def list_orders(client: Client, limit: int = 100) -> List[dict]:
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
        raise translate_store_error("orders.list_orders", e) from e

def fetch_orders_by_ids(client: Client, ids: Iterable[str]) -> List[dict]:
    ids = [str(i) for i in ids if i]
    if not ids:
        return []
    try:
        res = client.table(TABLE).select("*").in_("id", ids).execute()
        return res.data or []
    except Exception as e:
        if store_error_code(e) == INVALID_TEXT_REPRESENTATION:
            return []
        raise translate_store_error("orders.fetch_orders_by_ids", e) from e

def update_order(client: Client, order_id: str, data: Dict[str, Any]) -> Optional[dict]:
    try:
        res = client.table(TABLE).update(data).eq("id", str(order_id)).execute()
        return first_row(res)
    except Exception as e:
        if store_error_code(e) == INVALID_TEXT_REPRESENTATION:
            return None
        raise translate_store_error("orders.update_order", e) from e

def compare_and_set_payment_status(client: Client, order_id: str, expected: str, target: str) -> Optional[dict]:
    """
    Écriture conditionnelle: payment_status passe à target seulement s'il vaut encore expected.
    Retourne la ligne à jour, None si la ligne n'existe pas ou a changé entre-temps.
    """
    try:
        res = (
            client.table(TABLE)
            .update({"payment_status": target})
            .eq("id", str(order_id))
            .eq("payment_status", expected)
            .execute()
        )
        return first_row(res)
    except Exception as e:
        if store_error_code(e) == INVALID_TEXT_REPRESENTATION:
            return None
        raise translate_store_error("orders.compare_and_set_payment_status", e) from e

def delete_order(client: Client, order_id: str) -> bool:
    try:
        res = client.table(TABLE).delete().eq("id", str(order_id)).execute()
        return bool(res.data)
    except Exception as e:
        if store_error_code(e) == INVALID_TEXT_REPRESENTATION:
            return False
        raise translate_store_error("orders.delete_order", e) from e
