from typing import Any, Dict, List, Optional
import logging
from supabase import Client

from storefront.errors import InternalError
from storefront.infra.errors import translate_store_error, first_row, store_error_code, INVALID_TEXT_REPRESENTATION

logger = logging.getLogger(__name__)

TABLE = "categories"

def list_categories(client: Client) -> List[dict]:
    try:
        res = client.table(TABLE).select("*").order("name", desc=False).execute()
        return res.data or []
    except Exception as e:
        raise translate_store_error("categories.list_categories", e) from e

def get_category(client: Client, category_id: str) -> Optional[dict]:
    if not category_id:
        return None
    try:
        res = client.table(TABLE).select("*").eq("id", str(category_id)).limit(1).execute()
        return first_row(res)
    except Exception as e:
        if store_error_code(e) == INVALID_TEXT_REPRESENTATION:
            return None
        raise translate_store_error("categories.get_category", e) from e

def create_category(client: Client, data: Dict[str, Any]) -> dict:
    try:
        res = client.table(TABLE).insert(data).execute()
    except Exception as e:
        raise translate_store_error("categories.create_category", e) from e
    row = first_row(res)
    if not row:
        logger.error("categories.create_category: insert returned no row")
        raise InternalError()
    return row

def update_category(client: Client, category_id: str, data: Dict[str, Any]) -> Optional[dict]:
    try:
        res = client.table(TABLE).update(data).eq("id", str(category_id)).execute()
        return first_row(res)
    except Exception as e:
        if store_error_code(e) == INVALID_TEXT_REPRESENTATION:
            return None
        raise translate_store_error("categories.update_category", e) from e

def delete_category(client: Client, category_id: str) -> bool:
    try:
        res = client.table(TABLE).delete().eq("id", str(category_id)).execute()
        return bool(res.data)
    except Exception as e:
        if store_error_code(e) == INVALID_TEXT_REPRESENTATION:
            return False
        raise translate_store_error("categories.delete_category", e) from e
