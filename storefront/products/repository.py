from typing import Any, Dict, Iterable, List, Optional
import logging
from supabase import Client

from storefront.errors import InternalError
from storefront.infra.errors import translate_store_error, first_row, store_error_code, INVALID_TEXT_REPRESENTATION

logger = logging.getLogger(__name__)

TABLE = "products"

# module storefront.products.repository
def list_products(client: Client, category_id: Optional[str] = None) -> List[dict]:
    try:
        query = client.table(TABLE).select("*")
        if category_id:
            query = query.eq("category_id", category_id)
        res = query.order("title", desc=False).execute()
        return res.data or []
    except Exception as e:
        if store_error_code(e) == INVALID_TEXT_REPRESENTATION:
            return []
        raise translate_store_error("products.list_products", e) from e

def get_product(client: Client, product_id: str) -> Optional[dict]:
    if not product_id:
        return None
    try:
        res = client.table(TABLE).select("*").eq("id", str(product_id)).limit(1).execute()
        return first_row(res)
    except Exception as e:
        if store_error_code(e) == INVALID_TEXT_REPRESENTATION:
            return None
        raise translate_store_error("products.get_product", e) from e

def fetch_products_by_ids(client: Client, ids: Iterable[str]) -> List[dict]:
    """
    Récupère les produits par leurs IDs (une requête in_).
    - Retourne [] si ids vide; un id mal formé rend le lot introuvable.
    """
    ids = [str(i) for i in ids if i]
    if not ids:
        return []
    try:
        res = client.table(TABLE).select("*").in_("id", ids).execute()
        return res.data or []
    except Exception as e:
        if store_error_code(e) == INVALID_TEXT_REPRESENTATION:
            return []
        raise translate_store_error("products.fetch_products_by_ids", e) from e

def get_products_map(client: Client, ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Retourne un dict {id: produit} à partir d'une liste d'IDs."""
    return {str(p.get("id")): p for p in fetch_products_by_ids(client, ids)}

def create_product(client: Client, data: Dict[str, Any]) -> dict:
    try:
        res = client.table(TABLE).insert(data).execute()
    except Exception as e:
        raise translate_store_error("products.create_product", e) from e
    row = first_row(res)
    if not row:
        logger.error("products.create_product: insert returned no row")
        raise InternalError()
    return row

def update_product(client: Client, product_id: str, data: Dict[str, Any]) -> Optional[dict]:
    try:
        res = client.table(TABLE).update(data).eq("id", str(product_id)).execute()
        return first_row(res)
    except Exception as e:
        if store_error_code(e) == INVALID_TEXT_REPRESENTATION:
            return None
        raise translate_store_error("products.update_product", e) from e

def delete_product(client: Client, product_id: str) -> bool:
    try:
        res = client.table(TABLE).delete().eq("id", str(product_id)).execute()
        return bool(res.data)
    except Exception as e:
        if store_error_code(e) == INVALID_TEXT_REPRESENTATION:
            return False
        raise translate_store_error("products.delete_product", e) from e
