"""
Traduction des erreurs PostgREST (Supabase) vers la taxonomie applicative.
"""
import logging
from typing import Any, Optional
from postgrest.exceptions import APIError

from storefront.errors import ApiError, BadRequest, Conflict, NotFound, InternalError

logger = logging.getLogger(__name__)

# Codes Postgres/PostgREST considérés comme erreurs de schéma côté appelant
_BAD_REQUEST_CODES = {"22P02", "23502", "23514", "22001", "22003", "PGRST204"}
INVALID_TEXT_REPRESENTATION = "22P02"


def store_error_code(e: Exception) -> str:
    if isinstance(e, APIError):
        return str(getattr(e, "code", "") or "")
    return ""


def translate_store_error(action: str, e: Exception) -> ApiError:
    """
    Convertit une exception du store en ApiError (à appeler dans un bloc except):
    - 23505 (violation d'unicité) -> Conflict
    - violation de schéma (type, not null, check, colonne inconnue) -> BadRequest
    - PGRST116 (aucune ligne pour .single()) -> NotFound
    - tout le reste -> InternalError (loggé avec la trace, message générique)
    """
    if isinstance(e, ApiError):
        return e
    code = store_error_code(e)
    if code == "23505":
        return Conflict("Resource already exists")
    if code in _BAD_REQUEST_CODES:
        return BadRequest(getattr(e, "message", None) or "Invalid data")
    if code == "PGRST116":
        return NotFound()
    logger.exception("store error during %s", action)
    return InternalError()


def first_row(res: Any) -> Optional[dict]:
    """Première ligne d'une réponse PostgREST (data liste ou objet), None si vide."""
    rows = getattr(res, "data", None)
    if isinstance(rows, list):
        return rows[0] if rows else None
    return rows or None
