"""
Logique panier pure (pas de Stripe, pas de DB).
Les prix unitaires viennent du catalogue; le prix envoyé par le client n'est qu'indicatif.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from storefront.errors import BadRequest

logger = logging.getLogger(__name__)

# Stripe accepte au plus 8 images par produit
MAX_STRIPE_IMAGES = 8


# module storefront.payments.cart
class CartItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id", min_length=1)
    title: str = ""
    price: Optional[Decimal] = None
    images: Union[List[str], str, None] = None
    quantity: int = Field(ge=1)


class CheckoutRequest(BaseModel):
    receipt_email: Optional[EmailStr] = None
    order: List[CartItem] = Field(min_length=1)


def to_minor_units(price: Any) -> int:
    """
    Convertit un prix en unités majeures (str|float|int|Decimal) en centimes.
    - Arrondi au demi supérieur: 10.995 -> 1100
    - BadRequest si le prix n'est pas un nombre
    """
    try:
        value = price if isinstance(price, Decimal) else Decimal(str(price))
    except (InvalidOperation, ValueError):
        raise BadRequest("Invalid price")
    if not value.is_finite():
        raise BadRequest("Invalid price")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def aggregate_quantities(items: List[CartItem]) -> Dict[str, int]:
    """
    Agrège le panier en {product_id: total_quantity} (ordre de première apparition conservé).
    BadRequest si aucune ligne n'est présente.
    """
    quantities: Dict[str, int] = {}
    for it in items or []:
        product_id = it.id.strip()
        if not product_id:
            continue
        quantities[product_id] = quantities.get(product_id, 0) + it.quantity
    if not quantities:
        raise BadRequest("Cart is empty")
    return quantities


def _as_list(images: Any) -> List[str]:
    if not images:
        return []
    if isinstance(images, str):
        return [images]
    return [str(i) for i in images if i]


def price_lines(
    products_by_id: Dict[str, Dict[str, Any]],
    quantities: Dict[str, int],
    items: Optional[List[CartItem]] = None,
) -> List[Dict[str, Any]]:
    """
    Construit les lignes tarifées à partir du catalogue:
    [{product_id, title, images, quantity, unit_amount}]
    - BadRequest si un produit est inconnu ou sans prix positif
    - un écart avec le prix affiché côté client est loggé puis ignoré
    """
    displayed = {it.id.strip(): it for it in (items or [])}
    lines: List[Dict[str, Any]] = []
    for product_id, qty in quantities.items():
        product = products_by_id.get(product_id)
        if not product:
            raise BadRequest(f"Unknown product: {product_id}")
        unit_amount = to_minor_units(product.get("price") or 0)
        if unit_amount <= 0:
            raise BadRequest(f"Product has no valid price: {product_id}")

        client_item = displayed.get(product_id)
        if client_item is not None and client_item.price is not None:
            if to_minor_units(client_item.price) != unit_amount:
                logger.warning(
                    "payments.cart price mismatch product_id=%s client=%s catalog=%s",
                    product_id, client_item.price, product.get("price"),
                )

        images = _as_list(product.get("images")) or _as_list(client_item.images if client_item else None)
        lines.append({
            "product_id": product_id,
            "title": product.get("title") or (client_item.title if client_item else "") or "Article",
            "images": images[:MAX_STRIPE_IMAGES],
            "quantity": qty,
            "unit_amount": unit_amount,
        })
    return lines


def order_total(lines: List[Dict[str, Any]]) -> int:
    return sum(line["unit_amount"] * line["quantity"] for line in lines)


def order_items(lines: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Lignes embarquées dans la commande (colonne items)."""
    return [
        {"product_id": line["product_id"], "quantity": line["quantity"], "unit_amount": line["unit_amount"]}
        for line in lines
    ]


def to_line_items(lines: List[Dict[str, Any]], currency: str) -> List[Dict[str, Any]]:
    """
    Construit les line_items Stripe: price_data.unit_amount est le prix d'UNE unité en centimes,
    Stripe multiplie lui-même par quantity.
    """
    line_items: List[Dict[str, Any]] = []
    for line in lines:
        product_data: Dict[str, Any] = {"name": line["title"]}
        if line["images"]:
            product_data["images"] = line["images"]
        line_items.append({
            "quantity": line["quantity"],
            "price_data": {
                "currency": currency,
                "unit_amount": line["unit_amount"],
                "product_data": product_data,
            },
        })
    return line_items
