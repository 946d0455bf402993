"""Cas d'usage 'orders': lecture, administration et transitions de statut de paiement."""
import logging
from typing import Any, Dict, List

from supabase import Client

from storefront.errors import Conflict, InternalError, NotFound
from storefront.payments import cart
from storefront.products import repository as products_repository
from storefront.users import repository as users_repository
from . import repository
from .models import CHECKOUT_SESSION_FIELD, PaymentStatus, OrderUpdate, order_view, transition_required

logger = logging.getLogger(__name__)


def _require_order(client: Client, order_id: str) -> Dict[str, Any]:
    order = repository.get_order(client, order_id)
    if not order:
        raise NotFound("Order not found")
    return order


def _current_status(order: Dict[str, Any]) -> PaymentStatus:
    try:
        return PaymentStatus(order.get("payment_status") or PaymentStatus.PENDING.value)
    except ValueError:
        logger.error("orders: unknown payment_status=%r order_id=%s", order.get("payment_status"), order.get("id"))
        raise InternalError()


def set_payment_status(client: Client, order_id: str, target: PaymentStatus) -> Dict[str, Any]:
    """
    Fait passer une commande de PENDING à target (SUCCESSED ou FAILED).
    - NotFound si la commande n'existe pas
    - même statut terminal déjà en place: no-op, la commande est retournée telle quelle
    - autre statut terminal: Conflict, rien n'est écrit
    L'écriture est conditionnelle (payment_status = PENDING): de deux appels concurrents,
    un seul écrit; le second relit la commande et retombe dans l'un des cas ci-dessus.
    """
    order = _require_order(client, order_id)
    current = _current_status(order)
    try:
        if not transition_required(current, target):
            return order_view(order)
    except Conflict:
        logger.warning("orders.set_payment_status rejected order_id=%s %s -> %s", order_id, current.value, target.value)
        raise

    row = repository.compare_and_set_payment_status(client, order_id, expected=current.value, target=target.value)
    if row:
        logger.info("orders.set_payment_status order_id=%s %s -> %s", order_id, current.value, target.value)
        return order_view(row)

    # perdu la course: un autre appel a déjà tranché
    order = _require_order(client, order_id)
    current = _current_status(order)
    if current is PaymentStatus.PENDING:
        logger.error("orders.set_payment_status: conditional update wrote nothing order_id=%s", order_id)
        raise InternalError()
    try:
        transition_required(current, target)
    except Conflict:
        logger.warning("orders.set_payment_status rejected order_id=%s %s -> %s", order_id, current.value, target.value)
        raise
    return order_view(order)


# --- Lecture ---

def list_orders(client: Client, limit: int = 100) -> List[Dict[str, Any]]:
    return [order_view(o) for o in repository.list_orders(client, limit=limit)]


def get_order(client: Client, order_id: str) -> Dict[str, Any]:
    return order_view(_require_order(client, order_id))


def _hydrate(order: Dict[str, Any], products_by_id: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    view = order_view(order)
    view["items"] = [
        {**item, "product": products_by_id.get(str(item.get("product_id")))}
        for item in (order.get("items") or [])
    ]
    return view


def list_user_orders(client: Client, user_id: str) -> List[Dict[str, Any]]:
    """
    Commandes d'un utilisateur, dans l'ordre de users.order_ids.
    Chaque ligne est hydratée avec son produit (None si le produit a été supprimé).
    """
    user = users_repository.get_user_by_id(client, user_id)
    if not user:
        raise NotFound("User not found")
    order_ids = [str(oid) for oid in (user.get("order_ids") or [])]
    orders_by_id = {str(o.get("id")): o for o in repository.fetch_orders_by_ids(client, order_ids)}
    orders = [orders_by_id[oid] for oid in order_ids if oid in orders_by_id]

    product_ids = {str(item.get("product_id")) for o in orders for item in (o.get("items") or [])}
    products_by_id = products_repository.get_products_map(client, product_ids)
    return [_hydrate(o, products_by_id) for o in orders]


# --- Administration ---

def update_order_items(client: Client, order_id: str, req: OrderUpdate) -> Dict[str, Any]:
    """
    Remplace les lignes d'une commande encore PENDING et recalcule le total depuis le catalogue.
    Conflict si le paiement est déjà terminé ou si une session Stripe a déjà figé le montant.
    """
    order = _require_order(client, order_id)
    if _current_status(order).is_terminal:
        raise Conflict("Only pending orders can be modified")
    if order.get(CHECKOUT_SESSION_FIELD):
        logger.warning("orders.update_order_items refused order_id=%s: checkout session open", order_id)
        raise Conflict("Order has an open checkout session and can no longer be modified")

    quantities: Dict[str, int] = {}
    for line in req.items:
        quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity
    products = products_repository.get_products_map(client, quantities.keys())
    lines = cart.price_lines(products, quantities)

    row = repository.update_order(client, order_id, {
        "items": cart.order_items(lines),
        "total_amount": cart.order_total(lines),
    })
    if not row:
        raise NotFound("Order not found")
    logger.info("orders.update_order_items order_id=%s total_amount=%s", order_id, row.get("total_amount"))
    return order_view(row)


def delete_order(client: Client, order_id: str) -> None:
    """Supprime la commande puis retire sa référence de users.order_ids."""
    order = _require_order(client, order_id)
    if not repository.delete_order(client, order_id):
        raise NotFound("Order not found")
    if order.get("user_id"):
        users_repository.remove_order_id(client, order["user_id"], order_id)
    logger.info("orders.delete order_id=%s", order_id)
