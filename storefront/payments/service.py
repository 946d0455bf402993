"""
Cas d'usage 'payments': orchestre catalogue, commandes, comptes et Stripe.

Checkout (saga, pas de transaction entre le store et Stripe):
  1) commande PENDING insérée
  2) id ajouté à users.order_ids       -> échec: commande supprimée
  3) session Stripe Checkout créée     -> échec: référence retirée puis commande supprimée
  4) id de session posé sur la commande -> échec: idem
Retours de paiement: liens signés (success/cancel) et webhook Stripe vérifié,
tous deux passent par la machine à états de storefront.orders.service.
"""
import logging
from typing import Any, Dict, Optional

from supabase import Client

from storefront import config
from storefront.auth import credentials
from storefront.errors import ApiError, BadRequest, Conflict, Forbidden, InternalError, NotFound
from storefront.orders import repository as orders_repository
from storefront.orders import service as orders_service
from storefront.orders.models import CHECKOUT_SESSION_FIELD, PaymentStatus
from storefront.products import repository as products_repository
from storefront.users import repository as users_repository
from . import cart
from .cart import CheckoutRequest
from .stripe_client import StripeGateway

logger = logging.getLogger(__name__)

SUCCESS = "success"
CANCEL = "cancel"

PAID = "paid"
EVENT_COMPLETED = "checkout.session.completed"
EVENT_ASYNC_SUCCEEDED = "checkout.session.async_payment_succeeded"
EVENT_EXPIRED = "checkout.session.expired"
EVENT_ASYNC_FAILED = "checkout.session.async_payment_failed"


# module storefront.payments.service
def callback_url(order_id: str, outcome: str, base_url: Optional[str] = None) -> str:
    """
    URL de retour signée: {base}/api/v1/payment/{success|cancel}/{order_id}?sig=<jwt>.
    Le lien de succès porte aussi session_id={CHECKOUT_SESSION_ID}, substitué par Stripe.
    """
    base = (base_url or config.PUBLIC_BASE_URL).rstrip("/")
    url = f"{base}/api/v1/payment/{outcome}/{order_id}?sig={credentials.sign_callback(order_id, outcome)}"
    if outcome == SUCCESS:
        url += "&session_id={CHECKOUT_SESSION_ID}"
    return url


def _discard_order(client: Client, order_id: str, user_id: Optional[str] = None) -> None:
    """Compensation: retire la référence côté utilisateur (si posée) puis supprime la commande."""
    try:
        if user_id:
            users_repository.remove_order_id(client, user_id, order_id)
        orders_repository.delete_order(client, order_id)
        logger.info("payments.checkout compensated order_id=%s", order_id)
    except ApiError:
        logger.exception("payments.checkout compensation failed order_id=%s", order_id)


def initiate_checkout(
    client: Client,
    gateway: StripeGateway,
    *,
    user: Dict[str, Any],
    request: CheckoutRequest,
    base_url: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Crée la commande PENDING, la rattache à l'utilisateur et ouvre la session Stripe.
    Les prix sont relus dans le catalogue. Retour: {"url": <session.url>, "order_id": <id>}.
    """
    quantities = cart.aggregate_quantities(request.order)
    products = products_repository.get_products_map(client, quantities.keys())
    lines = cart.price_lines(products, quantities, request.order)
    total_amount = cart.order_total(lines)

    order = orders_repository.insert_order(client, {
        "user_id": user["id"],
        "items": cart.order_items(lines),
        "total_amount": total_amount,
        "currency": gateway.currency,
        "payment_status": PaymentStatus.PENDING.value,
    })
    order_id = str(order["id"])

    try:
        if not users_repository.append_order_id(client, user["id"], order_id):
            raise NotFound("User not found")
    except ApiError:
        _discard_order(client, order_id)
        raise

    try:
        session = gateway.create_checkout_session(
            line_items=cart.to_line_items(lines, gateway.currency),
            success_url=callback_url(order_id, SUCCESS, base_url),
            cancel_url=callback_url(order_id, CANCEL, base_url),
            metadata={"order_id": order_id, "user_id": str(user["id"])},
            customer_email=str(request.receipt_email) if request.receipt_email else None,
        )
        # la session fige le montant: la commande ne peut plus changer de lignes
        if not orders_repository.update_order(client, order_id, {CHECKOUT_SESSION_FIELD: session.get("id")}):
            raise InternalError()
    except ApiError:
        _discard_order(client, order_id, user_id=user["id"])
        raise

    logger.info(
        "payments.checkout order_id=%s user_id=%s total_amount=%s session_id=%s",
        order_id, user["id"], total_amount, session.get("id"),
    )
    return {"url": session["url"], "order_id": order_id}


# --- Retours navigateur (liens signés) ---

def _verify(order_id: str, outcome: str, signature: Optional[str]) -> None:
    if not credentials.verify_callback(signature or "", order_id, outcome):
        logger.warning("payments.callback invalid signature order_id=%s outcome=%s", order_id, outcome)
        raise Forbidden("Invalid payment callback signature")


def _confirm_paid(gateway: StripeGateway, order: Dict[str, Any], session_id: Optional[str]) -> None:
    """Vérifie chez Stripe que la session de la commande est payée."""
    if not session_id:
        raise BadRequest("Missing checkout session id")
    expected = order.get(CHECKOUT_SESSION_FIELD)
    if expected and session_id != expected:
        logger.warning("payments.callback session mismatch order_id=%s session_id=%s", order["id"], session_id)
        raise Forbidden("Checkout session does not match this order")

    session = gateway.retrieve_checkout_session(session_id)
    if str((session.get("metadata") or {}).get("order_id") or "") != str(order["id"]):
        logger.warning("payments.callback session mismatch order_id=%s session_id=%s", order["id"], session_id)
        raise Forbidden("Checkout session does not match this order")
    payment_status = session.get("payment_status") or ""
    if payment_status != PAID:
        raise BadRequest(f"Payment not confirmed (payment_status={payment_status})")


def on_payment_success(
    client: Client,
    gateway: StripeGateway,
    order_id: str,
    signature: Optional[str],
    session_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Lien signé + confirmation Stripe (session payée) avant de passer la commande à SUCCESSED.
    Une commande déjà tranchée ne déclenche pas d'appel Stripe: no-op ou Conflict.
    """
    _verify(order_id, SUCCESS, signature)
    order = orders_service.get_order(client, order_id)
    if (order.get("payment_status") or PaymentStatus.PENDING.value) == PaymentStatus.PENDING.value:
        _confirm_paid(gateway, order, session_id)
    return orders_service.set_payment_status(client, order_id, PaymentStatus.SUCCESSED)


def on_payment_cancel(client: Client, order_id: str, signature: Optional[str]) -> Dict[str, Any]:
    _verify(order_id, CANCEL, signature)
    return orders_service.set_payment_status(client, order_id, PaymentStatus.FAILED)


# --- Webhook Stripe (signature déjà vérifiée) ---

def _target_status(event_type: str, session: Dict[str, Any]) -> Optional[PaymentStatus]:
    if event_type == EVENT_COMPLETED:
        # paiement différé (virement...): on attend async_payment_succeeded
        return PaymentStatus.SUCCESSED if session.get("payment_status") == PAID else None
    if event_type == EVENT_ASYNC_SUCCEEDED:
        return PaymentStatus.SUCCESSED
    if event_type in (EVENT_EXPIRED, EVENT_ASYNC_FAILED):
        return PaymentStatus.FAILED
    return None


def handle_webhook_event(client: Client, event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Applique un événement checkout.session.* à la commande référencée par metadata.order_id.
    - événement non géré ou sans order_id: {"status": "ignored"}
    - commande inconnue ou statut déjà tranché autrement: loggé et acquitté ({"status": "ignored"})
    """
    event_type = (event or {}).get("type") or ""
    session = ((event or {}).get("data") or {}).get("object") or {}
    order_id = str((session.get("metadata") or {}).get("order_id") or "")

    target = _target_status(event_type, session)
    if target is None or not order_id:
        return {"status": "ignored"}

    try:
        order = orders_service.set_payment_status(client, order_id, target)
    except (NotFound, Conflict) as e:
        logger.warning("payments.webhook %s order_id=%s ignored: %s", event_type, order_id, e.detail)
        return {"status": "ignored"}
    logger.info("payments.webhook %s order_id=%s payment_status=%s", event_type, order_id, order.get("payment_status"))
    return {"status": "ok", "order_id": order_id, "payment_status": order.get("payment_status")}
