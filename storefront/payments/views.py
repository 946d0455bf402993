import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool
from supabase import Client

from storefront.errors import BadRequest
from storefront.infra.dependencies import get_db, get_payment_gateway
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import require_user
from . import service as payments_service
from .cart import CheckoutRequest
from .stripe_client import StripeGateway, InvalidWebhook

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payment", tags=["Payments API"])


# module storefront.payments.views
@router.post("", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_checkout_session(
    body: CheckoutRequest,
    user: Dict[str, Any] = Depends(require_user),
    client: Client = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    """
    Crée la commande PENDING et la session Checkout Stripe du panier de l'utilisateur authentifié.
    - Entrée JSON: {"receipt_email": "...", "order": [{"_id", "title", "price", "images", "quantity"}, ...]}
    - Sécurité: require_user (401 sans jeton) + rate limit (10 req / 60s)
    - Sortie: {"url": <page de paiement Stripe>, "order_id": "..."}
    """
    return payments_service.initiate_checkout(client, gateway, user=user, request=body)


@router.get("/success/{order_id}")
def payment_success(
    order_id: str,
    sig: Optional[str] = None,
    session_id: Optional[str] = None,
    client: Client = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    """
    Retour navigateur après paiement: lien signé requis (403 sinon).
    La session Stripe (session_id) doit être payée (400 sinon), la commande passe alors à SUCCESSED.
    """
    order = payments_service.on_payment_success(client, gateway, order_id, sig, session_id)
    return {"order": order}


@router.get("/cancel/{order_id}")
def payment_cancel(order_id: str, sig: Optional[str] = None, client: Client = Depends(get_db)):
    """Retour navigateur après annulation: lien signé requis (403 sinon), la commande passe à FAILED."""
    order = payments_service.on_payment_cancel(client, order_id, sig)
    return {"order": order}


@router.post("/webhook", include_in_schema=False)
async def webhook_stripe(
    request: Request,
    client: Client = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    """
    Webhook Stripe (Checkout): completed/expired -> SUCCESSED/FAILED via la machine à états.
    - Signature: Stripe-Signature + STRIPE_WEBHOOK_SECRET, 400 si invalide
    - Réponses: {"status": "ok", ...} ou {"status": "ignored"}
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    try:
        event = gateway.parse_event(payload, sig_header)
    except InvalidWebhook as e:
        logger.warning("payments.webhook invalid: %s", e)
        raise BadRequest("Invalid Stripe webhook payload")
    return await run_in_threadpool(payments_service.handle_webhook_event, client, event)
