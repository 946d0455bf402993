"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
La passerelle est construite une fois dans le lifespan puis injectée via get_payment_gateway().
"""
import json
import logging
from typing import Any, Dict, List, Optional

import stripe

from storefront import config
from storefront.errors import BadRequest, InternalError

logger = logging.getLogger(__name__)


# module storefront.payments.stripe_client
def configure_stripe(timeout: Optional[float] = None) -> None:
    """
    Réglages globaux du SDK: délai réseau explicite, aucune relance automatique.
    """
    stripe.max_network_retries = 0
    stripe.default_http_client = stripe.RequestsClient(
        timeout=timeout if timeout is not None else config.STRIPE_TIMEOUT_SECONDS
    )


class InvalidWebhook(Exception):
    """Payload ou signature Stripe-Signature invalide."""


class StripeGateway:
    def __init__(self, api_key: str, webhook_secret: str = "", currency: str = "eur"):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.currency = currency

    def create_checkout_session(
        self,
        *,
        line_items: List[Dict[str, Any]],
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        customer_email: Optional[str] = None,
        mode: str = "payment",
    ) -> Dict[str, Any]:
        """
        Crée une session Stripe Checkout.
        Retour: {"id": "cs_test_...", "url": "https://checkout.stripe.com/..."}
        Erreurs: InvalidRequestError -> BadRequest, toute autre erreur Stripe -> InternalError.
        """
        if not self.api_key:
            raise InternalError("Payment provider not configured")
        params: Dict[str, Any] = {
            "line_items": line_items,
            "mode": mode,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            "payment_method_types": ["card"],
        }
        if customer_email:
            params["customer_email"] = customer_email
        try:
            session = stripe.checkout.Session.create(api_key=self.api_key, **params)
        except stripe.InvalidRequestError as e:
            logger.warning("stripe.create_checkout_session rejected: %s", getattr(e, "user_message", None) or e)
            raise BadRequest("Payment request rejected by provider") from e
        except stripe.StripeError as e:
            logger.exception("stripe.create_checkout_session failed")
            raise InternalError("Payment provider error") from e

        url = getattr(session, "url", None)
        if not url:
            logger.error("stripe.create_checkout_session: session without url")
            raise InternalError("Payment provider error")
        return {"id": getattr(session, "id", None), "url": url}

    def retrieve_checkout_session(self, session_id: str) -> Dict[str, Any]:
        """
        Relit une session Checkout chez Stripe.
        Retour: {"id", "payment_status", "metadata"}; session inconnue -> BadRequest.
        """
        if not self.api_key:
            raise InternalError("Payment provider not configured")
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        except stripe.InvalidRequestError as e:
            logger.warning("stripe.retrieve_checkout_session rejected session_id=%s: %s", session_id, e)
            raise BadRequest("Unknown checkout session") from e
        except stripe.StripeError as e:
            logger.exception("stripe.retrieve_checkout_session failed session_id=%s", session_id)
            raise InternalError("Payment provider error") from e

        metadata = getattr(session, "metadata", None)
        return {
            "id": getattr(session, "id", None),
            "payment_status": getattr(session, "payment_status", None),
            "metadata": {"order_id": getattr(metadata, "order_id", None)} if metadata is not None else {},
        }

    def parse_event(self, payload: bytes, sig_header: Optional[str]) -> Dict[str, Any]:
        """
        Valide la signature (Stripe-Signature + STRIPE_WEBHOOK_SECRET) puis retourne l'événement en dict.
        Lève InvalidWebhook si le secret manque, si la signature ou le payload est invalide.
        """
        if not self.webhook_secret:
            raise InvalidWebhook("STRIPE_WEBHOOK_SECRET manquant")
        if not sig_header:
            raise InvalidWebhook("missing Stripe-Signature header")
        try:
            stripe.Webhook.construct_event(payload, sig_header, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise InvalidWebhook(str(e)) from e
        # payload authentifié: on le relit en dict brut
        return json.loads(payload)


def build_gateway() -> StripeGateway:
    return StripeGateway(
        api_key=config.STRIPE_SECRET_KEY,
        webhook_secret=config.STRIPE_WEBHOOK_SECRET,
        currency=config.CHECKOUT_CURRENCY,
    )
