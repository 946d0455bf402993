"""
Fournisseurs de dépendances FastAPI pour les ressources de processus.
Le client Supabase et la passerelle Stripe sont construits dans le lifespan
(storefront.app_setup.lifespan) puis lus sur app.state; aucune vue n'importe de singleton.
"""
from fastapi import Request
from supabase import Client

from storefront.errors import InternalError
from storefront.payments.stripe_client import StripeGateway


def get_db(request: Request) -> Client:
    client = getattr(request.app.state, "db", None)
    if client is None:
        raise InternalError("Database not configured")
    return client


def get_payment_gateway(request: Request) -> StripeGateway:
    gateway = getattr(request.app.state, "payment_gateway", None)
    if gateway is None:
        raise InternalError("Payment provider not configured")
    return gateway
