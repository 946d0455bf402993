# module storefront.orders.models
"""Modèle des commandes.
- PaymentStatus: PENDING -> SUCCESSED | FAILED, états terminaux.
- Montants: total_amount (entier, unités mineures) est la seule valeur stockée;
  total_price (Decimal, unités majeures) en est dérivé pour l'affichage.
"""
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from storefront.errors import Conflict

MINOR_UNITS_PER_MAJOR = 100
# id de la session Stripe Checkout ouverte pour la commande
CHECKOUT_SESSION_FIELD = "checkout_session_id"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESSED = "SUCCESSED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING


def transition_required(current: PaymentStatus, target: PaymentStatus) -> bool:
    """
    Applique la machine à états du paiement.
    - PENDING -> terminal: True (l'écriture doit être faite)
    - terminal -> même terminal: False (rejeu idempotent, rien à écrire)
    - terminal -> autre état: Conflict
    """
    if current is target and current.is_terminal:
        return False
    if current is PaymentStatus.PENDING and target.is_terminal:
        return True
    raise Conflict(f"Order payment status is already {current.value}")


def minor_to_major(amount: int) -> Decimal:
    return (Decimal(int(amount or 0)) / MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))


def order_view(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Ligne orders enrichie de total_price (unités majeures)."""
    if row is None:
        return None
    view = dict(row)
    view["total_price"] = minor_to_major(row.get("total_amount") or 0)
    return view


class OrderLineInput(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)


class OrderUpdate(BaseModel):
    items: List[OrderLineInput] = Field(min_length=1)
