"""Endpoints commandes (/api/v1/orders).
- Liste globale, modification et suppression: admin
- Commandes d'un utilisateur: l'utilisateur lui-même ou un admin
- Détail d'une commande: propriétaire ou admin
Le statut de paiement ne se modifie jamais ici: seulement via /api/v1/payment.
"""
from typing import Any, Dict
from fastapi import APIRouter, Depends, Response
from starlette.status import HTTP_204_NO_CONTENT
from supabase import Client

from storefront.infra.dependencies import get_db
from storefront.utils.security import require_user, require_admin, require_self_or_admin
from . import service
from .models import OrderUpdate

router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])


@router.get("")
def list_orders(limit: int = 100, client: Client = Depends(get_db), admin: Dict[str, Any] = Depends(require_admin)):
    return service.list_orders(client, limit=limit)


@router.get("/user/{user_id}")
def list_user_orders(user_id: str, user: Dict[str, Any] = Depends(require_user), client: Client = Depends(get_db)):
    require_self_or_admin(user, user_id)
    return service.list_user_orders(client, user_id)


@router.get("/{order_id}")
def get_order(order_id: str, user: Dict[str, Any] = Depends(require_user), client: Client = Depends(get_db)):
    order = service.get_order(client, order_id)
    require_self_or_admin(user, order.get("user_id"))
    return order


@router.put("/{order_id}")
def update_order(
    order_id: str,
    body: OrderUpdate,
    client: Client = Depends(get_db),
    admin: Dict[str, Any] = Depends(require_admin),
):
    return service.update_order_items(client, order_id, body)


@router.delete("/{order_id}", status_code=HTTP_204_NO_CONTENT)
def delete_order(order_id: str, client: Client = Depends(get_db), admin: Dict[str, Any] = Depends(require_admin)):
    service.delete_order(client, order_id)
    return Response(status_code=HTTP_204_NO_CONTENT)
