from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Response
from starlette.status import HTTP_201_CREATED, HTTP_204_NO_CONTENT
from supabase import Client

from storefront.errors import BadRequest, NotFound
from storefront.infra.dependencies import get_db
from storefront.utils.security import require_admin
from . import repository
from .models import ProductCreate, ProductUpdate

router = APIRouter(prefix="/api/v1/products", tags=["Products API"])

# module storefront.products.views
@router.get("")
def list_products(category_id: Optional[str] = None, client: Client = Depends(get_db)):
    return repository.list_products(client, category_id=category_id)

@router.get("/{product_id}")
def get_product(product_id: str, client: Client = Depends(get_db)):
    product = repository.get_product(client, product_id)
    if not product:
        raise NotFound("Product not found")
    return product

@router.post("", status_code=HTTP_201_CREATED)
def create_product(body: ProductCreate, client: Client = Depends(get_db), admin: Dict[str, Any] = Depends(require_admin)):
    return repository.create_product(client, body.to_row())

@router.put("/{product_id}")
def update_product(
    product_id: str,
    body: ProductUpdate,
    client: Client = Depends(get_db),
    admin: Dict[str, Any] = Depends(require_admin),
):
    data = body.to_row()
    if not data:
        raise BadRequest("No fields to update")
    product = repository.update_product(client, product_id, data)
    if not product:
        raise NotFound("Product not found")
    return product

@router.delete("/{product_id}", status_code=HTTP_204_NO_CONTENT)
def delete_product(product_id: str, client: Client = Depends(get_db), admin: Dict[str, Any] = Depends(require_admin)):
    if not repository.delete_product(client, product_id):
        raise NotFound("Product not found")
    return Response(status_code=HTTP_204_NO_CONTENT)
