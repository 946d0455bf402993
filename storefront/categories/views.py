"""Endpoints catégories (/api/v1/categories): lecture publique, écriture réservée aux admins."""
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from starlette.status import HTTP_201_CREATED, HTTP_204_NO_CONTENT
from supabase import Client

from storefront.errors import BadRequest, NotFound
from storefront.infra.dependencies import get_db
from storefront.utils.security import require_admin
from . import repository

router = APIRouter(prefix="/api/v1/categories", tags=["Categories API"])


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None


@router.get("")
def list_categories(client: Client = Depends(get_db)):
    return repository.list_categories(client)

@router.get("/{category_id}")
def get_category(category_id: str, client: Client = Depends(get_db)):
    category = repository.get_category(client, category_id)
    if not category:
        raise NotFound("Category not found")
    return category

@router.post("", status_code=HTTP_201_CREATED)
def create_category(body: CategoryCreate, client: Client = Depends(get_db), admin: Dict[str, Any] = Depends(require_admin)):
    return repository.create_category(client, body.model_dump())

@router.put("/{category_id}")
def update_category(
    category_id: str,
    body: CategoryUpdate,
    client: Client = Depends(get_db),
    admin: Dict[str, Any] = Depends(require_admin),
):
    data = body.model_dump(exclude_unset=True, exclude_none=True)
    if not data:
        raise BadRequest("No fields to update")
    category = repository.update_category(client, category_id, data)
    if not category:
        raise NotFound("Category not found")
    return category

@router.delete("/{category_id}", status_code=HTTP_204_NO_CONTENT)
def delete_category(category_id: str, client: Client = Depends(get_db), admin: Dict[str, Any] = Depends(require_admin)):
    if not repository.delete_category(client, category_id):
        raise NotFound("Category not found")
    return Response(status_code=HTTP_204_NO_CONTENT)
