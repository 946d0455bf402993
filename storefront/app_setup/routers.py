"""
Registre central des routers (API v1 + health).
- Comptes: users
- Catalogue: products, categories
- Commandes et paiement: orders, payment
"""
from fastapi import FastAPI
from storefront.users.views import api_router as users_api_router
from storefront.products import views as products_views
from storefront.categories import views as categories_views
from storefront.orders import views as orders_views
from storefront.payments import views as payments_views
from storefront.health.router import router as health_router


def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(users_api_router)
    app.include_router(products_views.router)
    app.include_router(categories_views.router)
    app.include_router(orders_views.router)
    app.include_router(payments_views.router)
    # Health & monitoring
    app.include_router(health_router)
    app.include_router(health_router, prefix="/api/v1")
