"""
ASGI entrypoint: expose `app` pour les process managers / déploiements
(ex: uvicorn storefront.asgi:app, gunicorn -k uvicorn.workers.UvicornWorker storefront.asgi:app).
"""

from storefront.app import app
