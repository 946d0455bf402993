# module storefront.app
"""Instance FastAPI globale, construite par la factory."""
from storefront.app_setup.factory import create_app

app = create_app()
