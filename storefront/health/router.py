from fastapi import APIRouter, Request

from storefront.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root(request: Request):
    return {
        "ok": True,
        "store": getattr(request.app.state, "db", None) is not None,
        "rate_limit": rate_limit_health_info(request),
    }
