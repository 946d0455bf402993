from typing import Dict, Any
import hashlib
import os
import time

from fastapi import Request
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter
from starlette.responses import Response

from storefront.errors import ApiError


class TooManyRequests(ApiError):
    status_code = 429
    default_message = "Too Many Requests"


def _user_key_from_request(req: Request) -> str:
    # Priorité: jeton Bearer (hashé) puis IP
    auth = req.headers.get("Authorization", "")
    token = auth[7:].strip() if auth.lower().startswith("bearer ") else ""
    path = req.url.path
    if token:
        h = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
        return f"user:{h}:{path}"
    ip = req.client.host if req.client else "local"
    return f"ip:{ip}:{path}"


async def _identifier(req: Request) -> str:
    return _user_key_from_request(req)


def _evict_expired(store: Dict[str, list], path: str, now: float, seconds: int) -> None:
    # seules les clés du même chemin partagent cette fenêtre
    suffix = f":{path}"
    expired = [k for k, hits in store.items() if k.endswith(suffix) and not any(now - t < seconds for t in hits)]
    for k in expired:
        del store[k]


def optional_rate_limit(times: int, seconds: int):
    """
    Dépendance de rate limiting tolérante:
    - LOCAL_RATE_LIMIT_FALLBACK=1: fenêtre glissante en mémoire (app.state._rl_store)
    - sinon FastAPILimiter (Redis) si le lifespan l'a activé, aucune limite dans le cas contraire
    """
    async def _dep(request: Request):
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            now = time.time()
            key = _user_key_from_request(request)
            store = getattr(request.app.state, "_rl_store", {})
            _evict_expired(store, request.url.path, now, seconds)
            hits = [t for t in store.get(key, []) if now - t < seconds]
            if len(hits) >= times:
                raise TooManyRequests()
            hits.append(now)
            store[key] = hits
            request.app.state._rl_store = store
            return

        if getattr(request.app.state, "rate_limit_enabled", None) is not True:
            return

        # RateLimiter lève HTTPException(429) lorsque la limite est atteinte
        limiter = RateLimiter(times=times, seconds=seconds, identifier=_identifier)
        return await limiter(request, Response())
    return _dep


def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    limiter_ready = getattr(FastAPILimiter, "redis", None) is not None
    return {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": limiter_ready,
        "backend": "redis" if limiter_ready else None,
    }
