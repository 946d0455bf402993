"""
Lifespan FastAPI: initialisation/arrêt des ressources partagées.
- Client Supabase (app.state.db) et passerelle Stripe (app.state.payment_gateway),
  injectés ensuite par storefront.infra.dependencies.
- FastAPILimiter (Redis) avec options de test (fakeredis).
- Variables d'environnement supportées:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: désactive complètement le rate limiting (tests)
  - USE_FAKE_REDIS_FOR_TESTS=1: utilise fakeredis (tests)
  - LOCAL_RATE_LIMIT_FALLBACK=1: active un fallback local si l'init échoue
"""
import os
import logging
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

from storefront import config
from storefront.infra.supabase_client import create_supabase_client
from storefront.payments.stripe_client import build_gateway, configure_stripe


def _init_store(app: FastAPI, logger: logging.Logger) -> None:
    if not (config.SUPABASE_URL and config.SUPABASE_SERVICE_KEY):
        app.state.db = None
        logger.warning("Supabase not configured (SUPABASE_URL/SUPABASE_SERVICE_KEY): store-backed routes will answer 500")
        return
    app.state.db = create_supabase_client()
    logger.info("Supabase client ready (timeout=%ss)", config.STORE_TIMEOUT_SECONDS)


def _init_payments(app: FastAPI, logger: logging.Logger) -> None:
    configure_stripe()
    app.state.payment_gateway = build_gateway()
    if not config.STRIPE_SECRET_KEY:
        logger.warning("STRIPE_SECRET_KEY missing: checkout will fail")
    if not config.STRIPE_WEBHOOK_SECRET:
        logger.warning("STRIPE_WEBHOOK_SECRET missing: webhook events will be rejected")


async def _init_rate_limiter(app: FastAPI, logger: logging.Logger) -> None:
    """
    Configure le rate limiting et gère les fallbacks.
    En cas d'échec de Redis et sans fallback, le rate limiting est désactivé proprement.
    """
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
        return
    try:
        if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
            from fakeredis.aioredis import FakeRedis  # tests only
            r = FakeRedis(decode_responses=True)
        else:
            redis_url = os.getenv("RATE_LIMIT_REDIS_URL", "redis://127.0.0.1:6379/0")
            r = redis.from_url(redis_url, encoding="utf-8", decode_responses=True)

        await FastAPILimiter.init(r)
        app.state.rate_limit_enabled = True
        logger.info("Rate limiting enabled")
    except Exception as e:
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            app.state.rate_limit_enabled = True
            logger.warning("Rate limiting falling back to local in-memory due to init error: %s", e)
        else:
            app.state.rate_limit_enabled = False
            logger.warning("Rate limiting disabled due to init error: %s", e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("uvicorn.error")
    _init_store(app, logger)
    _init_payments(app, logger)
    await _init_rate_limiter(app, logger)

    yield

    if getattr(FastAPILimiter, "redis", None) is not None:
        await FastAPILimiter.close()
