"""
Lifespan FastAPI: initialisation/arrêt des ressources partagées.
- Construit le Container (Supabase, Pagar.me, Redis) et le place dans app.state.container.
- Initialise FastAPILimiter (Redis) avec options de test (fakeredis).
- Variables d'environnement supportées:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: désactive complètement le rate limiting (tests)
  - USE_FAKE_REDIS_FOR_TESTS=1: utilise fakeredis pour le limiter et le verrou de checkout (tests)
  - LOCAL_RATE_LIMIT_FALLBACK=1: active un fallback local si l'init échoue
"""
import os
import logging
import redis
import redis.asyncio as aioredis
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

from cursoshub.config import REDIS_URL
from cursoshub.container import build_container

try:
    import fakeredis  # tests only
    from fakeredis.aioredis import FakeRedis
except ImportError:
    fakeredis = None
    FakeRedis = None


def _use_fake_redis() -> bool:
    use_fake = os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1"
    if use_fake and not FakeRedis:
        raise RuntimeError("USE_FAKE_REDIS_FOR_TESTS=1 mais fakeredis n'est pas installé.")
    return use_fake


async def _init_rate_limiter(app: FastAPI, logger: logging.Logger) -> None:
    """
    Configure le rate limiting et gère les fallbacks.
    - En cas d'échec de Redis et sans fallback, le rate limiting est désactivé proprement.
    """
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
        return
    try:
        if _use_fake_redis():
            r = FakeRedis(decode_responses=True)
        else:
            redis_url = os.getenv("RATE_LIMIT_REDIS_URL", REDIS_URL)
            r = aioredis.from_url(redis_url, encoding="utf-8", decode_responses=True)
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


def _lock_redis():
    """Client Redis synchrone du verrou de checkout / idempotence."""
    if _use_fake_redis():
        return fakeredis.FakeRedis(decode_responses=True)
    return redis.Redis.from_url(REDIS_URL, decode_responses=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("uvicorn.error")
    await _init_rate_limiter(app, logger)

    # Un container injecté avant le démarrage (tests) est conservé
    container = getattr(app.state, "container", None)
    owns_container = container is None
    if owns_container:
        try:
            container = build_container(redis_client=_lock_redis())
            logger.info("Container ready")
        except Exception as e:
            container = None
            logger.warning("Container init failed, API will answer 503: %s", e)
        app.state.container = container

    yield

    if owns_container and container is not None:
        container.close()
    if getattr(app.state, "rate_limit_enabled", False):
        try:
            await FastAPILimiter.close()
        except Exception as e:
            logger.warning("Rate limiter close failed: %s", e)
