from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from starlette.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware
from quote_engine.api import quotes
from quote_engine.core.cache import MemoryCache, RedisCache
from quote_engine.core.config import settings
from quote_engine.core.redis import init_redis, close_redis, get_redis
from quote_engine.core.metrics import request_count, request_duration, redis_connected, get_metrics_text
import time
import logging

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def _record_request(request: Request, status: int, started: float) -> None:
    path = request.url.path
    request_count.labels(method=request.method, endpoint=path, status=status).inc()
    request_duration.labels(method=request.method, endpoint=path).observe(time.time() - started)


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.time()
        try:
            response = await call_next(request)
        except Exception:
            _record_request(request, 500, started)
            raise
        _record_request(request, response.status_code, started)
        return response


async def _open_quote_cache():
    """Shared Redis cache when reachable, otherwise a bounded in-process one."""
    try:
        client = await init_redis()
    except Exception as e:
        logger.warning(f"Redis unavailable ({e}); quote cache is in-process only")
        redis_connected.set(0)
        return MemoryCache(ttl=settings.PRICE_CACHE_TTL, max_entries=settings.QUOTE_CACHE_MAX_ENTRIES)
    redis_connected.set(1)
    return RedisCache(client, ttl=settings.PRICE_CACHE_TTL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.API_TITLE} {settings.API_VERSION} starting")
    app.state.quote_cache = await _open_quote_cache()
    logger.info(f"Quote cache: {app.state.quote_cache.name}, ttl {settings.PRICE_CACHE_TTL}s")
    if settings.PRICING_SERVICE_URL:
        logger.info(f"Remote pricing service at {settings.PRICING_SERVICE_URL}")
    else:
        logger.info("No pricing service configured, estimates use the local rate card")

    yield

    await close_redis()
    redis_connected.set(0)
    app.state.quote_cache = None
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    lifespan=lifespan
)

app.add_middleware(MetricsMiddleware)

app.include_router(quotes.router)


@app.get("/metrics", tags=["monitoring"])
async def metrics():
    return Response(
        content=get_metrics_text(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )


@app.get("/health", tags=["monitoring"])
async def health_check():
    cache = getattr(app.state, "quote_cache", None)
    return {
        "status": "healthy",
        "service": settings.API_TITLE,
        "version": settings.API_VERSION,
        "dependencies": {
            "redis": "connected" if get_redis() is not None else "disconnected",
            "cache": cache.name if cache is not None else "none",
            "pricing": "remote" if settings.PRICING_SERVICE_URL else "rate-card",
        }
    }


@app.get("/readiness", tags=["monitoring"])
async def readiness_check():
    if getattr(app.state, "quote_cache", None) is None:
        return JSONResponse({"ready": False, "reason": "Quote cache not initialised"}, status_code=503)
    return {"ready": True, "service": settings.API_TITLE}


@app.get("/", tags=["root"])
async def root():
    return {
        "message": settings.API_TITLE,
        "version": settings.API_VERSION,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics"
    }
