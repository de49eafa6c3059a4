import logging
from typing import Optional
from redis.asyncio import Redis
from quote_engine.core.config import settings

logger = logging.getLogger(__name__)

# Set by the app lifespan; None means quotes are cached in-process
redis: Optional[Redis] = None


async def init_redis() -> Redis:
    global redis
    client = Redis.from_url(settings.REDIS_URL, decode_responses=False)
    try:
        await client.ping()
    except Exception as e:
        logger.error(f"Failed to connect to Redis at {settings.REDIS_URL}: {e}")
        await client.aclose()
        redis = None
        raise
    redis = client
    logger.info("Connected to Redis")
    return redis


async def close_redis():
    global redis
    if redis is not None:
        await redis.aclose()
        redis = None


def get_redis() -> Optional[Redis]:
    return redis
