import logging

from fastapi import APIRouter

from ..infra.redis_client import get_redis

router = APIRouter()
logger = logging.getLogger("hearth")


@router.get("/ready")
async def ready():
    redis_ok = False
    try:
        r = await get_redis()
        redis_ok = bool(await r.ping())
    except Exception as e:
        logger.warning(f"Redis ping failed: {e}")
    return {"status": "ok", "redisOk": redis_ok}
