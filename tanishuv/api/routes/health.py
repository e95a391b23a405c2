from fastapi import APIRouter, Depends, Response
import redis
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tanishuv.api.deps import get_redis
from tanishuv.db.session import get_db


router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Liveness check: always returns 200 if app is running."""
    return {"status": "ok"}


@router.get("/ready")
def readiness(
    response: Response,
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
) -> dict:
    """Readiness check: 503 when PostgreSQL or Redis is unreachable."""
    try:
        db.execute(text("SELECT 1"))
        redis_client.ping()
        return {"status": "ready"}
    except (SQLAlchemyError, redis.RedisError) as e:
        response.status_code = 503
        return {"status": "not_ready", "error": str(e)}
