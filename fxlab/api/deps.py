from __future__ import annotations

from collections.abc import Generator

import redis
from fastapi import HTTPException, Request, status

from fxlab.engine import EffectsEngine
from fxlab.infra.redis_client import create_redis


def get_redis() -> Generator[redis.Redis, None, None]:
    client = create_redis()
    try:
        yield client
    finally:
        client.close()


def get_engine(request: Request) -> EffectsEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Engine not started")
    return engine
