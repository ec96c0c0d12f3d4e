from fastapi import FastAPI
import logging

from fxlab.api.routes import router
from fxlab.config import settings_from_env
from fxlab.core.surface import build_demo_surface
from fxlab.engine import create_engine
from fxlab.infra.redis_client import create_redis
from fxlab.streams import ActivityStream, RedisActivitySink
from fxlab.websocket_hub import hub

app = FastAPI(title="fxlab", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=logging.DEBUG)
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    settings = settings_from_env()
    engine = create_engine(build_demo_surface(), settings=settings)
    engine.bus.subscribe(hub.sink_for(settings.activity_channel))

    # Mirroring into a Redis Stream is opt-in; without REDIS_URL the engine stays in-process.
    if settings.redis_url:
        stream = ActivityStream(channel=settings.activity_channel)
        engine.bus.subscribe(RedisActivitySink(r=create_redis(settings.redis_url), stream=stream))
        logger.info("mirroring activity to redis stream %s", stream.key)

    app.state.engine = engine


@app.on_event("shutdown")
async def _shutdown() -> None:
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        engine.stop_all()


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "fxlab", "version": "0.1.0"}
