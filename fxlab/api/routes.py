from __future__ import annotations

import redis
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from fxlab.api.deps import get_engine, get_redis
from fxlab.api.models import (
    AnimateRequest,
    ConfigUpdateRequest,
    EffectOptions,
    EngineConfig,
    MoveRequest,
    NotificationListResponse,
    NotificationView,
    RunStateView,
    TargetView,
    TaskView,
)
from fxlab.core.surface import TRACKED_PROPS
from fxlab.engine import EffectsEngine
from fxlab.streams import ActivityStream, read_stream
from fxlab.websocket_hub import hub

router = APIRouter()


@router.websocket("/ws/activity")
async def activity_ws(websocket: WebSocket) -> None:
    engine: EffectsEngine = websocket.app.state.engine
    channel = engine.settings.activity_channel
    await hub.connect(channel, websocket)

    try:
        # Keep the socket open; the live display may send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(channel, websocket)
    except Exception:
        await hub.disconnect(channel, websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/state", response_model=RunStateView)
async def state_route(engine: EffectsEngine = Depends(get_engine)) -> RunStateView:
    return engine.state()


@router.get("/config", response_model=EngineConfig)
async def get_config_route(engine: EffectsEngine = Depends(get_engine)) -> EngineConfig:
    return engine.config.get()


@router.put("/config", response_model=EngineConfig)
async def set_config_route(payload: ConfigUpdateRequest, engine: EffectsEngine = Depends(get_engine)) -> EngineConfig:
    return engine.configure(duration_ms=payload.duration_ms, easing=payload.easing)


@router.post("/effects/animate", response_model=TaskView, status_code=status.HTTP_201_CREATED)
async def animate_route(payload: AnimateRequest, engine: EffectsEngine = Depends(get_engine)) -> TaskView:
    return engine.animate(payload).to_view()


@router.post("/effects/move", response_model=TaskView, status_code=status.HTTP_201_CREATED)
async def move_route(payload: MoveRequest, engine: EffectsEngine = Depends(get_engine)) -> TaskView:
    return engine.move(payload).to_view()


@router.post("/effects/delay", response_model=TaskView, status_code=status.HTTP_201_CREATED)
async def delay_route(duration_ms: int | None = None, engine: EffectsEngine = Depends(get_engine)) -> TaskView:
    return engine.delay(duration_ms).to_view()


@router.post("/effects/{operation}", response_model=TaskView, status_code=status.HTTP_201_CREATED)
async def effect_route(
    operation: str,
    payload: EffectOptions | None = None,
    engine: EffectsEngine = Depends(get_engine),
) -> TaskView:
    try:
        task = engine.invoke(operation, payload)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    return task.to_view()


@router.post("/batch/{operation}", response_model=TaskView, status_code=status.HTTP_201_CREATED)
async def batch_route(operation: str, engine: EffectsEngine = Depends(get_engine)) -> TaskView:
    batches = {
        "fadeOut": engine.batch_fade_out,
        "fadeIn": engine.batch_fade_in,
        "moveTemp": engine.batch_move_temp,
    }
    fn = batches.get(operation)
    if fn is None:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"Unknown batch effect: {operation}")
    return fn().to_view()


@router.post("/chains/{name}", response_model=list[TaskView], status_code=status.HTTP_201_CREATED)
async def chain_route(name: str, engine: EffectsEngine = Depends(get_engine)) -> list[TaskView]:
    try:
        tasks = engine.run_chain(name)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    return [t.to_view() for t in tasks]


@router.post("/stop", response_model=RunStateView)
async def stop_route(engine: EffectsEngine = Depends(get_engine)) -> RunStateView:
    return engine.stop_all()


@router.post("/targets/{target_id}/restore", response_model=TargetView)
async def restore_route(target_id: str, engine: EffectsEngine = Depends(get_engine)) -> TargetView:
    if not engine.restore(target_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Target not found")
    return _target_view(engine, target_id)


@router.get("/targets/{target_id}", response_model=TargetView)
async def get_target_route(target_id: str, engine: EffectsEngine = Depends(get_engine)) -> TargetView:
    if not engine.surface.has(target_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Target not found")
    return _target_view(engine, target_id)


@router.get("/notifications", response_model=NotificationListResponse)
async def notifications_route(limit: int = 50, engine: EffectsEngine = Depends(get_engine)) -> NotificationListResponse:
    if limit < 1 or limit > 500:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="limit must be between 1 and 500")
    notes = engine.bus.history(limit)
    return NotificationListResponse(
        notifications=[NotificationView(text=n.text, severity=n.severity, ts=n.ts) for n in notes]
    )


@router.get("/activity")
async def activity_route(
    count: int = 20,
    start: str = "-",
    end: str = "+",
    engine: EffectsEngine = Depends(get_engine),
    r: redis.Redis = Depends(get_redis),
) -> dict[str, object]:
    """Debug endpoint: read the activity Redis Stream mirrored from the notification bus."""

    if count < 1 or count > 200:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="count must be between 1 and 200")

    stream = ActivityStream(channel=engine.settings.activity_channel)
    try:
        messages = read_stream(r=r, stream=stream, count=count, start=start, end=end)
    except redis.RedisError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    return {"channel": stream.channel, "stream": stream.key, "messages": messages}


def _target_view(engine: EffectsEngine, target_id: str) -> TargetView:
    surface = engine.surface
    values = {p: surface.current_value(target_id, p) for p in TRACKED_PROPS}
    base = engine.baselines.get(target_id)
    return TargetView(
        target_id=target_id,
        values=values,
        baseline=base.values() if base is not None else None,
        marker=surface.marker(target_id),
    )
