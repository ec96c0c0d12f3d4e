from __future__ import annotations

import asyncio

import pytest

from fxlab.api.models import DispatchPhase, EffectOptions, Operation, Severity
from fxlab.core.events import Notification
from fxlab.engine import EffectsEngine
from fxlab.fsm import DispatcherFSM


def _texts(notes: list[Notification], severity: Severity | None = None) -> list[str]:
    return [n.text for n in notes if severity is None or n.severity is severity]


async def _sample(engine: EffectsEngine, target: str, prop: str, until: asyncio.Future[None] | asyncio.Task[None]) -> list[float]:
    samples: list[float] = []
    while not until.done():
        samples.append(float(engine.surface.current_value(target, prop)))  # type: ignore[arg-type]
        await asyncio.sleep(0.01)
    return samples


def test_fsm_transitions() -> None:
    fsm = DispatcherFSM()
    assert fsm.phase is DispatchPhase.idle
    assert not fsm.worker_active

    fsm.wake()
    assert fsm.phase is DispatchPhase.running
    assert fsm.worker_active

    fsm.drain()
    assert fsm.phase is DispatchPhase.idle

    fsm.wake()
    fsm.halt()
    assert not fsm.worker_active


@pytest.mark.asyncio
async def test_fade_out_then_fade_in_runs_in_order(engine: EffectsEngine, notes: list[Notification]) -> None:
    engine.configure(duration_ms=200)
    loop = asyncio.get_running_loop()
    started = loop.time()

    engine.fade_out(EffectOptions(target="box1"))
    engine.fade_in(EffectOptions(target="box1"))
    assert engine.state().phase is DispatchPhase.running

    joined = asyncio.ensure_future(engine.join())
    samples = await _sample(engine, "box1", "opacity", joined)
    await asyncio.wait_for(joined, timeout=2.0)

    assert loop.time() - started >= 0.39
    low = samples.index(min(samples))
    assert min(samples) < 0.05
    assert max(samples[:low] or [1.0]) > 0.9
    assert engine.surface.current_value("box1", "opacity") == 1.0

    texts = _texts(notes)
    assert texts.index("fadeOut finished -> box1 (hidden)") < texts.index("running fadeIn -> box1")

    state = engine.state()
    assert state.queue == []
    assert state.running_count == 0
    assert state.running is False
    assert state.phase is DispatchPhase.idle
    assert state.status_label == "Idle"


@pytest.mark.asyncio
async def test_running_count_tracks_the_active_task(engine: EffectsEngine) -> None:
    engine.fade_out(EffectOptions(target="box2"))
    engine.fade_in(EffectOptions(target="box2"))
    await asyncio.sleep(0.02)

    state = engine.state()
    assert state.running_count == 1
    assert state.active_target_id == "box2"
    assert state.active_operation is Operation.fade_out
    assert [t.operation for t in state.queue] == [Operation.fade_in]
    assert state.status_label == "Running: fadeOut"

    await asyncio.wait_for(engine.join(), timeout=1.0)
    assert engine.state().running_count == 0


@pytest.mark.asyncio
async def test_unknown_target_warns_once_and_starts_no_timer(engine: EffectsEngine, notes: list[Notification]) -> None:
    loop = asyncio.get_running_loop()
    started = loop.time()

    engine.fade_in(EffectOptions(target="unknown-Z"))
    await asyncio.wait_for(engine.join(), timeout=1.0)

    assert loop.time() - started < 0.03
    assert _texts(notes, Severity.warning) == ["target unknown-Z not found"]
    assert _texts(notes, Severity.success) == []
    assert engine.state().running_count == 0
    assert "unknown-Z" not in engine.baselines


@pytest.mark.asyncio
async def test_unknown_target_does_not_block_the_queue(engine: EffectsEngine, notes: list[Notification]) -> None:
    engine.fade_out(EffectOptions(target="ghost"))
    engine.fade_out(EffectOptions(target="box1"))
    await asyncio.wait_for(engine.join(), timeout=1.0)

    assert _texts(notes, Severity.success) == ["fadeOut finished -> box1 (hidden)"]
    assert engine.surface.current_value("box1", "opacity") == 0.0


@pytest.mark.asyncio
async def test_failing_task_is_isolated(engine: EffectsEngine, notes: list[Notification], monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(target_id: str) -> bool:
        raise RuntimeError("boom")

    monkeypatch.setattr(engine.surface, "toggle_marker", _boom)

    engine.toggle_class(EffectOptions(target="box1"))
    engine.fade_out(EffectOptions(target="box2"))
    await asyncio.wait_for(engine.join(), timeout=1.0)

    assert _texts(notes, Severity.warning) == ["toggleClass failed -> box1: boom"]
    assert _texts(notes, Severity.success) == ["fadeOut finished -> box2 (hidden)"]
    assert engine.state().running_count == 0


@pytest.mark.asyncio
async def test_config_is_read_once_when_the_task_starts(engine: EffectsEngine) -> None:
    loop = asyncio.get_running_loop()
    engine.configure(duration_ms=300)

    engine.fade_out(EffectOptions(target="box1"))
    await asyncio.sleep(0.02)
    # Affects only tasks that have not started yet.
    engine.configure(duration_ms=10)
    assert engine.config.get().duration_ms == 50

    changed_at = loop.time()
    await asyncio.wait_for(engine.join(), timeout=2.0)
    assert loop.time() - changed_at >= 0.25

    engine.fade_in(EffectOptions(target="box1"))
    started = loop.time()
    await asyncio.wait_for(engine.join(), timeout=1.0)
    assert loop.time() - started < 0.2


@pytest.mark.asyncio
async def test_per_task_override_leaves_config_alone(engine: EffectsEngine) -> None:
    loop = asyncio.get_running_loop()
    started = loop.time()

    engine.fade_out(EffectOptions(target="box1", duration_ms=250, easing="linear"))
    await asyncio.wait_for(engine.join(), timeout=2.0)

    assert loop.time() - started >= 0.24
    assert engine.config.get().duration_ms == 50
    assert engine.config.get().easing.value == "swing"


@pytest.mark.asyncio
async def test_stop_all_empties_queue_and_freezes_in_place(engine: EffectsEngine, notes: list[Notification]) -> None:
    engine.configure(duration_ms=400)
    engine.fade_out(EffectOptions(target="box1"))
    engine.fade_in(EffectOptions(target="box1"))
    engine.slide_up(EffectOptions(target="box2"))
    await asyncio.sleep(0.15)

    view = engine.stop_all()
    assert view.queue == []
    assert view.running_count == 0
    assert view.running is False
    assert view.active_target_id is None
    assert view.status_label == "Stopped"
    assert view.phase is DispatchPhase.idle

    frozen = float(engine.surface.current_value("box1", "opacity"))
    assert 0.0 < frozen < 1.0
    await asyncio.sleep(0.3)
    assert engine.surface.current_value("box1", "opacity") == frozen
    # Stopping never rewinds to the baseline.
    assert engine.baselines.get("box1").opacity == 1.0  # type: ignore[union-attr]

    assert _texts(notes, Severity.warning) == ["Stopped all animations"]
    assert _texts(notes, Severity.success) == []
    await asyncio.wait_for(engine.join(), timeout=0.1)


@pytest.mark.asyncio
async def test_engine_recovers_after_stop_all(engine: EffectsEngine, notes: list[Notification]) -> None:
    engine.fade_out(EffectOptions(target="box1", duration_ms=300))
    await asyncio.sleep(0.02)
    engine.stop_all()

    task = engine.fade_in(EffectOptions(target="box1"))
    assert task.id == 2
    await asyncio.sleep(0)
    assert engine.state().running_count == 1

    await asyncio.wait_for(engine.join(), timeout=1.0)
    assert engine.surface.current_value("box1", "opacity") == 1.0
    assert _texts(notes, Severity.success) == ["fadeIn finished -> box1 (shown)"]
    state = engine.state()
    assert state.running_count == 0
    assert state.status_label == "Idle"


@pytest.mark.asyncio
async def test_stop_all_mid_slide_keeps_interpolated_height(engine: EffectsEngine) -> None:
    engine.configure(duration_ms=200)
    engine.slide_up(EffectOptions(target="box1"))
    await asyncio.sleep(0.1)

    engine.stop_all()
    height = float(engine.surface.current_value("box1", "height"))
    assert 0.0 < height < 110.0

    await asyncio.sleep(0.3)
    assert engine.surface.current_value("box1", "height") == height
    assert engine.surface.current_value("box1", "display") == "block"


@pytest.mark.asyncio
async def test_notifications_follow_task_lifecycle(engine: EffectsEngine, notes: list[Notification]) -> None:
    engine.delay(60)
    await asyncio.wait_for(engine.join(), timeout=1.0)

    assert [(n.severity, n.text) for n in notes] == [
        (Severity.info, "queued delay -> batch"),
        (Severity.info, "running delay -> batch"),
        (Severity.success, "delay finished -> batch (delay)"),
    ]
    assert engine.bus.history()[0].text == "Animations engine ready"
