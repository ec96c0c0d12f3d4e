from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from fxlab.api.models import AnimateRequest, EffectOptions, EngineConfig, MoveRequest, Operation, RunStateView
from fxlab.config import ConfigStore, EngineSettings
from fxlab.core.baseline import BaselineRegistry
from fxlab.core.dispatcher import Dispatcher
from fxlab.core.events import NotificationBus
from fxlab.core.executor import OperationExecutor
from fxlab.core.surface import Surface
from fxlab.core.tasks import Task

logger = logging.getLogger(__name__)

CHAIN_NAMES = ("sequence", "grouped")


def _overrides(options: EffectOptions) -> dict[str, Any]:
    params: dict[str, Any] = {}
    if options.duration_ms is not None:
        params["duration_ms"] = options.duration_ms
    if options.easing is not None:
        params["easing"] = options.easing
    return params


class EffectsEngine:
    """Handle exposing the named effect operations.

    Every operation is queued; nothing runs concurrently with anything else. Create one
    with `create_engine()` and pass it to whatever needs programmatic control.
    """

    def __init__(
        self,
        *,
        surface: Surface,
        settings: EngineSettings,
        bus: NotificationBus,
        config: ConfigStore,
        baselines: BaselineRegistry,
        executor: OperationExecutor,
        dispatcher: Dispatcher,
    ) -> None:
        self.surface = surface
        self.settings = settings
        self.bus = bus
        self.config = config
        self.baselines = baselines
        self.executor = executor
        self.dispatcher = dispatcher

        self._named: dict[str, Callable[[EffectOptions], Task]] = {
            Operation.fade_in.value: self.fade_in,
            Operation.fade_out.value: self.fade_out,
            Operation.fade_toggle.value: self.fade_toggle,
            Operation.slide_up.value: self.slide_up,
            Operation.slide_down.value: self.slide_down,
            Operation.slide_toggle.value: self.slide_toggle,
            Operation.animate_left.value: self.animate_left,
            Operation.animate_right.value: self.animate_right,
            Operation.toggle_class.value: self.toggle_class,
        }

    # ---- raw entry point ----

    def enqueue(self, target_id: str | None, operation: Operation | str, params: Mapping[str, Any] | None = None) -> Task:
        return self.dispatcher.enqueue(target_id, operation, params)

    def _enqueue_effect(self, operation: Operation, options: EffectOptions | None, extra: Mapping[str, Any] | None = None) -> Task:
        opts = options or EffectOptions()
        params = _overrides(opts)
        params.update(extra or {})
        return self.enqueue(opts.target, operation, params)

    # ---- named effects ----

    def fade_in(self, options: EffectOptions | None = None) -> Task:
        return self._enqueue_effect(Operation.fade_in, options)

    def fade_out(self, options: EffectOptions | None = None) -> Task:
        return self._enqueue_effect(Operation.fade_out, options)

    def fade_toggle(self, options: EffectOptions | None = None) -> Task:
        return self._enqueue_effect(Operation.fade_toggle, options)

    def slide_up(self, options: EffectOptions | None = None) -> Task:
        return self._enqueue_effect(Operation.slide_up, options)

    def slide_down(self, options: EffectOptions | None = None) -> Task:
        return self._enqueue_effect(Operation.slide_down, options)

    def slide_toggle(self, options: EffectOptions | None = None) -> Task:
        return self._enqueue_effect(Operation.slide_toggle, options)

    def animate_left(self, options: EffectOptions | None = None) -> Task:
        return self._enqueue_effect(Operation.animate_left, options)

    def animate_right(self, options: EffectOptions | None = None) -> Task:
        return self._enqueue_effect(Operation.animate_right, options)

    def move(self, request: MoveRequest) -> Task:
        return self._enqueue_effect(Operation.move, request, {"offset": request.offset})

    def animate(self, request: AnimateRequest) -> Task:
        props = request.props.provided()
        return self._enqueue_effect(Operation.animate, request, {"props": props})

    def toggle_class(self, options: EffectOptions | None = None) -> Task:
        return self._enqueue_effect(Operation.toggle_class, options)

    def delay(self, duration_ms: int | None = None) -> Task:
        params = {"duration_ms": duration_ms} if duration_ms is not None else {}
        return self.enqueue(None, Operation.delay, params)

    def batch_fade_out(self) -> Task:
        return self.enqueue(None, Operation.batch_fade_out)

    def batch_fade_in(self) -> Task:
        return self.enqueue(None, Operation.batch_fade_in)

    def batch_move_temp(self) -> Task:
        return self.enqueue(None, Operation.batch_move_temp)

    # ---- canned chains ----

    def chain(self, target: str = "box3") -> list[Task]:
        """Fade out, pause, fade back in, pause, then nudge right."""

        opts = EffectOptions(target=target)
        return [
            self.fade_out(opts),
            self.delay(),
            self.fade_in(opts),
            self.delay(),
            self.animate_right(opts),
        ]

    def chain_grouped(self) -> list[Task]:
        return [
            self.batch_fade_out(),
            self.delay(),
            self.batch_fade_in(),
            self.delay(),
            self.batch_move_temp(),
        ]

    def run_chain(self, name: str) -> list[Task]:
        if name == "sequence":
            return self.chain()
        if name == "grouped":
            return self.chain_grouped()
        raise ValueError(f"Unknown chain: {name}")

    def invoke(self, name: str, options: EffectOptions | None = None) -> Task:
        """Queue a named single-target effect, e.g. `invoke("fadeIn", EffectOptions(target="box2"))`."""

        fn = self._named.get(name)
        if fn is None:
            raise ValueError(f"Unknown effect: {name}")
        return fn(options or EffectOptions())

    # ---- immediate controls ----

    def stop_all(self) -> RunStateView:
        self.dispatcher.stop_all()
        return self.state()

    def restore(self, target_id: str) -> bool:
        restored = self.executor.restore(target_id)
        if restored:
            self.bus.info(f"restored {target_id}")
        else:
            logger.warning("restore: target %s not found", target_id)
            self.bus.warning(f"target {target_id} not found")
        return restored

    def configure(self, duration_ms: object = None, easing: object = None) -> EngineConfig:
        return self.config.set(duration_ms=duration_ms, easing=easing)

    def state(self) -> RunStateView:
        return self.dispatcher.view()

    async def join(self) -> None:
        await self.dispatcher.join()

    @property
    def effect_names(self) -> list[str]:
        return list(self._named)


def create_engine(
    surface: Surface,
    *,
    settings: EngineSettings | None = None,
    bus: NotificationBus | None = None,
) -> EffectsEngine:
    cfg = settings or EngineSettings()
    bus = bus or NotificationBus(history_size=cfg.history_size)
    config = ConfigStore(cfg.initial_config())
    baselines = BaselineRegistry(surface)
    executor = OperationExecutor(surface=surface, baselines=baselines, batch_targets=cfg.batch_targets)
    dispatcher = Dispatcher(executor=executor, config=config, bus=bus)

    for target_id in cfg.tracked_targets:
        if surface.has(target_id):
            baselines.capture(target_id)

    engine = EffectsEngine(
        surface=surface,
        settings=cfg,
        bus=bus,
        config=config,
        baselines=baselines,
        executor=executor,
        dispatcher=dispatcher,
    )
    bus.muted("Animations engine ready")
    return engine
