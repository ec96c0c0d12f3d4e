from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from fxlab.api.models import AnimateProps, EngineConfig, Operation
from fxlab.core.baseline import BaselineRegistry
from fxlab.core.errors import CompletionTimeout, TargetNotFound
from fxlab.core.surface import NumericProp, Prop, Surface
from fxlab.core.tasks import Task

logger = logging.getLogger(__name__)

SLIDE_FALLBACK_MARGIN_MS = 80
MOVE_MARGIN_MS = 10
BATCH_MOVE_MARGIN_MS = 20
MARKER_TOGGLE_MS = 120
MOVE_OFFSET_PX = 80.0
MOVE_PHASE_MIN_MS = 60

Handler = Callable[[Task, EngineConfig], Awaitable[str]]


async def _sleep_ms(ms: float) -> None:
    await asyncio.sleep(max(0.0, ms) / 1000)


class OperationExecutor:
    """Applies one task to the surface and resolves once the task is complete.

    The config snapshot is handed in by the caller at dispatch time and trusted as-is.
    Each handler returns the completion reason used in the success notification.
    """

    def __init__(
        self,
        *,
        surface: Surface,
        baselines: BaselineRegistry,
        batch_targets: Sequence[str] = ("box1", "box2", "box3"),
    ) -> None:
        self._surface = surface
        self._baselines = baselines
        self._batch_targets = tuple(batch_targets)
        self._handlers: dict[Operation, Handler] = {
            Operation.fade_in: self._fade_in,
            Operation.fade_out: self._fade_out,
            Operation.fade_toggle: self._fade_toggle,
            Operation.slide_up: self._slide_up,
            Operation.slide_down: self._slide_down,
            Operation.slide_toggle: self._slide_toggle,
            Operation.move: self._move,
            Operation.animate_left: self._move_left,
            Operation.animate_right: self._move_right,
            Operation.animate: self._animate,
            Operation.toggle_class: self._toggle_class,
            Operation.batch_fade_out: self._batch_fade_out,
            Operation.batch_fade_in: self._batch_fade_in,
            Operation.batch_move_temp: self._batch_move_temp,
            Operation.delay: self._delay,
        }

    @property
    def batch_targets(self) -> tuple[str, ...]:
        return self._batch_targets

    def prepare(self, task: Task) -> None:
        """Resolve the task's targets before anything is mutated.

        Raises TargetNotFound for a targeted task whose element is missing; no timer is started.
        """

        if task.operation.targetless:
            for target_id in self._present_batch_targets():
                self._baselines.capture(target_id)
            return

        if task.target_id is None or not self._surface.has(task.target_id):
            raise TargetNotFound(task.target_id)
        self._baselines.capture(task.target_id)

    async def run(self, task: Task, config: EngineConfig) -> str:
        handler = self._handlers[task.operation]
        return await handler(task, config)

    def freeze_all(self) -> list[str]:
        """Halt every known target where it currently stands; nothing is rewound."""

        frozen: list[str] = []
        for target_id in self._baselines.known_targets():
            if self._surface.has(target_id):
                self._surface.cancel(target_id)
                frozen.append(target_id)
        return frozen

    def restore(self, target_id: str) -> bool:
        """Put one target back to its first captured baseline.

        Returns False when the surface does not know the target.
        """

        if not self._surface.has(target_id):
            return False
        base = self._baselines.capture(target_id)
        self._surface.cancel(target_id)
        for prop, value in base.values().items():
            self._surface.set_value(target_id, prop, value)  # type: ignore[arg-type]
        return True

    def _present_batch_targets(self) -> list[str]:
        return [t for t in self._batch_targets if self._surface.has(t)]

    def _tween(self, target_id: str, prop: NumericProp, end: float, duration_ms: int, config: EngineConfig) -> asyncio.Future[None]:
        start = float(self._surface.current_value(target_id, prop))
        return self._surface.animate(
            target_id,
            prop,
            start=start,
            end=end,
            duration_ms=duration_ms,
            easing=config.easing,
        )

    # ---- fades: fixed timer ----

    async def _fade_to(self, target_id: str, value: float, config: EngineConfig) -> None:
        self._tween(target_id, "opacity", value, config.duration_ms, config)
        await _sleep_ms(config.duration_ms)

    async def _fade_in(self, task: Task, config: EngineConfig) -> str:
        await self._fade_to(self._target(task), 1.0, config)
        return "shown"

    async def _fade_out(self, task: Task, config: EngineConfig) -> str:
        await self._fade_to(self._target(task), 0.0, config)
        return "hidden"

    async def _fade_toggle(self, task: Task, config: EngineConfig) -> str:
        target_id = self._target(task)
        show = float(self._surface.current_value(target_id, "opacity")) < 0.5
        await self._fade_to(target_id, 1.0 if show else 0.0, config)
        return "shown" if show else "hidden"

    # ---- slides: finish signal with a safety fallback ----

    async def _await_finish(self, target_id: str, prop: NumericProp, done: asyncio.Future[None], config: EngineConfig) -> None:
        limit_ms = config.duration_ms + SLIDE_FALLBACK_MARGIN_MS
        finished, _ = await asyncio.wait({done}, timeout=limit_ms / 1000)
        if not finished:
            raise CompletionTimeout(target_id, prop, limit_ms)

    async def _slide_height(self, target_id: str, start: float, end: float, config: EngineConfig) -> bool:
        """Run a height transition; returns False when something else took the height over mid-flight."""

        done = self._surface.animate(
            target_id,
            "height",
            start=start,
            end=end,
            duration_ms=config.duration_ms,
            easing=config.easing,
        )
        try:
            await self._await_finish(target_id, "height", done, config)
        except CompletionTimeout as e:
            logger.warning("%s; settling at end value", e)
            self._settle(target_id, "height", end)
            return True
        if done.cancelled():
            # A restore (or a newer transition) owns the target now; leave its values alone.
            logger.debug("height transition on %s superseded", target_id)
            return False
        return True

    def _settle(self, target_id: str, prop: Prop, value: float | str) -> None:
        # The element may have been removed while we were waiting on it.
        if self._surface.has(target_id):
            self._surface.set_value(target_id, prop, value)

    def _shown_display(self, target_id: str) -> str:
        base = self._baselines.get(target_id)
        display = base.display if base is not None else "block"
        return display if display != "none" else "block"

    async def _slide_down_target(self, target_id: str, config: EngineConfig) -> str:
        full = self._surface.natural_extent(target_id)
        self._surface.set_value(target_id, "display", self._shown_display(target_id))
        self._surface.set_value(target_id, "height", 0.0)
        if await self._slide_height(target_id, 0.0, full, config):
            self._settle(target_id, "height", full)
        return "slid-down"

    async def _slide_up_target(self, target_id: str, config: EngineConfig) -> str:
        full = self._surface.natural_extent(target_id)
        self._surface.set_value(target_id, "display", self._shown_display(target_id))
        if await self._slide_height(target_id, full, 0.0, config):
            self._settle(target_id, "display", "none")
        return "slid-up"

    async def _slide_up(self, task: Task, config: EngineConfig) -> str:
        return await self._slide_up_target(self._target(task), config)

    async def _slide_down(self, task: Task, config: EngineConfig) -> str:
        return await self._slide_down_target(self._target(task), config)

    async def _slide_toggle(self, task: Task, config: EngineConfig) -> str:
        target_id = self._target(task)
        height = float(self._surface.current_value(target_id, "height"))
        hidden = self._surface.current_value(target_id, "display") == "none" or height < 2
        if hidden:
            return await self._slide_down_target(target_id, config)
        return await self._slide_up_target(target_id, config)

    # ---- moves: two phases, fixed timer ----

    async def _move_and_return(self, target_ids: Sequence[str], offset: float, config: EngineConfig, margin_ms: int) -> None:
        half = max(MOVE_PHASE_MIN_MS, round(config.duration_ms / 2))
        # Completes at duration + margin, but never before the return phase has landed.
        total = max(config.duration_ms + margin_ms, 2 * half)
        homes: dict[str, float] = {}
        for target_id in target_ids:
            base = self._baselines.get(target_id)
            homes[target_id] = base.translate_x if base is not None else float(self._surface.current_value(target_id, "translate_x"))
            self._tween(target_id, "translate_x", homes[target_id] + offset, half, config)

        await _sleep_ms(half)
        for target_id in target_ids:
            if self._surface.has(target_id):
                self._tween(target_id, "translate_x", homes[target_id], half, config)

        await _sleep_ms(total - half)

    async def _move(self, task: Task, config: EngineConfig) -> str:
        offset = float(task.params.get("offset", MOVE_OFFSET_PX))
        await self._move_and_return([self._target(task)], offset, config, MOVE_MARGIN_MS)
        return "moved"

    async def _move_left(self, task: Task, config: EngineConfig) -> str:
        await self._move_and_return([self._target(task)], -MOVE_OFFSET_PX, config, MOVE_MARGIN_MS)
        return "moved-left"

    async def _move_right(self, task: Task, config: EngineConfig) -> str:
        await self._move_and_return([self._target(task)], MOVE_OFFSET_PX, config, MOVE_MARGIN_MS)
        return "moved-right"

    # ---- generic animate ----

    async def _animate(self, task: Task, config: EngineConfig) -> str:
        target_id = self._target(task)
        props = AnimateProps.model_validate(task.params.get("props") or {}).provided()
        if not props:
            return "no-op"
        for prop, value in props.items():
            self._tween(target_id, prop, value, config.duration_ms, config)  # type: ignore[arg-type]
        await _sleep_ms(config.duration_ms)
        return "animated"

    # ---- marker: fixed short timer, independent of config ----

    async def _toggle_class(self, task: Task, config: EngineConfig) -> str:
        added = self._surface.toggle_marker(self._target(task))
        await _sleep_ms(MARKER_TOGGLE_MS)
        return "class-added" if added else "class-removed"

    # ---- batches: one task, parallel mutation ----

    async def _batch_fade(self, value: float, config: EngineConfig) -> None:
        for target_id in self._present_batch_targets():
            self._tween(target_id, "opacity", value, config.duration_ms, config)
        await _sleep_ms(config.duration_ms)

    async def _batch_fade_out(self, task: Task, config: EngineConfig) -> str:
        await self._batch_fade(0.0, config)
        return "batch-faded"

    async def _batch_fade_in(self, task: Task, config: EngineConfig) -> str:
        await self._batch_fade(1.0, config)
        return "batch-shown"

    async def _batch_move_temp(self, task: Task, config: EngineConfig) -> str:
        await self._move_and_return(self._present_batch_targets(), MOVE_OFFSET_PX, config, BATCH_MOVE_MARGIN_MS)
        return "batch-moved"

    async def _delay(self, task: Task, config: EngineConfig) -> str:
        await _sleep_ms(config.duration_ms)
        return "delay"

    @staticmethod
    def _target(task: Task) -> str:
        if task.target_id is None:
            raise TargetNotFound(None)
        return task.target_id
