from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from fxlab.api.models import DispatchPhase, Operation, RunStateView
from fxlab.config import ConfigStore
from fxlab.core.errors import TargetNotFound
from fxlab.core.events import NotificationBus
from fxlab.core.executor import OperationExecutor
from fxlab.core.tasks import Task, TaskQueue
from fxlab.fsm import DispatcherFSM

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunState:
    queue: TaskQueue = field(default_factory=TaskQueue)
    running: bool = False
    running_count: int = 0
    active_target_id: str | None = None
    active_operation: Operation | None = None
    status_label: str = "Idle"


class Dispatcher:
    """Single worker that runs queued tasks one at a time, in enqueue order.

    Contract:
      - `enqueue` never blocks; it starts the worker when the dispatcher is idle.
      - a task that fails is reported with a warning and the loop moves on.
      - `stop_all` empties the queue and cancels the worker synchronously.

    Must be driven from a single event loop.
    """

    def __init__(self, *, executor: OperationExecutor, config: ConfigStore, bus: NotificationBus) -> None:
        self.state = RunState()
        self._executor = executor
        self._config = config
        self._bus = bus
        self._fsm = DispatcherFSM()
        self._worker: asyncio.Task[None] | None = None
        # Bumped by stop_all so a cancelled worker never touches the state of its successor.
        self._generation = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def queue(self) -> TaskQueue:
        return self.state.queue

    @property
    def phase(self) -> DispatchPhase:
        return self._fsm.phase

    def enqueue(self, target_id: str | None, operation: Operation | str, params: Mapping[str, Any] | None = None) -> Task:
        loop = asyncio.get_running_loop()
        task = self.state.queue.push(target_id, operation, params)
        self.state.status_label = "Queued"
        self._bus.info(f"queued {task.operation.value} -> {task.label}")
        logger.debug("queued task %s (%s -> %s), %d pending", task.id, task.operation.value, task.label, len(self.state.queue))

        if not self._fsm.worker_active:
            self._fsm.wake()
            self.state.running = True
            self._idle.clear()
            gen = self._generation
            self._worker = loop.create_task(self._run_loop(gen), name=f"fxlab-dispatch-{gen}")
        return task

    async def join(self) -> None:
        """Wait until the queue has drained (or everything was stopped)."""

        await self._idle.wait()

    def stop_all(self) -> int:
        dropped = self.state.queue.clear()
        self._generation += 1

        worker, self._worker = self._worker, None
        if worker is not None and not worker.done():
            worker.cancel()
        if self._fsm.worker_active:
            self._fsm.halt()

        self.state.running = False
        self.state.running_count = 0
        self.state.active_target_id = None
        self.state.active_operation = None
        self.state.status_label = "Stopped"
        self._idle.set()

        self._executor.freeze_all()
        logger.info("stopped all animations (%d pending tasks dropped)", dropped)
        self._bus.warning("Stopped all animations")
        return dropped

    def view(self) -> RunStateView:
        s = self.state
        return RunStateView(
            phase=self.phase,
            running=s.running,
            running_count=s.running_count,
            queue=[t.to_view() for t in s.queue.snapshot()],
            active_target_id=s.active_target_id,
            active_operation=s.active_operation,
            status_label=s.status_label,
        )

    async def _run_loop(self, gen: int) -> None:
        try:
            while self._generation == gen:
                task = self.state.queue.pop()
                if task is None:
                    break
                await self._run_one(task, gen)
        finally:
            if self._generation == gen:
                self._worker = None
                self.state.running = False
                self.state.active_target_id = None
                self.state.active_operation = None
                self.state.status_label = "Idle"
                if self._fsm.worker_active:
                    self._fsm.drain()
                self._idle.set()

    async def _run_one(self, task: Task, gen: int) -> None:
        op = task.operation.value
        self.state.status_label = f"Running: {op}"
        self._bus.info(f"running {op} -> {task.label}")

        try:
            self._executor.prepare(task)
        except TargetNotFound as e:
            logger.warning("skipping task %s: %s", task.id, e)
            self._bus.warning(str(e))
            return

        # Config is read exactly once, now, and frozen for the task's lifetime.
        config = self._config.snapshot_for(task.params)
        self.state.active_target_id = task.target_id
        self.state.active_operation = task.operation
        self.state.running_count += 1
        logger.debug("running task %s (%s -> %s) with %s", task.id, op, task.label, config)

        try:
            reason = await self._executor.run(task, config)
        except TargetNotFound as e:
            logger.warning("task %s lost its target: %s", task.id, e)
            self._bus.warning(str(e))
        except Exception as e:
            logger.exception("task %s (%s -> %s) failed", task.id, op, task.label)
            self._bus.warning(f"{op} failed -> {task.label}: {e}")
        else:
            self._bus.success(f"{op} finished -> {task.label} ({reason})")
            self.state.status_label = f"Callback: {op} {reason}"
        finally:
            if self._generation == gen:
                self.state.running_count = max(0, self.state.running_count - 1)
