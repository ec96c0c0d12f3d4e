from __future__ import annotations

import itertools
from collections import deque
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from fxlab.api.models import Operation, TaskView


@dataclass(frozen=True, slots=True)
class Task:
    id: int
    target_id: str | None
    operation: Operation
    params: Mapping[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return self.target_id if self.target_id is not None else "batch"

    def to_view(self) -> TaskView:
        return TaskView(id=self.id, target_id=self.target_id, operation=self.operation, params=dict(self.params))


class TaskQueue:
    """Insertion-ordered pending tasks.

    Ids come from a counter owned by the queue, so they keep increasing across `clear()`.
    """

    def __init__(self) -> None:
        self._tasks: deque[Task] = deque()
        self._ids = itertools.count(1)

    def push(self, target_id: str | None, operation: Operation | str, params: Mapping[str, Any] | None = None) -> Task:
        op = Operation(operation)
        if target_id is None and not op.targetless:
            raise ValueError(f"{op.value} requires a target")
        task = Task(id=next(self._ids), target_id=target_id, operation=op, params=dict(params or {}))
        self._tasks.append(task)
        return task

    def pop(self) -> Task | None:
        if not self._tasks:
            return None
        return self._tasks.popleft()

    def clear(self) -> int:
        dropped = len(self._tasks)
        self._tasks.clear()
        return dropped

    def snapshot(self) -> list[Task]:
        return list(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(list(self._tasks))
