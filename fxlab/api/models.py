from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DURATION_MIN_MS = 50
DURATION_MAX_MS = 2000
DEFAULT_DURATION_MS = 400


class Easing(StrEnum):
    linear = "linear"
    ease = "ease"
    ease_in = "ease-in"
    ease_out = "ease-out"
    ease_in_out = "ease-in-out"
    swing = "swing"


class Operation(StrEnum):
    fade_in = "fadeIn"
    fade_out = "fadeOut"
    fade_toggle = "fadeToggle"
    slide_up = "slideUp"
    slide_down = "slideDown"
    slide_toggle = "slideToggle"
    move = "move"
    animate_left = "animateLeft"
    animate_right = "animateRight"
    animate = "animate"
    toggle_class = "toggleClass"
    batch_fade_out = "batchFadeOut"
    batch_fade_in = "batchFadeIn"
    batch_move_temp = "batchMoveTemp"
    delay = "delay"

    @property
    def targetless(self) -> bool:
        return self in TARGETLESS_OPERATIONS


TARGETLESS_OPERATIONS = frozenset(
    {
        Operation.delay,
        Operation.batch_fade_out,
        Operation.batch_fade_in,
        Operation.batch_move_temp,
    }
)


class Severity(StrEnum):
    info = "info"
    success = "success"
    warning = "warning"
    muted = "muted"


class DispatchPhase(StrEnum):
    idle = "idle"
    running = "running"


class EngineConfig(BaseModel):
    """Animation timing shared by every task.

    Instances are frozen: the dispatcher reads one when a task starts and that task
    keeps it for its whole lifetime.
    """

    model_config = ConfigDict(frozen=True)

    duration_ms: int = Field(DEFAULT_DURATION_MS, ge=DURATION_MIN_MS, le=DURATION_MAX_MS)
    easing: Easing = Easing.swing


class EffectOptions(BaseModel):
    """Single parameter object accepted by every named effect."""

    target: str = Field("box1", min_length=1)

    # Per-task overrides, merged over the config snapshot taken at dispatch.
    duration_ms: int | None = None
    easing: str | None = None


class AnimateProps(BaseModel):
    opacity: float | None = Field(None, ge=0.0, le=1.0)
    translate_x: float | None = None
    left: float | None = None
    top: float | None = None
    height: float | None = Field(None, ge=0.0)

    def provided(self) -> dict[str, float]:
        return {k: float(v) for k, v in self.model_dump(exclude_none=True).items()}


class AnimateRequest(EffectOptions):
    props: AnimateProps = Field(default_factory=AnimateProps)


class MoveRequest(EffectOptions):
    offset: float = 80.0


class ConfigUpdateRequest(BaseModel):
    # Left unconstrained; the config store clamps out-of-range values.
    duration_ms: float | None = None
    easing: str | None = None


class TaskView(BaseModel):
    id: int
    target_id: str | None
    operation: Operation
    params: dict[str, Any] = Field(default_factory=dict)


class RunStateView(BaseModel):
    phase: DispatchPhase
    running: bool
    running_count: int
    queue: list[TaskView]
    active_target_id: str | None = None
    active_operation: Operation | None = None
    status_label: str


class TargetView(BaseModel):
    target_id: str
    values: dict[str, float | str]
    baseline: dict[str, float | str] | None = None
    marker: bool = False


class NotificationView(BaseModel):
    text: str
    severity: Severity
    ts: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationView]
