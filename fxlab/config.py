from __future__ import annotations

import logging
import math
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from fxlab.api.models import DEFAULT_DURATION_MS, DURATION_MAX_MS, DURATION_MIN_MS, EngineConfig, Easing

logger = logging.getLogger(__name__)

DEFAULT_BATCH_TARGETS: tuple[str, ...] = ("box1", "box2", "box3")
DEFAULT_TRACKED_TARGETS: tuple[str, ...] = ("box1", "box2", "box3", "panelBox", "customStage")


def clamp_duration(value: object) -> int | None:
    """Clamp a requested duration into the supported range.

    Returns None for values that are not numbers at all; callers keep their current setting.
    """

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return max(DURATION_MIN_MS, min(DURATION_MAX_MS, int(round(value))))


def parse_easing(value: object) -> Easing | None:
    if isinstance(value, Easing):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Easing(value.strip())
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class EngineSettings:
    default_duration_ms: int = DEFAULT_DURATION_MS
    default_easing: Easing = Easing.swing
    batch_targets: tuple[str, ...] = DEFAULT_BATCH_TARGETS
    tracked_targets: tuple[str, ...] = DEFAULT_TRACKED_TARGETS
    history_size: int = 200
    activity_channel: str = "effects"
    redis_url: str | None = None

    def initial_config(self) -> EngineConfig:
        return EngineConfig(
            duration_ms=clamp_duration(self.default_duration_ms) or DEFAULT_DURATION_MS,
            easing=self.default_easing,
        )


def _env_targets(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.environ.get(name)
    if raw is None:
        return default
    targets = tuple(s.strip() for s in raw.split(",") if s.strip())
    return targets or default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("ignoring non-integer %s=%r", name, raw)
        return default


def settings_from_env() -> EngineSettings:
    duration = clamp_duration(_env_int("FXLAB_DEFAULT_DURATION_MS", DEFAULT_DURATION_MS)) or DEFAULT_DURATION_MS
    easing = parse_easing(os.environ.get("FXLAB_DEFAULT_EASING", Easing.swing.value)) or Easing.swing
    return EngineSettings(
        default_duration_ms=duration,
        default_easing=easing,
        batch_targets=_env_targets("FXLAB_BATCH_TARGETS", DEFAULT_BATCH_TARGETS),
        tracked_targets=_env_targets("FXLAB_TRACKED_TARGETS", DEFAULT_TRACKED_TARGETS),
        history_size=max(1, _env_int("FXLAB_HISTORY_SIZE", 200)),
        activity_channel=os.environ.get("FXLAB_ACTIVITY_CHANNEL", "effects"),
        redis_url=os.environ.get("REDIS_URL") or None,
    )


class ConfigStore:
    """Current duration/easing, mutable at any time by external controls.

    `set` never raises: durations are clamped and unknown easings are ignored.
    """

    def __init__(self, initial: EngineConfig | None = None) -> None:
        self._current = initial or EngineConfig()

    def get(self) -> EngineConfig:
        return self._current

    def set(self, duration_ms: object = None, easing: object = None) -> EngineConfig:
        updates: dict[str, Any] = {}

        if duration_ms is not None:
            clamped = clamp_duration(duration_ms)
            if clamped is None:
                logger.debug("ignoring non-numeric duration %r", duration_ms)
            else:
                updates["duration_ms"] = clamped

        if easing is not None:
            parsed = parse_easing(easing)
            if parsed is None:
                logger.debug("ignoring unknown easing %r", easing)
            else:
                updates["easing"] = parsed

        if updates:
            self._current = self._current.model_copy(update=updates)
        return self._current

    def snapshot_for(self, params: Mapping[str, Any] | None = None) -> EngineConfig:
        """Config a task runs with: the current value plus that task's own overrides."""

        snap = self._current
        if not params:
            return snap

        updates: dict[str, Any] = {}
        duration = clamp_duration(params.get("duration_ms"))
        if duration is not None:
            updates["duration_ms"] = duration
        easing = parse_easing(params.get("easing"))
        if easing is not None:
            updates["easing"] = easing
        return snap.model_copy(update=updates) if updates else snap
