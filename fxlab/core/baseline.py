from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from fxlab.core.surface import Surface

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BaselineSnapshot:
    """First observed visual state of a target, used by `restore`."""

    opacity: float
    translate_x: float
    height: float
    left: float
    top: float
    display: str

    def values(self) -> dict[str, float | str]:
        return asdict(self)


class BaselineRegistry:
    def __init__(self, surface: Surface) -> None:
        self._surface = surface
        self._snapshots: dict[str, BaselineSnapshot] = {}

    def capture(self, target_id: str) -> BaselineSnapshot:
        """Return the target's baseline, reading it from the surface on first reference only."""

        existing = self._snapshots.get(target_id)
        if existing is not None:
            return existing

        read = self._surface.current_value
        display = str(read(target_id, "display")) or "block"
        snap = BaselineSnapshot(
            opacity=float(read(target_id, "opacity")),
            translate_x=float(read(target_id, "translate_x")),
            height=float(read(target_id, "height")),
            left=float(read(target_id, "left")),
            top=float(read(target_id, "top")),
            display=display,
        )
        self._snapshots[target_id] = snap
        logger.debug("captured baseline for %s: %s", target_id, snap)
        return snap

    def get(self, target_id: str) -> BaselineSnapshot | None:
        return self._snapshots.get(target_id)

    def known_targets(self) -> list[str]:
        return list(self._snapshots)

    def __contains__(self, target_id: object) -> bool:
        return target_id in self._snapshots
