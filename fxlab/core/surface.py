from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal, Protocol

from fxlab.api.models import Easing
from fxlab.core.easing import get_easing_function

logger = logging.getLogger(__name__)

Prop = Literal["opacity", "translate_x", "height", "left", "top", "display"]
NumericProp = Literal["opacity", "translate_x", "height", "left", "top"]

TRACKED_PROPS: tuple[Prop, ...] = ("opacity", "translate_x", "height", "left", "top", "display")
NUMERIC_PROPS: tuple[NumericProp, ...] = ("opacity", "translate_x", "height", "left", "top")


class Surface(Protocol):
    """What the engine needs from whatever actually draws the targets."""

    def has(self, target_id: str) -> bool:  # pragma: no cover
        ...

    def current_value(self, target_id: str, prop: Prop) -> float | str:  # pragma: no cover
        ...

    def set_value(self, target_id: str, prop: Prop, value: float | str) -> None:  # pragma: no cover
        ...

    def natural_extent(self, target_id: str) -> float:  # pragma: no cover
        ...

    def animate(
        self,
        target_id: str,
        prop: NumericProp,
        *,
        start: float,
        end: float,
        duration_ms: int,
        easing: Easing,
    ) -> asyncio.Future[None]:  # pragma: no cover
        ...

    def cancel(self, target_id: str) -> None:  # pragma: no cover
        ...

    def toggle_marker(self, target_id: str) -> bool:  # pragma: no cover
        ...

    def marker(self, target_id: str) -> bool:  # pragma: no cover
        ...


@dataclass(slots=True)
class ElementSpec:
    opacity: float = 1.0
    translate_x: float = 0.0
    height: float = 110.0
    left: float = 0.0
    top: float = 0.0
    display: str = "block"

    # Height the content needs when fully expanded (what a browser calls scrollHeight).
    # Fixed at construction; collapsing the element never changes it.
    natural_height: float | None = None
    marker: bool = False

    def __post_init__(self) -> None:
        if self.natural_height is None:
            self.natural_height = self.height

    def values(self) -> dict[str, float | str]:
        return {p: getattr(self, p) for p in TRACKED_PROPS}


@dataclass(slots=True)
class _Tween:
    start: float
    end: float
    started_at: float
    duration_s: float
    easing: Easing
    done: asyncio.Future[None]
    handle: asyncio.TimerHandle | None = None

    def value_at(self, now: float) -> float:
        if self.duration_s <= 0:
            return self.end
        progress = (now - self.started_at) / self.duration_s
        if progress >= 1.0:
            return self.end
        return self.start + (self.end - self.start) * get_easing_function(self.easing)(max(0.0, progress))


@dataclass(slots=True)
class _Element:
    spec: ElementSpec
    tweens: dict[str, _Tween] = field(default_factory=dict)
    silent: bool = False


class SimulatedSurface:
    """In-process surface that interpolates properties on the asyncio clock.

    Finish signals are delivered by resolving the future returned from `animate()`,
    unless they were suppressed for the target (the element went away mid-flight).
    """

    def __init__(self, elements: Mapping[str, ElementSpec] | None = None) -> None:
        self._elements: dict[str, _Element] = {}
        for target_id, spec in (elements or {}).items():
            self.add(target_id, spec)

    def add(self, target_id: str, spec: ElementSpec | None = None) -> None:
        self._elements[target_id] = _Element(spec=spec or ElementSpec())

    def remove(self, target_id: str) -> None:
        el = self._elements.pop(target_id, None)
        if el is None:
            return
        # Removed nodes never report that their transitions ended.
        for tween in el.tweens.values():
            if tween.handle is not None:
                tween.handle.cancel()
        el.tweens.clear()

    def suppress_finish_signals(self, target_id: str, suppressed: bool = True) -> None:
        self._require(target_id).silent = suppressed

    def targets(self) -> list[str]:
        return list(self._elements)

    def has(self, target_id: str) -> bool:
        return target_id in self._elements

    def current_value(self, target_id: str, prop: Prop) -> float | str:
        el = self._require(target_id)
        tween = el.tweens.get(prop)
        if tween is not None:
            return tween.value_at(tween.done.get_loop().time())
        return getattr(el.spec, prop)

    def set_value(self, target_id: str, prop: Prop, value: float | str) -> None:
        el = self._require(target_id)
        self._drop_tween(el, prop)
        setattr(el.spec, prop, value)

    def natural_extent(self, target_id: str) -> float:
        natural = self._require(target_id).spec.natural_height
        if natural is None:
            raise ValueError(f"{target_id} has no natural height")
        return natural

    def animate(
        self,
        target_id: str,
        prop: NumericProp,
        *,
        start: float,
        end: float,
        duration_ms: int,
        easing: Easing,
    ) -> asyncio.Future[None]:
        el = self._require(target_id)
        loop = asyncio.get_running_loop()

        self._drop_tween(el, prop)
        done: asyncio.Future[None] = loop.create_future()
        if duration_ms <= 0:
            setattr(el.spec, prop, end)
            if not el.silent:
                done.set_result(None)
            return done

        setattr(el.spec, prop, start)
        tween = _Tween(
            start=float(start),
            end=float(end),
            started_at=loop.time(),
            duration_s=duration_ms / 1000,
            easing=Easing(easing),
            done=done,
        )
        tween.handle = loop.call_later(tween.duration_s, self._finish, target_id, prop, tween)
        el.tweens[prop] = tween
        return done

    def cancel(self, target_id: str) -> None:
        el = self._elements.get(target_id)
        if el is None:
            return
        for prop in list(el.tweens):
            tween = el.tweens[prop]
            frozen = tween.value_at(tween.done.get_loop().time())
            self._drop_tween(el, prop)
            setattr(el.spec, prop, frozen)

    def toggle_marker(self, target_id: str) -> bool:
        spec = self._require(target_id).spec
        spec.marker = not spec.marker
        return spec.marker

    def marker(self, target_id: str) -> bool:
        return self._require(target_id).spec.marker

    def values(self, target_id: str) -> dict[str, float | str]:
        return {p: self.current_value(target_id, p) for p in TRACKED_PROPS}

    def _finish(self, target_id: str, prop: str, tween: _Tween) -> None:
        el = self._elements.get(target_id)
        if el is None or el.tweens.get(prop) is not tween:
            return
        del el.tweens[prop]
        setattr(el.spec, prop, tween.end)
        if el.silent:
            logger.debug("finish signal for %s.%s suppressed", target_id, prop)
            return
        if not tween.done.done():
            tween.done.set_result(None)

    def _drop_tween(self, el: _Element, prop: str) -> None:
        # A superseded transition is cancelled rather than finished.
        tween = el.tweens.pop(prop, None)
        if tween is None:
            return
        if tween.handle is not None:
            tween.handle.cancel()
        if not tween.done.done():
            tween.done.cancel()

    def _require(self, target_id: str) -> _Element:
        el = self._elements.get(target_id)
        if el is None:
            raise KeyError(target_id)
        return el


def build_demo_surface() -> SimulatedSurface:
    """The scene of the effects lab: three boxes, a sliding panel and a custom stage."""

    return SimulatedSurface(
        {
            "box1": ElementSpec(height=110.0),
            "box2": ElementSpec(height=110.0),
            "box3": ElementSpec(height=96.0),
            "panelBox": ElementSpec(height=72.0, natural_height=72.0),
            "customStage": ElementSpec(height=64.0),
        }
    )
