"""Easing curves for the named easings the engine accepts.

Every curve is a CSS-style cubic bezier through (0, 0) and (1, 1), solved for x with
Newton iterations and a bisection fallback.
"""

from __future__ import annotations

from collections.abc import Callable

from fxlab.api.models import Easing

EasingFn = Callable[[float], float]


def cubic_bezier(x1: float, y1: float, x2: float, y2: float) -> EasingFn:
    cx = 3.0 * x1
    bx = 3.0 * (x2 - x1) - cx
    ax = 1.0 - cx - bx
    cy = 3.0 * y1
    by = 3.0 * (y2 - y1) - cy
    ay = 1.0 - cy - by

    def sample_x(t: float) -> float:
        return ((ax * t + bx) * t + cx) * t

    def sample_y(t: float) -> float:
        return ((ay * t + by) * t + cy) * t

    def slope_x(t: float) -> float:
        return (3.0 * ax * t + 2.0 * bx) * t + cx

    def solve_t(x: float) -> float:
        t = x
        for _ in range(8):
            err = sample_x(t) - x
            if abs(err) < 1e-6:
                return t
            d = slope_x(t)
            if abs(d) < 1e-6:
                break
            t -= err / d

        lo, hi = 0.0, 1.0
        t = x
        while lo < hi:
            err = sample_x(t) - x
            if abs(err) < 1e-6:
                return t
            if err > 0:
                hi = t
            else:
                lo = t
            t = (lo + hi) / 2.0
            if hi - lo < 1e-7:
                break
        return t

    def curve(progress: float) -> float:
        if progress <= 0.0:
            return 0.0
        if progress >= 1.0:
            return 1.0
        return sample_y(solve_t(progress))

    return curve


def _linear(progress: float) -> float:
    return min(1.0, max(0.0, progress))


EASING_FUNCTIONS: dict[Easing, EasingFn] = {
    Easing.linear: _linear,
    Easing.ease: cubic_bezier(0.25, 0.1, 0.25, 1.0),
    Easing.ease_in: cubic_bezier(0.42, 0.0, 1.0, 1.0),
    Easing.ease_out: cubic_bezier(0.0, 0.0, 0.58, 1.0),
    Easing.ease_in_out: cubic_bezier(0.42, 0.0, 0.58, 1.0),
    Easing.swing: cubic_bezier(0.42, 0.0, 0.58, 1.0),
}


def get_easing_function(easing: Easing | str) -> EasingFn:
    return EASING_FUNCTIONS[Easing(easing)]


def interpolate(start: float, end: float, progress: float, easing: Easing | str = Easing.linear) -> float:
    return start + (end - start) * get_easing_function(easing)(progress)
