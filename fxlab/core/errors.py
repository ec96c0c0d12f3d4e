from __future__ import annotations


class TargetNotFound(LookupError):
    """A task addressed a target the rendering surface does not know."""

    def __init__(self, target_id: str | None) -> None:
        super().__init__(f"target {target_id} not found")
        self.target_id = target_id


class CompletionTimeout(TimeoutError):
    """An expected finish signal never arrived before the safety fallback fired."""

    def __init__(self, target_id: str, prop: str, waited_ms: int) -> None:
        super().__init__(f"no finish signal for {target_id}.{prop} after {waited_ms}ms")
        self.target_id = target_id
        self.prop = prop
        self.waited_ms = waited_ms
