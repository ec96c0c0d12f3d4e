from __future__ import annotations

from statemachine import State, StateMachine

from fxlab.api.models import DispatchPhase


class DispatcherFSM(StateMachine):
    """Lifecycle of the single dispatch worker.

    - idle -> running when a task is enqueued and no worker is active
    - running -> idle when the queue drains, or when everything is stopped
    """

    idle = State(DispatchPhase.idle.value, value=DispatchPhase.idle.value, initial=True)
    running = State(DispatchPhase.running.value, value=DispatchPhase.running.value)

    wake = idle.to(running)
    drain = running.to(idle)
    halt = running.to(idle)

    @property
    def phase(self) -> DispatchPhase:
        return DispatchPhase(str(self.current_state.value))

    @property
    def worker_active(self) -> bool:
        return self.current_state == self.running
