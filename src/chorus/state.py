import logging
from enum import Enum

from chorus.errors import InvalidStateTransition

logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    GENERATING = "generating"
    READY = "ready"
    ERROR = "error"


_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.GENERATING}),
    SessionState.READY: frozenset({SessionState.GENERATING}),
    SessionState.ERROR: frozenset({SessionState.GENERATING}),
    SessionState.GENERATING: frozenset({SessionState.READY, SessionState.ERROR}),
}


class SessionStateMachine:
    """Observable lifecycle of a session.

    Every generation enters ``generating`` and leaves it exactly once,
    either for ``ready`` or for ``error``.
    """

    def __init__(self) -> None:
        self._state = SessionState.IDLE

    @property
    def state(self) -> SessionState:
        return self._state

    def can_transition(self, target: SessionState) -> bool:
        return target in _TRANSITIONS[self._state]

    def transition(self, target: SessionState) -> None:
        if not self.can_transition(target):
            raise InvalidStateTransition(
                f"Cannot move from {self._state.value} to {target.value}"
            )
        logger.debug(f"Session state {self._state.value} -> {target.value}")
        self._state = target
