"""Device registration state machine."""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Dict, FrozenSet, List

from marketplace_session.models.registration import RegistrationState

logger = logging.getLogger(__name__)

S = RegistrationState

HISTORY_LIMIT = 32

_TRANSITIONS: Dict[RegistrationState, FrozenSet[RegistrationState]] = {
    S.UNREGISTERED: frozenset({S.PENDING_PERMISSION}),
    S.PENDING_PERMISSION: frozenset({S.PERMISSION_DENIED, S.PERMISSION_GRANTED}),
    # Denied ends the current attempt; the user may grant it later in settings.
    S.PERMISSION_DENIED: frozenset({S.PENDING_PERMISSION, S.UNREGISTERED}),
    S.PERMISSION_GRANTED: frozenset({S.TOKEN_PENDING, S.REGISTERED, S.UNREGISTERED}),
    S.TOKEN_PENDING: frozenset({S.REGISTERED, S.UNREGISTERED}),
    S.REGISTERED: frozenset(
        {S.TOKEN_PENDING, S.PENDING_PERMISSION, S.DEACTIVATED, S.UNREGISTERED}
    ),
    S.DEACTIVATED: frozenset({S.UNREGISTERED}),
}


class RegistrationStateMachine:
    """Track the client's view of the device registration.

    Transitions outside the table are applied but logged, since the platform
    can deliver events (rotation, logout) at any point.
    """

    def __init__(
        self, initial: RegistrationState = S.UNREGISTERED, *, history_limit: int = HISTORY_LIMIT
    ) -> None:
        self._state = initial
        # Only the most recent transitions are kept.
        self._history: Deque[RegistrationState] = deque([initial], maxlen=history_limit)

    @property
    def state(self) -> RegistrationState:
        return self._state

    @property
    def history(self) -> List[RegistrationState]:
        return list(self._history)

    def can_transition(self, target: RegistrationState) -> bool:
        return target in _TRANSITIONS[self._state]

    def transition(self, target: RegistrationState) -> None:
        if target is self._state:
            return
        if not self.can_transition(target):
            logger.warning(
                "Unexpected registration transition",
                extra={"from_state": self._state.value, "to_state": target.value},
            )
        logger.debug("Registration state %s -> %s", self._state.value, target.value)
        self._state = target
        self._history.append(target)

    def reset(self) -> None:
        self.transition(S.UNREGISTERED)


__all__ = ["HISTORY_LIMIT", "RegistrationStateMachine"]
