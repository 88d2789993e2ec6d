"""Fan-in of editor lifecycle events into a single finalize signal."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import Enum

logger = logging.getLogger(__name__)


class TerminationTrigger(str, Enum):
    """Editor lifecycle events that end a commit session."""

    WRITE_POST = "write_post"
    WIN_LEAVE = "win_leave"
    WIPEOUT = "wipeout"


class TerminationFanIn:
    """Deliver the first fired trigger to the subscriber; ignore the rest."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriber: Callable[[TerminationTrigger], object] | None = None
        self._fired_by: TerminationTrigger | None = None
        self._fired: list[TerminationTrigger] = []

    @property
    def fired_by(self) -> TerminationTrigger | None:
        with self._lock:
            return self._fired_by

    @property
    def fired(self) -> tuple[TerminationTrigger, ...]:
        """Every trigger seen, in firing order."""
        with self._lock:
            return tuple(self._fired)

    def subscribe(self, callback: Callable[[TerminationTrigger], object]) -> None:
        with self._lock:
            if self._subscriber is not None:
                raise RuntimeError("TerminationFanIn already has a subscriber.")
            self._subscriber = callback

    def fire(self, trigger: TerminationTrigger) -> bool:
        """Record ``trigger``; return ``True`` only for the one that won."""

        with self._lock:
            self._fired.append(trigger)
            if self._fired_by is not None:
                logger.debug(
                    "Ignoring %s, session already ended by %s",
                    trigger.value,
                    self._fired_by.value,
                )
                return False
            self._fired_by = trigger
            callback = self._subscriber
        if callback is not None:
            callback(trigger)
        return True
