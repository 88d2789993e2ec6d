"""Bounded, polling-based waits over one or more job handles."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable

from gitabra.jobs.job import JobHandle

logger = logging.getLogger(__name__)

POLL_INTERVAL_MS = 100

WaitPredicate = Callable[[JobHandle], bool]


def has_output_line(handle: JobHandle) -> bool:
    """Readiness predicate: the job has produced at least one output entry."""

    return len(handle.output) != 0


def wait(handle: JobHandle, timeout_ms: int, *, poll_interval_ms: int = POLL_INTERVAL_MS) -> bool:
    """Block until ``handle`` leaves ``RUNNING`` or ``timeout_ms`` elapses.

    Returns whether the job completed in time.
    """

    deadline = _deadline(timeout_ms)
    step = _step_seconds(poll_interval_ms)
    while True:
        if not handle.is_running:
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.debug("wait timed out after %sms: %r", timeout_ms, handle)
            return False
        handle.wait_done(min(step, remaining))


def wait_for(
    handle: JobHandle,
    timeout_ms: int,
    predicate: WaitPredicate,
    *,
    poll_interval_ms: int = POLL_INTERVAL_MS,
) -> bool:
    """Poll ``predicate(handle)`` until it holds or ``timeout_ms`` elapses.

    The predicate is checked immediately and then once per poll tick. A job
    that has already finished cannot change any more, so its last check is
    final. The job may still be running when this returns ``False``.
    """

    deadline = _deadline(timeout_ms)
    step = _step_seconds(poll_interval_ms)
    while True:
        if predicate(handle):
            return True
        if not handle.is_running:
            return bool(predicate(handle))
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.debug("wait_for timed out after %sms: %r", timeout_ms, handle)
            return False
        time.sleep(min(step, remaining))


def wait_all(
    timeout_ms: int,
    handles: Iterable[JobHandle],
    *,
    poll_interval_ms: int = POLL_INTERVAL_MS,
) -> bool:
    """Return ``True`` only if every handle finishes before one shared deadline."""

    deadline = _deadline(timeout_ms)
    step = _step_seconds(poll_interval_ms)
    for handle in handles:
        while handle.is_running:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.debug("wait_all timed out after %sms on %r", timeout_ms, handle)
                return False
            handle.wait_done(min(step, remaining))
    return True


def _deadline(timeout_ms: int) -> float:
    if timeout_ms < 0:
        raise ValueError(f"timeout_ms must be >= 0, got {timeout_ms}")
    return time.monotonic() + timeout_ms / 1000


def _step_seconds(poll_interval_ms: int) -> float:
    if poll_interval_ms <= 0:
        raise ValueError(f"poll_interval_ms must be > 0, got {poll_interval_ms}")
    return poll_interval_ms / 1000
