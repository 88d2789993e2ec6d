"""Commit session: hold ``git commit`` open while the user edits the message.

A session moves forward only::

    IDLE -> STARTING -> EDITING -> FINISHING -> CLOSED
            STARTING -> CLOSED  (spawn failure, handshake timeout)

``STARTING`` spawns the commit command with the watcher script as its editor
and waits for the script to announce the message file. ``EDITING`` hands the
file to the editor host and subscribes :meth:`CommitSession.finalize` to the
host's termination triggers. The first trigger runs ``FINISHING`` exactly
once: write the sentinel, reap the command within a bounded wait, surface
anything it printed on stderr.
"""

from __future__ import annotations

import logging
import shlex
import tempfile
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import NoReturn, Protocol

from gitabra.commit.editor_script import EditorScriptConfig, make_editor_script, sentinel_path
from gitabra.commit.triggers import TerminationFanIn, TerminationTrigger
from gitabra.config import CommitSettings
from gitabra.jobs import (
    POLL_INTERVAL_MS,
    JobConfig,
    JobHandle,
    has_output_line,
    spawn,
    wait,
    wait_for,
)

logger = logging.getLogger(__name__)


class CommitState(str, Enum):
    """Forward-only commit session states."""

    IDLE = "idle"
    STARTING = "starting"
    EDITING = "editing"
    FINISHING = "finishing"
    CLOSED = "closed"


ACTIVE_STATES = frozenset({CommitState.STARTING, CommitState.EDITING, CommitState.FINISHING})

_ALLOWED_TRANSITIONS: dict[CommitState, frozenset[CommitState]] = {
    CommitState.IDLE: frozenset({CommitState.STARTING}),
    CommitState.STARTING: frozenset({CommitState.EDITING, CommitState.CLOSED}),
    CommitState.EDITING: frozenset({CommitState.FINISHING}),
    CommitState.FINISHING: frozenset({CommitState.CLOSED}),
    CommitState.CLOSED: frozenset(),
}


class CommitError(RuntimeError):
    """Commit session could not proceed."""


class HandshakeError(CommitError):
    """The commit command did not hand over a message file."""

    def __init__(self, message: str, *, job: JobHandle) -> None:
        super().__init__(message)
        self.job = job


class HandshakeTimeoutError(HandshakeError):
    """The commit command was still running but announced nothing in time."""


class SessionActiveError(CommitError):
    """A commit session is already in progress."""


class EditorHost(Protocol):
    """Editing environment a session hands the commit message to."""

    def open_for_edit(self, path: Path) -> None:
        """Make ``path`` the active editing context."""

    def on_termination(self, fan_in: TerminationFanIn) -> None:
        """Route save / view-closed / discarded events of the opened file to ``fan_in.fire``."""

    def notify(self, message: str) -> None:
        """Show ``message`` to the user."""


@dataclass(slots=True)
class FinalizeReport:
    """Outcome of the finishing actions."""

    trigger: TerminationTrigger | None
    reaped: bool
    exit_code: int | None
    error_message: str | None


class CommitSession:
    """One ``git commit`` invocation driven through an :class:`EditorHost`."""

    def __init__(
        self,
        host: EditorHost,
        settings: CommitSettings,
        *,
        poll_interval_ms: int = POLL_INTERVAL_MS,
        on_closed: Callable[[CommitSession], None] | None = None,
    ) -> None:
        self._host = host
        self._settings = settings
        self._poll_interval_ms = poll_interval_ms
        self._on_closed = on_closed
        self._lock = threading.Lock()
        self._state = CommitState.IDLE
        self._finalized = False
        self._prefix: Path | None = None
        self._job: JobHandle | None = None
        self._message_path: Path | None = None
        self._report: FinalizeReport | None = None

    @property
    def state(self) -> CommitState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state in ACTIVE_STATES

    @property
    def job(self) -> JobHandle | None:
        return self._job

    @property
    def message_path(self) -> Path | None:
        return self._message_path

    @property
    def sentinel_path(self) -> Path | None:
        return sentinel_path(self._prefix) if self._prefix is not None else None

    @property
    def report(self) -> FinalizeReport | None:
        return self._report

    def start(self) -> None:
        """Spawn the commit command, complete the handshake and open the message file.

        Raises :class:`~gitabra.jobs.SpawnError` or :class:`HandshakeError`; in both cases
        the session is ``CLOSED`` and never reached ``EDITING``. Any other
        interruption while starting closes the session the same way.
        """

        self._advance(CommitState.STARTING)
        try:
            self._message_path = self._handshake()
        except BaseException:
            if self._state is CommitState.STARTING:
                # A watcher that did start must not outlive the aborted session.
                self._release_watcher()
                self._close()
            raise

        self._advance(CommitState.EDITING)
        try:
            self._host.open_for_edit(self._message_path)
            fan_in = TerminationFanIn()
            fan_in.subscribe(self.finalize)
            self._host.on_termination(fan_in)
        except Exception:
            logger.exception("Editor host failed to open %s", self._message_path)
            self.finalize(None)
            raise
        logger.info("Editing commit message: %s", self._message_path)

    def _handshake(self) -> Path:
        self._prefix = Path(tempfile.mkdtemp(prefix="gitabra-")) / "msg"
        script = make_editor_script(
            EditorScriptConfig(
                prefix=self._prefix,
                poll_interval_seconds=self._poll_interval_ms / 1000,
            ),
        )
        command = [*shlex.split(self._settings.command), *self._settings.extra_args]
        job = spawn(
            command,
            JobConfig(
                environment=(
                    f"GIT_EDITOR={script}",
                    f"HOME={self._settings.home}",
                ),
                split_lines=True,
                cwd=self._settings.cwd,
            ),
        )
        self._job = job
        logger.info("Commit command started: pid=%s sentinel=%s", job.pid, self.sentinel_path)

        ready = wait_for(
            job,
            self._settings.handshake_timeout_ms,
            has_output_line,
            poll_interval_ms=self._poll_interval_ms,
        )
        if not ready:
            running = job.is_running
            self._fail_handshake(
                job,
                self._describe_not_ready(job, running=running),
                timed_out=running,
            )
        announced = job.output[0].strip()
        if not announced or not Path(announced).is_file():
            self._fail_handshake(
                job,
                f"announced message file does not exist: {announced!r}",
                timed_out=False,
            )
        return Path(announced)

    def finalize(self, trigger: TerminationTrigger | None = None) -> FinalizeReport | None:
        """Release the watcher, reap the commit command and close the session.

        Runs the finishing actions at most once; every later call, or a call
        outside ``EDITING``, returns ``None`` without side effects.
        """

        with self._lock:
            if self._finalized or self._state is not CommitState.EDITING:
                logger.debug("finalize(%s) ignored in state %s", trigger, self._state.value)
                return None
            job = self._job
            if job is None:
                raise CommitError("Editing commit session has no commit command.")
            self._finalized = True
            self._advance(CommitState.FINISHING)

        try:
            logger.info("Finishing commit: trigger=%s", trigger.value if trigger else None)
            self._release_watcher()
            reaped = wait(
                job,
                self._settings.reap_timeout_ms,
                poll_interval_ms=self._poll_interval_ms,
            )
            if not reaped:
                logger.warning(
                    "Commit command still running %sms after release: pid=%s",
                    self._settings.reap_timeout_ms,
                    job.pid,
                )
            error_message = job.error_text().strip() or None
            self._report = FinalizeReport(
                trigger=trigger,
                reaped=reaped,
                exit_code=job.exit_code,
                error_message=error_message,
            )
            if error_message:
                self._host.notify(error_message)
        finally:
            self._close()
        return self._report

    def _describe_not_ready(self, job: JobHandle, *, running: bool) -> str:
        if running:
            return f"no announcement within {self._settings.handshake_timeout_ms}ms"
        output = (job.error_text() or job.output_text()).strip()
        detail = f"command exited with code {job.exit_code}"
        return f"{detail}: {output}" if output else detail

    def _fail_handshake(self, job: JobHandle, detail: str, *, timed_out: bool) -> NoReturn:
        logger.warning("Commit handshake failed, pid=%s: %s", job.pid, detail)
        error_cls = HandshakeTimeoutError if timed_out else HandshakeError
        raise error_cls(f"Commit did not start: {detail}", job=job)

    def _release_watcher(self) -> None:
        path = self.sentinel_path
        if path is None:
            return
        try:
            path.touch()
        except OSError:
            logger.exception("Could not write sentinel %s", path)

    def _close(self) -> None:
        self._advance(CommitState.CLOSED)
        if self._on_closed is not None:
            self._on_closed(self)

    def _advance(self, target: CommitState) -> None:
        if target not in _ALLOWED_TRANSITIONS[self._state]:
            raise CommitError(
                f"Invalid commit session transition: {self._state.value} -> {target.value}",
            )
        logger.debug("Commit session %s -> %s", self._state.value, target.value)
        self._state = target


class CommitSessionOwner:
    """Holds at most one active :class:`CommitSession`.

    Starting while a session is active raises :class:`SessionActiveError`
    and leaves the running session untouched.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current: CommitSession | None = None

    @property
    def current(self) -> CommitSession | None:
        with self._lock:
            return self._current

    @property
    def is_active(self) -> bool:
        session = self.current
        return session is not None and session.is_active

    def start(
        self,
        host: EditorHost,
        settings: CommitSettings,
        *,
        poll_interval_ms: int = POLL_INTERVAL_MS,
    ) -> CommitSession:
        with self._lock:
            # A session counts as occupied from construction until it closes.
            if self._current is not None and self._current.state is not CommitState.CLOSED:
                raise SessionActiveError(
                    f"A commit session is already {self._current.state.value}; "
                    "finish it before starting another.",
                )
            session = CommitSession(
                host,
                settings,
                poll_interval_ms=poll_interval_ms,
                on_closed=self._release,
            )
            self._current = session
        session.start()
        return session

    def finalize(self, trigger: TerminationTrigger | None = None) -> FinalizeReport | None:
        session = self.current
        if session is None:
            return None
        return session.finalize(trigger)

    def _release(self, session: CommitSession) -> None:
        with self._lock:
            if self._current is session:
                self._current = None


SESSION_OWNER = CommitSessionOwner()


def start_commit(host: EditorHost, settings: CommitSettings, **kwargs) -> CommitSession:
    """Start a commit session on the process-wide owner."""
    return SESSION_OWNER.start(host, settings, **kwargs)


def finish_commit(trigger: TerminationTrigger) -> FinalizeReport | None:
    """Host callback: end the process-wide session, if any."""
    return SESSION_OWNER.finalize(trigger)
