"""Asynchronously started external commands with incrementally captured output."""

from __future__ import annotations

import codecs
import logging
import os
import shlex
import subprocess
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import IO

logger = logging.getLogger(__name__)

_READ_CHUNK_BYTES = 4096


class JobStatus(str, Enum):
    """Lifecycle states of one external command."""

    RUNNING = "running"
    EXITED = "exited"
    KILLED = "killed"


class SpawnError(RuntimeError):
    """External command could not be started."""

    def __init__(self, message: str, *, command: str | Sequence[str]) -> None:
        super().__init__(message)
        self.command = command


@dataclass(slots=True)
class JobConfig:
    """Options recognized by :func:`spawn`."""

    environment: tuple[str, ...] = ()
    split_lines: bool = False
    cwd: Path | None = None


class JobHandle:
    """One external command running in the background.

    ``output`` and ``error_output`` only ever grow, in the order the child
    produced them. With ``split_lines`` every entry is one line without its
    trailing newline; otherwise every entry is a raw chunk of text exactly as
    read from the pipe. Once ``status`` leaves ``RUNNING`` both streams have
    reached EOF and the handle no longer changes.
    """

    def __init__(
        self,
        *,
        command: str | Sequence[str],
        environment: tuple[str, ...],
        process: subprocess.Popen[bytes],
        split_lines: bool,
    ) -> None:
        self.command = command
        self.environment = environment
        self.split_lines = split_lines
        self._process = process
        self._lock = threading.Lock()
        self._output: list[str] = []
        self._error_output: list[str] = []
        self._status = JobStatus.RUNNING
        self._exit_code: int | None = None
        self._done = threading.Event()

    def __repr__(self) -> str:
        return (
            f"JobHandle(command={self.command!r}, pid={self.pid}, "
            f"status={self.status.value}, exit_code={self.exit_code})"
        )

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def output(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._output)

    @property
    def error_output(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._error_output)

    @property
    def status(self) -> JobStatus:
        with self._lock:
            return self._status

    @property
    def exit_code(self) -> int | None:
        with self._lock:
            return self._exit_code

    @property
    def is_running(self) -> bool:
        return self.status is JobStatus.RUNNING

    def output_text(self) -> str:
        return self._join(self.output)

    def error_text(self) -> str:
        return self._join(self.error_output)

    def wait_done(self, timeout_seconds: float) -> bool:
        """Block up to ``timeout_seconds`` for completion; return whether it completed."""

        return self._done.wait(timeout=max(0.0, timeout_seconds))

    def _join(self, entries: tuple[str, ...]) -> str:
        return ("\n" if self.split_lines else "").join(entries)

    def _start(self) -> None:
        readers = [
            threading.Thread(
                target=self._read_stream,
                args=(self._process.stdout, self._output),
                daemon=True,
                name=f"gitabra-job-{self.pid}-stdout",
            ),
            threading.Thread(
                target=self._read_stream,
                args=(self._process.stderr, self._error_output),
                daemon=True,
                name=f"gitabra-job-{self.pid}-stderr",
            ),
        ]
        for reader in readers:
            reader.start()
        threading.Thread(
            target=self._reap,
            args=(readers,),
            daemon=True,
            name=f"gitabra-job-{self.pid}-reaper",
        ).start()

    def _read_stream(self, stream: IO[bytes] | None, target: list[str]) -> None:
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            if self.split_lines:
                for raw_line in iter(stream.readline, b""):
                    text = decoder.decode(raw_line).rstrip("\r\n")
                    with self._lock:
                        target.append(text)
            else:
                read_chunk = getattr(stream, "read1", stream.read)
                for raw_chunk in iter(lambda: read_chunk(_READ_CHUNK_BYTES), b""):
                    text = decoder.decode(raw_chunk)
                    if text:
                        with self._lock:
                            target.append(text)
                tail = decoder.decode(b"", final=True)
                if tail:
                    with self._lock:
                        target.append(tail)
        finally:
            stream.close()

    def _reap(self, readers: list[threading.Thread]) -> None:
        for reader in readers:
            reader.join()
        returncode = self._process.wait()
        status = JobStatus.KILLED if returncode < 0 else JobStatus.EXITED
        with self._lock:
            self._exit_code = returncode
            self._status = status
        self._done.set()
        logger.debug("Job finished: pid=%s status=%s code=%s", self.pid, status.value, returncode)


def spawn(command: str | Sequence[str], config: JobConfig | None = None) -> JobHandle:
    """Start ``command`` in the background and return its handle immediately.

    String commands are split with shell rules but not run through a shell.
    Raises :class:`SpawnError` when the command cannot be started.
    """

    config = config or JobConfig()
    argv = shlex.split(command) if isinstance(command, str) else list(command)
    if not argv:
        raise SpawnError("Cannot spawn an empty command.", command=command)

    env = os.environ.copy()
    for override in config.environment:
        name, sep, value = override.partition("=")
        if not sep or not name:
            raise SpawnError(
                f"Invalid environment override {override!r}. Expected NAME=VALUE.",
                command=command,
            )
        env[name] = value

    try:
        process = subprocess.Popen(  # noqa: S603
            argv,
            env=env,
            cwd=config.cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except FileNotFoundError as error:
        raise SpawnError(f"Command not found: {argv[0]}", command=command) from error
    except OSError as error:
        raise SpawnError(f"Command failed to start: {error}", command=command) from error

    handle = JobHandle(
        command=command,
        environment=config.environment,
        process=process,
        split_lines=config.split_lines,
    )
    handle._start()
    logger.debug("Job started: pid=%s command=%r", handle.pid, command)
    return handle
