"""Repository status query built from three concurrent git commands."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from gitabra.config import StatusSettings
from gitabra.jobs import POLL_INTERVAL_MS, JobConfig, JobHandle, spawn, wait_all

logger = logging.getLogger(__name__)

_STATUS_LETTER_NAMES = {
    "M": "modified",
    "A": "added",
    "D": "deleted",
    "R": "renamed",
    "C": "copied",
    "U": "unmerged",
    "?": "untracked",
}


class StatusError(RuntimeError):
    """A git status command failed."""


class StatusTimeoutError(StatusError):
    """Git status commands did not finish within the allotted time."""


@dataclass(slots=True)
class FileStatus:
    """One ``git status --porcelain`` entry."""

    index: str
    working: str
    name: str


@dataclass(slots=True)
class StatusInfo:
    """Branch header plus files grouped the way the status view shows them."""

    header: str
    files: list[FileStatus] = field(default_factory=list)
    untracked: list[FileStatus] = field(default_factory=list)
    staged: list[FileStatus] = field(default_factory=list)
    unstaged: list[FileStatus] = field(default_factory=list)


def status_letter_name(letter: str) -> str:
    return _STATUS_LETTER_NAMES.get(letter, "")


def parse_porcelain(lines: list[str] | tuple[str, ...]) -> list[FileStatus]:
    entries: list[FileStatus] = []
    for line in lines:
        if len(line) < 4:
            continue
        entries.append(
            FileStatus(
                index=status_letter_name(line[0]),
                working=status_letter_name(line[1]),
                name=line[3:],
            ),
        )
    return entries


def build_status_info(
    *,
    branch: str,
    head_summary: str,
    porcelain: list[str] | tuple[str, ...],
) -> StatusInfo:
    info = StatusInfo(header=f"[{branch}] {head_summary}")
    for entry in parse_porcelain(porcelain):
        if entry.working == "untracked":
            info.untracked.append(entry)
        if entry.index not in ("", "untracked"):
            info.staged.append(entry)
        if entry.working not in ("", "untracked"):
            info.unstaged.append(entry)
        info.files.append(entry)
    return info


def collect_status(
    settings: StatusSettings,
    *,
    poll_interval_ms: int = POLL_INTERVAL_MS,
) -> StatusInfo:
    """Run branch, head and porcelain queries in parallel and group the result.

    Raises :class:`StatusTimeoutError` unless all three finish before one
    shared deadline.
    """

    config = JobConfig(split_lines=True, cwd=settings.cwd)
    start = time.monotonic()
    branch_job = spawn(["git", "branch", "--show-current"], config)
    head_job = spawn(["git", "show", "--no-patch", "--format=%h %s"], config)
    status_job = spawn(["git", "status", "--porcelain"], config)
    jobs = (branch_job, head_job, status_job)

    if not wait_all(settings.timeout_ms, jobs, poll_interval_ms=poll_interval_ms):
        raise StatusTimeoutError(
            f"Unable to complete git commands within {settings.timeout_ms}ms.",
        )
    logger.debug("git status commands completed in %.3fs", time.monotonic() - start)

    for job in jobs:
        if job.exit_code != 0:
            raise StatusError(_describe_failure(job))

    return build_status_info(
        branch=_first_line(branch_job),
        head_summary=_first_line(head_job),
        porcelain=status_job.output,
    )


def _first_line(job: JobHandle) -> str:
    output = job.output
    return output[0] if output else ""


def _describe_failure(job: JobHandle) -> str:
    detail = job.error_text().strip()
    message = f"{job.command!r} exited with code {job.exit_code}"
    return f"{message}: {detail}" if detail else message
