"""Controllers for gitabra CLI commands."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path

from gitabra.commit import SESSION_OWNER, CommitSessionOwner
from gitabra.config import Settings
from gitabra.hosts import TerminalEditorHost
from gitabra.status import StatusInfo, collect_status


@dataclass(slots=True)
class CommitCommand:
    """CLI input for an interactive commit."""

    amend: bool = False
    handshake_timeout_ms: int | None = None
    reap_timeout_ms: int | None = None
    editor: str | None = None
    cwd: Path | None = None


@dataclass(slots=True)
class StatusCommand:
    """CLI input for a status listing."""

    timeout_ms: int | None = None
    cwd: Path | None = None


@dataclass(slots=True)
class CommitResult:
    """Commit outcome to render in CLI."""

    lines: list[str]
    success: bool


class GitabraCliController:
    """Wires settings, the terminal editor host and the commit session owner."""

    def __init__(self, owner: CommitSessionOwner | None = None) -> None:
        self._owner = owner or SESSION_OWNER

    def commit(self, command: CommitCommand) -> CommitResult:
        settings = Settings.from_env()
        commit_settings = replace(
            settings.commit,
            extra_args=("--amend",) if command.amend else (),
            handshake_timeout_ms=command.handshake_timeout_ms
            or settings.commit.handshake_timeout_ms,
            reap_timeout_ms=command.reap_timeout_ms or settings.commit.reap_timeout_ms,
            cwd=command.cwd,
        )
        settings = replace(settings, commit=commit_settings)
        settings.validate()

        host = TerminalEditorHost(editor=command.editor)
        session = self._owner.start(
            host,
            settings.commit,
            poll_interval_ms=settings.jobs.poll_interval_ms,
        )
        try:
            trigger = host.run()
        finally:
            # No-op once a trigger has finished the session.
            session.finalize(None)
        report = session.report

        lines = [f"Commit session ended: trigger={trigger.value if trigger else 'none'}"]
        if report is None:
            return CommitResult(lines=lines, success=False)
        if not report.reaped:
            lines.append("Commit command still running after release; leaving it.")
            return CommitResult(lines=lines, success=False)
        lines.append(f"Commit command exited: code={report.exit_code}")
        return CommitResult(lines=lines, success=report.exit_code == 0)

    def status(self, command: StatusCommand) -> list[str]:
        settings = Settings.from_env()
        status_settings = replace(
            settings.status,
            timeout_ms=command.timeout_ms or settings.status.timeout_ms,
            cwd=command.cwd,
        )
        settings = replace(settings, status=status_settings)
        settings.validate()
        info = collect_status(settings.status, poll_interval_ms=settings.jobs.poll_interval_ms)
        return render_status_lines(info)


def render_status_lines(info: StatusInfo) -> list[str]:
    lines = [info.header]
    for title, entries, column in (
        ("Untracked", info.untracked, None),
        ("Unstaged", info.unstaged, "working"),
        ("Staged", info.staged, "index"),
    ):
        if not entries:
            continue
        lines.append("")
        lines.append(f"{title} ({len(entries)})")
        for entry in entries:
            if column is None:
                lines.append(f"  {entry.name}")
            else:
                lines.append(f"  {getattr(entry, column)}  {entry.name}")
    return lines
