"""Shared test fixtures."""

from __future__ import annotations

import shlex
import stat
from collections.abc import Callable
from pathlib import Path

import pytest

from gitabra.commit import SESSION_OWNER, TerminationFanIn
from gitabra.config import CommitSettings

_FAKE_GIT_TEMPLATE = """\
#!/bin/sh
# Stand-in for `git commit`: writes the message file, runs $GIT_EDITOR on it
# the way git does, then records what the editor left behind.
msg={message_path}
printf '\\n# Please enter the commit message for your changes.\\n' > "$msg"
sh -c "$GIT_EDITOR \\"\\$@\\"" "$GIT_EDITOR" "$msg" || exit 1
cp "$msg" {committed_path}
printf '%s' "$HOME" > {home_path}
{stderr_block}
exit {exit_code}
"""


class RecordingHost:
    """Editor host double that keeps everything a session hands it."""

    def __init__(self) -> None:
        self.opened: list[Path] = []
        self.fan_in: TerminationFanIn | None = None
        self.messages: list[str] = []

    def open_for_edit(self, path: Path) -> None:
        self.opened.append(path)

    def on_termination(self, fan_in: TerminationFanIn) -> None:
        self.fan_in = fan_in

    def notify(self, message: str) -> None:
        self.messages.append(message)


@pytest.fixture
def host() -> RecordingHost:
    return RecordingHost()


@pytest.fixture
def make_fake_git(tmp_path: Path) -> Callable[..., Path]:
    """Write an executable fake `git commit` and return its path."""

    def _make(*, stderr_lines: tuple[str, ...] = (), exit_code: int = 0) -> Path:
        workdir = tmp_path / "repo" / ".git"
        workdir.mkdir(parents=True, exist_ok=True)
        stderr_block = "\n".join(f"printf '%s\\n' '{line}' >&2" for line in stderr_lines)
        script = tmp_path / "fake-git-commit"
        script.write_text(
            _FAKE_GIT_TEMPLATE.format(
                message_path=shlex.quote(str(workdir / "COMMIT_EDITMSG")),
                committed_path=shlex.quote(str(tmp_path / "committed")),
                home_path=shlex.quote(str(tmp_path / "seen-home")),
                stderr_block=stderr_block,
                exit_code=exit_code,
            ),
            "utf-8",
        )
        script.chmod(script.stat().st_mode | stat.S_IXUSR)
        return script

    return _make


@pytest.fixture
def commit_settings(tmp_path: Path) -> Callable[..., CommitSettings]:
    def _settings(command: Path | str, **overrides) -> CommitSettings:
        values = {
            "command": str(command),
            "handshake_timeout_ms": 3_000,
            "reap_timeout_ms": 3_000,
            "home": tmp_path / "home",
        }
        values.update(overrides)
        return CommitSettings(**values)

    return _settings


@pytest.fixture(autouse=True)
def _release_session_owner():
    yield
    SESSION_OWNER.finalize(None)
