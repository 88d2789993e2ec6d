"""Watcher script installed as ``GIT_EDITOR`` to hold ``git commit`` open.

Git runs its editor as ``sh -c '<GIT_EDITOR> "$@"' <GIT_EDITOR> <file>`` from
the top of the work tree, so the generated command receives the commit message
path as ``$1``, possibly relative. The script prints its announcement (by
default that path, made absolute) and then sleeps until the sentinel file
``<prefix>.exit`` exists, which keeps ``git commit`` blocked in "waiting for
your editor" until the session releases it.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from pathlib import Path

SCRIPT_NAME = "gitabra-editor"
SENTINEL_SUFFIX = ".exit"


@dataclass(slots=True, frozen=True)
class EditorScriptConfig:
    """Inputs of :func:`make_editor_script`."""

    prefix: Path
    poll_interval_seconds: float = 0.1
    announcement: str = '"$1"'
    resolve_relative: bool = True


def sentinel_path(prefix: Path) -> Path:
    return prefix.with_name(prefix.name + SENTINEL_SUFFIX)


def make_editor_script(config: EditorScriptConfig) -> str:
    if config.poll_interval_seconds <= 0:
        raise ValueError("poll_interval_seconds must be > 0.")

    sentinel = shlex.quote(str(sentinel_path(config.prefix)))
    lines = [f"announce={config.announcement}"]
    if config.resolve_relative:
        lines.append('case "$announce" in /*) ;; *) announce="$(pwd)/$announce" ;; esac')
    lines.extend(
        (
            "printf '%s\\n' \"$announce\"",
            f"while [ ! -f {sentinel} ]; do",
            f"    sleep {config.poll_interval_seconds:g}",
            "done",
            "exit 0",
        ),
    )
    body = "\n".join(lines)
    return f"sh -c {shlex.quote(body)} {SCRIPT_NAME}"
