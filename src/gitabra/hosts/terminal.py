"""Editor host for the command line: edit the message in ``$VISUAL``/``$EDITOR``."""

from __future__ import annotations

import logging
from pathlib import Path

import rich_click as click

from gitabra.commit.triggers import TerminationFanIn, TerminationTrigger

logger = logging.getLogger(__name__)


class TerminalEditorHost:
    """Run the user's editor on the commit message file and report how it ended.

    After the editor exits, fires ``WRITE_POST`` when the file changed and
    ``WIPEOUT`` otherwise, then ``WIN_LEAVE``; only the first reaches the
    session. An editor that fails still fires ``WIPEOUT``.
    """

    def __init__(self, editor: str | None = None) -> None:
        self._editor = editor
        self._path: Path | None = None
        self._fan_in: TerminationFanIn | None = None
        self.messages: list[str] = []

    def open_for_edit(self, path: Path) -> None:
        self._path = path

    def on_termination(self, fan_in: TerminationFanIn) -> None:
        self._fan_in = fan_in

    def notify(self, message: str) -> None:
        self.messages.append(message)
        click.echo(message, err=True)

    def run(self) -> TerminationTrigger | None:
        """Block in the editor; return the trigger that ended the session."""

        if self._path is None or self._fan_in is None:
            raise RuntimeError("TerminalEditorHost.run() called before a file was opened.")

        trigger = TerminationTrigger.WIPEOUT
        try:
            before = _read_bytes(self._path)
            click.edit(filename=str(self._path), editor=self._editor)
            if _read_bytes(self._path) != before:
                trigger = TerminationTrigger.WRITE_POST
            logger.debug("Editor closed: path=%s trigger=%s", self._path, trigger.value)
        except Exception:
            logger.exception("Editor failed for %s", self._path)
            raise
        finally:
            # The session must end even when the editor or the file read fails.
            self._fan_in.fire(trigger)
            self._fan_in.fire(TerminationTrigger.WIN_LEAVE)
        return self._fan_in.fired_by


def _read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return b""
