"""Editor hosts that can drive a commit session."""

from gitabra.hosts.terminal import TerminalEditorHost

__all__ = ["TerminalEditorHost"]
