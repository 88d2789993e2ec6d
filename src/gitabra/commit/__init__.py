"""Commit session handoff between an editor host and ``git commit``."""

from gitabra.commit.editor_script import EditorScriptConfig, make_editor_script, sentinel_path
from gitabra.commit.session import (
    SESSION_OWNER,
    CommitError,
    CommitSession,
    CommitSessionOwner,
    CommitState,
    EditorHost,
    FinalizeReport,
    HandshakeError,
    HandshakeTimeoutError,
    SessionActiveError,
    finish_commit,
    start_commit,
)
from gitabra.commit.triggers import TerminationFanIn, TerminationTrigger

__all__ = [
    "SESSION_OWNER",
    "CommitError",
    "CommitSession",
    "CommitSessionOwner",
    "CommitState",
    "EditorHost",
    "EditorScriptConfig",
    "FinalizeReport",
    "HandshakeError",
    "HandshakeTimeoutError",
    "SessionActiveError",
    "TerminationFanIn",
    "TerminationTrigger",
    "finish_commit",
    "make_editor_script",
    "sentinel_path",
    "start_commit",
]
