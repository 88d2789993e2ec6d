from __future__ import annotations

import os
import shlex
import sys
from pathlib import Path

import allure
import pytest

from gitabra.commit import (
    CommitError,
    CommitSession,
    CommitSessionOwner,
    CommitState,
    HandshakeError,
    HandshakeTimeoutError,
    SessionActiveError,
    TerminationFanIn,
    TerminationTrigger,
    finish_commit,
    start_commit,
)
from gitabra.commit import session as session_module
from gitabra.jobs import SpawnError, wait

pytestmark = [
    allure.epic("Commit Session"),
    allure.feature("Handshake & Finalize"),
    pytest.mark.skipif(os.name != "posix", reason="needs a POSIX sh"),
]


def test_session_opens_announced_file_and_commits_on_save(
    host,
    make_fake_git,
    commit_settings,
    tmp_path: Path,
) -> None:
    session = CommitSession(host, commit_settings(make_fake_git()))

    session.start()

    assert session.state is CommitState.EDITING
    assert session.is_active
    message_path = tmp_path / "repo" / ".git" / "COMMIT_EDITMSG"
    assert host.opened == [message_path]
    assert session.message_path == message_path
    assert session.job is not None and session.job.is_running
    assert host.fan_in is not None

    message_path.write_text("Add watcher\n", "utf-8")
    assert host.fan_in.fire(TerminationTrigger.WRITE_POST)

    assert session.state is CommitState.CLOSED
    assert not session.is_active
    assert session.sentinel_path is not None and session.sentinel_path.exists()
    report = session.report
    assert report is not None
    assert report.trigger is TerminationTrigger.WRITE_POST
    assert report.reaped
    assert report.exit_code == 0
    assert report.error_message is None
    assert host.messages == []
    assert (tmp_path / "committed").read_text("utf-8") == "Add watcher\n"


def test_home_is_forwarded_to_commit_command(host, make_fake_git, commit_settings, tmp_path):
    session = CommitSession(host, commit_settings(make_fake_git(), home=tmp_path / "me"))
    session.start()
    session.finalize(TerminationTrigger.WIN_LEAVE)

    assert (tmp_path / "seen-home").read_text("utf-8") == str(tmp_path / "me")


def test_error_output_is_surfaced_as_one_trimmed_message(host, make_fake_git, commit_settings):
    fake_git = make_fake_git(
        stderr_lines=("Aborting commit due to empty commit message.", "hint: try again"),
        exit_code=1,
    )
    session = CommitSession(host, commit_settings(fake_git))
    session.start()

    report = session.finalize(TerminationTrigger.WIPEOUT)

    expected = "Aborting commit due to empty commit message.\nhint: try again"
    assert report is not None
    assert report.error_message == expected
    assert report.exit_code == 1
    assert host.messages == [expected]


def test_repeated_triggers_finalize_exactly_once(
    host,
    make_fake_git,
    commit_settings,
    monkeypatch,
) -> None:
    reap_calls = []
    sentinel_writes = []
    real_wait = session_module.wait
    real_release = CommitSession._release_watcher

    def counting_wait(*args, **kwargs):
        reap_calls.append(args)
        return real_wait(*args, **kwargs)

    def counting_release(self):
        sentinel_writes.append(self.sentinel_path)
        real_release(self)

    monkeypatch.setattr(session_module, "wait", counting_wait)
    monkeypatch.setattr(CommitSession, "_release_watcher", counting_release)

    session = CommitSession(host, commit_settings(make_fake_git()))
    session.start()
    fan_in = host.fan_in

    results = [
        fan_in.fire(TerminationTrigger.WRITE_POST),
        fan_in.fire(TerminationTrigger.WIN_LEAVE),
        fan_in.fire(TerminationTrigger.WIPEOUT),
    ]

    assert results == [True, False, False]
    assert fan_in.fired_by is TerminationTrigger.WRITE_POST
    assert len(sentinel_writes) == 1
    assert len(reap_calls) == 1
    assert session.finalize(TerminationTrigger.WIPEOUT) is None
    assert len(reap_calls) == 1


def test_handshake_timeout_never_reaches_editing(host, commit_settings, tmp_path) -> None:
    silent = f"{sys.executable} -c 'import time; time.sleep(2)'"
    session = CommitSession(host, commit_settings(silent, handshake_timeout_ms=200))

    with pytest.raises(HandshakeTimeoutError, match="no announcement within 200ms") as info:
        session.start()

    assert session.state is CommitState.CLOSED
    assert host.opened == []
    assert host.fan_in is None
    assert info.value.job.is_running
    assert session.sentinel_path is not None and session.sentinel_path.exists()
    assert session.finalize(TerminationTrigger.WRITE_POST) is None


def test_announcement_is_taken_only_from_a_complete_line(host, commit_settings, tmp_path) -> None:
    (tmp_path / "MSG").touch()
    split = tmp_path / "split-announce"
    split.write_text(
        "#!/bin/sh\n"
        f"printf %s {shlex.quote(str(tmp_path))}\n"
        "sleep 0.3\n"
        "printf '/MSG\\n'\n"
        "sleep 2\n",
        "utf-8",
    )
    split.chmod(0o755)
    session = CommitSession(host, commit_settings(split, reap_timeout_ms=200))

    session.start()

    assert session.message_path == tmp_path / "MSG"
    assert host.opened == [tmp_path / "MSG"]
    session.finalize(TerminationTrigger.WIPEOUT)


def test_interrupted_handshake_closes_session_and_releases_watcher(
    host,
    make_fake_git,
    commit_settings,
    monkeypatch,
) -> None:
    def interrupted_wait_for(*args, **kwargs):
        raise KeyboardInterrupt

    monkeypatch.setattr(session_module, "wait_for", interrupted_wait_for)
    closed: list[CommitSession] = []
    session = CommitSession(host, commit_settings(make_fake_git()), on_closed=closed.append)

    with pytest.raises(KeyboardInterrupt):
        session.start()

    assert session.state is CommitState.CLOSED
    assert closed == [session]
    assert host.opened == []
    assert session.sentinel_path is not None and session.sentinel_path.exists()
    assert session.job is not None
    assert wait(session.job, 3_000)

    owner = CommitSessionOwner()
    with pytest.raises(KeyboardInterrupt):
        owner.start(host, commit_settings(make_fake_git()))
    assert owner.current is None
    assert not owner.is_active


def test_command_exiting_before_editor_is_a_handshake_error(host, commit_settings) -> None:
    nothing = "sh -c 'echo \"nothing to commit, working tree clean\"; exit 1'"
    session = CommitSession(host, commit_settings(nothing))

    with pytest.raises(HandshakeError) as info:
        session.start()

    assert not isinstance(info.value, HandshakeTimeoutError)
    assert session.state is CommitState.CLOSED
    assert host.opened == []


def test_spawn_failure_closes_session(host, commit_settings) -> None:
    session = CommitSession(host, commit_settings("gitabra-no-such-git commit"))

    with pytest.raises(SpawnError):
        session.start()

    assert session.state is CommitState.CLOSED
    assert session.job is None


def test_host_failure_while_opening_still_releases_commit(make_fake_git, commit_settings):
    class BrokenHost:
        def open_for_edit(self, path: Path) -> None:
            raise OSError("cannot open window")

        def on_termination(self, fan_in: TerminationFanIn) -> None:
            raise AssertionError("not reached")

        def notify(self, message: str) -> None:
            pass

    session = CommitSession(BrokenHost(), commit_settings(make_fake_git()))

    with pytest.raises(OSError, match="cannot open window"):
        session.start()

    assert session.state is CommitState.CLOSED
    assert session.report is not None
    assert session.report.trigger is None
    assert session.report.reaped


def test_reap_timeout_still_closes_session(host, commit_settings, tmp_path) -> None:
    stubborn = tmp_path / "stubborn"
    stubborn.write_text(
        "#!/bin/sh\n"
        f"msg={tmp_path}/MSG\n"
        'touch "$msg"\n'
        'sh -c "$GIT_EDITOR \\"\\$@\\"" "$GIT_EDITOR" "$msg"\n'
        "sleep 2\n",
        "utf-8",
    )
    stubborn.chmod(0o755)
    session = CommitSession(host, commit_settings(stubborn, reap_timeout_ms=200))
    session.start()

    report = session.finalize(TerminationTrigger.WRITE_POST)

    assert report is not None
    assert not report.reaped
    assert report.exit_code is None
    assert session.state is CommitState.CLOSED


def test_session_start_is_one_shot(host, make_fake_git, commit_settings) -> None:
    session = CommitSession(host, commit_settings(make_fake_git()))
    session.start()
    session.finalize(TerminationTrigger.WRITE_POST)

    with pytest.raises(CommitError, match="closed -> starting"):
        session.start()


def test_finalize_before_start_is_a_no_op(host, commit_settings) -> None:
    session = CommitSession(host, commit_settings("true"))

    assert session.finalize(TerminationTrigger.WRITE_POST) is None
    assert session.state is CommitState.IDLE


def test_owner_rejects_second_session_while_one_is_active(host, make_fake_git, commit_settings):
    owner = CommitSessionOwner()
    settings = commit_settings(make_fake_git())
    first = owner.start(host, settings)

    with pytest.raises(SessionActiveError, match="already editing"):
        owner.start(host, settings)

    assert owner.current is first
    assert first.state is CommitState.EDITING

    report = owner.finalize(TerminationTrigger.WRITE_POST)
    assert report is not None and report.reaped
    assert owner.current is None
    assert not owner.is_active

    second = owner.start(host, settings)
    assert second is not first
    owner.finalize(TerminationTrigger.WRITE_POST)


def test_owner_slot_is_freed_after_failed_start(host, commit_settings) -> None:
    owner = CommitSessionOwner()

    with pytest.raises(SpawnError):
        owner.start(host, commit_settings("gitabra-no-such-git commit"))

    assert owner.current is None
    assert owner.finalize(TerminationTrigger.WRITE_POST) is None


def test_module_level_adapters_drive_shared_owner(host, make_fake_git, commit_settings):
    session = start_commit(host, commit_settings(make_fake_git()))

    report = finish_commit(TerminationTrigger.WIN_LEAVE)

    assert report is session.report
    assert finish_commit(TerminationTrigger.WIPEOUT) is None


def test_owner_counts_a_session_as_occupied_before_it_starts(
    host,
    make_fake_git,
    commit_settings,
    monkeypatch,
) -> None:
    owner = CommitSessionOwner()
    settings = commit_settings(make_fake_git())
    real_start = CommitSession.start
    competing: list[str] = []

    def start_after_competitor(self) -> None:
        with pytest.raises(SessionActiveError, match="already idle"):
            owner.start(host, settings)
        competing.append("rejected")
        real_start(self)

    monkeypatch.setattr(CommitSession, "start", start_after_competitor)

    first = owner.start(host, settings)

    assert competing == ["rejected"]
    assert owner.current is first
    assert first.state is CommitState.EDITING
    assert host.opened == [first.message_path]
    owner.finalize(TerminationTrigger.WRITE_POST)
    assert owner.current is None
