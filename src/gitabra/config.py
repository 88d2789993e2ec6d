"""Runtime configuration for jobs, commit sessions and status queries."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True)
class JobSettings:
    """Polling settings shared by every bounded wait."""

    poll_interval_ms: int = 100


@dataclass(slots=True)
class CommitSettings:
    """Commit session settings."""

    command: str = "git commit"
    extra_args: tuple[str, ...] = ()
    handshake_timeout_ms: int = 1_000
    reap_timeout_ms: int = 1_000
    home: Path = field(default_factory=Path.home)
    cwd: Path | None = None


@dataclass(slots=True)
class StatusSettings:
    """Repository status query settings."""

    timeout_ms: int = 1_000
    cwd: Path | None = None


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    jobs: JobSettings = field(default_factory=JobSettings)
    commit: CommitSettings = field(default_factory=CommitSettings)
    status: StatusSettings = field(default_factory=StatusSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults for local use."""

        home = os.getenv("GITABRA_HOME", "").strip()
        return cls(
            jobs=JobSettings(
                poll_interval_ms=int(os.getenv("GITABRA_POLL_INTERVAL_MS", "100")),
            ),
            commit=CommitSettings(
                command=os.getenv("GITABRA_COMMIT_COMMAND", "git commit"),
                handshake_timeout_ms=int(os.getenv("GITABRA_HANDSHAKE_TIMEOUT_MS", "1000")),
                reap_timeout_ms=int(os.getenv("GITABRA_REAP_TIMEOUT_MS", "1000")),
                home=Path(home).expanduser() if home else Path.home(),
            ),
            status=StatusSettings(
                timeout_ms=int(os.getenv("GITABRA_STATUS_TIMEOUT_MS", "1000")),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if timeouts or the commit command are unusable."""

        if self.jobs.poll_interval_ms <= 0:
            raise ValueError("GITABRA_POLL_INTERVAL_MS must be > 0.")
        if not self.commit.command.strip():
            raise ValueError("GITABRA_COMMIT_COMMAND must not be empty.")
        if self.commit.handshake_timeout_ms <= 0:
            raise ValueError("GITABRA_HANDSHAKE_TIMEOUT_MS must be > 0.")
        if self.commit.reap_timeout_ms <= 0:
            raise ValueError("GITABRA_REAP_TIMEOUT_MS must be > 0.")
        if self.status.timeout_ms <= 0:
            raise ValueError("GITABRA_STATUS_TIMEOUT_MS must be > 0.")
