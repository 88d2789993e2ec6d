"""Background external commands and bounded waits over them."""

from gitabra.jobs.job import JobConfig, JobHandle, JobStatus, SpawnError, spawn
from gitabra.jobs.sync import POLL_INTERVAL_MS, has_output_line, wait, wait_all, wait_for

__all__ = [
    "POLL_INTERVAL_MS",
    "JobConfig",
    "JobHandle",
    "JobStatus",
    "SpawnError",
    "has_output_line",
    "spawn",
    "wait",
    "wait_all",
    "wait_for",
]
