"""
Scheduler metrics for job throughput and resilience monitoring.

Simple in-memory counters, exposed on /scheduler/status.
"""
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class JobStats:
    """Per-job counters."""

    ticks: int = 0
    errors: int = 0
    transitions: int = 0
    last_run_at: float | None = None
    last_duration_seconds: float | None = None
    last_error: str | None = None

    def to_dict(self) -> dict:
        return {
            "ticks": self.ticks,
            "errors": self.errors,
            "transitions": self.transitions,
            "lastRunAgeSeconds": (
                round(time.monotonic() - self.last_run_at, 1) if self.last_run_at is not None else None
            ),
            "lastDurationSeconds": (
                round(self.last_duration_seconds, 3) if self.last_duration_seconds is not None else None
            ),
            "lastError": self.last_error,
        }


@dataclass
class SchedulerMetrics:
    """In-memory metrics for the lifecycle scheduler."""

    jobs: dict[str, JobStats] = field(default_factory=dict)
    started_at: float | None = None
    last_heartbeat: float = field(default_factory=time.monotonic)

    def _job(self, name: str) -> JobStats:
        if name not in self.jobs:
            self.jobs[name] = JobStats()
        return self.jobs[name]

    def record_tick(self, name: str, acted_on: int, duration: float) -> None:
        stats = self._job(name)
        stats.ticks += 1
        stats.transitions += acted_on
        stats.last_run_at = time.monotonic()
        stats.last_duration_seconds = duration
        self.heartbeat()

    def record_error(self, name: str, error: Exception) -> None:
        stats = self._job(name)
        stats.errors += 1
        stats.last_error = f"{type(error).__name__}: {error}"
        self.heartbeat()

    def mark_started(self) -> None:
        self.started_at = time.monotonic()

    def heartbeat(self) -> None:
        self.last_heartbeat = time.monotonic()

    def to_dict(self) -> dict:
        return {
            "jobs": {name: stats.to_dict() for name, stats in self.jobs.items()},
            "uptimeSeconds": (
                round(time.monotonic() - self.started_at, 1) if self.started_at is not None else None
            ),
            "heartbeatAgeSeconds": round(time.monotonic() - self.last_heartbeat, 1),
        }


# Singleton metrics instance
_metrics: SchedulerMetrics | None = None


def get_scheduler_metrics() -> SchedulerMetrics:
    global _metrics
    if _metrics is None:
        _metrics = SchedulerMetrics()
    return _metrics


def reset_scheduler_metrics() -> None:
    """Drop all counters (tests)."""
    global _metrics
    _metrics = None
