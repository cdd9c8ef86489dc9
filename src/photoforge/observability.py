"""Run-level observability helpers for PhotoForge.

Provides lightweight, in-process metrics aggregation that can be surfaced
in CLI output and exported as JSON after a run.
"""

from __future__ import annotations

import json
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class RunMetricsCollector:
    """Collect run-level counters for credential attempts and backoffs."""

    run_started_at_epoch: float = field(default_factory=time.time)
    run_finished_at_epoch: float | None = None

    _attempts_by_credential: Counter[str] = field(default_factory=Counter)
    _status_transitions: Counter[str] = field(default_factory=Counter)
    _backoff_count: int = 0
    _backoff_seconds_total: float = 0.0
    _images_produced: int = 0
    _scenario_fallbacks: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def record_attempt(self, masked: str) -> None:
        """Record one call attempt made with the credential *masked*."""
        with self._lock:
            self._attempts_by_credential[masked] += 1

    def record_backoff(self, seconds: float) -> None:
        with self._lock:
            self._backoff_count += 1
            self._backoff_seconds_total += seconds

    def record_status_change(self, status: str) -> None:
        """Record a credential moving into *status*."""
        with self._lock:
            self._status_transitions[status] += 1

    def record_image(self) -> None:
        with self._lock:
            self._images_produced += 1

    def record_scenario_fallback(self) -> None:
        with self._lock:
            self._scenario_fallbacks += 1

    def finish(self) -> None:
        """Mark the run as finished."""
        with self._lock:
            if self.run_finished_at_epoch is None:
                self.run_finished_at_epoch = time.time()

    def snapshot(self) -> dict[str, Any]:
        """Build a JSON-serializable snapshot of collected metrics."""
        with self._lock:
            now = time.time()
            finished_at = self.run_finished_at_epoch
            duration_seconds = max(
                0.0,
                (finished_at if finished_at is not None else now)
                - self.run_started_at_epoch,
            )
            return {
                "run_started_at_epoch": self.run_started_at_epoch,
                "run_finished_at_epoch": finished_at,
                "duration_seconds": duration_seconds,
                "attempts_total": sum(self._attempts_by_credential.values()),
                "attempts_by_credential": dict(self._attempts_by_credential),
                "status_transitions": dict(self._status_transitions),
                "backoff_count": self._backoff_count,
                "backoff_seconds_total": self._backoff_seconds_total,
                "images_produced": self._images_produced,
                "scenario_fallbacks": self._scenario_fallbacks,
            }


def write_run_summary(path: Path, payload: dict[str, Any]) -> None:
    """Write a run summary payload to disk as UTF-8 JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n")
