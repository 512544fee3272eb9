from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path

from .models import Converted, DryRunPlanned, Failed, FailureSummary, Skipped, TaskOutcome
from .utils import atomic_write


@dataclass(slots=True)
class RunReport:
    """Counters for one run.

    Mutated only from the scheduler's completion handling, which runs on the
    event loop thread, so no locking is needed.
    """

    started_at: float = field(default_factory=time.time)
    total_discovered: int = 0
    total_processed: int = 0
    converted: int = 0
    skipped: int = 0
    planned: int = 0
    bytes_in: int = 0
    bytes_out: int = 0
    failed_keys: list[str] = field(default_factory=list)

    def record_discovered(self, count: int) -> None:
        self.total_discovered += count

    def record_outcome(self, key: str, outcome: TaskOutcome) -> None:
        if self.total_processed >= self.total_discovered:
            raise RuntimeError(f"Outcome recorded for undiscovered key: {key}")
        self.total_processed += 1
        if isinstance(outcome, Failed):
            self.failed_keys.append(key)
        elif isinstance(outcome, Converted):
            self.converted += 1
            self.bytes_in += outcome.original_size
            self.bytes_out += outcome.converted_size
        elif isinstance(outcome, Skipped):
            self.skipped += 1
        elif isinstance(outcome, DryRunPlanned):
            self.planned += 1

    @property
    def failed(self) -> int:
        return len(self.failed_keys)

    @property
    def progress_ratio(self) -> float:
        if not self.total_discovered:
            return 1.0
        return self.total_processed / self.total_discovered

    def finalize(self) -> FailureSummary:
        return FailureSummary(failed_keys=tuple(self.failed_keys))

    def as_row(self, run_id: str) -> list[str]:
        return [
            run_id,
            time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.started_at)),
            str(self.total_discovered),
            str(self.total_processed),
            str(self.converted),
            str(self.skipped),
            str(self.planned),
            str(self.failed),
            str(self.bytes_in),
            str(self.bytes_out),
        ]


SUMMARY_HEADER = [
    "run_id",
    "timestamp",
    "discovered",
    "processed",
    "converted",
    "skipped",
    "planned",
    "failed",
    "bytes_in",
    "bytes_out",
]


def write_failed_keys(path: Path, summary: FailureSummary) -> Path | None:
    """Persist failed keys one per line; nothing is written for a clean run."""

    if not summary.failed_keys:
        return None
    atomic_write(path, "\n".join(summary.failed_keys) + "\n")
    return path


__all__ = ["RunReport", "SUMMARY_HEADER", "write_failed_keys"]
