from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path

from .config import AppConfig, RunConfig
from .enumerator import iter_key_pages
from .errors import FatalEnumerationError
from .logging import RunLogEntry, RunLogger, read_summary_csv, write_summary_csv
from .models import FailureSummary, TaskOutcome
from .report import SUMMARY_HEADER, RunReport, write_failed_keys
from .scheduler import BatchScheduler, OutcomeCallback, ProgressCallback
from .storage import StorageClient
from .task import convert_object
from .transcoder import PillowWebPTranscoder, Transcoder
from .utils import ensure_run_paths, generate_run_id


@dataclass(slots=True)
class BatchRunResult:
    """Aggregate results for one bucket conversion run."""

    run_id: str
    report: RunReport
    failures: FailureSummary
    failed_keys_path: Path | None
    log_path: Path
    log_errors: int = 0


class BatchConversionService:
    def __init__(
        self,
        config: AppConfig,
        storage: StorageClient,
        transcoder: Transcoder | None = None,
    ) -> None:
        self._config = config
        self._storage = storage
        self._transcoder = transcoder or PillowWebPTranscoder()

    async def run(
        self,
        run_config: RunConfig,
        *,
        run_id: str | None = None,
        on_outcome: OutcomeCallback | None = None,
        progress: ProgressCallback | None = None,
    ) -> BatchRunResult:
        """Convert every qualifying object in the bucket.

        Per-key failures are collected in the result. A listing failure raises
        :class:`FatalEnumerationError` once the failed keys gathered so far
        have been persisted.
        """

        run_id = run_id or generate_run_id("batch")
        run_paths = ensure_run_paths(self._config, run_id)
        logger = RunLogger(run_paths.log_file)
        report = RunReport()
        log_errors = 0
        scheduler = BatchScheduler(
            run_config.concurrency,
            report,
            progress=progress,
            progress_every=self._config.runtime.progress_every,
            on_outcome=on_outcome,
        )

        async def _task(key: str) -> TaskOutcome:
            nonlocal log_errors
            start = time.perf_counter()
            outcome = await convert_object(key, run_config, self._storage, self._transcoder)
            elapsed = (time.perf_counter() - start) * 1000
            try:
                logger.append(RunLogEntry.from_outcome(run_id, outcome, elapsed))
            except OSError:
                # the outcome stands even when its log line is lost
                log_errors += 1
            return outcome

        try:
            await scheduler.run(iter_key_pages(self._storage, run_config), _task)
        except FatalEnumerationError:
            self._persist(run_id, report)
            raise
        failures, failed_path = self._persist(run_id, report)
        return BatchRunResult(
            run_id=run_id,
            report=report,
            failures=failures,
            failed_keys_path=failed_path,
            log_path=logger.path,
            log_errors=log_errors,
        )

    def run_sync(
        self,
        run_config: RunConfig,
        *,
        run_id: str | None = None,
        on_outcome: OutcomeCallback | None = None,
        progress: ProgressCallback | None = None,
    ) -> BatchRunResult:
        return asyncio.run(self.run(run_config, run_id=run_id, on_outcome=on_outcome, progress=progress))

    def _persist(self, run_id: str, report: RunReport) -> tuple[FailureSummary, Path | None]:
        failures = report.finalize()
        failed_path = write_failed_keys(self._config.runtime.failed_keys_file, failures)
        self._write_run_summary(run_id, report)
        return failures, failed_path

    def _write_run_summary(self, run_id: str, report: RunReport) -> None:
        summary_path = self._config.runtime.output_dir / self._config.runtime.summary_csv
        header, rows = read_summary_csv(summary_path, SUMMARY_HEADER)
        rows.append(report.as_row(run_id))
        write_summary_csv(summary_path, header, rows)


__all__ = ["BatchConversionService", "BatchRunResult"]
