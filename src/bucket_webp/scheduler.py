from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, Awaitable, Callable

from .models import Failed, KeyPage, TaskOutcome
from .report import RunReport

ConversionTaskFn = Callable[[str], Awaitable[TaskOutcome]]
OutcomeCallback = Callable[[TaskOutcome], None]
ProgressCallback = Callable[[RunReport], None]


class BatchScheduler:
    """Run conversion tasks page by page under a run-wide concurrency cap.

    All keys of a page are submitted at once and the page is drained before
    the next one is requested, so at most one page of pending tasks exists.
    The semaphore outlives page boundaries.
    """

    def __init__(
        self,
        concurrency: int,
        report: RunReport,
        *,
        progress: ProgressCallback | None = None,
        progress_every: int = 50,
        on_outcome: OutcomeCallback | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._concurrency = concurrency
        self._report = report
        self._progress = progress or (lambda _: None)
        self._progress_every = max(1, progress_every)
        self._on_outcome = on_outcome or (lambda _: None)

    @property
    def report(self) -> RunReport:
        return self._report

    async def run(self, pages: AsyncIterable[KeyPage], task: ConversionTaskFn) -> RunReport:
        limiter = asyncio.Semaphore(self._concurrency)
        async for page in pages:
            self._report.record_discovered(len(page.keys))
            if page.keys:
                await asyncio.gather(*(self._dispatch(limiter, key, task) for key in page.keys))
        return self._report

    async def _dispatch(self, limiter: asyncio.Semaphore, key: str, task: ConversionTaskFn) -> None:
        async with limiter:
            try:
                outcome = await task(key)
            except Exception as exc:
                outcome = Failed(key=key, cause=exc)
        self._complete(key, outcome)

    def _complete(self, key: str, outcome: TaskOutcome) -> None:
        report = self._report
        report.record_outcome(key, outcome)
        self._on_outcome(outcome)
        processed = report.total_processed
        if processed % self._progress_every == 0 or processed == report.total_discovered:
            self._progress(report)


__all__ = ["BatchScheduler", "ConversionTaskFn", "OutcomeCallback", "ProgressCallback"]
