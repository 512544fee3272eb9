import asyncio
import random

import pytest

from bucket_webp.models import Converted, Failed, KeyPage, Skipped
from bucket_webp.report import RunReport
from bucket_webp.scheduler import BatchScheduler


async def pages_of(keys: list[str], size: int):
    for index, start in enumerate(range(0, len(keys), size)):
        chunk = keys[start : start + size]
        yield KeyPage(index=index, listed=len(chunk), keys=chunk)


@pytest.mark.parametrize("concurrency", [1, 3, 5])
def test_never_exceeds_concurrency(concurrency: int) -> None:
    rng = random.Random(concurrency)
    keys = [f"img/{index}.png" for index in range(20)]
    latencies = {key: rng.uniform(0.001, 0.02) for key in keys}
    in_flight = 0
    peak = 0

    async def task(key: str):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        try:
            await asyncio.sleep(latencies[key])
        finally:
            in_flight -= 1
        return Skipped(key=key, target_key=key, reason="test")

    report = RunReport()
    asyncio.run(BatchScheduler(concurrency, report).run(pages_of(keys, 7), task))
    assert peak == concurrency
    assert report.total_processed == 20


def test_limit_is_shared_across_pages() -> None:
    keys = [f"{index}.png" for index in range(6)]
    order: list[str] = []

    async def task(key: str):
        order.append(f"start:{key}")
        await asyncio.sleep(0.001)
        order.append(f"end:{key}")
        return Skipped(key=key, target_key=key, reason="test")

    report = RunReport()
    asyncio.run(BatchScheduler(4, report).run(pages_of(keys, 3), task))
    # Page two starts only after every page-one task has ended.
    last_page_one_end = max(order.index(f"end:{key}") for key in keys[:3])
    first_page_two_start = min(order.index(f"start:{key}") for key in keys[3:])
    assert last_page_one_end < first_page_two_start


def test_failures_are_collected_and_do_not_abort() -> None:
    keys = ["a.png", "b.png", "c.png"]

    async def task(key: str):
        if key == "a.png":
            raise RuntimeError("unexpected")
        if key == "b.png":
            return Failed(key=key, cause=OSError("reset"))
        return Converted(key=key, target_key="c.webp", original_size=10, converted_size=4)

    report = RunReport()
    asyncio.run(BatchScheduler(2, report).run(pages_of(keys, 10), task))
    assert report.total_processed == 3
    assert sorted(report.failed_keys) == ["a.png", "b.png"]
    assert report.converted == 1
    assert report.bytes_in == 10
    assert report.bytes_out == 4


def test_progress_cadence_and_final_signal() -> None:
    keys = [f"{index}.png" for index in range(120)]
    snapshots: list[tuple[int, int]] = []
    outcomes: list[str] = []

    async def task(key: str):
        return Skipped(key=key, target_key=key, reason="test")

    report = RunReport()
    scheduler = BatchScheduler(
        5,
        report,
        progress=lambda r: snapshots.append((r.total_processed, r.total_discovered)),
        progress_every=50,
        on_outcome=lambda outcome: outcomes.append(outcome.key),
    )
    asyncio.run(scheduler.run(pages_of(keys, 120), task))
    assert snapshots == [(50, 120), (100, 120), (120, 120)]
    assert len(outcomes) == 120


def test_empty_pages_are_counted_and_skipped() -> None:
    async def pages():
        yield KeyPage(index=0, listed=4, keys=[])
        yield KeyPage(index=1, listed=1, keys=["x.png"])

    async def task(key: str):
        return Skipped(key=key, target_key=key, reason="test")

    report = RunReport()
    asyncio.run(BatchScheduler(1, report).run(pages(), task))
    assert report.total_discovered == 1
    assert report.total_processed == 1


def test_rejects_non_positive_concurrency() -> None:
    with pytest.raises(ValueError):
        BatchScheduler(0, RunReport())
