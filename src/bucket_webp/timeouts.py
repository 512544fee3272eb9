"""Deadline enforcement for remote storage calls."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from .errors import OperationTimeoutError

T = TypeVar("T")


def _discard_result(future: asyncio.Future) -> None:
    # Retrieve the late outcome so the loop does not report it as unhandled.
    if not future.cancelled():
        future.exception()


async def run_with_timeout(operation: Awaitable[T], timeout_s: float, label: str) -> T:
    """Race *operation* against a timer of *timeout_s* seconds.

    When the timer wins, :class:`OperationTimeoutError` is raised carrying
    *label* and *timeout_s*. The operation is asked to cancel but is not
    awaited: a call already running in a worker thread keeps going and its
    eventual result is dropped. Errors raised by the operation itself are
    propagated unchanged. No retries happen here.
    """

    future = asyncio.ensure_future(operation)
    done, _ = await asyncio.wait({future}, timeout=timeout_s)
    if future in done:
        return future.result()
    future.cancel()
    future.add_done_callback(_discard_result)
    raise OperationTimeoutError(label, timeout_s)


__all__ = ["run_with_timeout"]
