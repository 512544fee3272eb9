from __future__ import annotations

from collections.abc import AsyncIterator

from .config import RunConfig
from .errors import FatalEnumerationError
from .filters import should_process
from .models import KeyPage
from .storage import StorageClient
from .timeouts import run_with_timeout


async def iter_key_pages(storage: StorageClient, config: RunConfig) -> AsyncIterator[KeyPage]:
    """Page through the bucket listing, yielding the keys worth converting.

    The next page is requested only when the consumer asks for it. A failed
    page fetch raises :class:`FatalEnumerationError`: without its
    continuation token the listing cannot be resumed.
    """

    token: str | None = None
    index = 0
    while True:
        try:
            listing = await run_with_timeout(
                storage.list_objects(token, prefix=config.include_prefix),
                config.timeouts.list_s,
                "list_objects_v2",
            )
        except Exception as exc:
            raise FatalEnumerationError(f"Listing page {index + 1} failed: {exc}") from exc
        keys = [item.key for item in listing.objects if should_process(item.key, config)]
        yield KeyPage(index=index, listed=len(listing.objects), keys=keys)
        if not listing.is_truncated or not listing.next_token:
            return
        token = listing.next_token
        index += 1


__all__ = ["iter_key_pages"]
