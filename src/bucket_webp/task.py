from __future__ import annotations

from .config import RunConfig
from .errors import NotFoundError, TranscodeError
from .filters import derive_target_key
from .models import Converted, DryRunPlanned, Failed, Skipped, TaskOutcome
from .storage import StorageClient
from .timeouts import run_with_timeout
from .transcoder import Transcoder


async def convert_object(
    key: str,
    config: RunConfig,
    storage: StorageClient,
    transcoder: Transcoder,
) -> TaskOutcome:
    """Convert one object and return its terminal outcome.

    The target is written only after a successful transcode, so a failure at
    any step leaves no partial output behind. Errors never escape: they are
    returned as :class:`Failed`.
    """

    target_key = derive_target_key(key, config.target.extension)
    timeouts = config.timeouts

    try:
        await run_with_timeout(storage.head_object(target_key), timeouts.head_s, target_key)
    except NotFoundError:
        pass
    except Exception as exc:
        # Existence unknown is not the same as absent.
        return Failed(key=key, cause=exc)
    else:
        return Skipped(key=key, target_key=target_key, reason="already exists")

    if config.dry_run:
        return DryRunPlanned(key=key, target_key=target_key)

    try:
        body = await run_with_timeout(storage.get_object(key), timeouts.get_s, key)
        try:
            converted = transcoder.convert(body, config.webp)
        except TranscodeError:
            raise
        except Exception as exc:
            raise TranscodeError(f"{type(exc).__name__}: {exc}") from exc
        await run_with_timeout(
            storage.put_object(
                target_key,
                converted,
                config.target.content_type,
                config.target.visibility,
            ),
            timeouts.put_s,
            target_key,
        )
    except Exception as exc:
        return Failed(key=key, cause=exc)

    return Converted(
        key=key,
        target_key=target_key,
        original_size=len(body),
        converted_size=len(converted),
    )


__all__ = ["convert_object"]
