"""Object storage access.

The batch engine talks to storage through :class:`StorageClient`. Absence of
an object is reported as :class:`~bucket_webp.errors.NotFoundError`; every
other backend failure is a :class:`~bucket_webp.errors.StorageError`.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import DEFAULT_CONCURRENCY, StorageConfig
from .errors import NotFoundError, StorageError
from .models import ListPage, ObjectSummary
from .settings import Settings

NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


class StorageClient(Protocol):
    async def list_objects(self, token: str | None = None, prefix: str | None = None) -> ListPage:  # pragma: no cover - interface
        ...

    async def head_object(self, key: str) -> dict[str, Any]:  # pragma: no cover - interface
        ...

    async def get_object(self, key: str) -> bytes:  # pragma: no cover - interface
        ...

    async def put_object(
        self, key: str, body: bytes, content_type: str, visibility: str | None
    ) -> None:  # pragma: no cover - interface
        ...


def _translate(exc: Exception, key: str) -> Exception:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = str(error.get("Code", "Unknown"))
        if code in NOT_FOUND_CODES:
            return NotFoundError(f"Object not found: {key}")
        message = error.get("Message") or str(exc)
        return StorageError(f"{code}: {message} ({key})", code=code)
    return StorageError(f"{type(exc).__name__}: {exc} ({key})")


def _read_body(body: Any) -> bytes:
    # read and close on the same worker thread; a timed-out read may still be running
    try:
        return body.read()
    finally:
        body.close()


def build_s3_client(settings: Settings, storage: StorageConfig, concurrency: int = DEFAULT_CONCURRENCY):  # type: ignore[no-untyped-def]
    """Build a boto3 S3 client whose connection pool fits ``concurrency`` calls.

    urllib3 does not block when the pool is exhausted; it opens an extra
    connection and discards it afterwards.
    """
    config = Config(
        connect_timeout=storage.connect_timeout_s,
        read_timeout=storage.read_timeout_s,
        max_pool_connections=storage.max_pool_connections or concurrency,
        retries={"max_attempts": storage.max_attempts, "mode": "standard"},
    )
    session = boto3.session.Session(
        aws_access_key_id=settings.access_key_id,
        aws_secret_access_key=settings.secret_access_key,
        region_name=settings.region,
    )
    return session.client("s3", endpoint_url=settings.endpoint_url, config=config)


class S3StorageClient:
    """Async facade over a blocking boto3 S3 client bound to one bucket.

    Each call runs in a worker thread. A call abandoned by a timeout keeps
    its thread and connection until the SDK's own read timeout ends it.
    """

    def __init__(self, client: Any, bucket: str) -> None:
        self._client = client
        self._bucket = bucket

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        storage: StorageConfig,
        bucket: str | None = None,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> "S3StorageClient":
        name = bucket or settings.bucket
        if not name:
            raise ValueError("No bucket configured; pass --bucket or set BUCKET_WEBP_BUCKET")
        return cls(build_s3_client(settings, storage, concurrency), name)

    @property
    def bucket(self) -> str:
        return self._bucket

    async def _call(self, key: str, method: str, **params: Any) -> Any:
        operation = getattr(self._client, method)
        try:
            return await asyncio.to_thread(operation, Bucket=self._bucket, **params)
        except (ClientError, BotoCoreError) as exc:
            raise _translate(exc, key) from exc

    async def list_objects(self, token: str | None = None, prefix: str | None = None) -> ListPage:
        params: dict[str, Any] = {}
        if token:
            params["ContinuationToken"] = token
        if prefix:
            params["Prefix"] = prefix
        data = await self._call(prefix or "<bucket>", "list_objects_v2", **params)
        objects = [
            ObjectSummary(key=str(item["Key"]), size=int(item.get("Size", 0)))
            for item in data.get("Contents", [])
        ]
        return ListPage(
            objects=objects,
            is_truncated=bool(data.get("IsTruncated", False)),
            next_token=data.get("NextContinuationToken"),
        )

    async def head_object(self, key: str) -> dict[str, Any]:
        return await self._call(key, "head_object", Key=key)

    async def get_object(self, key: str) -> bytes:
        response = await self._call(key, "get_object", Key=key)
        try:
            return await asyncio.to_thread(_read_body, response["Body"])
        except (BotoCoreError, OSError) as exc:
            raise StorageError(f"{type(exc).__name__}: {exc} ({key})") from exc

    async def put_object(self, key: str, body: bytes, content_type: str, visibility: str | None) -> None:
        params: dict[str, Any] = {"Key": key, "Body": body, "ContentType": content_type}
        if visibility:
            params["ACL"] = visibility
        await self._call(key, "put_object", **params)


__all__ = ["NOT_FOUND_CODES", "S3StorageClient", "StorageClient", "build_s3_client"]
