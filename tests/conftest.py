from __future__ import annotations

import asyncio
from collections import Counter
from pathlib import Path

import pytest

from bucket_webp.config import AppConfig, RuntimeConfig
from bucket_webp.errors import NotFoundError, TranscodeError
from bucket_webp.models import ListPage, ObjectSummary


class FakeStorage:
    """In-memory bucket that records every call it receives."""

    def __init__(self, objects: dict[str, bytes] | None = None, page_size: int = 1000) -> None:
        self.objects: dict[str, bytes] = dict(objects or {})
        self.page_size = page_size
        self.calls: Counter[str] = Counter()
        self.list_tokens: list[str | None] = []
        self.puts: dict[str, tuple[bytes, str, str | None]] = {}
        self.failures: dict[tuple[str, str], Exception] = {}
        self.delays: dict[tuple[str, str], float] = {}

    def fail(self, method: str, key: str, exc: Exception) -> None:
        self.failures[(method, key)] = exc

    def delay(self, method: str, key: str, seconds: float) -> None:
        self.delays[(method, key)] = seconds

    async def _enter(self, method: str, key: str) -> None:
        self.calls[method] += 1
        seconds = self.delays.get((method, key))
        if seconds:
            await asyncio.sleep(seconds)
        exc = self.failures.get((method, key))
        if exc is not None:
            raise exc

    async def list_objects(self, token: str | None = None, prefix: str | None = None) -> ListPage:
        self.list_tokens.append(token)
        await self._enter("list_objects", token or "")
        keys = sorted(key for key in self.objects if not prefix or key.startswith(prefix))
        start = int(token or 0)
        chunk = keys[start : start + self.page_size]
        end = start + len(chunk)
        truncated = end < len(keys)
        return ListPage(
            objects=[ObjectSummary(key=key, size=len(self.objects[key])) for key in chunk],
            is_truncated=truncated,
            next_token=str(end) if truncated else None,
        )

    async def head_object(self, key: str) -> dict[str, object]:
        await self._enter("head_object", key)
        if key not in self.objects:
            raise NotFoundError(f"Object not found: {key}")
        return {"ContentLength": len(self.objects[key])}

    async def get_object(self, key: str) -> bytes:
        await self._enter("get_object", key)
        if key not in self.objects:
            raise NotFoundError(f"Object not found: {key}")
        return self.objects[key]

    async def put_object(self, key: str, body: bytes, content_type: str, visibility: str | None) -> None:
        await self._enter("put_object", key)
        self.puts[key] = (body, content_type, visibility)
        self.objects[key] = body


class FakeTranscoder:
    def __init__(self) -> None:
        self.calls = 0
        self.broken: set[bytes] = set()

    def convert(self, data: bytes, options) -> bytes:  # type: ignore[no-untyped-def]
        self.calls += 1
        if data in self.broken:
            raise TranscodeError("cannot identify image file")
        return b"webp:" + data[: max(1, len(data) // 2)]


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def transcoder() -> FakeTranscoder:
    return FakeTranscoder()


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    runtime = RuntimeConfig(
        output_dir=tmp_path / "runs",
        failed_keys_file=tmp_path / "failed-keys.txt",
    )
    return AppConfig(runtime=runtime)
