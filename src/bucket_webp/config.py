from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping


CONFIG_FILE = Path("config.toml")
DEFAULT_CONCURRENCY = 5


@dataclass(frozen=True, slots=True)
class TimeoutConfig:
    head_s: float = 8.0
    get_s: float = 15.0
    put_s: float = 15.0
    list_s: float = 10.0

    def validate(self) -> None:
        for name in ("head_s", "get_s", "put_s", "list_s"):
            if getattr(self, name) <= 0:
                raise ValueError(f"Timeout {name} must be positive")


@dataclass(frozen=True, slots=True)
class WebPOptions:
    quality: int = 65
    effort: int = 6
    lossless: bool = False


@dataclass(frozen=True, slots=True)
class TargetFormat:
    extension: str = ".webp"
    content_type: str = "image/webp"
    visibility: str | None = "public-read"


@dataclass(slots=True)
class StorageConfig:
    connect_timeout_s: float = 5.0
    read_timeout_s: float = 10.0
    # None sizes the pool to the run concurrency
    max_pool_connections: int | None = None
    max_attempts: int = 1


@dataclass(slots=True)
class RuntimeConfig:
    output_dir: Path = Path("runs")
    log_file: str = "log.jsonl"
    summary_csv: str = "summary.csv"
    failed_keys_file: Path = Path("failed-keys.txt")
    concurrency: int = DEFAULT_CONCURRENCY
    progress_every: int = 50


@dataclass(frozen=True, slots=True)
class RunConfig:
    """Immutable settings for one batch run."""

    concurrency: int = DEFAULT_CONCURRENCY
    include_prefix: str | None = None
    exclude_prefixes: tuple[str, ...] = ()
    dry_run: bool = False
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    target: TargetFormat = field(default_factory=TargetFormat)
    webp: WebPOptions = field(default_factory=WebPOptions)


@dataclass(slots=True)
class AppConfig:
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    webp: WebPOptions = field(default_factory=WebPOptions)
    target: TargetFormat = field(default_factory=TargetFormat)
    storage: StorageConfig = field(default_factory=StorageConfig)

    def run_config(
        self,
        *,
        concurrency: int | None = None,
        include_prefix: str | None = None,
        exclude_prefixes: Iterable[str] = (),
        dry_run: bool = False,
    ) -> RunConfig:
        return build_run_config(
            concurrency=concurrency if concurrency is not None else self.runtime.concurrency,
            include_prefix=include_prefix,
            exclude_prefixes=exclude_prefixes,
            dry_run=dry_run,
            timeouts=self.timeouts,
            target=self.target,
            webp=self.webp,
        )


def normalize_prefix(prefix: str) -> str:
    """Return *prefix* ending in exactly one ``/`` so it matches whole path segments."""

    return prefix.strip().rstrip("/") + "/"


def split_prefixes(values: Iterable[str]) -> tuple[str, ...]:
    prefixes: list[str] = []
    for value in values:
        for part in value.split(","):
            if part.strip():
                prefixes.append(normalize_prefix(part))
    return tuple(dict.fromkeys(prefixes))


def build_run_config(
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    include_prefix: str | None = None,
    exclude_prefixes: Iterable[str] = (),
    dry_run: bool = False,
    timeouts: TimeoutConfig | None = None,
    target: TargetFormat | None = None,
    webp: WebPOptions | None = None,
) -> RunConfig:
    if concurrency < 1:
        raise ValueError(f"Concurrency must be a positive integer, got {concurrency}")
    timeouts = timeouts or TimeoutConfig()
    timeouts.validate()
    include = normalize_prefix(include_prefix) if include_prefix and include_prefix.strip() else None
    return RunConfig(
        concurrency=concurrency,
        include_prefix=include,
        exclude_prefixes=split_prefixes(exclude_prefixes),
        dry_run=dry_run,
        timeouts=timeouts,
        target=target or TargetFormat(),
        webp=webp or WebPOptions(),
    )


def _read_toml(path: Path) -> Mapping[str, object]:
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _section(raw: Mapping[str, object], name: str) -> Mapping[str, object] | None:
    data = raw.get(name)
    return data if isinstance(data, Mapping) else None


def _build_runtime(data: Mapping[str, object] | None) -> RuntimeConfig:
    if not data:
        return RuntimeConfig()
    return RuntimeConfig(
        output_dir=Path(str(data.get("output_dir", "runs"))),
        log_file=str(data.get("log_file", "log.jsonl")),
        summary_csv=str(data.get("summary_csv", "summary.csv")),
        failed_keys_file=Path(str(data.get("failed_keys_file", "failed-keys.txt"))),
        concurrency=int(data.get("concurrency", DEFAULT_CONCURRENCY)),
        progress_every=max(1, int(data.get("progress_every", 50))),
    )


def _build_timeouts(data: Mapping[str, object] | None) -> TimeoutConfig:
    if not data:
        return TimeoutConfig()
    return TimeoutConfig(
        head_s=float(data.get("head_s", 8.0)),
        get_s=float(data.get("get_s", 15.0)),
        put_s=float(data.get("put_s", 15.0)),
        list_s=float(data.get("list_s", 10.0)),
    )


def _build_webp(data: Mapping[str, object] | None) -> WebPOptions:
    if not data:
        return WebPOptions()
    return WebPOptions(
        quality=int(data.get("quality", 65)),
        effort=int(data.get("effort", 6)),
        lossless=bool(data.get("lossless", False)),
    )


def _build_target(data: Mapping[str, object] | None) -> TargetFormat:
    if not data:
        return TargetFormat()
    visibility = data.get("visibility", "public-read")
    return TargetFormat(
        extension=str(data.get("extension", ".webp")),
        content_type=str(data.get("content_type", "image/webp")),
        visibility=str(visibility) if visibility else None,
    )


def _build_storage(data: Mapping[str, object] | None) -> StorageConfig:
    if not data:
        return StorageConfig()
    pool = data.get("max_pool_connections")
    return StorageConfig(
        connect_timeout_s=float(data.get("connect_timeout_s", 5.0)),
        read_timeout_s=float(data.get("read_timeout_s", 10.0)),
        max_pool_connections=int(pool) if pool is not None else None,
        max_attempts=int(data.get("max_attempts", 1)),
    )


def load_config(path: Path | None = None) -> AppConfig:
    path = path or CONFIG_FILE
    raw = _read_toml(path)
    return AppConfig(
        runtime=_build_runtime(_section(raw, "runtime")),
        timeouts=_build_timeouts(_section(raw, "timeouts")),
        webp=_build_webp(_section(raw, "webp")),
        target=_build_target(_section(raw, "target")),
        storage=_build_storage(_section(raw, "storage")),
    )


def dump_config(config: AppConfig) -> str:
    payload = {
        "runtime": {
            "output_dir": str(config.runtime.output_dir),
            "log_file": config.runtime.log_file,
            "summary_csv": config.runtime.summary_csv,
            "failed_keys_file": str(config.runtime.failed_keys_file),
            "concurrency": config.runtime.concurrency,
            "progress_every": config.runtime.progress_every,
        },
        "timeouts": {
            "head_s": config.timeouts.head_s,
            "get_s": config.timeouts.get_s,
            "put_s": config.timeouts.put_s,
            "list_s": config.timeouts.list_s,
        },
        "webp": {
            "quality": config.webp.quality,
            "effort": config.webp.effort,
            "lossless": config.webp.lossless,
        },
        "target": {
            "extension": config.target.extension,
            "content_type": config.target.content_type,
            "visibility": config.target.visibility,
        },
        "storage": {
            "connect_timeout_s": config.storage.connect_timeout_s,
            "read_timeout_s": config.storage.read_timeout_s,
            "max_pool_connections": config.storage.max_pool_connections,
            "max_attempts": config.storage.max_attempts,
        },
    }
    return json.dumps(payload, indent=2)
