from __future__ import annotations

import hashlib
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path

from .config import AppConfig


@dataclass(slots=True)
class RunPaths:
    run_id: str
    base_dir: Path
    log_file: Path


def generate_run_id(prefix: str = "run") -> str:
    epoch_ms = int(time.time() * 1000)
    random_bits = hashlib.sha256(os.urandom(16)).hexdigest()[:8]
    return f"{prefix}-{epoch_ms}-{random_bits}"


def ensure_run_paths(config: AppConfig, run_id: str) -> RunPaths:
    base = config.runtime.output_dir / run_id
    base.mkdir(parents=True, exist_ok=True)
    return RunPaths(run_id=run_id, base_dir=base, log_file=base / config.runtime.log_file)


def atomic_write(path: Path, data: str, encoding: str = "utf-8") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", delete=False, dir=path.parent, encoding=encoding) as tmp:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
    os.replace(tmp.name, path)


def format_kib(size_bytes: int) -> str:
    return f"{size_bytes / 1024:.1f} KB"
