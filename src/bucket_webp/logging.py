from __future__ import annotations

import csv
import json
from dataclasses import asdict, dataclass
from io import StringIO
from pathlib import Path
from typing import Any

from .models import Converted, Failed, TaskOutcome
from .utils import atomic_write


@dataclass(slots=True)
class RunLogEntry:
    run_id: str
    key: str
    target_key: str | None
    status: str
    error_code: str | None
    message: str | None
    original_size: int
    converted_size: int
    elapsed_ms: float

    @classmethod
    def from_outcome(cls, run_id: str, outcome: TaskOutcome, elapsed_ms: float) -> "RunLogEntry":
        failed = isinstance(outcome, Failed)
        converted = isinstance(outcome, Converted)
        return cls(
            run_id=run_id,
            key=outcome.key,
            target_key=None if failed else outcome.target_key,
            status=outcome.status,
            error_code=outcome.error_code if failed else None,
            message=str(outcome.cause) if failed else getattr(outcome, "reason", None),
            original_size=outcome.original_size if converted else 0,
            converted_size=outcome.converted_size if converted else 0,
            elapsed_ms=round(elapsed_ms, 3),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class RunLogger:
    def __init__(self, log_file: Path) -> None:
        self._log_file = log_file

    @property
    def path(self) -> Path:
        return self._log_file

    def append(self, entry: RunLogEntry) -> None:
        self._log_file.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        with self._log_file.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")


def read_summary_csv(path: Path, default_header: list[str]) -> tuple[list[str], list[list[str]]]:
    if not path.exists():
        return default_header, []
    with path.open("r", encoding="utf-8", newline="") as handle:
        reader = list(csv.reader(handle))
    if not reader:
        return default_header, []
    return reader[0], reader[1:]


def write_summary_csv(path: Path, header: list[str], rows: list[list[str]]) -> None:
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(header)
    writer.writerows(rows)
    atomic_write(path, buffer.getvalue())
