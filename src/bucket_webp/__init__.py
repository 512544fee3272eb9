"""Batch conversion of bucket images to WebP."""

from .config import AppConfig, RunConfig, build_run_config, load_config
from .core import BatchConversionService, BatchRunResult
from .models import Converted, DryRunPlanned, Failed, Skipped, TaskOutcome
from .report import RunReport

__all__ = [
    "AppConfig",
    "BatchConversionService",
    "BatchRunResult",
    "Converted",
    "DryRunPlanned",
    "Failed",
    "RunConfig",
    "RunReport",
    "Skipped",
    "TaskOutcome",
    "build_run_config",
    "load_config",
]
