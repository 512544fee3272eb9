from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..config import AppConfig, dump_config, load_config
from ..core import BatchConversionService
from ..errors import FatalEnumerationError
from ..models import Converted, DryRunPlanned, Failed, Skipped, TaskOutcome
from ..report import RunReport
from ..settings import get_settings
from ..storage import S3StorageClient, StorageClient
from ..utils import format_kib

console = Console()

app = typer.Typer(help="Batch-convert bucket images to WebP")


def _load_config(path: Path | None) -> AppConfig:
    return load_config(path or get_settings().config_path)


def _build_storage(config: AppConfig, bucket: str | None, concurrency: int) -> StorageClient:
    return S3StorageClient.from_settings(get_settings(), config.storage, bucket, concurrency=concurrency)


def _build_service(config: AppConfig, storage: StorageClient) -> BatchConversionService:
    return BatchConversionService(config, storage)


def _print_outcome(outcome: TaskOutcome) -> None:
    if isinstance(outcome, Skipped):
        console.print(f"[dim]Skipping ({outcome.reason})[/dim]: {escape(outcome.target_key)}")
    elif isinstance(outcome, DryRunPlanned):
        console.print(f"[yellow][DRY RUN][/yellow] Would convert: {escape(outcome.key)}")
    elif isinstance(outcome, Converted):
        console.print(
            f"[green]Converted[/green]: {escape(outcome.target_key)} | "
            f"{format_kib(outcome.original_size)} -> {format_kib(outcome.converted_size)}"
        )
    elif isinstance(outcome, Failed):
        console.print(
            f"[red]Error processing {escape(outcome.key)}[/red]: "
            f"{outcome.error_code} - {escape(str(outcome.cause))}"
        )


def _print_progress(report: RunReport) -> None:
    console.print(
        f"Progress: {report.total_processed}/{report.total_discovered} "
        f"({report.progress_ratio * 100:.1f}%)"
    )


@app.command()
def convert(
    bucket: str | None = typer.Option(None, "--bucket", help="Bucket name (defaults to BUCKET_WEBP_BUCKET)"),
    concurrency: int | None = typer.Option(None, "--concurrency", min=1, help="Maximum conversions in flight"),
    include: str | None = typer.Option(None, "--include", help="Only convert keys under this prefix"),
    exclude: list[str] = typer.Option([], "--exclude", help="Comma-separated prefixes to skip"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report planned conversions without writing"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    try:
        cfg = _load_config(config)
        run_config = cfg.run_config(
            concurrency=concurrency,
            include_prefix=include,
            exclude_prefixes=exclude,
            dry_run=dry_run,
        )
        storage = _build_storage(cfg, bucket, run_config.concurrency)
    except (ValueError, TypeError) as exc:
        console.print(f"[red]Invalid configuration[/red]: {escape(str(exc))}")
        raise typer.Exit(2) from exc

    console.print("Starting batch job...")
    console.print(f"   Concurrency: {run_config.concurrency}")
    console.print(f"   Include: {run_config.include_prefix or '(all)'}")
    console.print(f"   Exclude: {', '.join(run_config.exclude_prefixes) or '(none)'}")
    if run_config.dry_run:
        console.print("   Mode: [yellow]DRY RUN[/yellow] (no changes will be made)")

    service = _build_service(cfg, storage)
    try:
        result = service.run_sync(run_config, on_outcome=_print_outcome, progress=_print_progress)
    except FatalEnumerationError as exc:
        console.print(f"[bold red]Fatal error[/bold red]: {exc.code} - {escape(str(exc))}")
        raise typer.Exit(1) from exc

    report = result.report
    table = Table(title="Run summary")
    table.add_column("Discovered")
    table.add_column("Processed")
    table.add_column("Converted")
    table.add_column("Skipped")
    table.add_column("Dry run")
    table.add_column("Failed")
    table.add_row(
        str(report.total_discovered),
        str(report.total_processed),
        str(report.converted),
        str(report.skipped),
        str(report.planned),
        str(report.failed),
    )
    console.print(table)
    if result.failed_keys_path:
        console.print(f"[yellow]{result.failures.count} files failed.[/yellow] Saved to {result.failed_keys_path}")
    console.print(f"Run log: {result.log_path}")
    if result.log_errors:
        console.print(f"[yellow]{result.log_errors} run log entries could not be written.[/yellow]")
    console.print("[green]Done[/green]")


@app.command()
def show_config(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    console.print_json(dump_config(_load_config(config)))


if __name__ == "__main__":
    app()
