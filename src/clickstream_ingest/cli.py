"""Typer CLI for the clickstream ingestion pipeline."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from clickstream_ingest.checkpoint.store import create_store
from clickstream_ingest.config.loader import load_platform_config
from clickstream_ingest.config.models import PlatformConfig
from clickstream_ingest.errors import IngestError
from clickstream_ingest.observability.logging import configure_logging
from clickstream_ingest.pipeline.runner import Pipeline
from clickstream_ingest.streaming.events import parse_msk_event

console = Console()
app = typer.Typer(name="clickstream", help="Clickstream ingestion CLI")


def _load(config_path: str | None) -> PlatformConfig:
    if config_path is not None and not Path(config_path).exists():
        console.print(f"[red]Config file not found: {config_path}[/red]")
        raise typer.Exit(1)
    return load_platform_config(Path(config_path) if config_path else None)


@app.command()
def validate(
    config_path: str | None = typer.Option(None, "--config", help="Platform YAML"),
) -> None:
    """Validate a configuration file."""
    try:
        config = _load(config_path)
    except (ValueError, TypeError, FileNotFoundError) as exc:
        console.print(f"[red]Validation error:[/red] {exc}")
        raise typer.Exit(1) from exc

    console.print("[green]Valid[/green]")
    console.print(f"  registry:   {config.registry.url}")
    for topic, record_type in config.registry.record_types.items():
        console.print(f"    - {topic} → {record_type.model}")
    console.print(f"  sink:       {config.sink.sink_id} ({config.sink.sink_type})")
    console.print(f"  checkpoint: {config.checkpoint.store_type}")
    console.print(
        f"  delivery:   max_attempts={config.delivery.max_attempts} "
        f"max_records={config.delivery.max_records}"
    )
    console.print(f"  dlq:        {'enabled' if config.dlq.enabled else 'disabled'}")


@app.command()
def replay(
    event_path: str = typer.Argument(..., help="Path to an MSK trigger event JSON"),
    config_path: str | None = typer.Option(None, "--config", help="Platform YAML"),
    request_id: str | None = typer.Option(None, "--request-id"),
) -> None:
    """Run one dispatch from a saved MSK event file."""
    config = _load(config_path)
    configure_logging(config.logging)
    path = Path(event_path)
    if not path.exists():
        console.print(f"[red]Event file not found: {path}[/red]")
        raise typer.Exit(1)
    dispatch = parse_msk_event(json.loads(path.read_text()))

    async def _replay() -> None:
        pipeline = Pipeline(config)
        await pipeline.start()
        try:
            results = await pipeline.dispatch(dispatch, request_id)
        finally:
            await pipeline.stop()

        table = Table(title="Dispatch")
        table.add_column("Partition", style="cyan")
        table.add_column("Records", justify="right")
        table.add_column("Typed", justify="right")
        table.add_column("Generic", justify="right")
        table.add_column("DLQ", justify="right")
        table.add_column("Position", justify="right")
        for r in results:
            table.add_row(
                r.partition_key,
                str(r.records),
                str(r.typed),
                str(r.generic),
                str(r.dead_lettered),
                str(r.position),
            )
        console.print(table)
        console.print(f"watermark: {pipeline.barrier.watermark}")

    try:
        asyncio.run(_replay())
    except IngestError as exc:
        console.print(f"[red]Dispatch failed:[/red] {exc}")
        raise typer.Exit(1) from exc


@app.command()
def watermark(
    config_path: str | None = typer.Option(None, "--config", help="Platform YAML"),
) -> None:
    """Show the persisted watermark and the resume position."""
    config = _load(config_path)
    value = create_store(config.checkpoint).read()
    if value is None:
        console.print("No watermark persisted; resume position: 0")
    else:
        console.print(f"watermark: {value}; resume position: {value + 1}")


if __name__ == "__main__":
    app()
