from __future__ import annotations

import signal
from typing import Optional

import typer

from cli.render import render_parse_error, render_ports, render_reading, render_stats
from errors import ConfigurationError, ParseError, StoreConnectionError
from logging_config import configure_logging
from models.schemas import IngestionState
from services.ingestion import IngestionLoop, open_ingestion_context
from services.parser import RecordParser
from settings import get_settings
from transport.serial_link import list_serial_ports


app = typer.Typer(
    help="Ingest power-meter telemetry from a serial port into MongoDB.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback()
def main() -> None:
    """Entry point for the CLI."""


@app.command("run")
def run_command(
    port: Optional[str] = typer.Option(
        None, "--port", "-p", help="Serial device (defaults to PORT_NAME env or COM4)."
    ),
    baud: Optional[int] = typer.Option(
        None, "--baud", "-b", help="Baud rate (defaults to BAUD_RATE env or 115200)."
    ),
    timezone_name: Optional[str] = typer.Option(
        None, "--timezone", help="Timezone used for the date and time fields."
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", min=1, help="Concurrent store writes."
    ),
) -> None:
    """Listen on the serial port and persist every valid reading."""
    settings = get_settings().with_overrides(
        serial_port=port,
        baud_rate=baud,
        timezone_name=timezone_name,
        persist_workers=workers,
    )
    configure_logging(settings.log_level)

    try:
        with open_ingestion_context(settings) as context:
            loop = IngestionLoop(context, workers=settings.persist_workers)
            previous = signal.signal(signal.SIGTERM, lambda *_: loop.stop())
            try:
                state = loop.run()
            except KeyboardInterrupt:
                state = IngestionState.closed
                typer.echo("Interrupted, closing serial port.")
            finally:
                signal.signal(signal.SIGTERM, previous)
                # Queued writes must land before the context closes the store.
                loop.shutdown(wait=True)
            render_stats(loop.stats.as_extra())
    except (ConfigurationError, StoreConnectionError) as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    if state is IngestionState.faulted:
        raise typer.Exit(code=1)


@app.command("parse")
def parse_command(
    frame: str = typer.Argument(..., help="One frame, e.g. 230.5,1.2,276.6,1024.3,50.0,0.98"),
) -> None:
    """Validate a single frame the way the ingestion loop would."""
    try:
        reading = RecordParser().parse(frame)
    except ParseError as exc:
        render_parse_error(exc)
        raise typer.Exit(code=1)
    render_reading(reading)


@app.command("ports")
def ports_command() -> None:
    """List serial devices visible to this machine."""
    render_ports(list_serial_ports())
