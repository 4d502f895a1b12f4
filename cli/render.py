from __future__ import annotations

from dataclasses import asdict
from typing import Any, Iterable, Mapping

import typer

from errors import ParseError
from models.records import Reading


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_reading(reading: Reading) -> None:
    echo_heading("Reading")
    echo_key_values(asdict(reading).items())


def render_parse_error(error: ParseError) -> None:
    typer.secho(f"Rejected ({error.reason}): {error}", fg=typer.colors.RED, err=True)


def render_stats(stats: Mapping[str, int]) -> None:
    echo_heading("Ingestion Summary")
    echo_key_values(stats.items())


def render_ports(ports: Iterable[tuple[str, str]]) -> None:
    ports = list(ports)
    echo_heading("Serial Ports")
    if not ports:
        typer.echo("No serial ports found.")
        return
    for device, description in ports:
        typer.echo(f"  - {device}: {description}")
