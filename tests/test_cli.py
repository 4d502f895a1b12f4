from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterable, Iterator

import pytest
from pymongo.errors import InvalidOperation
from typer.testing import CliRunner

from cli.app import app
from datastore.local_collection import LocalCollection
from errors import StoreConnectionError
from models.schemas import IngestionState
from services.clock import TimestampProvider
from services.ingestion import IngestionContext
from services.persister import MeasurementPersister
from settings import get_settings
from transport.serial_link import EventKind, LinkEvent

FRAME = b"230.5,1.2,276.6,1024.3,50.0,0.98\n"


class StubLoop:
    instances: list["StubLoop"] = []

    def __init__(self, context, workers: int = 4, final_state=IngestionState.closed) -> None:
        self.context = context
        self.workers = workers
        self.final_state = final_state
        self.shutdown_calls: list[bool] = []
        self.store_open_at_shutdown: list[bool] = []
        self.stats = self
        StubLoop.instances.append(self)

    def run(self) -> IngestionState:
        return self.final_state

    def stop(self) -> None:
        pass

    def shutdown(self, wait: bool = False) -> None:
        self.shutdown_calls.append(wait)
        self.store_open_at_shutdown.append(self.context.store.ping())

    def as_extra(self) -> dict[str, int]:
        return {"frames": 3, "rejected": 1, "persisted": 2, "failed": 0}


class ScriptedLink:
    def __init__(self, events: Iterable[LinkEvent]) -> None:
        self.port = "COM4"
        self.baudrate = 115200
        self._events = list(events)

    def events(self) -> Iterator[LinkEvent]:
        yield from self._events

    def stop(self) -> None:
        pass

    def close(self) -> None:
        pass


class SlowClosingCollection(LocalCollection):
    """Refuses inserts once closed, the way a closed MongoClient does."""

    def __init__(self, delay: float) -> None:
        super().__init__(name="readings")
        self.delay = delay
        self.closed = False

    def insert_one(self, document):
        time.sleep(self.delay)
        if self.closed:
            raise InvalidOperation("Cannot use MongoClient after close")
        return super().insert_one(document)


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch) -> None:
    # The runner swaps stdio; a handler bound to it would outlive the test.
    monkeypatch.setattr("cli.app.configure_logging", lambda level=None: None)


@pytest.fixture()
def store_env(monkeypatch, tmp_path) -> Iterator[None]:
    monkeypatch.setenv("ENV_FILE", str(tmp_path / "missing.env"))
    monkeypatch.setenv("MONGO_URI", f"file://{tmp_path}")
    monkeypatch.setenv("DB_NAME", "meter")
    get_settings.cache_clear()
    StubLoop.instances.clear()
    yield
    get_settings.cache_clear()


def test_parse_valid_frame(runner: CliRunner) -> None:
    result = runner.invoke(app, ["parse", "230.5,1.2,276.6,1024.3,50.0,0.98"])

    assert result.exit_code == 0
    assert "voltage: 230.5" in result.stdout
    assert "power_factor: 0.98" in result.stdout


def test_parse_invalid_frame_exits_non_zero(runner: CliRunner) -> None:
    result = runner.invoke(app, ["parse", "abc,1.2,276.6,1024.3,50.0,0.98"])

    assert result.exit_code == 1
    assert "Reading" not in result.stdout


def test_ports_lists_devices(monkeypatch, runner: CliRunner) -> None:
    monkeypatch.setattr(
        "cli.app.list_serial_ports", lambda: [("/dev/ttyUSB0", "CP2102 USB to UART")]
    )

    result = runner.invoke(app, ["ports"])

    assert result.exit_code == 0
    assert "/dev/ttyUSB0: CP2102 USB to UART" in result.stdout


def test_ports_without_devices(monkeypatch, runner: CliRunner) -> None:
    monkeypatch.setattr("cli.app.list_serial_ports", lambda: [])

    result = runner.invoke(app, ["ports"])

    assert result.exit_code == 0
    assert "No serial ports found." in result.stdout


def test_run_applies_overrides_and_reports_summary(monkeypatch, runner: CliRunner, store_env) -> None:
    monkeypatch.setattr("cli.app.IngestionLoop", StubLoop)

    result = runner.invoke(app, ["run", "--port", "/dev/ttyUSB3", "--baud", "9600", "--workers", "2"])

    assert result.exit_code == 0, result.output
    (loop,) = StubLoop.instances
    assert loop.context.link.port == "/dev/ttyUSB3"
    assert loop.context.link.baudrate == 9600
    assert loop.workers == 2
    assert loop.shutdown_calls == [True]
    assert loop.store_open_at_shutdown == [True]
    assert "Ingestion Summary" in result.stdout
    assert "persisted: 2" in result.stdout


def test_run_exits_non_zero_when_loop_faults(monkeypatch, runner: CliRunner, store_env) -> None:
    def faulting_loop(context, workers: int = 4) -> StubLoop:
        return StubLoop(context, workers, final_state=IngestionState.faulted)

    monkeypatch.setattr("cli.app.IngestionLoop", faulting_loop)

    result = runner.invoke(app, ["run"])

    assert result.exit_code == 1


def test_run_without_store_settings_fails(monkeypatch, runner: CliRunner, tmp_path) -> None:
    monkeypatch.setenv("ENV_FILE", str(tmp_path / "missing.env"))
    monkeypatch.setenv("MONGO_URI", "")
    monkeypatch.setenv("DB_NAME", "")
    get_settings.cache_clear()
    try:
        result = runner.invoke(app, ["run"])
    finally:
        get_settings.cache_clear()

    assert result.exit_code == 1
    assert "MONGO_URI" in result.output


def test_run_with_unreachable_store_fails(monkeypatch, runner: CliRunner, store_env) -> None:
    def unreachable(settings):
        raise StoreConnectionError("Cannot reach MongoDB: timed out")

    monkeypatch.setattr("cli.app.open_ingestion_context", unreachable)

    result = runner.invoke(app, ["run"])

    assert result.exit_code == 1
    assert "Cannot reach MongoDB" in result.output


def test_run_drains_queued_writes_before_closing_store(monkeypatch, runner: CliRunner, store_env) -> None:
    collections: list[SlowClosingCollection] = []

    @contextmanager
    def scripted_context(settings) -> Iterator[IngestionContext]:
        collection = SlowClosingCollection(delay=0.05)
        collections.append(collection)
        link = ScriptedLink(
            [
                LinkEvent(EventKind.opened),
                LinkEvent(EventKind.chunk, data=FRAME * 3),
                LinkEvent(EventKind.closed),
            ]
        )
        try:
            yield IngestionContext(
                link=link,
                persister=MeasurementPersister(collection),
                clock=TimestampProvider("UTC"),
            )
        finally:
            collection.closed = True

    monkeypatch.setattr("cli.app.open_ingestion_context", scripted_context)

    result = runner.invoke(app, ["run", "--workers", "1"])

    assert result.exit_code == 0, result.output
    (collection,) = collections
    assert collection.count_documents() == 3
    assert "persisted: 3" in result.stdout
    assert "failed: 0" in result.stdout
