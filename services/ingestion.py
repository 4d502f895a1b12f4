"""Serial ingestion orchestration.

The loop is a small state machine (closed -> opening -> listening ->
closed | faulted) driven by the events of a ``SerialLink``. Frames are parsed
on the reader thread; writes are handed to a thread pool so a slow store never
stalls the serial read path.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import closing, contextmanager
from dataclasses import dataclass, field
from functools import partial
from threading import Lock
from typing import Iterator, Optional, Set

from datastore.connection import StoreConnection, build_store_connection
from errors import ParseError, WriteError
from models.schemas import IngestionState, MeasurementRecord
from services.clock import TimestampProvider
from services.framing import FrameReader
from services.parser import RecordParser
from services.persister import MeasurementPersister
from settings import Settings
from transport.serial_link import EventKind, LinkEvent, SerialLink

logger = logging.getLogger(__name__)


@dataclass
class IngestionStats:
    frames: int = 0
    rejected: int = 0
    persisted: int = 0
    failed: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def increment(self, name: str) -> None:
        with self._lock:
            setattr(self, name, getattr(self, name) + 1)

    def as_extra(self) -> dict[str, int]:
        with self._lock:
            return {
                "frames": self.frames,
                "rejected": self.rejected,
                "persisted": self.persisted,
                "failed": self.failed,
            }


@dataclass
class IngestionContext:
    """Resources acquired at startup and shared with the loop."""

    link: SerialLink
    persister: MeasurementPersister
    clock: TimestampProvider
    store: Optional[StoreConnection] = None


class IngestionLoop:
    """Pulls frames from the link, parses, timestamps and persists them."""

    def __init__(
        self,
        context: IngestionContext,
        parser: Optional[RecordParser] = None,
        frame_reader: Optional[FrameReader] = None,
        workers: int = 4,
    ) -> None:
        self.context = context
        self.parser = parser or RecordParser()
        self.frame_reader = frame_reader or FrameReader()
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="persist")
        self.stats = IngestionStats()
        self.state = IngestionState.closed
        self._pending: Set[Future[object]] = set()
        self._pending_lock = Lock()

    @property
    def pending_writes(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def run(self) -> IngestionState:
        """Consume link events until the link closes or faults."""
        self._transition(IngestionState.opening)
        try:
            with closing(self.context.link.events()) as events:
                for event in events:
                    self.dispatch(event)
                    if self.state in {IngestionState.closed, IngestionState.faulted}:
                        break
        finally:
            if self.state in {IngestionState.opening, IngestionState.listening}:
                self._transition(IngestionState.closed)
            logger.info("Ingestion stopped", extra={"state": self.state.value, **self.stats.as_extra()})
        return self.state

    def stop(self) -> None:
        self.context.link.stop()

    def shutdown(self, wait: bool = False) -> None:
        """Release the write pool; ``wait`` blocks until every queued write has finished.

        Callers that close the store afterwards must pass ``wait=True``.
        """
        self.executor.shutdown(wait=wait)

    def dispatch(self, event: LinkEvent) -> None:
        if event.kind is EventKind.opened:
            if self.state is IngestionState.opening:
                self._transition(IngestionState.listening)
                logger.info(
                    "Serial port opened, listening for data",
                    extra={"port": self.context.link.port, "baud_rate": self.context.link.baudrate},
                )
        elif event.kind is EventKind.chunk:
            if self.state is not IngestionState.listening:
                logger.warning(
                    "Dropping %d bytes received outside listening state",
                    len(event.data),
                    extra={"state": self.state.value},
                )
                return
            for frame in self.frame_reader.feed(event.data):
                self.handle_frame(frame)
        elif event.kind is EventKind.error:
            if self.state in {IngestionState.opening, IngestionState.listening}:
                self._transition(IngestionState.faulted)
            logger.error(
                "Serial link error: %s",
                event.error,
                exc_info=event.error,
                extra={"port": self.context.link.port, "state": self.state.value},
            )
        elif event.kind is EventKind.closed:
            if self.state is not IngestionState.faulted:
                self._transition(IngestionState.closed)

    def handle_frame(self, frame: str) -> Optional[Future[object]]:
        """Parse one frame and start its write; ``None`` when the frame is rejected."""
        self.stats.increment("frames")
        logger.debug("Received frame", extra={"frame": frame})
        try:
            reading = self.parser.parse(frame)
        except ParseError as exc:
            self.stats.increment("rejected")
            logger.warning(
                "Skipping frame: %s",
                exc,
                extra={
                    "frame": frame,
                    "reason": exc.reason,
                    "field_index": getattr(exc, "field_index", None),
                    "field_name": getattr(exc, "field_name", None),
                },
            )
            return None

        record = MeasurementRecord.from_parts(reading, self.context.clock.now())
        future = self.executor.submit(self.context.persister.save, record)
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(partial(self._report_write, record))
        return future

    def _report_write(self, record: MeasurementRecord, future: Future[object]) -> None:
        with self._pending_lock:
            self._pending.discard(future)

        exc = future.exception()
        if exc is None:
            self.stats.increment("persisted")
            logger.info(
                "Reading persisted",
                extra={"document_id": str(future.result())},
            )
            return

        self.stats.increment("failed")
        if isinstance(exc, WriteError):
            logger.error(
                "Failed to persist reading taken at %s %s: %s",
                record.date,
                record.time,
                exc,
                extra={"reason": "write failed"},
            )
        else:
            logger.error("Unexpected error while persisting reading", exc_info=exc)

    def _transition(self, state: IngestionState) -> None:
        if state is self.state:
            return
        logger.debug("State %s -> %s", self.state.value, state.value)
        self.state = state


def build_context(settings: Settings, store: StoreConnection) -> IngestionContext:
    """Wire a context around an already connected store."""
    collection = store.connect()
    return IngestionContext(
        link=SerialLink(
            port=settings.serial_port,
            baudrate=settings.baud_rate,
            read_timeout=settings.read_timeout,
        ),
        persister=MeasurementPersister(collection),
        clock=TimestampProvider(settings.timezone_name),
        store=store,
    )


@contextmanager
def open_ingestion_context(settings: Settings) -> Iterator[IngestionContext]:
    """Acquire the store and serial link for one run and release both on exit."""
    store = build_store_connection(settings)
    try:
        context = build_context(settings, store)
        try:
            yield context
        finally:
            context.link.close()
    finally:
        store.close()
