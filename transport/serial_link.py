"""Serial port access for the power meter.

The link turns pyserial's blocking reads into a stream of ``LinkEvent``s
(``opened``, ``chunk``, ``error``, ``closed``) consumed by the ingestion loop.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator, List, Optional

import serial
from serial.tools import list_ports

from errors import SerialLinkError, SerialOpenError, SerialRuntimeError

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    opened = "opened"
    chunk = "chunk"
    error = "error"
    closed = "closed"


@dataclass(frozen=True)
class LinkEvent:
    kind: EventKind
    data: bytes = b""
    error: Optional[SerialLinkError] = None


class SerialLink:
    """Owns one serial connection to the meter."""

    def __init__(
        self,
        port: str,
        baudrate: int = 115200,
        read_timeout: float = 1.0,
        serial_factory: Callable[..., Any] = serial.Serial,
    ) -> None:
        self.port = port
        self.baudrate = baudrate
        self.read_timeout = read_timeout
        self._serial_factory = serial_factory
        self._serial: Optional[Any] = None
        self._stop_requested = threading.Event()

    @property
    def is_open(self) -> bool:
        return self._serial is not None and bool(self._serial.is_open)

    def open(self) -> None:
        if self.is_open:
            return
        try:
            self._serial = self._serial_factory(
                port=self.port, baudrate=self.baudrate, timeout=self.read_timeout
            )
            # Drop whatever the device printed before we were listening.
            self._serial.reset_input_buffer()
        except (serial.SerialException, ValueError) as exc:
            self._serial = None
            raise SerialOpenError(f"Cannot open serial port {self.port}: {exc}") from exc

    def read_chunk(self) -> bytes:
        """Return the bytes currently available, or ``b""`` after the read timeout."""
        if self._serial is None:
            raise SerialRuntimeError(f"Serial port {self.port} is not open.")
        try:
            waiting = self._serial.in_waiting
            return bytes(self._serial.read(waiting or 1))
        except (serial.SerialException, OSError) as exc:
            raise SerialRuntimeError(f"Serial port {self.port} failed: {exc}") from exc

    def close(self) -> None:
        if self._serial is None:
            return
        try:
            self._serial.close()
        except (serial.SerialException, OSError):
            logger.warning("Error while closing serial port", extra={"port": self.port}, exc_info=True)
        finally:
            self._serial = None

    def stop(self) -> None:
        """Ask ``events()`` to finish after the current read."""
        self._stop_requested.set()

    def events(self) -> Iterator[LinkEvent]:
        try:
            self.open()
        except SerialOpenError as exc:
            yield LinkEvent(EventKind.error, error=exc)
            return

        try:
            yield LinkEvent(EventKind.opened)
            while not self._stop_requested.is_set():
                try:
                    chunk = self.read_chunk()
                except SerialRuntimeError as exc:
                    yield LinkEvent(EventKind.error, error=exc)
                    return
                if chunk:
                    yield LinkEvent(EventKind.chunk, data=chunk)
            yield LinkEvent(EventKind.closed)
        finally:
            self.close()

    def __enter__(self) -> "SerialLink":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def list_serial_ports() -> List[tuple[str, str]]:
    return sorted((info.device, info.description) for info in list_ports.comports())
