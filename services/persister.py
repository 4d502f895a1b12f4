"""Single-attempt write of a measurement record."""

from __future__ import annotations

from typing import Any

from pymongo.errors import PyMongoError

from errors import WriteError
from models.schemas import MeasurementRecord


class MeasurementPersister:
    """Writes one document per call to a long-lived collection handle.

    There is no retry and no buffering: a failed write is raised to the caller
    as ``WriteError`` and the record is dropped.
    """

    def __init__(self, collection: Any) -> None:
        self.collection = collection

    def save(self, record: MeasurementRecord) -> Any:
        document = record.to_document()
        try:
            result = self.collection.insert_one(document)
        except (PyMongoError, OSError) as exc:
            raise WriteError(f"Failed to insert reading: {exc}") from exc
        return result.inserted_id
