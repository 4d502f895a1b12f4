from __future__ import annotations
import copy
import json
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo.results import InsertOneResult

from errors import StoreConnectionError


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, ObjectId):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class LocalCollection:
    """JSON-lines backed stand-in for a MongoDB collection."""

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._documents: List[Dict[str, Any]] = []
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def insert_one(self, document: Dict[str, Any]) -> InsertOneResult:
        with self._lock:
            document.setdefault("_id", ObjectId())
            stored = copy.deepcopy(document)
            self._append(stored)
            self._documents.append(stored)
        return InsertOneResult(stored["_id"], acknowledged=True)

    def find(self) -> list[Dict[str, Any]]:
        """Return deep copies of all stored documents in insertion order."""

        with self._lock:
            return [copy.deepcopy(document) for document in self._documents]

    def count_documents(self) -> int:
        with self._lock:
            return len(self._documents)

    def _append(self, document: Dict[str, Any]) -> None:
        if not self.persistence_path:
            return
        line = json.dumps(document, default=_encode, sort_keys=True)
        with self.persistence_path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        with self.persistence_path.open("r", encoding="utf-8") as handle:
            for line in handle:
                if not line.strip():
                    continue
                try:
                    document = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if "timestamp" in document:
                    document["timestamp"] = datetime.fromisoformat(document["timestamp"])
                self._documents.append(document)


class LocalConnectionManager:
    """Connection contract for ``file://`` store URIs."""

    def __init__(self, root_path: Path, database_name: str, collection_name: str) -> None:
        self.root_path = root_path
        self.database_name = database_name
        self.collection_name = collection_name
        self._collection: Optional[LocalCollection] = None

    @property
    def collection_path(self) -> Path:
        return self.root_path / self.database_name / f"{self.collection_name}.jsonl"

    def connect(self) -> LocalCollection:
        if self._collection is None:
            try:
                self._collection = LocalCollection(
                    name=self.collection_name, persistence_path=self.collection_path
                )
            except OSError as exc:
                raise StoreConnectionError(
                    f"Cannot open local store at {self.collection_path}: {exc}"
                ) from exc
        return self._collection

    def ping(self) -> bool:
        return self._collection is not None and self.collection_path.parent.is_dir()

    def close(self) -> None:
        self._collection = None
