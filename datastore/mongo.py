"""MongoDB connection management."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from errors import StoreConnectionError

logger = logging.getLogger(__name__)


class MongoConnectionManager:
    """Owns one long-lived ``MongoClient`` and hands out the target collection."""

    def __init__(
        self,
        uri: str,
        database_name: str,
        collection_name: str,
        client_factory: Callable[..., Any] = MongoClient,
        server_selection_timeout_ms: int = 5000,
    ) -> None:
        self.uri = uri
        self.database_name = database_name
        self.collection_name = collection_name
        self._client_factory = client_factory
        self._server_selection_timeout_ms = server_selection_timeout_ms
        self._client: Optional[Any] = None
        self._collection: Optional[Collection] = None

    def connect(self) -> Collection:
        if self._collection is not None:
            return self._collection

        try:
            client = self._client_factory(
                self.uri, serverSelectionTimeoutMS=self._server_selection_timeout_ms
            )
            client.admin.command("ping")
        except PyMongoError as exc:
            raise StoreConnectionError(f"Cannot reach MongoDB: {exc}") from exc

        self._client = client
        self._collection = client[self.database_name][self.collection_name]
        logger.info(
            "Connected to MongoDB database=%s collection=%s",
            self.database_name,
            self.collection_name,
        )
        return self._collection

    def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            self._client.admin.command("ping")
        except PyMongoError:
            logger.warning("MongoDB health check failed", exc_info=True)
            return False
        return True

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
        self._client = None
        self._collection = None
