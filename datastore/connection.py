from __future__ import annotations

from pathlib import Path
from typing import Union
from urllib.parse import unquote, urlparse

from datastore.local_collection import LocalConnectionManager
from datastore.mongo import MongoConnectionManager
from errors import ConfigurationError
from settings import Settings

StoreConnection = Union[MongoConnectionManager, LocalConnectionManager]


def build_store_connection(settings: Settings) -> StoreConnection:
    """Pick the store backend from the URI scheme."""
    settings.require_store()
    assert settings.store_uri is not None and settings.database_name is not None

    parsed = urlparse(settings.store_uri)
    if parsed.scheme in {"mongodb", "mongodb+srv"}:
        return MongoConnectionManager(
            uri=settings.store_uri,
            database_name=settings.database_name,
            collection_name=settings.collection_name,
        )
    if parsed.scheme == "file":
        root = Path(unquote(parsed.netloc + parsed.path))
        return LocalConnectionManager(
            root_path=root,
            database_name=settings.database_name,
            collection_name=settings.collection_name,
        )
    raise ConfigurationError(f"Unsupported store URI scheme {parsed.scheme!r}.")
