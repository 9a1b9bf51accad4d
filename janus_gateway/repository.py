"""Choosing a repository of API definitions from a DSN."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Protocol, runtime_checkable
from urllib.parse import urlsplit

from .definition import Definition
from .file_repository import FileSystemRepository
from .mongo_repository import MongoRepository

log = logging.getLogger(__name__)

MONGODB = "mongodb"
CASSANDRA = "cassandra"
FILE = "file"


@runtime_checkable
class Repository(Protocol):
    """What every store of API definitions provides."""

    def close(self) -> None: ...

    def find_all(self) -> list[Definition]: ...


class UnsupportedSchemeError(ValueError):
    """The DSN scheme names no repository that can be built from it."""


def build_repository(dsn: str, refresh_time: float | timedelta) -> Repository:
    """Create the repository that the scheme of ``dsn`` selects.

    ``mongodb://`` connects to MongoDB; ``file://<dir>`` loads the JSON files of
    ``<dir>/apis``. Cassandra repositories need a live session holder and are
    built directly from one.
    """
    try:
        url = urlsplit(dsn)
    except ValueError as error:
        raise ValueError(f"error parsing the DSN: {error}") from error

    if url.scheme == MONGODB:
        log.debug("MongoDB configuration chosen")
        return MongoRepository(dsn, refresh_time)
    if url.scheme == CASSANDRA:
        raise UnsupportedSchemeError(
            "cassandra repositories must be built from a session holder"
        )
    if url.scheme == FILE:
        log.debug("File system based configuration chosen")
        api_path = f"{url.path}/apis"
        log.debug("Trying to load API configuration files from %s", api_path)
        return FileSystemRepository(api_path)
    raise UnsupportedSchemeError("selected scheme is not supported to load API definitions")