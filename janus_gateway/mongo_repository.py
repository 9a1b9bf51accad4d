"""A repository that keeps API definitions in a MongoDB collection."""

from __future__ import annotations

import logging
import queue
import threading
from datetime import timedelta
from typing import Any

from pymongo import ASCENDING, MongoClient
from pymongo.errors import PyMongoError
from pymongo.uri_parser import parse_uri

from .definition import (
    Configuration,
    ConfigurationChanged,
    ConfigurationMessage,
    ConfigurationOperation,
    Definition,
)
from .errors import DefinitionNotFoundError

log = logging.getLogger(__name__)

COLLECTION_NAME = "api_specs"
CONNECT_TIMEOUT = 10.0
QUERY_TIMEOUT = 10.0

_VERBS = {
    ConfigurationOperation.ADDED: "add",
    ConfigurationOperation.UPDATED: "update",
    ConfigurationOperation.REMOVED: "remove",
}


class MongoRepository:
    """API definitions stored as documents of the ``api_specs`` collection."""

    poll_interval: float = 0.1

    def __init__(self, dsn: str, refresh_time: float | timedelta) -> None:
        if isinstance(refresh_time, timedelta):
            refresh_time = refresh_time.total_seconds()
        self._refresh_time = float(refresh_time)
        log.debug("Trying to connect to MongoDB at %s", dsn)

        try:
            parsed = parse_uri(dsn)
        except (PyMongoError, ValueError) as error:
            raise ValueError(f"could not parse mongodb connection string: {error}") from error
        database = parsed.get("database")
        if not database:
            raise ValueError("could not parse mongodb connection string: no database given")

        connect_ms = int(CONNECT_TIMEOUT * 1000)
        try:
            client = MongoClient(
                dsn,
                connectTimeoutMS=connect_ms,
                serverSelectionTimeoutMS=connect_ms,
                socketTimeoutMS=int(QUERY_TIMEOUT * 1000),
            )
        except PyMongoError as error:
            raise ConnectionError(f"could not connect to mongodb: {error}") from error

        try:
            client.admin.command("ping")
        except PyMongoError as error:
            client.close()
            raise ConnectionError(f"could not ping mongodb after connect: {error}") from error

        self.client = client
        self.db = client[database]
        self._collection = self.db[COLLECTION_NAME]

    def __enter__(self) -> MongoRepository:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying connection; the repository is unusable afterwards."""
        self.client.close()

    def listen(self, stop_event: threading.Event, messages: queue.Queue) -> threading.Thread:
        """Apply each ConfigurationMessage taken from ``messages`` until ``stop_event`` is set."""
        thread = threading.Thread(
            target=self._listen, args=(stop_event, messages),
            name="mongo-repository-listen", daemon=True,
        )
        thread.start()
        return thread

    def _listen(self, stop_event: threading.Event, messages: queue.Queue) -> None:
        log.debug("Listening for changes on the provider...")
        while not stop_event.is_set():
            try:
                message = messages.get(timeout=self.poll_interval)
            except queue.Empty:
                continue
            self._apply(message)

    def _apply(self, message: ConfigurationMessage) -> None:
        operation = message.operation
        try:
            if operation in (ConfigurationOperation.ADDED, ConfigurationOperation.UPDATED):
                self.add(message.configuration)
            elif operation == ConfigurationOperation.REMOVED:
                self.remove(message.configuration.name)
        except Exception:
            log.exception("Could not %s the configuration on the provider", _VERBS[operation])

    def watch(self, stop_event: threading.Event, changes: queue.Queue) -> threading.Thread:
        """Every ``refresh_time`` seconds put the stored definitions on ``changes``."""
        thread = threading.Thread(
            target=self._watch, args=(stop_event, changes),
            name="mongo-repository-watch", daemon=True,
        )
        thread.start()
        return thread

    def _watch(self, stop_event: threading.Event, changes: queue.Queue) -> None:
        log.debug("Watching Provider...")
        while not stop_event.wait(self._refresh_time):
            try:
                definitions = self.find_all()
            except Exception:
                log.exception("Failed to get configurations on watch")
                continue
            changes.put(ConfigurationChanged(Configuration(definitions)))

    def find_all(self) -> list[Definition]:
        """Return every stored definition, sorted by name."""
        cursor = self._collection.find({}, sort=[("name", ASCENDING)])
        return [Definition.from_dict(document) for document in cursor]

    def add(self, definition: Definition) -> None:
        """Validate and store a definition, replacing one of the same name."""
        definition.validate()
        try:
            self._collection.find_one_and_update(
                {"name": definition.name},
                {"$set": definition.to_dict()},
                upsert=True,
            )
        except PyMongoError:
            log.error("There was an error adding the resource %s", definition.name)
            raise
        log.debug("Resource added: %s", definition.name)

    def remove(self, name: str) -> None:
        """Delete the definition called ``name``; raise DefinitionNotFoundError if absent."""
        try:
            result = self._collection.delete_one({"name": name})
        except PyMongoError:
            log.error("There was an error removing the resource %s", name)
            raise
        if result.deleted_count < 1:
            raise DefinitionNotFoundError()
        log.debug("Resource removed: %s", name)