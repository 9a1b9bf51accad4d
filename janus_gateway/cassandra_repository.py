"""A repository that keeps API definitions in a Cassandra table."""

from __future__ import annotations

import json
import logging
import queue
import threading
from datetime import timedelta
from typing import Any

from .cassandra import set_session_holder
from .definition import (
    Configuration,
    ConfigurationChanged,
    ConfigurationMessage,
    ConfigurationOperation,
    Definition,
)

log = logging.getLogger(__name__)


def parse_dsn(dsn: str) -> tuple[str, str, str, int]:
    """Split a ``/host/system_keyspace/app_keyspace/timeout`` path into its parts.

    Missing parts come back empty (or 0 for the timeout); a timeout that is not
    an integer is taken as 0.
    """
    trimmed = dsn.strip()
    if not trimmed:
        return "", "", "", 0
    parts = trimmed.split("/")[1:5]
    parts += [""] * (4 - len(parts))
    host, system_keyspace, app_keyspace, raw_timeout = parts
    timeout = 0
    if raw_timeout:
        try:
            timeout = int(raw_timeout)
        except ValueError:
            log.error("timeout is not an int")
    elif len(trimmed.split("/")) > 4:
        log.error("timeout is not an int")
    return host, system_keyspace, app_keyspace, timeout


class CassandraRepository:
    """API definitions stored as JSON in the ``api_definition`` table."""

    poll_interval: float = 0.1

    def __init__(self, session_holder: Any, refresh_time: float | timedelta) -> None:
        if isinstance(refresh_time, timedelta):
            refresh_time = refresh_time.total_seconds()
        self.session = session_holder
        self._refresh_time = float(refresh_time)
        set_session_holder(session_holder)

    def __enter__(self) -> CassandraRepository:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self.session.close_session()

    def listen(self, stop_event: threading.Event, messages: queue.Queue) -> threading.Thread:
        """Apply each ConfigurationMessage taken from ``messages`` until ``stop_event`` is set."""
        thread = threading.Thread(
            target=self._listen, args=(stop_event, messages),
            name="cassandra-repository-listen", daemon=True,
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
            verb = {
                ConfigurationOperation.ADDED: "add",
                ConfigurationOperation.UPDATED: "update",
                ConfigurationOperation.REMOVED: "remove",
            }[operation]
            log.exception("Could not %s the configuration on the provider", verb)

    def watch(self, stop_event: threading.Event, changes: queue.Queue) -> threading.Thread:
        """Every ``refresh_time`` seconds put the stored definitions on ``changes``."""
        thread = threading.Thread(
            target=self._watch, args=(stop_event, changes),
            name="cassandra-repository-watch", daemon=True,
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
        """Return every stored definition; reading stops at the first that cannot be decoded."""
        results: list[Definition] = []

        def handle(row: Any) -> bool:
            try:
                results.append(Definition.from_json(row[0]))
            except (TypeError, ValueError) as error:
                log.error("error trying to unmarshal definition json: %s", error)
                return False
            return True

        rows = self.session.get_session().query("SELECT definition FROM api_definition").iter()
        try:
            rows.scan_and_close(handle)
        except Exception:
            log.exception("error getting all definitions")
            raise
        return results

    def add(self, definition: Definition) -> None:
        """Validate and store a definition, replacing one of the same name."""
        log.debug("adding: %s", definition.name)
        definition.validate()
        body = json.dumps(definition.to_dict())
        try:
            self.session.get_session().query(
                "UPDATE api_definition SET definition = ? WHERE name = ?",
                body, definition.name,
            ).execute()
        except Exception:
            log.exception("error saving definition %s", definition.name)
            raise
        log.debug("successfully saved definition %s", definition.name)

    def remove(self, name: str) -> None:
        log.debug("removing: %s", name)
        try:
            self.session.get_session().query(
                "DELETE FROM api_definition WHERE name = ?", name
            ).execute()
        except Exception:
            log.exception("error removing definition %s", name)
            raise
        log.debug("successfully removed definition %s", name)