"""A repository loaded from JSON files in a directory, watched for writes."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

from .definition import Configuration, ConfigurationChanged, Definition, new_definition
from .memory_repository import InMemoryRepository

log = logging.getLogger(__name__)


def _stamp(path: Path) -> tuple[int, int] | None:
    try:
        status = path.stat()
    except OSError:
        return None
    return status.st_mtime_ns, status.st_size


def parse_definitions(data: str | bytes) -> list[Definition]:
    """Parse a JSON document holding either an array of definitions or one definition.

    A document that is neither yields a single definition with default values.
    """
    try:
        decoded = json.loads(data)
    except ValueError:
        log.exception("Couldn't unmarshal api configuration")
        return [new_definition()]
    if decoded is None:
        return []
    if isinstance(decoded, list):
        try:
            return [Definition.from_dict(item) for item in decoded]
        except (TypeError, ValueError):
            pass
    try:
        return [Definition.from_dict(decoded)]
    except (TypeError, ValueError):
        log.exception("Couldn't unmarshal api configuration")
        return [new_definition()]


class FileSystemRepository(InMemoryRepository):
    """Definitions read from every ``*.json`` file of a directory."""

    poll_interval: float = 1.0

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        super().__init__()
        self._closed = threading.Event()
        self._watched: dict[Path, tuple[int, int] | None] = {}
        for path in sorted(Path(directory).iterdir(), key=lambda entry: entry.name):
            if ".json" not in path.name:
                continue
            try:
                body = path.read_bytes()
            except OSError:
                log.exception("Couldn't load the api definition file %s", path)
                raise
            self._watched[path] = _stamp(path)
            for definition in parse_definitions(body):
                self.add(definition)

    def close(self) -> None:
        """Stop every running watch."""
        self._closed.set()

    def watch(self, stop_event: threading.Event, changes: Any) -> threading.Thread:
        """Poll the loaded files and put a ConfigurationChanged on ``changes`` for each write.

        Polling stops when ``stop_event`` is set or the repository is closed.
        """
        stamps = dict(self._watched)
        thread = threading.Thread(
            target=self._poll,
            args=(stamps, stop_event, changes),
            name="file-repository-watch",
            daemon=True,
        )
        thread.start()
        return thread

    def _poll(
        self,
        stamps: dict[Path, tuple[int, int] | None],
        stop_event: threading.Event,
        changes: Any,
    ) -> None:
        while not (stop_event.is_set() or self._closed.is_set()):
            for path, previous in stamps.items():
                current = _stamp(path)
                if current is None or current == previous:
                    continue
                stamps[path] = current
                try:
                    body = path.read_bytes()
                except OSError:
                    log.exception("Couldn't load the api definition file %s", path)
                    continue
                changes.put(ConfigurationChanged(Configuration(parse_definitions(body))))
            stop_event.wait(self.poll_interval)