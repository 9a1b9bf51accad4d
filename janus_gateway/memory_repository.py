"""A repository that keeps API definitions in memory."""

from __future__ import annotations

import logging
import threading
from typing import Any

from .definition import Definition, ValidationError
from .errors import DefinitionNotFoundError

log = logging.getLogger(__name__)


class InMemoryRepository:
    """API definitions stored in a dictionary keyed by name."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._definitions: dict[str, Definition] = {}

    def __enter__(self) -> InMemoryRepository:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Release the repository; nothing to do for memory storage."""

    def watch(self, stop_event: threading.Event, changes: Any) -> None:
        """Memory storage never changes on its own, so there is nothing to watch."""

    def find_all(self) -> list[Definition]:
        with self._lock:
            return list(self._definitions.values())

    def find_by_name(self, name: str) -> Definition:
        with self._lock:
            try:
                return self._definitions[name]
            except KeyError:
                raise DefinitionNotFoundError() from None

    def add(self, definition: Definition) -> None:
        """Validate and store a definition, replacing one of the same name."""
        with self._lock:
            try:
                definition.validate()
            except ValidationError:
                log.exception("Validation errors")
                raise
            self._definitions[definition.name] = definition

    def remove(self, name: str) -> None:
        with self._lock:
            self.find_by_name(name)
            del self._definitions[name]