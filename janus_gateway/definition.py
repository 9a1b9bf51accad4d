"""API definition models and their validation."""

from __future__ import annotations

import copy
import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any
from urllib.parse import urlsplit

_NAME_RE = re.compile(r"^[A-Za-z0-9]+(?:-[A-Za-z0-9]+)*$")
_MAX_URL_LENGTH = 2083


class ValidationError(ValueError):
    """A definition failed validation; ``errors`` lists every problem found."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


def _field(data: Mapping[str, Any], key: str, expected: type, default: Any) -> Any:
    """Read ``key`` from ``data``, keeping ``default`` when it is missing or null."""
    if data.get(key) is None:
        return default
    value = data[key]
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        raise TypeError(
            f"field {key!r} must be {expected.__name__}, got {type(value).__name__}"
        )
    return value


def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise TypeError(f"{what} must be a JSON object, got {type(data).__name__}")
    return data


def _is_url(value: str) -> bool:
    if not value or len(value) >= _MAX_URL_LENGTH or any(ch.isspace() for ch in value):
        return False
    candidate = value if "://" in value else f"http://{value}"
    try:
        parts = urlsplit(candidate)
        parts.port  # raises on a malformed port
    except ValueError:
        return False
    host = parts.hostname
    if not host:
        return False
    return host == "localhost" or "." in host


@dataclass
class Plugin:
    """A plugin attached to an API."""

    name: str = ""
    enabled: bool = False
    config: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Plugin:
        data = _require_mapping(data, "plugin")
        return cls(
            name=_field(data, "name", str, ""),
            enabled=_field(data, "enabled", bool, False),
            config=copy.deepcopy(dict(_field(data, "config", dict, {}))),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "enabled": self.enabled, "config": copy.deepcopy(self.config)}


@dataclass
class HealthCheck:
    """Health check settings of an API."""

    url: str = ""
    timeout: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> HealthCheck:
        data = _require_mapping(data, "health_check")
        return cls(url=_field(data, "url", str, ""), timeout=_field(data, "timeout", int, 0))

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "timeout": self.timeout}


@dataclass
class Definition:
    """An API to be proxied; ``proxy`` holds the proxy settings as a JSON object."""

    name: str = ""
    active: bool = True
    proxy: dict[str, Any] | None = field(default_factory=dict)
    plugins: list[Plugin] = field(default_factory=list)
    health_check: HealthCheck = field(default_factory=HealthCheck)

    def validate(self) -> None:
        """Raise ValidationError unless the definition is valid."""
        errors: list[str] = []
        if not self.name:
            errors.append("name: name is required")
        elif not _NAME_RE.match(self.name):
            errors.append("name: name cannot contain non-URL friendly characters")
        if self.proxy is None:
            errors.append("proxy: non zero value required")
        if self.health_check.url and not _is_url(self.health_check.url):
            errors.append(f"health_check.url: {self.health_check.url} does not validate as url")
        if errors:
            raise ValidationError(errors)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Definition:
        """Build a definition from a decoded JSON object, starting from the defaults."""
        data = _require_mapping(data, "definition")
        definition = new_definition()
        definition.name = _field(data, "name", str, definition.name)
        definition.active = _field(data, "active", bool, definition.active)
        if "proxy" in data:
            proxy = data["proxy"]
            if proxy is None:
                definition.proxy = None
            else:
                merged = dict(definition.proxy or {})
                merged.update(copy.deepcopy(dict(_require_mapping(proxy, "proxy"))))
                definition.proxy = merged
        plugins = _field(data, "plugins", list, [])
        definition.plugins = [Plugin.from_dict(item) for item in plugins]
        if data.get("health_check") is not None:
            definition.health_check = HealthCheck.from_dict(data["health_check"])
        return definition

    @classmethod
    def from_json(cls, text: str | bytes) -> Definition:
        return cls.from_dict(json.loads(text))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "active": self.active,
            "proxy": copy.deepcopy(self.proxy),
            "plugins": [plugin.to_dict() for plugin in self.plugins],
            "health_check": self.health_check.to_dict(),
        }


def new_definition() -> Definition:
    """Return a definition holding the default values."""
    return Definition(active=True, proxy={}, plugins=[])


@dataclass
class Configuration:
    """All the API definitions."""

    definitions: list[Definition] = field(default_factory=list)

    def equals_to(self, other: Any) -> bool:
        return isinstance(other, Configuration) and self.definitions == other.definitions


class ConfigurationOperation(IntEnum):
    """What happened to a configuration."""

    REMOVED = 0
    UPDATED = 1
    ADDED = 2


@dataclass
class ConfigurationMessage:
    """Tells listeners that a definition was added, updated or removed."""

    operation: ConfigurationOperation
    configuration: Definition


@dataclass
class ConfigurationChanged:
    """Sent when the stored configuration has changed."""

    configurations: Configuration