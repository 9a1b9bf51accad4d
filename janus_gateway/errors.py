"""Errors raised when working with API definitions."""

from __future__ import annotations

from http import HTTPStatus


class APIError(Exception):
    """An error that carries the HTTP status code it maps to."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    message: str = "internal server error"

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class DefinitionNotFoundError(APIError, LookupError):
    """The API definition was not found in the datastore."""

    status_code = HTTPStatus.NOT_FOUND
    message = "api definition not found"


class NameExistsError(APIError):
    """The API name is already registered in the datastore."""

    status_code = HTTPStatus.CONFLICT
    message = "api name is already registered"


class ListenPathExistsError(APIError):
    """The API listen path is already registered in the datastore."""

    status_code = HTTPStatus.CONFLICT
    message = "api listen path is already registered"


class DBContextNotSetError(APIError):
    """The database request context was not set."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    message = "DB context was not set for this request"