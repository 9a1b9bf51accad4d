"""Retrying wrappers around a Cassandra driver session, query and iterator.

Failed operations are retried with an incremental sleep: the first retry waits
one increment, the second two increments, and so on, up to the configured
number of attempts.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")

CLUSTER_HOST_NAME = "db"
SYSTEM_KEYSPACE = "system"
APP_KEYSPACE = "janus"
TIMEOUT = 300

ENV_RETRY_ATTEMPTS = "CASSANDRA_RETRY_ATTEMPTS"
ENV_SLEEP_INCREMENT = "CASSANDRA_SECONDS_SLEEP_INCREMENT"
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_SLEEP_INCREMENT = 1


class NotFoundError(LookupError):
    """The query matched no row."""

    def __init__(self, message: str = "not found") -> None:
        super().__init__(message)


def _is_not_found(error: BaseException) -> bool:
    return isinstance(error, NotFoundError) or str(error) == "not found"


@dataclass
class RetryPolicy:
    """How many times to try an operation and how much longer to sleep after each failure."""

    attempts: int = DEFAULT_RETRY_ATTEMPTS
    sleep_increment: float = DEFAULT_SLEEP_INCREMENT
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False, repr=False)

    def run(
        self,
        name: str,
        operation: Callable[[], T],
        give_up: Callable[[BaseException], bool] = lambda error: False,
    ) -> T | None:
        """Call ``operation`` until it succeeds, re-raising the last error when attempts run out."""
        delay: float = 0
        last_error: Exception | None = None
        for attempt in range(1, self.attempts + 1):
            try:
                return operation()
            except Exception as error:
                if give_up(error):
                    raise
                last_error = error
                log.warning(
                    "error when running %s(): %s, attempt: %d / %d",
                    name, error, attempt, self.attempts,
                )
                delay += self.sleep_increment
                log.warning("sleeping for %s second", delay)
                self.sleep(delay)
        if last_error is not None:
            raise last_error
        return None


def _read_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key, str(default))
    try:
        return int(raw)
    except ValueError:
        log.error("error trying to get %s value: %s", key, raw)
        return default


def load_retry_policy(environ: Mapping[str, str] | None = None) -> RetryPolicy:
    """Read the retry policy from the environment, falling back to the defaults."""
    if environ is None:
        environ = os.environ
    policy = RetryPolicy(
        attempts=_read_int(environ, ENV_RETRY_ATTEMPTS, DEFAULT_RETRY_ATTEMPTS),
        sleep_increment=_read_int(environ, ENV_SLEEP_INCREMENT, DEFAULT_SLEEP_INCREMENT),
    )
    log.debug("got cassandra retry policy: %r", policy)
    return policy


DEFAULT_POLICY = load_retry_policy()


class RetryIter:
    """An iterator over query results whose closing is retried."""

    def __init__(self, driver_iter: Any, policy: RetryPolicy | None = None) -> None:
        self._iter = driver_iter
        self._policy = policy or DEFAULT_POLICY

    def scan(self) -> Any:
        """Return the next row, or None when there are no more."""
        return self._iter.scan()

    def will_switch_page(self) -> bool:
        return self._iter.will_switch_page()

    def page_state(self) -> bytes:
        return self._iter.page_state()

    def close(self) -> None:
        self._iter.close()

    def scan_and_close(self, handle: Callable[[Any], bool]) -> None:
        """Pass each row to ``handle`` until it returns False, then close; retried on failure."""

        def consume() -> None:
            while (row := self._iter.scan()) is not None:
                if not handle(row):
                    break
            self._iter.close()

        self._policy.run("close", consume)


class RetryQuery:
    """A query whose execution and single-row scan are retried."""

    def __init__(self, driver_query: Any, policy: RetryPolicy | None = None) -> None:
        self._query = driver_query
        self._policy = policy or DEFAULT_POLICY

    def execute(self) -> None:
        self._policy.run("execute", self._query.execute)

    def scan(self) -> Any:
        """Return the first row; raise NotFoundError at once when there is none."""
        try:
            return self._policy.run("scan", self._query.scan, give_up=_is_not_found)
        except Exception as error:
            if _is_not_found(error) and not isinstance(error, NotFoundError):
                log.warning("returning not found")
                raise NotFoundError() from error
            raise

    def iter(self) -> RetryIter:
        return RetryIter(self._query.iter(), self._policy)

    def page_state(self, state: bytes) -> RetryQuery:
        return RetryQuery(self._query.page_state(state), self._policy)

    def page_size(self, n: int) -> RetryQuery:
        return RetryQuery(self._query.page_size(n), self._policy)


class RetrySession:
    """A session whose queries retry on failure."""

    def __init__(self, driver_session: Any, policy: RetryPolicy | None = None) -> None:
        self._session = driver_session
        self._policy = policy or DEFAULT_POLICY

    def query(self, stmt: str, *args: Any) -> RetryQuery:
        return RetryQuery(self._session.query(stmt, *args), self._policy)

    def close(self) -> None:
        self._session.close()


_session_holder: Any = None


def set_session_holder(holder: Any) -> None:
    """Remember the holder whose session ``get_session`` hands out."""
    global _session_holder
    _session_holder = holder


def get_session() -> Any:
    """Return the session of the current holder."""
    if _session_holder is None:
        raise RuntimeError("no cassandra session holder has been set")
    return _session_holder.get_session()