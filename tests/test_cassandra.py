import pytest

from janus_gateway.cassandra import (
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_SLEEP_INCREMENT,
    ENV_RETRY_ATTEMPTS,
    ENV_SLEEP_INCREMENT,
    NotFoundError,
    RetryIter,
    RetryPolicy,
    RetryQuery,
    RetrySession,
    get_session,
    load_retry_policy,
    set_session_holder,
)


class ScriptedQuery:
    """Returns or raises the scripted outcomes in order."""

    def __init__(self, outcomes=(), rows=()):
        self.outcomes = list(outcomes)
        self.calls = 0
        self.rows = list(rows)
        self.pages = []

    def _next(self):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def execute(self):
        return self._next()

    def scan(self):
        return self._next()

    def iter(self):
        return ScriptedIter(self.rows)

    def page_state(self, state):
        self.pages.append(("state", state))
        return ScriptedQuery([None])

    def page_size(self, n):
        self.pages.append(("size", n))
        return ScriptedQuery([None])


class ScriptedIter:
    def __init__(self, rows, close_failures=0):
        self.rows = list(rows)
        self.close_failures = close_failures
        self.closed = 0

    def scan(self):
        return self.rows.pop(0) if self.rows else None

    def will_switch_page(self):
        return False

    def page_state(self):
        return b"state"

    def close(self):
        self.closed += 1
        if self.close_failures:
            self.close_failures -= 1
            raise RuntimeError("timeout")


class NamedHolder:
    def __init__(self, session):
        self.session = session

    def get_session(self):
        return self.session

    def close_session(self):
        pass


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def policy(sleeps):
    return RetryPolicy(attempts=3, sleep_increment=1, sleep=sleeps.append)


@pytest.fixture
def clear_holder():
    yield
    set_session_holder(None)


def test_execute_succeeds_first_time(policy, sleeps):
    query = ScriptedQuery([None])
    RetryQuery(query, policy).execute()
    assert query.calls == 1
    assert sleeps == []


def test_execute_retries_with_incremental_sleep(policy, sleeps):
    query = ScriptedQuery([RuntimeError("down"), RuntimeError("down"), None])
    RetryQuery(query, policy).execute()
    assert query.calls == 3
    # first wait is one increment, the second two
    assert sleeps == [1, 2]


def test_execute_raises_last_error_after_all_attempts(policy, sleeps):
    query = ScriptedQuery([RuntimeError("a"), RuntimeError("b"), RuntimeError("c")])
    with pytest.raises(RuntimeError, match="c"):
        RetryQuery(query, policy).execute()
    assert query.calls == policy.attempts
    assert len(sleeps) == policy.attempts
    assert sleeps == sorted(sleeps)


def test_scan_returns_row(policy):
    query = ScriptedQuery([RuntimeError("down"), ("value",)])
    assert RetryQuery(query, policy).scan() == ("value",)


def test_scan_not_found_is_not_retried(policy, sleeps):
    query = ScriptedQuery([NotFoundError()])
    with pytest.raises(NotFoundError):
        RetryQuery(query, policy).scan()
    assert query.calls == 1
    assert sleeps == []


def test_scan_not_found_message_becomes_not_found_error(policy, sleeps):
    query = ScriptedQuery([RuntimeError("not found")])
    with pytest.raises(NotFoundError):
        RetryQuery(query, policy).scan()
    assert sleeps == []


def test_page_state_and_size_wrap_new_queries(policy):
    query = ScriptedQuery()
    paged = RetryQuery(query, policy).page_state(b"abc").page_size(10)
    assert query.pages == [("state", b"abc")]
    paged.execute()
    assert isinstance(paged, RetryQuery)


def test_scan_and_close_passes_every_row(policy):
    rows = [("a",), ("b",), ("c",)]
    seen = []
    RetryIter(ScriptedIter(rows), policy).scan_and_close(lambda row: seen.append(row) or True)
    assert seen == rows


def test_scan_and_close_stops_when_handle_refuses(policy):
    seen = []

    def handle(row):
        seen.append(row)
        return False

    driver_iter = ScriptedIter([("a",), ("b",)])
    RetryIter(driver_iter, policy).scan_and_close(handle)
    assert seen == [("a",)]
    assert driver_iter.closed == 1


def test_scan_and_close_retries_failed_close(policy, sleeps):
    driver_iter = ScriptedIter([("a",)], close_failures=1)
    RetryIter(driver_iter, policy).scan_and_close(lambda row: True)
    assert driver_iter.closed == 2
    assert len(sleeps) == 1


def test_scan_and_close_gives_up(policy):
    driver_iter = ScriptedIter([], close_failures=10)
    with pytest.raises(RuntimeError, match="timeout"):
        RetryIter(driver_iter, policy).scan_and_close(lambda row: True)
    assert driver_iter.closed == policy.attempts


def test_iter_from_query_wraps_rows(policy):
    query = ScriptedQuery(rows=[("x",)])
    result = RetryQuery(query, policy).iter()
    assert result.scan() == ("x",)
    assert result.scan() is None
    assert result.page_state() == b"state"
    assert result.will_switch_page() is False


def test_session_query_passes_statement_and_args(policy):
    calls = []

    class Driver:
        closed = False

        def query(self, stmt, *args):
            calls.append((stmt, args))
            return ScriptedQuery([None])

        def close(self):
            Driver.closed = True

    session = RetrySession(Driver(), policy)
    session.query("DELETE FROM t WHERE name = ?", "n").execute()
    session.close()
    assert calls == [("DELETE FROM t WHERE name = ?", ("n",))]
    assert Driver.closed is True


def test_load_retry_policy_defaults():
    policy = load_retry_policy({})
    assert policy.attempts == DEFAULT_RETRY_ATTEMPTS
    assert policy.sleep_increment == DEFAULT_SLEEP_INCREMENT


def test_load_retry_policy_reads_environment():
    policy = load_retry_policy({ENV_RETRY_ATTEMPTS: "5", ENV_SLEEP_INCREMENT: "2"})
    assert (policy.attempts, policy.sleep_increment) == (5, 2)


def test_load_retry_policy_invalid_values_fall_back():
    policy = load_retry_policy({ENV_RETRY_ATTEMPTS: "many", ENV_SLEEP_INCREMENT: "x"})
    assert policy.attempts == DEFAULT_RETRY_ATTEMPTS
    assert policy.sleep_increment == DEFAULT_SLEEP_INCREMENT


def test_session_holder_round_trip(clear_holder):
    set_session_holder(NamedHolder("session-one"))
    assert get_session() == "session-one"

    set_session_holder(NamedHolder("session-two"))
    assert get_session() == "session-two"


def test_get_session_without_holder():
    set_session_holder(None)
    with pytest.raises(RuntimeError):
        get_session()