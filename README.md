# janus-gateway

Models for the API definitions that an API gateway proxies, their
validation, and repositories that store them:

- `InMemoryRepository`: a dictionary keyed by definition name,
- `FileSystemRepository`: definitions read from the JSON files of a directory, polled for writes,
- `MongoRepository`: documents in the `api_specs` collection,
- `CassandraRepository`: JSON rows in the `api_definition` table, with retrying query wrappers.

## Installation

```
pip install janus-gateway
```

To run the tests:

```
pip install "janus-gateway[test]"
pytest
```

## API definitions (`janus_gateway.definition`)

A `Definition` has a `name`, an `active` flag (default `True`), `proxy`
settings held as a plain dict, a list of `Plugin` (`name`, `enabled`,
`config`) and a `HealthCheck` (`url`, `timeout`).

```python
from janus_gateway.definition import Definition, ValidationError, new_definition

definition = new_definition()
definition.name = "users"
definition.proxy["listen_path"] = "/users/*"
definition.validate()

parsed = Definition.from_json('{"name": "users", "proxy": {"listen_path": "/users/*"}}')
print(parsed.to_dict())
```

`Definition.from_dict` and `Definition.from_json` start from the values of
`new_definition()` and overlay what the document holds; a field of the wrong
JSON type raises `TypeError`.

`validate()` returns nothing when the definition is valid and otherwise raises
`ValidationError`, whose `errors` attribute lists every problem:

- the name is required and may hold only letters, digits and single dashes between them;
- `proxy` must not be `None`;
- a non-empty `health_check.url` must look like a URL.

`Configuration` holds a list of definitions; `equals_to` compares two of them.
`ConfigurationMessage` pairs a `ConfigurationOperation` (`REMOVED`,
`UPDATED`, `ADDED`) with a definition, and `ConfigurationChanged` carries a
whole `Configuration`.

## Errors (`janus_gateway.errors`)

Every error derives from `APIError` and carries an HTTP `status_code`:

| Class                     | Status | Message                                  |
|---------------------------|--------|------------------------------------------|
| `DefinitionNotFoundError` | 404    | api definition not found                 |
| `NameExistsError`         | 409    | api name is already registered           |
| `ListenPathExistsError`   | 409    | api listen path is already registered    |
| `DBContextNotSetError`    | 500    | DB context was not set for this request  |

`DefinitionNotFoundError` is also a `LookupError`.

## Repositories

Every repository has `find_all()` and `close()`. `InMemoryRepository` and
`FileSystemRepository` also have `add`, `remove` and `find_by_name`. `add`
validates first and replaces a definition of the same name. `remove` and
`find_by_name` raise `DefinitionNotFoundError` for an unknown name. All of
them can be used as context managers.

### Choosing one from a DSN

```python
from datetime import timedelta
from janus_gateway.repository import build_repository

with build_repository("file:///etc/janus", timedelta(seconds=5)) as repo:
    for definition in repo.find_all():
        print(definition.name)
```

| Scheme        | Result                                                    |
|---------------|-----------------------------------------------------------|
| `mongodb://`  | `MongoRepository(dsn, refresh_time)`                      |
| `file://`     | `FileSystemRepository("<path>/apis")`                     |
| `cassandra://`| `UnsupportedSchemeError`: build a `CassandraRepository` from a session holder instead |
| anything else | `UnsupportedSchemeError`                                  |

### JSON files (`janus_gateway.file_repository`)

`FileSystemRepository(directory)` loads every file whose name contains
`.json`. A file may hold one definition or an array of them; see
`parse_definitions`. An invalid definition makes the constructor raise
`ValidationError`.

`watch(stop_event, changes)` starts a daemon thread and returns it. The thread
checks the loaded files every `poll_interval` seconds (default 1) for a new
modification time or size. For each changed file it puts a
`ConfigurationChanged` holding that file's definitions on `changes`, which can
be any object with a `put` method, such as `queue.Queue`. It stops when
`stop_event` is set or the repository is closed. `InMemoryRepository.watch`
does nothing.

### MongoDB (`janus_gateway.mongo_repository`)

`MongoRepository(dsn, refresh_time)` needs a DSN that names a database and
pings the server on creation. A DSN it cannot parse raises `ValueError`;
failing to connect or ping raises `ConnectionError`. `find_all` returns the
definitions sorted by name. `remove` raises `DefinitionNotFoundError` when
nothing was deleted.

### Cassandra (`janus_gateway.cassandra_repository`, `janus_gateway.cassandra`)

`CassandraRepository(session_holder, refresh_time)` takes an object with
`get_session()` and `close_session()`, and registers it with
`janus_gateway.cassandra.set_session_holder`; `get_session()` then returns
its session, and raises `RuntimeError` while no holder is set. `find_all`
stops at the first row whose JSON cannot be decoded.

`parse_dsn("/host/system_keyspace/app_keyspace/timeout")` splits such a path
into a tuple. Missing parts come back as `""` or `0`, and a timeout that is
not an integer becomes `0`.

`RetrySession`, `RetryQuery` and `RetryIter` wrap driver objects. A session
has `query(stmt, *args)` and `close()`. A query has `execute()`, `scan()`,
`iter()`, `page_state(state)` and `page_size(n)`. An iterator has `scan()`,
which returns a row or `None`, `will_switch_page()`, `page_state()` and
`close()`.

`RetryQuery.execute`, `RetryQuery.scan` and `RetryIter.scan_and_close(handle)`
are retried under a `RetryPolicy`. After each failure the sleep grows by
`sleep_increment` seconds, and the last error is raised once `attempts` run
out. A "not found" result from `scan` raises `NotFoundError` at once, with no
retry.

`load_retry_policy(environ)` reads `CASSANDRA_RETRY_ATTEMPTS` (default `3`)
and `CASSANDRA_SECONDS_SLEEP_INCREMENT` (default `1`). A value that is not an
integer falls back to its default. The default policy is read from
`os.environ` when the module is imported.

### Listening for changes

`MongoRepository` and `CassandraRepository` also have `listen(stop_event,
messages)` and `watch(stop_event, changes)`. Each starts a daemon thread and
returns it. `listen` takes `ConfigurationMessage` items from the `messages`
queue and applies them as additions, updates or removals, logging any
failure. `watch` puts the result of `find_all()` on `changes` as a
`ConfigurationChanged` every `refresh_time` seconds.

## What this package does not do

It does not proxy requests, run an HTTP server or provide a command-line
program. It only models, validates and stores API definitions.

It bundles no Cassandra driver and does not create keyspaces or tables. You
supply the session holder and driver objects that the Cassandra wrappers use.