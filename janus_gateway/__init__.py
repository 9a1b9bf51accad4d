"""API definition models, validation, and in-memory, JSON-file, MongoDB and Cassandra repositories."""

__version__ = "0.1.0"