"""schemagate HTTP API: SQL generation, review and schema snapshot management."""

__version__ = "0.1.0"
