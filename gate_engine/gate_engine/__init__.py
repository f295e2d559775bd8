"""schemagate core engine: SQL safety classification and schema validation."""

__version__ = "0.1.0"
