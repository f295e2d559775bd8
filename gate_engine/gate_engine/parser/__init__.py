"""SQL lexing, danger classification and reference extraction."""

from gate_engine.parser.lexer import LexerConfig, Token, TokenKind, tokenize
from gate_engine.parser.references import (
    DEFAULT_RESERVED_WORDS,
    ExtractorConfig,
    ReferenceExtractor,
    extract_references,
)
from gate_engine.parser.sql_guard import (
    DEFAULT_GUARDED_KEYWORDS,
    DangerClassifier,
    classify_sql,
    wrap_with_savepoint,
)

__all__ = [
    "DEFAULT_GUARDED_KEYWORDS",
    "DEFAULT_RESERVED_WORDS",
    "DangerClassifier",
    "ExtractorConfig",
    "LexerConfig",
    "ReferenceExtractor",
    "Token",
    "TokenKind",
    "classify_sql",
    "extract_references",
    "tokenize",
    "wrap_with_savepoint",
]
