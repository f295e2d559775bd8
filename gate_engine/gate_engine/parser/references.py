"""Reference extraction: recover ``alias -> table`` and ``table.column`` usage
from SQL text without a grammar.

Two passes run over one token stream from :mod:`gate_engine.parser.lexer`:

1. **Alias pass** -- every ``FROM``/``JOIN`` item of the form
   ``<table> [AS] <alias>`` records ``alias -> table``.  A schema-qualified
   table maps to its last name segment, comma-separated ``FROM`` items are
   each recorded, and a later binding of the same alias wins.  Tables used
   without an alias add nothing.
2. **Reference pass** -- every ``<ident> . <ident>`` pair becomes a
   :class:`Reference`, in source order.

The reference pass is deliberately over-inclusive: it does not try to tell
a column reference from a schema-qualified table name or any other dotted
pair.  Anything that does not resolve is reported by the validator, so
ambiguity fails closed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from gate_engine.models.reports import ExtractedReferences, Reference
from gate_engine.models.schema import Dialect
from gate_engine.parser.lexer import LexerConfig, Token, TokenKind, tokenize

logger = logging.getLogger(__name__)

# Words that can follow a FROM/JOIN table but are never an alias.
DEFAULT_RESERVED_WORDS: frozenset[str] = frozenset(
    {
        "AND",
        "AS",
        "CONNECT",
        "CROSS",
        "EXCEPT",
        "FETCH",
        "FOR",
        "FROM",
        "FULL",
        "GROUP",
        "HAVING",
        "INNER",
        "INTERSECT",
        "INTO",
        "JOIN",
        "LATERAL",
        "LEFT",
        "LIMIT",
        "MINUS",
        "NATURAL",
        "OFFSET",
        "ON",
        "ONLY",
        "OR",
        "ORDER",
        "OUTER",
        "PIVOT",
        "QUALIFY",
        "RETURNING",
        "RIGHT",
        "SELECT",
        "SET",
        "START",
        "TABLESAMPLE",
        "UNION",
        "UNPIVOT",
        "USING",
        "VALUES",
        "WHERE",
        "WINDOW",
        "WITH",
    }
)

_CLAUSE_KEYWORDS: frozenset[str] = frozenset({"FROM", "JOIN"})


@dataclass(frozen=True)
class ExtractorConfig:
    """Immutable extraction rules, swappable per dialect."""

    lexer: LexerConfig = field(default_factory=LexerConfig)
    reserved_words: frozenset[str] = DEFAULT_RESERVED_WORDS


class ReferenceExtractor:
    """Extracts the alias map and dotted references from SQL text.

    Instances hold only immutable configuration and can be shared freely
    between threads and requests.
    """

    def __init__(self, config: ExtractorConfig | None = None) -> None:
        self._config = config or ExtractorConfig()

    @classmethod
    def for_dialect(cls, dialect: Dialect | str) -> ReferenceExtractor:
        return cls(ExtractorConfig(lexer=LexerConfig.for_dialect(dialect)))

    @property
    def config(self) -> ExtractorConfig:
        return self._config

    def extract(self, sql: str) -> ExtractedReferences:
        """Return ``(alias_map, references)`` for *sql*.

        Both results may be empty; that is a valid outcome, not an error.
        """
        tokens = tokenize(sql, self._config.lexer)
        alias_map = self._build_alias_map(tokens)
        references = self._collect_references(tokens)
        logger.debug(
            "Extracted %d alias(es) and %d reference(s) from %d token(s)",
            len(alias_map),
            len(references),
            len(tokens),
        )
        return ExtractedReferences(alias_map=alias_map, references=references)

    # ------------------------------------------------------------------
    # Alias pass
    # ------------------------------------------------------------------

    def _build_alias_map(self, tokens: list[Token]) -> dict[str, str]:
        aliases: dict[str, str] = {}
        i = 0
        while i < len(tokens):
            if tokens[i].keyword in _CLAUSE_KEYWORDS:
                i = self._read_items(tokens, i + 1, aliases)
            else:
                i += 1
        return aliases

    def _read_items(self, tokens: list[Token], i: int, aliases: dict[str, str]) -> int:
        """Read ``<table> [AS] <alias>`` items separated by commas."""
        while True:
            i, table = self._read_table(tokens, i)
            if table is None:
                return i
            i, alias = self._read_alias(tokens, i)
            if alias is not None:
                aliases[alias] = table
            if i < len(tokens) and tokens[i].kind is TokenKind.COMMA:
                i += 1
                continue
            return i

    def _read_table(self, tokens: list[Token], i: int) -> tuple[int, str | None]:
        if i >= len(tokens) or not self._is_name(tokens[i]):
            return i, None
        table = tokens[i].normalized
        i += 1
        while i + 1 < len(tokens) and tokens[i].kind is TokenKind.DOT and tokens[i + 1].is_identifier:
            table = tokens[i + 1].normalized
            i += 2
        return i, table

    def _read_alias(self, tokens: list[Token], i: int) -> tuple[int, str | None]:
        if i < len(tokens) and tokens[i].keyword == "AS":
            i += 1
        if i < len(tokens) and self._is_name(tokens[i]):
            return i + 1, tokens[i].normalized
        return i, None

    def _is_name(self, token: Token) -> bool:
        if token.kind is TokenKind.QUOTED:
            return True
        return token.kind is TokenKind.WORD and token.keyword not in self._config.reserved_words

    # ------------------------------------------------------------------
    # Reference pass
    # ------------------------------------------------------------------

    @staticmethod
    def _collect_references(tokens: list[Token]) -> list[Reference]:
        references: list[Reference] = []
        i = 0
        while i + 2 < len(tokens):
            head, dot, tail = tokens[i], tokens[i + 1], tokens[i + 2]
            if head.is_identifier and dot.kind is TokenKind.DOT and tail.is_identifier:
                references.append(Reference(head.normalized, tail.normalized))
                i += 3
            else:
                i += 1
        return references


_DEFAULT_EXTRACTOR = ReferenceExtractor()


def extract_references(sql: str, extractor: ReferenceExtractor | None = None) -> ExtractedReferences:
    """Module-level convenience wrapper around :meth:`ReferenceExtractor.extract`."""
    return (extractor or _DEFAULT_EXTRACTOR).extract(sql)
