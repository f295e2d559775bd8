"""A small finite lexer for SQL text.

The lexer recognises just enough structure for reference recovery:
bare identifiers, quoted identifiers, single-quoted string literals,
numbers, dots, commas and parentheses.  Whitespace and comments are
dropped; everything else becomes a one-character ``SYMBOL`` token.

It never fails.  Unterminated comments extend to the end of the input.  An
unterminated quote becomes a ``SYMBOL`` and the text after it is lexed as
usual, so a stray quote cannot hide the references that follow it.
Characters it does not understand are passed through as symbols, so any
text (including non-SQL) produces a token stream.

String literals accept doubled quotes as escapes everywhere.  Backslash
escapes are honoured in ``E'...'`` literals and, for dialects that use them
in ordinary strings (MySQL, BigQuery), in every literal.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field

from gate_engine.identifiers import normalize_identifier
from gate_engine.models.schema import Dialect

_WORD_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_$]*")
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?(?:[eE][+-]?\d+)?")
_WHITESPACE_RE = re.compile(r"\s+")


class TokenKind(str, enum.Enum):
    WORD = "WORD"
    QUOTED = "QUOTED"
    STRING = "STRING"
    NUMBER = "NUMBER"
    DOT = "DOT"
    COMMA = "COMMA"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    SYMBOL = "SYMBOL"


_PUNCTUATION: dict[str, TokenKind] = {
    ".": TokenKind.DOT,
    ",": TokenKind.COMMA,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
}


@dataclass(frozen=True)
class Token:
    """One lexical token with its offset in the source text."""

    kind: TokenKind
    text: str
    position: int

    @property
    def is_identifier(self) -> bool:
        return self.kind in (TokenKind.WORD, TokenKind.QUOTED)

    @property
    def keyword(self) -> str:
        """Upper-cased text for bare words, empty string otherwise."""
        return self.text.upper() if self.kind is TokenKind.WORD else ""

    @property
    def normalized(self) -> str:
        return normalize_identifier(self.text)


@dataclass(frozen=True)
class LexerConfig:
    """Dialect-dependent lexing rules."""

    identifier_quotes: frozenset[str] = field(default_factory=lambda: frozenset({'"'}))
    # Backslash escapes the next character inside every string literal.
    backslash_escapes: bool = False

    @classmethod
    def for_dialect(cls, dialect: Dialect | str) -> LexerConfig:
        if Dialect(dialect) in (Dialect.MYSQL, Dialect.BIGQUERY):
            return cls(identifier_quotes=frozenset({'"', "`"}), backslash_escapes=True)
        return cls()


def _scan_quoted(sql: str, start: int, quote: str, *, backslash_escapes: bool = False) -> int | None:
    """Return the offset just past the quoted run starting at *start*.

    A doubled quote character is an escaped quote, not a terminator, and so
    is a backslash-escaped one when *backslash_escapes* is set.  Returns
    ``None`` when the run is never closed.
    """
    i = start + 1
    n = len(sql)
    while i < n:
        ch = sql[i]
        if backslash_escapes and ch == "\\":
            i += 2
            continue
        if ch == quote:
            if i + 1 < n and sql[i + 1] == quote:
                i += 2
                continue
            return i + 1
        i += 1
    return None


def _is_escape_prefix(tokens: list[Token], pos: int) -> bool:
    """True when an ``E``/``e`` word sits directly before the quote at *pos*."""
    if not tokens:
        return False
    prev = tokens[-1]
    return prev.kind is TokenKind.WORD and prev.text in ("E", "e") and prev.position + 1 == pos


def tokenize(sql: str, config: LexerConfig | None = None) -> list[Token]:
    """Split *sql* into tokens, dropping whitespace and comments."""
    if config is None:
        config = LexerConfig()

    tokens: list[Token] = []
    n = len(sql)
    pos = 0

    while pos < n:
        ch = sql[pos]

        if ch.isspace():
            match = _WHITESPACE_RE.match(sql, pos)
            pos = match.end() if match else pos + 1
            continue

        if sql.startswith("--", pos):
            end = sql.find("\n", pos)
            pos = n if end == -1 else end + 1
            continue

        if sql.startswith("/*", pos):
            end = sql.find("*/", pos + 2)
            pos = n if end == -1 else end + 2
            continue

        if ch == "'" or ch in config.identifier_quotes:
            is_string = ch == "'"
            prefixed = is_string and _is_escape_prefix(tokens, pos)
            escaped = is_string and (config.backslash_escapes or prefixed)
            end = _scan_quoted(sql, pos, ch, backslash_escapes=escaped)
            if end is None:
                # Unclosed quote: lex what follows it as ordinary text.
                tokens.append(Token(TokenKind.SYMBOL, ch, pos))
                pos += 1
                continue
            start = tokens.pop().position if prefixed else pos
            kind = TokenKind.STRING if is_string else TokenKind.QUOTED
            tokens.append(Token(kind, sql[start:end], start))
            pos = end
            continue

        match = _WORD_RE.match(sql, pos)
        if match:
            tokens.append(Token(TokenKind.WORD, match.group(), pos))
            pos = match.end()
            continue

        match = _NUMBER_RE.match(sql, pos)
        if match:
            tokens.append(Token(TokenKind.NUMBER, match.group(), pos))
            pos = match.end()
            continue

        tokens.append(Token(_PUNCTUATION.get(ch, TokenKind.SYMBOL), ch, pos))
        pos += 1

    return tokens
