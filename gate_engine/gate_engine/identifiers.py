"""Identifier normalisation shared by the lexer, the models and the validator."""

from __future__ import annotations

_QUOTE_PAIRS: dict[str, str] = {'"': '"', "`": "`"}


def normalize_identifier(raw: str) -> str:
    """Strip one layer of identifier quoting and lower-case the result.

    ``"Order Items"`` becomes ``order items``; doubled quote characters
    inside a quoted identifier collapse to one.  Bare identifiers are only
    trimmed and lower-cased.
    """
    text = raw.strip()
    if len(text) >= 2 and text[0] in _QUOTE_PAIRS and text[-1] == _QUOTE_PAIRS[text[0]]:
        quote = text[0]
        text = text[1:-1].replace(quote * 2, quote)
    elif text[:1] in _QUOTE_PAIRS:
        # Unterminated quoted identifier: keep everything after the quote.
        text = text[1:]
    return text.lower()
