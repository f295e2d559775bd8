"""HTTP client for an OpenAI-compatible chat completions endpoint."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

import httpx

from gate_engine.models.schema import Dialect
from gate_engine.prompts import GENERATE_SQL_SYSTEM, build_messages

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Response cleanup
# ---------------------------------------------------------------------------

_FENCE_RE = re.compile(r"^\s*```[A-Za-z0-9_-]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)
_MAX_ERROR_BODY = 500


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if present.

    >>> strip_code_fences("```sql\\nSELECT 1\\n```")
    'SELECT 1'
    """
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text.strip()


class LLMError(Exception):
    """The language model could not produce a statement."""


@dataclass
class Completion:
    """One generated statement and the provider's token usage."""

    sql: str
    usage: dict[str, Any] = field(default_factory=dict)


class LLMClient:
    """Thin async wrapper around ``POST /chat/completions``.

    Unlike advisory calls, generation failures are propagated as
    :class:`LLMError` because the caller has nothing to degrade to.

    Parameters
    ----------
    api_key:
        Bearer credential for the provider.  ``None`` or empty makes every
        call fail with :class:`LLMError`.
    base_url:
        API root, e.g. ``https://api.openai.com/v1``.
    model, temperature, top_p:
        Sampling parameters sent with every request.
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o-mini",
        temperature: float = 0.1,
        top_p: float = 0.9,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key or ""
        self._model = model
        self._temperature = temperature
        self._top_p = top_p

        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout),
            headers=headers,
            transport=transport,
        )

    @property
    def model(self) -> str:
        return self._model

    async def generate_sql(
        self,
        request: str,
        *,
        dialect: Dialect | str = Dialect.POSTGRES,
        schema_text: str | None = None,
    ) -> Completion:
        """Generate one SQL statement for a natural-language *request*.

        Raises
        ------
        LLMError
            If no API key is configured, the provider returns a non-success
            status, the request fails, or the completion is empty.
        """
        if not self._api_key:
            raise LLMError("LLM API key is not configured")

        payload: dict[str, Any] = {
            "model": self._model,
            "temperature": self._temperature,
            "top_p": self._top_p,
            "messages": build_messages(request, dialect=dialect, schema_text=schema_text),
        }
        data = await self._post("/chat/completions", payload)
        if not isinstance(data, dict):
            raise LLMError("LLM provider returned an unexpected payload")

        try:
            content = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            content = ""
        sql = strip_code_fences(content)
        if not sql:
            raise LLMError("Model returned an empty SQL statement")

        usage = data.get("usage") or {}
        logger.info(
            "Generated SQL with %s (prompt %s/%s, total_tokens=%s)",
            self._model,
            GENERATE_SQL_SYSTEM.key,
            GENERATE_SQL_SYSTEM.version,
            usage.get("total_tokens"),
        )
        return Completion(sql=sql, usage=usage)

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.post(path, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "LLM provider returned %d for %s: %s",
                exc.response.status_code,
                path,
                exc.response.text[:_MAX_ERROR_BODY],
            )
            raise LLMError(f"LLM provider error {exc.response.status_code}") from exc
        except httpx.RequestError as exc:
            logger.warning("LLM request to %s failed: %s", path, exc)
            raise LLMError(f"LLM request failed: {exc}") from exc
        except ValueError as exc:
            raise LLMError("LLM provider returned invalid JSON") from exc
