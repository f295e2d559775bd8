"""Authentication middleware that resolves the owner id from a bearer token.

Extracts ``Authorization: Bearer <token>`` from every request, decodes the
token's payload segment (base64url JSON) and stores its ``sub`` claim on
``request.state.owner_id``.  Every stored snapshot is namespaced by that
owner id.

When ``jwt_secret`` is configured the token must also carry a valid HS256
signature and, if present, an unexpired ``exp`` claim.  Without a secret
the payload is trusted as-is, which is only appropriate behind a gateway
that has already verified the token.

Endpoints listed in ``_PUBLIC_PATHS`` bypass authentication.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = logging.getLogger(__name__)

# Paths that do not require authentication.
_PUBLIC_PATHS: frozenset[str] = frozenset(
    {
        "/api/v1/health",
        "/docs",
        "/openapi.json",
        "/redoc",
        "/favicon.ico",
    }
)

_PUBLIC_PREFIXES: tuple[str, ...] = (
    "/docs",
    "/redoc",
)


class AuthenticationError(Exception):
    """The bearer token is missing, malformed or fails verification."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        super().__init__(message)


def _is_public_path(path: str) -> bool:
    if path in _PUBLIC_PATHS:
        return True
    return any(path.startswith(prefix) for prefix in _PUBLIC_PREFIXES)


def _b64url_decode(segment: str) -> bytes:
    padding = "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(segment + padding)


def decode_owner_id(token: str, secret: str | None = None, *, now: float | None = None) -> str:
    """Return the ``sub`` claim of a three-part bearer token.

    Parameters
    ----------
    token:
        ``header.payload.signature`` in base64url.
    secret:
        When given, the HS256 signature and ``exp`` claim are verified.
    now:
        Clock override for expiry checks.

    Raises
    ------
    AuthenticationError
        With code ``invalid_jwt`` when the token cannot be decoded, carries
        no ``sub`` or fails verification.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise AuthenticationError("invalid_jwt", "Token must have three segments")
    header_b64, payload_b64, signature_b64 = parts

    try:
        payload: Any = json.loads(_b64url_decode(payload_b64))
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        raise AuthenticationError("invalid_jwt", "Token payload is not base64url JSON") from exc
    if not isinstance(payload, dict):
        raise AuthenticationError("invalid_jwt", "Token payload is not a JSON object")

    if secret is not None:
        try:
            header = json.loads(_b64url_decode(header_b64))
            signature = _b64url_decode(signature_b64)
        except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
            raise AuthenticationError("invalid_jwt", "Token header or signature is malformed") from exc
        if not isinstance(header, dict) or header.get("alg") != "HS256":
            raise AuthenticationError("invalid_jwt", "Unsupported token algorithm")
        expected = hmac.new(
            secret.encode("utf-8"),
            f"{header_b64}.{payload_b64}".encode("ascii"),
            hashlib.sha256,
        ).digest()
        if not hmac.compare_digest(expected, signature):
            raise AuthenticationError("invalid_jwt", "Token signature mismatch")
        exp = payload.get("exp")
        if exp is not None:
            if not isinstance(exp, int | float) or (now if now is not None else time.time()) >= exp:
                raise AuthenticationError("invalid_jwt", "Token has expired")

    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub:
        raise AuthenticationError("invalid_jwt", "Token has no 'sub' claim")
    return sub


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Starlette middleware that enforces bearer token authentication.

    On each request the middleware:

    1. Skips public paths (health, docs) and CORS preflight requests.
    2. Extracts the ``Authorization: Bearer <token>`` header.
    3. Decodes (and optionally verifies) the token.
    4. Stores ``owner_id`` on ``request.state``.
    5. Returns a 401 JSON response on failure.
    """

    def __init__(self, app: Any, jwt_secret: str | None = None) -> None:
        super().__init__(app)
        self._secret = jwt_secret or None
        logger.info(
            "AuthenticationMiddleware initialised (signature verification %s)",
            "on" if self._secret else "off",
        )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS" or _is_public_path(request.url.path):
            return await call_next(request)

        auth_header = request.headers.get("authorization", "")
        parts = auth_header.split(None, 1)
        if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
            return JSONResponse(status_code=401, content={"error": "unauthorized"})

        try:
            owner_id = decode_owner_id(parts[1].strip(), self._secret)
        except AuthenticationError as exc:
            logger.info("Rejected bearer token on %s: %s", request.url.path, exc)
            return JSONResponse(status_code=401, content={"error": exc.code})

        request.state.owner_id = owner_id
        return await call_next(request)
