"""Security helpers for headers, input sanitation, and opaque tokens."""
import html
import secrets

import bleach
from flask import request

ANONYMOUS_TOKEN_BYTES = 16


def sanitize_text(value) -> str:
    """Strip markup and surrounding whitespace from user-supplied text.

    The result is stored as plain text, so the entities bleach emits for
    bare ``&``, ``<`` and ``>`` are turned back into characters.
    """
    if value is None:
        return ""
    return html.unescape(bleach.clean(str(value), tags=[], attributes={}, strip=True)).strip()


def apply_security_headers(response, force_https: bool = False):
    """Apply security headers suitable for a JSON API."""
    response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    if force_https or request.is_secure:
        response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
    return response


def generate_anonymous_token() -> str:
    return secrets.token_hex(ANONYMOUS_TOKEN_BYTES)


def is_well_formed_token(value: str | None, min_length: int = 16, max_length: int = 128) -> bool:
    if not value or not (min_length <= len(value) <= max_length):
        return False
    return all(c.isalnum() or c in "-_" for c in value)
