"""Redaction of Home Assistant credentials in log output."""

from __future__ import annotations

from collections.abc import Iterable
import re

MASK = "***"

# Authorization header value sent with every REST call.
_BEARER_RE = re.compile(r"(?i)\bbearer\s+[\w.~+/-]+=*")
# ``auth`` frames carry the token as ``"access_token": "..."``.
_AUTH_FRAME_RE = re.compile(r'("access_token"\s*:\s*")[^"]*(")')
# Signed URLs and legacy API passwords in query strings.
_QUERY_RE = re.compile(r"(?i)\b(access_token|api_password|authSig)=[^&\s\"']+")
# Long-lived access tokens are JWTs.
_JWT_RE = re.compile(r"\beyJ[\w-]+\.[\w-]+\.[\w-]+")


def redact_text(value: str | None, *, secrets: Iterable[str | None] = ()) -> str:
    """Return ``value`` with access tokens masked.

    ``secrets`` are literal values (normally the configured token) removed
    before the pattern based rules run.
    """

    if not value:
        return ""
    text = str(value)
    for secret in secrets:
        if secret and secret.strip():
            text = text.replace(secret.strip(), MASK)
    text = _BEARER_RE.sub(f"Bearer {MASK}", text)
    text = _AUTH_FRAME_RE.sub(
        lambda match: f"{match.group(1)}{MASK}{match.group(2)}", text
    )
    text = _QUERY_RE.sub(lambda match: f"{match.group(1)}={MASK}", text)
    return _JWT_RE.sub(MASK, text)


def token_hint(token: str | None) -> str:
    """Describe ``token`` for debug logs without revealing it."""

    trimmed = (token or "").strip()
    if not trimmed:
        return "<no token>"
    if len(trimmed) < 16:
        return f"<{len(trimmed)} chars>"
    return f"<{len(trimmed)} chars, ends {trimmed[-4:]}>"


__all__ = ["MASK", "redact_text", "token_hint"]
