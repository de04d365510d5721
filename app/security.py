from __future__ import annotations

import jwt

from app.errors import ClaimDecodeError

_SENSITIVE_HEADERS = {"authorization", "proxy-authorization", "cookie", "x-api-key", "x-amz-security-token"}


def redact_sensitive(value: object) -> object:
    """Mask credential-bearing headers before an event or header map is logged."""
    if isinstance(value, dict):
        redacted: dict[str, object] = {}
        for key, item in value.items():
            if str(key).lower() in _SENSITIVE_HEADERS:
                redacted[str(key)] = "***REDACTED***"
            else:
                redacted[str(key)] = redact_sensitive(item)
        return redacted
    if isinstance(value, list):
        return [redact_sensitive(x) for x in value]
    if isinstance(value, str) and value.lower().startswith("bearer "):
        return "***REDACTED***"
    return value


def credential_from_header(authorization: str | None) -> str:
    parts = (authorization or "").split()
    if len(parts) < 2:
        return ""
    return parts[1]


def extract_unverified_claim(authorization: str | None, *, claim: str = "jti") -> str:
    """Decode the bearer credential without checking its signature and return one claim.

    The result identifies the token for correlation and audit only. Trust is
    granted by the vault authorization call, never by this parse.
    """
    token = credential_from_header(authorization)
    if not token:
        raise ClaimDecodeError("missing bearer credential")
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as exc:
        raise ClaimDecodeError(f"invalid token: {exc}") from exc
    value = payload.get(claim)
    if not isinstance(value, str) or not value:
        raise ClaimDecodeError(f"token is missing the {claim} claim")
    return value
