"""
Bearer credential handling.

Tokens look like ``cb1.<payload>.<signature>``: the payload is base64url JSON
with ``sub`` (actor id), ``iat`` and ``exp``; the signature is HMAC-SHA256 of
the encoded payload under ``AUTH_TOKEN_SECRET``.
"""

import base64
import hashlib
import hmac
import json
import time
from typing import Any, Dict, Optional, Protocol

from caseboard_ai.core.config import Settings, settings as default_settings
from caseboard_ai.core.errors import AuthError, ConfigurationError

TOKEN_PREFIX = "cb1"
CLOCK_SKEW_SECONDS = 30


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> str:
        """Return the actor id for a valid token."""
        ...


def extract_bearer_token(header: Optional[str]) -> Optional[str]:
    if not header or not isinstance(header, str):
        return None
    scheme, _, value = header.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    value = value.strip()
    return value or None


def mint_token(secret: str, subject: str, ttl_seconds: int = 3600, *, issued_at: Optional[int] = None) -> str:
    if not secret:
        raise ConfigurationError("AUTH_TOKEN_SECRET is not configured", public_message="Auth service not configured")
    if not subject:
        raise ValueError("subject is required")
    now = int(issued_at if issued_at is not None else time.time())
    payload: Dict[str, Any] = {"sub": subject, "iat": now, "exp": now + max(1, int(ttl_seconds))}
    payload_json = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    payload_b64 = _b64url_encode(payload_json)
    return f"{TOKEN_PREFIX}.{payload_b64}.{_sign(secret, payload_b64)}"


class HmacTokenVerifier:
    def __init__(self, secret: str, *, clock_skew_seconds: int = CLOCK_SKEW_SECONDS):
        self.secret = secret or ""
        self.clock_skew_seconds = max(0, clock_skew_seconds)

    @classmethod
    def from_settings(cls, cfg: Settings = default_settings) -> "HmacTokenVerifier":
        return cls(cfg.AUTH_TOKEN_SECRET)

    async def verify(self, token: str) -> str:
        return self.verify_sync(token)

    def verify_sync(self, token: str, *, now_ts: Optional[int] = None) -> str:
        if not self.secret:
            raise ConfigurationError("AUTH_TOKEN_SECRET is not configured", public_message="Auth service not configured")

        try:
            prefix, payload_b64, sig_b64 = token.split(".", 2)
        except ValueError:
            raise AuthError("malformed token") from None
        if prefix != TOKEN_PREFIX:
            raise AuthError("unknown token prefix")
        if not (payload_b64.isascii() and sig_b64.isascii()):
            raise AuthError("malformed token")

        if not hmac.compare_digest(sig_b64, _sign(self.secret, payload_b64)):
            raise AuthError("bad token signature")

        try:
            payload = json.loads(_b64url_decode(payload_b64).decode("utf-8"))
        except (ValueError, UnicodeDecodeError) as e:
            raise AuthError("undecodable token payload") from e
        if not isinstance(payload, dict):
            raise AuthError("token payload is not an object")

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject.strip():
            raise AuthError("token has no subject")
        try:
            exp = int(payload["exp"])
            iat = int(payload.get("iat", 0))
        except (KeyError, TypeError, ValueError):
            raise AuthError("token missing exp/iat") from None

        now = int(now_ts if now_ts is not None else time.time())
        if now > exp + self.clock_skew_seconds:
            raise AuthError("token expired")
        if iat > now + self.clock_skew_seconds:
            raise AuthError("token not yet valid")
        return subject.strip()


def _sign(secret: str, payload_b64: str) -> str:
    mac = hmac.new(secret.encode("utf-8"), payload_b64.encode("ascii"), hashlib.sha256).digest()
    return _b64url_encode(mac)


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64url_decode(s: str) -> bytes:
    pad = "=" * (-len(s) % 4)
    return base64.urlsafe_b64decode((s + pad).encode("ascii"))
