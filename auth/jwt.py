"""
JWT-style token creation and verification.

Tokens are base64-encoded JSON payloads signed with HMAC-SHA256.
Secret key is loaded from ``config.jwt_secret`` (env var: ``JWT_SECRET``).

Three token types share the format and are never interchangeable:

  • ``magic``    single-use login link, also stored on the user row
  • ``refresh``  long-lived session token; only the latest one is stored
  • ``access``   short-lived bearer token carried on API calls
"""

from __future__ import annotations

import hashlib
import hmac
import json
import secrets
import time
from base64 import urlsafe_b64decode, urlsafe_b64encode

from config.settings import config
from utils.errors import Unauthenticated

MAGIC = "magic"
REFRESH = "refresh"
ACCESS = "access"


def _sign(raw: bytes) -> str:
    return hmac.new(config.jwt_secret.encode(), raw, hashlib.sha256).hexdigest()


def create_token(user_id: str, token_type: str, expires_in: int) -> str:
    """Create a signed token for ``user_id`` valid for ``expires_in`` seconds."""
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "exp": int(time.time()) + expires_in,
        "jti": secrets.token_hex(8),
    }
    raw = json.dumps(payload).encode()
    return urlsafe_b64encode(raw).decode() + "." + _sign(raw)


def create_access_token(user_id: str) -> str:
    return create_token(user_id, ACCESS, config.access_token_expiry_seconds)


def create_refresh_token(user_id: str) -> str:
    return create_token(user_id, REFRESH, config.session_refresh_expiry_seconds)


def create_magic_link_token(user_id: str) -> str:
    return create_token(user_id, MAGIC, config.magic_link_expiry_seconds)


def verify_token(token: str, expected_type: str = ACCESS) -> str:
    """
    Verify token and return the user id it was issued for.

    Raises ``Unauthenticated`` on a malformed, forged, expired or
    wrong-type token.
    """
    try:
        encoded, sig = token.split(".", 1)
        raw = urlsafe_b64decode(encoded.encode())
        if not hmac.compare_digest(sig, _sign(raw)):
            raise ValueError("bad signature")
        payload = json.loads(raw)
        if payload.get("exp", 0) < time.time():
            raise ValueError("token expired")
        if payload.get("type") != expected_type:
            raise ValueError("wrong token type")
        user_id = payload["sub"]
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        raise Unauthenticated("Invalid or expired token", details={"reason": str(exc)})
    return user_id
