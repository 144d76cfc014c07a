import base64
import hashlib
import hmac
import json
import time
from typing import Any

import bcrypt
from fastapi import Header

from backend import config
from backend.errors import Forbidden, Unauthorized
from database.db import get_admin_by_id

PIN_ENCODING = "utf-8"
PIN_PATTERN = r"^\d{4,6}$"


# -----------------------------
# PIN hashing
# -----------------------------
def hash_pin(pin: str) -> str:
    """Salted bcrypt hash; the salt is random, so equal PINs hash differently."""
    salt = bcrypt.gensalt(rounds=config.PIN_HASH_ROUNDS)
    return bcrypt.hashpw(pin.encode(PIN_ENCODING), salt).decode("ascii")


def verify_pin(pin: str, pin_hash: str | None) -> bool:
    if not pin or not pin_hash:
        return False
    try:
        return bcrypt.checkpw(pin.encode(PIN_ENCODING), pin_hash.encode("ascii"))
    except (ValueError, UnicodeEncodeError):
        # not a bcrypt hash
        return False


# -----------------------------
# Admin session tokens
# -----------------------------
def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def _sign(payload_b64: str) -> str:
    digest = hmac.new(
        config.SIGNING_KEY.encode("utf-8"),
        payload_b64.encode("ascii"),
        hashlib.sha256,
    ).digest()
    return _b64url_encode(digest)


def issue_session_token(admin_id: int, username: str, *, role: str = "admin") -> tuple[str, dict[str, Any]]:
    now = int(time.time())
    payload = {
        "sub": str(admin_id),
        "username": username,
        "role": role,
        "iat": now,
        "exp": now + config.AUTH_TOKEN_TTL_SECONDS,
    }
    payload_json = json.dumps(payload, separators=(",", ":"), sort_keys=True)
    payload_b64 = _b64url_encode(payload_json.encode("utf-8"))
    token = f"{payload_b64}.{_sign(payload_b64)}"
    return token, payload


def decode_session_token(token: str) -> dict[str, Any] | None:
    if not token or "." not in token:
        return None

    payload_b64, signature = token.split(".", 1)
    expected = _sign(payload_b64)
    if not hmac.compare_digest(signature, expected):
        return None

    try:
        payload = json.loads(_b64url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None

    if not isinstance(payload, dict):
        return None

    sub = payload.get("sub")
    exp = payload.get("exp")
    if not isinstance(sub, str) or not sub.strip():
        return None
    if not isinstance(exp, int) or exp < int(time.time()):
        return None

    return payload


def require_admin(authorization: str | None = Header(default=None)) -> dict[str, Any]:
    """Resolve the bearer token to an existing admin account."""
    if not authorization:
        raise Unauthorized("Missing or invalid authentication token")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("Missing or invalid authentication token")

    payload = decode_session_token(token.strip())
    if not payload:
        raise Unauthorized("Invalid authentication token")

    if payload.get("role") != "admin" or not payload["sub"].isdigit():
        raise Forbidden("User is not an admin")

    admin = get_admin_by_id(int(payload["sub"]))
    if not admin:
        raise Forbidden("User is not an admin")

    return {**admin, "expires_at": payload["exp"], "issued_at": payload["iat"]}
