"""Password hashing, bearer tokens and the current-user dependency."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
import time
from typing import Any
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from . import models
from .config import Settings
from .database import get_db
from .dependencies import get_settings
from .errors import AuthenticationError, AuthorizationError
from .vocab import UserRole

PASSWORD_HASH_ALGO = "pbkdf2_sha256"
PASSWORD_HASH_ITERATIONS = 120_000


def get_password_hash(password: str, *, salt: str | None = None) -> str:
    salt_value = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt_value.encode("utf-8"),
        PASSWORD_HASH_ITERATIONS,
    ).hex()
    return f"{PASSWORD_HASH_ALGO}${PASSWORD_HASH_ITERATIONS}${salt_value}${digest}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        algo, rounds_text, salt_value, expected_digest = password_hash.split("$", 3)
        rounds = int(rounds_text)
    except (ValueError, TypeError):
        return False

    if algo != PASSWORD_HASH_ALGO or rounds <= 0:
        return False

    candidate_digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt_value.encode("utf-8"),
        rounds,
    ).hex()
    return hmac.compare_digest(candidate_digest, expected_digest)


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def _sign(payload_b64: str, secret_key: str) -> str:
    digest = hmac.new(
        secret_key.encode("utf-8"),
        payload_b64.encode("ascii"),
        hashlib.sha256,
    ).digest()
    return _b64url_encode(digest)


def create_access_token(data: dict[str, Any], settings: Settings) -> str:
    now = int(time.time())
    payload = {**data, "iat": now, "exp": now + settings.token_ttl_seconds}
    payload_json = json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str)
    payload_b64 = _b64url_encode(payload_json.encode("utf-8"))
    return f"{payload_b64}.{_sign(payload_b64, settings.secret_key)}"


def decode_access_token(token: str, settings: Settings) -> dict[str, Any] | None:
    if not token or "." not in token:
        return None

    payload_b64, signature = token.split(".", 1)
    if not hmac.compare_digest(signature, _sign(payload_b64, settings.secret_key)):
        return None

    try:
        payload = json.loads(_b64url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None

    if not isinstance(payload, dict):
        return None
    if not isinstance(payload.get("sub"), str) or not isinstance(payload.get("exp"), int):
        return None
    if payload["exp"] < int(time.time()):
        return None
    return payload


def get_current_user(
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> models.User:
    if not authorization:
        raise AuthenticationError("Missing bearer token")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise AuthenticationError("Invalid authorization scheme")

    payload = decode_access_token(token.strip(), settings)
    if not payload:
        raise AuthenticationError("Invalid or expired token")

    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        raise AuthenticationError("Invalid or expired token")

    user = db.get(models.User, user_id)
    if not user or not user.is_active:
        raise AuthenticationError("Account not found or deactivated")
    return user


def require_roles(user: models.User, *roles: UserRole) -> None:
    if user.role not in roles:
        raise AuthorizationError("Not authorized")
