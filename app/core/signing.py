"""
Gateway signatures: salted SHA-256 checksum (X-VERIFY) and the v2 callback
Authorization digest. Used to verify asynchronous payment callbacks.
"""
from __future__ import annotations

import hashlib
import hmac
from typing import Any, Optional

from app.config import Settings


CHECKSUM_SEPARATOR = "###"


class CallbackVerificationError(Exception):
    """Raised when a callback carries a missing or wrong signature."""


def generate_checksum(payload: str, path: str, salt_key: str, salt_index: int) -> str:
    """sha256(payload + path + salt_key) hex, suffixed with ###<salt_index>."""
    digest = hashlib.sha256(f"{payload}{path}{salt_key}".encode("utf-8")).hexdigest()
    return f"{digest}{CHECKSUM_SEPARATOR}{salt_index}"


def callback_authorization(username: str, password: str) -> str:
    """Expected Authorization header value: sha256("username:password") hex."""
    return hashlib.sha256(f"{username}:{password}".encode("utf-8")).hexdigest()


def _strip_scheme(header: str) -> str:
    value = header.strip()
    if value.upper().startswith("SHA256 "):
        value = value[len("SHA256 "):].strip()
    return value.lower()


def verify_callback(
    settings: Settings,
    authorization: Optional[str],
    x_verify: Optional[str],
    payload: dict[str, Any],
) -> bool:
    """
    Verify a gateway callback.
    Returns True when verified, False when no verification credentials are configured.
    Raises CallbackVerificationError on a missing or mismatching signature.
    """
    username = settings.phonepe_callback_username
    password = settings.phonepe_callback_password
    if username and password:
        if not authorization:
            raise CallbackVerificationError("Missing Authorization header")
        expected = callback_authorization(username, password)
        if not hmac.compare_digest(_strip_scheme(authorization), expected):
            raise CallbackVerificationError("Authorization digest mismatch")
        return True

    if settings.phonepe_salt_key:
        response = payload.get("response")
        if not x_verify or not isinstance(response, str):
            raise CallbackVerificationError("Missing X-VERIFY header or response field")
        expected = generate_checksum(response, "", settings.phonepe_salt_key, settings.phonepe_salt_index)
        if not hmac.compare_digest(x_verify.strip(), expected):
            raise CallbackVerificationError("X-VERIFY checksum mismatch")
        return True

    return False
