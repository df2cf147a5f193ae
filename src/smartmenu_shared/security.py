"""
Security helpers for encrypting customer contact data.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import os
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


def _derive_key_from_secret(secret: str) -> bytes:
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


@lru_cache(maxsize=1)
def _fernet() -> Fernet:
    key = os.getenv("CUSTOMER_DATA_KEY")
    if key:
        try:
            return Fernet(key.encode("utf-8"))
        except (ValueError, binascii.Error):
            logger.warning("CUSTOMER_DATA_KEY is not a valid Fernet key; deriving one from it")
            return Fernet(_derive_key_from_secret(key))
    secret = os.getenv("SECRET_KEY")
    if not secret:
        raise RuntimeError(
            "SECRET_KEY environment variable not set. "
            "Please set this environment variable in production."
        )
    return Fernet(_derive_key_from_secret(secret))


def encrypt_string(value: str | None) -> str | None:
    """
    Encrypt a string using Fernet. Returns None when the input is None.
    """
    if value is None:
        return None
    token = _fernet().encrypt(value.encode("utf-8"))
    return token.decode("utf-8")


def decrypt_string(value: str | None) -> str | None:
    """
    Decrypt a previously encrypted string. Returns None when the input is None
    or was encrypted with a different key.
    """
    if value is None:
        return None
    try:
        return _fernet().decrypt(value.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        logger.warning("Could not decrypt stored value (key rotated?)")
        return None


def mask_phone(phone: str | None) -> str | None:
    """Keep the last four digits of a phone number for display."""
    if not phone:
        return None
    digits = "".join(ch for ch in phone if ch.isdigit())
    if len(digits) <= 4:
        return "*" * len(digits)
    return "*" * (len(digits) - 4) + digits[-4:]
