"""
Token encryption/decryption for provider credentials stored at rest.
"""

import base64
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from config import settings


@lru_cache(maxsize=4)
def _fernet_for(key: str) -> Fernet:
    # Keys that are not exactly 32 bytes are stretched with PBKDF2.
    if len(key) != 32:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=b"social_connect_token_salt",
            iterations=100000,
        )
        derived = base64.urlsafe_b64encode(kdf.derive(key.encode()))
    else:
        derived = base64.urlsafe_b64encode(key.encode())
    return Fernet(derived)


def _get_fernet() -> Fernet:
    return _fernet_for(settings.ENCRYPTION_KEY)


def encrypt_token(token: Optional[str]) -> Optional[str]:
    """
    Encrypt an OAuth token for storage.

    Args:
        token: Plain text token, or None when the provider issued none

    Returns:
        Fernet ciphertext, or None
    """
    if not token:
        return None
    return _get_fernet().encrypt(token.encode()).decode()


def decrypt_token(encrypted_token: Optional[str]) -> Optional[str]:
    """
    Decrypt a stored OAuth token.

    Raises:
        ValueError: if the ciphertext was produced with a different key
    """
    if not encrypted_token:
        return None
    try:
        return _get_fernet().decrypt(encrypted_token.encode()).decode()
    except InvalidToken as exc:
        raise ValueError("Stored token could not be decrypted with the configured ENCRYPTION_KEY.") from exc
