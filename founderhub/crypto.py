"""Encryption of secrets stored in JSON records.

Access tokens, refresh tokens and OAuth client secrets are stored Fernet
encrypted. The key is derived from the SECRET_KEY setting, so rotating
SECRET_KEY makes previously stored secrets unreadable.
"""

import base64
import hashlib
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from founderhub.exceptions import SecretDecryptionError


@lru_cache(maxsize=1)
def _get_fernet() -> Fernet:
    """Get or create Fernet instance keyed from SECRET_KEY."""
    from founderhub.config import get_settings

    key_bytes = hashlib.sha256(get_settings().secret_key.encode()).digest()
    return Fernet(base64.urlsafe_b64encode(key_bytes))


def encrypt_secret(plaintext: str) -> str:
    """Encrypt a secret for storage.

    Args:
        plaintext: The secret to encrypt (may be empty)

    Returns:
        Fernet token as text
    """
    return _get_fernet().encrypt(plaintext.encode("utf-8")).decode("utf-8")


def decrypt_secret(ciphertext: str) -> str:
    """Decrypt a stored secret.

    Args:
        ciphertext: Fernet token produced by ``encrypt_secret``

    Returns:
        Decrypted plaintext

    Raises:
        SecretDecryptionError: If the value was not produced with the current key
    """
    try:
        return _get_fernet().decrypt(ciphertext.encode("utf-8")).decode("utf-8")
    except (InvalidToken, ValueError) as e:
        raise SecretDecryptionError("Stored secret could not be decrypted") from e


def clear_fernet_cache() -> None:
    """Clear the cached Fernet instance (tests switch SECRET_KEY)."""
    _get_fernet.cache_clear()
