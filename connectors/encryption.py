"""
Token encryption: encrypt / decrypt OAuth tokens at rest.

Uses Fernet (AES-128-CBC + HMAC-SHA256) from the ``cryptography`` library.
The key is ``config.token_encryption_key`` (env var: ``TOKEN_ENCRYPTION_KEY``).

Without a key, encryption is **disabled** and tokens are stored as
plaintext (with a one-time warning).  Generate a key with::

    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
"""

from __future__ import annotations

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from config.settings import config

logger = logging.getLogger(__name__)


class TokenCipher:
    """Symmetric cipher for credential columns; a no-op without a key."""

    def __init__(self, key: Optional[str]):
        self._fernet: Optional[Fernet] = None
        if not key:
            logger.warning(
                "TOKEN_ENCRYPTION_KEY not set; OAuth tokens will be stored as plaintext."
            )
            return
        self._fernet = Fernet(key.encode() if isinstance(key, str) else key)
        logger.info("Token encryption enabled (Fernet)")

    @property
    def enabled(self) -> bool:
        return self._fernet is not None

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        if not plaintext or self._fernet is None:
            return plaintext
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: Optional[str]) -> Optional[str]:
        """
        Decrypt a stored value.  Values written before encryption was
        enabled are not valid Fernet tokens and come back unchanged.
        """
        if not ciphertext or self._fernet is None:
            return ciphertext
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            logger.warning("Stored token is not Fernet ciphertext; treating as plaintext")
            return ciphertext


_cipher: Optional[TokenCipher] = None


def get_cipher() -> TokenCipher:
    """Lazy-initialise the process-wide cipher from settings."""
    global _cipher
    if _cipher is None:
        _cipher = TokenCipher(config.token_encryption_key)
    return _cipher


def encrypt_token(plaintext: Optional[str]) -> Optional[str]:
    return get_cipher().encrypt(plaintext)


def decrypt_token(ciphertext: Optional[str]) -> Optional[str]:
    return get_cipher().decrypt(ciphertext)
