"""
Integration config encryption.

Configs are stored as Fernet tokens (AES-128 + HMAC). Requires the
ENCRYPTION_KEY setting (generate with: Fernet.generate_key()).
"""

import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from rideway.config import settings

logger = logging.getLogger(__name__)


class ConfigEncryption:
    """Encrypts and decrypts integration config blobs."""

    def __init__(self, key: Optional[str] = None):
        """Initialize with an explicit key or the ENCRYPTION_KEY setting."""
        self._cipher: Optional[Fernet] = None

        key = key if key is not None else settings.ENCRYPTION_KEY
        if not key:
            logger.warning(
                "ENCRYPTION_KEY not configured - integration configs will be stored in plaintext! "
                "Generate key with: python -c 'from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())'"
            )
            return

        self._cipher = Fernet(key.encode() if isinstance(key, str) else key)
        logger.info("Config encryption initialized successfully")

    @property
    def enabled(self) -> bool:
        return self._cipher is not None

    def encrypt(self, plaintext: str) -> str:
        if not self._cipher:
            return plaintext
        return self._cipher.encrypt(plaintext.encode()).decode()

    def decrypt(self, stored: str) -> str:
        """
        Decrypt a stored config.

        Values that are not Fernet tokens are returned as-is: they were
        written before encryption was enabled.
        """
        if not self._cipher:
            return stored
        try:
            return self._cipher.decrypt(stored.encode()).decode()
        except InvalidToken:
            logger.debug("Config is not a valid token, assuming plaintext")
            return stored


_encryption_instance: Optional[ConfigEncryption] = None


def get_config_encryption() -> ConfigEncryption:
    """Get singleton config encryption instance."""
    global _encryption_instance
    if _encryption_instance is None:
        _encryption_instance = ConfigEncryption()
    return _encryption_instance
