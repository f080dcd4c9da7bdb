"""
Field-level encryption for sensitive columns (Fernet, key derived from SECRET_KEY)
"""

import base64
import hashlib
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy.types import Text, TypeDecorator

from .config import SECRET_KEY

logger = logging.getLogger(__name__)

cipher_suite = Fernet(base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest()))


def encrypt_value(value: Optional[str]) -> Optional[str]:
    """Encrypt a string for storage"""
    if value is None:
        return None
    return cipher_suite.encrypt(value.encode()).decode()


def decrypt_value(value: Optional[str]) -> Optional[str]:
    """Decrypt a stored string"""
    if value is None:
        return None
    try:
        return cipher_suite.decrypt(value.encode()).decode()
    except InvalidToken:
        logger.error("❌ Failed to decrypt stored value - SECRET_KEY may have changed")
        raise


class EncryptedText(TypeDecorator):
    """Text column that is transparently encrypted at rest"""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return encrypt_value(value)

    def process_result_value(self, value, dialect):
        return decrypt_value(value)
