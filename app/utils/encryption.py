"""
Custom encryption types for securing sensitive student data at rest.

Medical notes and allergy information are stored encrypted with Fernet
(AES) using the ENCRYPTION_KEY environment variable.
"""

import os
from sqlalchemy.types import TypeDecorator, LargeBinary
from cryptography.fernet import Fernet


class PIIEncryptedType(TypeDecorator):
    """Custom AES encryption for PII fields using Fernet."""
    impl = LargeBinary
    cache_ok = True

    def __init__(self, key_env_var, *args, **kwargs):
        key = os.getenv(key_env_var)
        if not key:
            raise RuntimeError(f"Missing required environment variable: {key_env_var}")
        self.key_env_var = key_env_var
        self.fernet = Fernet(key)
        super().__init__(*args, **kwargs)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            value = value.encode('utf-8')
        return self.fernet.encrypt(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        decrypted = self.fernet.decrypt(value)
        return decrypted.decode('utf-8')
