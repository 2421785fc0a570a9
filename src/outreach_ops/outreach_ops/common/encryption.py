from __future__ import annotations

import base64
import hashlib
import json
from typing import Any, Optional

from cryptography.fernet import Fernet


class FieldCipher:
    """Symmetric encryption for PHI columns (user custom fields, document metadata).

    Values are JSON-encoded then Fernet-encrypted into one text column.
    A key that is not already a Fernet key is stretched with SHA-256.
    """

    def __init__(self, key: str | bytes):
        if isinstance(key, str):
            key = key.encode()
        try:
            self._fernet = Fernet(key)
        except ValueError:
            self._fernet = Fernet(base64.urlsafe_b64encode(hashlib.sha256(key).digest()))

    def encrypt_json(self, value: Optional[dict[str, Any]]) -> Optional[str]:
        if not value:
            return None
        return self._fernet.encrypt(json.dumps(value, sort_keys=True).encode()).decode()

    def decrypt_json(self, token: Optional[str]) -> dict[str, Any]:
        if not token:
            return {}
        return json.loads(self._fernet.decrypt(token.encode()).decode())
