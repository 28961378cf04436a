"""
Field-level encryption for records persisted by the embedded store.

Only a configured subset of columns is encrypted; identifiers used for tenant
scoping and status filtering stay in plaintext.
"""
import base64
import json
from typing import Any, Dict, Iterable, Mapping

from cryptography.fernet import Fernet, InvalidToken

from ..errors import DecryptionError
from .keys import KEY_SIZE

TIME_LOG_ENCRYPTED_FIELDS = ("project_id", "start_time", "end_time", "activity_score")
SCREENSHOT_ENCRYPTED_FIELDS = ("captured_at", "time_log_id")

_SUPPORTED_TYPES = (str, int, float, bool)


class FieldCodec:
    """Encrypts and decrypts named fields of a record with a 32-byte key."""

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise ValueError(f"Encryption key must be {KEY_SIZE} bytes, got {len(key)}")
        self._fernet = Fernet(base64.urlsafe_b64encode(key))

    def encrypt_value(self, value: Any) -> str:
        if not isinstance(value, _SUPPORTED_TYPES):
            raise TypeError(f"Cannot encrypt value of type {type(value).__name__}")
        # JSON keeps the type, so 87.5 comes back as a float and "87.5" as a string.
        payload = json.dumps(value).encode("utf-8")
        return self._fernet.encrypt(payload).decode("ascii")

    def decrypt_value(self, token: Any) -> Any:
        if not isinstance(token, str):
            raise DecryptionError("Encrypted value is not a ciphertext string")
        try:
            payload = self._fernet.decrypt(token.encode("ascii"))
            return json.loads(payload.decode("utf-8"))
        except (InvalidToken, UnicodeError, ValueError) as exc:
            raise DecryptionError("Could not decrypt stored value") from exc

    def encrypt_fields(self, record: Mapping[str, Any], field_names: Iterable[str]) -> Dict[str, Any]:
        """Return a copy of ``record`` with each named, non-null field encrypted."""
        result = dict(record)
        for name in field_names:
            if result.get(name) is not None:
                result[name] = self.encrypt_value(result[name])
        return result

    def decrypt_fields(self, record: Mapping[str, Any], field_names: Iterable[str]) -> Dict[str, Any]:
        """Exact inverse of :meth:`encrypt_fields`."""
        result = dict(record)
        for name in field_names:
            if result.get(name) is not None:
                result[name] = self.decrypt_value(result[name])
        return result
