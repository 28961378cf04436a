"""
Field-level encryption at rest.
"""
from .field_codec import FieldCodec, SCREENSHOT_ENCRYPTED_FIELDS, TIME_LOG_ENCRYPTED_FIELDS
from .keys import DEVELOPMENT_KEY, derive_key, generate_encryption_key, resolve_encryption_key

__all__ = [
    "FieldCodec",
    "SCREENSHOT_ENCRYPTED_FIELDS",
    "TIME_LOG_ENCRYPTED_FIELDS",
    "DEVELOPMENT_KEY",
    "derive_key",
    "generate_encryption_key",
    "resolve_encryption_key",
]
