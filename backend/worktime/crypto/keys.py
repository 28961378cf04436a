"""
Encryption key resolution.

The configured secret is used directly when it is a 64-character hex string,
otherwise a 32-byte key is derived from it with SHA-256, so any passphrase is
accepted.
"""
import hashlib
import logging
import re
import secrets
from typing import Optional

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

KEY_SIZE = 32

# Development-only key. Never used when the environment is production.
DEVELOPMENT_KEY = bytes.fromhex("0123456789abcdef" * 4)

_HEX_KEY = re.compile(r"^[0-9a-fA-F]{64}$")


def derive_key(secret: str) -> bytes:
    """Turn a configured secret into a 32-byte key."""
    if _HEX_KEY.match(secret):
        return bytes.fromhex(secret)
    return hashlib.sha256(secret.encode("utf-8")).digest()


# PUBLIC_INTERFACE
def resolve_encryption_key(secret: Optional[str], environment: str) -> bytes:
    """
    Resolve the field encryption key for this process.

    Args:
        secret: Value of ENCRYPTION_KEY, if any
        environment: Deployment environment name

    Returns:
        bytes: 32-byte key

    Raises:
        ConfigurationError: If no secret is configured in production
    """
    if secret:
        return derive_key(secret)

    if environment == "production":
        raise ConfigurationError("ENCRYPTION_KEY environment variable is required in production")

    logger.warning("!!! Using the built-in development encryption key. This is insecure outside development !!!")
    logger.warning("!!! Set ENCRYPTION_KEY to a 64-character hex key or a passphrase !!!")
    return DEVELOPMENT_KEY


def generate_encryption_key() -> str:
    """Generate a random hex-encoded key suitable for ENCRYPTION_KEY."""
    return secrets.token_hex(KEY_SIZE)
