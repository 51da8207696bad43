"""Password hashing utilities built on bcrypt."""
from __future__ import annotations

import bcrypt

from tandem_chat.core.settings import settings

# bcrypt only considers the first 72 bytes of its input.
BCRYPT_MAX_BYTES = 72


def hash_credential(plain: str, rounds: int | None = None) -> str:
    """Hash a plaintext password with bcrypt.

    Args:
        plain: Password supplied by the user.
        rounds: Work factor; defaults to ``settings.bcrypt_rounds``.

    Returns:
        The bcrypt hash as text, suitable for storage.

    Raises:
        ValueError: If the password exceeds bcrypt's 72-byte input limit.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        raise ValueError("Password must not exceed 72 bytes")
    salt = bcrypt.gensalt(rounds=rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(encoded, salt).decode("ascii")


def check_credential(plain: str, stored_hash: str) -> bool:
    """Return True if ``plain`` matches the stored bcrypt hash."""
    encoded = plain.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, stored_hash.encode("ascii"))
    except ValueError:
        # Stored value is not a bcrypt hash.
        return False
