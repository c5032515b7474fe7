"""Password hashing utilities.

Learn: Uses bcrypt for both credential classes: super-admin passwords
and organization shared passwords. bcrypt salts automatically; the work
factor comes from settings (12 in production, ~250ms per hash).

needs_rehash() lets login paths upgrade hashes created with a lower cost
once the plaintext is known to be correct.
"""

import secrets

import bcrypt

from comityspace.config import settings

# Compared against to top up failed logins to a fixed number of
# bcrypt comparisons.
_dummy_hash: str | None = None


def _encode(password: str) -> bytes:
    # bcrypt only reads the first 72 bytes; newer releases raise past that
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    """Hash a password with bcrypt at the configured cost."""
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(_encode(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check of a password against a bcrypt hash.

    Malformed or empty hashes never match.
    """
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def needs_rehash(password_hash: str) -> bool:
    """True if the hash was made with a lower cost than currently configured."""
    try:
        cost = int(password_hash.split("$")[2])
    except (IndexError, ValueError):
        return False
    return cost < settings.bcrypt_rounds


def burn_verification(password: str) -> None:
    """Run one comparison that can never succeed."""
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password(secrets.token_urlsafe(32))
    verify_password(password, _dummy_hash)
