"""
Credential verification: one-way password hashing and hash checks.

Pure functions, no I/O. The hashing primitive is delegated to passlib; only
its outputs are ever persisted.
"""
from passlib.context import CryptContext

from socialgraph.errors import ValidationFailure

_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# Largest plaintext accepted, in UTF-8 bytes (the bcrypt limit the stored
# credentials have always been validated against).
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    if not password:
        raise ValidationFailure("Password is required")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationFailure(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return _pwd.hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    """True only when `password` reproduces `password_hash`.

    A malformed or unknown hash is reported as a mismatch, so callers cannot
    tell the two cases apart.
    """
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except (ValueError, TypeError):
        return False


def is_password_hash(value: str) -> bool:
    if not value:
        return False
    try:
        return _pwd.identify(value) is not None
    except (ValueError, TypeError):
        return False
