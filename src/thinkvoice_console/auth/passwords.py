"""Salted password hashing."""

from passlib.context import CryptContext

_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return _context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check ``password`` against a stored hash. Unknown hash formats never match."""
    if not password_hash:
        return False
    try:
        return _context.verify(password, password_hash)
    except ValueError:
        return False
