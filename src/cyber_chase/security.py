"""Temporary passwords and password hashing."""

import secrets
import string

import bcrypt

PASSWORD_ALPHABET = string.ascii_letters + string.digits
# bcrypt only looks at the first 72 bytes of a password.
MAX_PASSWORD_BYTES = 72


def generate_temp_password(length: int = 10) -> str:
    """Generate a random alphanumeric password."""
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def hash_password(password: str) -> str:
    """Hash a password with a fresh bcrypt salt."""
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash or over-long password
        return False
