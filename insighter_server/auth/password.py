"""Password hashing.

Hashes are stored as ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>`` so
the iteration count can be raised without invalidating existing accounts.
"""

import hashlib
import secrets

from insighter_server.config import get_settings

ALGORITHM = "pbkdf2_sha256"


def _derive(password: str, salt: str, iterations: int) -> str:
    return hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations).hex()


def hash_password(password: str, iterations: int | None = None) -> str:
    """Hash a password with a random salt.

    The iteration count defaults to `password_hash_iterations`.
    """
    iterations = iterations or get_settings().password_hash_iterations
    salt = secrets.token_hex(16)
    return f"{ALGORITHM}${iterations}${salt}${_derive(password, salt, iterations)}"


def verify_password(password: str, hashed: str) -> bool:
    """Check a password against a stored hash.

    Malformed or foreign hashes never match.
    """
    try:
        algorithm, iterations, salt, digest = hashed.split("$", 3)
        if algorithm != ALGORITHM:
            return False
        return secrets.compare_digest(digest, _derive(password, salt, int(iterations)))
    except (ValueError, AttributeError):
        return False
