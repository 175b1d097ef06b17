"""Temporary password generation and bcrypt hashing."""

from __future__ import annotations

import secrets
import string

import bcrypt

UPPERCASE = string.ascii_uppercase
LOWERCASE = string.ascii_lowercase
DIGITS = string.digits
SYMBOLS = "!@#$%&*"
ALPHABET = UPPERCASE + LOWERCASE + DIGITS + SYMBOLS

_random = secrets.SystemRandom()


def generate_temp_password(length: int = 12) -> str:
    """Return a shuffled password with at least one char from each class."""
    required = [
        secrets.choice(UPPERCASE),
        secrets.choice(LOWERCASE),
        secrets.choice(DIGITS),
        secrets.choice(SYMBOLS),
    ]
    if length < len(required):
        raise ValueError(f"Password length must be at least {len(required)}")
    chars = required + [secrets.choice(ALPHABET) for _ in range(length - len(required))]
    _random.shuffle(chars)
    return "".join(chars)


def hash_password(plain_password: str, rounds: int = 10) -> str:
    """Generate the bcrypt hash of a plaintext password."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8"),
        )
    except ValueError:
        return False
