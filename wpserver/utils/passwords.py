"""Random secret generation for database and admin credentials."""

import secrets
import string

PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#$%^&*"
IDENTIFIER_ALPHABET = string.ascii_letters + string.digits


def generate_password(length: int = 32) -> str:
    """Generate a random password from letters, digits and shell-safe symbols."""
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def generate_random_string(length: int = 16) -> str:
    """Generate a random alphanumeric string."""
    return "".join(secrets.choice(IDENTIFIER_ALPHABET) for _ in range(length))


def generate_db_identifier(prefix: str = "wp_", length: int = 8) -> str:
    """Generate a database or user name such as ``wp_a1B2c3D4``.

    MariaDB user names are limited to 80 characters and database names to 64;
    the defaults stay well below both.
    """
    return f"{prefix}{generate_random_string(length)}"
