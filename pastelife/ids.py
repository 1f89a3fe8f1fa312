"""
Short random paste identifiers.
"""
import secrets
import string

# URL-safe alphabet, same characters as base64url
ID_ALPHABET = string.ascii_letters + string.digits + "_-"
DEFAULT_ID_LENGTH = 10
MIN_ID_LENGTH = 8


def generate_id(length: int = DEFAULT_ID_LENGTH) -> str:
    """
    Generate a random paste id.

    Args:
        length: Number of characters (at least 8)

    Returns:
        Random id drawn from a cryptographically strong source
    """
    if length < MIN_ID_LENGTH:
        raise ValueError(f"id length must be >= {MIN_ID_LENGTH}")
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))
