"""Identifier generation and validation.

Ids are 24 lowercase hex characters: a 4-byte big-endian creation timestamp
followed by 8 random bytes.
"""

import re
import secrets
import time

from videohub.errors import InvalidReference

ID_LENGTH = 24
_ID_PATTERN = re.compile(r"^[0-9a-f]{24}$")


def new_id() -> str:
    """Generate a new identifier."""
    return f"{int(time.time()) & 0xFFFFFFFF:08x}{secrets.token_hex(8)}"


def is_valid_id(value: object) -> bool:
    """Check whether a value has the identifier shape."""
    return isinstance(value, str) and _ID_PATTERN.match(value) is not None


def require_id(value: object, label: str = "id") -> str:
    """Return the value if it is a well-formed id.

    Raises:
        InvalidReference: If the value is missing or malformed.
    """
    if not value or not isinstance(value, str):
        raise InvalidReference(f"Missing {label}")
    if not is_valid_id(value):
        raise InvalidReference(f"Invalid {label}: {value!r}")
    return value
