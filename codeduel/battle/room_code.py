"""Room code generation and input normalization."""

import re
import secrets
import string
from typing import Optional

ROOM_CODE_LENGTH = 6
ALPHABET = string.ascii_uppercase + string.digits
INVALID_CODE_LENGTH = f"Room code must be {ROOM_CODE_LENGTH} characters long"

_NON_ALPHANUMERIC = re.compile(r"[^A-Z0-9]")


def generate_room_code() -> str:
    """Random uppercase alphanumeric code."""
    return "".join(secrets.choice(ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def format_room_code(code: str) -> str:
    """Canonical form used for lookups: upper-cased and trimmed."""
    return code.upper().strip()


def is_valid_room_code(code: str) -> bool:
    return len(code) == ROOM_CODE_LENGTH and not _NON_ALPHANUMERIC.search(code)


def normalize_room_code_input(value: str) -> Optional[str]:
    """Normalize a keystroke-level room code value.

    Upper-cases the input and strips anything that is not A-Z or 0-9.
    Values longer than the code length are rejected: ``None`` is returned
    and the caller keeps its previous value.
    """
    cleaned = _NON_ALPHANUMERIC.sub("", value.upper())
    if len(cleaned) > ROOM_CODE_LENGTH:
        return None
    return cleaned
