"""
Group invite codes.

Six characters drawn from an alphabet without the look-alikes I, O, 0 and 1.
"""
import secrets
from typing import Callable, Optional

GROUP_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
GROUP_CODE_LENGTH = 6


class GroupCodeExhaustedError(Exception):
    """Every attempt produced a code that is already taken."""


def generate_group_code(length: int = GROUP_CODE_LENGTH) -> str:
    return "".join(secrets.choice(GROUP_CODE_ALPHABET) for _ in range(length))


def normalize_group_code(code: Optional[str]) -> str:
    """Codes are matched case-insensitively; storage is upper-case."""
    return (code or "").strip().upper()


def is_valid_group_code(code: str) -> bool:
    return len(code) == GROUP_CODE_LENGTH and all(ch in GROUP_CODE_ALPHABET for ch in code)


def generate_unique_group_code(
    is_taken: Callable[[str], bool],
    max_attempts: int,
    generator: Callable[[], str] = generate_group_code,
) -> str:
    """
    Draw codes until one is free.

    Raises GroupCodeExhaustedError after max_attempts collisions.
    """
    for _ in range(max_attempts):
        code = generator()
        if not is_taken(code):
            return code
    raise GroupCodeExhaustedError(f"No free group code after {max_attempts} attempts")
