"""
Password Policy Validation

Requirements:
- At least 8 characters
- At most 72 bytes once UTF-8 encoded (bcrypt ignores anything longer)
- Not whitespace only
- Not in the common password blocklist
"""
from typing import Tuple, List

MIN_LENGTH = 8
MAX_BYTES = 72

COMMON_PASSWORDS = {
    "password", "password1", "password123", "12345678", "123456789", "1234567890",
    "qwerty123", "qwertyuiop", "iloveyou", "sunshine", "football", "baseball",
    "passw0rd", "p@ssw0rd", "trustno1", "starwars", "whatever", "superman",
    "letmein1", "welcome1", "abcdefgh", "abc12345", "11111111", "00000000",
    "progress2win", "progress", "workout", "workout1", "fitness", "fitness1",
    "gymrat123", "deadlift", "benchpress",
}


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """Return (is_valid, errors); errors is empty when the password is acceptable."""
    errors = []

    if len(password) < MIN_LENGTH:
        errors.append(f"Password must be at least {MIN_LENGTH} characters")

    if len(password.encode("utf-8")) > MAX_BYTES:
        errors.append(f"Password must not exceed {MAX_BYTES} bytes")

    if password and not password.strip():
        errors.append("Password must not be only whitespace")

    if password.lower() in COMMON_PASSWORDS:
        errors.append("Password is too common, please choose a stronger password")

    return len(errors) == 0, errors


def get_password_requirements_text() -> str:
    return (
        f"Password requirements: {MIN_LENGTH}-{MAX_BYTES} characters, "
        "not a commonly used password"
    )
