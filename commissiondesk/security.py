"""Password policy and request helpers used by the account routes."""
from __future__ import annotations

from fastapi import Request

MIN_PASSWORD_LENGTH = 8


def client_ip(request: Request) -> str | None:
    """Best-effort client address, honouring a single proxy hop."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


class PasswordValidator:
    """Simple password strength validator for password changes."""

    @staticmethod
    def validate(password: str) -> tuple[bool, str]:
        if not password:
            return False, "Password cannot be empty"
        if len(password) < MIN_PASSWORD_LENGTH:
            return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"

        has_letter = any(char.isalpha() for char in password)
        has_digit = any(char.isdigit() for char in password)

        if not has_letter or not has_digit:
            return False, "Password must include at least one letter and one number"

        return True, ""
