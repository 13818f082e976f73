"""
Input validation exceptions.
"""

from typing import Optional


class InvalidInputError(ValueError):
    """
    Raised for malformed roster or template input.

    Covers unparsable team strings and files, teams without members,
    duplicate members and derived repository names that collide.
    """

    def __init__(self, message: str, *, source: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.source = source

    def __str__(self) -> str:
        if self.source:
            return f"{self.message} source={self.source}"
        return self.message
