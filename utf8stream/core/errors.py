"""Exceptions raised by the streaming decoder."""

from typing import Optional


class InvalidSequenceError(ValueError):
    """Raised by the ``Fail`` policy when an invalid UTF-8 sequence is found."""

    def __init__(
        self,
        message: str = "Invalid UTF-8 sequence",
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.start = start
        self.end = end
