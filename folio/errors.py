from __future__ import annotations


class EpubError(Exception):
    pass


class ArgumentError(EpubError, ValueError):
    """A required argument was missing or blank."""


class NotFoundError(EpubError, FileNotFoundError):
    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class ParseError(EpubError):
    def __init__(self, message: str) -> None:
        super().__init__(f"EPUB parsing error: {message}")


class WriteError(EpubError):
    def __init__(self, message: str) -> None:
        super().__init__(f"EPUB write error: {message}")


def require_text(value: object, name: str) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        raise ArgumentError(f"{name} must be a non-blank string")
    return value
