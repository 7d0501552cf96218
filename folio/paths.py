from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import Optional

from .errors import ArgumentError, ParseError


@dataclass(frozen=True)
class Href:
    """An href split on its first ``#`` into a file part and an anchor."""

    path: str
    anchor: Optional[str] = None

    @classmethod
    def parse(cls, href: str) -> "Href":
        if href is None or not href.strip():
            raise ArgumentError("href must be a non-blank string")
        path, sep, anchor = href.partition("#")
        return cls(path=path, anchor=anchor if sep else None)


def split_href(href: str) -> tuple[str, Optional[str]]:
    parsed = Href.parse(href)
    return parsed.path, parsed.anchor


def directory_of(path: str) -> str:
    normalized = (path or "").replace("\\", "/")
    index = normalized.rfind("/")
    directory = normalized[:index] if index != -1 else ""
    return "" if directory == "/" else directory


def _ensure_leading_slash(path: str) -> str:
    return path if path.startswith("/") else f"/{path}"


def resolve(href: str, base_path: str) -> str:
    """Resolve ``href`` against the document at ``base_path`` to an absolute archive path.

    The result always starts with ``/`` and never carries the ``#anchor`` part.
    ``base_path`` names a file; its directory is everything before the last slash,
    so ``"one/two/"`` is the directory ``one/two`` while ``"one/two"`` is a file in ``one``.
    """
    filename = Href.parse(href).path.replace("\\", "/")
    if filename.startswith("/"):
        return filename

    directory = directory_of(base_path or "")
    while True:
        if filename.startswith("../"):
            if not directory:
                raise ParseError(
                    f"There is no room to normalize '../'. Directory={base_path!r}, filename={href!r}"
                )
            directory = directory_of(directory)
            filename = filename[3:]
        elif filename.startswith("./"):
            filename = filename[2:]
        else:
            break

    combined = f"{_ensure_leading_slash(directory)}/{filename}" if directory else f"/{filename}"
    if "/../" in combined or "/./" in combined:
        combined = posixpath.normpath(combined)
    return combined


def to_archive_name(absolute_path: str) -> str:
    return absolute_path.lstrip("/")


def relative_href(from_path: str, to_path: str) -> str:
    """Href that reaches ``to_path`` from a document stored at ``from_path``."""
    start = directory_of(_ensure_leading_slash(from_path)) or "/"
    return posixpath.relpath(_ensure_leading_slash(to_path), start=_ensure_leading_slash(start))
