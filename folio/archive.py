from __future__ import annotations

import io
import logging
import zipfile
from pathlib import Path
from typing import BinaryIO, Optional, Union
from urllib.parse import unquote

from lxml import etree as LXML_ET

from .constants import DEFAULT_ENCODING, EPUB_MIMETYPE, MIMETYPE_PATH
from .env import read_env_int
from .errors import ArgumentError, NotFoundError, ParseError
from .xmlutil import xml_root_from_bytes

logger = logging.getLogger("folio.archive")

DEFAULT_MAX_ENTRY_SIZE = 2147483647

Source = Union[str, Path, bytes, bytearray, BinaryIO]


def max_entry_size() -> int:
    return read_env_int("FOLIO_MAX_ENTRY_SIZE", DEFAULT_MAX_ENTRY_SIZE)


def _toggle_leading_slash(name: str) -> str:
    return name[1:] if name.startswith("/") else f"/{name}"


def entry_name_variants(name: str) -> list[str]:
    """Candidate archive names for ``name``, most literal first."""
    literal = [name, _toggle_leading_slash(name)]
    flipped = [
        flip
        for candidate in literal
        for flip in (candidate.replace("\\", "/"), candidate.replace("/", "\\"))
    ]
    base = literal + flipped
    decoded = [unquote(candidate) for candidate in base]
    variants: list[str] = []
    for candidate in base + decoded:
        if candidate and candidate not in variants:
            variants.append(candidate)
    return variants


class EpubArchive:
    """Read-only view over an EPUB zip with tolerant entry lookup."""

    def __init__(self, source: Source, leave_open: bool = False) -> None:
        if source is None:
            raise ArgumentError("source must not be None")
        self._owned_stream: Optional[BinaryIO] = None
        self._caller_stream: Optional[BinaryIO] = None
        self.leave_open = leave_open
        self.name = "<stream>"

        if isinstance(source, (str, Path)):
            if not str(source).strip():
                raise ArgumentError("source path must be a non-blank string")
            path = Path(source)
            if not path.is_file():
                raise NotFoundError(f"EPUB file not found: {path}", str(path))
            self.name = str(path)
            stream: BinaryIO = path.open("rb")
            self._owned_stream = stream
        elif isinstance(source, (bytes, bytearray)):
            stream = io.BytesIO(bytes(source))
            self._owned_stream = stream
            self.name = "<bytes>"
        else:
            stream = source
            self._caller_stream = source

        try:
            self._zip = zipfile.ZipFile(stream)
        except zipfile.BadZipFile as exc:
            self._close_streams()
            raise ParseError(f"{self.name} is not a zip archive") from exc
        self._index: dict[str, zipfile.ZipInfo] = {}
        for info in self._zip.infolist():
            self._index.setdefault(info.filename, info)
        logger.debug("opened archive %s with %d entries", self.name, len(self._index))

    def __enter__(self) -> "EpubArchive":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def _close_streams(self) -> None:
        if self._owned_stream is not None:
            self._owned_stream.close()
            self._owned_stream = None
        if self._caller_stream is not None and not self.leave_open:
            self._caller_stream.close()
        self._caller_stream = None

    def close(self) -> None:
        self._zip.close()
        self._close_streams()
        logger.debug("closed archive %s", self.name)

    def find_entry(self, path: str) -> Optional[zipfile.ZipInfo]:
        if not path:
            return None
        for candidate in entry_name_variants(path):
            info = self._index.get(candidate)
            if info is None:
                continue
            if candidate != path:
                logger.debug("entry %r located as %r", path, candidate)
            return info
        return None

    def get_entry(self, path: str) -> zipfile.ZipInfo:
        info = self.find_entry(path)
        if info is None:
            raise NotFoundError(f"EPUB entry not found: {path}", path)
        return info

    def read_bytes(self, path: str) -> bytes:
        info = self.get_entry(path)
        limit = max_entry_size()
        if info.file_size > limit:
            raise ParseError(f"entry {path} is {info.file_size} bytes, above the {limit} byte limit")
        return self._zip.read(info)

    def read_text(self, path: str) -> str:
        return decode_text(self.read_bytes(path))

    def read_xml(self, path: str) -> LXML_ET._Element:
        return xml_root_from_bytes(self.read_bytes(path), source=path)

    def has_epub_mimetype(self) -> bool:
        info = self.find_entry(MIMETYPE_PATH)
        if info is None:
            return False
        return self._zip.read(info).strip() == EPUB_MIMETYPE.encode("ascii")


def decode_text(raw: bytes) -> str:
    return raw.decode(f"{DEFAULT_ENCODING}-sig", errors="replace")


class ArchiveWriter:
    """Sequential writer producing a fresh EPUB zip."""

    def __init__(self, destination: Union[str, Path, BinaryIO]) -> None:
        if destination is None:
            raise ArgumentError("destination must not be None")
        if isinstance(destination, (str, Path)):
            if not str(destination).strip():
                raise ArgumentError("destination path must be a non-blank string")
            Path(destination).parent.mkdir(parents=True, exist_ok=True)
            target: Union[str, BinaryIO] = str(destination)
        else:
            target = destination
        self._zip = zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED)
        self.written: list[str] = []

    def __enter__(self) -> "ArchiveWriter":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def write_mimetype(self) -> None:
        self._zip.writestr(MIMETYPE_PATH, EPUB_MIMETYPE.encode("ascii"), compress_type=zipfile.ZIP_STORED)
        self.written.append(MIMETYPE_PATH)

    def write_entry(self, name: str, content: bytes) -> None:
        self._zip.writestr(name, content)
        self.written.append(name)

    def close(self) -> None:
        self._zip.close()
