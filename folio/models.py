from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

from PIL import Image, UnidentifiedImageError

from .constants import (
    AUTHOR_SEPARATOR,
    DEFAULT_ENCODING,
    FONT_CONTENT_TYPES,
    IMAGE_CONTENT_TYPES,
    EpubContentType,
)
from .html import html_to_plain_text
from .nav import NavDocument
from .ncx import NcxDocument
from .ocf import OcfDocument
from .opf import PackageDocument
from .paths import resolve


@dataclass
class TextResource:
    href: str
    absolute_path: str
    media_type: Optional[str]
    content_type: EpubContentType
    text: str = ""

    @property
    def content(self) -> bytes:
        return self.text.encode(DEFAULT_ENCODING)


@dataclass
class BinaryResource:
    href: str
    absolute_path: str
    media_type: Optional[str]
    content_type: EpubContentType
    data: bytes = b""

    @property
    def content(self) -> bytes:
        return self.data


Resource = Union[TextResource, BinaryResource]


@dataclass
class EpubResources:
    html: list[TextResource] = field(default_factory=list)
    css: list[TextResource] = field(default_factory=list)
    images: list[BinaryResource] = field(default_factory=list)
    fonts: list[BinaryResource] = field(default_factory=list)
    other: list[Resource] = field(default_factory=list)

    def buckets(self) -> list[list]:
        return [self.html, self.css, self.images, self.fonts, self.other]

    def all(self) -> list[Resource]:
        return [resource for bucket in self.buckets() for resource in bucket]

    def bucket_for(self, content_type: EpubContentType) -> list:
        if content_type == EpubContentType.XHTML11:
            return self.html
        if content_type in (EpubContentType.CSS, EpubContentType.OEB1_CSS):
            return self.css
        if content_type in IMAGE_CONTENT_TYPES:
            return self.images
        if content_type in FONT_CONTENT_TYPES:
            return self.fonts
        return self.other

    def add(self, resource: Resource) -> Resource:
        self.bucket_for(resource.content_type).append(resource)
        return resource

    def remove(self, resource: Resource) -> None:
        for bucket in self.buckets():
            for index, candidate in enumerate(bucket):
                if candidate is resource:
                    del bucket[index]
                    return

    def find_by_path(self, absolute_path: str) -> Optional[Resource]:
        for resource in self.all():
            if resource.absolute_path == absolute_path:
                return resource
        return None


@dataclass
class SpecialResources:
    ocf: Optional[TextResource] = None
    opf: Optional[TextResource] = None
    html_in_reading_order: list[TextResource] = field(default_factory=list)


@dataclass
class Chapter:
    index: int
    title: str
    relative_path: str
    absolute_path: str
    id: Optional[str] = None
    hash_location: Optional[str] = None
    parent: Optional[int] = None
    previous: Optional[int] = None
    next: Optional[int] = None
    children: list[int] = field(default_factory=list)


class ChapterTree:
    """Chapters stored flat in document order; links are indices into ``nodes``."""

    def __init__(self) -> None:
        self.nodes: list[Chapter] = []
        self.roots: list[int] = []

    def __len__(self) -> int:
        return len(self.roots)

    def __iter__(self) -> Iterator[Chapter]:
        return (self.nodes[index] for index in self.roots)

    def __getitem__(self, index: int) -> Chapter:
        return self.nodes[self.roots[index]]

    def add(
        self,
        title: str,
        relative_path: str,
        absolute_path: str,
        *,
        id: Optional[str] = None,
        hash_location: Optional[str] = None,
        parent: Optional[int] = None,
    ) -> Chapter:
        chapter = Chapter(
            index=len(self.nodes),
            id=id,
            title=title,
            relative_path=relative_path,
            absolute_path=absolute_path,
            hash_location=hash_location,
            parent=parent,
        )
        if self.nodes:
            last = self.nodes[-1]
            chapter.previous = last.index
            last.next = chapter.index
        self.nodes.append(chapter)
        if parent is None:
            self.roots.append(chapter.index)
        else:
            self.nodes[parent].children.append(chapter.index)
        return chapter

    def walk(self) -> Iterator[Chapter]:
        return iter(self.nodes)

    def children(self, chapter: Chapter) -> list[Chapter]:
        return [self.nodes[index] for index in chapter.children]

    def parent(self, chapter: Chapter) -> Optional[Chapter]:
        return self.nodes[chapter.parent] if chapter.parent is not None else None

    def previous(self, chapter: Chapter) -> Optional[Chapter]:
        return self.nodes[chapter.previous] if chapter.previous is not None else None

    def next(self, chapter: Chapter) -> Optional[Chapter]:
        return self.nodes[chapter.next] if chapter.next is not None else None

    def clear(self) -> None:
        self.nodes = []
        self.roots = []


@dataclass
class EpubFormat:
    ocf: OcfDocument
    opf: PackageDocument
    nav: Optional[NavDocument] = None
    ncx: Optional[NcxDocument] = None

    @property
    def opf_path(self) -> str:
        root_file_path = self.ocf.root_file_path or ""
        return root_file_path if root_file_path.startswith("/") else f"/{root_file_path}"

    def _resolve_from_opf(self, href: Optional[str]) -> Optional[str]:
        if not href:
            return None
        return resolve(href, self.opf_path)

    @property
    def ncx_path(self) -> Optional[str]:
        return self._resolve_from_opf(self.opf.find_ncx_path())

    @property
    def nav_path(self) -> Optional[str]:
        return self._resolve_from_opf(self.opf.find_nav_path())

    @property
    def cover_path(self) -> Optional[str]:
        return self._resolve_from_opf(self.opf.find_cover_path())


class Book:
    def __init__(self, epub_format: EpubFormat) -> None:
        self.format = epub_format
        self.resources = EpubResources()
        self.special_resources = SpecialResources()
        self.table_of_contents = ChapterTree()

    @property
    def chapters(self) -> ChapterTree:
        return self.table_of_contents

    @property
    def title(self) -> Optional[str]:
        titles = self.format.opf.metadata.titles
        return titles[0] if titles else None

    @property
    def authors(self) -> list[str]:
        return [creator.text for creator in self.format.opf.metadata.creators]

    @property
    def author(self) -> str:
        return AUTHOR_SEPARATOR.join(self.authors)

    @property
    def cover_image(self) -> Optional[bytes]:
        href = self.format.opf.find_cover_path()
        if href is None:
            return None
        for image in self.resources.images:
            if image.href == href:
                return image.data
        return None

    @property
    def cover_size(self) -> Optional[tuple[int, int]]:
        data = self.cover_image
        if data is None:
            return None
        try:
            with Image.open(io.BytesIO(data)) as img:
                return img.size
        except UnidentifiedImageError:
            return None

    def find_html(self, absolute_path: str) -> Optional[TextResource]:
        target = absolute_path if absolute_path.startswith("/") else f"/{absolute_path}"
        for resource in self.resources.html:
            if resource.absolute_path == target:
                return resource
        return None

    def to_plain_text(self) -> str:
        parts = [html_to_plain_text(resource.text) for resource in self.special_resources.html_in_reading_order]
        return "\n".join(part for part in parts if part).strip()
