from __future__ import annotations

import datetime as dt
import io
import logging
import re
import uuid
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Optional, Union

from PIL import Image, UnidentifiedImageError

from .archive import ArchiveWriter, decode_text
from .constants import (
    DEFAULT_ENCODING,
    DEFAULT_UNIQUE_IDENTIFIER,
    MANIFEST_COVER_IMAGE_PROPERTY,
    MANIFEST_NAV_PROPERTY,
    META_COVER_NAME,
    NCX_MEDIA_TYPE,
    NEW_BOOK_NAV_HREF,
    NEW_BOOK_NCX_HREF,
    NEW_BOOK_OPF_PATH,
    OCF_PATH,
    OPF_MEDIA_TYPE,
    TEXT_CONTENT_TYPES,
    XHTML_MEDIA_TYPE,
    EpubContentType,
    mime_type_for,
)
from .env import read_env
from .errors import ArgumentError, WriteError, require_text
from .models import BinaryResource, Book, Chapter, EpubFormat, Resource, TextResource
from .nav import read_nav
from .ncx import NcxDocument, NcxNavPoint, write_ncx
from .ocf import OcfDocument, RootFile, render_epub_template, write_ocf
from .opf import (
    EpubVersion,
    ManifestItem,
    MetadataCreator,
    MetadataIdentifier,
    MetadataMeta,
    PackageDocument,
    Spine,
    SpineItemRef,
    write_opf,
)
from .paths import relative_href, resolve, to_archive_name
from .reader import read_book
from .xmlutil import xml_root_from_bytes

logger = logging.getLogger("folio.writer")

Destination = Union[str, Path, BinaryIO]

COVER_FORMATS = {
    "png": (EpubContentType.IMAGE_PNG, "png"),
    "jpeg": (EpubContentType.IMAGE_JPEG, "jpg"),
    "jpg": (EpubContentType.IMAGE_JPEG, "jpg"),
    "gif": (EpubContentType.IMAGE_GIF, "gif"),
}
ID_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_.-]+")
FULL_DOCUMENT_RE = re.compile(r"<html[\s>]", re.IGNORECASE)


def _utc_timestamp() -> str:
    return dt.datetime.now(dt.timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def default_language() -> str:
    return read_env("FOLIO_DEFAULT_LANGUAGE", "en") or "en"


def new_book() -> Book:
    """An empty EPUB3 book with an NCX and a navigation document ready for chapters."""
    language = default_language()
    opf = PackageDocument(version=EpubVersion.EPUB3, unique_identifier=DEFAULT_UNIQUE_IDENTIFIER)
    opf.metadata.identifiers.append(
        MetadataIdentifier(text=f"urn:uuid:{uuid.uuid4()}", id=DEFAULT_UNIQUE_IDENTIFIER)
    )
    opf.metadata.languages.append(language)
    opf.metadata.metas.append(MetadataMeta(property="dcterms:modified", value=_utc_timestamp()))
    opf.manifest.items.append(ManifestItem(id="ncx", href=NEW_BOOK_NCX_HREF, media_type=NCX_MEDIA_TYPE))
    opf.manifest.items.append(
        ManifestItem(
            id="nav",
            href=NEW_BOOK_NAV_HREF,
            media_type=XHTML_MEDIA_TYPE,
            properties=[MANIFEST_NAV_PROPERTY],
        )
    )
    opf.spine = Spine(toc="ncx")

    nav_text = render_epub_template("nav.xhtml.j2", title="", heading="Contents", lang=language)
    epub_format = EpubFormat(
        ocf=OcfDocument(root_files=[RootFile(full_path=NEW_BOOK_OPF_PATH, media_type=OPF_MEDIA_TYPE)]),
        opf=opf,
        nav=read_nav(xml_root_from_bytes(nav_text, source=NEW_BOOK_NAV_HREF)),
        ncx=NcxDocument(doc_title=""),
    )
    book = Book(epub_format)
    book.resources.add(
        TextResource(
            href=NEW_BOOK_NCX_HREF,
            absolute_path=resolve(NEW_BOOK_NCX_HREF, epub_format.opf_path),
            media_type=NCX_MEDIA_TYPE,
            content_type=EpubContentType.DTBOOK_NCX,
            text=write_ncx(epub_format.ncx).decode(DEFAULT_ENCODING),
        )
    )
    book.resources.add(
        TextResource(
            href=NEW_BOOK_NAV_HREF,
            absolute_path=resolve(NEW_BOOK_NAV_HREF, epub_format.opf_path),
            media_type=XHTML_MEDIA_TYPE,
            content_type=EpubContentType.XHTML11,
            text=epub_format.nav.to_bytes().decode(DEFAULT_ENCODING),
        )
    )
    return book


class EpubWriter:
    """Mutates a :class:`Book` in place and writes it back out as an EPUB archive."""

    def __init__(self, book: Optional[Book] = None) -> None:
        self.book = book if book is not None else new_book()

    @property
    def _format(self) -> EpubFormat:
        return self.book.format

    @property
    def _opf(self) -> PackageDocument:
        return self.book.format.opf

    @staticmethod
    def write_book(book: Book, destination: Destination) -> None:
        write_book(book, destination)

    @staticmethod
    def make_copy(book: Book) -> Book:
        return make_copy(book)

    def add_author(self, author: str) -> None:
        self._opf.metadata.creators.append(MetadataCreator(text=require_text(author, "author")))

    def remove_author(self, author: str) -> None:
        require_text(author, "author")
        metadata = self._opf.metadata
        metadata.creators = [creator for creator in metadata.creators if creator.text != author]

    def clear_authors(self) -> None:
        self._opf.metadata.creators = []

    def set_title(self, title: str) -> None:
        require_text(title, "title")
        self._opf.metadata.titles = [title]
        if self._format.ncx is not None:
            self._format.ncx.doc_title = title

    def remove_title(self) -> None:
        self._opf.metadata.titles = []

    def _item_id_for(self, filename: str) -> str:
        stem = ID_UNSAFE_RE.sub("-", PurePosixPath(filename).stem).strip("-.") or "item"
        if not stem[0].isalpha():
            stem = f"id-{stem}"
        return self._opf.manifest.unique_id(stem)

    def add_file(
        self,
        filename: str,
        content: Union[str, bytes],
        content_type: EpubContentType,
    ) -> Resource:
        require_text(filename, "filename")
        if content is None:
            raise ArgumentError("content must not be None")
        manifest = self._opf.manifest
        if manifest.find_by_href(filename) is not None:
            raise WriteError(f"a manifest item with href {filename!r} already exists")

        media_type = mime_type_for(content_type)
        absolute_path = resolve(filename, self._format.opf_path)
        if content_type in TEXT_CONTENT_TYPES:
            text = content if isinstance(content, str) else decode_text(content)
            resource: Resource = TextResource(
                href=filename,
                absolute_path=absolute_path,
                media_type=media_type,
                content_type=content_type,
                text=text,
            )
        else:
            data = content.encode(DEFAULT_ENCODING) if isinstance(content, str) else bytes(content)
            resource = BinaryResource(
                href=filename,
                absolute_path=absolute_path,
                media_type=media_type,
                content_type=content_type,
                data=data,
            )
        manifest.items.append(ManifestItem(id=self._item_id_for(filename), href=filename, media_type=media_type))
        return self.book.resources.add(resource)

    def _sync_nav_resource(self) -> None:
        nav = self._format.nav
        nav_path = self._format.nav_path
        if nav is None or nav_path is None:
            return
        resource = self.book.resources.find_by_path(nav_path)
        if isinstance(resource, TextResource):
            resource.text = nav.to_bytes().decode(DEFAULT_ENCODING)

    def _next_chapter_href(self) -> str:
        manifest = self._opf.manifest
        index = len(self._opf.spine.item_refs) + 1
        while manifest.find_by_href(f"chapter{index}.xhtml") is not None:
            index += 1
        return f"chapter{index}.xhtml"

    def _chapter_document(self, title: str, html: Optional[str]) -> str:
        if html and FULL_DOCUMENT_RE.search(html):
            return html
        languages = self._opf.metadata.languages
        return render_epub_template(
            "chapter.xhtml.j2",
            title=title,
            body=html or "",
            show_heading=not html,
            lang=languages[0] if languages else default_language(),
        )

    def add_chapter(self, title: str, html: Optional[str] = None) -> Chapter:
        require_text(title, "title")
        nav = self._format.nav
        if nav is None or nav.find_toc_list() is None:
            raise WriteError("cannot add a chapter: the navigation document has no toc nav ol element")

        href = self._next_chapter_href()
        resource = self.add_file(href, self._chapter_document(title, html), EpubContentType.XHTML11)
        item = self._opf.manifest.find_by_href(href)
        self._opf.spine.item_refs.append(SpineItemRef(idref=item.id))
        self.book.special_resources.html_in_reading_order.append(resource)

        nav_path = self._format.nav_path or resource.absolute_path
        nav_href = relative_href(nav_path, resource.absolute_path)
        nav.append_entry(nav_href, title)
        self._sync_nav_resource()

        ncx = self._format.ncx
        ncx_path = self._format.ncx_path
        if ncx is not None and ncx_path is not None:
            play_order = (ncx.max_play_order() or 0) + 1
            ncx.nav_map.append(
                NcxNavPoint(
                    id=ncx.unique_point_id(f"navPoint-{play_order}"),
                    label_text=title,
                    content_src=relative_href(ncx_path, resource.absolute_path),
                    play_order=play_order,
                )
            )

        return self.book.table_of_contents.add(title, nav_href, resource.absolute_path, id=item.id)

    def clear_chapters(self) -> None:
        opf = self._opf
        opf_path = self._format.opf_path
        cover_href = opf.find_cover_path()
        keep_ids = {
            item.id
            for item in opf.manifest.items
            if item.has_property(MANIFEST_NAV_PROPERTY) or (cover_href is not None and item.href == cover_href)
        }
        spine_ids = {ref.idref for ref in opf.spine.item_refs}

        for item in list(opf.manifest.items):
            is_chapter = item.id in spine_ids
            is_image = any(
                resource.href == item.href for resource in self.book.resources.images
            )
            if item.id in keep_ids or not (is_chapter or is_image):
                continue
            opf.manifest.remove(item)
            resource = self.book.resources.find_by_path(resolve(item.href, opf_path))
            if resource is not None:
                self.book.resources.remove(resource)

        opf.spine.item_refs = []
        opf.guide = None
        if self._format.nav is not None:
            self._format.nav.clear_lists()
            self._sync_nav_resource()
        if self._format.ncx is not None:
            self._format.ncx.clear()
        self.book.special_resources.html_in_reading_order = []
        self.book.table_of_contents.clear()

    def remove_cover(self) -> None:
        item = self._opf.find_and_remove_cover()
        if item is None:
            return
        resource = self.book.resources.find_by_path(resolve(item.href, self._format.opf_path))
        if resource is not None:
            self.book.resources.remove(resource)

    def set_cover(self, data: bytes, image_format: Optional[str] = None) -> BinaryResource:
        if not data:
            raise ArgumentError("cover data must not be empty")
        content_type, extension = _cover_format(data, image_format)
        self.remove_cover()

        manifest = self._opf.manifest
        filename = f"cover.{extension}"
        index = 1
        while manifest.find_by_href(filename) is not None:
            filename = f"cover-{index}.{extension}"
            index += 1
        item = ManifestItem(
            id=manifest.unique_id(MANIFEST_COVER_IMAGE_PROPERTY),
            href=filename,
            media_type=mime_type_for(content_type),
            properties=[MANIFEST_COVER_IMAGE_PROPERTY],
        )
        manifest.items.append(item)
        self._opf.metadata.metas.append(MetadataMeta(name=META_COVER_NAME, value=item.id, in_content=True))
        resource = BinaryResource(
            href=filename,
            absolute_path=resolve(filename, self._format.opf_path),
            media_type=item.media_type,
            content_type=content_type,
            data=bytes(data),
        )
        self.book.resources.add(resource)
        return resource

    def write(self, destination: Destination) -> None:
        write_book(self.book, destination)


def _cover_format(data: bytes, image_format: Optional[str]) -> tuple[EpubContentType, str]:
    if image_format is None:
        try:
            with Image.open(io.BytesIO(data)) as img:
                image_format = img.format
        except UnidentifiedImageError as exc:
            raise WriteError("cover image format could not be recognised") from exc
    key = (image_format or "").strip().lower()
    if key not in COVER_FORMATS:
        raise WriteError(f"unsupported cover image format: {image_format}")
    return COVER_FORMATS[key]


def _check_writable(book: Book) -> None:
    epub_format = book.format
    if epub_format.ocf.root_file_path is None:
        raise WriteError("the container has no package document path")
    nav = epub_format.nav
    if nav is not None and book.table_of_contents.nodes and nav.find_toc_list() is None:
        raise WriteError("book has chapters but the navigation document has no toc nav ol element")
    if epub_format.opf.spine.toc is not None and epub_format.ncx_path is None:
        raise WriteError("spine toc is set but the NCX path is not")


def write_book(book: Book, destination: Destination) -> None:
    if book is None:
        raise ArgumentError("book must not be None")
    if destination is None:
        raise ArgumentError("destination must not be None")
    _check_writable(book)

    epub_format = book.format
    opf_path = epub_format.opf_path
    ncx_path = epub_format.ncx_path if epub_format.ncx is not None else None
    opf_bytes = write_opf(epub_format.opf)
    ocf_bytes = write_ocf(to_archive_name(opf_path))
    ncx_bytes = write_ncx(epub_format.ncx) if ncx_path is not None else None

    written = {to_archive_name(opf_path)}
    with ArchiveWriter(destination) as archive:
        archive.write_mimetype()
        archive.write_entry(OCF_PATH, ocf_bytes)
        archive.write_entry(to_archive_name(opf_path), opf_bytes)
        if ncx_path is not None and ncx_bytes is not None:
            archive.write_entry(to_archive_name(ncx_path), ncx_bytes)
            written.add(to_archive_name(ncx_path))
        for resource in book.resources.all():
            name = to_archive_name(resolve(resource.href, opf_path))
            if name in written:
                logger.debug("skipping %s, already written", name)
                continue
            archive.write_entry(name, resource.content)
            written.add(name)
        entry_count = len(archive.written)
    logger.info("wrote EPUB with %d entries", entry_count)


def make_copy(book: Book) -> Book:
    """Clone ``book`` by writing it to memory and reading it back."""
    buffer = io.BytesIO()
    write_book(book, buffer)
    return read_book(buffer.getvalue())
