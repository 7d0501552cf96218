from __future__ import annotations

import logging
from typing import Optional

from lxml import etree as LXML_ET

from .archive import EpubArchive, Source, decode_text
from .constants import OCF_PATH, OPF_MEDIA_TYPE, TEXT_CONTENT_TYPES, EpubContentType, content_type_for
from .errors import ParseError
from .models import BinaryResource, Book, ChapterTree, EpubFormat, TextResource
from .nav import read_nav
from .ncx import NcxNavPoint, read_ncx
from .ocf import read_ocf
from .opf import read_opf
from .paths import resolve, split_href
from .xmlutil import iter_children_by_local_name, iter_descendants_by_local_name, node_text, tag_local_name

logger = logging.getLogger("folio.reader")


def read_book(source: Source, leave_open: bool = False) -> Book:
    """Read an EPUB from a path, bytes or a binary stream.

    Every resource is loaded into memory before the archive is closed, so the
    returned :class:`Book` never refers back to ``source``.
    """
    with EpubArchive(source, leave_open=leave_open) as archive:
        return _read_from_archive(archive)


def _read_from_archive(archive: EpubArchive) -> Book:
    if archive.find_entry(OCF_PATH) is None:
        raise ParseError(f"{OCF_PATH} is missing")
    ocf_text = archive.read_text(OCF_PATH)
    ocf = read_ocf(archive.read_xml(OCF_PATH))

    root_file_path = ocf.root_file_path or ""
    opf_text = archive.read_text(root_file_path)
    opf = read_opf(archive.read_xml(root_file_path))

    epub_format = EpubFormat(ocf=ocf, opf=opf)
    nav_path = epub_format.nav_path
    if nav_path is not None:
        epub_format.nav = read_nav(archive.read_xml(nav_path))
    ncx_path = epub_format.ncx_path
    if ncx_path is not None:
        epub_format.ncx = read_ncx(archive.read_xml(ncx_path))

    book = Book(epub_format)
    book.special_resources.ocf = TextResource(
        href=OCF_PATH,
        absolute_path=f"/{OCF_PATH}",
        media_type="application/xml",
        content_type=EpubContentType.XML,
        text=ocf_text,
    )
    book.special_resources.opf = TextResource(
        href=root_file_path,
        absolute_path=epub_format.opf_path,
        media_type=OPF_MEDIA_TYPE,
        content_type=EpubContentType.XML,
        text=opf_text,
    )
    _load_resources(archive, book)
    _load_reading_order(book)
    _load_chapters(book)
    return book


def _load_resources(archive: EpubArchive, book: Book) -> None:
    opf_path = book.format.opf_path
    for item in book.format.opf.manifest.items:
        if not item.href:
            raise ParseError(f"manifest item {item.id!r} has no href")
        absolute_path = resolve(item.href, opf_path)
        raw = archive.read_bytes(absolute_path)
        content_type = content_type_for(item.media_type)
        if content_type in TEXT_CONTENT_TYPES:
            resource = TextResource(
                href=item.href,
                absolute_path=absolute_path,
                media_type=item.media_type,
                content_type=content_type,
                text=decode_text(raw),
            )
        else:
            resource = BinaryResource(
                href=item.href,
                absolute_path=absolute_path,
                media_type=item.media_type,
                content_type=content_type,
                data=raw,
            )
        book.resources.add(resource)


def _load_reading_order(book: Book) -> None:
    manifest = book.format.opf.manifest
    html_by_href = {resource.href: resource for resource in book.resources.html}
    ordered = []
    for ref in book.format.opf.spine.item_refs:
        item = manifest.find_by_id(ref.idref)
        if item is None:
            logger.warning("spine itemref %r has no manifest item", ref.idref)
            continue
        resource = html_by_href.get(item.href)
        if resource is None:
            logger.warning("spine itemref %r does not point at an HTML resource (%s)", ref.idref, item.href)
            continue
        ordered.append(resource)
    book.special_resources.html_in_reading_order = ordered


def _load_chapters(book: Book) -> None:
    nav = book.format.nav
    ncx = book.format.ncx
    tree = book.table_of_contents
    if nav is not None and nav.toc_nav() is not None:
        logger.debug("building chapters from the navigation document")
        toc_list = nav.find_toc_list()
        if toc_list is not None:
            _chapters_from_nav_list(tree, toc_list, book.format.nav_path or "", None)
    elif ncx is not None:
        logger.debug("building chapters from the NCX")
        _chapters_from_nav_points(tree, ncx.nav_map, book.format.ncx_path or "", None)
    else:
        logger.debug("book has no table of contents")


def _split_target(href: Optional[str], document_path: str) -> tuple[str, str, Optional[str]]:
    if not href or not href.strip():
        return "", "", None
    relative_path, anchor = split_href(href)
    if not relative_path:
        return relative_path, document_path, anchor
    return relative_path, resolve(relative_path, document_path), anchor


def _first_link(li: LXML_ET._Element) -> Optional[LXML_ET._Element]:
    for child in list(li):
        local_name = tag_local_name(child.tag)
        if local_name == "ol":
            continue
        if local_name == "a":
            return child
        links = iter_descendants_by_local_name(child, "a")
        if links:
            return links[0]
    return None


def _list_item_title(li: LXML_ET._Element) -> str:
    """First non-blank text of an ``li``, ignoring its nested ``ol``."""
    candidates = [li.text]
    for child in list(li):
        if tag_local_name(child.tag) == "ol":
            break
        if isinstance(child.tag, str):
            candidates.append(node_text(child))
        candidates.append(child.tail)
    for text in candidates:
        if text and text.strip():
            return " ".join(text.split())
    return ""


def _chapters_from_nav_list(
    tree: ChapterTree,
    ol: LXML_ET._Element,
    nav_path: str,
    parent: Optional[int],
) -> None:
    for li in iter_children_by_local_name(ol, "li"):
        title = _list_item_title(li)
        link = _first_link(li)
        relative_path, absolute_path, anchor = _split_target(
            link.get("href") if link is not None else None, nav_path
        )
        chapter = tree.add(
            title,
            relative_path,
            absolute_path,
            id=li.get("id"),
            hash_location=anchor,
            parent=parent,
        )
        for nested in iter_children_by_local_name(li, "ol"):
            _chapters_from_nav_list(tree, nested, nav_path, chapter.index)


def _chapters_from_nav_points(
    tree: ChapterTree,
    points: list[NcxNavPoint],
    ncx_path: str,
    parent: Optional[int],
) -> None:
    for point in points:
        relative_path, absolute_path, anchor = _split_target(point.content_src, ncx_path)
        chapter = tree.add(
            point.label_text.strip(),
            relative_path,
            absolute_path,
            id=point.id,
            hash_location=anchor,
            parent=parent,
        )
        _chapters_from_nav_points(tree, point.nav_points, ncx_path, chapter.index)

