from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Optional

from lxml import etree as LXML_ET

from .constants import NCX_NS
from .errors import ParseError
from .xmlutil import (
    attr,
    child_by_local_name,
    iter_children_by_local_name,
    node_text,
    raw_text,
    tag_local_name,
    xml_bytes,
)

PAGE_TARGET_TYPES = ("front", "normal", "special", "body")


@dataclass
class NcxMeta:
    name: Optional[str] = None
    content: Optional[str] = None
    scheme: Optional[str] = None


@dataclass
class NcxNavPoint:
    id: Optional[str]
    label_text: str
    content_src: str
    class_: Optional[str] = None
    play_order: Optional[int] = None
    nav_points: list["NcxNavPoint"] = field(default_factory=list)


@dataclass
class NcxPageTarget:
    id: Optional[str] = None
    value: Optional[int] = None
    type: Optional[str] = None
    class_: Optional[str] = None
    label: Optional[str] = None
    content_src: Optional[str] = None


@dataclass
class NcxPageList:
    targets: list[NcxPageTarget] = field(default_factory=list)


@dataclass
class NcxNavTarget:
    id: Optional[str] = None
    class_: Optional[str] = None
    play_order: Optional[int] = None
    label: Optional[str] = None
    content_src: Optional[str] = None


@dataclass
class NcxNavList:
    id: Optional[str] = None
    class_: Optional[str] = None
    label: Optional[str] = None
    targets: list[NcxNavTarget] = field(default_factory=list)


@dataclass
class NcxDocument:
    metas: list[NcxMeta] = field(default_factory=list)
    doc_title: Optional[str] = None
    doc_author: Optional[str] = None
    nav_map: list[NcxNavPoint] = field(default_factory=list)
    page_list: Optional[NcxPageList] = None
    nav_list: Optional[NcxNavList] = None

    def walk(self) -> Iterator[NcxNavPoint]:
        stack = list(reversed(self.nav_map))
        while stack:
            point = stack.pop()
            yield point
            stack.extend(reversed(point.nav_points))

    def max_play_order(self) -> Optional[int]:
        orders = [point.play_order for point in self.walk() if point.play_order is not None]
        return max(orders) if orders else None

    def unique_point_id(self, prefix: str) -> str:
        taken = {point.id for point in self.walk()}
        if prefix not in taken:
            return prefix
        index = 1
        while f"{prefix}-{index}" in taken:
            index += 1
        return f"{prefix}-{index}"

    def clear(self) -> None:
        self.nav_map = []
        if self.page_list is not None:
            self.page_list.targets = []
        if self.nav_list is not None:
            self.nav_list.targets = []


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _label_text(node: LXML_ET._Element) -> Optional[str]:
    label = child_by_local_name(node, "navLabel")
    if label is None:
        return None
    return raw_text(child_by_local_name(label, "text"))


def _content_src(node: LXML_ET._Element) -> Optional[str]:
    content = child_by_local_name(node, "content")
    return attr(content, "src") if content is not None else None


def _read_nav_point(node: LXML_ET._Element) -> NcxNavPoint:
    point_id = node.get("id")
    label = _label_text(node)
    if label is None:
        raise ParseError(f"navPoint {point_id!r} in the TOC file has no navLabel text")
    content_src = _content_src(node)
    if content_src is None:
        raise ParseError(f"navPoint {point_id!r} in the TOC file has no content source")
    return NcxNavPoint(
        id=point_id,
        class_=node.get("class"),
        play_order=_optional_int(node.get("playOrder")),
        label_text=label,
        content_src=content_src,
        nav_points=[_read_nav_point(child) for child in iter_children_by_local_name(node, "navPoint")],
    )


def _read_page_target(node: LXML_ET._Element) -> NcxPageTarget:
    page_type = node.get("type")
    if page_type is not None:
        page_type = page_type.strip().lower()
        if page_type not in PAGE_TARGET_TYPES:
            raise ParseError(f"pageTarget {node.get('id')!r} has unknown type {node.get('type')!r}")
    return NcxPageTarget(
        id=node.get("id"),
        value=_optional_int(node.get("value")),
        type=page_type,
        class_=node.get("class"),
        label=_label_text(node),
        content_src=_content_src(node),
    )


def read_ncx(root: LXML_ET._Element) -> NcxDocument:
    head = child_by_local_name(root, "head")
    if head is None:
        raise ParseError("TOC file does not contain head element")
    doc_title = child_by_local_name(root, "docTitle")
    if doc_title is None:
        raise ParseError("TOC file does not contain docTitle element")
    nav_map = child_by_local_name(root, "navMap")
    if nav_map is None:
        raise ParseError("TOC file does not contain navMap element")

    doc_author = child_by_local_name(root, "docAuthor")
    page_list_node = child_by_local_name(root, "pageList")
    nav_list_node = child_by_local_name(root, "navList")

    page_list = None
    if page_list_node is not None:
        page_list = NcxPageList(
            targets=[_read_page_target(node) for node in iter_children_by_local_name(page_list_node, "pageTarget")]
        )
    nav_list = None
    if nav_list_node is not None:
        nav_list = NcxNavList(
            id=nav_list_node.get("id"),
            class_=nav_list_node.get("class"),
            label=_label_text(nav_list_node),
            targets=[
                NcxNavTarget(
                    id=node.get("id"),
                    class_=node.get("class"),
                    play_order=_optional_int(node.get("playOrder")),
                    label=_label_text(node),
                    content_src=_content_src(node),
                )
                for node in iter_children_by_local_name(nav_list_node, "navTarget")
            ],
        )

    return NcxDocument(
        metas=[
            NcxMeta(name=node.get("name"), content=node.get("content"), scheme=node.get("scheme"))
            for node in list(head)
            if tag_local_name(node.tag) == "meta"
        ],
        doc_title=node_text(child_by_local_name(doc_title, "text")),
        doc_author=node_text(child_by_local_name(doc_author, "text")) if doc_author is not None else None,
        nav_map=[_read_nav_point(node) for node in iter_children_by_local_name(nav_map, "navPoint")],
        page_list=page_list,
        nav_list=nav_list,
    )


def _ncx(parent: LXML_ET._Element, local_name: str) -> LXML_ET._Element:
    return LXML_ET.SubElement(parent, f"{{{NCX_NS}}}{local_name}")


def _set_optional(node: LXML_ET._Element, name: str, value: object) -> None:
    if value is not None and str(value).strip():
        node.set(name, str(value))


def _write_label(parent: LXML_ET._Element, local_name: str, text: Optional[str]) -> None:
    wrapper = _ncx(parent, local_name)
    _ncx(wrapper, "text").text = text or ""


def _write_content(parent: LXML_ET._Element, src: Optional[str]) -> None:
    if src is not None:
        _ncx(parent, "content").set("src", src)


def _write_nav_points(parent: LXML_ET._Element, points: list[NcxNavPoint]) -> None:
    for point in points:
        element = _ncx(parent, "navPoint")
        _set_optional(element, "id", point.id)
        _set_optional(element, "class", point.class_)
        _set_optional(element, "playOrder", point.play_order)
        _write_label(element, "navLabel", point.label_text)
        _write_content(element, point.content_src)
        _write_nav_points(element, point.nav_points)


def write_ncx(ncx: NcxDocument) -> bytes:
    root = LXML_ET.Element(f"{{{NCX_NS}}}ncx", nsmap={None: NCX_NS})
    root.set("version", "2005-1")

    head = _ncx(root, "head")
    for meta in ncx.metas:
        element = _ncx(head, "meta")
        _set_optional(element, "name", meta.name)
        _set_optional(element, "content", meta.content)
        _set_optional(element, "scheme", meta.scheme)

    _write_label(root, "docTitle", ncx.doc_title)
    if ncx.doc_author:
        _write_label(root, "docAuthor", ncx.doc_author)

    _write_nav_points(_ncx(root, "navMap"), ncx.nav_map)

    if ncx.page_list is not None and ncx.page_list.targets:
        page_list = _ncx(root, "pageList")
        for target in ncx.page_list.targets:
            element = _ncx(page_list, "pageTarget")
            _set_optional(element, "id", target.id)
            _set_optional(element, "value", target.value)
            _set_optional(element, "type", target.type)
            _set_optional(element, "class", target.class_)
            _write_label(element, "navLabel", target.label)
            _write_content(element, target.content_src)

    if ncx.nav_list is not None and ncx.nav_list.targets:
        nav_list = _ncx(root, "navList")
        _set_optional(nav_list, "id", ncx.nav_list.id)
        _set_optional(nav_list, "class", ncx.nav_list.class_)
        if ncx.nav_list.label is not None:
            _write_label(nav_list, "navLabel", ncx.nav_list.label)
        for target in ncx.nav_list.targets:
            element = _ncx(nav_list, "navTarget")
            _set_optional(element, "id", target.id)
            _set_optional(element, "class", target.class_)
            _set_optional(element, "playOrder", target.play_order)
            _write_label(element, "navLabel", target.label)
            _write_content(element, target.content_src)

    return xml_bytes(root)
