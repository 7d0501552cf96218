from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from lxml import etree as LXML_ET

from .constants import NAV_TYPE_TOC
from .errors import WriteError
from .xmlutil import (
    attr,
    child_by_local_name,
    iter_children_by_local_name,
    iter_descendants_by_local_name,
    node_text,
)


@dataclass
class NavHeadLink:
    href: Optional[str] = None
    rel: Optional[str] = None
    type: Optional[str] = None
    class_: Optional[str] = None
    title: Optional[str] = None
    media: Optional[str] = None


@dataclass
class NavMeta:
    name: Optional[str] = None
    content: Optional[str] = None
    charset: Optional[str] = None


@dataclass
class NavHead:
    title: Optional[str] = None
    links: list[NavHeadLink] = field(default_factory=list)
    metas: list[NavMeta] = field(default_factory=list)


@dataclass
class NavNav:
    """A ``<nav>`` element; list markup stays in ``dom`` and is walked on demand."""

    dom: LXML_ET._Element
    type: Optional[str] = None
    id: Optional[str] = None
    class_: Optional[str] = None
    hidden: Optional[str] = None

    @property
    def types(self) -> list[str]:
        return (self.type or "").split()

    def list_element(self) -> Optional[LXML_ET._Element]:
        found = child_by_local_name(self.dom, "ol")
        if found is not None:
            return found
        nested = iter_descendants_by_local_name(self.dom, "ol")
        return nested[0] if nested else None


@dataclass
class NavBody:
    navs: list[NavNav] = field(default_factory=list)


@dataclass
class NavDocument:
    dom: LXML_ET._Element
    head: NavHead = field(default_factory=NavHead)
    body: NavBody = field(default_factory=NavBody)

    def toc_nav(self) -> Optional[NavNav]:
        for nav in self.body.navs:
            if NAV_TYPE_TOC in nav.types:
                return nav
        return None

    def find_toc_list(self) -> Optional[LXML_ET._Element]:
        nav = self.toc_nav()
        return nav.list_element() if nav is not None else None

    def clear_lists(self) -> None:
        """Empty every nav's lists, including the nested one ``list_element`` falls back to."""
        for nav in self.body.navs:
            lists = iter_children_by_local_name(nav.dom, "ol")
            found = nav.list_element()
            if found is not None and all(found is not ol for ol in lists):
                lists.append(found)
            for ol in lists:
                for child in list(ol):
                    ol.remove(child)

    def append_entry(self, href: str, title: str) -> LXML_ET._Element:
        """Append ``<li><a href=...>title</a></li>`` to the toc list; the list must exist."""
        ol = self.find_toc_list()
        if ol is None:
            raise WriteError("navigation document has no toc nav with an ol element to anchor chapter entries")
        namespace = _namespace_of(ol)
        li = LXML_ET.SubElement(ol, f"{{{namespace}}}li" if namespace else "li")
        anchor = LXML_ET.SubElement(li, f"{{{namespace}}}a" if namespace else "a")
        anchor.set("href", href)
        anchor.text = title
        return li

    def to_bytes(self) -> bytes:
        return LXML_ET.tostring(
            self.dom.getroottree(),
            encoding="utf-8",
            xml_declaration=True,
            pretty_print=True,
        )


def _namespace_of(node: LXML_ET._Element) -> Optional[str]:
    return LXML_ET.QName(node).namespace


def read_nav(root: LXML_ET._Element) -> NavDocument:
    head_node = child_by_local_name(root, "head")
    body_node = child_by_local_name(root, "body")

    head = NavHead()
    if head_node is not None:
        head = NavHead(
            title=node_text(child_by_local_name(head_node, "title")),
            links=[
                NavHeadLink(
                    href=node.get("href"),
                    rel=node.get("rel"),
                    type=node.get("type"),
                    class_=node.get("class"),
                    title=node.get("title"),
                    media=node.get("media"),
                )
                for node in iter_children_by_local_name(head_node, "link")
            ],
            metas=[
                NavMeta(name=node.get("name"), content=node.get("content"), charset=node.get("charset"))
                for node in iter_children_by_local_name(head_node, "meta")
            ],
        )

    navs: list[NavNav] = []
    if body_node is not None:
        navs = [
            NavNav(
                dom=node,
                type=attr(node, "type"),
                id=node.get("id"),
                class_=node.get("class"),
                hidden=attr(node, "hidden"),
            )
            for node in iter_descendants_by_local_name(body_node, "nav")
        ]

    return NavDocument(dom=root, head=head, body=NavBody(navs=navs))
