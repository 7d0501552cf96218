from __future__ import annotations

from typing import Optional, Union

from lxml import etree as LXML_ET

from .errors import ParseError


def xml_root_from_bytes(raw: Union[bytes, str], source: str = "document") -> LXML_ET._Element:
    """Parse XML without resolving entities or fetching DTDs over the network."""
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    parser = LXML_ET.XMLParser(
        resolve_entities=False,
        no_network=True,
        load_dtd=False,
        recover=True,
    )
    try:
        root = LXML_ET.fromstring(raw, parser=parser)
    except LXML_ET.XMLSyntaxError as exc:
        raise ParseError(f"{source} is not well-formed XML: {exc}") from exc
    if root is None:
        raise ParseError(f"{source} has no root element")
    return root


def xml_bytes(root: LXML_ET._Element, *, pretty: bool = True) -> bytes:
    return LXML_ET.tostring(root, encoding="utf-8", xml_declaration=True, pretty_print=pretty)


def tag_local_name(tag: object) -> str:
    if not tag or not isinstance(tag, str):
        return ""
    if "}" in tag:
        return tag.split("}", 1)[1]
    return tag


def child_by_local_name(node: LXML_ET._Element, local_name: str) -> Optional[LXML_ET._Element]:
    for child in list(node):
        if tag_local_name(child.tag) == local_name:
            return child
    return None


def iter_children_by_local_name(node: LXML_ET._Element, local_name: str) -> list[LXML_ET._Element]:
    return [child for child in list(node) if tag_local_name(child.tag) == local_name]


def iter_descendants_by_local_name(node: LXML_ET._Element, local_name: str) -> list[LXML_ET._Element]:
    return [child for child in node.iterdescendants() if tag_local_name(child.tag) == local_name]


def attr(node: LXML_ET._Element, name: str) -> Optional[str]:
    """Attribute value by exact name, falling back to a namespaced attribute with that local name."""
    value = node.attrib.get(name)
    if value is not None:
        return str(value)
    for key, candidate in node.attrib.items():
        if tag_local_name(key) == name:
            return str(candidate)
    return None


def node_text(node: Optional[LXML_ET._Element]) -> Optional[str]:
    if node is None:
        return None
    text = "".join(node.itertext()).strip()
    return text or None


def raw_text(node: Optional[LXML_ET._Element]) -> Optional[str]:
    if node is None:
        return None
    return "".join(node.itertext())
