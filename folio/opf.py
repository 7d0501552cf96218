from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from lxml import etree as LXML_ET

from .constants import (
    DC_NS,
    MANIFEST_COVER_IMAGE_PROPERTY,
    MANIFEST_NAV_PROPERTY,
    META_COVER_NAME,
    NCX_MEDIA_TYPE,
    OPF_NS,
)
from .env import read_env_flag
from .errors import ParseError, WriteError
from .xmlutil import attr, child_by_local_name, iter_children_by_local_name, raw_text, xml_bytes


class EpubVersion(Enum):
    EPUB2 = "2.0"
    EPUB3 = "3.0"


EPUB_VERSIONS = {
    "2.0": EpubVersion.EPUB2,
    "3.0": EpubVersion.EPUB3,
    "3.0.1": EpubVersion.EPUB3,
    "3.1": EpubVersion.EPUB3,
}


def parse_version(value: Optional[str]) -> EpubVersion:
    version = (value or "").strip()
    if version not in EPUB_VERSIONS:
        raise ParseError(f"Unsupported EPUB version: {version or '<missing>'}.")
    return EPUB_VERSIONS[version]


@dataclass
class MetadataCreator:
    text: str
    role: Optional[str] = None
    file_as: Optional[str] = None
    alternate_script: Optional[str] = None


@dataclass
class MetadataDate:
    text: str
    event: Optional[str] = None


@dataclass
class MetadataIdentifier:
    text: str
    id: Optional[str] = None
    scheme: Optional[str] = None


@dataclass
class MetadataMeta:
    name: Optional[str] = None
    id: Optional[str] = None
    refines: Optional[str] = None
    property: Optional[str] = None
    scheme: Optional[str] = None
    value: Optional[str] = None
    # True when the value lives in a ``content`` attribute rather than element text.
    in_content: bool = False


@dataclass
class Metadata:
    titles: list[str] = field(default_factory=list)
    subjects: list[str] = field(default_factory=list)
    descriptions: list[str] = field(default_factory=list)
    publishers: list[str] = field(default_factory=list)
    creators: list[MetadataCreator] = field(default_factory=list)
    contributors: list[MetadataCreator] = field(default_factory=list)
    dates: list[MetadataDate] = field(default_factory=list)
    types: list[str] = field(default_factory=list)
    formats: list[str] = field(default_factory=list)
    identifiers: list[MetadataIdentifier] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    languages: list[str] = field(default_factory=list)
    relations: list[str] = field(default_factory=list)
    coverages: list[str] = field(default_factory=list)
    rights: list[str] = field(default_factory=list)
    metas: list[MetadataMeta] = field(default_factory=list)

    def find_meta(self, name: str) -> Optional[MetadataMeta]:
        for meta in self.metas:
            if meta.name == name:
                return meta
        return None


@dataclass
class ManifestItem:
    id: str
    href: str
    media_type: Optional[str] = None
    properties: list[str] = field(default_factory=list)
    required_namespace: Optional[str] = None
    required_modules: Optional[str] = None
    fallback: Optional[str] = None
    fallback_style: Optional[str] = None
    media_overlay: Optional[str] = None

    def has_property(self, name: str) -> bool:
        return name in self.properties


@dataclass
class Manifest:
    items: list[ManifestItem] = field(default_factory=list)

    def find_by_id(self, item_id: Optional[str]) -> Optional[ManifestItem]:
        if item_id is None:
            return None
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def find_by_href(self, href: Optional[str]) -> Optional[ManifestItem]:
        if href is None:
            return None
        for item in self.items:
            if item.href == href:
                return item
        return None

    def find_by_property(self, name: str) -> Optional[ManifestItem]:
        for item in self.items:
            if item.has_property(name):
                return item
        return None

    def unique_id(self, prefix: str) -> str:
        taken = {item.id for item in self.items}
        if prefix not in taken:
            return prefix
        index = 1
        while f"{prefix}-{index}" in taken:
            index += 1
        return f"{prefix}-{index}"

    def remove(self, item: ManifestItem) -> None:
        self.items = [candidate for candidate in self.items if candidate is not item]


@dataclass
class SpineItemRef:
    idref: str
    linear: bool = True
    id: Optional[str] = None
    properties: list[str] = field(default_factory=list)


@dataclass
class Spine:
    toc: Optional[str] = None
    item_refs: list[SpineItemRef] = field(default_factory=list)


@dataclass
class GuideReference:
    type: Optional[str] = None
    title: Optional[str] = None
    href: Optional[str] = None


@dataclass
class Guide:
    references: list[GuideReference] = field(default_factory=list)


@dataclass
class PackageDocument:
    version: EpubVersion = EpubVersion.EPUB3
    unique_identifier: Optional[str] = None
    metadata: Metadata = field(default_factory=Metadata)
    manifest: Manifest = field(default_factory=Manifest)
    spine: Spine = field(default_factory=Spine)
    guide: Optional[Guide] = None

    def _cover_item(self) -> Optional[ManifestItem]:
        meta = self.metadata.find_meta(META_COVER_NAME)
        if meta is not None and meta.value:
            item = self.manifest.find_by_id(meta.value)
            if item is not None:
                return item
        return self.manifest.find_by_property(MANIFEST_COVER_IMAGE_PROPERTY)

    def find_cover_path(self) -> Optional[str]:
        item = self._cover_item()
        return item.href if item is not None else None

    def find_ncx_path(self) -> Optional[str]:
        for item in self.manifest.items:
            if item.media_type == NCX_MEDIA_TYPE:
                return item.href
        item = self.manifest.find_by_id(self.spine.toc)
        return item.href if item is not None else None

    def find_nav_path(self) -> Optional[str]:
        item = self.manifest.find_by_property(MANIFEST_NAV_PROPERTY)
        return item.href if item is not None else None

    def find_and_remove_cover(self) -> Optional[ManifestItem]:
        """Detach the cover manifest item and every marker that points at it."""
        item = self._cover_item()
        self.metadata.metas = [meta for meta in self.metadata.metas if meta.name != META_COVER_NAME]
        for candidate in self.manifest.items:
            if candidate.has_property(MANIFEST_COVER_IMAGE_PROPERTY):
                candidate.properties = [
                    name for name in candidate.properties if name != MANIFEST_COVER_IMAGE_PROPERTY
                ]
        if item is None:
            return None
        self.manifest.remove(item)
        self.spine.item_refs = [ref for ref in self.spine.item_refs if ref.idref != item.id]
        return item


def _text_values(metadata_node: Optional[LXML_ET._Element], local_name: str) -> list[str]:
    if metadata_node is None:
        return []
    return [raw_text(node) or "" for node in iter_children_by_local_name(metadata_node, local_name)]


def _object_values(
    metadata_node: Optional[LXML_ET._Element],
    local_name: str,
    decode: Callable[[LXML_ET._Element], object],
) -> list:
    if metadata_node is None:
        return []
    return [decode(node) for node in iter_children_by_local_name(metadata_node, local_name)]


def _decode_creator(node: LXML_ET._Element) -> MetadataCreator:
    return MetadataCreator(
        text=raw_text(node) or "",
        role=attr(node, "role"),
        file_as=attr(node, "file-as"),
        alternate_script=attr(node, "alternate-script"),
    )


def _decode_date(node: LXML_ET._Element) -> MetadataDate:
    return MetadataDate(text=raw_text(node) or "", event=attr(node, "event"))


def _decode_identifier(node: LXML_ET._Element) -> MetadataIdentifier:
    return MetadataIdentifier(text=raw_text(node) or "", id=node.get("id"), scheme=attr(node, "scheme"))


def _meta_decoder(version: EpubVersion) -> Callable[[LXML_ET._Element], MetadataMeta]:
    strict = read_env_flag("FOLIO_STRICT_META_VALUES")

    def decode(node: LXML_ET._Element) -> MetadataMeta:
        content = node.get("content")
        text = raw_text(node)
        if text is not None and not text.strip():
            text = None
        if version == EpubVersion.EPUB2:
            value, in_content = content, True
            if value is None and not strict:
                value, in_content = text, False
        else:
            value, in_content = text, False
            if value is None and not strict:
                value, in_content = content, content is not None
        return MetadataMeta(
            name=node.get("name"),
            id=node.get("id"),
            refines=node.get("refines"),
            property=node.get("property"),
            scheme=node.get("scheme"),
            value=value,
            in_content=in_content,
        )

    return decode


def _decode_manifest_item(node: LXML_ET._Element) -> ManifestItem:
    properties = node.get("properties")
    return ManifestItem(
        id=node.get("id") or "",
        href=node.get("href") or "",
        media_type=node.get("media-type"),
        properties=properties.split() if properties else [],
        required_namespace=node.get("required-namespace"),
        required_modules=node.get("required-modules"),
        fallback=node.get("fallback"),
        fallback_style=node.get("fallback-style"),
        media_overlay=node.get("media-overlay"),
    )


def _decode_item_ref(node: LXML_ET._Element) -> SpineItemRef:
    properties = node.get("properties")
    return SpineItemRef(
        idref=node.get("idref") or "",
        linear=node.get("linear") != "no",
        id=node.get("id"),
        properties=properties.split() if properties else [],
    )


def read_opf(root: LXML_ET._Element) -> PackageDocument:
    version = parse_version(root.get("version"))
    metadata_node = child_by_local_name(root, "metadata")
    manifest_node = child_by_local_name(root, "manifest")
    spine_node = child_by_local_name(root, "spine")
    guide_node = child_by_local_name(root, "guide")

    metadata = Metadata(
        titles=_text_values(metadata_node, "title"),
        subjects=_text_values(metadata_node, "subject"),
        descriptions=_text_values(metadata_node, "description"),
        publishers=_text_values(metadata_node, "publisher"),
        creators=_object_values(metadata_node, "creator", _decode_creator),
        contributors=_object_values(metadata_node, "contributor", _decode_creator),
        dates=_object_values(metadata_node, "date", _decode_date),
        types=_text_values(metadata_node, "type"),
        formats=_text_values(metadata_node, "format"),
        identifiers=_object_values(metadata_node, "identifier", _decode_identifier),
        sources=_text_values(metadata_node, "source"),
        languages=_text_values(metadata_node, "language"),
        relations=_text_values(metadata_node, "relation"),
        coverages=_text_values(metadata_node, "coverage"),
        rights=_text_values(metadata_node, "rights"),
        metas=_object_values(metadata_node, "meta", _meta_decoder(version)),
    )

    manifest = Manifest(
        items=[_decode_manifest_item(node) for node in iter_children_by_local_name(manifest_node, "item")]
        if manifest_node is not None
        else []
    )
    spine = Spine(
        toc=spine_node.get("toc") if spine_node is not None else None,
        item_refs=[_decode_item_ref(node) for node in iter_children_by_local_name(spine_node, "itemref")]
        if spine_node is not None
        else [],
    )
    guide = None
    if guide_node is not None:
        guide = Guide(
            references=[
                GuideReference(type=node.get("type"), title=node.get("title"), href=node.get("href"))
                for node in iter_children_by_local_name(guide_node, "reference")
            ]
        )

    return PackageDocument(
        version=version,
        unique_identifier=root.get("unique-identifier"),
        metadata=metadata,
        manifest=manifest,
        spine=spine,
        guide=guide,
    )


def _set_optional(node: LXML_ET._Element, name: str, value: Optional[str]) -> None:
    if value is not None:
        node.set(name, value)


def _dc(parent: LXML_ET._Element, local_name: str, text: str, *, opf_attrs: bool = False) -> LXML_ET._Element:
    # Attributes cannot use the default namespace, so opf:* attributes need the prefix declared.
    nsmap = {"opf": OPF_NS} if opf_attrs else None
    node = LXML_ET.SubElement(parent, f"{{{DC_NS}}}{local_name}", nsmap=nsmap)
    node.text = text
    return node


def _opf_attr(name: str) -> str:
    return f"{{{OPF_NS}}}{name}"


def _write_metadata(parent: LXML_ET._Element, metadata: Metadata) -> None:
    node = LXML_ET.SubElement(parent, f"{{{OPF_NS}}}metadata", nsmap={"dc": DC_NS})
    for identifier in metadata.identifiers:
        element = _dc(node, "identifier", identifier.text, opf_attrs=identifier.scheme is not None)
        _set_optional(element, "id", identifier.id)
        _set_optional(element, _opf_attr("scheme"), identifier.scheme)
    for title in metadata.titles:
        _dc(node, "title", title)
    for language in metadata.languages:
        _dc(node, "language", language)
    for local_name, creators in (("creator", metadata.creators), ("contributor", metadata.contributors)):
        for creator in creators:
            element = _dc(
                node,
                local_name,
                creator.text,
                opf_attrs=any(v is not None for v in (creator.role, creator.file_as, creator.alternate_script)),
            )
            _set_optional(element, _opf_attr("role"), creator.role)
            _set_optional(element, _opf_attr("file-as"), creator.file_as)
            _set_optional(element, _opf_attr("alternate-script"), creator.alternate_script)
    for local_name, values in (
        ("publisher", metadata.publishers),
        ("subject", metadata.subjects),
        ("description", metadata.descriptions),
    ):
        for value in values:
            _dc(node, local_name, value)
    for date in metadata.dates:
        element = _dc(node, "date", date.text, opf_attrs=date.event is not None)
        _set_optional(element, _opf_attr("event"), date.event)
    for local_name, values in (
        ("type", metadata.types),
        ("format", metadata.formats),
        ("source", metadata.sources),
        ("relation", metadata.relations),
        ("coverage", metadata.coverages),
        ("rights", metadata.rights),
    ):
        for value in values:
            _dc(node, local_name, value)
    for meta in metadata.metas:
        element = LXML_ET.SubElement(node, f"{{{OPF_NS}}}meta")
        _set_optional(element, "name", meta.name)
        _set_optional(element, "id", meta.id)
        _set_optional(element, "refines", meta.refines)
        _set_optional(element, "property", meta.property)
        _set_optional(element, "scheme", meta.scheme)
        if meta.in_content:
            _set_optional(element, "content", meta.value)
        else:
            element.text = meta.value


def _write_manifest_item(
    parent: LXML_ET._Element,
    item: ManifestItem,
    extra_properties: tuple[str, ...] = (),
) -> None:
    element = LXML_ET.SubElement(parent, f"{{{OPF_NS}}}item")
    element.set("id", item.id)
    element.set("href", item.href)
    _set_optional(element, "media-type", item.media_type)
    properties = item.properties + [name for name in extra_properties if name not in item.properties]
    if properties:
        element.set("properties", " ".join(properties))
    _set_optional(element, "fallback", item.fallback)
    _set_optional(element, "fallback-style", item.fallback_style)
    _set_optional(element, "required-modules", item.required_modules)
    _set_optional(element, "required-namespace", item.required_namespace)
    _set_optional(element, "media-overlay", item.media_overlay)


def _ordered_manifest(opf: PackageDocument) -> list[ManifestItem]:
    leading: list[ManifestItem] = []
    cover_path = opf.find_cover_path()
    if cover_path is not None:
        cover = opf.manifest.find_by_href(cover_path)
        if cover is None:
            raise WriteError(f"cover path is set to {cover_path!r} but no manifest item has that href")
        leading.append(cover)
    if opf.spine.toc is not None:
        ncx_path = opf.find_ncx_path()
        ncx = opf.manifest.find_by_href(ncx_path)
        if ncx is None:
            raise WriteError("spine toc is set but the manifest has no NCX item")
        if ncx not in leading:
            leading.append(ncx)
    return leading + [item for item in opf.manifest.items if all(item is not lead for lead in leading)]


def write_opf(opf: PackageDocument) -> bytes:
    root = LXML_ET.Element(f"{{{OPF_NS}}}package", nsmap={None: OPF_NS})
    root.set("version", opf.version.value)
    _set_optional(root, "unique-identifier", opf.unique_identifier)
    _write_metadata(root, opf.metadata)

    manifest = LXML_ET.SubElement(root, f"{{{OPF_NS}}}manifest")
    ordered = _ordered_manifest(opf)
    cover = opf._cover_item()
    for item in ordered:
        if item is cover and opf.version == EpubVersion.EPUB3:
            _write_manifest_item(manifest, item, (MANIFEST_COVER_IMAGE_PROPERTY,))
        else:
            _write_manifest_item(manifest, item)

    spine = LXML_ET.SubElement(root, f"{{{OPF_NS}}}spine")
    _set_optional(spine, "toc", opf.spine.toc)
    for ref in opf.spine.item_refs:
        element = LXML_ET.SubElement(spine, f"{{{OPF_NS}}}itemref")
        _set_optional(element, "id", ref.id)
        element.set("idref", ref.idref)
        if ref.properties:
            element.set("properties", " ".join(ref.properties))
        element.set("linear", "yes" if ref.linear else "no")

    if opf.guide is not None and opf.guide.references:
        guide = LXML_ET.SubElement(root, f"{{{OPF_NS}}}guide")
        for reference in opf.guide.references:
            element = LXML_ET.SubElement(guide, f"{{{OPF_NS}}}reference")
            _set_optional(element, "type", reference.type)
            _set_optional(element, "title", reference.title)
            _set_optional(element, "href", reference.href)

    return xml_bytes(root)
