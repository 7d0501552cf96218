from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Optional

OCF_PATH = "META-INF/container.xml"
MIMETYPE_PATH = "mimetype"
EPUB_MIMETYPE = "application/epub+zip"
DEFAULT_ENCODING = "utf-8"

CONTAINER_NS = "urn:oasis:names:tc:opendocument:xmlns:container"
OPF_NS = "http://www.idpf.org/2007/opf"
DC_NS = "http://purl.org/dc/elements/1.1/"
NCX_NS = "http://www.daisy.org/z3986/2005/ncx/"

OPF_MEDIA_TYPE = "application/oebps-package+xml"
NCX_MEDIA_TYPE = "application/x-dtbncx+xml"
XHTML_MEDIA_TYPE = "application/xhtml+xml"

DEFAULT_UNIQUE_IDENTIFIER = "uuid_id"
NEW_BOOK_OPF_PATH = "EPUB/package.opf"
NEW_BOOK_NCX_HREF = "toc.ncx"
NEW_BOOK_NAV_HREF = "nav.xhtml"

MANIFEST_NAV_PROPERTY = "nav"
MANIFEST_COVER_IMAGE_PROPERTY = "cover-image"
META_COVER_NAME = "cover"
NAV_TYPE_TOC = "toc"
AUTHOR_SEPARATOR = ", "


class EpubContentType(Enum):
    XHTML11 = "xhtml11"
    DTBOOK = "dtbook"
    DTBOOK_NCX = "dtbook-ncx"
    OEB1_DOCUMENT = "oeb1-document"
    XML = "xml"
    CSS = "css"
    OEB1_CSS = "oeb1-css"
    IMAGE_GIF = "image-gif"
    IMAGE_JPEG = "image-jpeg"
    IMAGE_PNG = "image-png"
    IMAGE_SVG = "image-svg"
    IMAGE_WEBP = "image-webp"
    FONT_TRUETYPE = "font-truetype"
    FONT_OPENTYPE = "font-opentype"
    FONT_WOFF = "font-woff"
    FONT_WOFF2 = "font-woff2"
    OTHER = "other"


# The first media type listed for a content type is the one written back.
MIME_TYPE_TO_CONTENT_TYPE = MappingProxyType(
    {
        "application/xhtml+xml": EpubContentType.XHTML11,
        "text/html": EpubContentType.XHTML11,
        "application/x-dtbook+xml": EpubContentType.DTBOOK,
        "application/x-dtbncx+xml": EpubContentType.DTBOOK_NCX,
        "text/x-oeb1-document": EpubContentType.OEB1_DOCUMENT,
        "application/xml": EpubContentType.XML,
        "text/css": EpubContentType.CSS,
        "text/x-oeb1-css": EpubContentType.OEB1_CSS,
        "image/gif": EpubContentType.IMAGE_GIF,
        "image/jpeg": EpubContentType.IMAGE_JPEG,
        "image/png": EpubContentType.IMAGE_PNG,
        "image/svg+xml": EpubContentType.IMAGE_SVG,
        "image/webp": EpubContentType.IMAGE_WEBP,
        "font/truetype": EpubContentType.FONT_TRUETYPE,
        "font/ttf": EpubContentType.FONT_TRUETYPE,
        "application/x-font-ttf": EpubContentType.FONT_TRUETYPE,
        "font/opentype": EpubContentType.FONT_OPENTYPE,
        "font/otf": EpubContentType.FONT_OPENTYPE,
        "application/vnd.ms-opentype": EpubContentType.FONT_OPENTYPE,
        "font/woff": EpubContentType.FONT_WOFF,
        "application/font-woff": EpubContentType.FONT_WOFF,
        "font/woff2": EpubContentType.FONT_WOFF2,
    }
)


def _first_mime_types() -> dict[EpubContentType, str]:
    mapping: dict[EpubContentType, str] = {}
    for mime_type, content_type in MIME_TYPE_TO_CONTENT_TYPE.items():
        mapping.setdefault(content_type, mime_type)
    return mapping


CONTENT_TYPE_TO_MIME_TYPE = MappingProxyType(_first_mime_types())

TEXT_CONTENT_TYPES = frozenset(
    {
        EpubContentType.XHTML11,
        EpubContentType.DTBOOK,
        EpubContentType.DTBOOK_NCX,
        EpubContentType.OEB1_DOCUMENT,
        EpubContentType.XML,
        EpubContentType.CSS,
        EpubContentType.OEB1_CSS,
    }
)
IMAGE_CONTENT_TYPES = frozenset(
    {
        EpubContentType.IMAGE_GIF,
        EpubContentType.IMAGE_JPEG,
        EpubContentType.IMAGE_PNG,
        EpubContentType.IMAGE_SVG,
        EpubContentType.IMAGE_WEBP,
    }
)
FONT_CONTENT_TYPES = frozenset(
    {
        EpubContentType.FONT_TRUETYPE,
        EpubContentType.FONT_OPENTYPE,
        EpubContentType.FONT_WOFF,
        EpubContentType.FONT_WOFF2,
    }
)


def content_type_for(media_type: Optional[str]) -> EpubContentType:
    normalized = (media_type or "").strip().lower()
    return MIME_TYPE_TO_CONTENT_TYPE.get(normalized, EpubContentType.OTHER)


def mime_type_for(content_type: EpubContentType) -> str:
    return CONTENT_TYPE_TO_MIME_TYPE.get(content_type, "application/octet-stream")
