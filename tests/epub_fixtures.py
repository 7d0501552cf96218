import io
import zipfile
from typing import Optional, Union

from PIL import Image

CONTAINER_NS = "urn:oasis:names:tc:opendocument:xmlns:container"


def png_bytes(width: int = 4, height: int = 3, color: str = "red") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def jpeg_bytes(width: int = 5, height: int = 2) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), "blue").save(buffer, format="JPEG")
    return buffer.getvalue()


def build_epub_bytes(files: dict[str, Union[str, bytes]], *, with_mimetype: bool = True) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        if with_mimetype:
            zf.writestr("mimetype", b"application/epub+zip", compress_type=zipfile.ZIP_STORED)
        for name, content in files.items():
            zf.writestr(name, content.encode("utf-8") if isinstance(content, str) else content)
    return buffer.getvalue()


def container_xml(opf_path: str = "OEBPS/content.opf") -> str:
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        f"<container version=\"1.0\" xmlns=\"{CONTAINER_NS}\">"
        f"<rootfiles><rootfile full-path=\"{opf_path}\" media-type=\"application/oebps-package+xml\"/>"
        "</rootfiles></container>"
    )


def opf_xml(
    *,
    version: str = "3.0",
    metadata: str = "",
    manifest: str = "",
    spine: str = "",
    spine_toc: Optional[str] = None,
    guide: str = "",
) -> str:
    toc_attr = f" toc=\"{spine_toc}\"" if spine_toc else ""
    return (
        "<?xml version=\"1.0\" encoding=\"utf-8\"?>"
        f"<package xmlns=\"http://www.idpf.org/2007/opf\" unique-identifier=\"BookId\" version=\"{version}\">"
        "<metadata xmlns:dc=\"http://purl.org/dc/elements/1.1/\" xmlns:opf=\"http://www.idpf.org/2007/opf\">"
        f"{metadata}"
        "</metadata>"
        f"<manifest>{manifest}</manifest>"
        f"<spine{toc_attr}>{spine}</spine>"
        f"{guide}"
        "</package>"
    )


def nav_xhtml(toc_items: str = "", *, extra_navs: str = "", title: str = "Contents") -> str:
    return (
        "<?xml version=\"1.0\" encoding=\"utf-8\"?>"
        "<!DOCTYPE html>"
        "<html xmlns=\"http://www.w3.org/1999/xhtml\" xmlns:epub=\"http://www.idpf.org/2007/ops\">"
        f"<head><meta charset=\"utf-8\"/><title>{title}</title>"
        "<link rel=\"stylesheet\" type=\"text/css\" href=\"Styles/book.css\"/></head><body>"
        f"<nav epub:type=\"toc\" id=\"toc\"><h1>{title}</h1><ol>{toc_items}</ol></nav>"
        f"{extra_navs}"
        "</body></html>"
    )


def ncx_xml(nav_points: str = "", *, title: str = "Sample Book", extra: str = "") -> str:
    return (
        "<?xml version=\"1.0\" encoding=\"utf-8\"?>"
        "<ncx xmlns=\"http://www.daisy.org/z3986/2005/ncx/\" version=\"2005-1\">"
        "<head><meta name=\"dtb:uid\" content=\"urn:uuid:1234\"/><meta name=\"dtb:depth\" content=\"2\"/></head>"
        f"<docTitle><text>{title}</text></docTitle>"
        "<docAuthor><text>Ada Lovelace</text></docAuthor>"
        f"<navMap>{nav_points}</navMap>"
        f"{extra}"
        "</ncx>"
    )


def nav_point(point_id: str, play_order: int, label: str, src: str, children: str = "") -> str:
    return (
        f"<navPoint id=\"{point_id}\" playOrder=\"{play_order}\">"
        f"<navLabel><text>{label}</text></navLabel><content src=\"{src}\"/>{children}</navPoint>"
    )


def chapter_html(title: str, body: str) -> str:
    return (
        "<?xml version=\"1.0\" encoding=\"utf-8\"?>"
        "<html xmlns=\"http://www.w3.org/1999/xhtml\" xml:lang=\"en\">"
        f"<head><meta charset=\"utf-8\"/><title>{title}</title></head>"
        f"<body>{body}</body></html>"
    )


SAMPLE_METADATA = (
    "<dc:identifier id=\"BookId\" opf:scheme=\"uuid\">urn:uuid:1234</dc:identifier>"
    "<dc:title>Sample Book</dc:title>"
    "<dc:title>Subtitle</dc:title>"
    "<dc:creator opf:role=\"aut\" opf:file-as=\"Lovelace, Ada\">Ada Lovelace</dc:creator>"
    "<dc:creator>Charles Babbage</dc:creator>"
    "<dc:contributor opf:role=\"edt\">Mary Somerville</dc:contributor>"
    "<dc:language>en</dc:language>"
    "<dc:publisher>Analytical Press</dc:publisher>"
    "<dc:subject>Computing</dc:subject>"
    "<dc:description>A book about engines.</dc:description>"
    "<dc:date opf:event=\"publication\">1843-01-01</dc:date>"
    "<dc:rights>Public domain</dc:rights>"
    "<meta name=\"cover\" content=\"cover-img\"/>"
    "<meta property=\"dcterms:modified\">2024-01-01T00:00:00Z</meta>"
)

SAMPLE_MANIFEST = (
    "<item id=\"nav\" href=\"nav.xhtml\" media-type=\"application/xhtml+xml\" properties=\"nav\"/>"
    "<item id=\"ncx\" href=\"toc.ncx\" media-type=\"application/x-dtbncx+xml\"/>"
    "<item id=\"css\" href=\"Styles/book.css\" media-type=\"text/css\"/>"
    "<item id=\"ch1\" href=\"Text/ch1.xhtml\" media-type=\"application/xhtml+xml\"/>"
    "<item id=\"ch2\" href=\"Text/ch2.xhtml\" media-type=\"application/xhtml+xml\" fallback=\"ch1\"/>"
    "<item id=\"cover-img\" href=\"Images/cover.png\" media-type=\"image/png\"/>"
    "<item id=\"fig\" href=\"Images/fig.png\" media-type=\"image/png\"/>"
    "<item id=\"font\" href=\"Fonts/serif.ttf\" media-type=\"application/x-font-ttf\"/>"
)

SAMPLE_NAV_ITEMS = (
    "<li id=\"toc-ch1\"><a href=\"Text/ch1.xhtml\">Chapter One</a>"
    "<ol>"
    "<li><a href=\"Text/ch1.xhtml#s1\">Section 1.1</a></li>"
    "<li><a href=\"Text/ch1.xhtml#s2\">Section <em>1.2</em></a></li>"
    "</ol></li>"
    "<li><a href=\"Text/ch2.xhtml\">Chapter Two</a></li>"
)

SAMPLE_LANDMARKS = (
    "<nav epub:type=\"landmarks\" id=\"landmarks\" hidden=\"\"><ol>"
    "<li><a epub:type=\"bodymatter\" href=\"Text/ch1.xhtml\">Start</a></li>"
    "</ol></nav>"
)


def sample_book_files(cover: Optional[bytes] = None) -> dict[str, Union[str, bytes]]:
    return {
        "META-INF/container.xml": container_xml(),
        "OEBPS/content.opf": opf_xml(
            metadata=SAMPLE_METADATA,
            manifest=SAMPLE_MANIFEST,
            spine="<itemref idref=\"ch1\"/><itemref idref=\"ch2\" linear=\"no\" properties=\"page-spread-right\"/>",
            spine_toc="ncx",
            guide="<guide><reference type=\"text\" title=\"Start\" href=\"Text/ch1.xhtml\"/></guide>",
        ),
        "OEBPS/nav.xhtml": nav_xhtml(SAMPLE_NAV_ITEMS, extra_navs=SAMPLE_LANDMARKS),
        "OEBPS/toc.ncx": ncx_xml(
            nav_point("np-1", 1, "Chapter One", "Text/ch1.xhtml")
            + nav_point("np-2", 2, "Chapter Two", "Text/ch2.xhtml")
        ),
        "OEBPS/Styles/book.css": "body { margin: 0; }",
        "OEBPS/Text/ch1.xhtml": chapter_html(
            "Chapter One",
            "<h1>Chapter One</h1><p>It was a dark &amp; stormy night.</p>",
        ),
        "OEBPS/Text/ch2.xhtml": chapter_html("Chapter Two", "<h1>Chapter Two</h1><p>The end.</p>"),
        "OEBPS/Images/cover.png": cover if cover is not None else png_bytes(4, 3),
        "OEBPS/Images/fig.png": png_bytes(2, 2, "green"),
        "OEBPS/Fonts/serif.ttf": b"\x00\x01\x00\x00fake-font",
    }


def sample_book_bytes() -> bytes:
    return build_epub_bytes(sample_book_files())


def minimal_book_bytes() -> bytes:
    return build_epub_bytes(
        {
            "META-INF/container.xml": container_xml("content.opf"),
            "content.opf": opf_xml(
                metadata="<dc:title>Minimal</dc:title>",
                manifest="<item id=\"nav\" href=\"nav.xhtml\" media-type=\"application/xhtml+xml\" properties=\"nav\"/>",
            ),
            "nav.xhtml": (
                "<?xml version=\"1.0\" encoding=\"utf-8\"?>"
                "<html xmlns=\"http://www.w3.org/1999/xhtml\" xmlns:epub=\"http://www.idpf.org/2007/ops\">"
                "<head><title>Minimal</title></head><body><nav epub:type=\"toc\"><ol></ol></nav></body></html>"
            ),
        }
    )


def ncx_only_book_bytes() -> bytes:
    nested = nav_point("np-2", 2, "Part 1.1", "Text/ch1.xhtml#part")
    return build_epub_bytes(
        {
            "META-INF/container.xml": container_xml(),
            "OEBPS/content.opf": opf_xml(
                version="2.0",
                metadata=(
                    "<dc:title>Legacy Book</dc:title>"
                    "<dc:creator opf:role=\"aut\">Old Author</dc:creator>"
                    "<meta name=\"cover\" content=\"cover\"/>"
                ),
                manifest=(
                    "<item id=\"ncx\" href=\"toc.ncx\" media-type=\"application/x-dtbncx+xml\"/>"
                    "<item id=\"ch1\" href=\"Text/ch1.xhtml\" media-type=\"application/xhtml+xml\"/>"
                    "<item id=\"ch2\" href=\"Text/ch2.xhtml\" media-type=\"application/xhtml+xml\"/>"
                    "<item id=\"cover\" href=\"Images/cover.jpg\" media-type=\"image/jpeg\"/>"
                ),
                spine="<itemref idref=\"ch1\"/><itemref idref=\"ch2\"/>",
                spine_toc="ncx",
            ),
            "OEBPS/toc.ncx": ncx_xml(
                nav_point("np-1", 1, "Part 1", "Text/ch1.xhtml", children=nested)
                + nav_point("np-3", 3, "Part 2", "Text/ch2.xhtml"),
                title="Legacy Book",
            ),
            "OEBPS/Text/ch1.xhtml": chapter_html("Part 1", "<p>First</p>"),
            "OEBPS/Text/ch2.xhtml": chapter_html("Part 2", "<p>Second</p>"),
            "OEBPS/Images/cover.jpg": jpeg_bytes(5, 2),
        }
    )
