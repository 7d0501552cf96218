from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from lxml import etree as LXML_ET

from .constants import CONTAINER_NS, OPF_MEDIA_TYPE
from .errors import ParseError
from .xmlutil import attr, child_by_local_name, iter_children_by_local_name

EPUB_TEMPLATES_DIR = Path(__file__).resolve().parent / "epub_templates"


@lru_cache(maxsize=1)
def epub_template_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(EPUB_TEMPLATES_DIR)),
        autoescape=select_autoescape(
            enabled_extensions=("xml", "xhtml", "html", "j2"),
            default_for_string=False,
        ),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_epub_template(template_name: str, **context: object) -> str:
    return epub_template_env().get_template(template_name).render(**context)


@dataclass
class RootFile:
    full_path: str
    media_type: Optional[str] = None


@dataclass
class OcfDocument:
    root_files: list[RootFile] = field(default_factory=list)

    @property
    def root_file_path(self) -> Optional[str]:
        for root_file in self.root_files:
            if root_file.media_type == OPF_MEDIA_TYPE:
                return root_file.full_path
        return None


def read_ocf(root: LXML_ET._Element) -> OcfDocument:
    rootfiles_node = child_by_local_name(root, "rootfiles")
    entries = iter_children_by_local_name(rootfiles_node, "rootfile") if rootfiles_node is not None else []
    document = OcfDocument(
        root_files=[
            RootFile(full_path=attr(entry, "full-path") or "", media_type=attr(entry, "media-type"))
            for entry in entries
            if attr(entry, "full-path")
        ]
    )
    if not document.root_files:
        raise ParseError("container.xml has no rootfile entries")
    if document.root_file_path is None:
        raise ParseError(f"container.xml has no rootfile with media type {OPF_MEDIA_TYPE}")
    return document


def write_ocf(opf_path: str) -> bytes:
    return render_epub_template(
        "container.xml.j2",
        namespace=CONTAINER_NS,
        opf_path=opf_path,
        media_type=OPF_MEDIA_TYPE,
    ).encode("utf-8")
