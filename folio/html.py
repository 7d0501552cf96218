from __future__ import annotations

import html
import re

BODY_RE = re.compile(r"<body[^>]*>(.*)</body>", re.IGNORECASE | re.DOTALL)
BLOCK_TAG_RE = re.compile(r"<(?:p|div|h[1-6]|li|br)\b[^>]*>", re.IGNORECASE)
TAG_RE = re.compile(r"</?(?:\w[\w:.-]*|\s*!--)[^>]*>")
HIDDEN_BLOCK_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
SPACES_RE = re.compile(r"[ \t\f\v\xa0]{2,}")
LINE_EDGE_RE = re.compile(r"[ \t]*\n[ \t]*")
BLANK_LINES_RE = re.compile(r"\n{2,}")


def _body_of(html_text: str) -> str:
    match = BODY_RE.search(html_text)
    return match.group(1) if match else ""


def html_to_plain_text(html_text: str) -> str:
    """Readable text of an XHTML document's body; block tags become line breaks."""
    if not html_text or not html_text.strip():
        return ""
    text = re.sub(r"\r\n?|\n", " ", html_text.strip())
    text = _body_of(text)
    text = HIDDEN_BLOCK_RE.sub("", text)
    text = BLOCK_TAG_RE.sub("\n", text)
    text = TAG_RE.sub(" ", text)
    text = html.unescape(text).replace("\xa0", " ")
    text = SPACES_RE.sub(" ", text)
    text = LINE_EDGE_RE.sub("\n", text)
    text = BLANK_LINES_RE.sub("\n", text)
    return text.strip()
