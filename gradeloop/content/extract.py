"""
Text extraction for student submissions: HTML bodies, PDF/DOCX/plain-text
attachments, and URL submissions (Google Docs links become plain-text exports).
"""

import html
import io
import re
from typing import Any, Dict, Optional

import pdfplumber
import requests
from docx import Document

from gradeloop.infra.logging import log_event

DEFAULT_CHAR_LIMIT = 50000
USER_AGENT = "gradeloop/0.1"

_SCRIPT_RE = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")
_GDOC_ID_RE = re.compile(r"/d/([a-zA-Z0-9_-]+)")


class UnsupportedContentType(ValueError):
    pass


class ContentFetchError(RuntimeError):
    pass


def strip_html(markup: str) -> str:
    text = _SCRIPT_RE.sub("", markup)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text).replace("\xa0", " ")
    return _WS_RE.sub(" ", text).strip()


def truncate(text: str, limit: int = DEFAULT_CHAR_LIMIT) -> str:
    return text[:limit]


def is_google_docs_url(url: str) -> bool:
    return "docs.google.com" in url or "drive.google.com" in url


def google_docs_export_url(url: str) -> str:
    """Rewrite a Docs/Drive link to its txt export; other URLs pass through."""
    if not is_google_docs_url(url):
        return url
    m = _GDOC_ID_RE.search(url)
    if not m:
        return url
    return f"https://docs.google.com/document/d/{m.group(1)}/export?format=txt"


def _pdf_text(data: bytes) -> str:
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return "\n".join(pages)


def _docx_text(data: bytes) -> str:
    doc = Document(io.BytesIO(data))
    return "\n".join(p.text for p in doc.paragraphs)


def extract_file_text(data: bytes, content_type: str, *, limit: int = DEFAULT_CHAR_LIMIT) -> str:
    ct = content_type.lower()

    if "pdf" in ct:
        text = _pdf_text(data)
    elif "wordprocessingml" in ct or "msword" in ct or "docx" in ct:
        text = _docx_text(data)
    elif "text/plain" in ct:
        text = data.decode("utf-8", errors="replace")
    else:
        raise UnsupportedContentType(f"Unsupported file type: {content_type}")

    log_event("content_extracted", content_type=content_type, chars=len(text))
    return truncate(text, limit)


def fetch_url_text(
    url: str,
    *,
    limit: int = DEFAULT_CHAR_LIMIT,
    timeout: float = 30,
    session: Optional[Any] = None,
) -> Dict[str, Any]:
    http = session or requests
    fetch_url = google_docs_export_url(url)

    try:
        r = http.get(fetch_url, headers={"User-Agent": USER_AGENT}, timeout=timeout)
    except requests.RequestException as e:
        raise ContentFetchError(f"Failed to fetch URL: {e}") from e
    if not r.ok:
        raise ContentFetchError(f"Failed to fetch URL: {r.status_code}")

    content_type = r.headers.get("content-type", "")
    body = r.text
    content = strip_html(body) if "text/html" in content_type else body

    log_event("url_extracted", url=url, export=fetch_url != url, chars=len(content))
    return {"content": truncate(content, limit), "source_url": url}
