import io

import pytest
from docx import Document

from gradeloop.content.extract import (
    ContentFetchError,
    UnsupportedContentType,
    extract_file_text,
    fetch_url_text,
    google_docs_export_url,
    strip_html,
)


class FakeHTTP:
    def __init__(self, *, status=200, text="", content_type="text/plain"):
        self.status = status
        self.text = text
        self.content_type = content_type
        self.urls = []

    def get(self, url, headers=None, timeout=None):
        self.urls.append(url)
        outer = self

        class R:
            status_code = outer.status
            ok = 200 <= outer.status < 300
            text = outer.text
            headers = {"content-type": outer.content_type}

        return R()


def test_strip_html_drops_scripts_styles_and_entities():
    html = "<style>p{}</style><script>alert(1)</script><h1>Title</h1><p>A &amp; B&nbsp;&lt;3</p>"
    assert strip_html(html) == "Title A & B <3"


class TestGoogleDocs:
    def test_doc_link_becomes_export(self):
        url = "https://docs.google.com/document/d/abc_123-XY/edit?usp=sharing"
        assert google_docs_export_url(url) == "https://docs.google.com/document/d/abc_123-XY/export?format=txt"

    def test_other_urls_untouched(self):
        assert google_docs_export_url("https://example.com/d/abc") == "https://example.com/d/abc"


class TestFileText:
    def test_plain_text_truncated(self):
        assert extract_file_text(b"abcdef", "text/plain", limit=3) == "abc"

    def test_docx(self):
        doc = Document()
        doc.add_paragraph("First paragraph")
        doc.add_paragraph("Second paragraph")
        buf = io.BytesIO()
        doc.save(buf)

        text = extract_file_text(
            buf.getvalue(),
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        )
        assert "First paragraph" in text
        assert "Second paragraph" in text

    def test_unsupported(self):
        with pytest.raises(UnsupportedContentType):
            extract_file_text(b"", "application/zip")


class TestUrlText:
    def test_html_page_is_stripped(self):
        http = FakeHTTP(text="<p>Hello</p>", content_type="text/html; charset=utf-8")
        out = fetch_url_text("https://example.com", session=http)
        assert out == {"content": "Hello", "source_url": "https://example.com"}

    def test_google_doc_fetches_export(self):
        http = FakeHTTP(text="doc body")
        out = fetch_url_text("https://docs.google.com/document/d/XYZ/edit", session=http)
        assert http.urls == ["https://docs.google.com/document/d/XYZ/export?format=txt"]
        assert out["content"] == "doc body"

    def test_http_error(self):
        with pytest.raises(ContentFetchError, match="404"):
            fetch_url_text("https://example.com/missing", session=FakeHTTP(status=404))
