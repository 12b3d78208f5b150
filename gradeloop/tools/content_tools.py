from typing import Any, Dict, Optional

from gradeloop.content.extract import (
    ContentFetchError,
    UnsupportedContentType,
    extract_file_text,
    fetch_url_text,
    strip_html,
    truncate,
)
from gradeloop.core.tool_router import ToolRegistry
from gradeloop.lms.canvas import CanvasAPIError, CanvasClient


def _failure(message: str) -> Dict[str, Any]:
    return {"success": False, "error": message}


def register_content_tools(
    registry: ToolRegistry,
    canvas: Optional[CanvasClient],
    *,
    char_limit: int,
    http: Optional[Any] = None,
) -> None:
    """
    Submission readers. File downloads go through the Canvas client (they need
    its token); URL fetches are anonymous.
    """

    def parse_file(file_url: str, content_type: str) -> Dict[str, Any]:
        if canvas is None:
            return _failure("Canvas is not configured; cannot download submission files")
        try:
            data = canvas.download_file(file_url)
            content = extract_file_text(data, content_type, limit=char_limit)
        except (CanvasAPIError, UnsupportedContentType) as e:
            return _failure(str(e))
        return {"success": True, "content": content, "content_type": content_type}

    def parse_url(url: str) -> Dict[str, Any]:
        try:
            out = fetch_url_text(url, limit=char_limit, session=http)
        except ContentFetchError as e:
            return _failure(str(e))
        return {"success": True, **out}

    def read_submission(
        submission_id: int,
        submission_type: str,
        body: Optional[str] = None,
        url: Optional[str] = None,
        file_url: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        if submission_type == "text" and body:
            return {
                "success": True,
                "submission_id": submission_id,
                "content": truncate(strip_html(body), char_limit),
                "content_type": "text",
            }

        if submission_type == "url" and url:
            parsed = parse_url(url)
            if not parsed["success"]:
                return parsed
            return {
                "success": True,
                "submission_id": submission_id,
                "content": parsed["content"],
                "content_type": "url",
                "source_url": url,
            }

        if submission_type == "file" and file_url and content_type:
            parsed = parse_file(file_url, content_type)
            if not parsed["success"]:
                return parsed
            return {
                "success": True,
                "submission_id": submission_id,
                "content": parsed["content"],
                "content_type": "file",
            }

        return _failure("No readable content found in submission")

    registry.register("read_submission", read_submission)
    registry.register("parse_file", parse_file)
    registry.register("parse_url", parse_url)
