from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests

from gradeloop.infra.logging import log_event

PER_PAGE = 100


class CanvasAPIError(RuntimeError):
    """Non-2xx answer or network failure talking to Canvas."""


class CanvasClient:
    """
    Thin Canvas REST client.

    Reason:
    - Tools only need a handful of endpoints; a full SDK is overkill.
    Benefit:
    - Every call goes through one place: auth header, timeout, error mapping.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.http = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    def _url(self, endpoint: str) -> str:
        return endpoint if endpoint.startswith("http") else f"{self.base_url}{endpoint}"

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> requests.Response:
        url = self._url(endpoint)
        try:
            r = self.http.request(
                method, url, headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            log_event("canvas_request_failed", method=method, url=url, error=type(e).__name__)
            raise CanvasAPIError(f"Canvas request failed: {e}") from e

        if not r.ok:
            log_event("canvas_http_error", method=method, url=url, status=r.status_code)
            raise CanvasAPIError(f"Canvas API error ({r.status_code}): {r.text}")
        return r

    def fetch_all_pages(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Follow Link rel="next" until exhausted; later pages carry their own query string."""
        items: List[Dict[str, Any]] = []
        url: Optional[str] = endpoint
        query: Optional[Dict[str, Any]] = {"per_page": PER_PAGE, **(params or {})}
        pages = 0

        while url:
            r = self._request("GET", url, params=query)
            items.extend(r.json())
            pages += 1
            url = r.links.get("next", {}).get("url")
            query = None

        log_event("canvas_paginated", endpoint=endpoint, pages=pages, items=len(items))
        return items

    def put(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", endpoint, json=body).json()

    # ----------------------------
    # Endpoints
    # ----------------------------

    def fetch_courses(self) -> List[Dict[str, Any]]:
        return self.fetch_all_pages(
            "/api/v1/courses",
            {
                "include[]": ["total_students", "teachers", "term"],
                "state[]": "available",
                "enrollment_type": "teacher",
            },
        )

    def fetch_assignments(self, course_id: int) -> List[Dict[str, Any]]:
        return self.fetch_all_pages(
            f"/api/v1/courses/{course_id}/assignments",
            {"include[]": "submission_summary"},
        )

    def fetch_submissions(self, course_id: int, assignment_id: int) -> List[Dict[str, Any]]:
        return self.fetch_all_pages(
            f"/api/v1/courses/{course_id}/assignments/{assignment_id}/submissions",
            {"include[]": ["user", "submission_comments", "rubric_assessment"]},
        )

    def post_grade(self, course_id: int, assignment_id: int, user_id: int, grade: str) -> Dict[str, Any]:
        return self.put(
            f"/api/v1/courses/{course_id}/assignments/{assignment_id}/submissions/{user_id}",
            {"submission": {"posted_grade": grade}},
        )

    def post_comment(self, course_id: int, assignment_id: int, user_id: int, text: str) -> Dict[str, Any]:
        return self.put(
            f"/api/v1/courses/{course_id}/assignments/{assignment_id}/submissions/{user_id}",
            {"comment": {"text_comment": text}},
        )

    def download_file(self, file_url: str) -> bytes:
        return self._request("GET", file_url).content
