import json

import pytest
import requests

from gradeloop.lms.canvas import CanvasAPIError, CanvasClient


class FakeResponse:
    def __init__(self, payload=None, *, status=200, next_url=None, content=b""):
        self._payload = payload
        self.status_code = status
        self.ok = 200 <= status < 300
        self.text = json.dumps(payload) if payload is not None else ""
        self.content = content
        self.links = {"next": {"url": next_url}} if next_url else {}

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append({"method": method, "url": url, **kwargs})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeCanvas:
    def __init__(self, fail=False):
        self.fail = fail
        self.posted = []

    def _check(self):
        if self.fail:
            raise CanvasAPIError("Canvas API error (401): unauthorized")

    def fetch_courses(self):
        self._check()
        return [{"id": 1, "name": "Design 7", "course_code": "D7", "total_students": 24, "term": {"name": "Fall"}}]

    def fetch_assignments(self, course_id):
        self._check()
        return [{"id": 10, "name": "Chair", "rubric": [{}], "needs_grading_count": 3}]

    def fetch_submissions(self, course_id, assignment_id):
        self._check()
        return [{"id": 100, "user_id": 7, "user": {"name": "Ana"}, "body": "<p>hi</p>", "attachments": [{}, {}]}]

    def post_grade(self, course_id, assignment_id, user_id, grade):
        self._check()
        self.posted.append(("grade", user_id, grade))
        return {"id": 100, "grade": grade}

    def post_comment(self, course_id, assignment_id, user_id, text):
        self._check()
        self.posted.append(("comment", user_id, text))
        return {"id": 100}

    def download_file(self, url):
        self._check()
        return b"plain text file"


class TestCanvasClient:
    def test_follows_next_links(self):
        session = FakeSession(
            [
                FakeResponse([{"id": 1}], next_url="https://canvas.test/api/v1/courses?page=2"),
                FakeResponse([{"id": 2}]),
            ]
        )
        client = CanvasClient("https://canvas.test/", "tok", session=session)
        items = client.fetch_courses()

        assert [i["id"] for i in items] == [1, 2]
        first, second = session.requests
        assert first["url"] == "https://canvas.test/api/v1/courses"
        assert first["params"]["per_page"] == 100
        assert first["headers"]["Authorization"] == "Bearer tok"
        assert first["timeout"] == 30
        assert second["url"] == "https://canvas.test/api/v1/courses?page=2"
        assert second["params"] is None

    def test_http_error_raises(self):
        client = CanvasClient("https://canvas.test", "tok", session=FakeSession([FakeResponse({"e": 1}, status=403)]))
        with pytest.raises(CanvasAPIError, match="403"):
            client.fetch_assignments(1)

    def test_network_error_raises(self):
        session = FakeSession([requests.ConnectionError("refused")])
        client = CanvasClient("https://canvas.test", "tok", session=session)
        with pytest.raises(CanvasAPIError):
            client.fetch_courses()

    def test_post_grade_body(self):
        session = FakeSession([FakeResponse({"id": 5, "grade": "A"})])
        client = CanvasClient("https://canvas.test", "tok", session=session)
        client.post_grade(1, 2, 3, "A")

        req = session.requests[0]
        assert req["method"] == "PUT"
        assert req["url"].endswith("/api/v1/courses/1/assignments/2/submissions/3")
        assert req["json"] == {"submission": {"posted_grade": "A"}}


class TestCanvasTools:
    def test_views(self, make_registry):
        reg = make_registry(canvas=FakeCanvas())

        courses = json.loads(reg.run("fetch_courses").output)["courses"]
        assert courses == [{"id": 1, "name": "Design 7", "code": "D7", "student_count": 24, "term": "Fall"}]

        assignments = json.loads(reg.run("fetch_assignments", {"course_id": 1}).output)["assignments"]
        assert assignments[0]["has_rubric"] is True

        subs = json.loads(reg.run("fetch_submissions", {"course_id": 1, "assignment_id": 10}).output)["submissions"]
        assert subs[0]["user_name"] == "Ana"
        assert subs[0]["attachment_count"] == 2
        assert subs[0]["has_body"] is True

    def test_posts(self, make_registry):
        canvas = FakeCanvas()
        reg = make_registry(canvas=canvas)
        base = {"course_id": 1, "assignment_id": 10, "user_id": 7}

        grade = json.loads(reg.run("post_grade", {**base, "grade": "B"}).output)
        comment = json.loads(reg.run("post_comment", {**base, "comment_text": "Nice"}).output)

        assert grade == {"success": True, "submission_id": 100, "posted_grade": "B"}
        assert comment == {"success": True, "submission_id": 100}
        assert canvas.posted == [("grade", 7, "B"), ("comment", 7, "Nice")]

    def test_api_error_is_payload(self, make_registry):
        out = make_registry(canvas=FakeCanvas(fail=True)).run("fetch_courses")
        assert json.loads(out.output) == {"error": "Canvas API error (401): unauthorized"}
        assert out.is_completion is False

    def test_not_configured(self, make_registry):
        out = json.loads(make_registry().run("fetch_courses").output)
        assert "not configured" in out["error"]


class TestContentTools:
    def test_text_submission(self, make_registry):
        out = json.loads(
            make_registry().run(
                "read_submission",
                {"submission_id": 1, "submission_type": "text", "body": "<p>Hello&nbsp;<b>world</b></p>"},
            ).output
        )
        assert out["content"] == "Hello world"
        assert out["content_type"] == "text"

    def test_file_submission_downloads_via_canvas(self, make_registry):
        out = json.loads(
            make_registry(canvas=FakeCanvas()).run(
                "read_submission",
                {
                    "submission_id": 1,
                    "submission_type": "file",
                    "file_url": "https://canvas.test/files/1",
                    "content_type": "text/plain",
                },
            ).output
        )
        assert out["content"] == "plain text file"
        assert out["content_type"] == "file"

    def test_unsupported_file_type(self, make_registry):
        out = json.loads(
            make_registry(canvas=FakeCanvas()).run(
                "parse_file", {"file_url": "https://canvas.test/files/1", "content_type": "image/png"}
            ).output
        )
        assert out == {"success": False, "error": "Unsupported file type: image/png"}

    def test_nothing_readable(self, make_registry):
        out = json.loads(
            make_registry().run("read_submission", {"submission_id": 1, "submission_type": "url"}).output
        )
        assert out["success"] is False
