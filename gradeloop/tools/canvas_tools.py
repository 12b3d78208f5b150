from typing import Any, Callable, Dict, Optional

from gradeloop.core.tool_router import ToolRegistry
from gradeloop.lms.canvas import CanvasAPIError, CanvasClient

NOT_CONFIGURED = "Canvas is not configured (set CANVAS_BASE_URL and CANVAS_API_TOKEN)"


def _course_view(course: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": course.get("id"),
        "name": course.get("name"),
        "code": course.get("course_code"),
        "student_count": course.get("total_students"),
        "term": (course.get("term") or {}).get("name"),
    }


def _assignment_view(assignment: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": assignment.get("id"),
        "name": assignment.get("name"),
        "due_at": assignment.get("due_at"),
        "points_possible": assignment.get("points_possible"),
        "needs_grading": assignment.get("needs_grading_count"),
        "submission_summary": assignment.get("submission_summary"),
        "has_rubric": bool(assignment.get("rubric")),
    }


def _submission_view(sub: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": sub.get("id"),
        "user_id": sub.get("user_id"),
        "user_name": (sub.get("user") or {}).get("name"),
        "submitted_at": sub.get("submitted_at"),
        "late": sub.get("late"),
        "attempt": sub.get("attempt"),
        "score": sub.get("score"),
        "grade": sub.get("grade"),
        "submission_type": sub.get("submission_type"),
        "has_body": bool(sub.get("body")),
        "has_url": bool(sub.get("url")),
        "attachment_count": len(sub.get("attachments") or []),
    }


def register_canvas_tools(registry: ToolRegistry, canvas: Optional[CanvasClient]) -> None:
    def guarded(fn: Callable[..., Dict[str, Any]]) -> Callable[..., Dict[str, Any]]:
        def handler(**kwargs: Any) -> Dict[str, Any]:
            if canvas is None:
                return {"error": NOT_CONFIGURED}
            try:
                return fn(**kwargs)
            except CanvasAPIError as e:
                return {"error": str(e)}
        return handler

    def fetch_courses() -> Dict[str, Any]:
        return {"courses": [_course_view(c) for c in canvas.fetch_courses()]}

    def fetch_assignments(course_id: int) -> Dict[str, Any]:
        return {"assignments": [_assignment_view(a) for a in canvas.fetch_assignments(course_id)]}

    def fetch_submissions(course_id: int, assignment_id: int) -> Dict[str, Any]:
        subs = canvas.fetch_submissions(course_id, assignment_id)
        return {"submissions": [_submission_view(s) for s in subs]}

    def post_grade(course_id: int, assignment_id: int, user_id: int, grade: str) -> Dict[str, Any]:
        sub = canvas.post_grade(course_id, assignment_id, user_id, grade)
        return {"success": True, "submission_id": sub.get("id"), "posted_grade": sub.get("grade")}

    def post_comment(course_id: int, assignment_id: int, user_id: int, comment_text: str) -> Dict[str, Any]:
        sub = canvas.post_comment(course_id, assignment_id, user_id, comment_text)
        return {"success": True, "submission_id": sub.get("id")}

    registry.register("fetch_courses", guarded(fetch_courses))
    registry.register("fetch_assignments", guarded(fetch_assignments))
    registry.register("fetch_submissions", guarded(fetch_submissions))
    registry.register("post_grade", guarded(post_grade))
    registry.register("post_comment", guarded(post_comment))
