from typing import Any, Dict

from gradeloop.core.tool_router import ToolRegistry
from gradeloop.grading.history import apply_score, empty_competencies, new_record
from gradeloop.infra.storage import GradeStore


def register_student_tools(registry: ToolRegistry, store: GradeStore) -> None:
    def read_student_history(course_id: int, user_id: int) -> Dict[str, Any]:
        record = store.get_student_record(course_id, user_id)
        if record is None:
            return {
                "success": True,
                "found": False,
                "message": "No history found for this student in this course",
                "competencies": {
                    cid: stat.model_dump() for cid, stat in empty_competencies().items()
                },
            }
        return {"success": True, "found": True, **record.model_dump()}

    def score_competency(
        course_id: int,
        user_id: int,
        assignment_id: int,
        competency_id: str,
        grade: str,
    ) -> Dict[str, Any]:
        record = store.get_student_record(course_id, user_id) or new_record(course_id, user_id)
        stat = apply_score(
            record,
            assignment_id=assignment_id,
            competency_id=competency_id,
            grade=grade,
        )
        store.put_student_record(record)
        return {
            "success": True,
            "competency_id": competency_id,
            "grade": grade,
            "trend": stat.trend,
            "history_count": len(stat.history),
        }

    registry.register("read_student_history", read_student_history)
    registry.register("score_competency", score_competency)
