from datetime import datetime, timezone
from typing import Dict, List, Optional

from gradeloop.grading.competencies import COMPETENCY_IDS, GRADE_VALUES
from gradeloop.grading.schemas import CompetencyStat, GradeEntry, StudentRecord, Trend

TREND_WINDOW = 3
TREND_THRESHOLD = 5


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def calculate_trend(history: List[GradeEntry]) -> Trend:
    """First vs last of the three most recent entries, +/-5 points on the grade scale."""
    if len(history) < 2:
        return "new"

    ordered = sorted(history, key=lambda h: datetime.fromisoformat(h.date))
    recent = ordered[-TREND_WINDOW:]

    diff = GRADE_VALUES[recent[-1].grade] - GRADE_VALUES[recent[0].grade]
    if diff > TREND_THRESHOLD:
        return "improving"
    if diff < -TREND_THRESHOLD:
        return "declining"
    return "steady"


def empty_competencies() -> Dict[str, CompetencyStat]:
    return {cid: CompetencyStat() for cid in COMPETENCY_IDS}


def new_record(course_id: int, user_id: int) -> StudentRecord:
    return StudentRecord(
        course_id=course_id,
        user_id=user_id,
        competencies=empty_competencies(),
        last_updated=_now(),
    )


def apply_score(
    record: StudentRecord,
    *,
    assignment_id: int,
    competency_id: str,
    grade: str,
    when: Optional[str] = None,
) -> CompetencyStat:
    """
    Record one grade; re-scoring the same assignment replaces its entry.
    Mutates and returns the competency's stat.
    """
    stamp = when or _now()
    stat = record.competencies.setdefault(competency_id, CompetencyStat())
    stat.current_grade = grade

    entry = GradeEntry(assignment_id=assignment_id, grade=grade, date=stamp)
    for i, existing in enumerate(stat.history):
        if existing.assignment_id == assignment_id:
            stat.history[i] = entry
            break
    else:
        stat.history.append(entry)

    stat.trend = calculate_trend(stat.history)
    record.last_updated = stamp
    return stat
