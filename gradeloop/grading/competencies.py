from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List


@dataclass(frozen=True)
class Competency:
    id: str
    name: str
    emoji: str
    description: str


COMPETENCIES: Dict[str, Competency] = {
    "collaboration": Competency(
        "collaboration", "Collaboration", "🤝",
        "Works productively and respectfully with others to achieve shared goals.",
    ),
    "communication": Competency(
        "communication", "Storytelling / Communication", "💬",
        "Communicates ideas clearly, creatively, and appropriately for audience and purpose.",
    ),
    "reflexivity": Competency(
        "reflexivity", "Reflexivity", "🪞",
        "Reflects critically on learning, decisions, and assumptions.",
    ),
    "empathy": Competency(
        "empathy", "Empathy / Perspective Taking", "💛",
        "Demonstrates understanding and respect for others' perspectives and experiences.",
    ),
    "knowledge": Competency(
        "knowledge", "Knowledge-Based Reasoning", "📚",
        "Applies disciplinary and interdisciplinary knowledge to solve problems.",
    ),
    "futures": Competency(
        "futures", "Futures Thinking", "🔮",
        "Envisions and prepares for multiple and preferred futures.",
    ),
    "systems": Competency(
        "systems", "Systems Thinking", "🕸️",
        "Identifies and understands interconnections within and across systems.",
    ),
    "adaptability": Competency(
        "adaptability", "Adaptability", "🔄",
        "Responds constructively to change and ambiguity.",
    ),
    "agency": Competency(
        "agency", "Agency", "🚀",
        "Takes initiative and ownership of learning and actions.",
    ),
}

COMPETENCY_IDS: List[str] = list(COMPETENCIES.keys())

GRADES: List[str] = ["A+", "A", "B", "C", "D", "F"]

# Numeric weight per letter grade, used for trend detection only.
GRADE_VALUES: Dict[str, int] = {
    "A+": 100,
    "A": 90,
    "B": 80,
    "C": 70,
    "D": 55,
    "F": 30,
}

RUBRIC_DESCRIPTORS: Dict[str, Dict[str, str]] = {
    "collaboration": {
        "A+": "Integrates diverse ideas to develop superior outcomes and facilitates inclusion.",
        "A": "Shares leadership, listens well, and improves collective work.",
        "B": "Contributes ideas and completes role cooperatively.",
        "C": "Relies on peers for direction; passive in group decisions.",
        "D": "Disengaged or struggles with group communication.",
        "F": "Refuses to participate or blocks group progress.",
    },
    "communication": {
        "A+": "Communicates design choices with impact, purpose, and user awareness.",
        "A": "Explains processes and reasoning effectively.",
        "B": "Presents basic structure and tools used.",
        "C": "Shares limited insight into choices.",
        "D": "Communicates process poorly or incompletely.",
        "F": "No communication or context provided.",
    },
    "reflexivity": {
        "A+": "Critiques design choices and future improvements.",
        "A": "Recognizes user feedback and adapts design.",
        "B": "Comments on product development.",
        "C": "Gives surface-level review of product.",
        "D": "Fails to recognize iterative process.",
        "F": "No reflection on design process.",
    },
    "empathy": {
        "A+": "Centers design on user wellbeing, accessibility, and dignity.",
        "A": "Applies user feedback meaningfully.",
        "B": "Incorporates basic user-centered thinking.",
        "C": "Acknowledges user needs superficially.",
        "D": "Overlooks key user perspectives.",
        "F": "Design disregards or harms user interests.",
    },
    "knowledge": {
        "A+": "Bases design on deep research and interdisciplinary knowledge.",
        "A": "Makes informed decisions using data.",
        "B": "Uses basic knowledge to support ideas.",
        "C": "Design lacks rationale.",
        "D": "Unsupported or random design choices.",
        "F": "No clear thinking or evidence shown.",
    },
    "futures": {
        "A+": "Designs systems anticipating future user or planetary needs.",
        "A": "Creates sustainable or futuristic products thoughtfully.",
        "B": "Explores improvements with guidance.",
        "C": "Overlooks long-term consequences.",
        "D": "Short-term or impractical design.",
        "F": "Ignores future needs.",
    },
    "systems": {
        "A+": "Designs with multiple systems and users in mind; maps effects.",
        "A": "Considers cause/effect and user interdependence.",
        "B": "Designs address some interactions or usability.",
        "C": "Limited systems view in planning.",
        "D": "Ignores system implications.",
        "F": "No integration of systems thinking.",
    },
    "adaptability": {
        "A+": "Responds to critique with inventive, positive revisions.",
        "A": "Updates plans based on results and testing.",
        "B": "Changes parts of design with prompting.",
        "C": "Resists changes or iterates minimally.",
        "D": "Ignores design problems.",
        "F": "Abandons work when revision needed.",
    },
    "agency": {
        "A+": "Proactively leads, iterates designs, and proposes innovative solutions.",
        "A": "Manages project stages effectively and demonstrates independent ideas.",
        "B": "Completes designs with moderate independence and creativity.",
        "C": "Follows guidance to complete basic designs.",
        "D": "Requires assistance to maintain progress.",
        "F": "Avoids or neglects assigned work.",
    },
}


def format_grade(competency_id: str, grade: str) -> str:
    competency = COMPETENCIES.get(competency_id)
    if competency is None:
        return f"{competency_id}: {grade}"
    return f"{competency.emoji} {competency.name}: {grade}"


def format_grades(grades: Dict[str, str]) -> str:
    if not grades:
        return "None"
    return ", ".join(format_grade(cid, g) for cid, g in grades.items())


def competency_list() -> str:
    return ", ".join(f"{c.emoji} {c.name}" for c in COMPETENCIES.values())


def build_rubric_context(grades: Dict[str, str]) -> str:
    """Descriptor lines for the graded competencies; unknown ids/grades are skipped."""
    lines: List[str] = []
    for competency_id, grade in grades.items():
        competency = COMPETENCIES.get(competency_id)
        descriptor = RUBRIC_DESCRIPTORS.get(competency_id, {}).get(grade)
        if competency and descriptor:
            lines.append(f"{competency.emoji} {competency.name}: {grade}")
            lines.append(f"   Descriptor: {descriptor}")
    return "\n".join(lines)
