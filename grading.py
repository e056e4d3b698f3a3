"""
Grade computation and the two gradebooks.

The structured gradebook collects test/assignment/exam components per
student for one class and subject and upserts one record per
(student, subject). The freeform gradebook stores a single score with
feedback and appends a new record on every save. Both write to the same
collection; only freeform records carry a date.
"""

import math
import time
from typing import Any, Dict, List, NamedTuple, Optional

from app_logger import get_logger
from database import DocumentStore, now
from errors import RequiredFieldError, ValidationError
from schemas import FreeformGrade, Remark, StructuredGrade
from school_config import current_term

logger = get_logger(__name__)

GRADES = "grades"
REMARKS = "remarks"

GRADE_THRESHOLDS = ((70, "A"), (60, "B"), (50, "C"), (45, "D"))
FAILING_GRADE = "F"
COMPONENTS = ("test", "assignment", "exam")
NO_FEEDBACK = "No feedback provided"
DEFAULT_TEACHER = "Teacher"
DEFAULT_TERM = "First Term"


class GradeResult(NamedTuple):
    total: float
    grade: str


def letter_grade(total: float) -> str:
    for floor, letter in GRADE_THRESHOLDS:
        if total >= floor:
            return letter
    return FAILING_GRADE


def parse_score(value: Any) -> float:
    """Coerce a component score; anything unparseable counts as 0."""
    try:
        score = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return score if math.isfinite(score) else 0.0


def compute(test: Any = 0, assignment: Any = 0, exam: Any = 0) -> GradeResult:
    total = parse_score(test) + parse_score(assignment) + parse_score(exam)
    return GradeResult(total, letter_grade(total))


def structured_grade_id(student_id: str, subject: str) -> str:
    return f"{student_id}_{subject}"


# ==============================================================================
# Structured gradebook
# ==============================================================================

class StructuredGradebook:
    def __init__(self, class_name: str, subject: str):
        self.class_name = class_name
        self.subject = subject
        self.entries: Dict[str, Dict[str, Any]] = {}

    def enter(self, student_id: str, field: str, value: Any) -> Dict[str, Any]:
        if field not in COMPONENTS:
            raise ValidationError(f"Unknown score component: {field}", "UNKNOWN_COMPONENT", {"field": field})
        entry = dict(self.entries.get(student_id) or {c: 0.0 for c in COMPONENTS})
        entry[field] = parse_score(value)
        result = compute(*(entry[c] for c in COMPONENTS))
        entry["total"], entry["grade"] = result.total, result.grade
        self.entries[student_id] = entry
        return entry

    def save(self, store: DocumentStore, student: dict) -> Optional[dict]:
        entry = self.entries.get(student["id"])
        if not entry:
            return None
        return upsert_structured_grade(store, student, self.class_name, self.subject, entry)


def upsert_structured_grade(store: DocumentStore, student: dict, class_name: str, subject: str,
                            components: Dict[str, Any]) -> dict:
    result = compute(*(components.get(c, 0) for c in COMPONENTS))
    record = StructuredGrade(
        studentId=student["id"],
        studentName=student.get("name", ""),
        class_=class_name,
        subject=subject,
        test=parse_score(components.get("test")),
        assignment=parse_score(components.get("assignment")),
        exam=parse_score(components.get("exam")),
        total=result.total,
        grade=result.grade,
        updatedAt=now(),
    )
    doc_id = structured_grade_id(student["id"], subject)
    saved = store.set_document(GRADES, doc_id, record.model_dump(by_alias=True))
    logger.info(f"Saved {subject} grade {result.grade} ({result.total}) for {student['id']}")
    return saved


# ==============================================================================
# Freeform gradebook
# ==============================================================================

def append_freeform_grade(store: DocumentStore, student: dict, subject: str, score: Any,
                          feedback: Optional[str] = None, teacher_name: Optional[str] = None,
                          term: Optional[str] = None) -> dict:
    if score is None or (isinstance(score, str) and not score.strip()):
        raise RequiredFieldError("score", "Please enter a score")
    try:
        value = float(score)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("Score must be a number", "INVALID_SCORE", {"score": score})
    if not math.isfinite(value):
        raise ValidationError("Score must be a number", "INVALID_SCORE", {"score": score})

    record = FreeformGrade(
        studentId=student["id"],
        studentName=student.get("name"),
        subject=subject,
        score=value,
        feedback=(feedback or "").strip() or NO_FEEDBACK,
        teacherName=teacher_name or DEFAULT_TEACHER,
        date=now(),
        term=term or current_term(store, DEFAULT_TERM),
    )
    saved = store.create_document(GRADES, record.model_dump())
    logger.info(f"Appended {subject} score {value} for {student['id']}")
    return saved


def list_student_results(store: DocumentStore, student_id: Optional[str]) -> List[dict]:
    """Dated grade records for one student, newest first."""
    if not student_id:
        return []
    return store.get_documents(GRADES, {"studentId": student_id}, order_by="date", descending=True)


# ==============================================================================
# Remarks
# ==============================================================================

def send_remark(store: DocumentStore, student: dict, message: str, teacher_name: Optional[str] = None) -> dict:
    if not (message or "").strip():
        raise RequiredFieldError("message", "Please enter a message")
    remark = Remark(
        studentId=student["id"],
        studentName=student.get("name", ""),
        teacherName=teacher_name,
        message=message,
        createdAt=now(),
    )
    doc_id = f"{student['id']}_{int(time.time() * 1000)}"
    return store.set_document(REMARKS, doc_id, remark.model_dump())
