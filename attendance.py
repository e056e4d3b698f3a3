from datetime import date as date_type
from typing import Dict, List, Optional, get_args

from app_logger import get_logger
from database import DocumentStore, now
from errors import ValidationError
from schemas import AttendanceRecord, AttendanceStatus, Role
from school_config import current_term

logger = get_logger(__name__)

ATTENDANCE = "attendance"
STATUSES = get_args(AttendanceStatus)
UNKNOWN_TERM = "Unknown Term"


def record_id(class_name: str, day: str) -> str:
    return f"{class_name}_{day}"


def today() -> str:
    return date_type.today().isoformat()


def class_roster(store: DocumentStore, class_name: str) -> List[dict]:
    return store.get_documents("users", {"classAssigned": class_name, "role": Role.STUDENT.value})


class AttendanceRegister:
    """One class on one day. Students never marked stay unset."""

    def __init__(self, class_name: str, day: Optional[str] = None):
        if not class_name:
            raise ValidationError("Select a class", "CLASS_REQUIRED")
        self.class_name = class_name
        self.day = day or today()
        self.records: Dict[str, str] = {}

    @property
    def doc_id(self) -> str:
        return record_id(self.class_name, self.day)

    def mark(self, student_id: str, status: str) -> None:
        if status not in STATUSES:
            raise ValidationError(f"Unknown attendance status: {status}", "INVALID_STATUS",
                                  {"status": status, "allowed": list(STATUSES)})
        self.records[student_id] = status

    def status_of(self, student_id: str) -> Optional[str]:
        return self.records.get(student_id)

    def save(self, store: DocumentStore, marked_by: Optional[str] = None, term: Optional[str] = None) -> dict:
        # The stored day is replaced by exactly what is marked here
        record = AttendanceRecord(
            date=self.day,
            class_=self.class_name,
            term=term or current_term(store, UNKNOWN_TERM),
            records=dict(self.records),
            markedBy=marked_by,
            updatedAt=now(),
        )
        saved = store.set_document(ATTENDANCE, self.doc_id, record.model_dump(by_alias=True))
        logger.info(f"Attendance for {self.class_name} on {self.day} saved ({len(self.records)} marked)")
        return saved


def load_attendance(store: DocumentStore, class_name: str, day: str) -> Optional[dict]:
    return store.get_document(ATTENDANCE, record_id(class_name, day))
