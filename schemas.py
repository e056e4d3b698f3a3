"""
Database Schemas for the School Portal

Each Pydantic model describes the documents of one collection in MongoDB.
Field names match the stored documents so records written by the web
client and by this API stay interchangeable.
"""

from enum import Enum
from typing import Dict, List, Literal, Optional
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


AttendanceStatus = Literal["present", "absent", "late"]
TransactionType = Literal["income", "expense"]
TransactionStatus = Literal["Pending", "Completed"]


class User(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    name: str = Field(..., description="Full name")
    email: str = Field(..., description="Email address")
    role: Role = Field(Role.STUDENT, description="admin|teacher|student")
    classAssigned: str = Field("Unassigned", description="Class for students, form class for teachers")
    schoolName: str = Field("My School")
    status: Optional[str] = Field(None, description="pending for admin invites")
    uid: Optional[str] = Field(None, description="Authenticated identity id once activated")
    createdAt: Optional[datetime] = None
    activatedAt: Optional[datetime] = None


class StructuredGrade(BaseModel):
    """Component gradebook record, one per (studentId, subject)"""
    model_config = ConfigDict(populate_by_name=True)

    studentId: str
    studentName: str
    class_: str = Field(..., alias="class")
    subject: str
    test: float = 0
    assignment: float = 0
    exam: float = 0
    total: float = 0
    grade: str = "F"
    updatedAt: Optional[datetime] = None


class FreeformGrade(BaseModel):
    """Single score with feedback; every save is a new record"""
    studentId: str
    studentName: Optional[str] = None
    subject: str
    score: float
    feedback: str = "No feedback provided"
    teacherName: str = "Teacher"
    date: Optional[datetime] = None
    term: str = "First Term"


class AttendanceRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: str = Field(..., description="YYYY-MM-DD")
    class_: str = Field(..., alias="class")
    term: Optional[str] = None
    records: Dict[str, AttendanceStatus] = Field(default_factory=dict)
    markedBy: Optional[str] = None
    updatedAt: Optional[datetime] = None


class Customer(BaseModel):
    name: str
    email: str = ""
    phone: str
    status: str = "Active"
    lastPaid: str = "Never"
    balance: float = 0
    createdAt: Optional[datetime] = None


class Transaction(BaseModel):
    type: TransactionType
    amount: float
    status: TransactionStatus = "Completed"
    date: datetime
    note: str = ""
    name: str = ""
    customerId: Optional[str] = None
    customerName: Optional[str] = None
    description: Optional[str] = None
    createdAt: Optional[datetime] = None


class Remark(BaseModel):
    studentId: str
    studentName: str
    teacherName: Optional[str] = None
    message: str
    createdAt: Optional[datetime] = None
    read: bool = False


class SchoolConfig(BaseModel):
    classes: List[str] = Field(default_factory=lambda: ["JSS 1", "JSS 2", "JSS 3", "SSS 1", "SSS 2", "SSS 3"])
    subjects: List[str] = Field(default_factory=lambda: ["Mathematics", "English", "Physics", "Biology"])
    currentTerm: str = "First Term 2025/2026"


class SessionIdentity(BaseModel):
    """The per-login identity that the web client used to keep in local storage"""
    model_config = ConfigDict(use_enum_values=True)

    userId: Optional[str] = None
    userRole: Optional[Role] = None
    userName: Optional[str] = None
    userTitle: Optional[str] = None
    simulatedId: Optional[str] = None
    simulatedRole: Optional[Role] = None
    simulatedName: Optional[str] = None
    viewRole: Optional[Role] = None
