"""
Database Schemas for Report Card App

Each Pydantic model in the first half represents a collection in MongoDB. The
collection name is the snake_case of the class name (ExamResult -> exam_result).
The report card service only reads these collections; they are written by the
administration services.

The second half holds the response shapes. Attributes are snake_case in Python
and camelCase on the wire.
"""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, List, Literal, Optional
from datetime import datetime


ObjectIdStr = str

StudentStatus = Literal["Active", "Inactive", "Graduated", "Transferred"]
SemesterStatus = Literal["Active", "Upcoming", "Completed"]
ExamStatus = Literal["upcoming", "completed", "cancelled"]
AttendanceStatus = Literal["present", "absent", "late"]


class Student(BaseModel):
    name: str = Field(..., description="Display name")
    student_code: str = Field(..., description="School-assigned student code")
    class_id: ObjectIdStr = Field(..., description="Reference to class")
    section_id: Optional[ObjectIdStr] = Field(None, description="Reference to section")
    parent_id: Optional[ObjectIdStr] = Field(None, description="Reference to parent")
    status: StudentStatus = Field("Active")
    gender: Optional[str] = Field(None, description="Male/Female/Other")
    date_of_birth: Optional[datetime] = None


class Parent(BaseModel):
    name: str
    user_id: Optional[ObjectIdStr] = Field(None, description="Linked user account")
    children_ids: List[ObjectIdStr] = Field(default_factory=list)


class SchoolClass(BaseModel):
    """Stored in the ``class`` collection."""
    name: str
    code: Optional[str] = None


class Section(BaseModel):
    name: str
    class_id: ObjectIdStr
    room: Optional[str] = None


class Subject(BaseModel):
    name: str
    code: Optional[str] = None


class AcademicYear(BaseModel):
    name: str = Field(..., description="e.g. 2025-2026")


class Semester(BaseModel):
    name: str
    academic_year_id: ObjectIdStr
    start_date: datetime
    end_date: datetime
    status: SemesterStatus = "Upcoming"


class Exam(BaseModel):
    title: str
    subject_id: ObjectIdStr
    class_id: ObjectIdStr
    semester_id: Optional[ObjectIdStr] = None
    total_marks: float = Field(..., gt=0)
    passing_marks: Optional[float] = Field(None, description="Defaults to ceil(total_marks * 0.4)")
    status: ExamStatus = "upcoming"


class ExamResult(BaseModel):
    """One per (exam_id, student_id)."""
    exam_id: ObjectIdStr
    student_id: ObjectIdStr
    marks_obtained: float = Field(..., ge=0)
    percentage: Optional[float] = None
    is_passed: Optional[bool] = None
    grade: Optional[str] = None
    remarks: Optional[str] = None


class GradeScale(BaseModel):
    grade: str = Field(..., description="Letter grade, unique")
    min_score: float = Field(..., ge=0, le=100)
    max_score: float = Field(..., ge=0, le=100)
    gpa_points: float = Field(..., ge=0, le=4)
    description: Optional[str] = None


class AttendanceRecord(BaseModel):
    student_id: ObjectIdStr
    status: AttendanceStatus = "present"


class Attendance(BaseModel):
    """One per (class_id, section_id, date)."""
    class_id: ObjectIdStr
    section_id: Optional[ObjectIdStr] = None
    date: datetime
    records: List[AttendanceRecord] = Field(default_factory=list)


class User(BaseModel):
    name: str
    email: str
    role: str = "student"
    profile_id: Optional[ObjectIdStr] = Field(None, description="Student/teacher/parent profile")


class Session(BaseModel):
    user_id: ObjectIdStr
    token: str
    expires_at: Optional[datetime] = None


COLLECTIONS = {
    "student": Student,
    "parent": Parent,
    "class": SchoolClass,
    "section": Section,
    "subject": Subject,
    "academic_year": AcademicYear,
    "semester": Semester,
    "exam": Exam,
    "exam_result": ExamResult,
    "grade_scale": GradeScale,
    "attendance": Attendance,
    "user": User,
    "session": Session,
}


# ----------------------------- Responses -----------------------------

class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExamEntry(ApiModel):
    title: Optional[str] = None
    marks_obtained: float
    total_marks: float
    percentage: float
    grade: Optional[str] = None
    is_passed: bool


class SubjectSummary(ApiModel):
    subject: str
    code: Optional[str] = None
    exams: List[ExamEntry] = Field(default_factory=list)
    total_marks: float = 0
    total_max_marks: float = 0
    percentage: float = 0
    grade: str = "-"
    gpa: float = 0
    appreciation: str = ""


class AttendanceSummary(ApiModel):
    total: int = 0
    present: int = 0
    absent: int = 0
    late: int = 0
    rate: float = 0


class StudentInfo(ApiModel):
    id: str
    name: str
    student_id: Optional[str] = Field(None, description="School-assigned code")
    class_name: Optional[str] = Field(None, alias="class")
    section: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    gender: Optional[str] = None


class SemesterInfo(ApiModel):
    id: str
    name: str
    academic_year: Optional[str] = None
    start_date: datetime
    end_date: datetime


class ReportSummary(ApiModel):
    total_marks: float
    total_max_marks: float
    percentage: float
    grade: str
    gpa: float
    rank: Optional[int] = None
    total_students: int
    passed: bool


class StudentReportCard(ApiModel):
    student: StudentInfo
    semester: SemesterInfo
    subjects: List[SubjectSummary]
    summary: ReportSummary
    attendance: AttendanceSummary


class ClassReportEntry(ApiModel):
    student_id: str
    name: str
    student_code: Optional[str] = None
    total_marks: float
    total_max_marks: float
    percentage: float
    grade: str
    rank: Optional[int] = None
    passed: bool


class ClassReportMeta(ApiModel):
    class_id: str
    semester_id: str
    total_students: int
    total_exams: int


class StudentReportResponse(ApiModel):
    success: bool = True
    data: StudentReportCard


class ClassReportResponse(ApiModel):
    success: bool = True
    data: List[ClassReportEntry]
    meta: ClassReportMeta


class GradeBand(ApiModel):
    id: Optional[str] = None
    grade: str
    min_score: float
    max_score: float
    gpa_points: float
    description: Optional[str] = None


class GradeScaleResponse(ApiModel):
    success: bool = True
    message: Optional[str] = None
    data: List[GradeBand]


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    detail: Optional[Any] = None
