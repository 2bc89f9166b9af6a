"""
Report card endpoints.

Both reports are recomputed from the entity collections on every call; nothing
is persisted. The student report card joins exams, results, grade scale and
attendance for one student. The class summary ranks a whole class.
"""
import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Query
from pymongo.database import Database
from pymongo.errors import PyMongoError

from auth import Caller, get_current_user
from database import get_db, get_document_by_id, get_documents, load_grade_scale, to_object_id
from errors import AccessDenied, InvalidRequest, NotFound, UpstreamReadFailure
from grading import (
    aggregate_subjects,
    percentage,
    rank_class,
    resolve_grade,
    round_half_up,
    summarize_attendance,
    total_passing_marks,
)
from schemas import (
    AttendanceSummary,
    ClassReportEntry,
    ClassReportMeta,
    ClassReportResponse,
    ReportSummary,
    SemesterInfo,
    StudentInfo,
    StudentReportCard,
    StudentReportResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/report-cards", tags=["Report Cards"])


# ----------------------------- Reads -----------------------------

def completed_exams(db: Database, class_id: ObjectId, semester_id: ObjectId) -> List[Dict[str, Any]]:
    return get_documents(db, "exam", {
        "class_id": class_id,
        "semester_id": semester_id,
        "status": "completed",
    })


def results_for(db: Database, student_ids: List[ObjectId], exam_ids: List[ObjectId]) -> List[Dict[str, Any]]:
    return get_documents(db, "exam_result", {
        "student_id": {"$in": student_ids},
        "exam_id": {"$in": exam_ids},
    })


def active_students(db: Database, class_id: ObjectId) -> List[Dict[str, Any]]:
    return get_documents(db, "student", {"class_id": class_id, "status": "Active"})


def fetch_attendance(db: Database, class_id: ObjectId, semester: Dict[str, Any]) -> List[Dict[str, Any]]:
    try:
        return get_documents(db, "attendance", {
            "class_id": class_id,
            "date": {"$gte": semester["start_date"], "$lte": semester["end_date"]},
        })
    except PyMongoError as e:
        raise UpstreamReadFailure(f"Attendance fetch error: {e}") from e


def attendance_for(db: Database, student_id: str, class_id: ObjectId, semester: Dict[str, Any]) -> AttendanceSummary:
    """Attendance is best effort: a failed read or a malformed sheet yields an empty summary."""
    try:
        return summarize_attendance(student_id, fetch_attendance(db, class_id, semester))
    except UpstreamReadFailure as e:
        logger.warning("%s (class %s)", e.message, class_id)
    except Exception as e:
        logger.warning("Attendance summary error (class %s): %s", class_id, e)
    return AttendanceSummary()


def _name_of(db: Database, collection: str, doc_id: Any) -> Optional[str]:
    doc = get_document_by_id(db, collection, doc_id) if doc_id else None
    return doc.get("name") if doc else None


# ----------------------------- Access -----------------------------

def check_student_access(db: Database, caller: Caller, student_id: str) -> None:
    """Students see only themselves, parents only their children; staff see all."""
    if caller.role == "student":
        if caller.profile_id != student_id:
            logger.info("Student %s denied report card of %s", caller.user_id, student_id)
            raise AccessDenied()
    elif caller.role == "parent":
        parent = None
        if caller.profile_id:
            parent = get_document_by_id(db, "parent", caller.profile_id)
        if parent is None:
            parent = db["parent"].find_one({"user_id": to_object_id(caller.user_id, "userId")})
        target = get_document_by_id(db, "student", student_id)
        if not parent or not target or not _is_child_of(target, parent):
            logger.info("Parent %s denied report card of %s", caller.user_id, student_id)
            raise AccessDenied()


def _is_child_of(student: Dict[str, Any], parent: Dict[str, Any]) -> bool:
    if student.get("parent_id") == parent["_id"]:
        return True
    return student["_id"] in parent.get("children_ids", [])


# ----------------------------- Routes -----------------------------

@router.get("/student/{student_id}", response_model=StudentReportResponse)
def get_student_report_card(
    student_id: str,
    semester_id: Optional[str] = Query(None, alias="semesterId"),
    caller: Caller = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if not semester_id:
        raise InvalidRequest("semesterId is required")
    student_oid = to_object_id(student_id, "studentId")
    semester_oid = to_object_id(semester_id, "semesterId")
    student_id = str(student_oid)

    check_student_access(db, caller, student_id)

    student = get_document_by_id(db, "student", student_oid)
    if not student:
        raise NotFound("Student not found")
    semester = get_document_by_id(db, "semester", semester_oid)
    if not semester:
        raise NotFound("Semester not found")

    class_id = student["class_id"]
    exams = completed_exams(db, class_id, semester_oid)
    exam_ids = [e["_id"] for e in exams]
    results = results_for(db, [student_oid], exam_ids)
    bands = load_grade_scale(db)
    subject_ids = list({e["subject_id"] for e in exams if e.get("subject_id")})
    subjects_by_id = {s["_id"]: s for s in get_documents(db, "subject", {"_id": {"$in": subject_ids}})}

    subjects = aggregate_subjects(results, {e["_id"]: e for e in exams}, subjects_by_id, bands)

    total_marks = sum(s.total_marks for s in subjects)
    total_max_marks = sum(s.total_max_marks for s in subjects)
    overall = percentage(total_marks, total_max_marks)
    gpa = sum(s.gpa for s in subjects) / len(subjects) if subjects else 0

    classmates = active_students(db, class_id)
    ranking = rank_class(
        [str(s["_id"]) for s in classmates],
        results_for(db, [s["_id"] for s in classmates], exam_ids),
    )

    attendance = attendance_for(db, student_id, class_id, semester)

    logger.debug(
        "Report card for student %s semester %s: %d exams, %d results",
        student_id, semester_id, len(exams), len(results),
    )

    card = StudentReportCard(
        student=StudentInfo(
            id=student_id,
            name=student.get("name", ""),
            student_id=student.get("student_code"),
            class_name=_name_of(db, "class", class_id),
            section=_name_of(db, "section", student.get("section_id")),
            date_of_birth=student.get("date_of_birth"),
            gender=student.get("gender"),
        ),
        semester=SemesterInfo(
            id=semester_id,
            name=semester["name"],
            academic_year=_name_of(db, "academic_year", semester.get("academic_year_id")),
            start_date=semester["start_date"],
            end_date=semester["end_date"],
        ),
        subjects=subjects,
        summary=ReportSummary(
            total_marks=total_marks,
            total_max_marks=total_max_marks,
            percentage=round_half_up(overall),
            grade=resolve_grade(overall, bands).grade,
            gpa=round_half_up(gpa),
            rank=ranking.rank_of(student_id),
            total_students=ranking.total_students,
            passed=total_marks >= total_passing_marks(exams),
        ),
        attendance=attendance,
    )
    return StudentReportResponse(data=card)


@router.get("/class/{class_id}", response_model=ClassReportResponse)
def get_class_report_cards(
    class_id: str,
    semester_id: Optional[str] = Query(None, alias="semesterId"),
    caller: Caller = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if not semester_id:
        raise InvalidRequest("semesterId is required")
    class_oid = to_object_id(class_id, "classId")
    semester_oid = to_object_id(semester_id, "semesterId")

    if not get_document_by_id(db, "class", class_oid):
        raise NotFound("Class not found")

    students = active_students(db, class_oid)
    exams = completed_exams(db, class_oid, semester_oid)
    exam_ids = [e["_id"] for e in exams]
    total_max_marks = sum(e["total_marks"] for e in exams)
    passing = total_passing_marks(exams)
    bands = load_grade_scale(db)

    ranking = rank_class(
        [str(s["_id"]) for s in students],
        results_for(db, [s["_id"] for s in students], exam_ids),
    )

    summaries = []
    for s in students:
        sid = str(s["_id"])
        total = ranking.totals.get(sid, 0)
        pct = percentage(total, total_max_marks)
        summaries.append(ClassReportEntry(
            student_id=sid,
            name=s.get("name", ""),
            student_code=s.get("student_code"),
            total_marks=total,
            total_max_marks=total_max_marks,
            percentage=round_half_up(pct),
            grade=resolve_grade(pct, bands).grade,
            rank=ranking.rank_of(sid),
            passed=total >= passing,
        ))
    # Unranked students (no results) go last
    summaries.sort(key=lambda e: (e.rank is None, e.rank or 0))

    logger.debug("Class summary for %s semester %s: %d students", class_id, semester_id, len(students))

    return ClassReportResponse(
        data=summaries,
        meta=ClassReportMeta(
            class_id=class_id,
            semester_id=semester_id,
            total_students=len(students),
            total_exams=len(exams),
        ),
    )
