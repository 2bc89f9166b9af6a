"""
Report card arithmetic: grade lookup, per-subject aggregation, class ranking and
attendance summaries.

Everything here is a pure function over documents already read from MongoDB, so
the same snapshot always produces the same report.
"""
import math
import os
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from schemas import AttendanceSummary, ExamEntry, SubjectSummary

PASSING_RATIO = float(os.getenv("PASSING_RATIO", "0.4"))


class GradeMatch(NamedTuple):
    grade: str
    gpa_points: float
    description: str


NO_GRADE = GradeMatch("-", 0.0, "")

DEFAULT_GRADE_SCALE = [
    {"grade": "A+", "min_score": 95, "max_score": 100, "gpa_points": 4.0, "description": "Excellent"},
    {"grade": "A", "min_score": 90, "max_score": 94, "gpa_points": 4.0, "description": "Excellent"},
    {"grade": "A-", "min_score": 87, "max_score": 89, "gpa_points": 3.7, "description": "Very Good"},
    {"grade": "B+", "min_score": 83, "max_score": 86, "gpa_points": 3.3, "description": "Good"},
    {"grade": "B", "min_score": 80, "max_score": 82, "gpa_points": 3.0, "description": "Good"},
    {"grade": "B-", "min_score": 77, "max_score": 79, "gpa_points": 2.7, "description": "Above Average"},
    {"grade": "C+", "min_score": 73, "max_score": 76, "gpa_points": 2.3, "description": "Average"},
    {"grade": "C", "min_score": 70, "max_score": 72, "gpa_points": 2.0, "description": "Average"},
    {"grade": "C-", "min_score": 67, "max_score": 69, "gpa_points": 1.7, "description": "Below Average"},
    {"grade": "D", "min_score": 60, "max_score": 66, "gpa_points": 1.0, "description": "Pass"},
    {"grade": "F", "min_score": 0, "max_score": 59, "gpa_points": 0.0, "description": "Fail"},
]


def round_half_up(value: float, places: int = 2) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def percentage(obtained: float, maximum: float) -> float:
    """Unrounded percentage, 0 when there is nothing to score against."""
    return obtained / maximum * 100 if maximum > 0 else 0.0


def effective_passing_marks(exam: Dict[str, Any], ratio: float = PASSING_RATIO) -> float:
    # Unset or zero passing marks fall back to the ratio of total marks
    return exam.get("passing_marks") or math.ceil(exam.get("total_marks", 0) * ratio)


def total_passing_marks(exams: Iterable[Dict[str, Any]]) -> float:
    return sum(effective_passing_marks(exam) for exam in exams)


def resolve_grade(score: float, bands: Iterable[Dict[str, Any]]) -> GradeMatch:
    """
    Look up the band containing ``score``.

    Bands are expected sorted by min_score descending and non-overlapping; the
    first band with ``min_score <= score <= max_score`` wins. Scores that fall
    in a gap (e.g. 59.5 between 0-59 and 60-66) resolve to NO_GRADE.
    """
    for band in bands:
        if band["min_score"] <= score <= band["max_score"]:
            return GradeMatch(
                band["grade"],
                band.get("gpa_points") or 0.0,
                band.get("description") or "",
            )
    return NO_GRADE


def validate_bands(bands: List[Dict[str, Any]]) -> None:
    """Raise ValueError unless every score in [0, 100] matches at most one band."""
    ordered = sorted(bands, key=lambda b: b["min_score"])
    seen = set()
    for band in ordered:
        if band["grade"] in seen:
            raise ValueError(f"Duplicate grade {band['grade']}")
        seen.add(band["grade"])
        if not 0 <= band["min_score"] <= 100 or not 0 <= band["max_score"] <= 100:
            raise ValueError(f"Grade {band['grade']} must lie within 0-100")
        if band["max_score"] < band["min_score"]:
            raise ValueError(
                f"Grade {band['grade']}: maximum score must be greater than or equal to minimum score"
            )
    for lower, upper in zip(ordered, ordered[1:]):
        if upper["min_score"] <= lower["max_score"]:
            raise ValueError(f"Grades {lower['grade']} and {upper['grade']} overlap")


def _exam_entry(result: Dict[str, Any], exam: Dict[str, Any], bands: List[Dict[str, Any]]) -> ExamEntry:
    marks = result.get("marks_obtained", 0)
    pct = result.get("percentage")
    if pct is None:
        pct = percentage(marks, exam["total_marks"])
    is_passed = result.get("is_passed")
    if is_passed is None:
        is_passed = marks >= effective_passing_marks(exam)
    grade = result.get("grade")
    if not grade:
        match = resolve_grade(pct, bands)
        grade = match.grade if match is not NO_GRADE else None
    return ExamEntry(
        title=exam.get("title"),
        marks_obtained=marks,
        total_marks=exam["total_marks"],
        percentage=round_half_up(pct),
        grade=grade,
        is_passed=is_passed,
    )


def aggregate_subjects(
    results: Iterable[Dict[str, Any]],
    exams_by_id: Dict[Any, Dict[str, Any]],
    subjects_by_id: Dict[Any, Dict[str, Any]],
    bands: List[Dict[str, Any]],
) -> List[SubjectSummary]:
    """
    Group one student's results by subject and grade each subject.

    Subjects are keyed by id so that two subjects sharing a display name stay
    apart. Output keeps the order in which subjects are first seen. Results whose
    exam or subject can no longer be found are skipped.
    """
    grouped: Dict[Any, SubjectSummary] = {}
    for result in results:
        exam = exams_by_id.get(result.get("exam_id"))
        if exam is None:
            continue
        subject = subjects_by_id.get(exam.get("subject_id"))
        if subject is None:
            continue

        summary = grouped.get(subject["_id"])
        if summary is None:
            summary = grouped[subject["_id"]] = SubjectSummary(
                subject=subject["name"], code=subject.get("code")
            )
        summary.exams.append(_exam_entry(result, exam, bands))
        summary.total_marks += result.get("marks_obtained", 0)
        summary.total_max_marks += exam["total_marks"]

    for summary in grouped.values():
        pct = percentage(summary.total_marks, summary.total_max_marks)
        match = resolve_grade(pct, bands)
        summary.percentage = round_half_up(pct)
        summary.grade = match.grade
        summary.gpa = match.gpa_points
        summary.appreciation = match.description
    return list(grouped.values())


@dataclass
class ClassRanking:
    """Totals for every student considered and ranks for those with results."""
    totals: Dict[str, float] = field(default_factory=dict)
    ranks: Dict[str, int] = field(default_factory=dict)

    @property
    def total_students(self) -> int:
        return len(self.ranks)

    def rank_of(self, student_id: str) -> Optional[int]:
        return self.ranks.get(student_id)


def rank_class(student_ids: Iterable[str], results: Iterable[Dict[str, Any]]) -> ClassRanking:
    """
    Rank students by total marks, highest first.

    Ranks are positions in the sorted list, so tied totals get consecutive ranks
    in the order their first result was seen. Students without any result keep a
    total of 0 but are not ranked and do not count toward ``total_students``.
    """
    ranking = ClassRanking(totals={sid: 0 for sid in student_ids})
    with_results: Dict[str, float] = {}
    for result in results:
        sid = str(result["student_id"])
        if sid not in ranking.totals:
            continue
        with_results[sid] = with_results.get(sid, 0) + result.get("marks_obtained", 0)

    ranking.totals.update(with_results)
    ordered = sorted(with_results.items(), key=lambda item: item[1], reverse=True)
    ranking.ranks = {sid: position for position, (sid, _) in enumerate(ordered, start=1)}
    return ranking


def summarize_attendance(student_id: str, attendance_docs: Iterable[Dict[str, Any]]) -> AttendanceSummary:
    """Count one student's statuses over the given class attendance sheets."""
    summary = AttendanceSummary()
    for doc in attendance_docs:
        record = next(
            (r for r in doc.get("records", []) if str(r.get("student_id")) == student_id),
            None,
        )
        # No entry for the day means the day is not counted at all
        if record is None:
            continue
        summary.total += 1
        status = record.get("status", "present")
        if status == "present":
            summary.present += 1
        elif status == "absent":
            summary.absent += 1
        elif status == "late":
            summary.late += 1

    if summary.total > 0:
        summary.rate = round_half_up((summary.present + summary.late) / summary.total * 100, 1)
    return summary
