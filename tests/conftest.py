from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from database import get_db
from main import app


@pytest.fixture()
def db():
    return mongomock.MongoClient()["report_cards_test"]


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def add_user(db, role, profile_id=None, expires_at=None):
    """Create a user plus a session and return the Authorization header."""
    user_id = db["user"].insert_one({
        "name": f"{role} user",
        "email": f"{role}-{ObjectId()}@school.test",
        "role": role,
        "profile_id": profile_id,
    }).inserted_id
    token = f"token-{user_id}"
    db["session"].insert_one({
        "user_id": user_id,
        "token": token,
        "expires_at": expires_at or datetime.now(timezone.utc) + timedelta(days=7),
    })
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def school(db):
    """
    One class with four active students and one inactive student.

    Completed exams for S1: Math 1 (100, pass 40), Math 2 (50, pass unset),
    English (100, pass 50). Totals: Binta 235, Amadou 135, Chidi 60, Dede none.
    """
    ids = {}
    db["grade_scale"].insert_many([
        {"grade": "F", "min_score": 0, "max_score": 59, "gpa_points": 0.0, "description": "Fail"},
        {"grade": "A", "min_score": 80, "max_score": 100, "gpa_points": 4.0, "description": "Excellent"},
        {"grade": "B", "min_score": 60, "max_score": 79, "gpa_points": 3.0, "description": "Good"},
    ])
    ids["year"] = db["academic_year"].insert_one({"name": "2025-2026"}).inserted_id
    ids["class"] = db["class"].insert_one({"name": "Grade 6", "code": "G6"}).inserted_id
    ids["other_class"] = db["class"].insert_one({"name": "Grade 7", "code": "G7"}).inserted_id
    ids["section"] = db["section"].insert_one({"name": "A", "class_id": ids["class"], "room": "101"}).inserted_id
    ids["s1"] = db["semester"].insert_one({
        "name": "Semester 1", "academic_year_id": ids["year"], "status": "Active",
        "start_date": datetime(2026, 1, 1), "end_date": datetime(2026, 1, 31),
    }).inserted_id
    ids["s2"] = db["semester"].insert_one({
        "name": "Semester 2", "academic_year_id": ids["year"], "status": "Upcoming",
        "start_date": datetime(2026, 2, 1), "end_date": datetime(2026, 6, 30),
    }).inserted_id
    ids["math"] = db["subject"].insert_one({"name": "Mathematics", "code": "MATH"}).inserted_id
    ids["english"] = db["subject"].insert_one({"name": "English", "code": "ENG"}).inserted_id

    ids["parent"] = ObjectId()
    ids["other_parent"] = ObjectId()
    for key, name, code, status, parent in [
        ("amadou", "Amadou Diallo", "STU001", "Active", ids["parent"]),
        ("binta", "Binta Sow", "STU002", "Active", None),
        ("chidi", "Chidi Okafor", "STU003", "Active", None),
        ("dede", "Dede Mensah", "STU004", "Active", None),
        ("eze", "Eze Nwosu", "STU005", "Inactive", None),
    ]:
        ids[key] = db["student"].insert_one({
            "name": name, "student_code": code, "status": status,
            "class_id": ids["class"], "section_id": ids["section"], "parent_id": parent,
            "gender": "Male", "date_of_birth": datetime(2014, 5, 17),
        }).inserted_id
    db["parent"].insert_one({"_id": ids["parent"], "name": "Fatou Diallo", "children_ids": [ids["amadou"]]})
    db["parent"].insert_one({"_id": ids["other_parent"], "name": "Ngozi Sow", "children_ids": [ids["binta"]]})

    def exam(key, title, subject, total, status="completed", semester="s1", passing=None):
        doc = {
            "title": title, "subject_id": ids[subject], "class_id": ids["class"],
            "semester_id": ids[semester], "total_marks": total, "status": status,
        }
        if passing is not None:
            doc["passing_marks"] = passing
        ids[key] = db["exam"].insert_one(doc).inserted_id

    exam("math1", "Math Midterm", "math", 100, passing=40)
    exam("math2", "Math Quiz", "math", 50)
    exam("eng1", "English Final", "english", 100, passing=50)
    exam("eng_upcoming", "English Oral", "english", 100, status="upcoming")
    exam("math_s2", "Math S2", "math", 100, semester="s2")

    marks = {
        "binta": {"math1": 90, "math2": 50, "eng1": 95},
        "amadou": {"math1": 60, "math2": 45, "eng1": 30, "eng_upcoming": 100, "math_s2": 100},
        "chidi": {"math1": 20, "math2": 10, "eng1": 30},
        "eze": {"math1": 100, "math2": 50, "eng1": 100},
    }
    for student, by_exam in marks.items():
        for exam_key, value in by_exam.items():
            db["exam_result"].insert_one({
                "exam_id": ids[exam_key], "student_id": ids[student], "marks_obtained": value,
            })

    # Jan 1-10: Amadou has 6 present, 1 absent, 1 late and no entry on 2 days
    statuses = ["present"] * 6 + ["absent", "late", None, None]
    for day, status in enumerate(statuses, start=1):
        records = [{"student_id": ids["binta"], "status": "present"}]
        if status:
            records.append({"student_id": ids["amadou"], "status": status})
        db["attendance"].insert_one({
            "class_id": ids["class"], "section_id": ids["section"],
            "date": datetime(2026, 1, day), "records": records,
        })
    db["attendance"].insert_one({
        "class_id": ids["class"], "section_id": ids["section"], "date": datetime(2026, 2, 5),
        "records": [{"student_id": ids["amadou"], "status": "absent"}],
    })
    db["attendance"].insert_one({
        "class_id": ids["other_class"], "date": datetime(2026, 1, 5),
        "records": [{"student_id": ids["amadou"], "status": "absent"}],
    })
    return ids


@pytest.fixture()
def admin_headers(db):
    return add_user(db, "admin")
