import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pymongo.database import Database

from auth import ADMIN_ROLES, Caller, get_current_user, require_roles
from database import get_db, load_grade_scale
from errors import InvalidRequest
from grading import DEFAULT_GRADE_SCALE
from schemas import GradeBand, GradeScale, GradeScaleResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/grade-scale", tags=["Grade Scale"])


def _band(doc: Dict[str, Any]) -> GradeBand:
    return GradeBand(
        id=str(doc["_id"]),
        grade=doc["grade"],
        min_score=doc["min_score"],
        max_score=doc["max_score"],
        gpa_points=doc["gpa_points"],
        description=doc.get("description"),
    )


@router.get("", response_model=GradeScaleResponse)
def list_grade_scale(
    caller: Caller = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return GradeScaleResponse(data=[_band(doc) for doc in load_grade_scale(db)])


@router.post("/init-defaults", response_model=GradeScaleResponse, status_code=201)
def init_default_grade_scale(
    caller: Caller = Depends(require_roles(*ADMIN_ROLES)),
    db: Database = Depends(get_db),
):
    if db["grade_scale"].count_documents({}) > 0:
        raise InvalidRequest("Grade scale already initialized")

    now = datetime.now(timezone.utc)
    db["grade_scale"].insert_many([
        {**GradeScale(**band).model_dump(), "created_at": now, "updated_at": now}
        for band in DEFAULT_GRADE_SCALE
    ])
    logger.info("Default grade scale initialized by %s", caller.user_id)
    return GradeScaleResponse(
        message="Default grade scale initialized",
        data=[_band(doc) for doc in load_grade_scale(db)],
    )
