import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, Header
from pymongo.database import Database

from database import get_db, id_str
from errors import AccessDenied, Unauthorized

logger = logging.getLogger(__name__)

ADMIN_ROLES = ("super_admin", "admin", "moderator")


@dataclass(frozen=True)
class Caller:
    """The authenticated user behind the current request."""
    user_id: str
    role: str
    profile_id: Optional[str] = None
    name: Optional[str] = None


def _as_utc(value: datetime) -> datetime:
    # pymongo hands back naive datetimes unless the client is tz_aware
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# Auth helpers
def get_current_user(
    authorization: Optional[str] = Header(None),
    db: Database = Depends(get_db),
) -> Caller:
    if not authorization:
        raise Unauthorized("Missing Authorization header")
    token = authorization.replace("Bearer ", "").strip()
    session = db["session"].find_one({"token": token})
    if not session:
        raise Unauthorized("Invalid token")
    if session.get("expires_at") and _as_utc(session["expires_at"]) < datetime.now(timezone.utc):
        raise Unauthorized("Token expired")
    user = db["user"].find_one({"_id": session["user_id"]})
    if not user:
        raise Unauthorized("User not found")
    return Caller(
        user_id=str(user["_id"]),
        role=user.get("role", "student"),
        profile_id=id_str(user.get("profile_id")),
        name=user.get("name"),
    )


def require_roles(*roles: str):
    """Dependency factory rejecting callers whose role is not listed."""
    def checker(caller: Caller = Depends(get_current_user)) -> Caller:
        if caller.role not in roles:
            logger.info("Role %s denied (user %s)", caller.role, caller.user_id)
            raise AccessDenied("Access denied. Insufficient role.")
        return caller
    return checker
