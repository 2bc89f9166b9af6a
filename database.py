import os
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from bson import ObjectId
from bson.errors import InvalidId
from dotenv import load_dotenv

from errors import InvalidRequest, ServiceUnavailable
from grading import validate_bands

# Load environment variables if present
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "appdb")

logger = logging.getLogger(__name__)

client = None
_db = None

try:
    client = MongoClient(DATABASE_URL)
    _db = client[DATABASE_NAME]
except Exception as e:
    logger.warning("Mongo client not initialized: %s", e)
    client = None
    _db = None

# Expose db for other modules
db = _db

# Natural order is not stable across servers, so every listing sorts by _id
DEFAULT_SORT: Sequence[Tuple[str, int]] = (("_id", ASCENDING),)


def get_db() -> Database:
    """FastAPI dependency returning the configured database."""
    if db is None:
        raise ServiceUnavailable("Database not initialized")
    return db


def to_object_id(id_str: Any, field: str = "id") -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise InvalidRequest(f"Invalid {field} format")


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Sequence[Tuple[str, int]] = DEFAULT_SORT,
) -> List[Dict[str, Any]]:
    filter_dict = filter_dict or {}
    cursor = database[collection_name].find(filter_dict).sort(list(sort))
    return list(cursor)


def get_document_by_id(database: Database, collection_name: str, doc_id: Any) -> Optional[Dict[str, Any]]:
    if doc_id is None:
        return None
    return database[collection_name].find_one({"_id": to_object_id(doc_id)})


def id_str(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def load_grade_scale(database: Database) -> List[Dict[str, Any]]:
    """Grade bands, highest first. Overlapping bands are served but logged."""
    bands = get_documents(database, "grade_scale", {}, sort=[("min_score", DESCENDING), ("_id", ASCENDING)])
    try:
        validate_bands(bands)
    except (ValueError, KeyError) as e:
        logger.warning("Stored grade scale is inconsistent: %s", e)
    return bands
