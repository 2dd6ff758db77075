"""Common models and helpers shared by the MongoDB documents"""

from typing import Optional, Any
from bson import ObjectId
from returns_engine.utils.validators import validate_object_id


def document_id(doc: Optional[dict]) -> Optional[dict]:
    """Return a copy of a MongoDB document with its ``_id`` rendered as a string"""
    if doc is None:
        return None
    doc = dict(doc)
    if isinstance(doc.get("_id"), ObjectId):
        doc["_id"] = str(doc["_id"])
    return doc


def object_id_or_none(value: Any) -> Optional[ObjectId]:
    """Convert a string id to ObjectId, or None when it is not a valid ObjectId"""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and validate_object_id(value):
        return ObjectId(value)
    return None
