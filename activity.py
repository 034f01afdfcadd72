"""
Append-only audit ledger of admin actions.

Records are inserted once and never updated or deleted here.
"""

import copy
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict
from pymongo.database import Database

from database import create_document, paginate, serialize, to_object_id
from errors import NotFound, ValidationError
from schemas import ActivityLog

logger = logging.getLogger(__name__)

COLLECTION = "activitylog"


class StatusSnapshot(BaseModel):
    """Status-bearing fields of an entity frozen at one point in time."""

    model_config = ConfigDict(frozen=True)

    status: str
    details: Dict[str, Any] = {}

    @classmethod
    def capture(cls, status: str, **details: Any) -> "StatusSnapshot":
        # deep copy so later edits to the source document don't leak in
        return cls(status=status, details=copy.deepcopy(details))

    def as_document(self) -> Dict[str, Any]:
        doc = {"status": self.status}
        doc.update(copy.deepcopy(self.details))
        return doc


def _as_document(value: Union[StatusSnapshot, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(value, StatusSnapshot):
        return value.as_document()
    return copy.deepcopy(dict(value))


def append_activity(
    db: Database,
    admin_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    before: Union[StatusSnapshot, Dict[str, Any]],
    after: Union[StatusSnapshot, Dict[str, Any]],
    description: Optional[str] = None,
    request_meta: Optional[Dict[str, Optional[str]]] = None,
) -> str:
    meta = request_meta or {}
    record = ActivityLog(
        admin_id=str(admin_id),
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        before=_as_document(before),
        after=_as_document(after),
        description=description,
        ip=meta.get("ip"),
        user_agent=meta.get("user_agent"),
    )
    log_id = create_document(db, COLLECTION, record)
    logger.debug(f"Activity {action} recorded for {entity_type} {entity_id}")
    return log_id


def _parse_date(value: str, name: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid {name}: {value}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def list_activity(
    db: Database,
    entity_type: Optional[str] = None,
    admin_id: Optional[str] = None,
    action: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if entity_type:
        query["entity_type"] = entity_type
    if admin_id:
        query["admin_id"] = admin_id
    if action:
        query["action"] = {"$regex": re.escape(action), "$options": "i"}
    if start_date or end_date:
        query["created_at"] = {}
        if start_date:
            query["created_at"]["$gte"] = _parse_date(start_date, "startDate")
        if end_date:
            query["created_at"]["$lte"] = _parse_date(end_date, "endDate")

    result = paginate(db, COLLECTION, query, page=page, limit=limit)
    return {"logs": result["items"], "pagination": result["pagination"]}


def get_activity(db: Database, log_id: str) -> Dict[str, Any]:
    oid = to_object_id(log_id)
    doc = db[COLLECTION].find_one({"_id": oid}) if oid else None
    if not doc:
        raise NotFound("Activity log not found")
    return serialize(doc)
