"""Owner-facing notifications raised by moderation actions."""

import logging
from typing import Any, Dict, Optional

from pymongo.database import Database

from database import create_document, to_object_id
from schemas import Notification

logger = logging.getLogger(__name__)

OWNER_MESSAGES = {
    "approve": ("approved", "Your account has been approved! You can now add fields and start receiving bookings."),
    "reject": ("rejected", "Your account application was rejected. Reason: {reason}"),
    "suspend": ("suspended", "Your account has been suspended. Reason: {reason}"),
    "reactivate": ("reactivated", "Your account has been reactivated. Welcome back!"),
}

FIELD_MESSAGES = {
    "approve": ("field_approved", 'Your field "{name}" has been approved and is now live.'),
    "reactivate": ("field_approved", 'Your field "{name}" has been reactivated and is now live.'),
    "reject": ("field_rejected", 'Your field "{name}" was rejected. Reason: {reason}'),
    "disable": ("field_disabled", 'Your field "{name}" has been disabled. Reason: {reason}'),
    "block": ("field_blocked", 'Your field "{name}" has been blocked. Reason: {reason}'),
}


def notify_owner(
    db: Database,
    kind: str,
    action: str,
    entity: Dict[str, Any],
    reason: Optional[str] = None,
    resolution: Optional[str] = None,
) -> Optional[str]:
    """Best effort: a failed notification never undoes the moderation action."""
    try:
        notification = _build(db, kind, action, entity, reason, resolution)
        if notification is None:
            return None
        return create_document(db, "notification", notification)
    except Exception as e:
        logger.error(f"Failed to create notification for {kind} {entity.get('_id')}: {e}")
        return None


def _build(db, kind, action, entity, reason, resolution) -> Optional[Notification]:
    if kind == "owner" and action in OWNER_MESSAGES:
        ntype, template = OWNER_MESSAGES[action]
        return Notification(owner_id=str(entity["_id"]), type=ntype, message=template.format(reason=reason))

    if kind == "field" and action in FIELD_MESSAGES and entity.get("owner_id"):
        ntype, template = FIELD_MESSAGES[action]
        return Notification(
            owner_id=str(entity["owner_id"]),
            type=ntype,
            message=template.format(name=entity.get("name"), reason=reason),
            related_field_id=str(entity["_id"]),
        )

    if kind == "booking":
        field_oid = to_object_id(entity.get("field_id"))
        field = db["field"].find_one({"_id": field_oid}) if field_oid else None
        if not field or not field.get("owner_id"):
            return None
        if action == "resolve-dispute":
            ntype = "dispute_resolved"
            message = f'Dispute for booking at "{field.get("name")}" has been resolved. Resolution: {resolution}'
        else:
            ntype = "booking_status_changed"
            message = f'Booking for "{field.get("name")}" status changed to {entity.get("status")}'
            if reason:
                message += f". Reason: {reason}"
        return Notification(
            owner_id=str(field["owner_id"]),
            type=ntype,
            message=message,
            related_field_id=str(field["_id"]),
            related_booking_id=str(entity["_id"]),
        )

    return None
