"""
Entity status transition model.

Owners, fields and bookings change status only along the edges listed in
TRANSITIONS. A successful change rewrites the status in place and appends
exactly one activity log record; if the record cannot be written the entity
is put back the way it was.

Which role may trigger which action lives in permissions.py, not here.
"""

import logging
from typing import Any, Dict, FrozenSet, NamedTuple, Optional, Set, Tuple

from pymongo import ReturnDocument
from pymongo.database import Database

from activity import StatusSnapshot, append_activity
from database import to_object_id, utcnow
from errors import InvalidTransition, NotFound, ValidationError
from notifications import notify_owner
from permissions import require_permission
from platform_settings import commission_split, get_commission_rate

logger = logging.getLogger(__name__)

OWNER = "owner"
FIELD = "field"
BOOKING = "booking"

KINDS = (OWNER, FIELD, BOOKING)

COLLECTIONS = {OWNER: "owner", FIELD: "field", BOOKING: "booking"}

STATUS_KEY = {OWNER: "status", FIELD: "approval_status", BOOKING: "status"}

STATUSES: Dict[str, FrozenSet[str]] = {
    OWNER: frozenset({"pending_review", "approved", "rejected", "suspended"}),
    FIELD: frozenset({"pending", "approved", "rejected", "disabled", "blocked"}),
    BOOKING: frozenset({"pending", "confirmed", "completed", "cancelled", "disputed"}),
}

TRANSITIONS: Dict[str, Dict[str, FrozenSet[str]]] = {
    OWNER: {
        "pending_review": frozenset({"approved", "rejected"}),
        "approved": frozenset({"suspended"}),
        "suspended": frozenset({"approved"}),  # reactivate
        "rejected": frozenset(),
    },
    FIELD: {
        "pending": frozenset({"approved", "rejected"}),
        "approved": frozenset({"disabled", "blocked"}),
        "disabled": frozenset({"approved"}),
        "blocked": frozenset({"approved"}),
        "rejected": frozenset({"approved"}),
    },
    BOOKING: {
        "pending": frozenset({"confirmed", "cancelled", "disputed"}),
        "confirmed": frozenset({"cancelled", "completed", "disputed"}),
        "completed": frozenset({"disputed"}),
        "disputed": frozenset({"cancelled", "confirmed"}),
        "cancelled": frozenset(),
    },
}

# Extra status-bearing fields captured in the before/after audit snapshots
SNAPSHOT_KEYS = {
    OWNER: ("reject_reason",),
    FIELD: ("is_active", "block_reason"),
    BOOKING: (
        "payment_status",
        "cancel_reason",
        "dispute_reason",
        "dispute_resolution",
        "dispute_resolved_at",
    ),
}

REASON_NONE = "none"
REASON_OPTIONAL = "optional"
REASON_REQUIRED = "required"


class Action(NamedTuple):
    target: Optional[str]  # None: chosen by the caller (dispute resolution)
    permission: str
    reason: str = REASON_NONE
    default_reason: Optional[str] = None


ACTIONS: Dict[str, Dict[str, Action]] = {
    OWNER: {
        "approve": Action("approved", "approve_owner"),
        "reject": Action("rejected", "reject_owner", REASON_REQUIRED),
        "suspend": Action("suspended", "suspend_owner", REASON_REQUIRED),
        "reactivate": Action("approved", "reactivate_owner"),
    },
    FIELD: {
        "approve": Action("approved", "approve_field"),
        "reject": Action("rejected", "reject_field", REASON_REQUIRED),
        "disable": Action("disabled", "disable_field", REASON_OPTIONAL, "Field disabled by admin"),
        "block": Action("blocked", "block_field", REASON_REQUIRED),
        "reactivate": Action("approved", "reactivate_field"),
    },
    BOOKING: {
        "confirm": Action("confirmed", "update_booking"),
        "cancel": Action("cancelled", "update_booking", REASON_OPTIONAL),
        "complete": Action("completed", "update_booking"),
        "dispute": Action("disputed", "update_booking", REASON_OPTIONAL),
        "resolve-dispute": Action(None, "handle_dispute"),
    },
}

DEFAULT_DISPUTE_OUTCOME = "cancelled"


def can_transition(kind: str, current: Optional[str], target: str) -> bool:
    return target in TRANSITIONS.get(kind, {}).get(current, frozenset())


def validate_transition(kind: str, current: Optional[str], target: str) -> None:
    if not can_transition(kind, current, target):
        raise InvalidTransition(f"Invalid {kind} status transition: {current} -> {target}")


def derive_is_active(approval_status: str) -> bool:
    return approval_status == "approved"


def action_log_name(kind: str, action: str) -> str:
    return f"{kind}_{action.replace('-', '_')}"


def get_action(kind: str, action: str) -> Action:
    try:
        return ACTIONS[kind][action]
    except KeyError:
        raise NotFound(f"Unknown action '{action}' for {kind}")


def snapshot(kind: str, entity: Dict[str, Any]) -> StatusSnapshot:
    return StatusSnapshot.capture(
        entity.get(STATUS_KEY[kind]),
        **{key: entity.get(key) for key in SNAPSHOT_KEYS[kind]},
    )


def _clean(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = str(text).strip()
    return text or None


def _resolve_target(kind: str, rule: Action, new_status: Optional[str]) -> str:
    if rule.target is not None:
        return rule.target
    target = _clean(new_status) or DEFAULT_DISPUTE_OUTCOME
    if target not in STATUSES[kind]:
        raise ValidationError(f"Invalid status: {target}")
    return target


def _changes(
    db: Database,
    kind: str,
    current: str,
    target: str,
    entity: Dict[str, Any],
    reason: Optional[str],
    resolution: Optional[str],
) -> Tuple[Dict[str, Any], Set[str]]:
    """Fields to $set and to $unset for one transition."""
    changes: Dict[str, Any] = {STATUS_KEY[kind]: target}
    removals: Set[str] = set()

    if kind == OWNER:
        if target == "approved":
            removals.add("reject_reason")
        elif reason:
            changes["reject_reason"] = reason

    elif kind == FIELD:
        changes["is_active"] = derive_is_active(target)
        if target == "approved":
            removals.add("block_reason")
        elif reason:
            changes["block_reason"] = reason

    elif kind == BOOKING:
        if target == "cancelled":
            changes["payment_status"] = "refunded"
            if reason:
                changes["cancel_reason"] = reason
        elif target in ("confirmed", "completed"):
            changes["payment_status"] = "paid"
        if target == "completed":
            changes.update(commission_split(entity.get("total_price", 0), get_commission_rate(db)))
        if target == "disputed" and reason:
            changes["dispute_reason"] = reason
        if current == "disputed":
            changes["dispute_resolution"] = resolution
            changes["dispute_resolved_at"] = utcnow()

    return changes, removals


def _restore(coll, oid, original: Dict[str, Any], keys) -> None:
    to_set = {k: original[k] for k in keys if k in original}
    to_unset = {k: "" for k in keys if k not in original}
    update: Dict[str, Any] = {}
    if to_set:
        update["$set"] = to_set
    if to_unset:
        update["$unset"] = to_unset
    if update:
        coll.update_one({"_id": oid}, update)


def apply_transition(
    db: Database,
    kind: str,
    entity_id: str,
    action: str,
    admin: Dict[str, Any],
    reason: Optional[str] = None,
    resolution: Optional[str] = None,
    new_status: Optional[str] = None,
    request_meta: Optional[Dict[str, Optional[str]]] = None,
) -> Dict[str, Any]:
    """
    Run one admin moderation action and return the updated entity document.

    Raises Forbidden, ValidationError, NotFound or InvalidTransition; in every
    failure case the entity is left unchanged and no activity is recorded.
    """
    if kind not in KINDS:
        raise NotFound(f"Unknown entity kind '{kind}'")
    rule = get_action(kind, action)
    require_permission(rule.permission, admin.get("role"))

    reason = _clean(reason)
    resolution = _clean(resolution)
    if rule.reason == REASON_REQUIRED and not reason:
        raise ValidationError(f"A reason is required to {action} a {kind}")
    target = _resolve_target(kind, rule, new_status)

    coll = db[COLLECTIONS[kind]]
    oid = to_object_id(entity_id)
    entity = coll.find_one({"_id": oid}) if oid else None
    if not entity:
        raise NotFound(f"{kind.capitalize()} not found")

    current = entity.get(STATUS_KEY[kind])
    if action == "resolve-dispute" and current != "disputed":
        raise InvalidTransition("Booking is not in disputed status")
    try:
        validate_transition(kind, current, target)
    except InvalidTransition:
        logger.warning(f"Rejected {kind} {entity_id} transition {current} -> {target} by admin {admin.get('_id')}")
        raise
    if kind == BOOKING and current == "disputed" and not resolution:
        raise ValidationError("Resolution is required")

    before = snapshot(kind, entity)
    changes, removals = _changes(db, kind, current, target, entity, reason or rule.default_reason, resolution)
    changes["updated_at"] = utcnow()
    update: Dict[str, Any] = {"$set": changes}
    if removals:
        update["$unset"] = {key: "" for key in removals}

    updated = coll.find_one_and_update({"_id": oid}, update, return_document=ReturnDocument.AFTER)
    if updated is None:
        raise NotFound(f"{kind.capitalize()} not found")
    after = snapshot(kind, updated)

    try:
        append_activity(
            db,
            admin_id=admin["_id"],
            entity_type=kind,
            entity_id=oid,
            action=action_log_name(kind, action),
            before=before,
            after=after,
            description=f"{kind} {entity_id}: {current} -> {target}",
            request_meta=request_meta,
        )
    except Exception:
        _restore(coll, oid, entity, set(changes) | removals)
        logger.exception(f"Failed to record {kind} {entity_id} transition, reverted")
        raise

    logger.info(f"{kind} {entity_id} moved {current} -> {target} by admin {admin['_id']}")
    notify_owner(db, kind, action, updated, reason=reason or rule.default_reason, resolution=resolution)
    return updated
