"""
Super admin management of other admin accounts: role and active flag.

Every change is written to the activity ledger; if the record cannot be
written the account is put back the way it was.
"""

import logging
from typing import Any, Dict, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from activity import append_activity
from database import serialize, to_object_id, utcnow
from errors import Forbidden, NotFound, ValidationError
from permissions import ADMIN, SUPER_ADMIN, SUPPORT, require_permission

logger = logging.getLogger(__name__)

COLLECTION = "admin"

# super_admin is never granted through the API
ASSIGNABLE_ROLES = (ADMIN, SUPPORT)


def _load(db: Database, admin_id: str) -> Dict[str, Any]:
    oid = to_object_id(admin_id)
    doc = db[COLLECTION].find_one({"_id": oid}) if oid else None
    if not doc:
        raise NotFound("Admin not found")
    return doc


def _account_change(
    db: Database,
    target: Dict[str, Any],
    changes: Dict[str, Any],
    actor: Dict[str, Any],
    action: str,
    description: str,
    request_meta: Optional[Dict[str, Optional[str]]],
) -> Dict[str, Any]:
    coll = db[COLLECTION]
    before = {key: target.get(key) for key in changes}
    updated = coll.find_one_and_update(
        {"_id": target["_id"]},
        {"$set": dict(changes, updated_at=utcnow())},
        return_document=ReturnDocument.AFTER,
    )
    try:
        append_activity(
            db,
            admin_id=actor["_id"],
            entity_type="admin",
            entity_id=target["_id"],
            action=action,
            before=before,
            after={key: updated.get(key) for key in changes},
            description=description,
            request_meta=request_meta,
        )
    except Exception:
        coll.update_one({"_id": target["_id"]}, {"$set": before})
        logger.exception(f"Failed to record {action} for admin {target['_id']}, reverted")
        raise

    logger.info(f"{description} by admin {actor['_id']}")
    return serialize(updated)


def update_admin_role(
    db: Database,
    admin_id: str,
    role: Any,
    actor: Dict[str, Any],
    request_meta: Optional[Dict[str, Optional[str]]] = None,
) -> Dict[str, Any]:
    require_permission("manage_admins", actor.get("role"))
    if role not in ASSIGNABLE_ROLES:
        raise ValidationError("Invalid role")

    target = _load(db, admin_id)
    if target.get("role") == SUPER_ADMIN:
        raise Forbidden("Cannot change super_admin role")

    return _account_change(
        db, target, {"role": role}, actor,
        action="admin_update_role",
        description=f"Admin {admin_id} role {target.get('role')} -> {role}",
        request_meta=request_meta,
    )


def set_admin_status(
    db: Database,
    admin_id: str,
    is_active: Any,
    actor: Dict[str, Any],
    request_meta: Optional[Dict[str, Optional[str]]] = None,
) -> Dict[str, Any]:
    """Activate or deactivate an admin. Deactivated admins fail authentication."""
    require_permission("manage_admins", actor.get("role"))
    if not isinstance(is_active, bool):
        raise ValidationError("isActive must be true or false")

    target = _load(db, admin_id)
    if target.get("role") == SUPER_ADMIN and not is_active:
        raise Forbidden("Cannot deactivate super_admin")

    return _account_change(
        db, target, {"is_active": is_active}, actor,
        action="admin_update_status",
        description=f"Admin {admin_id} {'activated' if is_active else 'deactivated'}",
        request_meta=request_meta,
    )
