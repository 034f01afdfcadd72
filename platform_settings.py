"""Platform-wide settings (singleton document) and financial summaries."""

import logging
from typing import Any, Dict, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from activity import append_activity
from config import DEFAULT_COMMISSION_RATE
from database import serialize, utcnow
from errors import ValidationError
from permissions import require_permission
from schemas import PlatformSettings

logger = logging.getLogger(__name__)

COLLECTION = "platformsettings"
SETTINGS_ID = "main"


def get_settings(db: Database) -> Dict[str, Any]:
    """Return the settings singleton, creating it with defaults on first use."""
    defaults = PlatformSettings(commission_rate=DEFAULT_COMMISSION_RATE).model_dump(exclude={"settings_id"})
    now = utcnow()
    defaults.update(created_at=now, updated_at=now)
    return db[COLLECTION].find_one_and_update(
        {"settings_id": SETTINGS_ID},
        {"$setOnInsert": defaults},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


def get_commission_rate(db: Database) -> float:
    return float(get_settings(db).get("commission_rate", DEFAULT_COMMISSION_RATE))


def update_commission_rate(
    db: Database,
    rate: Any,
    admin: Dict[str, Any],
    request_meta: Optional[Dict[str, Optional[str]]] = None,
) -> Dict[str, Any]:
    """Change the platform commission. Super admins only, regardless of target."""
    require_permission("update_commission", admin.get("role"))

    if isinstance(rate, bool) or not isinstance(rate, (int, float)) or not 0 <= rate <= 100:
        raise ValidationError("Commission rate must be between 0 and 100")

    settings = get_settings(db)
    before = {"commission_rate": settings.get("commission_rate")}
    coll = db[COLLECTION]
    coll.update_one({"_id": settings["_id"]}, {"$set": {"commission_rate": float(rate), "updated_at": utcnow()}})
    try:
        append_activity(
            db,
            admin_id=admin["_id"],
            entity_type="settings",
            entity_id=settings["_id"],
            action="settings_update_commission",
            before=before,
            after={"commission_rate": float(rate)},
            description=f"Commission rate changed from {before['commission_rate']} to {float(rate)}",
            request_meta=request_meta,
        )
    except Exception:
        coll.update_one({"_id": settings["_id"]}, {"$set": before})
        logger.exception("Failed to record commission change, reverted")
        raise

    logger.info(f"Commission rate set to {float(rate)} by admin {admin['_id']}")
    return serialize(coll.find_one({"_id": settings["_id"]}))


def commission_split(total_price: float, rate: float) -> Dict[str, float]:
    commission = round(float(total_price) * rate / 100, 2)
    return {
        "commission_rate": rate,
        "commission_amount": commission,
        "net_to_owner": round(float(total_price) - commission, 2),
    }


def financial_overview(db: Database) -> Dict[str, Any]:
    """Revenue totals over completed bookings."""
    rate = get_commission_rate(db)
    totals = {"total_revenue": 0.0, "total_commission": 0.0, "total_net_to_owners": 0.0, "count": 0}
    for booking in db["booking"].find({"status": "completed"}):
        price = float(booking.get("total_price", 0))
        if booking.get("commission_amount") is None:
            split = commission_split(price, rate)
        else:
            split = {
                "commission_amount": booking["commission_amount"],
                "net_to_owner": booking.get("net_to_owner", price - booking["commission_amount"]),
            }
        totals["total_revenue"] += price
        totals["total_commission"] += split["commission_amount"]
        totals["total_net_to_owners"] += split["net_to_owner"]
        totals["count"] += 1

    for key in ("total_revenue", "total_commission", "total_net_to_owners"):
        totals[key] = round(totals[key], 2)
    return {"commission_rate": rate, "totals": totals}
