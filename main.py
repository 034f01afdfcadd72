import logging
import os
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, ConfigDict, Field
from pymongo.database import Database
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
from activity import get_activity, list_activity
from admin_accounts import set_admin_status, update_admin_role
from auth import create_access_token, get_admin_by_email, get_current_admin, verify_password
from config import CORS_ORIGINS, LOG_LEVEL, PORT
from database import get_db, paginate, search_filter, serialize, to_object_id, utcnow
from errors import ModerationError, NotFound
from permissions import get_admin_permissions, require_permission
from platform_settings import financial_overview, get_commission_rate, update_commission_rate
from schemas import (
    ActivityLog as ActivityLogSchema,
    Admin as AdminSchema,
    Booking as BookingSchema,
    Field as FieldSchema,
    Notification as NotificationSchema,
    Owner as OwnerSchema,
    PlatformSettings as PlatformSettingsSchema,
)
from transitions import apply_transition

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# ----------------------------------------------------------------------------
# App Config
# ----------------------------------------------------------------------------
app = FastAPI(title="Sport Lebanon API", description="Sports field booking marketplace - admin moderation backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ModerationError)
async def moderation_error_handler(request: Request, exc: ModerationError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()))
    return JSONResponse(status_code=422, content={"message": f"{location}: {first.get('msg', 'Invalid request')}"})


# ----------------------------------------------------------------------------
# Helpers & Models
# ----------------------------------------------------------------------------
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class AdminOut(BaseModel):
    id: str
    full_name: str
    email: str
    role: str
    permissions: Dict[str, bool] = {}


class LoginResponse(Token):
    admin: AdminOut


class TransitionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reason: Optional[str] = None
    resolution: Optional[str] = None
    new_status: Optional[str] = Field(None, alias="newStatus")


class CommissionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    commission_rate: Any = Field(None, alias="commissionRate")


class RolePayload(BaseModel):
    role: Any = None


class StatusPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_active: Any = Field(None, alias="isActive")


def admin_out(admin) -> AdminOut:
    return AdminOut(
        id=str(admin["_id"]),
        full_name=admin.get("full_name"),
        email=admin.get("email"),
        role=admin.get("role", "admin"),
        permissions=get_admin_permissions(admin.get("role", "admin")),
    )


def request_meta(request: Request) -> Dict[str, Optional[str]]:
    return {
        "ip": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


def get_one(db: Database, collection: str, entity_id: str, label: str):
    oid = to_object_id(entity_id)
    doc = db[collection].find_one({"_id": oid}) if oid else None
    if not doc:
        raise NotFound(f"{label} not found")
    return serialize(doc)


# ----------------------------------------------------------------------------
# Root & Health
# ----------------------------------------------------------------------------
@app.get("/")
def read_root():
    return {"message": "Sport Lebanon Backend Running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    if database.db is None:
        return response
    response["database"] = "✅ Available"
    response["connection_status"] = "Connected"
    try:
        response["collections"] = database.db.list_collection_names()
        response["database"] = "✅ Connected & Working"
    except Exception as e:
        logger.error(f"Database check failed: {e}")
        response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
    return response


# ----------------------------------------------------------------------------
# Admin Auth
# ----------------------------------------------------------------------------
@app.post("/admin/auth/login", response_model=LoginResponse)
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Database = Depends(get_db)):
    admin = get_admin_by_email(db, form_data.username)
    if not admin:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not admin.get("is_active", True):
        raise HTTPException(status_code=401, detail="Account deactivated")
    if not verify_password(form_data.password, admin.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    db["admin"].update_one({"_id": admin["_id"]}, {"$set": {"last_login": utcnow()}})
    access_token = create_access_token({"sub": str(admin["_id"]), "role": admin.get("role")})
    logger.info(f"Admin {admin['_id']} logged in")
    return LoginResponse(access_token=access_token, admin=admin_out(admin))


@app.get("/admin/auth/me", response_model=AdminOut)
def me(current_admin=Depends(get_current_admin)):
    return admin_out(current_admin)


# ----------------------------------------------------------------------------
# Moderation (status transitions)
# ----------------------------------------------------------------------------
@app.put("/entities/{kind}/{entity_id}/{action}")
def transition_entity(
    kind: str,
    entity_id: str,
    action: str,
    request: Request,
    payload: Optional[TransitionPayload] = None,
    current_admin=Depends(get_current_admin),
    db: Database = Depends(get_db),
):
    payload = payload or TransitionPayload()
    updated = apply_transition(
        db,
        kind,
        entity_id,
        action,
        current_admin,
        reason=payload.reason,
        resolution=payload.resolution,
        new_status=payload.new_status,
        request_meta=request_meta(request),
    )
    return serialize(updated)


# ----------------------------------------------------------------------------
# Admin Dashboard
# ----------------------------------------------------------------------------
@app.get("/admin/dashboard/overview")
def dashboard_overview(current_admin=Depends(get_current_admin), db: Database = Depends(get_db)):
    require_permission("view_dashboard", current_admin.get("role"))
    pending_owners = db["owner"].count_documents({"status": "pending_review"})
    pending_fields = db["field"].count_documents({"approval_status": "pending"})

    bookings_by_status = {
        row["_id"]: row["count"]
        for row in db["booking"].aggregate([{"$group": {"_id": "$status", "count": {"$sum": 1}}}])
    }
    recent_bookings = [serialize(it) for it in db["booking"].find({}).sort("_id", -1).limit(5)]
    recent_owners = [serialize(it) for it in db["owner"].find({}).sort("_id", -1).limit(5)]
    totals = financial_overview(db)["totals"]

    return {
        "stats": {
            "total_owners": db["owner"].count_documents({}),
            "total_fields": db["field"].count_documents({}),
            "total_bookings": db["booking"].count_documents({}),
            "completed_bookings": bookings_by_status.get("completed", 0),
            "pending_owners": pending_owners,
            "pending_fields": pending_fields,
            "pending_approvals": pending_owners + pending_fields,
            "total_revenue": totals["total_revenue"],
            "total_commission": totals["total_commission"],
            "total_net_to_owners": totals["total_net_to_owners"],
        },
        "bookings_by_status": bookings_by_status,
        "recent_bookings": recent_bookings,
        "recent_owners": recent_owners,
    }


# ----------------------------------------------------------------------------
# Admin Accounts
# ----------------------------------------------------------------------------
@app.put("/admin/admins/{admin_id}/role")
def put_admin_role(
    admin_id: str,
    payload: RolePayload,
    request: Request,
    current_admin=Depends(get_current_admin),
    db: Database = Depends(get_db),
):
    account = update_admin_role(db, admin_id, payload.role, current_admin, request_meta=request_meta(request))
    return {"message": "Admin role updated", "admin": account}


@app.put("/admin/admins/{admin_id}/status")
def put_admin_status(
    admin_id: str,
    payload: StatusPayload,
    request: Request,
    current_admin=Depends(get_current_admin),
    db: Database = Depends(get_db),
):
    account = set_admin_status(db, admin_id, payload.is_active, current_admin, request_meta=request_meta(request))
    state = "activated" if account["is_active"] else "deactivated"
    return {"message": f"Admin {state}", "admin": account}


# ----------------------------------------------------------------------------
# Admin Listings
# ----------------------------------------------------------------------------
@app.get("/admin/owners")
def list_owners(
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    current_admin=Depends(get_current_admin),
    db: Database = Depends(get_db),
):
    require_permission("view_dashboard", current_admin.get("role"))
    query = {"status": status} if status else {}
    result = paginate(db, "owner", query, page=page, limit=limit)
    return {"owners": result["items"], "pagination": result["pagination"]}


@app.get("/admin/owners/{owner_id}")
def get_owner(owner_id: str, current_admin=Depends(get_current_admin), db: Database = Depends(get_db)):
    require_permission("view_dashboard", current_admin.get("role"))
    return {"owner": get_one(db, "owner", owner_id, "Owner")}


@app.get("/admin/fields")
def list_fields(
    approvalStatus: Optional[str] = None,
    isActive: Optional[bool] = None,
    ownerId: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    current_admin=Depends(get_current_admin),
    db: Database = Depends(get_db),
):
    require_permission("view_dashboard", current_admin.get("role"))
    query: Dict[str, Any] = {}
    if approvalStatus:
        query["approval_status"] = approvalStatus
    if ownerId:
        query["owner_id"] = ownerId
    if isActive is not None:
        query["is_active"] = isActive
    if search:
        query.update(search_filter(search, ["name", "city", "area"]))
    result = paginate(db, "field", query, page=page, limit=limit)
    return {"fields": result["items"], "pagination": result["pagination"]}


@app.get("/admin/fields/{field_id}")
def get_field(field_id: str, current_admin=Depends(get_current_admin), db: Database = Depends(get_db)):
    require_permission("view_dashboard", current_admin.get("role"))
    return {"field": get_one(db, "field", field_id, "Field")}


@app.get("/admin/bookings")
def list_bookings(
    status: Optional[str] = None,
    fieldId: Optional[str] = None,
    date: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    current_admin=Depends(get_current_admin),
    db: Database = Depends(get_db),
):
    require_permission("view_bookings", current_admin.get("role"))
    query: Dict[str, Any] = {}
    if status:
        query["status"] = status
    if fieldId:
        query["field_id"] = fieldId
    if date:
        query["date"] = date
    if search:
        query.update(search_filter(search, ["customer_name"]))
    result = paginate(db, "booking", query, page=page, limit=limit)
    return {"bookings": result["items"], "pagination": result["pagination"]}


@app.get("/admin/bookings/{booking_id}")
def get_booking(booking_id: str, current_admin=Depends(get_current_admin), db: Database = Depends(get_db)):
    require_permission("view_bookings", current_admin.get("role"))
    return {"booking": get_one(db, "booking", booking_id, "Booking")}


# ----------------------------------------------------------------------------
# Activity Ledger
# ----------------------------------------------------------------------------
@app.get("/admin/activity")
def activity_logs(
    entityType: Optional[str] = None,
    adminId: Optional[str] = None,
    action: Optional[str] = None,
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
    current_admin=Depends(get_current_admin),
    db: Database = Depends(get_db),
):
    require_permission("view_activity", current_admin.get("role"))
    return list_activity(
        db,
        entity_type=entityType,
        admin_id=adminId,
        action=action,
        start_date=startDate,
        end_date=endDate,
        page=page,
        limit=limit,
    )


@app.get("/admin/activity/{log_id}")
def activity_log(log_id: str, current_admin=Depends(get_current_admin), db: Database = Depends(get_db)):
    require_permission("view_activity", current_admin.get("role"))
    return {"log": get_activity(db, log_id)}


# ----------------------------------------------------------------------------
# Financial
# ----------------------------------------------------------------------------
@app.get("/admin/financial/commission")
def get_commission(current_admin=Depends(get_current_admin), db: Database = Depends(get_db)):
    require_permission("view_financial", current_admin.get("role"))
    return {"commissionRate": get_commission_rate(db)}


@app.put("/admin/financial/commission")
def put_commission(
    payload: CommissionPayload,
    request: Request,
    current_admin=Depends(get_current_admin),
    db: Database = Depends(get_db),
):
    settings = update_commission_rate(db, payload.commission_rate, current_admin, request_meta=request_meta(request))
    return {"message": "Commission rate updated", "commissionRate": settings["commission_rate"]}


@app.get("/admin/financial/overview")
def get_financial_overview(current_admin=Depends(get_current_admin), db: Database = Depends(get_db)):
    require_permission("view_financial", current_admin.get("role"))
    return financial_overview(db)


# ----------------------------------------------------------------------------
# Schema exposure for DB viewer
# ----------------------------------------------------------------------------
@app.get("/schema")
def get_schema():
    return {
        "admin": AdminSchema.model_json_schema(),
        "owner": OwnerSchema.model_json_schema(),
        "field": FieldSchema.model_json_schema(),
        "booking": BookingSchema.model_json_schema(),
        "activitylog": ActivityLogSchema.model_json_schema(),
        "platformsettings": PlatformSettingsSchema.model_json_schema(),
        "notification": NotificationSchema.model_json_schema(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
