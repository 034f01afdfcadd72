"""
Database Schemas for Sport Lebanon (sports field booking)

Each Pydantic model represents a MongoDB collection. Collection name = lowercase class name.

- Admin -> admin
- Owner -> owner
- Field -> field
- Booking -> booking
- ActivityLog -> activitylog
- PlatformSettings -> platformsettings
- Notification -> notification
"""

from pydantic import BaseModel, Field as F, EmailStr
from typing import Any, Dict, Literal, Optional
from datetime import datetime

AdminRole = Literal["super_admin", "admin", "support"]
OwnerStatus = Literal["pending_review", "approved", "rejected", "suspended"]
FieldStatus = Literal["pending", "approved", "rejected", "disabled", "blocked"]
BookingStatus = Literal["pending", "confirmed", "completed", "cancelled", "disputed"]
PaymentStatus = Literal["pending", "paid", "refunded"]
EntityType = Literal["owner", "field", "booking", "settings", "admin"]


class Admin(BaseModel):
    full_name: str = F(..., description="Full name")
    email: EmailStr = F(..., description="Unique email address")
    password_hash: str = F(..., description="BCrypt hashed password")
    role: AdminRole = F("admin", description="super_admin | admin | support")
    is_active: bool = F(True, description="Deactivated admins cannot log in")
    last_login: Optional[datetime] = None


class Owner(BaseModel):
    full_name: str = F(..., description="Owner full name")
    email: EmailStr = F(..., description="Unique email address")
    phone: str = F(..., description="Contact phone")
    business_name: Optional[str] = None
    city: Optional[str] = None
    status: OwnerStatus = F("pending_review", description="Verification status")
    reject_reason: Optional[str] = None


class Field(BaseModel):
    name: str = F(..., description="Field name")
    sport: str = F(..., description="Football, Padel, ...")
    city: str = F(..., description="Beirut, Sidon, ...")
    area: Optional[str] = None
    price_per_hour: float = F(..., ge=0, description="Hourly price")
    currency: str = "USD"
    owner_id: str = F(..., description="Owner ObjectId as string")
    approval_status: FieldStatus = F("pending", description="Moderation status")
    is_active: bool = F(False, description="True iff approval_status == approved")
    block_reason: Optional[str] = None


class Booking(BaseModel):
    field_id: str = F(..., description="Field ObjectId as string")
    user_id: Optional[str] = F(None, description="Booking user ObjectId as string")
    customer_name: str = F(..., description="Name given at booking time")
    date: str = F(..., description="ISO date (YYYY-MM-DD)")
    start_time: str = F(..., description="Start time (HH:MM)")
    end_time: str = F(..., description="End time (HH:MM)")
    total_price: float = F(..., ge=0, description="Computed total price")
    status: BookingStatus = F("pending", description="Booking lifecycle status")
    payment_status: PaymentStatus = F("pending", description="pending | paid | refunded")
    commission_rate: Optional[float] = F(None, ge=0, le=100, description="Rate applied on completion")
    commission_amount: Optional[float] = None
    net_to_owner: Optional[float] = None
    cancel_reason: Optional[str] = None
    dispute_reason: Optional[str] = None
    dispute_resolution: Optional[str] = None
    dispute_resolved_at: Optional[datetime] = None


class ActivityLog(BaseModel):
    admin_id: str = F(..., description="Acting admin ObjectId as string")
    entity_type: EntityType
    entity_id: str
    action: str = F(..., description="e.g. owner_approve, booking_resolve_dispute")
    before: Dict[str, Any] = F(default_factory=dict, description="Status-bearing fields before")
    after: Dict[str, Any] = F(default_factory=dict, description="Status-bearing fields after")
    description: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None


class PlatformSettings(BaseModel):
    settings_id: str = F("main", description="Singleton key")
    commission_rate: float = F(15, ge=0, le=100, description="Platform cut in percent")
    platform_name: str = "Sport Lebanon"


class Notification(BaseModel):
    owner_id: str
    type: str
    message: str
    related_field_id: Optional[str] = None
    related_booking_id: Optional[str] = None
    is_read: bool = False
