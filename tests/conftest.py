import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from auth import create_access_token, get_password_hash
from database import create_document, get_db
from main import app
from schemas import Booking, Field, Owner


@pytest.fixture
def db():
    return mongomock.MongoClient()["sport_lebanon_test"]


def _make_admin(db, role, email, password="secret123", is_active=True):
    admin_id = db["admin"].insert_one({
        "full_name": f"{role.title()} Person",
        "email": email,
        "password_hash": get_password_hash(password),
        "role": role,
        "is_active": is_active,
    }).inserted_id
    return db["admin"].find_one({"_id": admin_id})


@pytest.fixture
def super_admin(db):
    return _make_admin(db, "super_admin", "root@sportlebanon.com")


@pytest.fixture
def admin(db):
    return _make_admin(db, "admin", "mod@sportlebanon.com")


@pytest.fixture
def support(db):
    return _make_admin(db, "support", "help@sportlebanon.com")


@pytest.fixture
def auth_header():
    def _header(admin_doc):
        token = create_access_token({"sub": str(admin_doc["_id"]), "role": admin_doc["role"]})
        return {"Authorization": f"Bearer {token}"}
    return _header


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_owner(db):
    def _make(status="pending_review", **extra):
        owner = Owner(
            full_name="Karim Haddad",
            email=f"owner{ObjectId()}@example.com",
            phone="+96170000000",
            business_name="Beirut Five",
            city="Beirut",
            status=status,
        )
        doc = owner.model_dump()
        doc.update(extra)
        return create_document(db, "owner", doc)
    return _make


@pytest.fixture
def make_field(db, make_owner):
    def _make(approval_status="pending", owner_id=None, **extra):
        field = Field(
            name="Downtown Arena",
            sport="Football",
            city="Beirut",
            price_per_hour=40,
            owner_id=owner_id or make_owner(status="approved"),
            approval_status=approval_status,
            is_active=approval_status == "approved",
        )
        doc = field.model_dump()
        doc.update(extra)
        return create_document(db, "field", doc)
    return _make


@pytest.fixture
def make_booking(db, make_field):
    def _make(status="pending", field_id=None, total_price=80.0, **extra):
        booking = Booking(
            field_id=field_id or make_field(approval_status="approved"),
            customer_name="Lina",
            date="2026-11-02",
            start_time="18:00",
            end_time="20:00",
            total_price=total_price,
            status=status,
        )
        doc = booking.model_dump()
        doc.update(extra)
        return create_document(db, "booking", doc)
    return _make
