import pytest

from errors import Forbidden, ValidationError
from platform_settings import (
    commission_split,
    financial_overview,
    get_commission_rate,
    get_settings,
    update_commission_rate,
)
from transitions import BOOKING, apply_transition


def test_settings_singleton_created_once(db):
    first = get_settings(db)
    second = get_settings(db)

    assert first["_id"] == second["_id"]
    assert first["commission_rate"] == 15
    assert db["platformsettings"].count_documents({}) == 1


def test_super_admin_updates_commission(db, super_admin):
    settings = update_commission_rate(db, 12.5, super_admin)

    assert settings["commission_rate"] == 12.5
    assert get_commission_rate(db) == 12.5
    log = db["activitylog"].find_one({"action": "settings_update_commission"})
    assert log["before"] == {"commission_rate": 15}
    assert log["after"] == {"commission_rate": 12.5}


@pytest.mark.parametrize("role_fixture", ["admin", "support"])
def test_other_roles_cannot_update_commission(db, request, role_fixture):
    actor = request.getfixturevalue(role_fixture)

    with pytest.raises(Forbidden):
        update_commission_rate(db, 10, actor)

    assert get_commission_rate(db) == 15
    assert db["activitylog"].count_documents({}) == 0


@pytest.mark.parametrize("rate", [-1, 100.5, "20", None, True])
def test_commission_rate_bounds(db, super_admin, rate):
    with pytest.raises(ValidationError):
        update_commission_rate(db, rate, super_admin)


def test_commission_split_rounds():
    assert commission_split(33.33, 15) == {
        "commission_rate": 15,
        "commission_amount": 5.0,
        "net_to_owner": 28.33,
    }


def test_financial_overview_counts_completed_bookings(db, admin, make_booking):
    done = make_booking(status="confirmed", total_price=100.0)
    apply_transition(db, BOOKING, done, "complete", admin)
    make_booking(status="confirmed", total_price=50.0)
    make_booking(status="completed", total_price=20.0)  # completed before commission was recorded

    overview = financial_overview(db)

    assert overview["commission_rate"] == 15
    assert overview["totals"] == {
        "total_revenue": 120.0,
        "total_commission": 18.0,
        "total_net_to_owners": 102.0,
        "count": 2,
    }
