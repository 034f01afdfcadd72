from datetime import timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from activity import StatusSnapshot, append_activity, get_activity, list_activity
from database import MAX_PAGE, MAX_PAGE_SIZE, utcnow
from errors import NotFound, ValidationError


def test_snapshot_is_frozen():
    snap = StatusSnapshot.capture("approved", is_active=True)
    with pytest.raises(PydanticValidationError):
        snap.status = "blocked"


def test_snapshot_copies_source_values():
    source = {"history": ["pending"]}
    snap = StatusSnapshot.capture("approved", **source)
    source["history"].append("approved")

    assert snap.as_document() == {"status": "approved", "history": ["pending"]}


def _log(db, n, entity_type="owner", action="owner_approve", admin_id="a1"):
    for i in range(n):
        append_activity(
            db,
            admin_id=admin_id,
            entity_type=entity_type,
            entity_id=f"e{i}",
            action=action,
            before={"status": "pending_review"},
            after={"status": "approved"},
        )


def test_list_activity_newest_first_with_pagination(db):
    _log(db, 5)

    first = list_activity(db, page=1, limit=2)
    second = list_activity(db, page=2, limit=2)
    third = list_activity(db, page=3, limit=2)

    assert first["pagination"] == {"page": 1, "limit": 2, "total": 5, "pages": 3}
    assert [log["entity_id"] for log in first["logs"]] == ["e4", "e3"]
    assert [log["entity_id"] for log in second["logs"]] == ["e2", "e1"]
    assert [log["entity_id"] for log in third["logs"]] == ["e0"]


def test_list_activity_filters(db):
    _log(db, 2, entity_type="owner", action="owner_approve", admin_id="a1")
    _log(db, 3, entity_type="field", action="field_block", admin_id="a2")

    assert list_activity(db, entity_type="field")["pagination"]["total"] == 3
    assert list_activity(db, admin_id="a1")["pagination"]["total"] == 2
    assert list_activity(db, action="BLOCK")["pagination"]["total"] == 3


def test_list_activity_date_range(db):
    _log(db, 2)
    now = utcnow()

    inside = list_activity(db, start_date=(now - timedelta(hours=1)).isoformat())
    outside = list_activity(db, end_date=(now - timedelta(hours=1)).isoformat())

    assert inside["pagination"]["total"] == 2
    assert outside["pagination"]["total"] == 0


def test_list_activity_bad_date(db):
    with pytest.raises(ValidationError):
        list_activity(db, start_date="yesterday")


def test_get_activity(db):
    log_id = append_activity(
        db, admin_id="a1", entity_type="booking", entity_id="b1", action="booking_cancel",
        before={"status": "confirmed"}, after={"status": "cancelled"},
    )

    log = get_activity(db, log_id)

    assert log["id"] == log_id
    assert log["before"] == {"status": "confirmed"}

    with pytest.raises(NotFound):
        get_activity(db, "missing")


def test_list_activity_action_filter_is_literal(db):
    _log(db, 2, action="owner_approve")

    assert list_activity(db, action="owner_(")["pagination"]["total"] == 0
    assert list_activity(db, action="owner.approve")["pagination"]["total"] == 0
    assert list_activity(db, action="owner_approve")["pagination"]["total"] == 2


def test_list_activity_clamps_page_and_limit(db):
    _log(db, 3)

    result = list_activity(db, page=10**18, limit=10**9)

    assert result["pagination"]["page"] == MAX_PAGE
    assert result["pagination"]["limit"] == MAX_PAGE_SIZE
    assert result["pagination"]["total"] == 3
    assert result["logs"] == []
