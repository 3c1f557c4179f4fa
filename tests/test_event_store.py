import datetime

import pytest

from physio_funnel.errors import ValidationError
from physio_funnel.models.lead_event import EventType, LeadEvent
from physio_funnel.services.event_store import (
    find_events,
    parse_day,
    parse_lead_id,
    query_events,
    record_event,
    resolve_range,
)


def _today():
    return datetime.datetime.now(datetime.timezone.utc).date()


@pytest.mark.parametrize("event_type", EventType.values())
def test_recorded_event_is_returned_by_query(db_session, event_type):
    recorded = record_event(
        db_session,
        lead_id=7,
        practice_code="PRAK01",
        event_type=event_type,
        metadata={"referrer": "instagram"},
    )

    assert recorded.id > 0
    assert recorded.occurred_at.tzinfo is not None

    rows = list(query_events(db_session, "PRAK01", _today(), _today()))
    assert [row.id for row in rows] == [recorded.id]
    assert rows[0].event_type == event_type
    assert rows[0].practice_code == "PRAK01"
    assert rows[0].lead_id == 7
    assert rows[0].meta == {"referrer": "instagram"}


def test_lead_id_is_optional_and_not_checked(db_session):
    anonymous = record_event(db_session, practice_code="PRAK01", event_type="clicked")
    dangling = record_event(
        db_session, lead_id=999999, practice_code="PRAK01", event_type="registered"
    )

    assert db_session.get(LeadEvent, anonymous.id).lead_id is None
    assert db_session.get(LeadEvent, dangling.id).lead_id == 999999


def test_duplicates_are_kept(db_session):
    for _ in range(3):
        record_event(db_session, lead_id=1, practice_code="PRAK01", event_type="clicked")

    rows = list(query_events(db_session, "PRAK01", _today(), _today()))
    assert len(rows) == 3
    assert [row.id for row in rows] == sorted(row.id for row in rows)


def test_unknown_event_type_is_rejected_and_nothing_stored(db_session):
    with pytest.raises(ValidationError):
        record_event(db_session, practice_code="PRAK01", event_type="paid")

    assert db_session.query(LeadEvent).count() == 0


@pytest.mark.parametrize("code", [None, "", "   ", "x" * 65, "PRAK 01", "PRAK;01"])
def test_bad_practice_code_is_rejected(db_session, code):
    with pytest.raises(ValidationError):
        record_event(db_session, practice_code=code, event_type="clicked")


def test_metadata_must_be_an_object(db_session):
    with pytest.raises(ValidationError):
        record_event(
            db_session, practice_code="PRAK01", event_type="clicked", metadata=["a", "b"]
        )


@pytest.mark.parametrize("value", ["abc", 1.5, True, 0, -3])
def test_parse_lead_id_rejects_non_positive_integers(value):
    with pytest.raises(ValidationError):
        parse_lead_id(value)


def test_parse_lead_id_accepts_digit_strings():
    assert parse_lead_id("42") == 42
    assert parse_lead_id(None) is None
    assert parse_lead_id("") is None


def test_query_is_scoped_to_practice_and_range(db_session):
    record_event(db_session, practice_code="PRAK01", event_type="clicked")
    record_event(db_session, practice_code="PRAK02", event_type="clicked")

    tomorrow = _today() + datetime.timedelta(days=1)
    assert len(list(query_events(db_session, "PRAK01", _today(), _today()))) == 1
    assert list(query_events(db_session, "PRAK01", tomorrow, tomorrow)) == []


def test_query_validates_before_iterating(db_session):
    with pytest.raises(ValidationError):
        query_events(db_session, "PRAK01", "not-a-date", "2026-10-01")
    with pytest.raises(ValidationError):
        query_events(db_session, None, "2026-10-01", "2026-10-01")


def test_from_after_to_is_an_empty_window(db_session):
    record_event(db_session, practice_code="PRAK01", event_type="clicked")
    yesterday = _today() - datetime.timedelta(days=1)

    assert list(query_events(db_session, "PRAK01", _today(), yesterday)) == []


@pytest.mark.parametrize(
    "value",
    [
        "2026-10-01T23:00+05:00",
        "2026-10-01garbage",
        "2026-10-01 12:00",
        "20261001",
        "2026-13-01",
        "01-10-2026",
    ],
)
def test_parse_day_accepts_only_plain_dates(value):
    with pytest.raises(ValidationError):
        parse_day(value, "from")


def test_parse_day_accepts_iso_dates():
    assert parse_day(" 2026-10-01 ", "from") == datetime.date(2026, 10, 1)
    assert parse_day(datetime.date(2026, 10, 1), "from") == datetime.date(2026, 10, 1)


def test_resolve_range_covers_the_whole_to_day():
    code, start, end = resolve_range("PRAK01", "2026-10-01", "2026-10-01")

    assert code == "PRAK01"
    assert start == datetime.datetime(2026, 10, 1, tzinfo=datetime.timezone.utc)
    assert end == datetime.datetime(2026, 10, 2, tzinfo=datetime.timezone.utc)


def test_find_events_filters_by_lead_practice_and_type(db_session):
    record_event(db_session, lead_id=5, practice_code="PRAK01", event_type="appointment_booked")
    record_event(db_session, lead_id=5, practice_code="PRAK02", event_type="appointment_booked")
    record_event(db_session, lead_id=5, practice_code="PRAK01", event_type="clicked")

    found = find_events(
        db_session, lead_id=5, practice_code="PRAK01", event_type=EventType.APPOINTMENT_BOOKED
    )
    assert len(found) == 1
    assert found[0].event_type == "appointment_booked"
