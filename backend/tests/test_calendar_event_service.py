from datetime import date

import pytest

from app.domain.access import AccessScope
from app.domain.errors import NotFoundError, ValidationError
from app.repositories.unavailable_date_repository import UnavailableDateRepository
from app.services.calendar_event_service import CalendarEventService
from conftest import HOST_ID, OTHER_HOST_ID

SCOPE = AccessScope.host(HOST_ID)


def _days(db, prop):
    return [d.date for d in UnavailableDateRepository(db).list_for_property(prop.id)]


def test_create_manual_event_projects_dates(db, prop):
    event = CalendarEventService(db).create_event(
        SCOPE, prop.id, source="other",
        start_date=date(2025, 6, 1), end_date=date(2025, 6, 4), summary="Maintenance",
    )
    db.commit()

    assert event.external_id is None
    assert event.source == "other"
    assert _days(db, prop) == [date(2025, 6, 1), date(2025, 6, 2), date(2025, 6, 3)]


def test_create_rejects_end_before_start(db, prop):
    with pytest.raises(ValidationError):
        CalendarEventService(db).create_event(
            SCOPE, prop.id, source="other",
            start_date=date(2025, 6, 4), end_date=date(2025, 6, 1),
        )


def test_create_on_other_hosts_property_is_not_found(db, other_prop):
    with pytest.raises(NotFoundError):
        CalendarEventService(db).create_event(
            SCOPE, other_prop.id, source="other",
            start_date=date(2025, 6, 1), end_date=date(2025, 6, 2),
        )


def test_system_scope_bypasses_ownership(db, other_prop):
    event = CalendarEventService(db).create_event(
        AccessScope.system(), other_prop.id, source="other",
        start_date=date(2025, 6, 1), end_date=date(2025, 6, 2),
    )
    assert event.property_id == other_prop.id


def test_update_moves_projection(db, prop):
    service = CalendarEventService(db)
    event = service.create_event(
        SCOPE, prop.id, source="other",
        start_date=date(2025, 6, 1), end_date=date(2025, 6, 3),
    )

    service.update_event(
        SCOPE, prop.id, event.id,
        start_date=date(2025, 6, 10), end_date=date(2025, 6, 12), summary="Moved",
    )
    db.commit()

    assert event.summary == "Moved"
    rows = UnavailableDateRepository(db).list_for_property(prop.id)
    assert [r.date for r in rows] == [date(2025, 6, 10), date(2025, 6, 11)]
    assert all(r.reason == "Moved" for r in rows)


def test_update_validates_merged_range(db, prop):
    service = CalendarEventService(db)
    event = service.create_event(
        SCOPE, prop.id, source="other",
        start_date=date(2025, 6, 1), end_date=date(2025, 6, 3),
    )
    with pytest.raises(ValidationError):
        service.update_event(SCOPE, prop.id, event.id, start_date=date(2025, 6, 5))


def test_delete_removes_event_and_dates(db, prop):
    service = CalendarEventService(db)
    event = service.create_event(
        SCOPE, prop.id, source="other",
        start_date=date(2025, 6, 1), end_date=date(2025, 6, 3),
    )
    db.commit()

    service.delete_event(SCOPE, prop.id, event.id)
    db.commit()

    assert _days(db, prop) == []
    with pytest.raises(NotFoundError):
        service.get_event(SCOPE, prop.id, event.id)


def test_event_of_another_property_is_not_found(db, prop, other_prop):
    event = CalendarEventService(db).create_event(
        AccessScope.host(OTHER_HOST_ID), other_prop.id, source="other",
        start_date=date(2025, 6, 1), end_date=date(2025, 6, 2),
    )
    with pytest.raises(NotFoundError):
        CalendarEventService(db).delete_event(SCOPE, prop.id, event.id)
