from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from app.domain.access import AccessScope
from app.domain.errors import FetchError, NotFoundError, ParseError, StorageError, ValidationError
from app.domain.models.calendar_connection import CalendarConnection, CalendarSource
from app.domain.models.calendar_event import CalendarEvent
from app.repositories.calendar_connection_repository import CalendarConnectionRepository
from app.repositories.calendar_event_repository import CalendarEventRepository
from app.repositories.unavailable_date_repository import UnavailableDateRepository
from app.services.calendar_event_service import CalendarEventService
from app.services.ical_service import IcalService
from conftest import HOST_ID, OTHER_HOST_ID, build_feed, vevent

URL = "https://airbnb.example.com/calendar/ical/1.ics"
SCOPE = AccessScope.host(HOST_ID)


class RecordingNotifier:
    def __init__(self):
        self.payloads = []

    def sync_completed(self, payload):
        self.payloads.append(payload)


def _events(db, prop, source=CalendarSource.AIRBNB):
    db.expire_all()
    return {e.external_id: e for e in CalendarEventRepository(db).list_imported(prop.id, source)}


def _dates(db, prop):
    db.expire_all()
    return UnavailableDateRepository(db).list_for_property(prop.id)


def _snapshot(db, prop):
    events = sorted(
        (e.id, e.external_id, e.summary, e.start_date, e.end_date, e.updated_at)
        for e in _events(db, prop).values()
    )
    dates = [(d.id, d.date, d.reason, d.event_id, d.booking_id) for d in _dates(db, prop)]
    return events, dates


async def test_import_creates_connection_events_and_dates(db, prop, fetcher):
    fetcher.feeds[URL] = build_feed(
        vevent("A", date(2025, 3, 20), date(2025, 3, 23), "Airbnb (Not available)"),
    )
    notifier = RecordingNotifier()
    service = IcalService(db, fetcher=fetcher, notifier=notifier)

    connection, result = await service.import_connection(SCOPE, prop.id, "airbnb", URL)

    assert (result.added, result.updated, result.removed) == (1, 0, 0)
    assert connection.source == "airbnb"
    assert connection.ical_url == URL
    assert connection.last_synced_at is not None

    event = _events(db, prop)["A"]
    assert (event.start_date, event.end_date) == (date(2025, 3, 20), date(2025, 3, 23))
    assert [d.date for d in _dates(db, prop)] == [
        date(2025, 3, 20), date(2025, 3, 21), date(2025, 3, 22),
    ]
    assert notifier.payloads[0]["property_id"] == prop.id
    assert notifier.payloads[0]["added"] == 1


async def test_import_rejects_invalid_source(db, prop, fetcher):
    with pytest.raises(ValidationError):
        await IcalService(db, fetcher=fetcher).import_connection(SCOPE, prop.id, "vrbo", URL)
    assert fetcher.calls == []


async def test_import_rejects_unsupported_scheme(db, prop, fetcher):
    with pytest.raises(ValidationError):
        await IcalService(db, fetcher=fetcher).import_connection(
            SCOPE, prop.id, "other", "ftp://example.com/cal.ics",
        )
    assert fetcher.calls == []


async def test_import_for_other_hosts_property_is_not_found(db, other_prop, fetcher):
    fetcher.feeds[URL] = build_feed()
    with pytest.raises(NotFoundError):
        await IcalService(db, fetcher=fetcher).import_connection(SCOPE, other_prop.id, "airbnb", URL)
    assert CalendarConnectionRepository(db).list_all() == []


async def test_failed_import_leaves_previous_connection_intact(db, prop, fetcher, abc_feed):
    fetcher.feeds[URL] = abc_feed
    service = IcalService(db, fetcher=fetcher)
    await service.import_connection(SCOPE, prop.id, "airbnb", URL)
    before = _snapshot(db, prop)

    new_url = "https://airbnb.example.com/calendar/ical/broken.ics"
    fetcher.feeds[new_url] = "this is not\na calendar\n"
    with pytest.raises(ParseError):
        await service.import_connection(SCOPE, prop.id, "airbnb", new_url)

    db.expire_all()
    connection = CalendarConnectionRepository(db).get(prop.id, CalendarSource.AIRBNB)
    assert connection.ical_url == URL
    assert connection.last_synced_at is not None
    assert _snapshot(db, prop) == before


async def test_sync_diff_adds_updates_and_removes(db, prop, fetcher, abc_feed):
    fetcher.feeds[URL] = abc_feed
    service = IcalService(db, fetcher=fetcher)
    connection, _ = await service.import_connection(SCOPE, prop.id, "airbnb", URL)
    c_updated_at = _events(db, prop)["C"].updated_at

    fetcher.feeds[URL] = build_feed(
        vevent("B", date(2025, 3, 10), date(2025, 3, 14), "Guest B (extended)"),
        vevent("C", date(2025, 3, 20), date(2025, 3, 23), "Guest C"),
        vevent("D", date(2025, 4, 1), date(2025, 4, 2), "Guest D"),
    )
    result = await service.sync_connection(connection)

    assert (result.added, result.updated, result.removed) == (1, 1, 1)
    events = _events(db, prop)
    assert set(events) == {"B", "C", "D"}
    assert events["B"].summary == "Guest B (extended)"
    assert events["B"].end_date == date(2025, 3, 14)
    assert events["C"].updated_at == c_updated_at

    days = {d.date: d for d in _dates(db, prop)}
    # A 의 날짜는 사라지고 B 는 늘어난 기간으로 다시 projection
    assert date(2025, 3, 1) not in days
    assert date(2025, 3, 2) not in days
    assert [day for day in days if day.month == 3 and day.day < 20] == [
        date(2025, 3, 10), date(2025, 3, 11), date(2025, 3, 12), date(2025, 3, 13),
    ]
    assert days[date(2025, 3, 13)].reason == "Guest B (extended)"
    assert days[date(2025, 4, 1)].event_id == events["D"].id


async def test_second_sync_with_unchanged_feed_is_a_no_op(db, prop, fetcher, abc_feed):
    fetcher.feeds[URL] = abc_feed
    service = IcalService(db, fetcher=fetcher)
    connection, _ = await service.import_connection(SCOPE, prop.id, "airbnb", URL)
    before = _snapshot(db, prop)

    result = await service.sync_connection(connection)

    assert (result.added, result.updated, result.removed) == (0, 0, 0)
    assert not result.skipped
    assert _snapshot(db, prop) == before


async def test_removed_event_cascades_only_its_own_dates(db, prop, fetcher, abc_feed):
    fetcher.feeds[URL] = abc_feed
    service = IcalService(db, fetcher=fetcher)
    connection, _ = await service.import_connection(SCOPE, prop.id, "airbnb", URL)
    manual = CalendarEventService(db).create_event(
        SCOPE, prop.id, source="other",
        start_date=date(2025, 5, 1), end_date=date(2025, 5, 3), summary="Owner stay",
    )
    db.commit()

    fetcher.feeds[URL] = build_feed(
        vevent("B", date(2025, 3, 10), date(2025, 3, 12), "Guest B"),
        vevent("C", date(2025, 3, 20), date(2025, 3, 23), "Guest C"),
    )
    result = await service.sync_connection(connection)

    assert result.removed == 1
    owners = {d.event_id for d in _dates(db, prop)}
    assert manual.id in owners
    assert len(owners) == 3
    assert [d.date for d in _dates(db, prop) if d.event_id == manual.id] == [
        date(2025, 5, 1), date(2025, 5, 2),
    ]


async def test_duplicate_uid_in_feed_keeps_first(db, prop, fetcher):
    fetcher.feeds[URL] = build_feed(
        vevent("DUP", date(2025, 3, 1), date(2025, 3, 3), "First"),
        vevent("DUP", date(2025, 3, 1), date(2025, 3, 5), "Override"),
    )
    _, result = await IcalService(db, fetcher=fetcher).import_connection(SCOPE, prop.id, "airbnb", URL)

    assert result.added == 1
    assert _events(db, prop)["DUP"].summary == "First"


async def test_parse_failure_leaves_state_untouched(db, prop, fetcher, abc_feed):
    fetcher.feeds[URL] = abc_feed
    service = IcalService(db, fetcher=fetcher)
    connection, _ = await service.import_connection(SCOPE, prop.id, "airbnb", URL)
    before = _snapshot(db, prop)
    synced_at = connection.last_synced_at

    fetcher.feeds[URL] = "garbage\nthat is not\nicalendar\n"
    with pytest.raises(ParseError):
        await service.sync_connection(connection)

    assert _snapshot(db, prop) == before
    db.expire_all()
    reloaded = db.get(CalendarConnection, connection.id)
    assert reloaded.last_synced_at is not None
    assert reloaded.last_synced_at.replace(tzinfo=None) == synced_at.replace(tzinfo=None)
    # 실패해도 진행 중 표시는 해제
    assert reloaded.sync_started_at is None


async def test_failed_pass_does_not_block_next_sync(db, prop, fetcher, abc_feed):
    fetcher.feeds[URL] = abc_feed
    service = IcalService(db, fetcher=fetcher, guard_seconds=300)
    connection, _ = await service.import_connection(SCOPE, prop.id, "airbnb", URL)

    fetcher.feeds[URL] = "garbage\n"
    with pytest.raises(ParseError):
        await service.sync_connection(connection)

    fetcher.feeds[URL] = build_feed(vevent("D", date(2025, 5, 1), date(2025, 5, 2)))
    result = await service.sync_connection(connection)

    assert not result.skipped
    assert result.added == 1
    assert set(_events(db, prop)) == {"D"}


async def test_storage_failure_rolls_back_and_raises_domain_error(db, prop, fetcher, abc_feed, monkeypatch):
    fetcher.feeds[URL] = abc_feed
    service = IcalService(db, fetcher=fetcher)
    connection, _ = await service.import_connection(SCOPE, prop.id, "airbnb", URL)
    before = _snapshot(db, prop)

    def _fail(self, rows):
        raise OperationalError("INSERT INTO calendar_events", {}, Exception("value too long"))

    monkeypatch.setattr(CalendarEventRepository, "upsert_imported", _fail)
    fetcher.feeds[URL] = build_feed(vevent("D", date(2025, 5, 1), date(2025, 5, 2)))

    with pytest.raises(StorageError):
        await service.sync_connection(connection)

    assert _snapshot(db, prop) == before
    db.expire_all()
    assert db.get(CalendarConnection, connection.id).sync_started_at is None


async def test_sync_skipped_while_another_sync_is_running(db, prop, fetcher, abc_feed):
    fetcher.feeds[URL] = abc_feed
    service = IcalService(db, fetcher=fetcher, guard_seconds=300)
    connection, _ = await service.import_connection(SCOPE, prop.id, "airbnb", URL)
    calls_before = len(fetcher.calls)

    connection.sync_started_at = datetime.now(timezone.utc)
    db.commit()

    result = await service.sync_connection(connection)

    assert result.skipped
    assert len(fetcher.calls) == calls_before


async def test_stale_sync_marker_does_not_block(db, prop, fetcher, abc_feed):
    fetcher.feeds[URL] = abc_feed
    service = IcalService(db, fetcher=fetcher, guard_seconds=300)
    connection, _ = await service.import_connection(SCOPE, prop.id, "airbnb", URL)

    connection.sync_started_at = datetime.now(timezone.utc) - timedelta(hours=1)
    db.commit()

    result = await service.sync_connection(connection)

    assert not result.skipped
    db.expire_all()
    assert db.get(CalendarConnection, connection.id).sync_started_at is None


async def test_sync_all_isolates_failing_connection(db, prop, other_prop, fetcher, abc_feed):
    good_url = "https://good.example.com/cal.ics"
    bad_url = "https://bad.example.com/cal.ics"
    fetcher.feeds[good_url] = abc_feed
    fetcher.feeds[bad_url] = build_feed()
    service = IcalService(db, fetcher=fetcher)
    await service.import_connection(AccessScope.system(), prop.id, "airbnb", good_url)
    await service.import_connection(AccessScope.system(), other_prop.id, "other", bad_url)

    fetcher.feeds[bad_url] = FetchError("Calendar feed returned HTTP 503", url=bad_url, status_code=503)
    fetcher.feeds[good_url] = build_feed(
        vevent("A", date(2025, 3, 1), date(2025, 3, 3), "Guest A"),
    )

    outcomes = await service.sync_all()

    by_property = {o.property_id: o for o in outcomes}
    assert by_property[other_prop.id].success is False
    assert by_property[other_prop.id].error_type == "FetchError"
    assert by_property[prop.id].success is True
    assert by_property[prop.id].result.removed == 2


async def test_sync_property_requires_connections(db, prop, fetcher):
    with pytest.raises(NotFoundError):
        await IcalService(db, fetcher=fetcher).sync_property(SCOPE, prop.id)


async def test_sync_property_checks_ownership(db, prop, fetcher, abc_feed):
    fetcher.feeds[URL] = abc_feed
    service = IcalService(db, fetcher=fetcher)
    await service.import_connection(SCOPE, prop.id, "airbnb", URL)

    with pytest.raises(NotFoundError):
        await service.sync_property(AccessScope.host(OTHER_HOST_ID), prop.id)

    outcomes = await service.sync_property(SCOPE, prop.id)
    assert [o.success for o in outcomes] == [True]


async def test_sources_are_reconciled_independently(db, prop, fetcher):
    other_url = "https://vrbo.example.com/cal.ics"
    fetcher.feeds[URL] = build_feed(vevent("SAME", date(2025, 3, 1), date(2025, 3, 2)))
    fetcher.feeds[other_url] = build_feed(vevent("SAME", date(2025, 6, 1), date(2025, 6, 2)))
    service = IcalService(db, fetcher=fetcher)

    await service.import_connection(SCOPE, prop.id, "airbnb", URL)
    await service.import_connection(SCOPE, prop.id, "other", other_url)

    assert _events(db, prop, CalendarSource.AIRBNB)["SAME"].start_date == date(2025, 3, 1)
    assert _events(db, prop, CalendarSource.OTHER)["SAME"].start_date == date(2025, 6, 1)


async def test_reproject_repairs_overwritten_dates(db, prop, fetcher):
    fetcher.feeds[URL] = build_feed(vevent("A", date(2025, 3, 1), date(2025, 3, 3), "Guest A"))
    service = IcalService(db, fetcher=fetcher)
    await service.import_connection(SCOPE, prop.id, "airbnb", URL)

    UnavailableDateRepository(db).delete_for_events([_events(db, prop)["A"].id])
    db.commit()
    assert _dates(db, prop) == []

    count = service.reproject_events(SCOPE, prop.id, "airbnb")

    assert count == 1
    assert [d.date for d in _dates(db, prop)] == [date(2025, 3, 1), date(2025, 3, 2)]


async def test_delete_connection_removes_imported_events_only(db, prop, fetcher, abc_feed):
    from app.services.connection_registry import ConnectionRegistry

    fetcher.feeds[URL] = abc_feed
    await IcalService(db, fetcher=fetcher).import_connection(SCOPE, prop.id, "airbnb", URL)
    manual = CalendarEventService(db).create_event(
        SCOPE, prop.id, source="airbnb",
        start_date=date(2025, 7, 1), end_date=date(2025, 7, 2),
    )
    db.commit()

    removed = ConnectionRegistry(db).delete_connection(SCOPE, prop.id, "airbnb")
    db.commit()

    assert removed == 3
    db.expire_all()
    remaining = CalendarEventRepository(db).list_for_property(prop.id)
    assert [e.id for e in remaining] == [manual.id]
    assert [d.date for d in _dates(db, prop)] == [date(2025, 7, 1)]
    assert CalendarConnectionRepository(db).get(prop.id, CalendarSource.AIRBNB) is None
    assert isinstance(remaining[0], CalendarEvent)
