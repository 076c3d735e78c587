from datetime import datetime, timezone

import pytest

from app.domain.access import AccessScope
from app.domain.errors import NotFoundError, ValidationError
from app.domain.models.calendar_connection import CalendarSource
from app.services.connection_registry import ConnectionRegistry, parse_source
from conftest import HOST_ID

SCOPE = AccessScope.host(HOST_ID)
URL = "https://airbnb.example.com/calendar/ical/1.ics"


def test_parse_source():
    assert parse_source("airbnb") is CalendarSource.AIRBNB
    assert parse_source(CalendarSource.OTHER) is CalendarSource.OTHER
    with pytest.raises(ValidationError):
        parse_source("booking.com")


def test_upsert_creates_one_connection_per_source(db, prop):
    registry = ConnectionRegistry(db)
    registry.upsert_connection(SCOPE, prop.id, "airbnb", URL)
    registry.upsert_connection(SCOPE, prop.id, "other", "https://other.example.com/cal.ics")
    db.commit()

    connections = registry.list_connections(SCOPE, prop.id)
    assert [c.source for c in connections] == ["airbnb", "other"]


def test_replacing_url_clears_last_synced(db, prop):
    registry = ConnectionRegistry(db)
    connection = registry.upsert_connection(SCOPE, prop.id, "airbnb", URL)
    connection.last_synced_at = datetime.now(timezone.utc)
    db.commit()

    replaced = registry.upsert_connection(SCOPE, prop.id, "airbnb", "webcal://airbnb.example.com/new.ics")
    db.commit()

    assert replaced.id == connection.id
    assert replaced.ical_url == "webcal://airbnb.example.com/new.ics"
    assert replaced.last_synced_at is None
    assert len(registry.list_connections(SCOPE, prop.id)) == 1


@pytest.mark.parametrize("url", ["", "   ", "ftp://example.com/cal.ics", "not a url"])
def test_invalid_url_rejected(db, prop, url):
    with pytest.raises(ValidationError):
        ConnectionRegistry(db).upsert_connection(SCOPE, prop.id, "airbnb", url)


def test_unknown_property_not_found(db):
    with pytest.raises(NotFoundError):
        ConnectionRegistry(db).upsert_connection(SCOPE, 12345, "airbnb", URL)


def test_other_hosts_property_not_found(db, other_prop):
    registry = ConnectionRegistry(db)
    with pytest.raises(NotFoundError):
        registry.upsert_connection(SCOPE, other_prop.id, "airbnb", URL)
    with pytest.raises(NotFoundError):
        registry.list_connections(SCOPE, other_prop.id)


def test_get_missing_connection_not_found(db, prop):
    with pytest.raises(NotFoundError):
        ConnectionRegistry(db).get_connection(SCOPE, prop.id, "airbnb")
