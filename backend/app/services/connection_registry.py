"""
Connection Registry

숙소별 외부 iCal 구독 관리
- (property, source) 당 1개 (DB unique 제약)
- URL 교체 시 last_synced_at 초기화
- 삭제 시 import 된 이벤트와 그 차단 날짜까지 정리
"""
import logging
from typing import Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.adapters.ical_feed import normalize_feed_url
from app.domain.access import AccessScope
from app.domain.errors import ConflictError, NotFoundError, ValidationError
from app.domain.models.calendar_connection import CalendarConnection, CalendarSource
from app.repositories.calendar_connection_repository import CalendarConnectionRepository
from app.repositories.calendar_event_repository import CalendarEventRepository
from app.repositories.property_repository import PropertyRepository
from app.services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = ("http://", "https://")


def parse_source(value) -> CalendarSource:
    if isinstance(value, CalendarSource):
        return value
    try:
        return CalendarSource(value)
    except ValueError as e:
        raise ValidationError(f'Source must be "airbnb" or "other", got {value!r}') from e


def validate_feed_url(ical_url: str) -> str:
    url = (ical_url or "").strip()
    if not url:
        raise ValidationError("iCal URL is required")
    if not normalize_feed_url(url).lower().startswith(_ALLOWED_SCHEMES):
        raise ValidationError(f"Unsupported iCal URL scheme: {url}")
    return url


class ConnectionRegistry:
    def __init__(self, db: Session):
        self.db = db
        self.properties = PropertyRepository(db)
        self.connections = CalendarConnectionRepository(db)
        self.events = CalendarEventRepository(db)

    def upsert_connection(
        self,
        scope: AccessScope,
        property_id: int,
        source,
        ical_url: str,
    ) -> CalendarConnection:
        """
        connection 생성 또는 교체 (flush 만, 커밋은 호출자)
        """
        source = parse_source(source)
        self.properties.get_owned(scope, property_id)

        url = validate_feed_url(ical_url)

        try:
            connection = self.connections.upsert(property_id, source, url)
        except IntegrityError as e:
            raise ConflictError(
                f"Could not upsert connection property={property_id} source={source.value}: {e.orig}"
            ) from e

        logger.info(
            f"ICAL_REGISTRY: Connection saved property={property_id} "
            f"source={source.value} id={connection.id} by={scope.describe()}"
        )
        return connection

    def list_connections(self, scope: AccessScope, property_id: int) -> Sequence[CalendarConnection]:
        self.properties.get_owned(scope, property_id)
        return self.connections.list_for_property(property_id)

    def get_connection(self, scope: AccessScope, property_id: int, source) -> CalendarConnection:
        source = parse_source(source)
        self.properties.get_owned(scope, property_id)
        connection = self.connections.get(property_id, source)
        if connection is None:
            raise NotFoundError(
                f"Calendar connection not found: property={property_id} source={source.value}"
            )
        return connection

    def delete_connection(self, scope: AccessScope, property_id: int, source) -> int:
        """
        connection 삭제

        같은 (property, source) 의 import 이벤트 (external_id 있음) 와
        그 차단 날짜를 먼저 지운다. 수기 이벤트는 남긴다.

        Returns:
            삭제된 이벤트 수
        """
        connection = self.get_connection(scope, property_id, source)
        source = parse_source(source)

        imported = self.events.list_imported(property_id, source)
        event_ids = [e.id for e in imported]

        AvailabilityService(self.db).release_events(event_ids)
        removed_events = self.events.delete_by_ids(event_ids)
        self.connections.delete(connection)

        logger.info(
            f"ICAL_REGISTRY: Connection deleted property={property_id} "
            f"source={source.value} events_removed={removed_events} by={scope.describe()}"
        )
        return removed_events
