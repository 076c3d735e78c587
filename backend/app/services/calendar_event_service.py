"""
Calendar Event Service

호스트가 직접 입력하는 달력 이벤트 (external_id 없음)
- 생성 / 수정 시 차단 날짜 projection 재생성
- 삭제 시 projection 먼저 삭제
- 커밋은 호출자 (API 라우터) 가 한다
"""
import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from app.domain.access import AccessScope
from app.domain.errors import NotFoundError, ValidationError
from app.domain.models.calendar_event import CalendarEvent
from app.repositories.calendar_event_repository import CalendarEventRepository
from app.repositories.property_repository import PropertyRepository
from app.services.availability_service import AvailabilityService
from app.services.connection_registry import parse_source

logger = logging.getLogger(__name__)


def _check_range(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise ValidationError(f"end_date {end_date} is before start_date {start_date}")


class CalendarEventService:
    def __init__(self, db: Session):
        self.db = db
        self.properties = PropertyRepository(db)
        self.events = CalendarEventRepository(db)
        self.availability = AvailabilityService(db)

    def create_event(
        self,
        scope: AccessScope,
        property_id: int,
        *,
        source,
        start_date: date,
        end_date: date,
        summary: Optional[str] = None,
    ) -> CalendarEvent:
        source = parse_source(source)
        self.properties.get_owned(scope, property_id)
        _check_range(start_date, end_date)

        event = self.events.add(
            CalendarEvent(
                property_id=property_id,
                source=source.value,
                external_id=None,
                summary=summary,
                start_date=start_date,
                end_date=end_date,
            )
        )
        days = self.availability.project_event(event)

        logger.info(
            f"CALENDAR_EVENT: Created manual event id={event.id} property={property_id} "
            f"{start_date} ~ {end_date} days={days}"
        )
        return event

    def update_event(
        self,
        scope: AccessScope,
        property_id: int,
        event_id: int,
        *,
        summary: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        source=None,
    ) -> CalendarEvent:
        """None 인 필드는 그대로 둔다."""
        event = self.get_event(scope, property_id, event_id)

        new_start = start_date if start_date is not None else event.start_date
        new_end = end_date if end_date is not None else event.end_date
        _check_range(new_start, new_end)

        if summary is not None:
            event.summary = summary
        if source is not None:
            event.source = parse_source(source).value
        event.start_date = new_start
        event.end_date = new_end
        self.db.flush()

        self.availability.project_event(event)

        logger.info(
            f"CALENDAR_EVENT: Updated event id={event.id} property={property_id} "
            f"{event.start_date} ~ {event.end_date}"
        )
        return event

    def delete_event(self, scope: AccessScope, property_id: int, event_id: int) -> None:
        event = self.get_event(scope, property_id, event_id)

        self.availability.release_events([event.id])
        self.db.delete(event)
        self.db.flush()

        logger.info(f"CALENDAR_EVENT: Deleted event id={event_id} property={property_id}")

    def get_event(self, scope: AccessScope, property_id: int, event_id: int) -> CalendarEvent:
        self.properties.get_owned(scope, property_id)
        event = self.events.get_by_id(event_id)
        if event is None or event.property_id != property_id:
            raise NotFoundError(f"Calendar event not found: {event_id}")
        return event
