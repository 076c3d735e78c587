"""
iCal Export Service

숙소 달력을 iCal 로 내보내기 (외부 OTA 가 구독하는 피드)
- 확정 예약 → booking-<id>
- 수기 차단 날짜 → blocked-<id>
- 달력 이벤트 → event-<id>

같은 데이터면 같은 출력 (DTSTAMP = row 의 created_at).
"""
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.domain.access import AccessScope
from app.repositories.booking_repository import BookingRepository
from app.repositories.calendar_event_repository import CalendarEventRepository
from app.repositories.property_repository import PropertyRepository
from app.repositories.unavailable_date_repository import UnavailableDateRepository
from app.services.ical_codec import add_vevent, new_calendar, serialize_calendar

logger = logging.getLogger(__name__)


def export_filename(property_id: int) -> str:
    return f"property-{property_id}.ics"


def export_url(property_id: int, base_url: Optional[str] = None) -> str:
    base = (base_url or settings.PUBLIC_BASE_URL).rstrip("/")
    return f"{base}/api/v1/calendar/{property_id}/export"


class IcalExportService:
    def __init__(self, db: Session, prodid: Optional[str] = None):
        self.db = db
        self.prodid = prodid or settings.ICAL_PRODID
        self.properties = PropertyRepository(db)
        self.bookings = BookingRepository(db)
        self.events = CalendarEventRepository(db)
        self.dates = UnavailableDateRepository(db)

    def generate_property_ical(self, scope: AccessScope, property_id: int) -> str:
        """
        숙소 iCal 문서 생성

        Raises:
            NotFoundError: 숙소가 없거나 접근 불가
        """
        prop = self.properties.get_owned(scope, property_id)
        cal = new_calendar(prop.name, self.prodid)

        bookings = self.bookings.list_confirmed_for_property(property_id)
        for booking in bookings:
            description = f"Booking for {booking.guest_name}"
            if booking.guest_email:
                description += f" ({booking.guest_email})"
            add_vevent(
                cal,
                uid=f"booking-{booking.id}",
                summary=f"Booking: {booking.guest_name}",
                start=booking.check_in,
                end=booking.check_out,
                stamp=booking.created_at,
                description=description + ".",
            )

        blocks = self.dates.list_manual_blocks(property_id)
        for block in blocks:
            summary = "Not Available"
            if block.reason:
                summary += f": {block.reason}"
            add_vevent(
                cal,
                uid=f"blocked-{block.id}",
                summary=summary,
                start=block.date,
                end=block.date + timedelta(days=1),
                stamp=block.created_at,
            )

        events = self.events.list_for_property(property_id)
        for event in events:
            add_vevent(
                cal,
                uid=f"event-{event.id}",
                summary=event.summary or "Calendar Event",
                start=event.start_date,
                # 종료일 다음 날까지 막아서 내보냄
                end=event.end_date + timedelta(days=1),
                stamp=event.created_at,
                description=f"Calendar event from {event.source}",
            )

        logger.info(
            f"ICAL_EXPORT: Generated calendar property={property_id} "
            f"bookings={len(bookings)} blocks={len(blocks)} events={len(events)}"
        )
        return serialize_calendar(cal)
