"""
Availability Service

상위 구간(예약 / 수기 차단 / 달력 이벤트)을 하루 단위 차단 날짜로 projection
- end 는 exclusive (3/20 ~ 3/23 → 20, 21, 22 차단)
- (property_id, date) 기준 last-write-wins upsert
- 커밋은 호출자가 한다
"""
import logging
from datetime import date, timedelta
from typing import Iterator, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.domain.errors import NotFoundError, ValidationError
from app.domain.models.booking import Booking, BookingStatus
from app.domain.models.calendar_event import CalendarEvent
from app.repositories.booking_repository import BookingRepository
from app.repositories.unavailable_date_repository import UnavailableDateRepository

logger = logging.getLogger(__name__)


def iter_days(start: date, end: date, max_days: Optional[int] = None) -> Iterator[date]:
    """[start, end) 의 날짜들. max_days 를 넘으면 잘라냄."""
    if max_days is not None and (end - start).days > max_days:
        logger.warning(
            f"AVAILABILITY: Range too long, truncating: "
            f"{start} ~ {end} → {start} ~ {start + timedelta(days=max_days)}"
        )
        end = start + timedelta(days=max_days)

    current = start
    while current < end:
        yield current
        current += timedelta(days=1)


def event_reason(event: CalendarEvent) -> str:
    return event.summary or f"Calendar event from {event.source}"


class AvailabilityService:
    """
    차단 날짜 projection

    - project_event: 이벤트 기간을 통째로 다시 씀 (기존 projection 삭제 후 upsert)
    - release_events: 이벤트 projection 삭제
    - confirm_booking / cancel_booking: 예약 기간 projection
    - block_dates / unblock_dates: 호스트 수기 차단
    """

    def __init__(self, db: Session, max_days: Optional[int] = None):
        self.db = db
        self.dates = UnavailableDateRepository(db)
        self.max_days = max_days if max_days is not None else settings.ICAL_MAX_PROJECTED_DAYS

    # ------------------------------------------------------------------
    # 달력 이벤트
    # ------------------------------------------------------------------

    def project_event(self, event: CalendarEvent) -> int:
        """
        이벤트 1건의 차단 날짜 재생성

        Returns:
            projection 된 날짜 수
        """
        self.dates.delete_for_events([event.id])
        count = self.dates.upsert_days(
            event.property_id,
            iter_days(event.start_date, event.end_date, self.max_days),
            reason=event_reason(event),
            event_id=event.id,
        )
        self.db.flush()

        logger.debug(
            f"AVAILABILITY: Projected event={event.id} property={event.property_id} "
            f"uid={event.external_id} days={count}"
        )
        return count

    def release_events(self, event_ids: list[int]) -> int:
        removed = self.dates.delete_for_events(event_ids)
        self.db.flush()
        return removed

    # ------------------------------------------------------------------
    # 예약
    # ------------------------------------------------------------------

    def confirm_booking(self, booking_id: int) -> Booking:
        """예약 확정 + 숙박 기간 차단"""
        booking = self._get_booking(booking_id)
        if booking.check_out < booking.check_in:
            raise ValidationError(
                f"Booking {booking.id} check_out {booking.check_out} is before check_in {booking.check_in}"
            )

        booking.status = BookingStatus.CONFIRMED.value
        self.dates.delete_for_booking(booking.id)
        count = self.dates.upsert_days(
            booking.property_id,
            iter_days(booking.check_in, booking.check_out, self.max_days),
            reason=f"Booking #{booking.id}",
            booking_id=booking.id,
        )
        self.db.flush()

        logger.info(
            f"AVAILABILITY: Blocked {count} dates for booking={booking.id} "
            f"property={booking.property_id}"
        )
        return booking

    def cancel_booking(self, booking_id: int) -> Booking:
        """예약 취소 + 차단 해제"""
        booking = self._get_booking(booking_id)
        booking.status = BookingStatus.CANCELLED.value
        removed = self.dates.delete_for_booking(booking.id)
        self.db.flush()

        logger.info(
            f"AVAILABILITY: Released {removed} dates for cancelled booking={booking.id} "
            f"property={booking.property_id}"
        )
        return booking

    def _get_booking(self, booking_id: int) -> Booking:
        booking = BookingRepository(self.db).get_by_id(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking not found: {booking_id}")
        return booking

    # ------------------------------------------------------------------
    # 수기 차단
    # ------------------------------------------------------------------

    def block_dates(
        self,
        property_id: int,
        start_date: date,
        end_date: date,
        reason: Optional[str] = None,
    ) -> int:
        """[start_date, end_date) 수기 차단 (booking / event 역참조 없음)"""
        if end_date < start_date:
            raise ValidationError(f"end_date {end_date} is before start_date {start_date}")

        count = self.dates.upsert_days(
            property_id,
            iter_days(start_date, end_date, self.max_days),
            reason=reason,
        )
        self.db.flush()
        logger.info(
            f"AVAILABILITY: Manually blocked {count} dates property={property_id} "
            f"{start_date} ~ {end_date}"
        )
        return count

    def unblock_dates(self, property_id: int, days: list[date]) -> int:
        """수기 차단만 해제 (예약 / 이벤트 projection 은 그대로)"""
        removed = self.dates.delete_manual_blocks(property_id, days)
        self.db.flush()
        logger.info(f"AVAILABILITY: Unblocked {removed} dates property={property_id}")
        return removed
