"""
Unavailable Date Model

하루 단위 차단 날짜 (projection)
- 확정 예약의 숙박일
- 호스트가 직접 막은 날짜 (booking_id, event_id 모두 NULL)
- 달력 이벤트(iCal import / 수기 이벤트) 기간
"""
from __future__ import annotations

import datetime as dt

from sqlalchemy import String, Date, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.domain.models.property import _utcnow


class UnavailableDate(Base):
    """
    차단 날짜

    - property_id + date unique: 여러 출처가 겹치면 마지막 쓰기가 이김
    - reason: 차단 사유 (예: "Airbnb (Not available)", "Booking #12")
    - booking_id / event_id: 원본 역참조 (소유하지 않음)
    """

    __tablename__ = "unavailable_dates"

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True,
    )

    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    date: Mapped[dt.date] = mapped_column(
        Date,
        nullable=False,
    )

    reason: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    booking_id: Mapped[int | None] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    event_id: Mapped[int | None] = mapped_column(
        ForeignKey("calendar_events.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    __table_args__ = (
        Index('idx_unavailable_dates_property_date', 'property_id', 'date', unique=True),
    )

    @property
    def is_manual_block(self) -> bool:
        return self.booking_id is None and self.event_id is None

    def __repr__(self) -> str:
        return f"<UnavailableDate {self.property_id} {self.date}>"
