from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import String, DateTime, Boolean, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Property(Base):
    """
    숙소 모델.

    - host_id 기준으로 소유자 확인
    - 달력 connection / event / 차단 날짜 / 예약의 소유자 (삭제 시 cascade)
    """

    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(
        primary_key=True,
        index=True,
        autoincrement=True,
    )

    # 숙소 소유 호스트
    host_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
    )

    # 숙소 이름 (export 시 X-WR-CALNAME)
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    calendar_connections = relationship(
        "CalendarConnection",
        back_populates="property",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    calendar_events = relationship(
        "CalendarEvent",
        back_populates="property",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    unavailable_dates = relationship(
        "UnavailableDate",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    bookings = relationship(
        "Booking",
        back_populates="property",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return (
            f"<Property id={self.id} "
            f"host={self.host_id} name={self.name} active={self.is_active}>"
        )
