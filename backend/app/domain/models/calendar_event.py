"""
Calendar Event Model

외부 iCal 피드에서 가져오거나 호스트가 직접 입력한 점유 구간
- external_id: 피드의 UID (수기 입력은 NULL)
- end_date 는 exclusive (체크아웃 날짜처럼)
"""
from __future__ import annotations

from datetime import datetime, date

from sqlalchemy import String, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.domain.models.property import _utcnow


class CalendarEvent(Base):
    """
    달력 이벤트

    - (property_id, source, external_id) unique: 동기화 upsert 기준
    - 수기 이벤트는 external_id 가 NULL 이라 unique 제약에 걸리지 않음
    """

    __tablename__ = "calendar_events"

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True,
    )

    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    source: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    external_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    summary: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    start_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    end_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
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

    property = relationship("Property", back_populates="calendar_events")

    __table_args__ = (
        UniqueConstraint(
            "property_id", "source", "external_id",
            name="uq_calendar_events_property_source_external",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<CalendarEvent id={self.id} {self.property_id}/{self.source} "
            f"uid={self.external_id} {self.start_date}~{self.end_date}>"
        )
