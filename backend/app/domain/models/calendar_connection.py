"""
Calendar Connection Model

외부 iCal 구독 (숙소당 source 별 1개)
- Airbnb 또는 기타 채널의 iCal URL
- 마지막 동기화 시각
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.domain.models.property import _utcnow


class CalendarSource(str, Enum):
    """외부 달력 출처. 동작 차이는 없고 저장용 태그일 뿐."""
    AIRBNB = "airbnb"
    OTHER = "other"


class CalendarConnection(Base):
    """
    iCal 구독

    - (property_id, source) unique: 숙소당 출처별 1개
    - last_synced_at: 마지막 성공 동기화 (URL 변경 시 NULL 로 초기화)
    - sync_started_at: 진행 중인 동기화 표시 (겹치는 동기화 방지용)
    """

    __tablename__ = "calendar_connections"

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

    ical_url: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    sync_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
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

    property = relationship("Property", back_populates="calendar_connections")

    __table_args__ = (
        UniqueConstraint("property_id", "source", name="uq_calendar_connections_property_source"),
    )

    def __repr__(self) -> str:
        return f"<CalendarConnection {self.property_id} {self.source} synced={self.last_synced_at}>"
