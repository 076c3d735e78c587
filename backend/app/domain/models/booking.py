"""
Booking: 직접 예약 (direct booking)

- 결제 확정 시 confirmed 로 전환되고 숙박 기간이 차단 날짜로 projection 됨
- 취소 시 해당 예약의 차단 날짜 삭제
"""
from __future__ import annotations

from datetime import datetime, date
from typing import Optional
from enum import Enum

from sqlalchemy import (
    String,
    Integer,
    Date,
    DateTime,
    ForeignKey,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.domain.models.property import _utcnow


class BookingStatus(str, Enum):
    """예약 상태"""
    PENDING = "pending"        # 결제 대기
    CONFIRMED = "confirmed"    # 예약 확정
    CANCELLED = "cancelled"    # 취소됨


class Booking(Base):
    """
    예약 테이블

    - check_in ~ check_out (check_out 은 exclusive, 체크아웃 날은 비어있음)
    - export 시 confirmed 예약만 VEVENT 로 내보냄
    """
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    property_id: Mapped[int] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # 예약 상태
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BookingStatus.PENDING.value, index=True
    )

    # 게스트 정보
    guest_name: Mapped[str] = mapped_column(String(100), nullable=False)
    guest_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # 숙박 기간
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)

    # 메타
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    property = relationship("Property", back_populates="bookings")

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, property={self.property_id}, "
            f"status={self.status}, "
            f"guest={self.guest_name}, "
            f"check_in={self.check_in}, check_out={self.check_out})>"
        )
