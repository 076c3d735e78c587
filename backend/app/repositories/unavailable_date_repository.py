# backend/app/repositories/unavailable_date_repository.py
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Iterable, Optional, Sequence

from sqlalchemy import select, delete
from sqlalchemy.orm import Session

from app.db.upsert import dialect_insert
from app.domain.models.unavailable_date import UnavailableDate


class UnavailableDateRepository:
    """
    UnavailableDate 레포지토리.

    (property_id, date) 기준 last-write-wins upsert.
    """

    def __init__(self, session: Session):
        self.session = session

    # --- 조회 ---

    def list_for_property(
        self,
        property_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Sequence[UnavailableDate]:
        stmt = select(UnavailableDate).where(UnavailableDate.property_id == property_id)
        if start_date is not None:
            stmt = stmt.where(UnavailableDate.date >= start_date)
        if end_date is not None:
            stmt = stmt.where(UnavailableDate.date < end_date)
        stmt = stmt.order_by(UnavailableDate.date.asc())
        return self.session.execute(stmt).scalars().all()

    def list_manual_blocks(self, property_id: int) -> Sequence[UnavailableDate]:
        """booking / event 역참조가 없는 (호스트가 직접 막은) 날짜"""
        stmt = (
            select(UnavailableDate)
            .where(
                UnavailableDate.property_id == property_id,
                UnavailableDate.booking_id.is_(None),
                UnavailableDate.event_id.is_(None),
            )
            .order_by(UnavailableDate.date.asc())
        )
        return self.session.execute(stmt).scalars().all()

    def list_for_event(self, event_id: int) -> Sequence[UnavailableDate]:
        stmt = (
            select(UnavailableDate)
            .where(UnavailableDate.event_id == event_id)
            .order_by(UnavailableDate.date.asc())
        )
        return self.session.execute(stmt).scalars().all()

    # --- upsert / 삭제 ---

    def upsert_days(
        self,
        property_id: int,
        days: Iterable[date],
        *,
        reason: Optional[str],
        booking_id: Optional[int] = None,
        event_id: Optional[int] = None,
    ) -> int:
        now = datetime.now(timezone.utc)
        values = [
            {
                "property_id": property_id,
                "date": day,
                "reason": reason,
                "booking_id": booking_id,
                "event_id": event_id,
                "created_at": now,
            }
            for day in days
        ]
        if not values:
            return 0

        stmt = dialect_insert(self.session, UnavailableDate).values(values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["property_id", "date"],
            set_={
                "reason": stmt.excluded.reason,
                "booking_id": stmt.excluded.booking_id,
                "event_id": stmt.excluded.event_id,
            },
        )
        self.session.execute(stmt)
        return len(values)

    def delete_for_events(self, event_ids: Iterable[int]) -> int:
        ids = list(event_ids)
        if not ids:
            return 0
        result = self.session.execute(
            delete(UnavailableDate).where(UnavailableDate.event_id.in_(ids))
        )
        return result.rowcount or 0

    def delete_for_booking(self, booking_id: int) -> int:
        result = self.session.execute(
            delete(UnavailableDate).where(UnavailableDate.booking_id == booking_id)
        )
        return result.rowcount or 0

    def delete_manual_blocks(self, property_id: int, days: Iterable[date]) -> int:
        day_list = list(days)
        if not day_list:
            return 0
        result = self.session.execute(
            delete(UnavailableDate).where(
                UnavailableDate.property_id == property_id,
                UnavailableDate.date.in_(day_list),
                UnavailableDate.booking_id.is_(None),
                UnavailableDate.event_id.is_(None),
            )
        )
        return result.rowcount or 0
