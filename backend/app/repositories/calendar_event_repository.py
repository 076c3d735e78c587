# backend/app/repositories/calendar_event_repository.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Sequence

from sqlalchemy import select, delete
from sqlalchemy.orm import Session

from app.db.upsert import dialect_insert
from app.domain.models.calendar_connection import CalendarSource
from app.domain.models.calendar_event import CalendarEvent


class CalendarEventRepository:
    def __init__(self, session: Session):
        self.session = session

    # --- 조회 ---

    def get_by_id(self, event_id: int) -> CalendarEvent | None:
        return self.session.get(CalendarEvent, event_id)

    def list_for_property(
        self,
        property_id: int,
        source: CalendarSource | None = None,
    ) -> Sequence[CalendarEvent]:
        stmt = select(CalendarEvent).where(CalendarEvent.property_id == property_id)
        if source is not None:
            stmt = stmt.where(CalendarEvent.source == source.value)
        stmt = stmt.order_by(CalendarEvent.start_date.asc(), CalendarEvent.id.asc())
        return self.session.execute(stmt).scalars().all()

    def list_imported(
        self,
        property_id: int,
        source: CalendarSource,
    ) -> Sequence[CalendarEvent]:
        """external_id 가 있는 (피드에서 가져온) 이벤트만"""
        stmt = (
            select(CalendarEvent)
            .where(
                CalendarEvent.property_id == property_id,
                CalendarEvent.source == source.value,
                CalendarEvent.external_id.isnot(None),
            )
            .order_by(CalendarEvent.id.asc())
        )
        return self.session.execute(stmt).scalars().all()

    def list_by_external_ids(
        self,
        property_id: int,
        source: CalendarSource,
        external_ids: Iterable[str],
    ) -> Sequence[CalendarEvent]:
        ids = list(external_ids)
        if not ids:
            return []
        stmt = (
            select(CalendarEvent)
            .where(
                CalendarEvent.property_id == property_id,
                CalendarEvent.source == source.value,
                CalendarEvent.external_id.in_(ids),
            )
            .order_by(CalendarEvent.id.asc())
            # upsert 후 identity map 에 남은 이전 값을 덮어씀
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalars().all()

    # --- 생성/수정/삭제 ---

    def upsert_imported(self, rows: list[dict]) -> None:
        """
        피드 이벤트 일괄 upsert.

        rows: property_id, source, external_id, summary, start_date, end_date
        conflict target 은 (property_id, source, external_id).
        충돌 시 기존 row 의 id / created_at 은 유지된다.
        """
        if not rows:
            return

        now = datetime.now(timezone.utc)
        values = [
            {**row, "created_at": now, "updated_at": now}
            for row in rows
        ]
        stmt = dialect_insert(self.session, CalendarEvent).values(values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["property_id", "source", "external_id"],
            set_={
                "summary": stmt.excluded.summary,
                "start_date": stmt.excluded.start_date,
                "end_date": stmt.excluded.end_date,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        self.session.execute(stmt)

    def add(self, event: CalendarEvent) -> CalendarEvent:
        self.session.add(event)
        self.session.flush()
        return event

    def delete_by_ids(self, event_ids: Iterable[int]) -> int:
        ids = list(event_ids)
        if not ids:
            return 0
        result = self.session.execute(
            delete(CalendarEvent).where(CalendarEvent.id.in_(ids))
        )
        return result.rowcount or 0
