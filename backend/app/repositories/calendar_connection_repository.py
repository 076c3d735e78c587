# backend/app/repositories/calendar_connection_repository.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.upsert import dialect_insert
from app.domain.models.calendar_connection import CalendarConnection, CalendarSource


class CalendarConnectionRepository:
    """
    CalendarConnection 레포지토리.

    (property_id, source) unique 제약을 upsert 의 conflict target 으로 사용.
    """

    def __init__(self, session: Session):
        self.session = session

    # --- 조회 ---

    def get_by_id(self, connection_id: int) -> CalendarConnection | None:
        return self.session.get(CalendarConnection, connection_id)

    def get(self, property_id: int, source: CalendarSource) -> CalendarConnection | None:
        stmt = select(CalendarConnection).where(
            CalendarConnection.property_id == property_id,
            CalendarConnection.source == source.value,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def list_for_property(self, property_id: int) -> Sequence[CalendarConnection]:
        stmt = (
            select(CalendarConnection)
            .where(CalendarConnection.property_id == property_id)
            .order_by(CalendarConnection.source.asc())
        )
        return self.session.execute(stmt).scalars().all()

    def list_all(self) -> Sequence[CalendarConnection]:
        stmt = select(CalendarConnection).order_by(
            CalendarConnection.property_id.asc(),
            CalendarConnection.source.asc(),
        )
        return self.session.execute(stmt).scalars().all()

    # --- 생성/수정/삭제 ---

    def upsert(
        self,
        property_id: int,
        source: CalendarSource,
        ical_url: str,
    ) -> CalendarConnection:
        """
        (property, source) 에 connection 생성 또는 URL 교체.

        기존 connection 이면 last_synced_at 을 NULL 로 되돌려 새 URL 로
        다시 동기화해야 함을 표시한다.
        """
        now = datetime.now(timezone.utc)
        stmt = dialect_insert(self.session, CalendarConnection).values(
            property_id=property_id,
            source=source.value,
            ical_url=ical_url,
            last_synced_at=None,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["property_id", "source"],
            set_={
                "ical_url": stmt.excluded.ical_url,
                "last_synced_at": None,
                "updated_at": now,
            },
        )
        self.session.execute(stmt)
        self.session.flush()

        connection = self.get(property_id, source)
        # upsert 는 ORM identity map 을 거치지 않으므로 최신 값으로 갱신
        self.session.refresh(connection)
        return connection

    def delete(self, connection: CalendarConnection) -> None:
        self.session.delete(connection)
        self.session.flush()
