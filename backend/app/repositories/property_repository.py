# backend/app/repositories/property_repository.py
from __future__ import annotations

from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.domain.access import AccessScope
from app.domain.errors import NotFoundError
from app.domain.models.property import Property


class PropertyRepository:
    """
    Property 전용 레포지토리.
    """

    def __init__(self, session: Session):
        self.session = session

    # --- 조회 ---

    def get_by_id(self, id_: int) -> Property | None:
        return self.session.get(Property, id_)

    def get_owned(self, scope: AccessScope, property_id: int) -> Property:
        """
        숙소 존재 + 소유 확인.

        없는 숙소와 남의 숙소를 구분하지 않고 둘 다 NotFoundError.
        """
        prop = self.get_by_id(property_id)
        if prop is None or not scope.can_access(prop.host_id):
            raise NotFoundError(f"Property not found or not owned by caller: {property_id}")
        return prop

    def list_for_host(
        self,
        host_id: int,
        *,
        active_only: bool = True,
    ) -> Sequence[Property]:
        stmt = select(Property).where(Property.host_id == host_id)
        if active_only:
            stmt = stmt.where(Property.is_active.is_(True))
        stmt = stmt.order_by(Property.id.asc())
        return self.session.execute(stmt).scalars().all()

    # --- 생성 ---

    def create(self, data: dict) -> Property:
        prop = Property(**data)
        self.session.add(prop)
        self.session.flush()
        return prop
