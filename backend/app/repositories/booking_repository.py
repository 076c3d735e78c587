# backend/app/repositories/booking_repository.py
from __future__ import annotations

from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.domain.models.booking import Booking, BookingStatus


class BookingRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, booking_id: int) -> Booking | None:
        return self.session.get(Booking, booking_id)

    def list_confirmed_for_property(self, property_id: int) -> Sequence[Booking]:
        stmt = (
            select(Booking)
            .where(
                Booking.property_id == property_id,
                Booking.status == BookingStatus.CONFIRMED.value,
            )
            .order_by(Booking.check_in.asc(), Booking.id.asc())
        )
        return self.session.execute(stmt).scalars().all()

    def create(self, data: dict) -> Booking:
        booking = Booking(**data)
        self.session.add(booking)
        self.session.flush()
        return booking
