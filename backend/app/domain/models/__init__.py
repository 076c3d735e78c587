# backend/app/domain/models/__init__.py

from app.db.base import Base

from .property import Property
from .booking import Booking, BookingStatus
from .calendar_connection import CalendarConnection, CalendarSource
from .calendar_event import CalendarEvent
from .unavailable_date import UnavailableDate

__all__ = [
    "Base",
    "Property",
    "Booking",
    "BookingStatus",
    "CalendarConnection",
    "CalendarSource",
    "CalendarEvent",
    "UnavailableDate",
]
