# backend/app/api/v1/schemas/calendar.py

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.domain.models.calendar_connection import CalendarSource
from app.services.ical_service import ConnectionSyncOutcome, SyncResult


# ========== Requests ==========

class CalendarImportRequest(BaseModel):
    """POST /calendar/import 요청"""
    property_id: int
    source: CalendarSource = Field(..., description='"airbnb" 또는 "other"')
    ical_url: str = Field(..., min_length=1, description="iCal URL (webcal:// 허용)")


class CalendarEventCreateRequest(BaseModel):
    source: CalendarSource = CalendarSource.OTHER
    summary: Optional[str] = None
    start_date: date
    end_date: date = Field(..., description="exclusive 종료일")


class CalendarEventUpdateRequest(BaseModel):
    """None 인 필드는 변경하지 않음"""
    source: Optional[CalendarSource] = None
    summary: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class BlockDatesRequest(BaseModel):
    start_date: date
    end_date: date = Field(..., description="exclusive 종료일")
    reason: Optional[str] = None


class UnblockDatesRequest(BaseModel):
    dates: List[date] = Field(..., min_length=1)


class ProcessEventsRequest(BaseModel):
    source: Optional[CalendarSource] = None


# ========== Responses ==========

class SyncResultDTO(BaseModel):
    added: int
    updated: int
    removed: int
    skipped: bool = False

    @classmethod
    def from_result(cls, r: SyncResult) -> "SyncResultDTO":
        return cls(added=r.added, updated=r.updated, removed=r.removed, skipped=r.skipped)


class ConnectionSyncResultDTO(BaseModel):
    connection_id: int
    property_id: int
    source: str
    success: bool
    result: Optional[SyncResultDTO] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def from_outcome(cls, o: ConnectionSyncOutcome) -> "ConnectionSyncResultDTO":
        return cls(
            connection_id=o.connection_id,
            property_id=o.property_id,
            source=o.source,
            success=o.success,
            result=SyncResultDTO.from_result(o.result) if o.result else None,
            error=o.error,
            error_type=o.error_type,
        )


class CalendarConnectionDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    property_id: int
    source: str
    ical_url: str
    last_synced_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class CalendarImportResponse(BaseModel):
    connection: CalendarConnectionDTO
    result: SyncResultDTO


class CalendarSyncResponse(BaseModel):
    property_id: int
    results: List[ConnectionSyncResultDTO]


class CalendarEventDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    property_id: int
    source: str
    external_id: Optional[str] = None
    summary: Optional[str] = None
    start_date: date
    end_date: date
    created_at: datetime
    updated_at: datetime


class UnavailableDateDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    property_id: int
    date: date
    reason: Optional[str] = None
    booking_id: Optional[int] = None
    event_id: Optional[int] = None


class CalendarDataResponse(BaseModel):
    """GET /calendar/{property_id}/data 응답"""
    connections: List[CalendarConnectionDTO]
    events: List[CalendarEventDTO]
    unavailable_dates: List[UnavailableDateDTO]


class ExportUrlResponse(BaseModel):
    property_id: int
    url: str


class CountResponse(BaseModel):
    property_id: int
    count: int
