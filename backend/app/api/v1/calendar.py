"""
Calendar API

숙소별 외부 iCal 연동, 동기화, 달력 export, 수기 이벤트 / 차단 관리
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from app.api.v1.deps import get_host_scope, to_http_error
from app.api.v1.schemas.calendar import (
    BlockDatesRequest,
    CalendarConnectionDTO,
    CalendarDataResponse,
    CalendarEventCreateRequest,
    CalendarEventDTO,
    CalendarEventUpdateRequest,
    CalendarImportRequest,
    CalendarImportResponse,
    CalendarSyncResponse,
    ConnectionSyncResultDTO,
    CountResponse,
    ExportUrlResponse,
    ProcessEventsRequest,
    SyncResultDTO,
    UnavailableDateDTO,
    UnblockDatesRequest,
)
from app.db.session import get_db
from app.domain.access import AccessScope
from app.domain.errors import CalendarSyncError
from app.repositories.calendar_event_repository import CalendarEventRepository
from app.repositories.property_repository import PropertyRepository
from app.repositories.unavailable_date_repository import UnavailableDateRepository
from app.services.availability_service import AvailabilityService
from app.services.calendar_event_service import CalendarEventService
from app.services.connection_registry import ConnectionRegistry
from app.services.ical_export_service import IcalExportService, export_filename, export_url
from app.services.ical_service import IcalService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["Calendar"])


# ========== iCal 연동 / 동기화 ==========

@router.post("/import", response_model=CalendarImportResponse)
async def import_calendar(
    request: CalendarImportRequest,
    db: Session = Depends(get_db),
    scope: AccessScope = Depends(get_host_scope),
) -> CalendarImportResponse:
    """
    외부 iCal 연동 등록 (또는 URL 교체) + 즉시 1회 동기화

    피드를 가져오지 못하거나 파싱에 실패하면 기존 연동은 그대로 유지된다.
    """
    try:
        connection, result = await IcalService(db).import_connection(
            scope, request.property_id, request.source, request.ical_url,
        )
    except CalendarSyncError as e:
        logger.warning(
            f"CALENDAR_API: Import failed property={request.property_id} "
            f"source={request.source.value}: {e}"
        )
        raise to_http_error(e)

    return CalendarImportResponse(
        connection=CalendarConnectionDTO.model_validate(connection),
        result=SyncResultDTO.from_result(result),
    )


@router.post("/{property_id}/sync", response_model=CalendarSyncResponse)
async def sync_calendar(
    property_id: int,
    db: Session = Depends(get_db),
    scope: AccessScope = Depends(get_host_scope),
) -> CalendarSyncResponse:
    """
    숙소의 모든 연동 동기화

    connection 별 결과를 반환한다 (하나가 실패해도 나머지는 진행).
    """
    try:
        outcomes = await IcalService(db).sync_property(scope, property_id)
    except CalendarSyncError as e:
        raise to_http_error(e)

    return CalendarSyncResponse(
        property_id=property_id,
        results=[ConnectionSyncResultDTO.from_outcome(o) for o in outcomes],
    )


@router.delete("/{property_id}/connections/{source}", response_model=CountResponse)
def delete_connection(
    property_id: int,
    source: str,
    db: Session = Depends(get_db),
    scope: AccessScope = Depends(get_host_scope),
) -> CountResponse:
    """연동 해제 (import 된 이벤트와 차단 날짜도 삭제)"""
    try:
        removed = ConnectionRegistry(db).delete_connection(scope, property_id, source)
        db.commit()
    except CalendarSyncError as e:
        db.rollback()
        raise to_http_error(e)

    return CountResponse(property_id=property_id, count=removed)


@router.post("/{property_id}/process", response_model=CountResponse)
def process_events(
    property_id: int,
    request: Optional[ProcessEventsRequest] = None,
    db: Session = Depends(get_db),
    scope: AccessScope = Depends(get_host_scope),
) -> CountResponse:
    """저장된 이벤트의 차단 날짜 다시 생성 (source 지정 시 해당 출처만)"""
    source = request.source if request else None
    try:
        count = IcalService(db).reproject_events(scope, property_id, source)
    except CalendarSyncError as e:
        db.rollback()
        raise to_http_error(e)

    return CountResponse(property_id=property_id, count=count)


# ========== Export ==========

@router.get("/{property_id}/export")
def export_calendar(
    property_id: int,
    db: Session = Depends(get_db),
) -> Response:
    """
    숙소 달력 iCal 피드

    외부 OTA 가 인증 없이 구독하므로 system scope 로 생성한다.
    """
    try:
        ical_text = IcalExportService(db).generate_property_ical(
            AccessScope.system(), property_id,
        )
    except CalendarSyncError as e:
        raise to_http_error(e)

    return Response(
        content=ical_text,
        media_type="text/calendar; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename(property_id)}"',
        },
    )


@router.get("/{property_id}/export-url", response_model=ExportUrlResponse)
def get_export_url(
    property_id: int,
    db: Session = Depends(get_db),
    scope: AccessScope = Depends(get_host_scope),
) -> ExportUrlResponse:
    try:
        PropertyRepository(db).get_owned(scope, property_id)
    except CalendarSyncError as e:
        raise to_http_error(e)

    return ExportUrlResponse(property_id=property_id, url=export_url(property_id))


# ========== 조회 ==========

@router.get("/{property_id}/data", response_model=CalendarDataResponse)
def get_calendar_data(
    property_id: int,
    db: Session = Depends(get_db),
    scope: AccessScope = Depends(get_host_scope),
) -> CalendarDataResponse:
    """연동 목록 + 달력 이벤트 + 차단 날짜"""
    try:
        connections = ConnectionRegistry(db).list_connections(scope, property_id)
    except CalendarSyncError as e:
        raise to_http_error(e)

    events = CalendarEventRepository(db).list_for_property(property_id)
    dates = UnavailableDateRepository(db).list_for_property(property_id)

    return CalendarDataResponse(
        connections=[CalendarConnectionDTO.model_validate(c) for c in connections],
        events=[CalendarEventDTO.model_validate(e) for e in events],
        unavailable_dates=[UnavailableDateDTO.model_validate(d) for d in dates],
    )


# ========== 수기 이벤트 ==========

@router.post("/{property_id}/events", response_model=CalendarEventDTO, status_code=201)
def create_event(
    property_id: int,
    request: CalendarEventCreateRequest,
    db: Session = Depends(get_db),
    scope: AccessScope = Depends(get_host_scope),
) -> CalendarEventDTO:
    try:
        event = CalendarEventService(db).create_event(
            scope,
            property_id,
            source=request.source,
            summary=request.summary,
            start_date=request.start_date,
            end_date=request.end_date,
        )
        db.commit()
    except CalendarSyncError as e:
        db.rollback()
        raise to_http_error(e)

    return CalendarEventDTO.model_validate(event)


@router.put("/{property_id}/events/{event_id}", response_model=CalendarEventDTO)
def update_event(
    property_id: int,
    event_id: int,
    request: CalendarEventUpdateRequest,
    db: Session = Depends(get_db),
    scope: AccessScope = Depends(get_host_scope),
) -> CalendarEventDTO:
    try:
        event = CalendarEventService(db).update_event(
            scope,
            property_id,
            event_id,
            source=request.source,
            summary=request.summary,
            start_date=request.start_date,
            end_date=request.end_date,
        )
        db.commit()
    except CalendarSyncError as e:
        db.rollback()
        raise to_http_error(e)

    return CalendarEventDTO.model_validate(event)


@router.delete("/{property_id}/events/{event_id}", status_code=204)
def delete_event(
    property_id: int,
    event_id: int,
    db: Session = Depends(get_db),
    scope: AccessScope = Depends(get_host_scope),
) -> Response:
    try:
        CalendarEventService(db).delete_event(scope, property_id, event_id)
        db.commit()
    except CalendarSyncError as e:
        db.rollback()
        raise to_http_error(e)

    return Response(status_code=204)


# ========== 수기 차단 ==========

@router.post("/{property_id}/blocks", response_model=List[UnavailableDateDTO])
def block_dates(
    property_id: int,
    request: BlockDatesRequest,
    db: Session = Depends(get_db),
    scope: AccessScope = Depends(get_host_scope),
) -> List[UnavailableDateDTO]:
    """[start_date, end_date) 날짜 차단"""
    try:
        PropertyRepository(db).get_owned(scope, property_id)
        AvailabilityService(db).block_dates(
            property_id, request.start_date, request.end_date, request.reason,
        )
        db.commit()
    except CalendarSyncError as e:
        db.rollback()
        raise to_http_error(e)

    blocks = UnavailableDateRepository(db).list_for_property(
        property_id, request.start_date, request.end_date,
    )
    return [UnavailableDateDTO.model_validate(b) for b in blocks]


@router.delete("/{property_id}/blocks", response_model=CountResponse)
def unblock_dates(
    property_id: int,
    request: UnblockDatesRequest,
    db: Session = Depends(get_db),
    scope: AccessScope = Depends(get_host_scope),
) -> CountResponse:
    """수기 차단 해제 (예약 / 이벤트로 막힌 날짜는 그대로)"""
    try:
        PropertyRepository(db).get_owned(scope, property_id)
        removed = AvailabilityService(db).unblock_dates(property_id, request.dates)
        db.commit()
    except CalendarSyncError as e:
        db.rollback()
        raise to_http_error(e)

    return CountResponse(property_id=property_id, count=removed)
