# backend/app/api/v1/deps.py
"""
API 공통 의존성 / 에러 변환
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Header, HTTPException, status

from app.domain.access import AccessScope
from app.domain.errors import (
    CalendarSyncError,
    ConflictError,
    FetchError,
    NotFoundError,
    ParseError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def get_host_scope(
    x_host_id: Optional[int] = Header(default=None, alias="X-Host-Id"),
) -> AccessScope:
    """
    호출자 호스트 scope

    인증 / 세션은 앞단에서 처리하고 호스트 id 만 헤더로 넘겨받는다.
    """
    if x_host_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Host-Id header is required",
        )
    return AccessScope.host(x_host_id)


def to_http_error(e: CalendarSyncError) -> HTTPException:
    """도메인 에러 → HTTPException"""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, ParseError):
        return HTTPException(
            status_code=422,
            detail=f"calendar format not recognized: {e}",
        )
    if isinstance(e, FetchError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"could not reach calendar URL: {e}",
        )
    if isinstance(e, StorageError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"could not save calendar changes: {e}",
        )

    logger.error(f"CALENDAR_API: Unmapped calendar error: {type(e).__name__}: {e}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
