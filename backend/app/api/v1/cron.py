# backend/app/api/v1/cron.py
"""
Cron API

외부 cron 서비스가 호출하는 전체 달력 동기화 트리거
- Authorization: Bearer <CRON_API_KEY>
"""
import hmac
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.v1.schemas.calendar import ConnectionSyncResultDTO
from app.core.config import settings
from app.db.session import get_db
from app.services.ical_service import IcalService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"])


class CronSyncResponse(BaseModel):
    total: int
    failed: int
    results: List[ConnectionSyncResultDTO]


def verify_cron_key(authorization: Optional[str] = Header(default=None)) -> None:
    if not settings.CRON_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="CRON_API_KEY is not configured",
        )

    expected = f"Bearer {settings.CRON_API_KEY}"
    if authorization is None or not hmac.compare_digest(
        authorization.encode("utf-8"), expected.encode("utf-8")
    ):
        logger.warning("CALENDAR_API: Cron sync rejected (bad or missing bearer token)")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.post(
    "/sync-calendars",
    response_model=CronSyncResponse,
    dependencies=[Depends(verify_cron_key)],
)
async def cron_sync_calendars(db: Session = Depends(get_db)) -> CronSyncResponse:
    """모든 연동 동기화 (connection 별 결과)"""
    outcomes = await IcalService(db).sync_all()
    failed = sum(1 for o in outcomes if not o.success)

    logger.info(f"CALENDAR_API: Cron sync finished total={len(outcomes)} failed={failed}")
    return CronSyncResponse(
        total=len(outcomes),
        failed=failed,
        results=[ConnectionSyncResultDTO.from_outcome(o) for o in outcomes],
    )
