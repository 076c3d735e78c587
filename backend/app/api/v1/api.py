# backend/app/api/v1/api.py
"""
HostDirect API Router
- Calendar (iCal 연동 / export / 수기 차단)
- Cron (외부 트리거 동기화)
- Scheduler (상태 / 즉시 실행)
"""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from app.api.v1 import (
    calendar,
    cron,
)

api_router = APIRouter()

# ✅ Calendar (iCal 동기화 / export)
api_router.include_router(calendar.router)

# ✅ Cron 트리거
api_router.include_router(cron.router)


# ============================================================
# Scheduler API (테스트/관리용)
# ============================================================

class SchedulerStatusResponse(BaseModel):
    running: bool
    interval_minutes: int | None
    next_run: str | None


class SchedulerRunResponse(BaseModel):
    status: str
    total: int
    succeeded: int
    failed: int
    skipped: int


@api_router.get("/scheduler/status", response_model=SchedulerStatusResponse, tags=["Scheduler"])
def get_scheduler_status():
    """스케줄러 상태 조회"""
    from app.core.config import settings
    from app.services.scheduler import ICAL_SYNC_JOB_ID, get_scheduler

    scheduler = get_scheduler()
    if scheduler is None:
        return SchedulerStatusResponse(running=False, interval_minutes=None, next_run=None)

    job = scheduler.get_job(ICAL_SYNC_JOB_ID)
    next_run = None
    if job and job.next_run_time:
        next_run = job.next_run_time.isoformat()

    return SchedulerStatusResponse(
        running=scheduler.running,
        interval_minutes=settings.ICAL_SYNC_INTERVAL_MINUTES,
        next_run=next_run,
    )


@api_router.post("/scheduler/run-now", response_model=SchedulerRunResponse, tags=["Scheduler"])
async def run_scheduler_now():
    """스케줄러 Job 즉시 실행 (테스트용)"""
    from app.services.scheduler import run_job_now

    try:
        summary = await run_job_now()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    return SchedulerRunResponse(status="ok", **summary)
