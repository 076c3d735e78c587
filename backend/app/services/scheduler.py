# backend/app/services/scheduler.py
"""
HostDirect Scheduler Service (APScheduler 기반)

ICAL_SYNC_INTERVAL_MINUTES 마다 모든 iCal connection 을 동기화합니다.

사용법:
    from app.services.scheduler import start_scheduler, shutdown_scheduler

    # FastAPI lifespan에서
    start_scheduler()
    ...
    shutdown_scheduler()
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings

# 로거 설정
logger = logging.getLogger("hostdirect.scheduler")
logger.setLevel(logging.INFO)

# 콘솔 핸들러 추가 (서버 로그에 출력)
if not logger.handlers:
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s [SCHEDULER] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

ICAL_SYNC_JOB_ID = "ical_sync_job"

# 전역 스케줄러 인스턴스
_scheduler: Optional[AsyncIOScheduler] = None


async def ical_sync_job() -> dict:
    """
    iCal Sync Job

    - 모든 calendar connection 에 대해 fetch → reconcile → projection
    - connection 하나가 실패해도 나머지는 계속 진행

    Returns:
        실행 요약 (total / succeeded / failed / skipped)
    """
    from app.db.session import SessionLocal
    from app.services.ical_service import IcalService

    start_time = datetime.now(timezone.utc)
    logger.info("=" * 60)
    logger.info("iCal Sync Job 시작")
    logger.info(f"  시작 시간: {start_time.isoformat()}")
    logger.info("=" * 60)

    summary = {"total": 0, "succeeded": 0, "failed": 0, "skipped": 0}

    db = SessionLocal()
    try:
        outcomes = await IcalService(db).sync_all()

        for outcome in outcomes:
            label = f"property={outcome.property_id} source={outcome.source}"
            if not outcome.success:
                summary["failed"] += 1
                logger.warning(f"  ✗ {label} → {outcome.error_type}: {outcome.error}")
            elif outcome.result and outcome.result.skipped:
                summary["skipped"] += 1
                logger.info(f"  - {label} → SKIP (sync in progress)")
            else:
                summary["succeeded"] += 1
                result = outcome.result
                logger.info(
                    f"  ✓ {label} → +{result.added} ~{result.updated} -{result.removed}"
                )
        summary["total"] = len(outcomes)

        duration = (datetime.now(timezone.utc) - start_time).total_seconds()
        logger.info("=" * 60)
        logger.info("iCal Sync Job 완료")
        logger.info(f"  소요 시간: {duration:.1f}초")
        logger.info(f"  connection: {summary['total']}개")
        logger.info(f"  성공: {summary['succeeded']}개")
        logger.info(f"  실패: {summary['failed']}개")
        logger.info(f"  스킵: {summary['skipped']}개")
        logger.info("=" * 60)

    except Exception as e:
        logger.error(f"iCal Sync Job 실패: {e}")
        logger.exception("상세 에러:")
        db.rollback()
    finally:
        db.close()

    return summary


def start_scheduler(interval_minutes: Optional[int] = None):
    """
    스케줄러 시작

    Args:
        interval_minutes: 실행 간격 (분), 기본 ICAL_SYNC_INTERVAL_MINUTES
    """
    global _scheduler

    if _scheduler is not None:
        logger.warning("스케줄러가 이미 실행 중입니다")
        return

    if interval_minutes is None:
        interval_minutes = settings.ICAL_SYNC_INTERVAL_MINUTES

    _scheduler = AsyncIOScheduler()

    _scheduler.add_job(
        ical_sync_job,
        trigger=IntervalTrigger(minutes=interval_minutes),
        id=ICAL_SYNC_JOB_ID,
        name="iCal 달력 동기화",
        replace_existing=True,
        # 이전 실행이 안 끝났으면 겹치지 않게
        max_instances=1,
        coalesce=True,
    )

    _scheduler.start()

    logger.info("=" * 60)
    logger.info("HostDirect Scheduler 시작됨")
    logger.info(f"  [Job] iCal Sync: {interval_minutes}분 간격")
    logger.info(f"        다음 실행: {_scheduler.get_job(ICAL_SYNC_JOB_ID).next_run_time}")
    logger.info("=" * 60)


def shutdown_scheduler():
    """스케줄러 종료"""
    global _scheduler

    if _scheduler is None:
        return

    _scheduler.shutdown(wait=False)
    _scheduler = None
    logger.info("HostDirect Scheduler 종료됨")


def get_scheduler() -> Optional[AsyncIOScheduler]:
    """현재 스케줄러 인스턴스 반환"""
    return _scheduler


async def run_job_now() -> dict:
    """
    수동으로 Job 즉시 실행 (테스트용)
    """
    logger.info("Job 수동 실행 요청됨")
    return await ical_sync_job()
