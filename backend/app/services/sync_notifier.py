"""
Sync Notifier

동기화 커밋 이후 호출되는 알림 훅 (plain dict payload)
- 기본 구현은 로그만 남김
- 이메일 / 푸시 등은 같은 인터페이스로 붙이면 됨
"""
from __future__ import annotations

import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class SyncNotifier(Protocol):
    def sync_completed(self, payload: dict[str, Any]) -> None:
        ...


class LoggingSyncNotifier:
    def sync_completed(self, payload: dict[str, Any]) -> None:
        logger.info(
            f"ICAL_NOTIFY: property={payload.get('property_id')} "
            f"source={payload.get('source')} "
            f"added={payload.get('added')} updated={payload.get('updated')} "
            f"removed={payload.get('removed')}"
        )
