"""
달력 동기화 에러

동기화 / export 에서 나는 에러는 모두 CalendarSyncError 를 상속한다.
배치 실행기와 API 레이어는 CalendarSyncError 하나로 잡는다.
"""
from __future__ import annotations

from typing import Optional


class CalendarSyncError(Exception):
    """달력 동기화 / export 에러 공통 부모"""


class FetchError(CalendarSyncError):
    """
    원격 피드를 가져오지 못함

    transient=True: timeout, 연결 실패, 429, 5xx (다음 주기에 재시도 대상)
    그 외 4xx 는 영구 실패
    """

    def __init__(
        self,
        message: str,
        *,
        url: str,
        status_code: Optional[int] = None,
        transient: bool = True,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.transient = transient


class ParseError(CalendarSyncError):
    """iCalendar 문서가 아님"""


class ConflictError(CalendarSyncError):
    """upsert 로 해결되지 않는 unique 충돌"""


class NotFoundError(CalendarSyncError):
    """숙소 / connection / 이벤트 / 예약이 없거나 호출자 소유가 아님"""


class ValidationError(CalendarSyncError):
    """잘못된 입력 (예: 종료일이 시작일보다 빠름)"""


class StorageError(CalendarSyncError):
    """DB 반영 실패 (rollback 완료)"""
