"""
iCal Feed Adapter

원격 iCal URL 에서 달력 텍스트 가져오기
- webcal:// 은 https:// 로 취급
- 타임아웃 필수 (원격 호스트는 신뢰할 수 없음)
- 재시도는 하지 않음 (스케줄러 몫)
"""
import logging
from typing import Optional

import httpx

from app.core.config import settings
from app.domain.errors import FetchError

logger = logging.getLogger(__name__)

_USER_AGENT = "HostDirect-CalendarSync/1.0"


def normalize_feed_url(url: str) -> str:
    """webcal:// → https:// (나머지는 그대로)"""
    stripped = url.strip()
    if stripped.lower().startswith("webcal://"):
        return "https://" + stripped[len("webcal://"):]
    return stripped


def _is_transient_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


async def fetch_ical_feed(
    url: str,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """
    iCal URL 에서 데이터 fetch

    Args:
        url: iCal URL (webcal:// 허용)
        timeout: 요청 타임아웃 (초) - 기본 ICAL_FETCH_TIMEOUT_SECONDS
        transport: 테스트용 httpx transport

    Returns:
        iCal 데이터 문자열

    Raises:
        FetchError: 네트워크 오류, 타임아웃, 2xx 가 아닌 응답
    """
    target = normalize_feed_url(url)
    if timeout is None:
        timeout = settings.ICAL_FETCH_TIMEOUT_SECONDS

    try:
        async with httpx.AsyncClient(
            transport=transport,
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": _USER_AGENT},
        ) as client:
            response = await client.get(target)
            response.raise_for_status()
            return response.text
    except httpx.TimeoutException as e:
        logger.error(f"ICAL_FEED: Timeout fetching iCal: {target}")
        raise FetchError(
            f"Timed out fetching calendar feed after {timeout}s",
            url=target,
            transient=True,
        ) from e
    except httpx.HTTPStatusError as e:
        status_code = e.response.status_code
        transient = _is_transient_status(status_code)
        logger.error(
            f"ICAL_FEED: Feed returned HTTP {status_code}: {target} "
            f"(transient={transient})"
        )
        raise FetchError(
            f"Calendar feed returned HTTP {status_code}",
            url=target,
            status_code=status_code,
            transient=transient,
        ) from e
    except httpx.InvalidURL as e:
        logger.error(f"ICAL_FEED: Invalid iCal URL: {target}, error: {e}")
        raise FetchError(
            f"Invalid calendar URL: {e}",
            url=target,
            transient=False,
        ) from e
    except httpx.UnsupportedProtocol as e:
        logger.error(f"ICAL_FEED: Unsupported URL scheme: {target}")
        raise FetchError(
            f"Unsupported calendar URL scheme: {e}",
            url=target,
            transient=False,
        ) from e
    except httpx.HTTPError as e:
        logger.error(f"ICAL_FEED: Failed to fetch iCal: {target}, error: {e}")
        raise FetchError(
            f"Could not reach calendar URL: {e}",
            url=target,
            transient=True,
        ) from e
