"""
iCal Codec

iCal 텍스트 <-> 메모리 이벤트 변환
- parse_ical: 피드 텍스트 → ParsedOccurrence (lazy)
- new_calendar / add_vevent / serialize_calendar: export 용 문서 생성

지원 범위:
- 단순 all-day / timed VEVENT (UID, SUMMARY, DTSTART, DTEND, DURATION)
- RRULE 은 확장하지 않고 첫 occurrence 만 사용
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, Optional, Union

from icalendar import Calendar, Event

from app.domain.errors import ParseError

logger = logging.getLogger(__name__)

DateOrDateTime = Union[date, datetime]

# UID 가 없는 이벤트용 namespace (같은 내용이면 항상 같은 id)
_GENERATED_UID_NAMESPACE = uuid.UUID("6f1c3c1e-4a57-4bd4-9a0e-2d8a6a3f5b21")

# calendar_events.summary / external_id 컬럼 길이
_MAX_SUMMARY_LENGTH = 255
_MAX_UID_LENGTH = 255


@dataclass(frozen=True)
class ParsedOccurrence:
    """파싱된 VEVENT 1건"""
    uid: str
    summary: Optional[str]
    start: DateOrDateTime
    end: DateOrDateTime
    all_day: bool
    recurring: bool = False
    generated_uid: bool = False

    @property
    def start_date(self) -> date:
        if self.all_day:
            return self.start
        return self.start.date()

    @property
    def end_date(self) -> date:
        """
        exclusive 종료일

        timed 이벤트는 걸쳐 있는 날을 모두 포함한다.
        자정에 끝나면 그 날은 포함하지 않는다.
        """
        if self.all_day:
            return self.end
        if self.end <= self.start:
            return self.start.date()
        end_day = self.end.date()
        if self.end.time() != time(0, 0):
            end_day += timedelta(days=1)
        return end_day


# ========== Parsing ==========

def parse_ical(ical_data: Union[str, bytes]) -> Iterator[ParsedOccurrence]:
    """
    iCal 데이터 파싱

    문서 자체는 즉시 파싱하고 (실패 시 ParseError), VEVENT 는 lazy 하게 yield.
    깨진 VEVENT 는 경고 로그 후 건너뛴다.

    Raises:
        ParseError: 문서 전체가 iCal 이 아닐 때
    """
    if isinstance(ical_data, bytes):
        try:
            ical_data = ical_data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"Calendar feed is not valid UTF-8: {e}") from e

    if not ical_data or not ical_data.strip():
        raise ParseError("Calendar feed is empty")

    try:
        cal = Calendar.from_ical(ical_data)
    except (ValueError, IndexError, KeyError, TypeError) as e:
        logger.error(f"ICAL_PARSER: Failed to parse iCal document: {e}")
        raise ParseError(f"Calendar format not recognized: {e}") from e

    if getattr(cal, "name", None) != "VCALENDAR":
        raise ParseError(f"Expected VCALENDAR, got {getattr(cal, 'name', None)!r}")

    return _iter_occurrences(cal)


def _iter_occurrences(cal: Calendar) -> Iterator[ParsedOccurrence]:
    for index, component in enumerate(cal.walk("VEVENT")):
        try:
            occurrence = _to_occurrence(component)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(
                f"ICAL_PARSER: Skipping malformed VEVENT #{index} "
                f"uid={component.get('UID')}: {e}"
            )
            continue
        if occurrence is None:
            continue
        yield occurrence


def _to_occurrence(component) -> Optional[ParsedOccurrence]:
    raw_uid = str(component.get("UID", "")).strip()
    summary = str(component.get("SUMMARY", "")).strip()[:_MAX_SUMMARY_LENGTH] or None

    dtstart = component.get("DTSTART")
    if dtstart is None:
        logger.warning(f"ICAL_PARSER: VEVENT without DTSTART skipped: uid={raw_uid or '-'}")
        return None

    start = dtstart.dt
    all_day = _is_date_only(start)
    if not all_day:
        start = _to_utc(start)

    end = _resolve_end(component, start, all_day)

    if end < start:
        logger.warning(
            f"ICAL_PARSER: VEVENT ends before it starts, skipped: "
            f"uid={raw_uid or '-'} {start} ~ {end}"
        )
        return None

    recurring = "RRULE" in component
    if recurring:
        logger.info(
            f"ICAL_PARSER: Recurring VEVENT imported as first occurrence only: "
            f"uid={raw_uid or '-'}"
        )

    generated = not raw_uid
    if generated:
        uid = _generate_uid(start, end, summary)
    elif len(raw_uid) > _MAX_UID_LENGTH:
        uid = _shorten_uid(raw_uid)
        logger.warning(
            f"ICAL_PARSER: UID longer than {_MAX_UID_LENGTH} chars replaced: "
            f"{raw_uid[:40]}... -> {uid}"
        )
    else:
        uid = raw_uid

    return ParsedOccurrence(
        uid=uid,
        summary=summary,
        start=start,
        end=end,
        all_day=all_day,
        recurring=recurring,
        generated_uid=generated,
    )


def _resolve_end(component, start: DateOrDateTime, all_day: bool) -> DateOrDateTime:
    """DTEND → DTSTART + DURATION → 기본값 (all-day 1일 / timed 0)"""
    dtend = component.get("DTEND")
    if dtend is not None:
        end = dtend.dt
        if all_day:
            return _to_date(end)
        if _is_date_only(end):
            return datetime.combine(end, time(0, 0), tzinfo=timezone.utc)
        return _to_utc(end)

    duration = component.get("DURATION")
    if duration is not None and isinstance(duration.dt, timedelta):
        return start + duration.dt

    if all_day:
        return start + timedelta(days=1)
    return start


def _is_date_only(value) -> bool:
    if isinstance(value, datetime):
        return False
    if isinstance(value, date):
        return True
    raise TypeError(f"Unsupported DTSTART value type: {type(value).__name__}")


def _to_date(value) -> date:
    if isinstance(value, datetime):
        return _to_utc(value).date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Unsupported date value type: {type(value).__name__}")


def _to_utc(value: datetime) -> datetime:
    # floating time 은 UTC 로 간주
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _generate_uid(start: DateOrDateTime, end: DateOrDateTime, summary: Optional[str]) -> str:
    key = f"{start.isoformat()}|{end.isoformat()}|{summary or ''}"
    return f"generated-{uuid.uuid5(_GENERATED_UID_NAMESPACE, key)}"


def _shorten_uid(raw_uid: str) -> str:
    """컬럼보다 긴 UID → 같은 UID 면 항상 같은 짧은 id"""
    return f"generated-{uuid.uuid5(_GENERATED_UID_NAMESPACE, raw_uid)}"


# ========== Generation ==========

def format_ical_datetime(value: DateOrDateTime) -> str:
    """date / datetime → YYYYMMDDTHHMMSSZ (date 는 UTC 자정)"""
    return as_utc_datetime(value).strftime("%Y%m%dT%H%M%SZ")


def as_utc_datetime(value: DateOrDateTime) -> datetime:
    if isinstance(value, datetime):
        return _to_utc(value)
    return datetime.combine(value, time(0, 0), tzinfo=timezone.utc)


def new_calendar(name: str, prodid: str) -> Calendar:
    cal = Calendar()
    cal.add("prodid", prodid)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("x-wr-calname", f"{name} Calendar")
    return cal


def add_vevent(
    cal: Calendar,
    *,
    uid: str,
    summary: str,
    start: DateOrDateTime,
    end: DateOrDateTime,
    stamp: Optional[datetime] = None,
    description: Optional[str] = None,
) -> Event:
    """
    VEVENT 추가

    start / end 는 UTC date-time 으로 기록 (DTSTART:20250401T000000Z).
    stamp 는 DTSTAMP / CREATED 로 쓰여서 같은 데이터면 같은 출력이 나온다.
    """
    event = Event()
    event.add("uid", uid)
    event.add("summary", summary)
    event.add("dtstart", as_utc_datetime(start))
    event.add("dtend", as_utc_datetime(end))
    if stamp is not None:
        stamp_utc = as_utc_datetime(stamp)
        event.add("dtstamp", stamp_utc)
        event.add("created", stamp_utc)
    if description:
        event.add("description", description)
    event.add("status", "CONFIRMED")
    cal.add_component(event)
    return event


def serialize_calendar(cal: Calendar) -> str:
    """CRLF 줄바꿈 iCal 텍스트"""
    return cal.to_ical().decode("utf-8")
