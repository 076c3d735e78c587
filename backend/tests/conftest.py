import os

# app 모듈 import 전에 테스트용 환경 설정
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["CRON_API_KEY"] = "test-cron-key"
os.environ["PUBLIC_BASE_URL"] = "https://calendar.example.com"

from datetime import date  # noqa: E402

import pytest  # noqa: E402

import app.domain.models  # noqa: E402,F401
from app.db.base import Base  # noqa: E402
from app.db.session import SessionLocal, engine  # noqa: E402
from app.domain.errors import FetchError  # noqa: E402
from app.domain.models.property import Property  # noqa: E402

HOST_ID = 1
OTHER_HOST_ID = 2


def vevent(uid, start, end, summary="Reserved", extra=()):
    """all-day VEVENT 라인 목록"""
    lines = []
    if uid is not None:
        lines.append(f"UID:{uid}")
    lines.append(f"DTSTART;VALUE=DATE:{start:%Y%m%d}")
    if end is not None:
        lines.append(f"DTEND;VALUE=DATE:{end:%Y%m%d}")
    if summary is not None:
        lines.append(f"SUMMARY:{summary}")
    lines.extend(extra)
    return lines


def build_feed(*events) -> str:
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//Test//Feed//EN"]
    for event_lines in events:
        lines.append("BEGIN:VEVENT")
        lines.extend(event_lines)
        lines.append("END:VEVENT")
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


class FakeFetcher:
    """URL → 피드 텍스트 (또는 예외) 매핑. 호출된 URL 을 기록한다."""

    def __init__(self, feeds=None):
        self.feeds = dict(feeds or {})
        self.calls = []

    async def __call__(self, url: str) -> str:
        self.calls.append(url)
        value = self.feeds.get(url)
        if value is None:
            raise FetchError("Calendar feed returned HTTP 404", url=url, status_code=404, transient=False)
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def prop(db):
    p = Property(host_id=HOST_ID, name="Sea View")
    db.add(p)
    db.commit()
    return p


@pytest.fixture
def other_prop(db):
    p = Property(host_id=OTHER_HOST_ID, name="Mountain Cabin")
    db.add(p)
    db.commit()
    return p


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def abc_feed():
    return build_feed(
        vevent("A", date(2025, 3, 1), date(2025, 3, 3), "Guest A"),
        vevent("B", date(2025, 3, 10), date(2025, 3, 12), "Guest B"),
        vevent("C", date(2025, 3, 20), date(2025, 3, 23), "Guest C"),
    )
