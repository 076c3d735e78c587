"""
iCal Service

외부 iCal 피드와 로컬 달력 이벤트 동기화
- fetch: URL 에서 iCal 데이터 가져오기
- parse: VEVENT → ParsedOccurrence
- reconcile: 저장된 이벤트와 diff (added / updated / removed) 후 적용
- project: 바뀐 이벤트의 차단 날짜 재생성
- sync_all: 모든 connection 동기화 (connection 별 실패 격리)
"""
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from app.adapters.ical_feed import fetch_ical_feed
from app.core.config import settings
from app.domain.access import AccessScope
from app.domain.errors import CalendarSyncError, ConflictError, NotFoundError, StorageError
from app.domain.models.calendar_connection import CalendarConnection, CalendarSource
from app.domain.models.calendar_event import CalendarEvent
from app.repositories.calendar_connection_repository import CalendarConnectionRepository
from app.repositories.calendar_event_repository import CalendarEventRepository
from app.repositories.property_repository import PropertyRepository
from app.services.availability_service import AvailabilityService
from app.services.connection_registry import ConnectionRegistry, parse_source, validate_feed_url
from app.services.ical_codec import ParsedOccurrence, parse_ical
from app.services.sync_notifier import LoggingSyncNotifier, SyncNotifier

logger = logging.getLogger(__name__)

FeedFetcher = Callable[[str], Awaitable[str]]


@dataclass
class SyncResult:
    """동기화 1회 결과"""
    added: int = 0
    updated: int = 0
    removed: int = 0
    skipped: bool = False

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class ConnectionSyncOutcome:
    """배치 동기화에서 connection 1개의 결과"""
    connection_id: int
    property_id: int
    source: str
    success: bool
    result: Optional[SyncResult] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    def as_dict(self) -> dict:
        data = asdict(self)
        data["result"] = self.result.as_dict() if self.result else None
        return data


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _occurrence_row(connection: CalendarConnection, occurrence: ParsedOccurrence) -> dict:
    return {
        "property_id": connection.property_id,
        "source": connection.source,
        "external_id": occurrence.uid,
        "summary": occurrence.summary,
        "start_date": occurrence.start_date,
        "end_date": occurrence.end_date,
    }


def _differs(event: CalendarEvent, row: dict) -> bool:
    return (
        event.summary != row["summary"]
        or event.start_date != row["start_date"]
        or event.end_date != row["end_date"]
    )


class IcalService:
    """
    iCal 동기화 서비스

    - import_connection: connection 생성/교체 + 즉시 1회 동기화
    - sync_connection: connection 1개 동기화 (중복 실행 방지)
    - sync_property: 숙소의 모든 connection 동기화
    - sync_all: 전체 connection 동기화 (스케줄러용)
    """

    def __init__(
        self,
        db: Session,
        fetcher: Optional[FeedFetcher] = None,
        notifier: Optional[SyncNotifier] = None,
        guard_seconds: Optional[int] = None,
    ):
        self.db = db
        self.fetcher = fetcher or fetch_ical_feed
        self.notifier = notifier or LoggingSyncNotifier()
        self.guard_seconds = (
            guard_seconds if guard_seconds is not None else settings.ICAL_SYNC_GUARD_SECONDS
        )
        self.properties = PropertyRepository(db)
        self.connections = CalendarConnectionRepository(db)
        self.events = CalendarEventRepository(db)
        self.registry = ConnectionRegistry(db)
        self.availability = AvailabilityService(db)

    # ------------------------------------------------------------------
    # fetch + parse
    # ------------------------------------------------------------------

    async def fetch_occurrences(self, url: str) -> list[ParsedOccurrence]:
        """
        피드 fetch + 파싱

        같은 UID 가 여러 번 나오면 (RECURRENCE-ID override 등) 첫 번째만 사용.

        Raises:
            FetchError, ParseError
        """
        ical_data = await self.fetcher(url)

        occurrences: list[ParsedOccurrence] = []
        seen: set[str] = set()
        for occurrence in parse_ical(ical_data):
            if occurrence.uid in seen:
                logger.warning(
                    f"ICAL_SYNC: Duplicate UID in feed, keeping first: uid={occurrence.uid}"
                )
                continue
            seen.add(occurrence.uid)
            occurrences.append(occurrence)
        return occurrences

    # ------------------------------------------------------------------
    # 동기화 진입점
    # ------------------------------------------------------------------

    async def import_connection(
        self,
        scope: AccessScope,
        property_id: int,
        source,
        ical_url: str,
    ) -> tuple[CalendarConnection, SyncResult]:
        """
        connection 생성/교체 + 1회 동기화

        피드를 먼저 가져와 파싱하므로, fetch / parse 가 실패하면
        기존 connection 상태는 전혀 바뀌지 않는다.
        """
        source = parse_source(source)
        self.properties.get_owned(scope, property_id)
        ical_url = validate_feed_url(ical_url)

        occurrences = await self.fetch_occurrences(ical_url)

        try:
            connection = self.registry.upsert_connection(scope, property_id, source, ical_url)
        except ConflictError:
            self.db.rollback()
            raise
        result = self.reconcile(connection, occurrences)

        logger.info(
            f"ICAL_SYNC: Imported property={property_id} source={source.value} "
            f"added={result.added} updated={result.updated} removed={result.removed}"
        )
        return connection, result

    async def sync_connection(self, connection: CalendarConnection) -> SyncResult:
        """
        connection 1개 동기화

        다른 동기화가 guard_seconds 안에 시작됐으면 skipped 결과를 반환.
        """
        if not self._claim(connection):
            logger.info(
                f"ICAL_SYNC: Sync already in progress, skipped: "
                f"property={connection.property_id} source={connection.source}"
            )
            return SyncResult(skipped=True)

        try:
            occurrences = await self.fetch_occurrences(connection.ical_url)
            return self.reconcile(connection, occurrences)
        finally:
            self._release(connection)

    async def sync_property(
        self,
        scope: AccessScope,
        property_id: int,
    ) -> list[ConnectionSyncOutcome]:
        """숙소의 모든 connection 동기화 (connection 별 실패 격리)"""
        self.properties.get_owned(scope, property_id)
        connections = self.connections.list_for_property(property_id)
        if not connections:
            raise NotFoundError(f"No calendar connections found for property: {property_id}")

        return [await self._sync_isolated(c) for c in connections]

    async def sync_all(self) -> list[ConnectionSyncOutcome]:
        """
        모든 connection 동기화

        Returns:
            connection 별 결과 리스트
        """
        connections = self.connections.list_all()
        logger.info(f"ICAL_SYNC: Syncing {len(connections)} calendar connections")

        outcomes = [await self._sync_isolated(c) for c in connections]

        failed = sum(1 for o in outcomes if not o.success)
        logger.info(
            f"ICAL_SYNC: Sync all finished: total={len(outcomes)} failed={failed}"
        )
        return outcomes

    async def _sync_isolated(self, connection: CalendarConnection) -> ConnectionSyncOutcome:
        outcome = ConnectionSyncOutcome(
            connection_id=connection.id,
            property_id=connection.property_id,
            source=connection.source,
            success=False,
        )
        try:
            outcome.result = await self.sync_connection(connection)
            outcome.success = True
        except CalendarSyncError as e:
            self.db.rollback()
            outcome.error = str(e)
            outcome.error_type = type(e).__name__
            logger.error(
                f"ICAL_SYNC: Sync failed property={connection.property_id} "
                f"source={connection.source}: {type(e).__name__}: {e}"
            )
        except Exception as e:
            # 다른 connection 동기화는 계속 진행
            self.db.rollback()
            outcome.error = str(e)
            outcome.error_type = type(e).__name__
            logger.exception(
                f"ICAL_SYNC: Unexpected error syncing property={connection.property_id} "
                f"source={connection.source}"
            )
        return outcome

    # ------------------------------------------------------------------
    # reconcile
    # ------------------------------------------------------------------

    def reconcile(
        self,
        connection: CalendarConnection,
        occurrences: list[ParsedOccurrence],
    ) -> SyncResult:
        """
        파싱된 이벤트를 저장된 이벤트와 diff 후 적용

        1~6 단계 (diff + upsert + 삭제) 는 한 트랜잭션. 실패하면 rollback 되고
        connection 의 last_synced_at 도 그대로다.
        7 (projection), 9 (last_synced_at) 는 각각 커밋되는 best-effort 단계.
        """
        source = parse_source(connection.source)
        property_id = connection.property_id
        result = SyncResult()

        try:
            stored = self.events.list_imported(property_id, source)
            lookup = {event.external_id: event for event in stored}

            staged: list[dict] = []
            seen: set[str] = set()
            for occurrence in occurrences:
                seen.add(occurrence.uid)
                row = _occurrence_row(connection, occurrence)
                existing = lookup.get(occurrence.uid)
                if existing is None:
                    staged.append(row)
                    result.added += 1
                elif _differs(existing, row):
                    staged.append(row)
                    result.updated += 1

            removals = [event for uid, event in lookup.items() if uid not in seen]
            removal_ids = [event.id for event in removals]
            result.removed = len(removals)

            self.events.upsert_imported(staged)
            # 삭제되는 이벤트의 차단 날짜를 먼저 지우고 이벤트 삭제
            self.availability.release_events(removal_ids)
            self.events.delete_by_ids(removal_ids)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.error(
                f"ICAL_SYNC: Upsert conflict property={property_id} source={source.value}: {e.orig}"
            )
            raise ConflictError(
                f"Calendar event upsert conflict for property={property_id} source={source.value}"
            ) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(
                f"ICAL_SYNC: Failed to apply changes property={property_id} source={source.value}"
            )
            raise StorageError(
                f"Failed to store calendar events for property={property_id} source={source.value}"
            ) from e

        for removed in removals:
            logger.debug(
                f"ICAL_SYNC: Removed event id={removed.id} uid={removed.external_id} "
                f"property={property_id}"
            )

        self._project_changed(property_id, source, [row["external_id"] for row in staged])
        self._mark_synced(connection)
        self._notify(connection, result)

        logger.info(
            f"ICAL_SYNC: Synced property={property_id} source={source.value} "
            f"added={result.added} updated={result.updated} removed={result.removed}"
        )
        return result

    def reproject_events(
        self,
        scope: AccessScope,
        property_id: int,
        source=None,
    ) -> int:
        """
        숙소 이벤트 전체 projection 다시 생성

        다른 출처가 덮어쓴 날짜를 복구할 때 사용.
        """
        self.properties.get_owned(scope, property_id)
        source = parse_source(source) if source is not None else None
        events = self.events.list_for_property(property_id, source)

        for event in events:
            self.availability.project_event(event)
        self.db.commit()

        logger.info(
            f"ICAL_SYNC: Re-projected {len(events)} events property={property_id} "
            f"source={source.value if source else 'all'}"
        )
        return len(events)

    # ------------------------------------------------------------------
    # 내부 단계
    # ------------------------------------------------------------------

    def _project_changed(
        self,
        property_id: int,
        source: CalendarSource,
        external_ids: list[str],
    ) -> None:
        if not external_ids:
            return

        changed = self.events.list_by_external_ids(property_id, source, external_ids)
        for event in changed:
            try:
                self.availability.project_event(event)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(
                    f"ICAL_SYNC: Projection failed property={property_id} "
                    f"source={source.value} uid={event.external_id}: {e}"
                )

    def _mark_synced(self, connection: CalendarConnection) -> None:
        try:
            connection.last_synced_at = _utcnow()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"ICAL_SYNC: Failed to record last_synced_at "
                f"property={connection.property_id} source={connection.source}: {e}"
            )

    def _notify(self, connection: CalendarConnection, result: SyncResult) -> None:
        payload = {
            "connection_id": connection.id,
            "property_id": connection.property_id,
            "source": connection.source,
            **result.as_dict(),
        }
        try:
            self.notifier.sync_completed(payload)
        except Exception as e:
            logger.warning(f"ICAL_SYNC: Notifier failed: {e}")

    def _claim(self, connection: CalendarConnection) -> bool:
        """
        sync_started_at 조건부 갱신으로 동기화 점유

        guard_seconds 안에 시작된 동기화가 있으면 False.
        """
        now = _utcnow()
        cutoff = now - timedelta(seconds=self.guard_seconds)
        stmt = (
            update(CalendarConnection)
            .where(
                CalendarConnection.id == connection.id,
                or_(
                    CalendarConnection.sync_started_at.is_(None),
                    CalendarConnection.sync_started_at < cutoff,
                ),
            )
            .values(sync_started_at=now)
            .execution_options(synchronize_session=False)
        )
        claimed = self.db.execute(stmt).rowcount == 1
        self.db.commit()
        if claimed:
            # 이미 DB 에 반영된 값이므로 dirty 로 남기지 않음
            set_committed_value(connection, "sync_started_at", now)
        return claimed

    def _release(self, connection: CalendarConnection) -> None:
        try:
            self.db.execute(
                update(CalendarConnection)
                .where(CalendarConnection.id == connection.id)
                .values(sync_started_at=None)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
            set_committed_value(connection, "sync_started_at", None)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"ICAL_SYNC: Failed to release sync marker "
                f"property={connection.property_id} source={connection.source}: {e}"
            )
