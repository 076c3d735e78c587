from __future__ import annotations

import argparse
import asyncio

from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.domain.access import AccessScope
from app.services.ical_service import ConnectionSyncOutcome, IcalService


def _print_outcomes(outcomes: list[ConnectionSyncOutcome]) -> None:
    for o in outcomes:
        label = f"property={o.property_id} source={o.source}"
        if not o.success:
            print(f"  ✗ {label} → {o.error_type}: {o.error}")
        elif o.result.skipped:
            print(f"  - {label} → SKIP (다른 동기화 진행 중)")
        else:
            print(
                f"  ✓ {label} → added={o.result.added} "
                f"updated={o.result.updated} removed={o.result.removed}"
            )


async def run_sync(*, property_id: int | None) -> None:
    db: Session = SessionLocal()
    try:
        print(
            "\n=== HostDirect iCal 동기화 시작 ===\n"
            f"- property_id : {property_id if property_id is not None else '(전체)'}\n"
        )

        service = IcalService(db)
        if property_id is None:
            outcomes = await service.sync_all()
        else:
            outcomes = await service.sync_property(AccessScope.system(), property_id)

        _print_outcomes(outcomes)

        failed = sum(1 for o in outcomes if not o.success)
        print(f"\n총 {len(outcomes)}개 connection, 실패 {failed}개")
        print("=== HostDirect iCal 동기화 종료 ===\n")

    finally:
        db.close()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="외부 iCal 피드를 가져와 달력 이벤트 / 차단 날짜를 동기화하는 스크립트",
    )
    parser.add_argument(
        "--property-id",
        type=int,
        default=None,
        help="특정 숙소만 동기화 (기본: 전체 connection)",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    asyncio.run(run_sync(property_id=args.property_id))


if __name__ == "__main__":
    main()
