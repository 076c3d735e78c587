from __future__ import annotations

import argparse

from app.db.base import Base
from app.db.session import engine, init_db


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="HostDirect 달력 테이블 (properties, bookings, calendar_*, unavailable_dates) 생성",
    )
    parser.add_argument(
        "--drop",
        action="store_true",
        help="생성 전에 기존 테이블을 모두 삭제 (로컬 개발용)",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()

    if args.drop:
        import app.domain.models  # noqa: F401

        Base.metadata.drop_all(bind=engine)
        print("🗑  기존 테이블 삭제 완료")

    init_db()
    tables = ", ".join(sorted(Base.metadata.tables))
    print(f"✅ DB 초기화 완료: {tables}")


if __name__ == "__main__":
    main()
