# backend/app/db/session.py

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.db.base import Base


def _build_engine(url: str):
    if url.startswith("sqlite"):
        from sqlalchemy.pool import StaticPool

        engine = create_engine(
            url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        enable_sqlite_foreign_keys(engine)
        return engine
    return create_engine(url, future=True)


def enable_sqlite_foreign_keys(engine) -> None:
    """SQLite 는 기본적으로 FK 를 검사하지 않으므로 연결마다 켜준다."""

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = _build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine,
)


def init_db() -> None:
    """
    애플리케이션 시작 시 한 번 호출해서 테이블 생성.
    모든 도메인 모델을 메타데이터에 등록한 뒤 create_all 을 수행한다.
    """
    # ✅ 모든 도메인 모델을 한 번에 import
    import app.domain.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
