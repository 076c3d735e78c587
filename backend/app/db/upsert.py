# backend/app/db/upsert.py
"""
Dialect 별 INSERT ... ON CONFLICT 생성

운영은 PostgreSQL, 테스트는 SQLite 를 쓰므로 세션 bind 의 dialect 에 맞는
insert 구문을 돌려준다. 둘 다 on_conflict_do_update / excluded 를 지원한다.
"""
from __future__ import annotations

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


def dialect_insert(session: Session, model):
    dialect_name = session.get_bind().dialect.name
    if dialect_name == "postgresql":
        return postgresql.insert(model)
    if dialect_name == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"upsert not supported for dialect: {dialect_name}")
