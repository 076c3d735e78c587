"""
Access Scope

호출자 권한을 명시적으로 전달하기 위한 값 객체.
- host scope: 본인 소유 숙소만 접근
- system scope: 스케줄러 / cron / 공개 export 피드
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AccessScope:
    host_id: Optional[int] = None
    is_system: bool = False

    @classmethod
    def host(cls, host_id: int) -> "AccessScope":
        return cls(host_id=host_id, is_system=False)

    @classmethod
    def system(cls) -> "AccessScope":
        return cls(host_id=None, is_system=True)

    def can_access(self, owner_host_id: int) -> bool:
        if self.is_system:
            return True
        return self.host_id is not None and self.host_id == owner_host_id

    def describe(self) -> str:
        return "system" if self.is_system else f"host:{self.host_id}"
