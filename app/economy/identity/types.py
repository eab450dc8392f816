from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class CallerIdentity:
    external_id: str | None
    email: str | None

    def normalized(self) -> CallerIdentity:
        external_id = (self.external_id or "").strip() or None
        email = (self.email or "").strip().lower() or None
        return CallerIdentity(external_id=external_id, email=email)

    @property
    def is_empty(self) -> bool:
        return self.external_id is None and self.email is None


@dataclass(frozen=True, slots=True)
class ResolvedAccount:
    account_id: UUID
    created: bool
