from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

T = TypeVar("T")

Cursor = Union[str, int]

PERSONAL_SCOPE_NAME = "personal"


@dataclass(frozen=True)
class Scope:
    """An ownership boundary projects are listed under: the account or a team."""

    id: Optional[str]
    name: str
    personal: bool = False

    @classmethod
    def personal_scope(cls) -> "Scope":
        return cls(id=None, name=PERSONAL_SCOPE_NAME, personal=True)

    @classmethod
    def from_team(cls, payload: Dict[str, Any]) -> "Scope":
        team_id = payload.get("id")
        name = payload.get("slug") or payload.get("name") or team_id or "unknown-team"
        return cls(id=team_id, name=str(name))

    @property
    def team_id(self) -> Optional[str]:
        return None if self.personal else self.id


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    account_id: Optional[str] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Project":
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name") or payload["id"]),
            account_id=payload.get("accountId"),
            created_at=payload.get("createdAt"),
            updated_at=payload.get("updatedAt"),
            raw=payload,
        )


@dataclass(frozen=True)
class EnvironmentVariable:
    id: Optional[str]
    key: str
    value: Optional[str] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "EnvironmentVariable":
        return cls(
            id=payload.get("id"),
            key=str(payload.get("key", "")),
            value=payload.get("value"),
            created_at=payload.get("createdAt"),
            updated_at=payload.get("updatedAt"),
            raw=payload,
        )


@dataclass
class Page(Generic[T]):
    """One batch of a cursor-paginated listing; ``next_cursor`` is None on the last page."""

    items: List[T]
    next_cursor: Optional[Cursor] = None
