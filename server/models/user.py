from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class Role(str, Enum):
    STUDENT = "STUDENT"
    REVIEWER = "REVIEWER"
    ADMIN = "ADMIN"
    GUEST = "GUEST"


@dataclass(frozen=True)
class Actor:
    """The identity a transition is performed as, resolved outside the lifecycle rules."""

    id: str
    name: str
    role: Role
    email: Optional[str] = None
    avatar: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role.value,
            "email": self.email,
            "avatar": self.avatar,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Actor":
        return cls(
            id=str(row["id"]),
            name=str(row["name"]),
            role=Role(row["role"]),
            email=row.get("email"),
            avatar=row.get("avatar"),
        )
