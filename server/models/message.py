from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Mapping


@dataclass(frozen=True)
class Message:
    id: str
    sender_id: str
    receiver_id: str
    text: str
    timestamp: str
    read: bool = False

    def participants(self) -> FrozenSet[str]:
        return frozenset((self.sender_id, self.receiver_id))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "senderId": self.sender_id,
            "receiverId": self.receiver_id,
            "text": self.text,
            "timestamp": self.timestamp,
            "read": self.read,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Message":
        return cls(
            id=str(data["id"]),
            sender_id=str(data["senderId"]),
            receiver_id=str(data["receiverId"]),
            text=str(data.get("text", "")),
            timestamp=str(data.get("timestamp", "")),
            read=bool(data.get("read", False)),
        )
