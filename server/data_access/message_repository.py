from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from server.errors import StorageExhausted, ValidationError
from server.models.message import Message
from server.models.thesis import new_id
from storage.sqlite.kv_store import KeyValueStore, QuotaExceededError

from .change_feed import ChangeFeed

logger = logging.getLogger(__name__)

MESSAGES_KEY = "messages"


class MessageRepository:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._feed: ChangeFeed[List[Message]] = ChangeFeed("messages-changed")

    def subscribe(self, listener: Callable[[List[Message]], None]) -> Callable[[], None]:
        return self._feed.subscribe(listener)

    def load_messages(self) -> List[Message]:
        try:
            raw = self._store.get_item(MESSAGES_KEY)
        except sqlite3.Error as exc:
            logger.warning("Reading stored messages failed: %s", exc)
            return []
        if raw is None:
            return []
        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise TypeError(f"expected a list, found {type(data).__name__}")
            return [Message.from_dict(item) for item in data]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Discarding unreadable stored messages: %s", exc)
            return []

    def save_messages(self, messages: Iterable[Message]) -> None:
        messages = list(messages)
        payload = json.dumps([message.to_dict() for message in messages], ensure_ascii=False)
        try:
            self._store.set_item(MESSAGES_KEY, payload)
        except QuotaExceededError as exc:
            raise StorageExhausted(
                "Storage is full; the message was not saved. Clear application data or archive old manuscripts.",
                details={"required_bytes": exc.required_bytes, "capacity_bytes": exc.capacity_bytes},
            ) from exc
        self._feed.publish(list(messages))

    def send_message(self, sender_id: str, receiver_id: str, text: str, now: Optional[datetime] = None) -> Message:
        if not text or not text.strip():
            raise ValidationError("Message text is required")
        if not receiver_id or receiver_id == sender_id:
            raise ValidationError("Choose another participant to message")
        moment = now or datetime.now(timezone.utc)
        message = Message(
            id=new_id("msg"),
            sender_id=sender_id,
            receiver_id=receiver_id,
            text=text.strip(),
            timestamp=moment.isoformat(),
        )
        self.save_messages(self.load_messages() + [message])
        return message

    def list_conversation(self, user_a: str, user_b: str) -> List[Message]:
        pair = frozenset((user_a, user_b))
        thread = [message for message in self.load_messages() if message.participants() == pair]
        # stable sort keeps insertion order for equal timestamps
        return sorted(thread, key=lambda message: message.timestamp)

    def mark_conversation_read(self, reader_id: str, other_id: str) -> int:
        changed = 0
        updated: List[Message] = []
        for message in self.load_messages():
            if message.receiver_id == reader_id and message.sender_id == other_id and not message.read:
                message = replace(message, read=True)
                changed += 1
            updated.append(message)
        if changed:
            self.save_messages(updated)
        return changed

    def unread_count(self, user_id: str) -> int:
        return sum(1 for message in self.load_messages() if message.receiver_id == user_id and not message.read)

    def notify_reload(self) -> None:
        self._feed.publish(self.load_messages())
