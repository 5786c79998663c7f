from __future__ import annotations

import logging
from typing import Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]


class ChangeFeed(Generic[T]):
    """Listeners registered on one repository, called with the full collection after each write."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        if listener in self._listeners:
            raise ValueError(f"Listener already subscribed to '{self.name}'")
        self._listeners.append(listener)
        logger.debug("Subscribed listener to '%s'", self.name)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, payload: T) -> None:
        for listener in list(self._listeners):
            try:
                listener(payload)
            except Exception:
                # a failing listener never fails the write that triggered it
                logger.exception("Listener on '%s' failed", self.name)

    def __len__(self) -> int:
        return len(self._listeners)
