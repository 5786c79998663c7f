import logging

from server.data_access.message_repository import MessageRepository
from server.data_access.thesis_repository import ThesisRepository
from storage.sqlite.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class StorageService:
    """Usage reporting and the two destructive clean-up operations."""

    def __init__(self, store: KeyValueStore, theses: ThesisRepository, messages: MessageRepository) -> None:
        self._store = store
        self._theses = theses
        self._messages = messages

    def get_storage_usage_bytes(self) -> int:
        return self._store.usage_bytes()

    def capacity_bytes(self) -> int:
        return self._store.capacity_bytes

    def clear_app_data(self) -> None:
        """Remove this application's collections, then make every subscriber reload."""
        self._store.clear_namespace()
        logger.info("Cleared application data under namespace '%s'", self._store.namespace)
        self._reload()

    def reset_all_storage(self) -> None:
        """Remove every stored entry, including other namespaces. Irreversible; no confirmation here."""
        self._store.clear_all()
        logger.warning("Reset all key/value storage")
        self._reload()

    def _reload(self) -> None:
        self._theses.notify_reload()
        self._messages.notify_reload()
