import pytest

from server.data_access.message_repository import MessageRepository
from server.data_access.thesis_repository import ThesisRepository
from server.errors import RevisionConflict
from server.services.storage_service import StorageService
from storage.sqlite.kv_store import KeyValueStore


def _service(store):
    theses = ThesisRepository(store)
    messages = MessageRepository(store)
    return StorageService(store, theses, messages), theses, messages


def test_usage_tracks_writes(store):
    service, theses, _ = _service(store)
    assert service.get_storage_usage_bytes() == 0

    theses.load_theses()

    assert service.get_storage_usage_bytes() > 0
    assert service.capacity_bytes() == store.capacity_bytes


def test_clear_app_data_notifies_subscribers(temp_db):
    store = KeyValueStore(namespace="vault")
    neighbour = KeyValueStore(namespace="neighbour")
    neighbour.set_item("prefs", "dark")
    service, theses, messages = _service(store)
    messages.send_message("s1", "r1", "Hello")
    reloaded = []
    theses.subscribe(lambda records: reloaded.append(("theses", [r.id for r in records])))
    messages.subscribe(lambda items: reloaded.append(("messages", items)))

    service.clear_app_data()

    assert ("theses", ["p1", "mt1", "mt4"]) in reloaded
    assert ("messages", []) in reloaded
    assert neighbour.get_item("prefs") == "dark"


def test_reset_all_storage_clears_other_namespaces(temp_db):
    store = KeyValueStore(namespace="vault")
    neighbour = KeyValueStore(namespace="neighbour")
    neighbour.set_item("prefs", "dark")
    service, _, messages = _service(store)
    messages.send_message("s1", "r1", "Hello")

    service.reset_all_storage()

    assert neighbour.get_item("prefs") is None
    assert messages.load_messages() == []


@pytest.mark.parametrize(
    "clear",
    [lambda service: service.clear_app_data(), lambda service: service.reset_all_storage()],
    ids=["clear_app_data", "reset_all_storage"],
)
def test_revision_never_repeats_after_clearing(store, clear):
    service, theses, _ = _service(store)
    for _ in range(3):
        theses.save_theses(theses.load_theses())
    stale = theses.snapshot()

    clear(service)
    while theses.snapshot().revision < stale.revision:
        theses.save_theses(theses.load_theses())

    assert theses.snapshot().revision > stale.revision
    with pytest.raises(RevisionConflict):
        theses.save_theses(stale.records, expected_revision=stale.revision)
