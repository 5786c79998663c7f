from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass, replace
from typing import Callable, Iterable, List, Optional

from server.errors import RevisionConflict, StorageExhausted
from server.models.thesis import ThesisRecord
from storage.sqlite.kv_store import KeyValueStore, QuotaExceededError, StoreReader

from .change_feed import ChangeFeed
from .seed_data import initial_theses

logger = logging.getLogger(__name__)

THESES_KEY = "theses"
REVISION_KEY = "theses_revision"


@dataclass(frozen=True)
class ThesisSnapshot:
    records: List[ThesisRecord]
    revision: int

    def find(self, thesis_id: str) -> Optional[ThesisRecord]:
        return next((record for record in self.records if record.id == thesis_id), None)


def prune_versions(records: Iterable[ThesisRecord]) -> List[ThesisRecord]:
    """
    Drop the manuscript payload from every superseded version.

    Only the last version of each record keeps its ``file_url``; titles,
    abstracts, filenames and change notes are kept. Applying this twice gives
    the same collection as applying it once.
    """
    pruned: List[ThesisRecord] = []
    for record in records:
        versions = record.versions
        if not versions or len(versions) < 2:
            pruned.append(record)
            continue
        superseded = [
            replace(version, file_url=None) if version.file_url is not None else version
            for version in versions[:-1]
        ]
        pruned.append(replace(record, versions=superseded + [versions[-1]]))
    return pruned


def _parse_revision(raw: Optional[str]) -> int:
    if not raw:
        return 0
    try:
        return int(raw)
    except ValueError:
        logger.warning("Discarding unreadable thesis revision %r", raw)
        return 0


def _decode_theses(raw: Optional[str]) -> Optional[List[ThesisRecord]]:
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("Stored theses are not valid JSON, re-seeding: %s", exc)
        return None
    if not isinstance(data, list):
        logger.warning("Stored theses are a %s rather than a list, re-seeding", type(data).__name__)
        return None
    try:
        return [ThesisRecord.from_dict(item) for item in data]
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("Stored theses do not match the record schema, re-seeding: %s", exc)
        return None


def _encode_theses(records: Iterable[ThesisRecord]) -> str:
    return json.dumps([record.to_dict() for record in records], ensure_ascii=False)


class ThesisRepository:
    """Whole-collection persistence for thesis records over a shared key/value store."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        seed: Callable[[], List[ThesisRecord]] = initial_theses,
    ) -> None:
        self._store = store
        self._seed = seed
        self._feed: ChangeFeed[List[ThesisRecord]] = ChangeFeed("theses-changed")

    def subscribe(self, listener: Callable[[List[ThesisRecord]], None]) -> Callable[[], None]:
        return self._feed.subscribe(listener)

    def load_theses(self) -> List[ThesisRecord]:
        return self.snapshot().records

    def snapshot(self) -> ThesisSnapshot:
        try:
            stored = self._store.get_items([THESES_KEY, REVISION_KEY])
        except sqlite3.Error as exc:
            logger.warning("Reading stored theses failed, serving seed collection: %s", exc)
            return ThesisSnapshot(records=self._seed(), revision=0)

        revision = _parse_revision(stored[REVISION_KEY])
        records = _decode_theses(stored[THESES_KEY])
        if records is not None:
            return ThesisSnapshot(records=records, revision=revision)

        seed = self._seed()
        try:
            revision = self._write(seed, expected_revision=None)
        except (QuotaExceededError, sqlite3.Error, OSError) as exc:
            logger.warning("Could not persist seed theses, serving them from memory: %s", exc)
        return ThesisSnapshot(records=seed, revision=revision)

    def get_thesis(self, thesis_id: str) -> Optional[ThesisRecord]:
        return self.snapshot().find(thesis_id)

    def save_theses(self, records: Iterable[ThesisRecord], expected_revision: Optional[int] = None) -> int:
        """
        Replace the stored collection and return its new revision.

        When ``expected_revision`` is given and the stored revision differs,
        ``RevisionConflict`` is raised and nothing is written. If the store is
        full, superseded manuscripts are pruned and the write is retried once;
        a second failure raises ``StorageExhausted`` with the stored collection
        left as it was.
        """
        records = list(records)
        try:
            revision = self._write(records, expected_revision)
        except QuotaExceededError as exc:
            logger.warning(
                "Thesis write needs %s of %s bytes, pruning superseded manuscripts",
                exc.required_bytes,
                exc.capacity_bytes,
            )
            records = prune_versions(records)
            try:
                revision = self._write(records, expected_revision)
            except QuotaExceededError as retry_exc:
                logger.error("Thesis write still needs %s bytes after pruning", retry_exc.required_bytes)
                raise StorageExhausted(
                    "Storage is full even after archiving older manuscript versions. "
                    "Remove unused data or submit a smaller manuscript, then try again.",
                    details={
                        "required_bytes": retry_exc.required_bytes,
                        "capacity_bytes": retry_exc.capacity_bytes,
                    },
                ) from retry_exc
        self._feed.publish(list(records))
        return revision

    def submit_new_thesis(self, record: ThesisRecord) -> int:
        snapshot = self.snapshot()
        return self.save_theses(snapshot.records + [record], expected_revision=snapshot.revision)

    def prune(self) -> int:
        """Prune superseded manuscripts now and return the bytes reclaimed."""
        snapshot = self.snapshot()
        before = len(_encode_theses(snapshot.records).encode("utf-8"))
        pruned = prune_versions(snapshot.records)
        after = len(_encode_theses(pruned).encode("utf-8"))
        if after < before:
            self.save_theses(pruned, expected_revision=snapshot.revision)
        return before - after

    def notify_reload(self) -> None:
        self._feed.publish(self.load_theses())

    def _write(self, records: List[ThesisRecord], expected_revision: Optional[int]) -> int:
        payload = _encode_theses(records)
        written = {}

        def bump_revision(reader: StoreReader):
            current = _parse_revision(reader.get_item(REVISION_KEY))
            if expected_revision is not None and current != expected_revision:
                raise RevisionConflict(expected_revision, current)
            written["revision"] = reader.advance_counter(REVISION_KEY, floor=current)
            return {REVISION_KEY: str(written["revision"])}

        self._store.set_items({THESES_KEY: payload}, prepare=bump_revision)
        logger.debug("Saved %s theses at revision %s", len(records), written["revision"])
        return written["revision"]
