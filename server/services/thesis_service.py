from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from server.data_access.thesis_repository import ThesisRepository
from server.errors import InvalidTransition, RevisionConflict, ThesisNotFound, ValidationError
from server.models.thesis import Manuscript, Recommendation, ThesisRecord, ThesisStatus
from server.models.user import Actor

from . import lifecycle

logger = logging.getLogger(__name__)

Transition = Callable[[ThesisRecord], ThesisRecord]


def _matches(record: ThesisRecord, query: Optional[str], *, deep: bool = False) -> bool:
    needle = (query or "").strip().lower()
    if not needle:
        return True
    haystack = [record.title, record.author_name]
    if deep:
        haystack.append(record.abstract)
        haystack.extend(record.keywords)
    return any(needle in (text or "").lower() for text in haystack)


class ThesisService:
    """Applies one lifecycle transition at a time: read, transition, compare-and-swap write."""

    def __init__(self, repository: ThesisRepository, *, max_attempts: int = 3) -> None:
        self._repository = repository
        self._max_attempts = max(1, int(max_attempts))

    # --- commands -------------------------------------------------------------
    def submit(self, actor: Actor, draft: lifecycle.SubmissionDraft) -> ThesisRecord:
        record = lifecycle.create_submission(actor, draft)
        self._commit(lambda records: records + [record], action=f"submission of {record.id}")
        logger.info("Thesis %s submitted by %s", record.id, actor.id)
        return record

    def review(self, actor: Actor, thesis_id: str, recommendation, comment: Optional[str]) -> ThesisRecord:
        return self._apply(
            thesis_id,
            lambda record: lifecycle.peer_review(record, actor, recommendation, comment),
            action="peer review",
        )

    def sanction(self, actor: Actor, thesis_id: str, recommendation, remarks: Optional[str] = None) -> ThesisRecord:
        recommendation = lifecycle.coerce_recommendation(recommendation)

        def transition(record: ThesisRecord) -> ThesisRecord:
            if recommendation is Recommendation.APPROVE and not lifecycle.can_grant_sanction(record):
                raise InvalidTransition(
                    "Sanction requires a completed peer review with an APPROVE recommendation",
                    details={"status": record.status.value},
                )
            return lifecycle.institutional_review(record, actor, recommendation, remarks)

        return self._apply(thesis_id, transition, action="sanction")

    def resubmit(
        self,
        actor: Actor,
        thesis_id: str,
        manuscript: Optional[Manuscript],
        change_note: Optional[str],
        *,
        title: Optional[str] = None,
        abstract: Optional[str] = None,
    ) -> ThesisRecord:
        return self._apply(
            thesis_id,
            lambda record: lifecycle.resubmit_revision(
                record, actor, manuscript, change_note, title=title, abstract=abstract
            ),
            action="resubmission",
        )

    def amend(self, actor: Actor, thesis_id: str, changes: Mapping[str, Any]) -> ThesisRecord:
        return self._apply(
            thesis_id,
            lambda record: lifecycle.amend_details(record, actor, changes),
            action="amendment",
        )

    def _apply(self, thesis_id: str, transition: Transition, *, action: str) -> ThesisRecord:
        applied: Dict[str, ThesisRecord] = {}

        def rewrite(records: List[ThesisRecord]) -> List[ThesisRecord]:
            current = next((record for record in records if record.id == thesis_id), None)
            if current is None:
                raise ThesisNotFound(f"Thesis '{thesis_id}' was not found")
            applied["record"] = transition(current)
            return [applied["record"] if record.id == thesis_id else record for record in records]

        self._commit(rewrite, action=f"{action} of {thesis_id}")
        updated = applied["record"]
        logger.info("Applied %s to %s: status %s", action, thesis_id, updated.status.value)
        return updated

    def _commit(self, rewrite: Callable[[List[ThesisRecord]], List[ThesisRecord]], *, action: str) -> int:
        """Re-read and re-apply ``rewrite`` when another writer got in first."""
        attempt = 0
        while True:
            attempt += 1
            snapshot = self._repository.snapshot()
            records = rewrite(list(snapshot.records))
            try:
                return self._repository.save_theses(records, expected_revision=snapshot.revision)
            except RevisionConflict:
                if attempt >= self._max_attempts:
                    raise
                logger.info("Retrying %s after concurrent write (attempt %s)", action, attempt)

    # --- queries --------------------------------------------------------------
    def get(self, thesis_id: str) -> ThesisRecord:
        record = self._repository.get_thesis(thesis_id)
        if record is None:
            raise ThesisNotFound(f"Thesis '{thesis_id}' was not found")
        return record

    def library(self, department: Optional[str] = None, query: Optional[str] = None) -> List[ThesisRecord]:
        return [
            record
            for record in self._repository.load_theses()
            if record.status is ThesisStatus.PUBLISHED
            and (not department or department == "All" or record.department == department)
            and _matches(record, query, deep=True)
        ]

    def departments(self) -> List[str]:
        published = (r.department for r in self._repository.load_theses() if r.status is ThesisStatus.PUBLISHED)
        return sorted(set(published))

    def portfolio(self, author_id: str, status: Optional[str] = None, query: Optional[str] = None) -> List[ThesisRecord]:
        wanted = None
        if status and status.upper() != "ALL":
            try:
                wanted = ThesisStatus(status.upper())
            except ValueError as exc:
                raise ValidationError(f"Unknown status filter '{status}'") from exc
        needle = (query or "").strip().lower()
        return [
            record
            for record in self._repository.load_theses()
            if record.author_id == author_id
            and (wanted is None or record.status is wanted)
            and needle in record.title.lower()
        ]

    def review_queue(self, query: Optional[str] = None) -> List[ThesisRecord]:
        return [
            record
            for record in self._repository.load_theses()
            if record.status in lifecycle.PEER_REVIEWABLE and _matches(record, query)
        ]

    def sanction_queue(self, query: Optional[str] = None) -> List[Dict[str, object]]:
        return [
            {"thesis": record, "ready": lifecycle.can_grant_sanction(record)}
            for record in self._repository.load_theses()
            if record.status is ThesisStatus.REVIEWED and _matches(record, query)
        ]
