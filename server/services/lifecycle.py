"""
Status transitions of a thesis record.

Every function takes the acting identity explicitly and returns a new record;
inputs are never mutated. A rejected transition raises before anything is
built.

    PENDING / UNDER_REVIEW  --peer review-->  REVIEWED | REVISION_REQUIRED | REJECTED
    REVIEWED                --sanction---->   PUBLISHED | REVISION_REQUIRED | REJECTED
    REVISION_REQUIRED       --resubmit---->   UNDER_REVIEW

Applying the same transition twice appends twice; there is no deduplication.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Union

from server.errors import InvalidTransition, PermissionDenied, ValidationError
from server.models.thesis import (
    Manuscript,
    Recommendation,
    Review,
    ThesisRecord,
    ThesisStatus,
    Version,
    new_id,
)
from server.models.user import Actor, Role

DEFAULT_DEPARTMENT = "General Academic"
DEFAULT_SUPERVISOR = "Unassigned Faculty"
INITIAL_CHANGE_NOTE = "Initial Institutional Ingress"
INSTITUTIONAL_OFFICE = "Office of the Dean of Studies"
SANCTION_REMARK = "Institutional sanction granted. The manuscript is cleared for publication."

PEER_REVIEWABLE = frozenset({ThesisStatus.PENDING, ThesisStatus.UNDER_REVIEW})

_PEER_OUTCOMES = {
    Recommendation.APPROVE: ThesisStatus.REVIEWED,
    Recommendation.REVISE: ThesisStatus.REVISION_REQUIRED,
    Recommendation.REJECT: ThesisStatus.REJECTED,
}

_SANCTION_OUTCOMES = {
    Recommendation.APPROVE: ThesisStatus.PUBLISHED,
    Recommendation.REVISE: ThesisStatus.REVISION_REQUIRED,
    Recommendation.REJECT: ThesisStatus.REJECTED,
}

AMENDABLE_FIELDS = frozenset({"title", "abstract", "department", "year", "keywords"})


@dataclass
class SubmissionDraft:
    title: str
    abstract: str
    department: Optional[str] = None
    supervisor_name: Optional[str] = None
    co_researchers: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    manuscript: Optional[Manuscript] = None


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def _is_blank(text: Optional[str]) -> bool:
    return text is None or not text.strip()


def _require_role(actor: Actor, role: Role, action: str) -> None:
    if actor.role is not role:
        raise PermissionDenied(
            f"Only a {role.value.lower()} may {action}; current role is {actor.role.value.lower()}"
        )


def _require_status(record: ThesisRecord, allowed: Iterable[ThesisStatus], action: str) -> None:
    allowed = frozenset(allowed)
    if record.status not in allowed:
        expected = ", ".join(sorted(status.value for status in allowed))
        raise InvalidTransition(
            f"Cannot {action} a thesis in status {record.status.value} (expected {expected})",
            details={"status": record.status.value},
        )


def coerce_recommendation(value: Union[str, Recommendation, None]) -> Recommendation:
    if isinstance(value, Recommendation):
        return value
    try:
        return Recommendation(str(value or "").strip().upper())
    except ValueError as exc:
        raise ValidationError(
            "Recommendation must be one of APPROVE, REVISE or REJECT",
            details={"recommendation": value},
        ) from exc


def _clean_names(names: Iterable[str]) -> List[str]:
    return [name.strip() for name in names if name and name.strip()]


def create_submission(actor: Actor, draft: SubmissionDraft, now: Optional[datetime] = None) -> ThesisRecord:
    """Build a new PENDING record with its first version."""
    _require_role(actor, Role.STUDENT, "submit a thesis")
    if _is_blank(draft.title):
        raise ValidationError("A thesis title is required")
    if _is_blank(draft.abstract):
        raise ValidationError("An abstract is required")

    moment = _now(now)
    manuscript = draft.manuscript
    title = draft.title.strip()
    abstract = draft.abstract.strip()
    first_version = Version(
        id=new_id("v"),
        timestamp=moment.strftime("%Y-%m-%d %H:%M"),
        title=title,
        abstract=abstract,
        file_name=manuscript.file_name if manuscript else None,
        file_url=manuscript.file_url if manuscript else None,
        change_note=INITIAL_CHANGE_NOTE,
    )
    return ThesisRecord(
        id=new_id("m"),
        author_id=actor.id,
        author_name=actor.name,
        supervisor_name=(draft.supervisor_name or "").strip() or DEFAULT_SUPERVISOR,
        co_researchers=_clean_names(draft.co_researchers),
        title=title,
        abstract=abstract,
        department=(draft.department or "").strip() or DEFAULT_DEPARTMENT,
        year=str(moment.year),
        status=ThesisStatus.PENDING,
        submission_date=moment.date().isoformat(),
        file_url=manuscript.file_url if manuscript else None,
        file_name=manuscript.file_name if manuscript else None,
        keywords=_clean_names(draft.keywords),
        reviews=[],
        versions=[first_version],
    )


def peer_review(
    record: ThesisRecord,
    actor: Actor,
    recommendation: Union[str, Recommendation],
    comment: Optional[str],
    now: Optional[datetime] = None,
) -> ThesisRecord:
    """
    First evaluation pass by a faculty reviewer.

    Only an APPROVE needs a current manuscript; REVISE and REJECT may be
    recorded against a record with no file, since neither leads to publication.
    """
    _require_role(actor, Role.REVIEWER, "peer review a thesis")
    recommendation = coerce_recommendation(recommendation)
    _require_status(record, PEER_REVIEWABLE, "peer review")
    if _is_blank(comment):
        raise ValidationError("Review remarks are required for every peer review decision")
    if recommendation is Recommendation.APPROVE and not record.has_manuscript():
        raise ValidationError("A thesis without a manuscript cannot be approved; request a revision instead")

    review = Review(
        id=new_id("rev"),
        reviewer_id=actor.id,
        reviewer_name=actor.name,
        comment=comment.strip(),
        date=_now(now).date().isoformat(),
        recommendation=recommendation,
    )
    return replace(record, status=_PEER_OUTCOMES[recommendation], reviews=record.reviews + [review])


def can_grant_sanction(record: ThesisRecord) -> bool:
    """Sanction is offered only for a REVIEWED record that already carries a peer approval."""
    return record.status is ThesisStatus.REVIEWED and record.has_peer_approval()


def institutional_review(
    record: ThesisRecord,
    actor: Actor,
    recommendation: Union[str, Recommendation],
    remarks: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ThesisRecord:
    """Second and final evaluation pass by the institutional office."""
    _require_role(actor, Role.ADMIN, "grant institutional sanction")
    recommendation = coerce_recommendation(recommendation)
    _require_status(record, {ThesisStatus.REVIEWED}, "sanction")
    if recommendation is Recommendation.APPROVE:
        if not record.has_manuscript():
            raise ValidationError("A thesis without a manuscript cannot be published")
        comment = SANCTION_REMARK if _is_blank(remarks) else remarks.strip()
    elif _is_blank(remarks):
        raise ValidationError(f"Remarks are required to {recommendation.value.lower()} a thesis")
    else:
        comment = remarks.strip()

    moment = _now(now)
    review = Review(
        id=new_id("rev"),
        reviewer_id=actor.id,
        reviewer_name=INSTITUTIONAL_OFFICE,
        comment=comment,
        date=moment.date().isoformat(),
        recommendation=recommendation,
    )
    published_date = record.published_date
    if recommendation is Recommendation.APPROVE and not published_date:
        published_date = moment.date().isoformat()
    return replace(
        record,
        status=_SANCTION_OUTCOMES[recommendation],
        reviews=record.reviews + [review],
        published_date=published_date,
    )


def resubmit_revision(
    record: ThesisRecord,
    actor: Actor,
    manuscript: Optional[Manuscript],
    change_note: Optional[str],
    *,
    title: Optional[str] = None,
    abstract: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ThesisRecord:
    """Author answers a revision request with a new manuscript; the record re-enters peer review."""
    _require_role(actor, Role.STUDENT, "resubmit a thesis")
    if actor.id != record.author_id:
        raise PermissionDenied("Only the author may resubmit this thesis")
    _require_status(record, {ThesisStatus.REVISION_REQUIRED}, "resubmit")
    if manuscript is None or not manuscript.file_url:
        raise ValidationError("A revised manuscript file is required")
    if _is_blank(change_note):
        raise ValidationError("Describe what changed in this revision")

    new_title = record.title if _is_blank(title) else title.strip()
    new_abstract = record.abstract if _is_blank(abstract) else abstract.strip()
    version = Version(
        id=new_id("v"),
        timestamp=_now(now).strftime("%Y-%m-%d %H:%M"),
        title=new_title,
        abstract=new_abstract,
        file_name=manuscript.file_name,
        file_url=manuscript.file_url,
        change_note=change_note.strip(),
    )
    return replace(
        record,
        title=new_title,
        abstract=new_abstract,
        file_url=manuscript.file_url,
        file_name=manuscript.file_name,
        status=ThesisStatus.UNDER_REVIEW,
        versions=list(record.versions or []) + [version],
    )


def amend_details(record: ThesisRecord, actor: Actor, changes: Mapping[str, Any]) -> ThesisRecord:
    """Let the author correct descriptive fields until the thesis is published."""
    if actor.id != record.author_id:
        raise PermissionDenied("Only the author may edit this thesis")
    if record.status is ThesisStatus.PUBLISHED:
        raise InvalidTransition("A published thesis can no longer be edited")
    unknown = set(changes) - AMENDABLE_FIELDS
    if unknown:
        raise ValidationError(
            f"These fields cannot be edited: {', '.join(sorted(unknown))}",
            details={"fields": sorted(unknown)},
        )

    updates = {}
    for name in ("title", "abstract"):
        if name in changes:
            if _is_blank(changes[name]):
                raise ValidationError(f"The {name} cannot be empty")
            updates[name] = changes[name].strip()
    if "department" in changes:
        updates["department"] = (changes["department"] or "").strip() or DEFAULT_DEPARTMENT
    if "year" in changes:
        updates["year"] = str(changes["year"]).strip()
    if "keywords" in changes:
        updates["keywords"] = list(dict.fromkeys(_clean_names(changes["keywords"] or [])))
    return replace(record, **updates)
