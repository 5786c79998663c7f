from datetime import datetime, timezone

import pytest

from server.errors import InvalidTransition, PermissionDenied, ValidationError
from server.models.thesis import Manuscript, Recommendation, ThesisStatus
from server.models.user import Actor, Role
from server.services import lifecycle
from server.services.lifecycle import SubmissionDraft

NOW = datetime(2024, 5, 6, 14, 30, tzinfo=timezone.utc)
PDF = Manuscript(file_url="data:application/pdf;base64,JVBERi0=", file_name="thesis.pdf")


def _submitted(student, manuscript=PDF):
    draft = SubmissionDraft(
        title="  Federated Learning on Campus Networks ",
        abstract="We study privacy-preserving training.",
        co_researchers=["Jane Doe", " ", ""],
        keywords=["FL", "Privacy"],
        manuscript=manuscript,
    )
    return lifecycle.create_submission(student, draft, now=NOW)


def _reviewed(student, reviewer):
    return lifecycle.peer_review(_submitted(student), reviewer, "APPROVE", "Sound methodology.", now=NOW)


def test_create_submission_defaults(student):
    record = _submitted(student)

    assert record.status is ThesisStatus.PENDING
    assert record.title == "Federated Learning on Campus Networks"
    assert record.author_id == "s1"
    assert record.author_name == "Alex Rivera"
    assert record.department == lifecycle.DEFAULT_DEPARTMENT
    assert record.supervisor_name == lifecycle.DEFAULT_SUPERVISOR
    assert record.co_researchers == ["Jane Doe"]
    assert record.year == "2024"
    assert record.submission_date == "2024-05-06"
    assert record.reviews == []
    assert record.file_url == PDF.file_url


def test_create_submission_records_first_version(student):
    record = _submitted(student)

    assert len(record.versions) == 1
    version = record.versions[0]
    assert version.change_note == lifecycle.INITIAL_CHANGE_NOTE
    assert version.timestamp == "2024-05-06 14:30"
    assert version.file_url == PDF.file_url
    assert version.title == record.title


def test_create_submission_requires_title_and_abstract(student):
    with pytest.raises(ValidationError):
        lifecycle.create_submission(student, SubmissionDraft(title=" ", abstract="x"))
    with pytest.raises(ValidationError):
        lifecycle.create_submission(student, SubmissionDraft(title="x", abstract=""))


def test_only_students_submit(reviewer):
    with pytest.raises(PermissionDenied):
        lifecycle.create_submission(reviewer, SubmissionDraft(title="x", abstract="y"))


@pytest.mark.parametrize(
    "recommendation, expected",
    [
        ("APPROVE", ThesisStatus.REVIEWED),
        ("revise", ThesisStatus.REVISION_REQUIRED),
        (Recommendation.REJECT, ThesisStatus.REJECTED),
    ],
)
def test_peer_review_outcomes(student, reviewer, recommendation, expected):
    record = _submitted(student)

    updated = lifecycle.peer_review(record, reviewer, recommendation, "Remarks", now=NOW)

    assert updated.status is expected
    assert len(updated.reviews) == 1
    review = updated.reviews[0]
    assert review.reviewer_id == "r1"
    assert review.reviewer_name == "Dr. Sarah Jenkins"
    assert review.date == "2024-05-06"
    # the input record is left as it was
    assert record.status is ThesisStatus.PENDING
    assert record.reviews == []


@pytest.mark.parametrize("recommendation", ["REVISE", "REJECT"])
@pytest.mark.parametrize("comment", ["", "   ", None])
def test_peer_review_requires_comment(student, reviewer, recommendation, comment):
    record = _submitted(student)

    with pytest.raises(ValidationError):
        lifecycle.peer_review(record, reviewer, recommendation, comment)

    assert record.status is ThesisStatus.PENDING
    assert record.reviews == []


def test_peer_review_rejects_unknown_recommendation(student, reviewer):
    with pytest.raises(ValidationError):
        lifecycle.peer_review(_submitted(student), reviewer, "MAYBE", "Remarks")


def test_peer_approval_needs_a_manuscript(student, reviewer):
    record = _submitted(student, manuscript=None)

    with pytest.raises(ValidationError):
        lifecycle.peer_review(record, reviewer, "APPROVE", "Looks fine")
    revised = lifecycle.peer_review(record, reviewer, "REVISE", "Upload the PDF")
    assert revised.status is ThesisStatus.REVISION_REQUIRED
    rejected = lifecycle.peer_review(record, reviewer, "REJECT", "Out of scope")
    assert rejected.status is ThesisStatus.REJECTED


def test_peer_review_only_from_pending_or_under_review(student, reviewer):
    reviewed = _reviewed(student, reviewer)

    with pytest.raises(InvalidTransition):
        lifecycle.peer_review(reviewed, reviewer, "APPROVE", "Again")


def test_only_reviewers_peer_review(student, admin):
    with pytest.raises(PermissionDenied):
        lifecycle.peer_review(_submitted(student), admin, "APPROVE", "Remarks")


def test_can_grant_sanction_requires_peer_approval(student, reviewer):
    assert lifecycle.can_grant_sanction(_reviewed(student, reviewer))
    assert not lifecycle.can_grant_sanction(_submitted(student))


def test_sanction_approve_publishes(student, reviewer, admin):
    published = lifecycle.institutional_review(_reviewed(student, reviewer), admin, "APPROVE", now=NOW)

    assert published.status is ThesisStatus.PUBLISHED
    assert published.published_date == "2024-05-06"
    review = published.reviews[-1]
    assert review.reviewer_name == lifecycle.INSTITUTIONAL_OFFICE
    assert review.comment == lifecycle.SANCTION_REMARK
    assert review.recommendation is Recommendation.APPROVE
    assert len(published.reviews) == 2


@pytest.mark.parametrize("recommendation", ["REVISE", "REJECT"])
@pytest.mark.parametrize("remarks", ["", "   ", None])
def test_sanction_blank_remarks_are_refused(student, reviewer, admin, recommendation, remarks):
    reviewed = _reviewed(student, reviewer)

    with pytest.raises(ValidationError):
        lifecycle.institutional_review(reviewed, admin, recommendation, remarks)

    assert reviewed.status is ThesisStatus.REVIEWED
    assert len(reviewed.reviews) == 1


@pytest.mark.parametrize(
    "recommendation, expected",
    [("REVISE", ThesisStatus.REVISION_REQUIRED), ("REJECT", ThesisStatus.REJECTED)],
)
def test_sanction_other_outcomes_keep_remarks(student, reviewer, admin, recommendation, expected):
    reviewed = _reviewed(student, reviewer)

    updated = lifecycle.institutional_review(reviewed, admin, recommendation, "Expand chapter 3", now=NOW)

    assert updated.status is expected
    assert updated.reviews[-1].comment == "Expand chapter 3"
    assert updated.published_date is None


def test_sanction_only_from_reviewed(student, admin):
    with pytest.raises(InvalidTransition):
        lifecycle.institutional_review(_submitted(student), admin, "APPROVE")


def test_only_admins_sanction(student, reviewer):
    with pytest.raises(PermissionDenied):
        lifecycle.institutional_review(_reviewed(student, reviewer), reviewer, "APPROVE")


def test_resubmission_returns_to_under_review(student, reviewer):
    needs_work = lifecycle.peer_review(_submitted(student), reviewer, "REVISE", "Clarify scope", now=NOW)
    revised_pdf = Manuscript(file_url="data:application/pdf;base64,JVBERi0xLjQ=", file_name="v2.pdf")

    updated = lifecycle.resubmit_revision(
        needs_work, student, revised_pdf, "Narrowed the scope", title="Federated Learning at Scale", now=NOW
    )

    assert updated.status is ThesisStatus.UNDER_REVIEW
    assert updated.title == "Federated Learning at Scale"
    assert updated.abstract == needs_work.abstract
    assert updated.file_url == revised_pdf.file_url
    assert len(updated.versions) == 2
    assert updated.current_version().change_note == "Narrowed the scope"
    assert updated.current_version().file_name == "v2.pdf"
    assert updated.reviews == needs_work.reviews


def test_resubmission_checks(student, reviewer):
    needs_work = lifecycle.peer_review(_submitted(student), reviewer, "REVISE", "Clarify scope")
    other_student = Actor(id="s2", name="Sam Lee", role=Role.STUDENT)

    with pytest.raises(ValidationError):
        lifecycle.resubmit_revision(needs_work, student, None, "note")
    with pytest.raises(ValidationError):
        lifecycle.resubmit_revision(needs_work, student, PDF, " ")
    with pytest.raises(PermissionDenied):
        lifecycle.resubmit_revision(needs_work, other_student, PDF, "note")
    with pytest.raises(InvalidTransition):
        lifecycle.resubmit_revision(_submitted(student), student, PDF, "note")


def test_published_thesis_cannot_be_amended(student, reviewer, admin):
    published = lifecycle.institutional_review(_reviewed(student, reviewer), admin, "APPROVE", now=NOW)

    assert published.published_date == "2024-05-06"
    with pytest.raises(InvalidTransition):
        lifecycle.amend_details(published, student, {"title": "New"})


def test_amend_details(student):
    record = _submitted(student)

    updated = lifecycle.amend_details(
        record, student, {"title": " Revised ", "department": "", "keywords": ["a", "a", " b "]}
    )

    assert updated.title == "Revised"
    assert updated.department == lifecycle.DEFAULT_DEPARTMENT
    assert updated.keywords == ["a", "b"]


def test_amend_details_rejects_unknown_fields_and_strangers(student, reviewer):
    record = _submitted(student)

    with pytest.raises(ValidationError) as excinfo:
        lifecycle.amend_details(record, student, {"status": "PUBLISHED"})
    assert excinfo.value.details == {"fields": ["status"]}
    with pytest.raises(PermissionDenied):
        lifecycle.amend_details(record, reviewer, {"title": "x"})
