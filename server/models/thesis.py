"""
Thesis records and the facts appended to them over their lifecycle.

Serialized field names follow the persisted camelCase layout so that existing
stored collections keep loading.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class ThesisStatus(str, Enum):
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    REVIEWED = "REVIEWED"
    PUBLISHED = "PUBLISHED"
    REVISION_REQUIRED = "REVISION_REQUIRED"
    REJECTED = "REJECTED"


class Recommendation(str, Enum):
    APPROVE = "APPROVE"
    REVISE = "REVISE"
    REJECT = "REJECT"


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def _optional_str(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    return None if value is None else str(value)


def _drop_none(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


@dataclass(frozen=True)
class Review:
    id: str
    reviewer_id: str
    reviewer_name: str
    comment: str
    date: str
    recommendation: Recommendation

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "reviewerId": self.reviewer_id,
            "reviewerName": self.reviewer_name,
            "comment": self.comment,
            "date": self.date,
            "recommendation": self.recommendation.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Review":
        return cls(
            id=str(data["id"]),
            reviewer_id=str(data.get("reviewerId", "")),
            reviewer_name=str(data.get("reviewerName", "")),
            comment=str(data.get("comment", "")),
            date=str(data.get("date", "")),
            recommendation=Recommendation(data["recommendation"]),
        )


@dataclass(frozen=True)
class Version:
    id: str
    timestamp: str
    title: str
    abstract: str
    file_name: Optional[str] = None
    file_url: Optional[str] = None
    change_note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "id": self.id,
                "timestamp": self.timestamp,
                "title": self.title,
                "abstract": self.abstract,
                "fileName": self.file_name,
                "fileUrl": self.file_url,
                "changeNote": self.change_note,
            }
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Version":
        return cls(
            id=str(data["id"]),
            timestamp=str(data.get("timestamp", "")),
            title=str(data.get("title", "")),
            abstract=str(data.get("abstract", "")),
            file_name=_optional_str(data, "fileName"),
            file_url=_optional_str(data, "fileUrl"),
            change_note=_optional_str(data, "changeNote"),
        )


@dataclass(frozen=True)
class Milestone:
    id: str
    title: str
    due_date: str
    completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "dueDate": self.due_date, "completed": self.completed}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Milestone":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            due_date=str(data.get("dueDate", "")),
            completed=bool(data.get("completed", False)),
        )


@dataclass(frozen=True)
class Manuscript:
    """A manuscript artifact: a data URI or an external URL, plus its display name."""

    file_url: str
    file_name: Optional[str] = None


@dataclass(frozen=True)
class ThesisRecord:
    id: str
    author_id: str
    author_name: str
    supervisor_name: str
    title: str
    abstract: str
    department: str
    year: str
    status: ThesisStatus
    submission_date: str
    co_researchers: Optional[List[str]] = None
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    published_date: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    reviews: List[Review] = field(default_factory=list)
    milestones: Optional[List[Milestone]] = None
    versions: Optional[List[Version]] = None

    def current_version(self) -> Optional[Version]:
        return self.versions[-1] if self.versions else None

    def has_manuscript(self) -> bool:
        return bool(self.file_url)

    def has_peer_approval(self) -> bool:
        return any(review.recommendation is Recommendation.APPROVE for review in self.reviews)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "authorId": self.author_id,
            "authorName": self.author_name,
            "supervisorName": self.supervisor_name,
            "coResearchers": list(self.co_researchers) if self.co_researchers is not None else None,
            "title": self.title,
            "abstract": self.abstract,
            "department": self.department,
            "year": self.year,
            "status": self.status.value,
            "fileUrl": self.file_url,
            "fileName": self.file_name,
            "submissionDate": self.submission_date,
            "publishedDate": self.published_date,
            "keywords": list(self.keywords),
            "reviews": [review.to_dict() for review in self.reviews],
            "milestones": [m.to_dict() for m in self.milestones] if self.milestones is not None else None,
            "versions": [v.to_dict() for v in self.versions] if self.versions is not None else None,
        }
        return _drop_none(payload)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ThesisRecord":
        co_researchers = data.get("coResearchers")
        milestones = data.get("milestones")
        versions = data.get("versions")
        return cls(
            id=str(data["id"]),
            author_id=str(data["authorId"]),
            author_name=str(data.get("authorName", "")),
            supervisor_name=str(data.get("supervisorName", "")),
            co_researchers=[str(name) for name in co_researchers] if co_researchers is not None else None,
            title=str(data.get("title", "")),
            abstract=str(data.get("abstract", "")),
            department=str(data.get("department", "")),
            year=str(data.get("year", "")),
            status=ThesisStatus(data["status"]),
            file_url=_optional_str(data, "fileUrl"),
            file_name=_optional_str(data, "fileName"),
            submission_date=str(data.get("submissionDate", "")),
            published_date=_optional_str(data, "publishedDate"),
            keywords=[str(kw) for kw in data.get("keywords") or []],
            reviews=[Review.from_dict(item) for item in data.get("reviews") or []],
            milestones=[Milestone.from_dict(item) for item in milestones] if milestones is not None else None,
            versions=[Version.from_dict(item) for item in versions] if versions is not None else None,
        )
