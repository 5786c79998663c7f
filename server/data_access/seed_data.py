"""Collections written on first load so every surface has something to show."""
from __future__ import annotations

from typing import List

from server.models.thesis import Recommendation, Review, ThesisRecord, ThesisStatus, Version

DEMO_PROFILES = [
    {
        "id": "s1",
        "name": "Alex Rivera",
        "email": "alex.rivera@stellaris.edu",
        "role": "STUDENT",
        "avatar": "https://i.pravatar.cc/150?u=alex",
    },
    {
        "id": "r1",
        "name": "Dr. Sarah Jenkins",
        "email": "s.jenkins@stellaris.edu",
        "role": "REVIEWER",
        "avatar": "https://i.pravatar.cc/150?u=sarah",
    },
    {
        "id": "a1",
        "name": "Dean Henderson",
        "email": "provost.office@stellaris.edu",
        "role": "ADMIN",
        "avatar": "https://i.pravatar.cc/150?u=dean",
    },
    {
        "id": "g1",
        "name": "Visiting Scholar",
        "email": "guest@stellaris.edu",
        "role": "GUEST",
        "avatar": "https://i.pravatar.cc/150?u=guest",
    },
]


def initial_theses() -> List[ThesisRecord]:
    return [
        ThesisRecord(
            id="p1",
            author_id="u1",
            author_name="Dr. Aris Xanthos",
            supervisor_name="Prof. Marina Miller",
            title="Transformer-Based Models for Clinical Documentation: A Comparative Study",
            abstract=(
                "This research evaluates the efficacy of fine-tuned transformer architectures, "
                "specifically BERT and T5, in the context of automated medical transcription and ICD-10 coding."
            ),
            department="Computer Science",
            year="2023",
            status=ThesisStatus.PUBLISHED,
            submission_date="2023-05-12",
            published_date="2023-08-01",
            file_url="https://arxiv.org/pdf/1706.03762.pdf",
            keywords=["NLP", "Healthcare", "Machine Learning"],
        ),
        ThesisRecord(
            id="mt1",
            author_id="s1",
            author_name="Alex Rivera",
            supervisor_name="Dr. Robert Smith",
            co_researchers=["Jane Doe"],
            title="Neural Networks in Tactical Football Analysis",
            abstract="An exploration into position tracking data for professional sports team optimization.",
            department="Data Science",
            year="2024",
            status=ThesisStatus.UNDER_REVIEW,
            submission_date="2024-02-15",
            keywords=["AI", "Sports"],
            versions=[
                Version(
                    id="v0",
                    timestamp="2024-02-10 10:00",
                    title="Initial Draft: Football AI",
                    abstract="Pre-review abstract.",
                )
            ],
        ),
        ThesisRecord(
            id="mt4",
            author_id="s1",
            author_name="Alex Rivera",
            supervisor_name="Prof. Marcus Aurelius",
            title="Ethical Implications of Autonomous Defense Systems",
            abstract="A philosophical examination of algorithmic lethality in modern warfare.",
            department="Philosophy",
            year="2024",
            status=ThesisStatus.REJECTED,
            submission_date="2024-01-05",
            keywords=["Ethics", "AI"],
            reviews=[
                Review(
                    id="rej1",
                    reviewer_id="r9",
                    reviewer_name="Dr. Ethics Board",
                    comment="Methodological scope is too narrow for a Doctoral thesis.",
                    date="2024-02-10",
                    recommendation=Recommendation.REJECT,
                )
            ],
        ),
    ]
