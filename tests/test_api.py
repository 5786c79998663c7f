from io import BytesIO

import pytest

from ai_assistant.services.thesis_advisor import ThesisMetadata
from server import create_app
from server.services.assistant_service import AssistantService

PDF_BYTES = b"%PDF-1.4 test manuscript"


class _StubAdvisor:
    def summarize(self, title, abstract):
        return f"Summary of {title}"

    def extract_metadata(self, title, abstract):
        return ThesisMetadata(keywords=["AI"], suggested_department="Data Science", academic_level="PhD")

    def analyze_idea(self, title, abstract):
        return None

    def refine_title(self, title):
        return [f"{title}: Revisited"]


def _make_client(overrides=None):
    app = create_app(
        "testing",
        overrides=dict({"STORAGE_NAMESPACE": "test_vault"}, **(overrides or {})),
        assistant=AssistantService(advisor_factory=_StubAdvisor),
    )
    app.testing = True
    return app.test_client()


@pytest.fixture
def client(temp_db):
    with _make_client() as client:
        yield client


def _as(user_id):
    return {"X-User-Id": user_id}


def _submit(client, title="Soil Microbiome Dynamics", content=PDF_BYTES, filename="thesis.pdf", mimetype="application/pdf"):
    return client.post(
        "/api/theses",
        data={
            "title": title,
            "abstract": "Seasonal variation in soil bacteria.",
            "department": "Biology",
            "keywords": "Soil, Microbiome",
            "manuscript": (BytesIO(content), filename, mimetype),
        },
        headers=_as("s1"),
        content_type="multipart/form-data",
    )


def test_healthcheck(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_profiles_are_seeded(client):
    profiles = client.get("/api/profiles").get_json()["profiles"]
    assert {profile["id"]: profile["role"] for profile in profiles} == {
        "s1": "STUDENT",
        "r1": "REVIEWER",
        "a1": "ADMIN",
        "g1": "GUEST",
    }


def test_library_lists_published_seed(client):
    body = client.get("/api/library").get_json()
    assert [thesis["id"] for thesis in body["theses"]] == ["p1"]
    assert body["theses"][0]["fileUrl"] == "https://arxiv.org/pdf/1706.03762.pdf"
    assert body["departments"] == ["Computer Science"]


def test_actor_header_is_required(client):
    response = client.post("/api/theses", json={"title": "x", "abstract": "y"})
    assert response.status_code == 401
    assert client.get("/api/review-queue", headers=_as("nobody")).status_code == 401


def test_submission_to_publication(client):
    created = _submit(client)
    assert created.status_code == 201
    thesis = created.get_json()["thesis"]
    assert thesis["status"] == "PENDING"
    assert thesis["keywords"] == ["Soil", "Microbiome"]
    assert thesis["fileUrl"] == f"/api/theses/{thesis['id']}/manuscript"

    download = client.get(thesis["fileUrl"])
    assert download.status_code == 200
    assert download.data == PDF_BYTES
    assert download.mimetype == "application/pdf"

    queue = client.get("/api/review-queue", headers=_as("r1")).get_json()["theses"]
    assert thesis["id"] in [item["id"] for item in queue]

    reviewed = client.post(
        f"/api/theses/{thesis['id']}/reviews",
        json={"recommendation": "APPROVE", "comment": "Thorough fieldwork."},
        headers=_as("r1"),
    )
    assert reviewed.status_code == 201
    assert reviewed.get_json()["thesis"]["status"] == "REVIEWED"

    sanction_queue = client.get("/api/sanction-queue", headers=_as("a1")).get_json()["queue"]
    assert [(entry["thesis"]["id"], entry["ready"]) for entry in sanction_queue] == [(thesis["id"], True)]

    published = client.post(
        f"/api/theses/{thesis['id']}/sanction", json={"recommendation": "APPROVE"}, headers=_as("a1")
    )
    assert published.status_code == 201
    assert published.get_json()["thesis"]["status"] == "PUBLISHED"
    library = client.get("/api/library", query_string={"department": "Biology"}).get_json()
    assert [item["id"] for item in library["theses"]] == [thesis["id"]]


def test_revision_round_trip(client):
    thesis_id = _submit(client).get_json()["thesis"]["id"]
    client.post(
        f"/api/theses/{thesis_id}/reviews",
        json={"recommendation": "REVISE", "comment": "Add controls."},
        headers=_as("r1"),
    )

    response = client.post(
        f"/api/theses/{thesis_id}/revisions",
        data={
            "change_note": "Added control plots",
            "manuscript": (BytesIO(b"%PDF-1.4 second draft"), "v2.pdf", "application/pdf"),
        },
        headers=_as("s1"),
        content_type="multipart/form-data",
    )

    assert response.status_code == 201
    thesis = response.get_json()["thesis"]
    assert thesis["status"] == "UNDER_REVIEW"
    first_version = thesis["versions"][0]
    older = client.get(first_version["fileUrl"])
    assert older.status_code == 200
    assert older.data == PDF_BYTES


def test_role_and_state_errors(client):
    denied = client.post(
        "/api/theses/mt1/reviews", json={"recommendation": "REVISE", "comment": "x"}, headers=_as("s1")
    )
    assert denied.status_code == 403

    wrong_state = client.post("/api/theses/mt4/sanction", json={"recommendation": "APPROVE"}, headers=_as("a1"))
    assert wrong_state.status_code == 409
    assert "error" in wrong_state.get_json()

    missing = client.get("/api/theses/does-not-exist")
    assert missing.status_code == 404


def test_numeric_remarks_are_read_as_text(client):
    reviewed = client.post(
        "/api/theses/mt1/reviews", json={"recommendation": "REVISE", "comment": 5}, headers=_as("r1")
    )
    assert reviewed.status_code == 201
    assert reviewed.get_json()["thesis"]["reviews"][-1]["comment"] == "5"

    thesis_id = _submit(client).get_json()["thesis"]["id"]
    client.post(
        f"/api/theses/{thesis_id}/reviews",
        json={"recommendation": "APPROVE", "comment": "Sound method."},
        headers=_as("r1"),
    )
    sanctioned = client.post(
        f"/api/theses/{thesis_id}/sanction", json={"recommendation": "REJECT", "remarks": 7}, headers=_as("a1")
    )
    assert sanctioned.status_code == 201
    assert sanctioned.get_json()["thesis"]["reviews"][-1]["comment"] == "7"

    amended = client.patch("/api/theses/mt4", json={"title": 2024}, headers=_as("s1"))
    assert amended.status_code == 200
    assert amended.get_json()["thesis"]["title"] == "2024"


def test_non_pdf_upload_is_rejected(client):
    response = _submit(client, content=b"plain text", filename="notes.txt", mimetype="text/plain")
    assert response.status_code == 400


def test_manuscript_downloads(client):
    assert client.get("/api/theses/mt1/manuscript").status_code == 410
    external = client.get("/api/theses/p1/manuscript")
    assert external.status_code == 302
    assert external.headers["Location"] == "https://arxiv.org/pdf/1706.03762.pdf"
    assert client.get("/api/theses/mt1/versions/missing/manuscript").status_code == 404


def test_amend_details(client):
    response = client.patch("/api/theses/mt1", json={"title": "Tracking Data in Football"}, headers=_as("s1"))
    assert response.status_code == 200
    assert response.get_json()["thesis"]["title"] == "Tracking Data in Football"

    assert client.patch("/api/theses/mt1", json={}, headers=_as("s1")).status_code == 400
    assert client.patch("/api/theses/p1", json={"title": "x"}, headers=_as("s1")).status_code == 403


def test_portfolio(client):
    body = client.get("/api/theses/mine", query_string={"status": "REJECTED"}, headers=_as("s1")).get_json()
    assert [item["id"] for item in body["theses"]] == ["mt4"]
    assert client.get("/api/theses/mine", headers=_as("r1")).status_code == 403


def test_assistant_endpoints(client):
    summary = client.post("/api/theses/p1/summary").get_json()
    assert summary["summary"].startswith("Summary of Transformer-Based Models")

    metadata = client.post("/api/assistant/metadata", json={"title": "T", "abstract": "A"}).get_json()
    assert metadata["metadata"]["suggestedDepartment"] == "Data Science"

    analysis = client.post("/api/assistant/analysis", json={"title": "T", "abstract": "A"}).get_json()
    assert analysis == {"analysis": None}

    titles = client.post("/api/assistant/titles", json={"title": "T"}).get_json()
    assert titles["titles"] == ["T: Revisited"]

    assert client.post("/api/assistant/metadata", json={"title": "T"}).status_code == 400


def test_messaging(client):
    sent = client.post("/api/messages/r1", json={"text": "Could you look at chapter 2?"}, headers=_as("s1"))
    assert sent.status_code == 201

    thread = client.get("/api/messages/s1", headers=_as("r1")).get_json()
    assert [message["text"] for message in thread["messages"]] == ["Could you look at chapter 2?"]
    assert thread["unread"] == 1

    marked = client.post("/api/messages/s1/read", headers=_as("r1")).get_json()
    assert marked == {"marked": 1}

    assert client.post("/api/messages/ghost", json={"text": "hi"}, headers=_as("s1")).status_code == 400


def test_storage_usage(client):
    client.get("/api/library")
    body = client.get("/api/storage/usage").get_json()
    assert 0 < body["used_bytes"] <= body["capacity_bytes"]


def test_clear_app_data_reseeds_on_next_read(client):
    _submit(client)
    assert client.delete("/api/storage/app-data", headers=_as("s1")).status_code == 403

    assert client.delete("/api/storage/app-data", headers=_as("a1")).status_code == 200

    portfolio = client.get("/api/theses/mine", headers=_as("s1")).get_json()["theses"]
    assert [item["id"] for item in portfolio] == ["mt1", "mt4"]


def test_full_reset_needs_confirmation(client):
    _submit(client)
    assert client.delete("/api/storage", json={"confirmation_token": "guess"}, headers=_as("a1")).status_code == 400

    token = client.post("/api/storage/reset", headers=_as("a1")).get_json()["confirmation_token"]
    assert client.delete("/api/storage", json={"confirmation_token": "wrong"}, headers=_as("a1")).status_code == 400

    token = client.post("/api/storage/reset", headers=_as("a1")).get_json()["confirmation_token"]
    assert client.delete("/api/storage", json={"confirmation_token": token}, headers=_as("a1")).status_code == 200

    portfolio = client.get("/api/theses/mine", headers=_as("s1")).get_json()["theses"]
    assert [item["id"] for item in portfolio] == ["mt1", "mt4"]
    assert len(client.get("/api/profiles").get_json()["profiles"]) == 4


def test_storage_full_is_reported(temp_db):
    with _make_client({"STORAGE_CAPACITY_BYTES": 8000}) as client:
        client.get("/api/library")
        response = _submit(client, content=PDF_BYTES + b"0" * 8000)

    assert response.status_code == 507
    assert "Storage is full" in response.get_json()["error"]
