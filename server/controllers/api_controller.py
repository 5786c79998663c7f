import logging
import secrets
from io import BytesIO
from typing import Any, Dict, List, Optional

from flask import Blueprint, current_app, jsonify, redirect, request, send_file, url_for

from server.data_access.user_repository import find_user_by_id, list_users
from server.errors import PermissionDenied, PortalError, ValidationError
from server.models.thesis import Manuscript, ThesisRecord
from server.models.user import Actor, Role
from server.services import manuscript_service
from server.services.lifecycle import SubmissionDraft

logger = logging.getLogger(__name__)

api_blueprint = Blueprint("api", __name__)


def _portal():
    return current_app.extensions["scholarflow"]


@api_blueprint.errorhandler(PortalError)
def handle_portal_error(exc: PortalError):
    return jsonify(exc.to_dict()), exc.status_code


class _Unauthorized(PortalError):
    status_code = 401


def _resolve_actor(required: bool = True) -> Optional[Actor]:
    user_id = request.headers.get("X-User-Id")
    if not user_id:
        if required:
            raise _Unauthorized("Select a portal profile (X-User-Id header) to continue")
        return None
    user = find_user_by_id(user_id)
    if not user:
        raise _Unauthorized(f"Unknown profile '{user_id}'")
    return Actor.from_row(user)


def _require(actor: Actor, role: Role) -> None:
    if actor.role is not role:
        raise PermissionDenied(f"This action is reserved for the {role.value.lower()} role")


def _present_url(file_url: Optional[str], link: str) -> Optional[str]:
    if manuscript_service.is_data_uri(file_url):
        return link
    return file_url


def _present(record: ThesisRecord) -> Dict[str, Any]:
    """Serialized record with embedded manuscripts replaced by download links."""
    payload = record.to_dict()
    if "fileUrl" in payload:
        payload["fileUrl"] = _present_url(record.file_url, url_for("api.get_manuscript", thesis_id=record.id))
    for version, data in zip(record.versions or [], payload.get("versions", [])):
        if "fileUrl" in data:
            data["fileUrl"] = _present_url(
                version.file_url,
                url_for("api.get_version_manuscript", thesis_id=record.id, version_id=version.id),
            )
    return payload


def _present_all(records: List[ThesisRecord]) -> List[Dict[str, Any]]:
    return [_present(record) for record in records]


def _payload() -> Dict[str, Any]:
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def _text(value: Any) -> Optional[str]:
    # JSON bodies may carry numbers or booleans where text is expected
    return None if value is None else str(value)


def _split_names(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(item) for item in value]
    if isinstance(value, str):
        return value.split(",")
    return []


def _uploaded_manuscript(required: bool) -> Optional[Manuscript]:
    upload = request.files.get("manuscript")
    if upload is None or not upload.filename:
        if required:
            raise ValidationError("Attach the manuscript PDF as 'manuscript'")
        return None
    return manuscript_service.encode_manuscript(
        upload.filename,
        upload.read(),
        upload.mimetype,
        max_bytes=_portal().max_manuscript_bytes,
    )


def _send_manuscript(file_url: Optional[str], file_name: Optional[str]):
    if not file_url:
        return jsonify({"error": "No manuscript is stored for this entry"}), 410
    if manuscript_service.is_external(file_url):
        return redirect(file_url)
    mime_type, content = manuscript_service.decode_manuscript(file_url)
    return send_file(BytesIO(content), mimetype=mime_type, download_name=file_name or "manuscript.pdf")


@api_blueprint.get("/health")
def healthcheck():
    """Lightweight liveness check for uptime monitors."""
    return jsonify({"status": "ok"}), 200


@api_blueprint.get("/profiles")
def list_profiles():
    return jsonify({"profiles": [Actor.from_row(row).to_dict() for row in list_users()]}), 200


# --- Library and queues -------------------------------------------------------
@api_blueprint.get("/library")
def library():
    service = _portal().thesis_service
    records = service.library(department=request.args.get("department"), query=request.args.get("q"))
    return jsonify({"theses": _present_all(records), "departments": service.departments()}), 200


@api_blueprint.get("/theses/mine")
def my_theses():
    actor = _resolve_actor()
    _require(actor, Role.STUDENT)
    records = _portal().thesis_service.portfolio(
        actor.id,
        status=request.args.get("status"),
        query=request.args.get("q"),
    )
    return jsonify({"theses": _present_all(records)}), 200


@api_blueprint.get("/review-queue")
def review_queue():
    actor = _resolve_actor()
    _require(actor, Role.REVIEWER)
    records = _portal().thesis_service.review_queue(query=request.args.get("q"))
    return jsonify({"theses": _present_all(records)}), 200


@api_blueprint.get("/sanction-queue")
def sanction_queue():
    actor = _resolve_actor()
    _require(actor, Role.ADMIN)
    entries = _portal().thesis_service.sanction_queue(query=request.args.get("q"))
    return jsonify({"queue": [{"thesis": _present(e["thesis"]), "ready": e["ready"]} for e in entries]}), 200


# --- Thesis lifecycle ---------------------------------------------------------
@api_blueprint.get("/theses/<thesis_id>")
def get_thesis(thesis_id: str):
    record = _portal().thesis_service.get(thesis_id)
    return jsonify({"thesis": _present(record)}), 200


@api_blueprint.post("/theses")
def submit_thesis():
    actor = _resolve_actor()
    payload = _payload()
    draft = SubmissionDraft(
        title=_text(payload.get("title")) or "",
        abstract=_text(payload.get("abstract")) or "",
        department=_text(payload.get("department")),
        supervisor_name=_text(payload.get("supervisor")),
        co_researchers=_split_names(payload.get("co_researchers")),
        keywords=_split_names(payload.get("keywords")),
        manuscript=_uploaded_manuscript(required=False),
    )
    record = _portal().thesis_service.submit(actor, draft)
    return jsonify({"thesis": _present(record)}), 201


@api_blueprint.patch("/theses/<thesis_id>")
def amend_thesis(thesis_id: str):
    actor = _resolve_actor()
    changes = request.get_json(silent=True) or {}
    if not isinstance(changes, dict) or not changes:
        raise ValidationError("Provide the fields to update as a JSON object")
    for name in ("title", "abstract", "department"):
        if name in changes:
            changes[name] = _text(changes[name])
    record = _portal().thesis_service.amend(actor, thesis_id, changes)
    return jsonify({"thesis": _present(record)}), 200


@api_blueprint.post("/theses/<thesis_id>/reviews")
def review_thesis(thesis_id: str):
    actor = _resolve_actor()
    payload = _payload()
    record = _portal().thesis_service.review(
        actor, thesis_id, payload.get("recommendation"), _text(payload.get("comment"))
    )
    return jsonify({"thesis": _present(record)}), 201


@api_blueprint.post("/theses/<thesis_id>/sanction")
def sanction_thesis(thesis_id: str):
    actor = _resolve_actor()
    payload = _payload()
    record = _portal().thesis_service.sanction(
        actor, thesis_id, payload.get("recommendation"), _text(payload.get("remarks"))
    )
    return jsonify({"thesis": _present(record)}), 201


@api_blueprint.post("/theses/<thesis_id>/revisions")
def resubmit_thesis(thesis_id: str):
    actor = _resolve_actor()
    payload = _payload()
    record = _portal().thesis_service.resubmit(
        actor,
        thesis_id,
        _uploaded_manuscript(required=True),
        _text(payload.get("change_note")),
        title=_text(payload.get("title")),
        abstract=_text(payload.get("abstract")),
    )
    return jsonify({"thesis": _present(record)}), 201


@api_blueprint.get("/theses/<thesis_id>/manuscript")
def get_manuscript(thesis_id: str):
    record = _portal().thesis_service.get(thesis_id)
    return _send_manuscript(record.file_url, record.file_name)


@api_blueprint.get("/theses/<thesis_id>/versions/<version_id>/manuscript")
def get_version_manuscript(thesis_id: str, version_id: str):
    record = _portal().thesis_service.get(thesis_id)
    version = next((v for v in record.versions or [] if v.id == version_id), None)
    if version is None:
        return jsonify({"error": f"Version '{version_id}' was not found"}), 404
    return _send_manuscript(version.file_url, version.file_name)


# --- AI assistant (display only) ----------------------------------------------
@api_blueprint.post("/theses/<thesis_id>/summary")
def summarize_thesis(thesis_id: str):
    record = _portal().thesis_service.get(thesis_id)
    return jsonify({"summary": _portal().assistant.summarize(record.title, record.abstract)}), 200


@api_blueprint.post("/assistant/metadata")
def suggest_metadata():
    payload = request.get_json(silent=True) or {}
    title, abstract = payload.get("title"), payload.get("abstract")
    if not title or not abstract:
        raise ValidationError("Provide title and abstract for AI analysis")
    metadata = _portal().assistant.extract_metadata(title, abstract)
    if metadata is None:
        return jsonify({"metadata": None}), 200
    return jsonify({
        "metadata": {
            "keywords": metadata.keywords,
            "suggestedDepartment": metadata.suggested_department,
            "academicLevel": metadata.academic_level,
        }
    }), 200


@api_blueprint.post("/assistant/analysis")
def analyze_proposal():
    payload = request.get_json(silent=True) or {}
    title, abstract = payload.get("title"), payload.get("abstract")
    if not title or not abstract:
        raise ValidationError("Provide title and abstract for AI analysis")
    analysis = _portal().assistant.analyze_idea(title, abstract)
    if analysis is None:
        return jsonify({"analysis": None}), 200
    return jsonify({
        "analysis": {
            "feedback": analysis.feedback,
            "researchQuestions": analysis.research_questions,
            "keywords": analysis.keywords,
            "suggestions": analysis.suggestions,
        }
    }), 200


@api_blueprint.post("/assistant/titles")
def refine_title():
    payload = request.get_json(silent=True) or {}
    title = payload.get("title")
    if not title:
        raise ValidationError("Provide a title to refine")
    return jsonify({"titles": _portal().assistant.refine_title(title)}), 200


# --- Messages -----------------------------------------------------------------
@api_blueprint.get("/messages/<other_id>")
def get_conversation(other_id: str):
    actor = _resolve_actor()
    thread = _portal().messages.list_conversation(actor.id, other_id)
    return jsonify({
        "messages": [message.to_dict() for message in thread],
        "unread": _portal().messages.unread_count(actor.id),
    }), 200


@api_blueprint.post("/messages/<other_id>")
def send_message(other_id: str):
    actor = _resolve_actor()
    if not find_user_by_id(other_id):
        raise ValidationError(f"Unknown recipient '{other_id}'")
    payload = request.get_json(silent=True) or {}
    message = _portal().messages.send_message(actor.id, other_id, payload.get("text") or "")
    return jsonify({"message": message.to_dict()}), 201


@api_blueprint.post("/messages/<other_id>/read")
def mark_read(other_id: str):
    actor = _resolve_actor()
    changed = _portal().messages.mark_conversation_read(actor.id, other_id)
    return jsonify({"marked": changed}), 200


# --- Storage maintenance ------------------------------------------------------
@api_blueprint.get("/storage/usage")
def storage_usage():
    storage = _portal().storage_service
    return jsonify({
        "used_bytes": storage.get_storage_usage_bytes(),
        "capacity_bytes": storage.capacity_bytes(),
    }), 200


@api_blueprint.delete("/storage/app-data")
def clear_app_data():
    actor = _resolve_actor()
    _require(actor, Role.ADMIN)
    _portal().storage_service.clear_app_data()
    return jsonify({"detail": "Application data cleared"}), 200


@api_blueprint.post("/storage/reset")
def request_storage_reset():
    actor = _resolve_actor()
    _require(actor, Role.ADMIN)
    token = secrets.token_urlsafe(16)
    _portal().reset_tokens[actor.id] = token
    return jsonify({
        "confirmation_token": token,
        "detail": "This erases every stored entry. Repeat with DELETE /api/storage and this token to confirm.",
    }), 202


@api_blueprint.delete("/storage")
def reset_storage():
    actor = _resolve_actor()
    _require(actor, Role.ADMIN)
    payload = request.get_json(silent=True) or {}
    expected = _portal().reset_tokens.pop(actor.id, None)
    supplied = str(payload.get("confirmation_token") or "")
    if not expected or not secrets.compare_digest(expected.encode(), supplied.encode()):
        raise ValidationError("Request a reset first and confirm with the token you received")
    logger.warning("Full storage reset confirmed by %s", actor.id)
    _portal().storage_service.reset_all_storage()
    return jsonify({"detail": "All stored data erased"}), 200
