from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from flask import Flask

from storage.sqlite import database
from storage.sqlite.kv_store import KeyValueStore

from .config.settings import load_config
from .controllers.api_controller import api_blueprint
from .data_access.message_repository import MessageRepository
from .data_access.thesis_repository import ThesisRepository
from .data_access.user_repository import seed_demo_profiles
from .services.assistant_service import AssistantService
from .services.storage_service import StorageService
from .services.thesis_service import ThesisService


@dataclass
class Portal:
    """Everything the request handlers need, built once per app."""

    store: KeyValueStore
    theses: ThesisRepository
    messages: MessageRepository
    thesis_service: ThesisService
    storage_service: StorageService
    assistant: AssistantService
    max_manuscript_bytes: int
    reset_tokens: Dict[str, str] = field(default_factory=dict)


def build_portal(config: Mapping[str, object], assistant: Optional[AssistantService] = None) -> Portal:
    if config.get("SQLITE_PATH"):
        database.configure(str(config["SQLITE_PATH"]))
    seed_demo_profiles()

    store = KeyValueStore(
        namespace=str(config["STORAGE_NAMESPACE"]),
        capacity_bytes=int(config["STORAGE_CAPACITY_BYTES"]),
    )
    theses = ThesisRepository(store)
    messages = MessageRepository(store)
    return Portal(
        store=store,
        theses=theses,
        messages=messages,
        thesis_service=ThesisService(theses, max_attempts=int(config["SAVE_MAX_ATTEMPTS"])),
        storage_service=StorageService(store, theses, messages),
        assistant=assistant
        or AssistantService(model=str(config["LLM_MODEL"]), analysis_model=str(config["LLM_ANALYSIS_MODEL"])),
        max_manuscript_bytes=int(config["MAX_MANUSCRIPT_BYTES"]),
    )


def create_app(
    config_name: str = "development",
    overrides: Optional[Mapping[str, object]] = None,
    *,
    assistant: Optional[AssistantService] = None,
) -> Flask:
    app = Flask(__name__)
    app.config.from_mapping(load_config(config_name))
    if overrides:
        app.config.from_mapping(overrides)

    app.extensions["scholarflow"] = build_portal(app.config, assistant=assistant)
    app.register_blueprint(api_blueprint, url_prefix="/api")

    return app
