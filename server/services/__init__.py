from .assistant_service import AssistantService
from .storage_service import StorageService
from .thesis_service import ThesisService

__all__ = [
    "AssistantService",
    "StorageService",
    "ThesisService",
]
