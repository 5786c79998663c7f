from .llm.gemini_client import GeminiError, GeminiText, RetryConfig
from .services.thesis_advisor import IdeaAnalysis, ThesisAdvisor, ThesisMetadata

__all__ = [
    "GeminiError",
    "GeminiText",
    "RetryConfig",
    "IdeaAnalysis",
    "ThesisAdvisor",
    "ThesisMetadata",
]
