from __future__ import annotations

import logging
from typing import Callable, List, Optional

from ai_assistant.llm.gemini_client import GeminiText
from ai_assistant.services.thesis_advisor import IdeaAnalysis, ThesisAdvisor, ThesisMetadata

logger = logging.getLogger(__name__)

SUMMARY_FALLBACK = "Summary unavailable."


class AssistantService:
    """
    Display-only AI helpers. Every failure of the text service (missing key,
    transport, malformed output) degrades to a neutral fallback.
    """

    def __init__(
        self,
        advisor_factory: Optional[Callable[[], ThesisAdvisor]] = None,
        *,
        model: Optional[str] = None,
        analysis_model: Optional[str] = None,
    ) -> None:
        self._advisor_factory = advisor_factory or (
            lambda: ThesisAdvisor(GeminiText(model=model) if model else GeminiText(), analysis_model=analysis_model)
        )
        self._advisor: Optional[ThesisAdvisor] = None

    def _get_advisor(self) -> ThesisAdvisor:
        if self._advisor is None:
            self._advisor = self._advisor_factory()
        return self._advisor

    def _call(self, label: str, fn: Callable[[ThesisAdvisor], object], fallback):
        try:
            return fn(self._get_advisor())
        except Exception as exc:
            logger.warning("AI %s unavailable: %s", label, exc)
            return fallback

    def summarize(self, title: str, abstract: str) -> str:
        return self._call("summary", lambda advisor: advisor.summarize(title, abstract), SUMMARY_FALLBACK)

    def extract_metadata(self, title: str, abstract: str) -> Optional[ThesisMetadata]:
        return self._call("metadata extraction", lambda advisor: advisor.extract_metadata(title, abstract), None)

    def analyze_idea(self, title: str, abstract: str) -> Optional[IdeaAnalysis]:
        return self._call("proposal analysis", lambda advisor: advisor.analyze_idea(title, abstract), None)

    def refine_title(self, title: str) -> List[str]:
        return self._call("title refinement", lambda advisor: advisor.refine_title(title), [])
