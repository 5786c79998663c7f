# ai_assistant/services/thesis_advisor.py
"""
Prompts for the librarian / advisor helpers shown next to a thesis.

Nothing produced here is validated input for the review workflow; it is
advisory text for display only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from ai_assistant.llm.gemini_client import GeminiError, GeminiText

_METADATA_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "keywords": {"type": "ARRAY", "items": {"type": "STRING"}},
        "suggestedDepartment": {"type": "STRING"},
        "academicLevel": {"type": "STRING", "description": "Masters, PhD, or Undergraduate"},
    },
    "required": ["keywords", "suggestedDepartment"],
}

_ANALYSIS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "feedback": {"type": "STRING", "description": "General constructive feedback"},
        "researchQuestions": {"type": "ARRAY", "items": {"type": "STRING"}, "description": "3-5 core research questions"},
        "keywords": {"type": "ARRAY", "items": {"type": "STRING"}, "description": "Key literature areas"},
        "suggestions": {"type": "STRING", "description": "Specific improvements"},
    },
    "required": ["feedback", "researchQuestions", "keywords"],
}

_TITLES_SCHEMA = {"type": "ARRAY", "items": {"type": "STRING"}}


@dataclass
class ThesisMetadata:
    keywords: List[str]
    suggested_department: str
    academic_level: Optional[str] = None


@dataclass
class IdeaAnalysis:
    feedback: str
    research_questions: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    suggestions: Optional[str] = None


def _string_list(value: Any, *, limit: int = 10) -> List[str]:
    if not isinstance(value, list):
        raise GeminiError("Expected a list of strings", payload={"value": value})
    return [str(item).strip() for item in value if str(item).strip()][:limit]


def _require_object(value: Any) -> dict:
    if not isinstance(value, dict):
        raise GeminiError("Expected a JSON object", payload={"value": value})
    return value


class ThesisAdvisor:
    def __init__(self, text_client: GeminiText, *, analysis_model: Optional[str] = None) -> None:
        self._text = text_client
        self._analysis_model = analysis_model

    def summarize(self, title: str, abstract: str) -> str:
        prompt = (
            "Provide a concise, professional 2-sentence executive summary of the following thesis abstract. "
            "Do not use conversational filler.\n"
            f"Title: {title}\n"
            f"Abstract: {abstract}"
        )
        text = self._text.chat(prompt, temperature=0.3, max_output_tokens=256).strip()
        if not text:
            raise GeminiError("Empty summary returned")
        return text

    def extract_metadata(self, title: str, abstract: str) -> ThesisMetadata:
        prompt = (
            "You are an academic librarian. Analyze this thesis title and abstract to suggest 5 relevant "
            "keywords and a specific academic department.\n"
            f"Title: {title}\n"
            f"Abstract: {abstract}"
        )
        data = _require_object(self._text.generate_json(prompt, _METADATA_SCHEMA))
        department = str(data.get("suggestedDepartment") or "").strip()
        if not department:
            raise GeminiError("No department suggested", payload=data)
        level = data.get("academicLevel")
        return ThesisMetadata(
            keywords=_string_list(data.get("keywords"), limit=5),
            suggested_department=department,
            academic_level=str(level).strip() if level else None,
        )

    def analyze_idea(self, title: str, abstract: str) -> IdeaAnalysis:
        prompt = (
            "You are an expert academic advisor. Analyze the following thesis proposal (title and abstract) "
            "and provide structured feedback.\n"
            f"Title: {title}\n"
            f"Abstract: {abstract}"
        )
        data = _require_object(self._text.generate_json(prompt, _ANALYSIS_SCHEMA, model=self._analysis_model))
        feedback = str(data.get("feedback") or "").strip()
        if not feedback:
            raise GeminiError("No feedback returned", payload=data)
        suggestions = data.get("suggestions")
        return IdeaAnalysis(
            feedback=feedback,
            research_questions=_string_list(data.get("researchQuestions"), limit=5),
            keywords=_string_list(data.get("keywords")),
            suggestions=str(suggestions).strip() if suggestions else None,
        )

    def refine_title(self, title: str) -> List[str]:
        prompt = (
            "Suggest 5 professional and academically rigorous title variations for the following "
            f'thesis title: "{title}"'
        )
        return _string_list(self._text.generate_json(prompt, _TITLES_SCHEMA, temperature=0.8), limit=5)
