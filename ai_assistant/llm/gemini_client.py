# ai_assistant/llm/gemini_client.py
from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

import requests

logger = logging.getLogger(__name__)

# Generative Language REST API (v1beta)
_GEN_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

_DEFAULT_MODEL = "gemini-2.0-flash"


@dataclass
class RetryConfig:
    max_attempts: int = 3
    backoff_factor: float = 1.6
    retry_statuses: Tuple[int, ...] = (408, 429, 500, 502, 503, 504)

    def delay(self, attempt: int) -> float:
        return self.backoff_factor ** (attempt - 1)


class GeminiError(RuntimeError):
    """Transport failure, non-retryable status, or model output that cannot be used."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, payload: Optional[Dict] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}


def _default_session_factory() -> requests.Session:
    session = requests.Session()
    # retries are handled in _post
    adapter = requests.adapters.HTTPAdapter(max_retries=0)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def _error_body(resp: requests.Response) -> Dict:
    try:
        return resp.json()
    except ValueError:
        return {"error": {"code": resp.status_code, "message": resp.text}}


def _post(
    url: str,
    api_key: str,
    payload: Dict,
    *,
    timeout: int = 60,
    retry: Optional[RetryConfig] = None,
    session_factory: Callable[[], requests.Session] = _default_session_factory,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict:
    """POST ``payload`` and return the decoded body, backing off on transient failures."""
    retry = retry or RetryConfig()
    session = session_factory()
    headers = {"Content-Type": "application/json; charset=utf-8", "x-goog-api-key": api_key}
    body = json.dumps(payload)

    for attempt in range(1, retry.max_attempts + 1):
        final = attempt == retry.max_attempts
        try:
            resp = session.post(url, headers=headers, data=body, timeout=timeout)
        except requests.RequestException as exc:
            if final:
                raise GeminiError("Gemini request failed", payload={"error": str(exc)}) from exc
            logger.warning("Gemini transport error (attempt %s/%s): %s", attempt, retry.max_attempts, exc)
            sleep(retry.delay(attempt))
            continue

        if 200 <= resp.status_code < 300:
            try:
                return resp.json()
            except ValueError as exc:
                raise GeminiError("Gemini returned a non-JSON body", status_code=resp.status_code) from exc

        error = _error_body(resp)
        if final or resp.status_code not in retry.retry_statuses:
            raise GeminiError(
                f"Gemini returned status {resp.status_code}",
                status_code=resp.status_code,
                payload=error,
            )
        logger.info("Gemini status %s, retrying in %.2fs", resp.status_code, retry.delay(attempt))
        sleep(retry.delay(attempt))

    raise GeminiError("Gemini request was never attempted", payload={"max_attempts": retry.max_attempts})


def _first_text(data: Any) -> str:
    """Text of the first candidate part; a body of any other shape raises ``GeminiError``."""
    if not isinstance(data, dict):
        raise GeminiError("Gemini response is not a JSON object", payload={"body": data})
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    try:
        parts = candidates[0].get("content", {}).get("parts") or []
        text = parts[0].get("text", "") if parts else ""
    except (AttributeError, IndexError, KeyError, TypeError) as exc:
        raise GeminiError("Gemini response has an unexpected shape", payload=data) from exc
    if not isinstance(text, str):
        raise GeminiError("Gemini response text is not a string", payload=data)
    return text


@dataclass
class GeminiText:
    """
    Text-generation client for the Gemini REST API.

    ``generate_json`` asks for ``application/json`` output constrained by a
    response schema; the parsed value is returned as-is and callers must still
    check its shape.
    """

    api_key: Optional[str] = None
    model: str = _DEFAULT_MODEL
    timeout: int = 60
    retry: RetryConfig = field(default_factory=RetryConfig)
    session_factory: Callable[[], requests.Session] = _default_session_factory

    def __post_init__(self) -> None:
        self.api_key = self.api_key or os.getenv("GEMINI_API_KEY")
        if not self.api_key:
            raise ValueError("GEMINI_API_KEY is not set")

    def _generate(self, prompt: str, generation_config: Dict[str, Any], model: Optional[str]) -> Dict:
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": dict(generation_config, candidateCount=1),
        }
        return _post(
            _GEN_URL.format(model=model or self.model),
            self.api_key,
            payload,
            timeout=self.timeout,
            retry=self.retry,
            session_factory=self.session_factory,
        )

    def chat(
        self,
        prompt: str,
        *,
        temperature: float = 0.7,
        max_output_tokens: int = 1024,
        model: Optional[str] = None,
    ) -> str:
        config = {"temperature": temperature, "maxOutputTokens": max_output_tokens}
        return _first_text(self._generate(prompt, config, model))

    def generate_json(
        self,
        prompt: str,
        schema: Dict[str, Any],
        *,
        temperature: float = 0.4,
        max_output_tokens: int = 2048,
        model: Optional[str] = None,
    ) -> Any:
        config = {
            "temperature": temperature,
            "maxOutputTokens": max_output_tokens,
            "responseMimeType": "application/json",
            "responseSchema": schema,
        }
        text = _first_text(self._generate(prompt, config, model)).strip()
        if not text:
            raise GeminiError("Gemini returned no content")
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise GeminiError("Gemini returned malformed JSON", payload={"text": text[:500]}) from exc
