import json
import logging
import os
import time
from typing import Any, Optional, Protocol

import httpx

from pulse.core.parsed_data import AIClassification

logger = logging.getLogger(__name__)

OPENAI_CHAT_URL = os.getenv("OPENAI_CHAT_URL", "https://api.openai.com/v1/chat/completions")
CLASSIFIER_TEXT_MODEL = os.getenv("CLASSIFIER_TEXT_MODEL", "gpt-4o-mini")
CLASSIFIER_VISION_MODEL = os.getenv("CLASSIFIER_VISION_MODEL", "gpt-4o")
MEDIA_BASE_URL = os.getenv("MEDIA_BASE_URL", "").rstrip("/")

LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))
LLM_CONNECT_TIMEOUT_SECONDS = float(os.getenv("LLM_CONNECT_TIMEOUT_SECONDS", "10"))
LLM_WRITE_TIMEOUT_SECONDS = float(os.getenv("LLM_WRITE_TIMEOUT_SECONDS", "30"))
LLM_POOL_TIMEOUT_SECONDS = float(os.getenv("LLM_POOL_TIMEOUT_SECONDS", "60"))
LLM_RETRY_COUNT = int(os.getenv("LLM_RETRY_COUNT", "1"))
LLM_RETRY_BACKOFF_SECONDS = float(os.getenv("LLM_RETRY_BACKOFF_SECONDS", "0.75"))
LLM_MAX_TOKENS_CLASSIFY = int(os.getenv("LLM_MAX_TOKENS_CLASSIFY", "500"))
LLM_MAX_TOKENS_EXTRACT = int(os.getenv("LLM_MAX_TOKENS_EXTRACT", "1000"))

CLASSIFICATION_PROMPT = """You classify wellness and fitness log entries from text and/or images.
Return strict JSON:
{
  "detected_event_types": ["weight" | "nutrition" | "workout" | "steps" | "sleep" | "checkin_mood" | "note" | "other"],
  "has_weight": boolean,
  "has_nutrition": boolean,
  "has_workout": boolean,
  "has_steps": boolean,
  "has_sleep": boolean,
  "has_mood": boolean,
  "overall_confidence": number between 0.0 and 1.0
}
Be liberal with nutrition: any mention or photo of food, meals, snacks or drinks counts
("had lunch", "grabbed a bite", a plate of pasta).
Be conservative with the others:
- "Weighed in at 165 lbs", a scale display or a body progress photo -> has_weight
- "30 min leg workout", gym or exercise photos -> has_workout
- "10k steps today" -> has_steps
- "Slept 7 hours" -> has_sleep
- "Energy is 8/10, feeling great" -> has_mood
Screenshots of fitness apps are classified by the data they show."""

EXTRACTION_PROMPT = """You extract structured wellness and fitness data from text and/or images.
Return strict JSON containing only the keys that have data:
{
  "nutrition": {"food_description": string, "calories": number|null, "calories_est": number,
                "protein_g": number|null, "protein_est_g": number, "carbs_g": number|null,
                "carbs_est_g": number, "fat_g": number|null, "fat_est_g": number,
                "source": "logged"|"estimated", "estimated": boolean, "confidence": 0.0-1.0},
  "workout": {"type": "strength"|"cardio"|"hiit"|"mobility"|"mixed"|"unknown",
              "body_focus": ["upper"|"lower"|"full"|"core"|"unspecified"],
              "duration_min": number|null, "intensity": "low"|"medium"|"high"|"unknown",
              "notes": string, "confidence": 0.0-1.0},
  "weight": {"value": number, "unit": "kg"|"lbs", "confidence": 0.0-1.0},
  "steps": {"steps": number, "source": "manual"|"device", "confidence": 0.0-1.0},
  "sleep": {"hours": number, "quality": "poor"|"fair"|"good"|"excellent"|null, "confidence": 0.0-1.0},
  "mood": {"rating": 1-10, "notes": string|null, "confidence": 0.0-1.0}
}
For any food content always describe the food and fill the *_est fields with typical values,
marking estimated=true and source="estimated". Use confidence 0.4-0.6 for vague descriptions
and 0.7-0.9 for detailed text or clear photos.
For every other category include only values that are stated or visible."""


def _http_timeout() -> httpx.Timeout:
    return httpx.Timeout(
        connect=LLM_CONNECT_TIMEOUT_SECONDS,
        read=LLM_TIMEOUT_SECONDS,
        write=LLM_WRITE_TIMEOUT_SECONDS,
        pool=LLM_POOL_TIMEOUT_SECONDS,
    )


class LLMRequestError(RuntimeError):
    def __init__(self, provider: str, model: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.status_code = status_code


def parse_llm_json(raw_text: str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw_text)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    start = raw_text.find("{")
    end = raw_text.rfind("}")
    if start != -1 and end != -1 and end > start:
        try:
            parsed = json.loads(raw_text[start : end + 1])
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass
    raise ValueError("Invalid JSON response from LLM")


def resolve_media_url(reference: str) -> Optional[str]:
    """Map a stored media reference to a URL the model can fetch."""
    ref = (reference or "").strip()
    if not ref:
        return None
    if ref.startswith(("https://", "http://", "data:image/")):
        return ref
    if MEDIA_BASE_URL:
        return f"{MEDIA_BASE_URL}/{ref.lstrip('/')}"
    return None


def build_content_parts(text: Optional[str], media_urls: list[str], image_detail: str) -> list[dict[str, Any]]:
    parts: list[dict[str, Any]] = []
    if text and text.strip():
        parts.append({"type": "text", "text": text})
    for reference in media_urls:
        url = resolve_media_url(reference)
        if url is None:
            logger.warning("media_reference_unresolved reference=%s", reference[:80])
            continue
        parts.append({"type": "image_url", "image_url": {"url": url, "detail": image_detail}})
    return parts


def _has_images(parts: list[dict[str, Any]]) -> bool:
    return any(part.get("type") == "image_url" for part in parts)


class ClassifierClient(Protocol):
    def classify(self, text: Optional[str], media_urls: list[str]) -> dict[str, Any]:
        ...

    def extract(
        self, text: Optional[str], media_urls: list[str], classification: AIClassification
    ) -> dict[str, Any]:
        ...


class OpenAIClassifierClient:
    provider = "openai"

    def __init__(self, api_key: Optional[str] = None) -> None:
        self.api_key = api_key if api_key is not None else os.getenv("OPENAI_API_KEY", "")

    def classify(self, text: Optional[str], media_urls: list[str]) -> dict[str, Any]:
        parts = build_content_parts(text, media_urls, image_detail="auto")
        if not parts:
            return AIClassification.degraded().model_dump(mode="json")
        model = CLASSIFIER_VISION_MODEL if _has_images(parts) else CLASSIFIER_TEXT_MODEL
        return self._chat_json(model, CLASSIFICATION_PROMPT, parts, LLM_MAX_TOKENS_CLASSIFY)

    def extract(
        self, text: Optional[str], media_urls: list[str], classification: AIClassification
    ) -> dict[str, Any]:
        parts = build_content_parts(text, media_urls, image_detail="high")
        if not parts:
            return {}
        model = CLASSIFIER_VISION_MODEL if _has_images(parts) else CLASSIFIER_TEXT_MODEL
        return self._chat_json(model, EXTRACTION_PROMPT, parts, LLM_MAX_TOKENS_EXTRACT)

    def _request(
        self, model: str, system_prompt: str, parts: list[dict[str, Any]], max_tokens: int
    ) -> str:
        response = httpx.post(
            OPENAI_CHAT_URL,
            headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
            json={
                "model": model,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": parts},
                ],
                "temperature": 0.1,
                "response_format": {"type": "json_object"},
                "max_tokens": max_tokens,
            },
            timeout=_http_timeout(),
        )
        response.raise_for_status()
        data = response.json()
        text = str(data["choices"][0]["message"].get("content") or "").strip()
        if not text:
            raise ValueError("OpenAI chat completion returned empty content")
        return text

    def _chat_json(
        self, model: str, system_prompt: str, parts: list[dict[str, Any]], max_tokens: int
    ) -> dict[str, Any]:
        if not self.api_key:
            raise LLMRequestError(provider=self.provider, model=model, message="OPENAI_API_KEY is not configured")
        attempts = max(1, LLM_RETRY_COUNT + 1)
        last_error = "unknown error"
        for idx in range(attempts):
            try:
                return parse_llm_json(self._request(model, system_prompt, parts, max_tokens))
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code if exc.response is not None else None
                detail = (exc.response.text or "").strip()[:220] if exc.response is not None else ""
                # Client errors will not succeed on retry.
                if status is not None and status < 500 and status != 429:
                    raise LLMRequestError(
                        provider=self.provider,
                        model=model,
                        status_code=status,
                        message=f"OpenAI request failed (status={status}): {detail or 'no response body'}",
                    ) from exc
                last_error = f"status={status}"
            except httpx.ReadTimeout:
                last_error = "read timeout"
            except (httpx.HTTPError, ValueError, KeyError, IndexError) as exc:
                last_error = str(exc)[:220]
            if idx < attempts - 1:
                time.sleep(LLM_RETRY_BACKOFF_SECONDS * (idx + 1))
        raise LLMRequestError(provider=self.provider, model=model, message=f"OpenAI request failed: {last_error}")


def get_classifier_client() -> ClassifierClient:
    return OpenAIClassifierClient()
