import logging
from typing import Protocol
import requests

from .config import Settings, get_settings
from .errors import BackendNotConfigured, ModelInvocationFailure
from .preprocess import to_b64

logger = logging.getLogger(__name__)

class ModelBackend(Protocol):
    def invoke(self, model_id: str, prompt: str, image_bytes: bytes, mime_type: str) -> str:
        """Send prompt + image to ``model_id`` and return the raw text answer."""
        ...

class GeminiBackend:
    """Google Generative Language REST API (generateContent)."""

    def __init__(self, api_key: str, base_url: str, timeout_s: float = 45.0,
                 session: requests.Session = None):
        if not api_key:
            raise BackendNotConfigured("GEMINI_API_KEY not configured. Please set up your API key.")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.http = session or requests

    @classmethod
    def from_settings(cls, settings: Settings = None) -> "GeminiBackend":
        settings = settings or get_settings()
        return cls(settings.gemini_api_key, settings.gemini_api_url, settings.model_timeout_s)

    def _payload(self, prompt: str, image_bytes: bytes, mime_type: str) -> dict:
        return {
            "contents": [{
                "role": "user",
                "parts": [
                    {"text": prompt},
                    {"inline_data": {"mime_type": mime_type, "data": to_b64(image_bytes)}},
                ],
            }],
            "generationConfig": {"temperature": 0.0, "responseMimeType": "application/json"},
        }

    def invoke(self, model_id: str, prompt: str, image_bytes: bytes, mime_type: str) -> str:
        url = f"{self.base_url}/{model_id}:generateContent"
        try:
            r = self.http.post(
                url,
                headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                json=self._payload(prompt, image_bytes, mime_type),
                timeout=self.timeout_s,
            )
            r.raise_for_status()
            data = r.json()
        except requests.Timeout as e:
            raise ModelInvocationFailure(f"{model_id} timed out after {self.timeout_s}s") from e
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else "?"
            raise ModelInvocationFailure(f"{model_id} returned HTTP {status}") from e
        except (requests.RequestException, ValueError) as e:
            raise ModelInvocationFailure(f"{model_id} request failed: {e}") from e

        # first candidate, concatenated text parts
        try:
            parts = data["candidates"][0]["content"]["parts"]
            text = "".join(p.get("text", "") for p in parts)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            feedback = data.get("promptFeedback") if isinstance(data, dict) else None
            reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
            raise ModelInvocationFailure(
                f"{model_id} returned no candidates" + (f" (blocked: {reason})" if reason else "")) from e
        if not text.strip():
            raise ModelInvocationFailure(f"{model_id} returned an empty response")
        logger.debug("%s raw response: %s", model_id, text[:500])
        return text
