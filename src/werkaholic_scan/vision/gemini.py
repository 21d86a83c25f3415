import base64
import logging

import aiohttp

from ..errors import ClassifierError, RateLimitedError
from ..models.scan_result import ScanResult
from ..sources.frames import Frame
from .prompt import LISTING_PROMPT, parse_listing

logger = logging.getLogger(__name__)


class GeminiClassifier:
    """Turn a still frame into a resale listing using the Gemini REST API."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        temperature: float = 0.3,
        timeout: float = 60,
    ):
        if not api_key:
            raise ValueError("A Gemini API key is required")
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

    def _request_body(self, frame: Frame) -> dict:
        return {
            "contents": [
                {
                    "parts": [
                        {
                            "inline_data": {
                                "mime_type": frame.media_type,
                                "data": base64.b64encode(frame.data).decode("utf-8"),
                            }
                        },
                        {"text": LISTING_PROMPT},
                    ]
                }
            ],
            "generationConfig": {
                "responseMimeType": "application/json",
                "temperature": self.temperature,
            },
        }

    async def classify(self, frame: Frame) -> ScanResult:
        url = f"{self.BASE_URL}/{self.model}:generateContent"
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url,
                    params={"key": self.api_key},
                    json=self._request_body(frame),
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as resp:
                    body = await resp.json(content_type=None)
                    status = resp.status
        except aiohttp.ClientError as e:
            raise ClassifierError(f"Gemini request failed: {e}") from e

        error = (body or {}).get("error") if isinstance(body, dict) else None
        if status == 429 or (error and error.get("status") == "RESOURCE_EXHAUSTED"):
            raise RateLimitedError("Gemini rate limit reached", {"status": status, "error": error})
        if status >= 400 or error:
            raise ClassifierError(f"Gemini returned HTTP {status}", {"status": status, "error": error})

        text = _first_text(body)
        if not text:
            raise ClassifierError("No text in Gemini response", body)

        try:
            payload = parse_listing(text)
        except ValueError as e:
            logger.debug(f"Raw response text: {text[:300]}")
            raise ClassifierError(f"Failed to parse Gemini response: {e}", text) from e

        return ScanResult.from_payload(payload)


def _first_text(body: dict) -> str:
    for candidate in body.get("candidates", []):
        for part in candidate.get("content", {}).get("parts", []):
            if part.get("text"):
                return part["text"].strip()
    return ""
