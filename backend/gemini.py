"""Gemini text-generation client used for console annotations."""

import logging
from typing import Optional

import httpx

from computevis.annotation import FLASH_MODEL, PRO_MODEL, Annotator, RateLimitedError

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"


def extract_text(payload: dict) -> str:
    """Concatenate the text parts of the first candidate."""
    candidates = payload.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)


class GeminiAnnotator(Annotator):
    """Annotator backed by the Generative Language REST API."""

    def __init__(
        self,
        api_key: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        training_model: str = PRO_MODEL,
        inference_model: str = FLASH_MODEL,
        retries: int = 2,
        backoff: float = 1.0,
    ):
        self.api_key = api_key
        self._client = client or httpx.AsyncClient(
            base_url=GEMINI_API_BASE, timeout=timeout
        )
        self.training_model = training_model
        self.inference_model = inference_model
        self.comparison_model = inference_model
        self.retries = retries
        self.backoff = backoff

    async def generate(self, prompt: str, model: str) -> str:
        response = await self._client.post(
            f"/models/{model}:generateContent",
            headers={"x-goog-api-key": self.api_key},
            json={"contents": [{"parts": [{"text": prompt}]}]},
        )
        if response.status_code == 429:
            raise RateLimitedError(f"{model} rate limited")
        response.raise_for_status()
        return extract_text(response.json())

    async def aclose(self) -> None:
        await self._client.aclose()
