# rostersync/providers/gemini_provider.py

from typing import Any, Dict

from loguru import logger

from rostersync.models.enums import ProviderKind
from rostersync.models.errors import ExtractionError
from .base_provider import BaseProvider, ProviderResponse

GEMINI_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiProvider(BaseProvider):
    """Google Gemini generateContent client with Google Search grounding."""

    kind = ProviderKind.GEMINI

    def __init__(self, *args, use_search_grounding: bool = True, **kwargs):
        super().__init__(*args, **kwargs)
        self.use_search_grounding = use_search_grounding

    def _payload(self, prompt: str, system_instruction: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }
        if self.use_search_grounding:
            payload["tools"] = [{"google_search": {}}]
        return payload

    async def generate(self, prompt: str, system_instruction: str) -> ProviderResponse:
        url = f"{GEMINI_API_BASE_URL}/models/{self.model}:generateContent"
        response = await self._make_request(
            method="POST",
            url=url,
            headers={"x-goog-api-key": self.api_key},
            json_data=self._payload(prompt, system_instruction),
        )
        body = self._json_body(response)

        text = self._extract_text(body)
        if not text:
            block_reason = (body.get("promptFeedback") or {}).get("blockReason")
            if block_reason:
                raise ExtractionError(
                    f"AI Request blocked: {block_reason}", provider_id=self.provider_id
                )
            raise ExtractionError("AI returned an empty response.", provider_id=self.provider_id)

        usage = body.get("usageMetadata")
        logger.debug(f"{self.provider_id} returned {len(text)} characters.")
        return ProviderResponse(
            provider_id=self.provider_id,
            text=text,
            usage=usage if isinstance(usage, dict) else {},
        )

    @staticmethod
    def _extract_text(body: Dict[str, Any]) -> str:
        """Concatenates the text parts of the first candidate."""
        candidates = body.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return ""
        content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            return ""
        return "".join(
            part["text"]
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ).strip()
