# rostersync/providers/openrouter_provider.py

from typing import Any, Dict

from rostersync.models.enums import ProviderKind
from rostersync.models.errors import ExtractionError
from .base_provider import BaseProvider, ProviderResponse

OPENROUTER_API_URL = "https://openrouter.ai/api/v1/chat/completions"
APP_TITLE = "RosterSync"


class OpenRouterProvider(BaseProvider):
    """OpenAI-style chat completions client for OpenRouter-hosted models."""

    kind = ProviderKind.OPENROUTER

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": APP_TITLE,
        }

    async def generate(self, prompt: str, system_instruction: str) -> ProviderResponse:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.0,
        }
        response = await self._make_request(
            method="POST", url=OPENROUTER_API_URL, headers=self._headers(), json_data=payload
        )
        body = self._json_body(response)

        try:
            text = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            text = None
        if not isinstance(text, str) or not text.strip():
            raise ExtractionError("AI returned an empty response.", provider_id=self.provider_id)

        usage = body.get("usage")
        return ProviderResponse(
            provider_id=self.provider_id,
            text=text,
            usage=usage if isinstance(usage, dict) else {},
        )
