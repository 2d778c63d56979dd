from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from rostersync.models.enums import ProviderKind
from rostersync.models.errors import (
    AuthError,
    BadRequestError,
    ExtractionError,
    RateLimitError,
    UnavailableError,
)

# HTTP status codes that mean "this provider is struggling, try another one"
UNAVAILABLE_STATUS_CODES = {408, 500, 502, 503, 504}


class ProviderResponse(BaseModel):
    """Raw generator output plus whatever usage figures the provider reported."""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    text: str
    usage: Dict[str, Any] = Field(default_factory=dict)


def classify_status(status_code: int) -> Optional[Type[ExtractionError]]:
    """Maps an HTTP status to the error class it should raise (None for success)."""
    if status_code < 400:
        return None
    if status_code in {401, 403}:
        return AuthError
    if status_code == 429:
        return RateLimitError
    if status_code in UNAVAILABLE_STATUS_CODES or status_code >= 500:
        return UnavailableError
    return BadRequestError


def error_message(response: httpx.Response) -> str:
    """Pulls the provider's own error message out of an error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return response.reason_phrase


class BaseProvider(ABC):
    """Abstract base class for roster generator clients."""

    kind: ProviderKind

    def __init__(
        self,
        model: str,
        api_key: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 60.0,
        transport_retry_attempts: int = 2,
    ):
        if not api_key:
            raise AuthError(f"Missing API key for provider {self.kind.value}:{model}")
        self.model = model
        self.api_key = api_key
        self.transport_retry_attempts = transport_retry_attempts
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=True,
        )

    @property
    def provider_id(self) -> str:
        return f"{self.kind.value}:{self.model}"

    @abstractmethod
    async def generate(self, prompt: str, system_instruction: str) -> ProviderResponse:
        """Send one prompt to the generator.

        Args:
            prompt: The user-turn text (e.g. "Extract the roster for: ...").
            system_instruction: The fixed instruction set for the task.

        Returns:
            The raw response text and usage figures. The text is untrusted and
            must go through the ResponseSanitizer.

        Raises:
            ExtractionError subclasses classified by HTTP status.
        """

    async def _make_request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Makes an HTTP request, retrying network errors in place."""
        logger.debug(f"Making request to {self.provider_id}", method=method, url=url)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.transport_retry_attempts),
                wait=wait_exponential(multiplier=1, min=1, max=10),
                retry=retry_if_exception_type(httpx.TransportError),
                reraise=True,
            ):
                with attempt:
                    response = await self.client.request(
                        method, url, headers=headers, params=params, json=json_data
                    )
        except httpx.TransportError as e:
            logger.warning(f"Network error talking to {self.provider_id}: {e!r}")
            raise UnavailableError(
                f"Network error: {e!r}", provider_id=self.provider_id
            ) from e

        error_cls = classify_status(response.status_code)
        if error_cls is not None:
            message = error_message(response)
            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After")
                logger.warning(
                    f"Rate limit hit (429) for {self.provider_id}. Retry-After: {retry_after}"
                )
            else:
                logger.warning(
                    f"{self.provider_id} returned {response.status_code}: {message}"
                )
            raise error_cls(
                message, provider_id=self.provider_id, status_code=response.status_code
            )

        logger.debug(f"Request successful: {response.status_code} for {self.provider_id}")
        return response

    def _json_body(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            raise ExtractionError(
                "Provider returned a non-JSON envelope.", provider_id=self.provider_id
            ) from e
        if not isinstance(body, dict):
            raise ExtractionError(
                "Provider returned an unexpected envelope.", provider_id=self.provider_id
            )
        return body

    async def close(self):
        """Closes the underlying HTTP client."""
        await self.client.aclose()
        logger.debug(f"Closed HTTP client for {self.provider_id}")
