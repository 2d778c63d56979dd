import asyncio
import time
from dataclasses import dataclass
from typing import (
    Awaitable,
    Callable,
    Dict,
    Generic,
    Iterable,
    List,
    Optional,
    Sequence,
    TypeVar,
    Union,
)

from loguru import logger

from rostersync.models.enums import ErrorKind
from rostersync.models.errors import BadRequestError, ExtractionError
from rostersync.models.record import CanonicalRecord
from rostersync.normalization.sanitizer import ResponseSanitizer
from rostersync.providers.base_provider import BaseProvider, ProviderResponse

from .prompts import (
    ROSTER_SYSTEM_INSTRUCTION,
    TAGS_SYSTEM_INSTRUCTION,
    roster_prompt,
    tags_prompt,
)

T = TypeVar("T")

# Turns a provider response (and its latency in ms) into the task's result
ResponseParser = Callable[[ProviderResponse, int], T]

FINAL_ERROR_SUMMARIES = {
    ErrorKind.AUTH: "Access denied. The provider rejected the configured API key; check its restrictions",
    ErrorKind.BAD_REQUEST: "Bad request. The API key may be invalid or missing required permissions",
    ErrorKind.RATE_LIMIT: "Rate limit exceeded. The API quota is exhausted; wait a moment or check billing",
    ErrorKind.UNAVAILABLE: "Service unavailable. The AI models are under heavy load; try again in a moment",
    ErrorKind.PARSE: "The AI returned data that could not be parsed",
    ErrorKind.UNKNOWN: "AI service error",
}


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Retry:
    error: ExtractionError


@dataclass(frozen=True)
class Fatal:
    error: ExtractionError


AttemptOutcome = Union[Ok, Retry, Fatal]


def final_error(error: ExtractionError) -> ExtractionError:
    """Rebuilds the last provider error with an actionable, classified message."""
    summary = FINAL_ERROR_SUMMARIES.get(error.kind, FINAL_ERROR_SUMMARIES[ErrorKind.UNKNOWN])
    code = error.status_code if error.status_code is not None else error.kind.value
    source = f" [{error.provider_id}]" if error.provider_id else ""
    return type(error)(
        f"{summary} ({code}){source}: {error.message}",
        provider_id=error.provider_id,
        status_code=error.status_code,
    )


class ExtractionOrchestrator:
    """Runs a generator task against providers in priority order.

    Providers are tried one at a time. A non-retryable failure (auth, bad
    request) stops the loop at once; a retryable one moves on to the next
    provider after ``backoff_base ** attempt`` seconds. When the loop ends
    without a result, the last error is raised with its class preserved.
    """

    def __init__(
        self,
        providers: Sequence[BaseProvider],
        sanitizer: Optional[ResponseSanitizer] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        backoff_base: float = 2.0,
        clock: Callable[[], float] = time.perf_counter,
    ):
        if not providers:
            raise ValueError("ExtractionOrchestrator needs at least one provider.")
        self.providers = list(providers)
        self.sanitizer = sanitizer or ResponseSanitizer()
        self._sleep = sleep
        self.backoff_base = backoff_base
        self._clock = clock

    async def extract_roster(self, query: str) -> CanonicalRecord:
        """Extracts a canonical roster for a free-text team query."""
        if not query or not query.strip():
            raise BadRequestError("Team query must not be empty.")
        query = query.strip()

        def parse(response: ProviderResponse, latency_ms: int) -> CanonicalRecord:
            return self.sanitizer.sanitize_roster(
                response.text,
                query,
                provider_id=response.provider_id,
                usage=response.usage,
                latency_ms=latency_ms,
            )

        record = await self._run(
            "roster", roster_prompt(query), ROSTER_SYSTEM_INSTRUCTION, parse
        )
        logger.success(
            f"Extracted {len(record.players)} players for '{record.team_name}'"
            f" via {record.meta.provider_id if record.meta else 'unknown provider'}."
        )
        return record

    async def generate_player_tags(
        self,
        player_names: Iterable[str],
        team_name: Optional[str] = None,
        sport: Optional[str] = None,
    ) -> Dict[str, List[str]]:
        """Generates search aliases (nicknames, misspellings, #numbers) per player."""
        names = [name.strip() for name in player_names if name and name.strip()]
        if not names:
            return {}

        def parse(response: ProviderResponse, latency_ms: int) -> Dict[str, List[str]]:
            return self.sanitizer.sanitize_tags(response.text)

        tags = await self._run(
            "tags", tags_prompt(names, team_name, sport), TAGS_SYSTEM_INSTRUCTION, parse
        )
        logger.info(f"Generated tags for {len(tags)} of {len(names)} players.")
        return tags

    async def _attempt(
        self,
        provider: BaseProvider,
        prompt: str,
        system_instruction: str,
        parse: ResponseParser,
    ) -> AttemptOutcome:
        start = self._clock()
        try:
            response = await provider.generate(prompt, system_instruction)
            latency_ms = int((self._clock() - start) * 1000)
            return Ok(parse(response, latency_ms))
        except ExtractionError as e:
            if e.provider_id is None:
                e.provider_id = provider.provider_id
            error = e
        except Exception as e:
            logger.exception(f"Unexpected error from provider {provider.provider_id}: {e}")
            error = ExtractionError(str(e) or type(e).__name__, provider_id=provider.provider_id)
            error.__cause__ = e

        if error.retryable:
            return Retry(error)
        return Fatal(error)

    async def _run(
        self,
        task: str,
        prompt: str,
        system_instruction: str,
        parse: ResponseParser,
    ):
        last_error: Optional[ExtractionError] = None
        total = len(self.providers)

        for attempt, provider in enumerate(self.providers, start=1):
            logger.info(f"[{task}] Attempt {attempt}/{total}: {provider.provider_id}")
            outcome = await self._attempt(provider, prompt, system_instruction, parse)

            if isinstance(outcome, Ok):
                return outcome.value

            last_error = outcome.error
            logger.warning(
                f"[{task}] Provider {provider.provider_id} failed"
                f" ({last_error.kind.value}, status {last_error.status_code}): {last_error.message}"
            )

            if isinstance(outcome, Fatal):
                logger.error(f"[{task}] Non-retryable {last_error.kind.value} error. Aborting.")
                break

            if attempt < total:
                delay = self.backoff_base ** attempt
                logger.info(f"[{task}] Waiting {delay:g}s before switching providers...")
                await self._sleep(delay)

        error = final_error(last_error)
        logger.error(f"[{task}] Giving up: {error.message}")
        raise error from last_error
