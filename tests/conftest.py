from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import pytest

from rostersync.models.athlete import Athlete
from rostersync.models.enums import ProviderKind
from rostersync.models.record import CanonicalRecord
from rostersync.providers.base_provider import BaseProvider, ProviderResponse

Outcome = Union[str, BaseException]


class FakeProvider(BaseProvider):
    """Scripted provider: each call pops the next outcome (text or exception)."""

    kind = ProviderKind.GEMINI

    def __init__(
        self,
        model: str,
        outcomes: Sequence[Outcome] = (),
        usage: Optional[Dict[str, Any]] = None,
        hang: bool = False,
    ) -> None:
        # No HTTP client: generate() never leaves the process
        self.model = model
        self.api_key = "test-key"
        self.outcomes: List[Outcome] = list(outcomes)
        self.usage = usage or {}
        self.hang = hang
        self.calls: List[Dict[str, str]] = []
        self.closed = False

    async def generate(self, prompt: str, system_instruction: str) -> ProviderResponse:
        self.calls.append({"prompt": prompt, "system_instruction": system_instruction})
        if self.hang:
            await asyncio.Event().wait()
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return ProviderResponse(provider_id=self.provider_id, text=outcome, usage=self.usage)

    async def close(self) -> None:
        self.closed = True


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_provider() -> Callable[..., FakeProvider]:
    return FakeProvider


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_record() -> Callable[..., CanonicalRecord]:
    def factory(
        players: Sequence[tuple[str, str]] = (),
        sources: Sequence[str] = (),
        team_name: str = "Chelsea FC",
        sport: str = "Soccer",
        notes: str = "Verified against two sources.",
    ) -> CanonicalRecord:
        return CanonicalRecord(
            team_name=team_name,
            sport=sport,
            players=[Athlete(name=name, position=position) for name, position in players],
            verified_sources=list(sources),
            verification_notes=notes,
        )

    return factory
