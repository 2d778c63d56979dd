from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from rostersync.utils.misc_utils import is_valid_url, unique_strings

from .athlete import Athlete, canonical_order, identity_key, name_key
from .enums import DEFAULT_VERIFICATION_NOTES, UNKNOWN_SPORT


class ExtractionMeta(BaseModel):
    """Diagnostics for the provider call that produced a record."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    provider_id: str
    latency_ms: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class CanonicalRecord(BaseModel):
    """Validated, deduplicated roster for one team.

    Instances are immutable. The validators below keep ``players`` sorted by
    last name and free of duplicate identities, and keep every entry of
    ``verified_sources`` a parseable URL, regardless of how the record is
    built. Use the ``with_*`` helpers to derive modified copies;
    ``model_copy(update=...)`` skips validation and must not be used.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        str_strip_whitespace=True,
    )

    team_name: str = Field(..., min_length=1)
    sport: str = Field(UNKNOWN_SPORT, min_length=1)
    players: Tuple[Athlete, ...] = ()
    verified_sources: Tuple[str, ...] = ()
    verification_notes: str = DEFAULT_VERIFICATION_NOTES
    meta: Optional[ExtractionMeta] = None

    @field_validator("players", mode="after")
    @classmethod
    def _sort_and_dedupe_players(cls, value: Tuple[Athlete, ...]) -> Tuple[Athlete, ...]:
        return tuple(canonical_order(value))

    @field_validator("verified_sources", mode="before")
    @classmethod
    def _drop_invalid_sources(cls, value: Any) -> Tuple[str, ...]:
        if not isinstance(value, (list, tuple, set, frozenset)):
            return ()
        return tuple(unique_strings(v.strip() for v in value if is_valid_url(v)))

    @computed_field  # type: ignore[misc]
    @property
    def player_names(self) -> List[str]:
        """Display names in roster order, as stored alongside the record."""
        return [athlete.name for athlete in self.players]

    def _replace(self, **changes: Any) -> "CanonicalRecord":
        data = {name: getattr(self, name) for name in type(self).model_fields}
        data.update(changes)
        return type(self)(**data)

    def find_athlete(self, name: str) -> Optional[Athlete]:
        key = name_key(name)
        for athlete in self.players:
            if identity_key(athlete) == key:
                return athlete
        return None

    def with_athlete(self, athlete: Athlete) -> "CanonicalRecord":
        """Adds an athlete, replacing any existing entry with the same identity."""
        return self._replace(players=self.players + (athlete,))

    def with_updated_athlete(
        self, original_name: str, name: str, position: str
    ) -> "CanonicalRecord":
        """Renames and/or repositions one athlete.

        A blank new name, or an original name not on the roster, leaves the
        record unchanged. If the new name collides with another athlete the
        edited entry wins.
        """
        if not name.strip():
            return self
        key = name_key(original_name)
        remaining = tuple(p for p in self.players if identity_key(p) != key)
        if len(remaining) == len(self.players):
            return self
        updated = Athlete(name=name, position=position)
        return self._replace(players=remaining + (updated,))

    def without_athlete(self, name: str) -> "CanonicalRecord":
        key = name_key(name)
        return self._replace(
            players=tuple(p for p in self.players if identity_key(p) != key)
        )

    def with_team_name(self, team_name: str) -> "CanonicalRecord":
        return self._replace(team_name=team_name)

    def with_meta(self, meta: Optional[ExtractionMeta]) -> "CanonicalRecord":
        return self._replace(meta=meta)
