from typing import Iterable, List, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .enums import UNKNOWN_POSITION


class Athlete(BaseModel):
    """A single roster entry: display name plus a free-form position label."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str = Field(..., min_length=1, description="Display name, Latin-normalized.")
    position: str = Field(UNKNOWN_POSITION, description="Short code or label (QB, GK, Center).")


def name_key(name: str) -> str:
    """Identity key for a raw name string: trimmed and case-folded."""
    return name.strip().lower()


def identity_key(athlete: Athlete) -> str:
    # Namesakes collapse here; swap this for a stable provider id when one exists
    return name_key(athlete.name)


def last_name_key(athlete: Athlete) -> Tuple[str, str]:
    """Sort key: final whitespace-delimited token, then the full name."""
    tokens = athlete.name.split()
    last_name = tokens[-1] if tokens else ""
    return last_name.lower(), athlete.name.lower()


def canonical_order(athletes: Iterable[Athlete]) -> List[Athlete]:
    """Collapse duplicate identities (last occurrence wins) and sort by last name."""
    by_key = {}
    for athlete in athletes:
        by_key[identity_key(athlete)] = athlete
    return sorted(by_key.values(), key=last_name_key)
