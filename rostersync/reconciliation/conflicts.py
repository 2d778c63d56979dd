from typing import Iterable, Optional

from rostersync.models.athlete import name_key


def find_conflict(team_name: str, existing_names: Iterable[str]) -> Optional[str]:
    """Returns the saved team name that collides with ``team_name``, if any."""
    key = name_key(team_name)
    for existing in existing_names:
        if name_key(existing) == key:
            return existing
    return None


def unique_team_name(team_name: str, existing_names: Iterable[str]) -> str:
    """Name for saving a colliding record as a separate copy: "Team (1)", "Team (2)", ..."""
    taken = {name_key(name) for name in existing_names}
    candidate = team_name
    counter = 1
    while name_key(candidate) in taken:
        candidate = f"{team_name} ({counter})"
        counter += 1
    return candidate
