from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Union

from loguru import logger

from rostersync.models.athlete import Athlete, canonical_order, identity_key
from rostersync.models.record import CanonicalRecord
from rostersync.utils.misc_utils import unique_strings

DEFAULT_SEASON_LABEL = "unspecified"


def _merge_date(merged_at: Optional[date]) -> str:
    if merged_at is None:
        merged_at = datetime.now(timezone.utc).date()
    elif isinstance(merged_at, datetime):
        merged_at = merged_at.date()
    return merged_at.isoformat()


def overlay_athletes(
    base: Iterable[Athlete], incoming: Iterable[Athlete]
) -> List[Athlete]:
    """Union of two athlete lists by identity key; incoming entries win collisions."""
    by_key: Dict[str, Athlete] = {identity_key(a): a for a in base}
    for athlete in incoming:
        by_key[identity_key(athlete)] = athlete
    return canonical_order(by_key.values())


def union_sources(*source_groups: Iterable[str]) -> List[str]:
    return unique_strings(url for group in source_groups for url in group)


def new_athletes(base: CanonicalRecord, candidates: Iterable[Athlete]) -> List[Athlete]:
    """Candidates whose identity is not already on the base roster."""
    known = {identity_key(a) for a in base.players}
    return [a for a in candidates if identity_key(a) not in known]


def merge_records(
    base: CanonicalRecord,
    incoming: CanonicalRecord,
    extra_sources: Iterable[str] = (),
    merged_at: Optional[date] = None,
) -> CanonicalRecord:
    """Merges a new extraction into an existing record of the same team.

    Team name, sport and meta stay those of ``base``. Neither input is modified.
    """
    players = overlay_athletes(base.players, incoming.players)
    notes = (
        f"Merged new extraction from {_merge_date(merged_at)}. "
        f"Original notes: {base.verification_notes}"
    )
    logger.info(
        f"Merged extraction into '{base.team_name}': "
        f"{len(base.players)} + {len(incoming.players)} -> {len(players)} players."
    )
    return CanonicalRecord(
        team_name=base.team_name,
        sport=base.sport,
        players=players,
        verified_sources=union_sources(
            base.verified_sources, incoming.verified_sources, extra_sources
        ),
        verification_notes=notes,
        meta=base.meta,
    )


def merge_season(
    base: CanonicalRecord,
    athletes: Sequence[Athlete],
    source_urls: Iterable[str] = (),
    season: str = DEFAULT_SEASON_LABEL,
    merged_at: Optional[date] = None,
) -> CanonicalRecord:
    """Folds a historical season's athletes into an existing record."""
    players = overlay_athletes(base.players, athletes)
    season = season.strip() or DEFAULT_SEASON_LABEL
    notes = (
        f"Merged {len(athletes)} historical identities from the {season} season "
        f"on {_merge_date(merged_at)}. {base.verification_notes}"
    ).strip()
    logger.info(
        f"Merged {len(athletes)} athletes from season {season} into '{base.team_name}'."
    )
    return CanonicalRecord(
        team_name=base.team_name,
        sport=base.sport,
        players=players,
        verified_sources=union_sources(base.verified_sources, source_urls),
        verification_notes=notes,
        meta=base.meta,
    )


def reconcile(
    base: CanonicalRecord,
    incoming: Union[CanonicalRecord, Sequence[Athlete]],
    source_urls: Iterable[str] = (),
    label: Optional[str] = None,
    merged_at: Optional[date] = None,
) -> CanonicalRecord:
    """Merges ``incoming`` into ``base`` and returns a new record.

    A full record is treated as a save-conflict merge; a bare athlete
    sequence as a historical season merge labelled ``label``.
    """
    if isinstance(incoming, CanonicalRecord):
        return merge_records(base, incoming, extra_sources=source_urls, merged_at=merged_at)
    return merge_season(
        base,
        list(incoming),
        source_urls=source_urls,
        season=label or DEFAULT_SEASON_LABEL,
        merged_at=merged_at,
    )
