from typing import Any, Dict, List, Mapping, Optional
import json
import re

from loguru import logger
from pydantic import ValidationError

from rostersync.models.athlete import Athlete
from rostersync.models.enums import (
    DEFAULT_VERIFICATION_NOTES,
    UNKNOWN_ATHLETE,
    UNKNOWN_POSITION,
    UNKNOWN_SPORT,
    UNKNOWN_TEAM,
)
from rostersync.models.errors import ParseError
from rostersync.models.record import CanonicalRecord, ExtractionMeta
from rostersync.utils.misc_utils import is_valid_url

# Opening fence may carry a language tag (```json); closing fence is bare
FENCE_OPEN_RE = re.compile(r"^```[\w-]*[ \t]*\n?")
FENCE_CLOSE_RE = re.compile(r"\n?```\s*$")
FENCED_BLOCK_RE = re.compile(r"```[\w-]*[ \t]*\n(.*?)\n?```", re.DOTALL)

# Usage figure names, first match wins (Gemini usageMetadata, then OpenAI-style usage)
USAGE_FIELDS = {
    "prompt_tokens": ("promptTokenCount", "prompt_tokens"),
    "completion_tokens": ("candidatesTokenCount", "completion_tokens"),
    "total_tokens": ("totalTokenCount", "total_tokens"),
}


def strip_code_fence(text: str) -> str:
    """Removes a markdown code fence wrapped around the payload, if any."""
    text = text.strip()
    if text.startswith("```"):
        text = FENCE_OPEN_RE.sub("", text, count=1)
        text = FENCE_CLOSE_RE.sub("", text, count=1)
        return text.strip()
    # Chatty preamble before the fence ("Here you go:\n```json ...```")
    match = FENCED_BLOCK_RE.search(text)
    if match:
        return match.group(1).strip()
    return text


def _as_int(value: Any) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return 0


def _as_text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


class ResponseSanitizer:
    """Turns untrusted provider output into a CanonicalRecord.

    Only output with no recoverable JSON structure is rejected (ParseError);
    every other anomaly is repaired in place.
    """

    def parse_payload(self, raw: Any) -> Any:
        """Parses raw provider output into a JSON value.

        Already-structured values pass through. Text is unfenced, parsed
        strictly, then retried on the first-'{' to last-'}' substring. When
        the fenced block found inside a preamble does not parse, the whole
        reply is tried the same way.
        """
        if isinstance(raw, (dict, list)):
            return raw
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        if not isinstance(raw, str):
            raise ParseError(
                f"The AI returned data that could not be parsed (got {type(raw).__name__})."
            )

        unfenced = strip_code_fence(raw)
        candidates = [unfenced]
        if unfenced != raw.strip():
            candidates.append(raw.strip())

        for text in candidates:
            try:
                return json.loads(text)
            except json.JSONDecodeError:
                logger.debug("Direct JSON parse failed. Attempting substring extraction.")

            first_brace = text.find("{")
            last_brace = text.rfind("}")
            if first_brace != -1 and last_brace > first_brace:
                try:
                    return json.loads(text[first_brace : last_brace + 1])
                except json.JSONDecodeError:
                    pass

        logger.warning(f"Unparseable provider response (first 200 chars): {raw[:200]!r}")
        raise ParseError("The AI returned data that could not be parsed.")

    def sanitize_roster(
        self,
        raw: Any,
        query: str,
        provider_id: Optional[str] = None,
        usage: Optional[Mapping[str, Any]] = None,
        latency_ms: Optional[int] = None,
    ) -> CanonicalRecord:
        """Builds a CanonicalRecord from raw output for the given query."""
        result = self.parse_payload(raw)
        if not isinstance(result, dict):
            logger.warning(
                f"Provider payload is a {type(result).__name__}, not an object. Treating as empty."
            )
            result = {}

        team_name = _as_text(result.get("teamName")) or _as_text(query) or UNKNOWN_TEAM
        sport = _as_text(result.get("sport")) or UNKNOWN_SPORT

        raw_players = result.get("players")
        if not isinstance(raw_players, list):
            raw_players = []
        players = self._sanitize_players(raw_players)

        raw_sources = result.get("verifiedSources")
        if not isinstance(raw_sources, list):
            raw_sources = []
        sources = [url for url in raw_sources if is_valid_url(url)]
        if len(sources) != len(raw_sources):
            logger.debug(f"Dropped {len(raw_sources) - len(sources)} invalid source URL(s).")

        notes = _as_text(result.get("verificationNotes")) or DEFAULT_VERIFICATION_NOTES

        if provider_id:
            meta = self.build_meta(provider_id, usage, latency_ms)
        else:
            meta = self._carried_meta(result.get("meta"))

        # CanonicalRecord sorts and dedupes players on construction
        return CanonicalRecord(
            team_name=team_name,
            sport=sport,
            players=players,
            verified_sources=sources,
            verification_notes=notes,
            meta=meta,
        )

    def _sanitize_players(self, raw_players: List[Any]) -> List[Athlete]:
        players: List[Athlete] = []
        for raw_player in raw_players:
            if isinstance(raw_player, str):
                # Provider returned "LeBron James" instead of an object
                name = raw_player.strip()
                if not name:
                    continue
                players.append(Athlete(name=name, position=UNKNOWN_POSITION))
            elif isinstance(raw_player, dict):
                players.append(
                    Athlete(
                        name=_as_text(raw_player.get("name")) or UNKNOWN_ATHLETE,
                        position=_as_text(raw_player.get("position")) or UNKNOWN_POSITION,
                    )
                )
            else:
                logger.debug(f"Skipping player entry of type {type(raw_player).__name__}")
        return players

    def _carried_meta(self, raw_meta: Any) -> Optional[ExtractionMeta]:
        # Re-sanitized records keep the meta they were serialized with
        if not isinstance(raw_meta, dict):
            return None
        try:
            return ExtractionMeta.model_validate(raw_meta)
        except ValidationError as e:
            logger.debug(f"Dropping malformed meta from payload: {e.error_count()} error(s)")
            return None

    def build_meta(
        self,
        provider_id: str,
        usage: Optional[Mapping[str, Any]] = None,
        latency_ms: Optional[int] = None,
    ) -> ExtractionMeta:
        usage = usage if isinstance(usage, Mapping) else {}
        figures = {}
        for field, candidates in USAGE_FIELDS.items():
            value = next((usage[c] for c in candidates if c in usage), 0)
            figures[field] = _as_int(value)
        return ExtractionMeta(
            provider_id=provider_id, latency_ms=_as_int(latency_ms), **figures
        )

    def sanitize_tags(self, raw: Any) -> Dict[str, List[str]]:
        """Parses a {player name: [alias, ...]} mapping of search tags."""
        result = self.parse_payload(raw)
        if not isinstance(result, dict):
            raise ParseError(
                "Invalid response format: expected object mapping player names to tag arrays."
            )

        tags: Dict[str, List[str]] = {}
        for player_name, player_tags in result.items():
            if isinstance(player_tags, list):
                tags[player_name] = [t for t in player_tags if isinstance(t, str)]
        logger.debug(f"Parsed search tags for {len(tags)} player(s).")
        return tags
