import sys
import argparse
import asyncio
import json
from pathlib import Path
from typing import List, Optional

from loguru import logger
from pydantic import ValidationError
from rich import print
from rich.panel import Panel
from rich.table import Table

from rostersync.config.settings import load_settings
from rostersync.extraction.orchestrator import ExtractionOrchestrator
from rostersync.logging.setup import setup_logging
from rostersync.models.errors import AuthError, BadRequestError, ExtractionError
from rostersync.models.record import CanonicalRecord
from rostersync.providers.registry import build_providers
from rostersync.reconciliation.conflicts import find_conflict
from rostersync.reconciliation.reconciler import new_athletes, reconcile


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Extract a canonical team roster and optionally merge it into a saved one."
    )
    parser.add_argument("query", help="Free-text team query, e.g. 'Chelsea FC'.")
    parser.add_argument(
        "--output", type=Path, default=Path("roster.json"), help="Where to write the record."
    )
    parser.add_argument(
        "--merge-into",
        type=Path,
        default=None,
        help="Previously saved record (JSON) to merge the extraction into.",
    )
    parser.add_argument(
        "--season",
        default=None,
        help="Treat the extraction as a historical season and merge only new athletes.",
    )
    parser.add_argument(
        "--tags", action="store_true", help="Also generate search aliases per player."
    )
    return parser.parse_args(argv)


def load_record(path: Path) -> CanonicalRecord:
    with open(path, "r", encoding="utf-8") as f:
        return CanonicalRecord.model_validate(json.load(f))


def render_record(record: CanonicalRecord) -> None:
    table = Table(title=f"{record.team_name} ({record.sport})")
    table.add_column("Name")
    table.add_column("Position")
    for athlete in record.players:
        table.add_row(athlete.name, athlete.position)
    print(table)
    print(Panel(record.verification_notes, title="Verification notes"))
    if record.meta:
        meta = record.meta
        print(
            f"[dim]{meta.provider_id} | {meta.latency_ms} ms | "
            f"{meta.total_tokens} tokens[/dim]"
        )


async def run_extraction(args: argparse.Namespace) -> int:
    settings = load_settings()
    setup_logging(settings)

    base = None
    if args.merge_into:
        try:
            base = load_record(args.merge_into)
        except (OSError, ValidationError, json.JSONDecodeError) as e:
            logger.error(f"Could not load saved record from {args.merge_into}: {e}")
            return 1

    providers = build_providers(settings)
    if not providers:
        logger.critical(
            "No providers configured. Set GEMINI_API_KEY (or OPENROUTER_API_KEY) and PROVIDER_ORDER."
        )
        return 2

    orchestrator = ExtractionOrchestrator(
        providers, backoff_base=settings.backoff_base_seconds
    )
    try:
        query = f"{args.query} {args.season}" if args.season else args.query
        record = await orchestrator.extract_roster(query)

        if base is not None:
            if args.season:
                additions = new_athletes(base, record.players)
                record = reconcile(
                    base, additions, source_urls=record.verified_sources, label=args.season
                )
            else:
                if not find_conflict(record.team_name, [base.team_name]):
                    logger.warning(
                        f"Merging '{record.team_name}' into differently named '{base.team_name}'."
                    )
                record = reconcile(base, record)

        if args.tags and record.players:
            tags = await orchestrator.generate_player_tags(
                record.player_names, record.team_name, record.sport
            )
            for name, aliases in tags.items():
                print(f"[cyan]{name}[/cyan]: {', '.join(aliases)}")
    except (AuthError, BadRequestError) as e:
        logger.critical(f"{e} - Check API keys and provider configuration!")
        return 1
    except ExtractionError as e:
        logger.error(f"Extraction failed: {e}")
        return 1
    finally:
        for provider in providers:
            await provider.close()

    render_record(record)
    try:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(
                record.model_dump(mode="json", by_alias=True), f, indent=4, ensure_ascii=False
            )
        logger.success(f"Saved record to {args.output}")
    except IOError as e:
        logger.error(f"Failed to write record to {args.output}: {e}")
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    return asyncio.run(run_extraction(args))


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logger.info("Execution interrupted by user (KeyboardInterrupt).")
        sys.exit(0)
