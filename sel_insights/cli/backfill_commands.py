"""
Legacy survey id backfill CLI command.
"""

import json

from sel_insights.cli import get_db_session
from sel_insights.engine import build_quality_engine
from sel_insights.identity_inference import backfill_survey_links
from sel_insights.models import ConfigurationError


def register_backfill_commands(subparsers):
    """Register backfill subcommands."""

    p = subparsers.add_parser(
        "backfill-survey-ids",
        help="Infer and store survey IDs for responses saved without one.",
    )
    p.add_argument("--dry-run", action="store_true", help="Report inferred IDs without saving them.")
    p.add_argument(
        "--format",
        dest="fmt",
        default="text",
        choices=["text", "json"],
        help="Output format.",
    )


def handle_backfill_survey_ids(config, args):
    """Backfill survey IDs on legacy responses."""
    try:
        engine = build_quality_engine(config)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return

    db_engine, session = get_db_session(config)
    try:
        summary = backfill_survey_links(session, engine.inferencer, dry_run=getattr(args, "dry_run", False))

        if getattr(args, "fmt", "text") == "json":
            print(json.dumps(summary.to_dict(), indent=2))
            return

        for detail in summary.details:
            if detail["method"] == "error":
                print(f"  [FAIL] {detail['response_id']}: {detail['error']}")
            else:
                print(f"  {detail['response_id']} -> {detail['survey_id']} ({detail['method']})")

        label = "Would update" if summary.dry_run else "Updated"
        print(f"[OK] {label} {summary.updated} of {summary.total} response(s)")
        print(f"   Custom survey matches: {summary.custom_matched}")
        print(f"   Skipped: {summary.skipped}  Errors: {summary.errors}")
    finally:
        session.close()
