"""
Template set listing and question resolution CLI commands.
"""

import json

from sel_insights.engine import build_quality_engine
from sel_insights.models import ConfigurationError, GradeBand
from sel_insights.template_registry import describe_registry


def register_template_commands(subparsers):
    """Register template subcommands."""

    # templates
    p = subparsers.add_parser("templates", help="List registered SEL template sets.")
    p.add_argument(
        "--format",
        dest="fmt",
        default="text",
        choices=["text", "json"],
        help="Output format.",
    )

    # resolve
    p = subparsers.add_parser("resolve", help="Resolve a question ID against the template sets.")
    p.add_argument("question_id", type=str, help="Question ID to resolve.")
    group = p.add_mutually_exclusive_group(required=True)
    group.add_argument("--grade", type=int, help="Respondent's school grade (1-6).")
    group.add_argument("--band", choices=["lower", "upper"], help="Respondent's grade band.")
    p.add_argument(
        "--format",
        dest="fmt",
        default="text",
        choices=["text", "json"],
        help="Output format.",
    )


def handle_templates(config, args):
    """List registered template sets."""
    try:
        engine = build_quality_engine(config)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return

    summaries = describe_registry(engine.registry)
    if getattr(args, "fmt", "text") == "json":
        print(json.dumps(summaries, indent=2))
        return

    print(f"\n  Template sets ({len(summaries)}):\n")
    for summary in summaries:
        print(f"  {summary['id']}  [{summary['grade_band']}]  {summary['title']}")
        print(f"     Questions: {summary['question_count']}")
        for domain, count in summary["domains"].items():
            print(f"       {domain}: {count}")
    print()


def handle_resolve(config, args):
    """Resolve a single question ID and print the match."""
    try:
        engine = build_quality_engine(config)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return

    if args.band:
        result = engine.resolver.resolve(args.question_id, GradeBand(args.band))
    else:
        result = engine.resolver.resolve_for_grade(args.question_id, args.grade)

    if getattr(args, "fmt", "text") == "json":
        print(json.dumps(result.to_dict(), indent=2))
        return

    if result.resolved:
        print(f"[OK] {result.question_id} -> {result.matched_template_id} ({result.source_set_id})")
    else:
        print(f"[FAIL] {result.question_id} could not be matched")
    print(f"   Tier: {result.tier.value}  Confidence: {result.confidence}")
    print(f"   Text: {result.display_text}")
