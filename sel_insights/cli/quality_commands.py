"""
Match-quality and response review CLI commands.
"""

import json

from sel_insights.cli import get_db_session
from sel_insights.engine import build_quality_engine
from sel_insights.match_quality import quality_advisories
from sel_insights.models import ConfigurationError, RecordFormatError
from sel_insights.response_review import build_response_review
from sel_insights.storage import answer_records_for_response, answer_records_for_student, get_response


def register_quality_commands(subparsers):
    """Register quality and review subcommands."""

    # quality
    p = subparsers.add_parser("quality", help="Show question match quality for a student or response.")
    target = p.add_mutually_exclusive_group(required=True)
    target.add_argument("--student", dest="student_id", type=str, help="Student ID.")
    target.add_argument("--response", dest="response_id", type=str, help="Response ID.")
    p.add_argument(
        "--format",
        dest="fmt",
        default="text",
        choices=["text", "json"],
        help="Output format.",
    )

    # review
    p = subparsers.add_parser("review", help="Show a response with each answer matched to its question.")
    p.add_argument("--response", dest="response_id", type=str, required=True, help="Response ID.")
    p.add_argument(
        "--format",
        dest="fmt",
        default="text",
        choices=["text", "json"],
        help="Output format.",
    )


def _print_report(report, advisories):
    print("\n  Match Quality")
    print(f"  Answers: {report.total_answers}  Unique questions: {report.unique_question_count}")
    print(f"  Match rate: {report.match_rate:.1%}  Quality: {report.quality_level.value}")
    print(f"  Average confidence: {report.average_confidence:.1f} ({report.confidence_level.value})")

    print("\n  By tier:")
    for tier, count in report.counts_by_tier.items():
        print(f"    {tier.value:<12} {count}")

    print("\n  By domain:")
    for domain, count in report.domain_distribution.items():
        if count:
            print(f"    {domain.value:<26} {count}")

    print("\n  By answer type:")
    for kind, count in report.answer_type_distribution.items():
        if count:
            print(f"    {kind.value:<12} {count}")

    unmatched = [m for m in report.question_matches if not m.resolved]
    if unmatched:
        print("\n  Unmatched questions:")
        for match in unmatched:
            print(f"    [FAIL] {match.question_id}")

    if advisories:
        print("\n  Notes:")
        for advisory in advisories:
            print(f"    - {advisory}")
    print()


def handle_quality(config, args):
    """Summarize match quality for a student's answers or one response."""
    try:
        engine = build_quality_engine(config)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return

    db_engine, session = get_db_session(config)
    try:
        if getattr(args, "response_id", None):
            response = get_response(session, args.response_id)
            if not response:
                print(f"Error: Response with ID {args.response_id} not found.")
                return
            try:
                records = answer_records_for_response(response)
            except RecordFormatError as e:
                print(f"Error: {e}")
                return
        else:
            records = answer_records_for_student(session, args.student_id)

        report = engine.aggregator.summarize(records)
        advisories = quality_advisories(report, engine.aggregator.policy)

        if getattr(args, "fmt", "text") == "json":
            data = report.to_dict()
            data["advisories"] = advisories
            print(json.dumps(data, indent=2))
        else:
            _print_report(report, advisories)
    finally:
        session.close()


def handle_review(config, args):
    """Show one response with each answer next to its resolved question."""
    try:
        engine = build_quality_engine(config)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return

    db_engine, session = get_db_session(config)
    try:
        response = get_response(session, args.response_id)
        if not response:
            print(f"Error: Response with ID {args.response_id} not found.")
            return
        try:
            review = build_response_review(response, engine.aggregator)
        except RecordFormatError as e:
            print(f"Error: {e}")
            return

        if getattr(args, "fmt", "text") == "json":
            print(json.dumps(review, indent=2, default=str))
            return

        print(f"\n  Response {review['response_id']} (student {review['student_id']}, grade {review['grade']})")
        print(f"  {review['quality_note']}\n")
        for row in review["answers"]:
            print(f"  {row['index']}. {row['question_text']}")
            print(f"     Answer: {row['answer']}  [{row['match_tier']}, {row['confidence']}%]")
        for advisory in review["advisories"]:
            print(f"\n  - {advisory}")
        print()
    finally:
        session.close()
