"""
Survey export import CLI command.
"""

import json

from sel_insights.cli import get_db_session
from sel_insights.storage import import_export_document


def register_import_commands(subparsers):
    """Register import subcommands."""

    p = subparsers.add_parser("import", help="Import surveys and responses from a JSON export.")
    p.add_argument("--file", dest="export_file", required=True, help="Path to export JSON file.")


def handle_import(config, args):
    """Import surveys and responses from a JSON export file."""
    try:
        with open(args.export_file, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        print(f"Error: File not found: {args.export_file}")
        return
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON in export file: {e}")
        return

    engine, session = get_db_session(config)
    try:
        counts, errors = import_export_document(session, data)

        if errors:
            for err in errors:
                print(f"  [FAIL] {err}")

        print(f"[OK] Imported {counts['surveys']} survey(s) and {counts['responses']} response(s)")
        if counts["skipped"]:
            print(f"   Skipped {counts['skipped']} already present")
    finally:
        session.close()
