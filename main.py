import argparse
import logging

from dotenv import load_dotenv

from sel_insights.cli.backfill_commands import handle_backfill_survey_ids, register_backfill_commands
from sel_insights.cli.import_commands import handle_import, register_import_commands
from sel_insights.cli.quality_commands import handle_quality, handle_review, register_quality_commands
from sel_insights.cli.template_commands import handle_resolve, handle_templates, register_template_commands
from sel_insights.config import DEFAULT_CONFIG_PATH, load_config

HANDLERS = {
    "templates": handle_templates,
    "resolve": handle_resolve,
    "import": handle_import,
    "quality": handle_quality,
    "review": handle_review,
    "backfill-survey-ids": handle_backfill_survey_ids,
}


def build_parser():
    parser = argparse.ArgumentParser(description="SEL Insights CLI.")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to config.yaml.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_template_commands(subparsers)
    register_import_commands(subparsers)
    register_quality_commands(subparsers)
    register_backfill_commands(subparsers)
    return parser


def main(argv=None):
    load_dotenv()
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except FileNotFoundError:
        print(f"Error: {args.config} not found.")
        return

    level = config.get("logging", {}).get("level", "WARNING")
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.WARNING))

    HANDLERS[args.command](config, args)


if __name__ == "__main__":
    main()
