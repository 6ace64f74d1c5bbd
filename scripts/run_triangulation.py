"""Run one Rule of Thirds triangulation from the command line and print the JSON outcome."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from rule_of_thirds.core.config import get_settings
from rule_of_thirds.core.logging import configure_logging, silent_logger
from rule_of_thirds.services.orchestrator import Orchestrator

EXIT_VALIDATION_ERROR = 2
EXIT_FATAL_ERROR = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("topic", help="Topic to triangulate, e.g. 'checkout flow'")
    parser.add_argument("--focus", default=None, help="Optional focus area")
    parser.add_argument("--persist", action="store_true", help="Write report artifacts to OUTPUT_DIR")
    parser.add_argument("--silent", action="store_true", help="Suppress all log output")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    silent = args.silent or settings.LOG_SILENT
    configure_logging(settings.LOG_LEVEL, silent=silent)

    orchestrator = Orchestrator.from_settings(settings, logger=silent_logger() if silent else None)
    outcome = asyncio.run(orchestrator.orchestrate(args.topic, args.focus, persist=args.persist))
    print(json.dumps(outcome.model_dump(mode="json"), indent=2))

    if outcome.success:
        return 0
    return EXIT_VALIDATION_ERROR if outcome.error_type == "validation" else EXIT_FATAL_ERROR


if __name__ == "__main__":
    sys.exit(main())
