"""Command line entry point: progress a round to the next one."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import structlog
from pydantic import ValidationError as SettingsValidationError

from core.config import ConfigValidationError, Settings, load_config
from core.errors import NoNextRound, TrackerError
from core.verbose import configure_logging
from orchestration.runner import run_progression_async

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tracker-progress",
        description="Carry every candidate of a round into the next round template",
    )
    parser.add_argument("--round", required=True, dest="template_id", help="Current round template ID")
    parser.add_argument("--job", required=True, dest="job_opening_id", help="Job opening ID")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to tracker YAML (default: configs/tracker.yaml)",
    )
    parser.add_argument("--run-id", default=None, help="Explicit run ID")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=None,
        help="Stage output (-v, -vv, -vvv)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for tracker-progress."""
    args = build_parser().parse_args(argv)

    try:
        settings = Settings()
        if args.verbose is not None:
            settings = settings.model_copy(update={"verbose": args.verbose})
        settings, tracker = load_config(args.config, settings)
    except ConfigValidationError as e:
        configure_logging()
        logger.error("Configuration error", error=str(e), errors=e.errors)
        sys.exit(1)
    except SettingsValidationError as e:
        configure_logging()
        logger.error("Configuration error", errors=e.errors())
        sys.exit(1)

    configure_logging(settings.log_level)

    try:
        ctx, result = asyncio.run(
            run_progression_async(
                args.job_opening_id,
                args.template_id,
                settings=settings,
                tracker=tracker,
                run_id=args.run_id,
            )
        )
    except NoNextRound as e:
        logger.error("No next round", template_id=e.template_id, error=str(e))
        sys.exit(2)
    except TrackerError as e:
        logger.error("Progression failed", error=str(e))
        sys.exit(3)

    logger.info(
        "Progression complete",
        run_id=ctx.run_id,
        next_template=result.next_template.id,
        is_complete=result.is_complete,
    )
    print(json.dumps(result.to_dict(), indent=2))


if __name__ == "__main__":
    main()
