"""Command-line entry point for the scheduled content core.

Updates:
    v0.1 - 2026-03-07 - Added CLI bootstrap with configuration loading, logging
        setup and startup health checks.
    v0.2 - 2026-03-08 - Added save, delete, run-due and deactivate commands.
    v0.3 - 2026-03-10 - Added render command with repeatable viewer roles.
"""

from __future__ import annotations

import argparse
import logging
import logging.config
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from config.settings import AppConfig, get_app_config, resolve_config_path
from core.exceptions import HealthCheckError, SCBError
from core.health import run_startup_checks
from core.render import Viewer
from core.service import ScheduledContentService, build_service


def setup_logging(logging_config: Optional[Path] = None, level: str = "INFO") -> None:
    """Configure Python logging using the provided configuration file."""
    config_path = logging_config or Path(__file__).parent / "config" / "logging.conf"
    if not config_path.exists():
        logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO))
        logging.getLogger("scb").warning(
            "Logging configuration %s not found; using basicConfig.", config_path
        )
        return
    logging.config.fileConfig(config_path, disable_existing_loggers=False)


def run_command(service: ScheduledContentService, args: argparse.Namespace) -> int:
    """Execute one CLI command against an assembled service."""
    logger = logging.getLogger("scb.cli")

    if args.command == "save":
        raw = Path(args.file).read_text(encoding="utf-8")
        report = service.save_content(args.subject_id, raw)
        if report is None:
            return 0
        logger.info(
            "Saved subject %s: pruned=%s purge_armed=%s delete_armed=%s",
            args.subject_id,
            report.pruned,
            len(report.purge.armed) if report.purge else 0,
            len(report.delete.armed) if report.delete else 0,
        )
        return 0

    if args.command == "delete":
        service.on_subject_deleted(args.subject_id)
        logger.info("Removed schedules for subject %s", args.subject_id)
        return 0

    if args.command == "run-due":
        fired = service.run_due()
        logger.info("Fired %s due tasks", fired)
        return 0

    if args.command == "deactivate":
        touched = service.deactivate()
        logger.info("Deactivated schedules for %s subjects", touched)
        return 0

    if args.command == "render":
        viewer = Viewer.member(args.role) if args.role else Viewer.anonymous()
        print(service.render(args.subject_id, viewer))
        return 0

    logger.error("Unknown command %s", args.command)
    return 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scheduled content boundary scheduler.")
    parser.add_argument("--config", type=Path, help="Path to configuration file.")
    parser.add_argument("--logging-config", type=Path, help="Path to logging configuration.")
    commands = parser.add_subparsers(dest="command", required=True)

    save = commands.add_parser("save", help="Store content and reschedule its boundaries.")
    save.add_argument("subject_id", type=int)
    save.add_argument("file", type=Path, help="JSON file with serialized blocks.")

    delete = commands.add_parser("delete", help="Tear down schedules of a removed subject.")
    delete.add_argument("subject_id", type=int)

    commands.add_parser("run-due", help="Fire every matured task.")
    commands.add_parser("deactivate", help="Disarm every schedule for every subject.")

    render = commands.add_parser("render", help="Render a subject for a viewer.")
    render.add_argument("subject_id", type=int)
    render.add_argument("--role", action="append", default=[], help="Viewer role (repeatable).")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Parse CLI arguments and dispatch the selected command."""
    load_dotenv()

    args = build_parser().parse_args(argv)

    try:
        config_path = resolve_config_path(args.config) if args.config else None
        config: AppConfig = get_app_config(config_path)
        setup_logging(args.logging_config, config.telemetry.log_level)
        service = build_service(config)
        warnings = run_startup_checks(config, service.purger)
        for warning in warnings:
            logging.getLogger("scb").warning("Startup check: %s", warning)
    except HealthCheckError as exc:
        logging.basicConfig(level=logging.ERROR)
        logging.getLogger("scb").error("Startup health check failed: %s", exc)
        return 1
    except SCBError as exc:
        logging.basicConfig(level=logging.ERROR)
        logging.getLogger("scb").error("Startup failed: %s", exc)
        return 1

    return run_command(service, args)


if __name__ == "__main__":
    raise SystemExit(main())
