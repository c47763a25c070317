"""
Job engine - command line entry point.

Subcommands:
    serve                                  Run the HTTP API (uvicorn)
    create  --owner ID --kind KIND --interval SECONDS
    trigger JOB_ID --caller ID             Manual firing (owner; the
                                           scheduler identity is refused)
    cancel  JOB_ID --caller ID
    status  JOB_ID
    list    [--owner ID] [--active | --inactive]
    stalled                                Active jobs that will not fire again

All subcommands except serve act directly on the configured job store and
scheduling gateway.
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from typing import Optional

from dotenv import load_dotenv

from src.engine.entities import JobKind, JobView
from src.engine.errors import EngineError
from src.engine.service import EngineService
from src.infra.config import load_settings
from src.infra.logging_config import setup_logging


# Load .env before reading settings
load_dotenv()

logger = logging.getLogger("job_engine")


def _print_view(view: JobView) -> None:
    data = asdict(view)
    data["kind"] = view.kind.value
    print(json.dumps(data, indent=2))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Self-rescheduling job engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    create = sub.add_parser("create", help="Create a job")
    create.add_argument("--owner", required=True)
    create.add_argument(
        "--kind",
        choices=[k.value for k in JobKind],
        default=JobKind.ONE_SHOT.value,
    )
    create.add_argument("--interval", type=int, required=True, help="Seconds")

    trigger = sub.add_parser("trigger", help="Manually fire a job")
    trigger.add_argument("job_id", type=int)
    trigger.add_argument("--caller", required=True)

    cancel = sub.add_parser("cancel", help="Cancel a job")
    cancel.add_argument("job_id", type=int)
    cancel.add_argument("--caller", required=True)

    status = sub.add_parser("status", help="Show job status")
    status.add_argument("job_id", type=int)

    listing = sub.add_parser("list", help="List jobs")
    listing.add_argument("--owner", default=None)
    flag = listing.add_mutually_exclusive_group()
    flag.add_argument("--active", dest="active", action="store_true", default=None)
    flag.add_argument("--inactive", dest="active", action="store_false")

    sub.add_parser("stalled", help="List stalled jobs")

    return parser


def run(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_dir)

    if args.command == "serve":
        import uvicorn
        uvicorn.run("src.api.main:app", host=args.host, port=args.port)
        return 0

    # Scheduler identity is only honoured on the token-checked HTTP callback
    if args.command in ("trigger", "cancel") and args.caller == settings.trusted_scheduler_id:
        logger.error(f"--caller {args.caller} is reserved for scheduler callbacks")
        return 1

    service = EngineService.create(settings)
    engine = service.engine

    try:
        if args.command == "create":
            job_id = engine.create_job(args.owner, JobKind(args.kind), args.interval)
            _print_view(engine.get_job(job_id))
        elif args.command == "trigger":
            _print_view(engine.trigger(args.job_id, args.caller))
        elif args.command == "cancel":
            _print_view(engine.cancel(args.job_id, args.caller))
        elif args.command == "status":
            _print_view(engine.get_job(args.job_id))
        elif args.command == "list":
            for view in engine.list_jobs(owner_id=args.owner, active=args.active):
                _print_view(view)
        elif args.command == "stalled":
            stalled = engine.find_stalled_jobs()
            for view in stalled:
                _print_view(view)
            logger.info(f"{len(stalled)} stalled job(s)")
    except EngineError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    finally:
        service.close()

    return 0


if __name__ == "__main__":
    sys.exit(run())
