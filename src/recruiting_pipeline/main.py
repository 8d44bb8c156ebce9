"""
Command line entry point for the recruiting pipeline.

Loads a JSON seed file into in-memory storage and runs one operation on it.
"""

import argparse
import asyncio
import logging
import sys
from datetime import date, datetime

from pydantic import BaseModel

from recruiting_pipeline.bootstrap import build_in_memory_orchestrator
from recruiting_pipeline.config import get_settings
from recruiting_pipeline.pipeline.errors import ConflictError, InvalidTransition
from recruiting_pipeline.pipeline.schemas import InterviewLocation
from recruiting_pipeline.pipeline.workflow import WorkflowOrchestrator
from recruiting_pipeline.seed import load_seed

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Configure application logging."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(prog="recruiting-pipeline")
    parser.add_argument("--seed", required=True, help="Path to a JSON seed file")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("analytics", help="Show pipeline analytics")

    list_cmd = commands.add_parser("list", help="List applications grouped by job")
    list_cmd.add_argument("--stage", default=None, help="Stage filter (default: all)")
    list_cmd.add_argument("--page", type=int, default=1)
    list_cmd.add_argument("--page-size", type=int, default=None)

    search_cmd = commands.add_parser("search", help="Search candidates")
    search_cmd.add_argument("query", nargs="?", default="")
    search_cmd.add_argument("--stage", default=None, help="Stage filter (default: all)")
    search_cmd.add_argument("--page", type=int, default=1)
    search_cmd.add_argument("--page-size", type=int, default=None)

    slots_cmd = commands.add_parser("slots", help="Show the slot grid for a day")
    slots_cmd.add_argument("day", type=date.fromisoformat, help="Day as YYYY-MM-DD")
    slots_cmd.add_argument("--interviewer", default=None)

    transition_cmd = commands.add_parser("transition", help="Move an application to a stage")
    transition_cmd.add_argument("application_id")
    transition_cmd.add_argument("stage")
    transition_cmd.add_argument("--notes", default=None)

    schedule_cmd = commands.add_parser("schedule", help="Schedule an interview")
    schedule_cmd.add_argument("candidate_id")
    schedule_cmd.add_argument("job_id")
    schedule_cmd.add_argument("scheduled_at", type=datetime.fromisoformat, help="ISO 8601 start time")
    schedule_cmd.add_argument("--duration", type=int, default=None, help="Minutes")
    schedule_cmd.add_argument("--interviewer", default="")
    schedule_cmd.add_argument(
        "--location",
        choices=[loc.value for loc in InterviewLocation],
        default=InterviewLocation.OFFICE.value,
    )
    return parser


def _print(result: BaseModel | list[BaseModel]) -> None:
    if isinstance(result, list):
        print("[" + ",\n".join(item.model_dump_json(indent=2) for item in result) + "]")
    else:
        print(result.model_dump_json(indent=2))


async def dispatch(orchestrator: WorkflowOrchestrator, args: argparse.Namespace) -> int:
    """
    Run the selected subcommand.

    Returns:
        Process exit code: 0 on success, 1 when the operation was refused.
    """
    if args.command == "analytics":
        result = await orchestrator.get_analytics()
    elif args.command == "list":
        result = await orchestrator.list_by_stage(args.stage, args.page, args.page_size)
    elif args.command == "search":
        result = await orchestrator.search_candidates(args.query, args.page, args.page_size, stage=args.stage)
    elif args.command == "slots":
        result = await orchestrator.available_slots(args.day, args.interviewer)
    elif args.command == "transition":
        result = await orchestrator.transition_stage(args.application_id, args.stage, notes=args.notes)
    elif args.command == "schedule":
        result = await orchestrator.schedule_interview(
            args.candidate_id,
            args.job_id,
            args.scheduled_at,
            duration_minutes=args.duration,
            interviewer=args.interviewer,
            location=args.location,
        )
    else:
        raise ValueError(f"Unknown command: {args.command}")

    if isinstance(result, (ConflictError, InvalidTransition)):
        print(f"Error: {result.message}", file=sys.stderr)
        _print(result)
        return 1

    _print(result)
    return 0


async def run(argv: list[str] | None = None) -> int:
    """Parse arguments, load the seed file, and run one command."""
    args = build_parser().parse_args(argv)

    seed = load_seed(args.seed)
    orchestrator = build_in_memory_orchestrator(
        applications=seed.applications,
        interviews=seed.interviews,
        candidates=seed.candidates,
        jobs=seed.jobs,
    )

    logger.debug(f"Running command {args.command}")
    return await dispatch(orchestrator, args)


def main() -> None:
    """Main entry point for the application."""
    setup_logging()

    try:
        exit_code = asyncio.run(run(sys.argv[1:]))
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
