"""prim clean: remove this project's containers and images."""

from prim.cleanup import CleanupOrchestrator
from prim.logging_utils import get_logger

logger = get_logger(__name__)


def register(subparsers) -> None:
    parser = subparsers.add_parser("clean", help="Clean local containers/images for this project image")
    parser.add_argument("-t", "--tag", help="Specific tag to clean ('v' prefix optional); defaults to all")
    parser.add_argument("-y", "--yes", action="store_true", help="Proceed without interactive selection or confirmation")
    parser.set_defaults(func=run)


def run(args, ctx) -> int:
    config = ctx.config
    ctx.docker.check_availability()

    removed = ctx.preferences.sweep_stale()
    if removed:
        logger.debug(f"Dropped {removed} clean preference(s) for missing projects")

    orchestrator = CleanupOrchestrator(
        ctx.docker,
        ctx.tracker,
        ctx.preferences,
        ctx.prompter,
        project_path=ctx.project_path,
        local_repo=config.get_local_image_name(),
        registry_repo=config.get_registry_repo(),
    )
    if args.tag:
        orchestrator.clean_tag(args.tag, assume_yes=args.yes)
    else:
        orchestrator.clean_project(assume_yes=args.yes)
    return 0
