"""prim status: show environment, configuration and tracking information."""

from prim.commands.deploy import resolve_host
from prim.config_manager import ConfigValidationError, default_storage_dir
from prim.docker_client import DockerClient
from prim.error_utils import ActionableError
from prim.image_tracker import ImageTracker
from prim.logging_utils import get_logger
from prim.report_utils import format_tracked_table

logger = get_logger(__name__)


def register(subparsers) -> None:
    parser = subparsers.add_parser("status", help="Show deployment status and information")
    parser.add_argument("-v", "--verbose", dest="detailed", action="store_true", help="Show detailed information")
    parser.add_argument("--check-registry", action="store_true", help="Check registry DNS resolution")
    parser.set_defaults(func=run)


def run(args, ctx) -> int:
    detailed = args.detailed or ctx.verbose
    config = _config_or_none(ctx)

    print("\nEnvironment:")
    docker = ctx.docker if config is not None else DockerClient()
    docker_version = docker.get_version()
    if docker_version == "Unknown":
        logger.warning("Docker not available")
    else:
        print(f"  Docker client: {docker_version}")

    print("\nConfig:")
    if config is None:
        print("  Not available (run 'prim init' to create one)")
        tracker = ImageTracker(default_storage_dir())
    else:
        if detailed:
            config.print_config()
        else:
            print(f"  Image: {config.get_local_image_name()}")
            print(f"  Registry: {config.get_registry_repo()}")
            print(f"  Tag strategy: {config.get_tag_strategy().value}")
        tracker = ctx.tracker

    info = tracker.storage_info()
    print("\nImage tracking:")
    print(f"  Location: {info['location']}")
    print(f"  Tracked images: {info['entry_count']}")
    if detailed and config is not None:
        images = tracker.list_images(ctx.project_path, config.get_local_image_name())
        if images:
            print(format_tracked_table(images))

    if args.check_registry and config is not None:
        host = config.get_registry_host()
        print("\nRegistry check:")
        try:
            address = resolve_host(host)
            logger.info(f"✓ DNS OK: {host} -> {address}")
        except OSError as e:
            logger.error(f"DNS failed for {host}: {e}")
    return 0


def _config_or_none(ctx):
    try:
        return ctx.config
    except (ActionableError, ConfigValidationError) as e:
        logger.warning(f"Configuration not loaded: {e}")
        return None
