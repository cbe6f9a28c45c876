"""prim test: run the project image locally."""

from prim.commands.common import (
    CommandCancelled,
    build_and_track,
    choose_tracked_tag,
    default_container_name,
    generated_tag,
    parse_key_values,
)
from prim.logging_utils import get_logger

logger = get_logger(__name__)


def register(subparsers) -> None:
    parser = subparsers.add_parser("test", help="Run the built image locally for testing")
    parser.add_argument("-t", "--tag", help="Tag to test (defaults to generated)")
    parser.add_argument("-c", "--context", help="Build context path (overrides config, used when building)")
    parser.add_argument("-f", "--dockerfile", help="Path to Dockerfile (overrides config, used when building)")
    parser.add_argument(
        "-p", "--port", action="append", default=[], metavar="HOST:CONTAINER", help="Port mapping (repeatable)"
    )
    parser.add_argument("-e", "--env", action="append", default=[], metavar="KEY=VALUE", help="Env var (repeatable)")
    parser.add_argument("-n", "--name", help="Container name (default: im-test-<timestamp>)")
    parser.add_argument("--no-detach", dest="detach", action="store_false", help="Run in foreground")
    parser.add_argument("--no-rm", dest="rm", action="store_false", help="Do not auto-remove container on exit")
    parser.set_defaults(func=run)


def run(args, ctx) -> int:
    config = ctx.config
    docker = ctx.docker
    docker.check_availability()
    env = parse_key_values(args.env, "--env KEY=VALUE")

    tag = args.tag
    if not tag:
        try:
            tag = choose_tracked_tag(ctx, "Which image would you like to test?")
        except CommandCancelled:
            logger.info("Test run cancelled")
            return 0
        tag = tag or generated_tag(ctx)

    local_image = f"{config.get_local_image_name()}:{tag}"
    logger.info(f"Local test run: {local_image}")

    if not docker.image_exists(local_image):
        logger.info("Image not found locally; building first...")
        build_args = {**config.get_build_args(), "TAG": tag}
        build_and_track(
            ctx, tag, context=args.context, dockerfile=args.dockerfile, build_args=build_args, verbose=ctx.verbose
        )

    container_name = args.name or default_container_name()
    container_id = docker.run_container(
        local_image,
        name=container_name,
        ports=args.port,
        env=env,
        detach=args.detach,
        rm=args.rm,
    )
    logger.info(f"✓ Started container: {container_name}")
    if container_id:
        logger.debug(f"Container id: {container_id}")
    return 0
