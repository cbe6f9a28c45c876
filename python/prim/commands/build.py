"""prim build: build the project image and track it."""

from prim.commands.common import build_and_track, generated_tag, parse_key_values
from prim.logging_utils import get_logger

logger = get_logger(__name__)


def register(subparsers) -> None:
    parser = subparsers.add_parser("build", help="Build Docker image")
    parser.add_argument("-t", "--tag", help="Custom tag for the built image")
    parser.add_argument("-c", "--context", help="Build context path (overrides config)")
    parser.add_argument("-f", "--dockerfile", help="Path to Dockerfile (overrides config)")
    parser.add_argument(
        "--build-arg", action="append", default=[], metavar="KEY=VALUE", help="Build argument (repeatable)"
    )
    parser.add_argument("--no-cache", action="store_true", help="Don't use cache when building")
    parser.add_argument("--verbose", dest="build_verbose", action="store_true", help="Show detailed build output")
    parser.set_defaults(func=run)


def run(args, ctx) -> int:
    config = ctx.config
    ctx.docker.check_availability()

    tag = generated_tag(ctx, args.tag)
    build_args = {**config.get_build_args(), **parse_key_values(args.build_arg, "--build-arg KEY=VALUE")}
    local_image = f"{config.get_local_image_name()}:{tag}"

    logger.info("=" * 60)
    logger.info("   Build")
    logger.info("=" * 60)
    logger.info(f"Context: {args.context or config.get_build_context()}")
    if args.dockerfile or config.get_dockerfile():
        logger.info(f"Dockerfile: {args.dockerfile or config.get_dockerfile()}")
    logger.info(f"Image: {local_image}")

    build_and_track(
        ctx,
        tag,
        context=args.context,
        dockerfile=args.dockerfile,
        build_args=build_args,
        no_cache=args.no_cache,
        verbose=args.build_verbose or ctx.verbose,
    )
    logger.info(f"✓ Build complete -> {local_image}")
    return 0
