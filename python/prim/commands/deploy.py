"""
prim deploy: build (or reuse) an image, push it to the registry and
optionally clean up the local copies afterwards.
"""

import socket

from prim.commands.common import CommandCancelled, build_and_track, choose_tracked_tag, generated_tag
from prim.docker_client import DockerCommandError
from prim.error_utils import create_dns_error
from prim.logging_utils import get_logger

logger = get_logger(__name__)


def register(subparsers) -> None:
    parser = subparsers.add_parser("deploy", help="Deploy to registry")
    parser.add_argument("-t", "--tag", help="Version tag to use (overrides config strategy)")
    parser.add_argument("-c", "--context", help="Build context path (overrides config, used when not skipping build)")
    parser.add_argument("-f", "--dockerfile", help="Path to Dockerfile (overrides config, used when not skipping build)")
    parser.add_argument("--skip-build", action="store_true", help="Skip building and deploy existing local image")
    parser.add_argument("--skip-dns-check", action="store_true", help="Skip DNS check")
    parser.add_argument("--force", action="store_true", help="Force deployment without confirmation")
    parser.add_argument(
        "--force-build",
        action="store_true",
        help="Force build new image instead of choosing from menu (useful for CI/CD)",
    )
    parser.add_argument("--no-latest", dest="latest", action="store_false", help="Don't push latest tag")
    parser.add_argument("--skip-auth", action="store_true", help="Skip authentication (assume already logged in)")
    parser.set_defaults(func=run)


def resolve_host(host: str) -> str:
    """Resolve host (a trailing :port is ignored) and return its first address.

    Raises:
        OSError: when the name can not be resolved
    """
    hostname = host.split("/")[0]
    if hostname.count(":") == 1:
        hostname = hostname.split(":")[0]
    info = socket.getaddrinfo(hostname, None)
    return info[0][4][0]


def check_dns(host: str, force: bool) -> None:
    logger.info(f"Checking DNS for {host}...")
    try:
        address = resolve_host(host)
    except OSError as e:
        if force:
            logger.warning(f"DNS check failed for {host}: {e} (continuing due to --force)")
            return
        raise create_dns_error(host, e) from e
    logger.info(f"✓ DNS OK for {host} -> {address}")


def run(args, ctx) -> int:
    config = ctx.config
    docker = ctx.docker
    docker.check_availability()

    if config.is_dns_check_enabled() and not args.skip_dns_check:
        check_dns(config.get_registry_host(), args.force)

    if not args.force and not ctx.prompter.confirm("Proceed with deployment?", default=True):
        logger.info("Deployment cancelled")
        return 0

    tag = args.tag
    reuse_tracked = False
    if not tag and not args.skip_build and not args.force and not args.force_build:
        try:
            tag = choose_tracked_tag(ctx, "Which image would you like to deploy?")
        except CommandCancelled:
            logger.info("Deployment cancelled")
            return 0
        reuse_tracked = tag is not None
    if not tag:
        tag = generated_tag(ctx)

    local_image = f"{config.get_local_image_name()}:{tag}"
    registry_image = config.get_full_image_name(tag)

    if not args.skip_auth:
        username, password = config.get_credentials()
        if username and password:
            docker.login(config.get_registry_host(), username, password)
        else:
            logger.warning("No registry credentials provided; assuming already logged in")

    if args.skip_build:
        logger.info("Skipping build step")
    elif reuse_tracked and docker.image_exists(local_image):
        logger.info(f"Using previously built image: {local_image}")
    else:
        build_and_track(ctx, tag, context=args.context, dockerfile=args.dockerfile, verbose=ctx.verbose)

    docker.tag_image(local_image, registry_image)
    docker.push_image(registry_image, verbose=ctx.verbose)

    push_latest = args.latest and config.should_push_latest()
    latest_image = config.get_full_image_name("latest")
    if push_latest:
        docker.tag_image(local_image, latest_image)
        docker.push_image(latest_image, verbose=ctx.verbose)

    if config.is_auto_cleanup():
        cleanup_local_images(ctx, tag, [local_image, registry_image] + ([latest_image] if push_latest else []))

    logger.info(f"✓ Deployment complete -> {registry_image}")
    return 0


def cleanup_local_images(ctx, tag: str, images) -> None:
    """Remove the local copies of a deployed image and forget its tracking entry."""
    for image in images:
        try:
            ctx.docker.remove_image(image)
        except DockerCommandError as e:
            logger.warning(f"Failed to remove local image {image}: {e}")
    ctx.tracker.remove(ctx.project_path, ctx.config.get_local_image_name(), tag)
