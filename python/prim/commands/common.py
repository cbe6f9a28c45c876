"""
Shared plumbing for prim subcommands.

CommandContext builds the collaborators a command needs (configuration,
docker client, tracking and preference stores, prompter) on first use, so
commands that never touch docker or the config file do not pay for them and
tests can inject fakes.
"""

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from prim.clean_preferences import CleanPreferences
from prim.config_manager import ConfigManager
from prim.docker_client import DockerClient
from prim.error_utils import create_config_error
from prim.image_tracker import ImageTracker, TrackedImage
from prim.logging_utils import get_logger
from prim.report_utils import format_timestamp, utc_now_iso
from prim.selection import TerminalPrompter
from prim.tag_generator import generate_tag

logger = get_logger(__name__)

BUILD_NEW = "Build new image with generated tag"
RECENT_IMAGE_CHOICES = 5


class CommandCancelled(Exception):
    """Raised when the user backs out of a prompt; not an error."""


class CommandContext:
    """Lazily constructed collaborators for one CLI invocation."""

    def __init__(
        self,
        config_file: Optional[str] = None,
        verbose: bool = False,
        project_path: Optional[str] = None,
        prompter=None,
        config: Optional[ConfigManager] = None,
        docker=None,
    ):
        self.config_file = config_file
        self.verbose = verbose
        self.project_path = os.path.abspath(project_path or os.getcwd())
        self.prompter = prompter or TerminalPrompter()
        self._config = config
        self._docker = docker
        self._tracker = None
        self._preferences = None

    @property
    def config(self) -> ConfigManager:
        if self._config is None:
            self._config = ConfigManager(self.config_file)
        return self._config

    @property
    def docker(self):
        if self._docker is None:
            self._docker = DockerClient.from_config(self.config)
        return self._docker

    @property
    def storage_dir(self) -> Path:
        return self.config.get_storage_dir()

    @property
    def tracker(self) -> ImageTracker:
        if self._tracker is None:
            self._tracker = ImageTracker(self.storage_dir)
        return self._tracker

    @property
    def preferences(self) -> CleanPreferences:
        if self._preferences is None:
            self._preferences = CleanPreferences(self.storage_dir)
        return self._preferences


def parse_key_values(items: Optional[Iterable[str]], option: str = "KEY=VALUE") -> Dict[str, str]:
    """Turn ['A=1', 'B=x=y'] into {'A': '1', 'B': 'x=y'}.

    Raises:
        ValueError: for an item without '=' or with an empty key
    """
    result: Dict[str, str] = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected {option}, got: {item}")
        result[key] = value
    return result


def generated_tag(ctx: CommandContext, explicit_tag: Optional[str] = None) -> str:
    """Explicit tag as given, otherwise one generated per deployment.tag_strategy."""
    if explicit_tag:
        return explicit_tag
    strategy = ctx.config.get_tag_strategy()
    try:
        return generate_tag(
            strategy,
            project_root=ctx.project_path,
            project_version=ctx.config.get_project_version(),
        )
    except ValueError as e:
        raise create_config_error("deployment.tag_strategy", strategy.value, str(e)) from e


def choose_tracked_tag(ctx: CommandContext, message: str) -> Optional[str]:
    """Offer the most recent tracked builds plus 'build new'.

    Returns:
        The chosen tag, or None when there are no tracked builds or the user
        picked 'build new'

    Raises:
        CommandCancelled: if the user cancels the prompt
    """
    local_image = ctx.config.get_local_image_name()
    tracked: List[TrackedImage] = ctx.tracker.list_images(ctx.project_path, local_image)[:RECENT_IMAGE_CHOICES]
    if not tracked:
        return None

    logger.info("Found previously built images:")
    options = [
        f"{image.tag} (built {format_timestamp(image.built_at)}{', ' + image.size if image.size else ''})"
        for image in tracked
    ]
    options.append(BUILD_NEW)
    index = ctx.prompter.choose(message, options, default=0)
    if index is None:
        raise CommandCancelled()
    if index == len(tracked):
        return None
    return tracked[index].tag


def build_and_track(
    ctx: CommandContext,
    tag: str,
    context: Optional[str] = None,
    dockerfile: Optional[str] = None,
    build_args: Optional[Dict[str, str]] = None,
    no_cache: bool = False,
    verbose: bool = False,
) -> str:
    """Build local_image:tag, record it in the tracking store and sweep stale entries.

    Returns:
        The local image reference that was built
    """
    config = ctx.config
    local_image_name = config.get_local_image_name()
    local_image = f"{local_image_name}:{tag}"
    dockerfile = dockerfile or config.get_dockerfile()
    build_args = build_args if build_args is not None else config.get_build_args()

    ctx.docker.build_image(
        context or config.get_build_context(),
        dockerfile,
        local_image,
        build_args,
        no_cache=no_cache,
        verbose=verbose,
    )

    ctx.tracker.record(
        TrackedImage(
            image_name=local_image_name,
            tag=tag,
            full_image_name=local_image,
            project_path=ctx.project_path,
            built_at=utc_now_iso(),
            size=ctx.docker.get_image_size(local_image),
            dockerfile=dockerfile,
            build_args=dict(build_args),
        )
    )
    removed = ctx.tracker.sweep_stale()
    if removed:
        logger.debug(f"Dropped {removed} tracking entries older than the retention period")
    return local_image


def default_container_name(now: Optional[datetime] = None) -> str:
    moment = now or datetime.now(timezone.utc)
    return f"im-test-{int(moment.timestamp() * 1000)}"
