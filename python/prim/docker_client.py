"""
Docker client for local engine operations.

This module wraps the docker CLI: availability checks, build/tag/push/login,
running containers, and the image/container queries and removals used by
the cleanup workflow.
"""

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional

from prim.error_utils import (
    create_docker_command_error,
    create_docker_daemon_error,
    create_docker_not_installed_error,
    create_login_error,
)
from prim.retry_utils import retry_with_backoff

logger = logging.getLogger(__name__)


class DockerCommandError(Exception):
    """Raised when a docker invocation exits non-zero or cannot be run."""

    def __init__(self, args: List[str], returncode: Optional[int], stderr: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        message = f"docker {' '.join(args[:2])} failed"
        if returncode is not None:
            message += f" with exit code {returncode}"
        if self.stderr:
            message += f": {self.stderr}"
        super().__init__(message)


@dataclass
class ImageListing:
    """One row of `docker images` output"""

    image: str  # repository:tag
    repository: str
    tag: str
    size: Optional[str] = None
    created: Optional[str] = None


class DockerClient:
    """Standardized client for the docker CLI"""

    def __init__(
        self,
        executable: str = "docker",
        timeout: Optional[int] = None,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
    ):
        """Initialize DockerClient.

        Args:
            executable: docker binary name or path
            timeout: Seconds allowed per docker invocation (None = unlimited)
            max_retries: Retries for registry-bound operations (push, login)
            initial_delay: First backoff delay in seconds
            max_delay: Upper bound for backoff delays
            exponential_base: Backoff growth factor
            jitter: Randomize backoff delays by +/-10%
        """
        self.executable = executable
        self.timeout = timeout
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter

    @classmethod
    def from_config(cls, config_manager) -> "DockerClient":
        return cls(
            timeout=config_manager.get_engine_timeout(),
            max_retries=config_manager.get_max_retries(),
            initial_delay=config_manager.get_retry_initial_delay(),
            max_delay=config_manager.get_retry_max_delay(),
            exponential_base=config_manager.get_retry_exponential_base(),
            jitter=config_manager.get_retry_jitter(),
        )

    def run_docker_command(
        self,
        args: List[str],
        capture: bool = True,
        input_text: Optional[str] = None,
    ) -> str:
        """Run a docker command.

        Args:
            args: Arguments after the docker executable
            capture: Capture stdout/stderr; when False output goes to the terminal
            input_text: Text written to stdin

        Returns:
            Captured stdout ('' when not capturing)

        Raises:
            DockerCommandError: non-zero exit, timeout, or missing executable
        """
        cmd = [self.executable] + list(args)
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                input=input_text,
                capture_output=capture,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as e:
            raise DockerCommandError(args, e.returncode, e.stderr or "") from e
        except subprocess.TimeoutExpired as e:
            raise DockerCommandError(args, None, f"timed out after {self.timeout}s") from e
        except OSError as e:
            raise DockerCommandError(args, None, str(e)) from e
        return result.stdout if capture and result.stdout else ""

    def _retrying(self, func):
        return retry_with_backoff(
            max_retries=self.max_retries,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            exponential_base=self.exponential_base,
            jitter=self.jitter,
        )(func)

    # ------------------------------------------------------------------
    # Availability / metadata
    # ------------------------------------------------------------------

    def check_availability(self) -> None:
        """Fail fast when docker is missing or its daemon is unreachable.

        Raises:
            ActionableError: docker not installed, or daemon not running
        """
        logger.debug("Checking Docker availability...")
        if shutil.which(self.executable) is None:
            raise create_docker_not_installed_error()

        try:
            self.run_docker_command(["info"])
        except DockerCommandError as e:
            raise create_docker_daemon_error(e) from e
        logger.debug("Docker is available and running")

    def get_version(self) -> str:
        try:
            return self.run_docker_command(["version", "--format", "{{.Client.Version}}"]).strip() or "Unknown"
        except DockerCommandError:
            return "Unknown"

    def image_exists(self, image_ref: str) -> bool:
        try:
            self.run_docker_command(["image", "inspect", image_ref])
            return True
        except DockerCommandError:
            return False

    def get_image_size(self, image_ref: str) -> Optional[str]:
        try:
            output = self.run_docker_command(["images", image_ref, "--format", "{{.Size}}"])
        except DockerCommandError as e:
            logger.debug(f"Could not read size of {image_ref}: {e}")
            return None
        lines = [line.strip() for line in output.splitlines() if line.strip()]
        return lines[0] if lines else None

    # ------------------------------------------------------------------
    # Engine state queries
    # ------------------------------------------------------------------

    def list_images_by_repository(self, repository: str) -> List[ImageListing]:
        """List local images of a repository; an engine failure yields an empty list."""
        try:
            output = self.run_docker_command(["images", repository, "--format", "{{json .}}"])
        except DockerCommandError as e:
            logger.warning(f"Could not list images for {repository}: {e}")
            return []

        listings = []
        for line in output.splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError:
                logger.debug(f"Skipping unparseable docker images line: {line}")
                continue
            repo = row.get("Repository") or repository
            tag = row.get("Tag")
            if not tag or tag == "<none>":
                continue
            listings.append(
                ImageListing(
                    image=f"{repo}:{tag}",
                    repository=repo,
                    tag=tag,
                    size=row.get("Size") or None,
                    created=row.get("CreatedAt") or None,
                )
            )
        return listings

    def list_containers_by_image(self, image_ref: str) -> List[str]:
        """IDs of all containers (running or stopped) created from image_ref."""
        try:
            output = self.run_docker_command(["ps", "-a", "-q", "--filter", f"ancestor={image_ref}"])
        except DockerCommandError as e:
            logger.debug(f"Could not list containers for {image_ref}: {e}")
            return []

        container_ids: List[str] = []
        for line in output.splitlines():
            container_id = line.strip()
            if container_id and container_id not in container_ids:
                container_ids.append(container_id)
        return container_ids

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def remove_container(self, container_id: str) -> None:
        """Force-remove a container. Raises DockerCommandError on failure."""
        self.run_docker_command(["rm", "-f", container_id])
        logger.debug(f"Removed container: {container_id}")

    def remove_image(self, image_ref: str) -> None:
        """Remove an image. Raises DockerCommandError on failure."""
        self.run_docker_command(["rmi", image_ref])
        logger.debug(f"Removed image: {image_ref}")

    def build_image(
        self,
        context: str,
        dockerfile: Optional[str] = None,
        image_name: Optional[str] = None,
        build_args: Optional[Dict[str, str]] = None,
        no_cache: bool = False,
        verbose: bool = False,
    ) -> None:
        """Build an image.

        Raises:
            ActionableError: when the build fails
        """
        logger.info(f"Building Docker image: {image_name or 'unnamed'}")

        args = ["build"]
        if image_name:
            args += ["-t", image_name]
        if dockerfile:
            args += ["-f", dockerfile]
        if no_cache:
            args.append("--no-cache")
        for key, value in (build_args or {}).items():
            args += ["--build-arg", f"{key}={value}"]
        args.append(context)

        try:
            self.run_docker_command(args, capture=not verbose)
        except DockerCommandError as e:
            raise create_docker_command_error("build", e) from e
        logger.info(f"✓ Built image: {image_name or 'unnamed'}")

    def tag_image(self, source: str, target: str) -> None:
        logger.debug(f"Tagging {source} -> {target}")
        try:
            self.run_docker_command(["tag", source, target])
        except DockerCommandError as e:
            raise create_docker_command_error("tag", e) from e
        logger.info(f"✓ Tagged image: {target}")

    def push_image(self, image_name: str, verbose: bool = False) -> None:
        """Push an image, retrying transient registry failures."""
        logger.info(f"Pushing image: {image_name}")

        @self._retrying
        def _push():
            self.run_docker_command(["push", image_name], capture=not verbose)

        try:
            _push()
        except DockerCommandError as e:
            raise create_docker_command_error("push", e) from e
        logger.info(f"✓ Pushed image: {image_name}")

    def login(self, registry: str, username: str, password: str) -> None:
        """Log into a registry, passing the password on stdin."""
        logger.info(f"Logging into registry: {registry}")

        @self._retrying
        def _login():
            self.run_docker_command(
                ["login", registry, "--username", username, "--password-stdin"],
                input_text=password,
            )

        try:
            _login()
        except DockerCommandError as e:
            raise create_login_error(registry, e) from e
        logger.info(f"✓ Logged into registry: {registry}")

    def run_container(
        self,
        image_ref: str,
        name: Optional[str] = None,
        ports: Optional[List[str]] = None,
        env: Optional[Dict[str, str]] = None,
        detach: bool = True,
        rm: bool = True,
    ) -> str:
        """Start a container; returns the container id when detached."""
        args = ["run"]
        if detach:
            args.append("-d")
        if rm:
            args.append("--rm")
        if name:
            args += ["--name", name]
        for mapping in ports or []:
            args += ["-p", mapping]
        for key, value in (env or {}).items():
            args += ["-e", f"{key}={value}"]
        args.append(image_ref)

        try:
            output = self.run_docker_command(args, capture=detach)
        except DockerCommandError as e:
            raise create_docker_command_error("run", e) from e
        return output.strip()
