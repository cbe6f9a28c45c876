"""
Tag generation strategies for built images.

timestamp   -> vYYYYMMDD-HHMMSS (UTC)
git_commit  -> v<short-sha>, falls back to timestamp outside a git repo
git_tag     -> v<nearest-tag>, falls back to git_commit
semver      -> v<version> from config or package.json, falls back to timestamp
manual      -> the explicit tag, unchanged
"""

import json
import logging
import subprocess
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class TagStrategy(Enum):
    TIMESTAMP = "timestamp"
    GIT_COMMIT = "git_commit"
    GIT_TAG = "git_tag"
    SEMVER = "semver"
    MANUAL = "manual"


def ensure_version_prefix(tag: str) -> str:
    """Prefix a tag with 'v' unless it already starts with one."""
    return tag if tag.startswith("v") else f"v{tag}"


def from_timestamp(moment: Optional[datetime] = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y%m%d-%H%M%S")


def _git(args, project_root: Optional[str]) -> str:
    result = subprocess.run(
        ["git"] + args,
        cwd=project_root or None,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def from_git_commit(project_root: Optional[str] = None) -> str:
    try:
        sha = _git(["rev-parse", "--short", "HEAD"], project_root)
        if sha:
            return sha
    except (OSError, subprocess.CalledProcessError) as e:
        logger.debug(f"git rev-parse failed: {e}")
    logger.warning("Not a git repo or unable to read commit; falling back to timestamp")
    return from_timestamp()


def from_git_tag(project_root: Optional[str] = None) -> str:
    try:
        tag = _git(["describe", "--tags", "--abbrev=0"], project_root)
        if tag:
            return tag
    except (OSError, subprocess.CalledProcessError) as e:
        logger.debug(f"git describe failed: {e}")
    logger.warning("No git tag found; falling back to commit")
    return from_git_commit(project_root)


def from_semver(project_root: Optional[str] = None, explicit: Optional[str] = None) -> str:
    if explicit:
        return explicit

    package_json = Path(project_root or ".") / "package.json"
    try:
        with open(package_json, "r", encoding="utf-8") as f:
            version = json.load(f).get("version")
        if version:
            return str(version)
    except (OSError, ValueError, AttributeError):
        pass

    logger.warning("Semver strategy requested but no version found; falling back to timestamp")
    return from_timestamp()


def generate_tag(
    strategy: TagStrategy,
    explicit_tag: Optional[str] = None,
    project_root: Optional[str] = None,
    project_version: Optional[str] = None,
) -> str:
    """Generate a tag for the given strategy.

    Auto-generated tags are prefixed with 'v' when missing; manual tags are
    returned exactly as given.

    Raises:
        ValueError: manual strategy without an explicit tag
    """
    if strategy == TagStrategy.MANUAL:
        if not explicit_tag:
            raise ValueError("Manual tag strategy requires --tag")
        return explicit_tag

    if strategy == TagStrategy.GIT_COMMIT:
        tag = from_git_commit(project_root)
    elif strategy == TagStrategy.GIT_TAG:
        tag = from_git_tag(project_root)
    elif strategy == TagStrategy.SEMVER:
        tag = from_semver(project_root, project_version)
    else:
        tag = from_timestamp()
    return ensure_version_prefix(tag)
