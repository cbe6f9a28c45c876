"""
Reconciliation of tracked builds with live docker state.

The tracking store only knows about images prim built; docker may also hold
images tagged by hand or pulled, and may have lost images the store still
references. ImageReconciler merges both into one list of CleanupTarget, one
per image reference, keeping the tracked metadata where available and
always taking container membership from docker.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from prim.logging_utils import get_logger
from prim.report_utils import format_timestamp, timestamp_or_epoch

logger = get_logger(__name__)


@dataclass
class CleanupTarget:
    """One image reference that a cleanup run may remove."""

    image: str  # repository:tag
    tag: str
    size: Optional[str] = None
    created: Optional[str] = None
    is_tracked: bool = False
    containers: List[str] = field(default_factory=list)

    def describe(self) -> str:
        parts = [self.image]
        if self.size:
            parts.append(f"({self.size})")
        if self.created:
            parts.append(f"- {format_timestamp(self.created)}")
        if self.is_tracked:
            parts.append("[tracked]")
        if self.containers:
            parts.append(f"- {len(self.containers)} container(s)")
        return " ".join(parts)


def sort_targets(targets: List[CleanupTarget]) -> List[CleanupTarget]:
    """Newest first; missing/unparseable times count as the epoch; ties by reference."""
    by_reference = sorted(targets, key=lambda t: t.image)
    return sorted(by_reference, key=lambda t: timestamp_or_epoch(t.created), reverse=True)


class ImageReconciler:
    """Builds the authoritative cleanup candidate list for a project."""

    def __init__(self, docker, tracker):
        """
        Args:
            docker: Engine client (list_images_by_repository, list_containers_by_image)
            tracker: ImageTracker for the current storage directory
        """
        self.docker = docker
        self.tracker = tracker

    def gather_targets(self, project_path: str, local_repo: str, registry_repo: str) -> List[CleanupTarget]:
        """Merge tracked builds and live images of local_repo/registry_repo.

        Returns:
            De-duplicated targets, newest first. Empty when neither source has anything.
        """
        targets: Dict[str, CleanupTarget] = {}

        for tracked in self.tracker.list_images(project_path, local_repo):
            image_ref = f"{local_repo}:{tracked.tag}"
            targets[image_ref] = CleanupTarget(
                image=image_ref,
                tag=tracked.tag,
                size=tracked.size,
                created=tracked.built_at,
                is_tracked=True,
                containers=self.docker.list_containers_by_image(image_ref),
            )

        repositories = [local_repo] if registry_repo == local_repo else [local_repo, registry_repo]
        for repository in repositories:
            for listing in self.docker.list_images_by_repository(repository):
                containers = self.docker.list_containers_by_image(listing.image)
                existing = targets.get(listing.image)
                if existing is not None:
                    existing.size = existing.size or listing.size
                    existing.created = existing.created or listing.created
                    existing.containers = containers
                else:
                    targets[listing.image] = CleanupTarget(
                        image=listing.image,
                        tag=listing.tag,
                        size=listing.size,
                        created=listing.created,
                        is_tracked=False,
                        containers=containers,
                    )

        logger.debug(
            f"Reconciled {len(targets)} image(s) for {local_repo} "
            f"({sum(1 for t in targets.values() if t.is_tracked)} tracked)"
        )
        return sort_targets(list(targets.values()))
