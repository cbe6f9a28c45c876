"""
Cleanup orchestration for project images.

A run goes START -> CONFIRM -> REMOVE_CONTAINERS -> REMOVE_IMAGES ->
UPDATE_TRACKING -> DONE, or ends in ABORTED when the user declines. Once
removal starts it runs to the end: every container/image removal attempt is
recorded as a RemovalOutcome and a failure never stops the batch.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set, Tuple

from prim.docker_client import DockerCommandError
from prim.logging_utils import get_logger
from prim.reconcile import CleanupTarget, ImageReconciler
from prim.report_utils import format_targets_table
from prim.selection import select_targets, unselected_tags
from prim.tag_generator import ensure_version_prefix

logger = get_logger(__name__)


class CleanupState(Enum):
    START = "start"
    CONFIRM = "confirm"
    REMOVE_CONTAINERS = "remove_containers"
    REMOVE_IMAGES = "remove_images"
    UPDATE_TRACKING = "update_tracking"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class RemovalOutcome:
    """Result of one removal attempt."""

    kind: str  # "container" or "image"
    ref: str
    image: str  # owning target's image reference
    success: bool
    reason: Optional[str] = None


@dataclass
class CleanupReport:
    """Everything a cleanup run did, built up as it goes."""

    targets: List[CleanupTarget] = field(default_factory=list)
    state: CleanupState = CleanupState.START
    outcomes: List[RemovalOutcome] = field(default_factory=list)
    untracked_tags: List[str] = field(default_factory=list)

    def _count(self, kind: str, success: bool) -> int:
        return sum(1 for o in self.outcomes if o.kind == kind and o.success is success)

    @property
    def removed_containers(self) -> int:
        return self._count("container", True)

    @property
    def failed_containers(self) -> int:
        return self._count("container", False)

    @property
    def removed_images(self) -> int:
        return self._count("image", True)

    @property
    def failed_images(self) -> int:
        return self._count("image", False)

    @property
    def failures(self) -> List[RemovalOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def aborted(self) -> bool:
        return self.state == CleanupState.ABORTED


class CleanupOrchestrator:
    """Removes a project's containers/images and keeps the stores in step."""

    def __init__(
        self,
        docker,
        tracker,
        preferences,
        prompter,
        project_path: str,
        local_repo: str,
        registry_repo: str,
    ):
        """
        Args:
            docker: Engine client
            tracker: ImageTracker
            preferences: CleanPreferences
            prompter: Object providing confirm() and checkbox()
            project_path: Absolute project directory (scoping key for both stores)
            local_repo: Local image repository (the tracked image name)
            registry_repo: Registry-qualified repository
        """
        self.docker = docker
        self.tracker = tracker
        self.preferences = preferences
        self.prompter = prompter
        self.project_path = project_path
        self.local_repo = local_repo
        self.registry_repo = registry_repo

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def clean_project(self, assume_yes: bool = False) -> CleanupReport:
        """Clean all images of the project, letting the user pick unless assume_yes."""
        candidates = ImageReconciler(self.docker, self.tracker).gather_targets(
            self.project_path, self.local_repo, self.registry_repo
        )
        if not candidates:
            logger.info("No images found to clean.")
            return CleanupReport(state=CleanupState.DONE)

        logger.info(f"Local repo: {self.local_repo}")
        logger.info(f"Registry repo: {self.registry_repo}")

        new_excluded = None
        if assume_yes:
            selected = candidates
        else:
            selection = self.select_interactively(candidates)
            if selection is None:
                logger.info("Cleanup cancelled.")
                return CleanupReport(targets=[], state=CleanupState.ABORTED)
            selected, new_excluded = selection

        if not selected:
            self.save_exclusions(new_excluded)
            logger.info("No images selected for cleanup.")
            return CleanupReport(state=CleanupState.DONE)

        return self.execute(selected, assume_yes=assume_yes, new_excluded=new_excluded)

    def clean_tag(self, tag: str, assume_yes: bool = False) -> CleanupReport:
        """Clean exactly local_repo:<tag> and registry_repo:<tag>, skipping reconciliation."""
        normalized = ensure_version_prefix(tag)
        references = [f"{self.local_repo}:{normalized}", f"{self.registry_repo}:{normalized}"]
        existing = []
        for ref in references:
            if ref not in existing and self.docker.image_exists(ref):
                existing.append(ref)

        if not existing:
            logger.info(f"No images found with tag: {normalized}")
            return CleanupReport(state=CleanupState.DONE)

        is_tracked = self.tracker.has_image(self.project_path, self.local_repo, normalized)
        targets = [
            CleanupTarget(
                image=ref,
                tag=normalized,
                is_tracked=is_tracked,
                containers=self.docker.list_containers_by_image(ref),
            )
            for ref in existing
        ]
        report = self.execute(targets, assume_yes=assume_yes)
        if report.state == CleanupState.DONE:
            logger.info(f"✓ Cleanup complete for tag: {normalized}")
        return report

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_interactively(
        self, candidates: List[CleanupTarget]
    ) -> Optional[Tuple[List[CleanupTarget], Set[str]]]:
        """Run the multi-select.

        Returns:
            (selected targets, tags left unchecked), or None if the user cancelled.
            Nothing is persisted here; see save_exclusions.
        """
        excluded = self.preferences.get_excluded(self.project_path, self.local_repo)
        logger.info("Images are pre-selected based on your previous choices.")

        selected = select_targets(candidates, excluded, self.prompter)
        if selected is None:
            return None
        return selected, unselected_tags(candidates, selected)

    def save_exclusions(self, new_excluded: Optional[Set[str]]) -> None:
        """Replace the stored exclusion set, so re-checking a tag un-excludes it."""
        if new_excluded is None:
            return
        self.preferences.set_excluded(self.project_path, self.local_repo, new_excluded)
        if new_excluded:
            logger.debug(f"Saved preferences to exclude {len(new_excluded)} images from future cleanups")

    # ------------------------------------------------------------------
    # Removal state machine
    # ------------------------------------------------------------------

    def confirm(self, targets: List[CleanupTarget]) -> bool:
        container_count = sum(len(t.containers) for t in targets)
        print("\n" + "=" * 60)
        print("⚠️  WARNING: You are about to remove the following images:")
        print("=" * 60)
        print(format_targets_table(targets))
        print("=" * 60)
        return self.prompter.confirm(
            f"Remove {len(targets)} image(s) and {container_count} container(s)?", default=False
        )

    def execute(
        self, targets: List[CleanupTarget], assume_yes: bool = False, new_excluded: Optional[Set[str]] = None
    ) -> CleanupReport:
        """Remove containers, then images, then tracking entries for targets.

        new_excluded, when given, is persisted only once CONFIRM is passed;
        a declined confirmation leaves both stores untouched.
        """
        report = CleanupReport(targets=list(targets))

        report.state = CleanupState.CONFIRM
        if assume_yes:
            logger.debug("--yes given, skipping confirmation prompt")
        elif not self.confirm(targets):
            report.state = CleanupState.ABORTED
            logger.info("Cleanup cancelled.")
            return report

        self.save_exclusions(new_excluded)

        logger.info(f"Cleaning up {len(targets)} selected image(s)...")

        report.state = CleanupState.REMOVE_CONTAINERS
        for target in targets:
            if target.containers:
                logger.info(f"Removing {len(target.containers)} container(s) for {target.image}...")
            for container_id in target.containers:
                report.outcomes.append(
                    self._attempt("container", container_id, target.image, self.docker.remove_container)
                )

        report.state = CleanupState.REMOVE_IMAGES
        for target in targets:
            logger.info(f"Removing image: {target.image}")
            report.outcomes.append(self._attempt("image", target.image, target.image, self.docker.remove_image))

        report.state = CleanupState.UPDATE_TRACKING
        for target in targets:
            if target.is_tracked:
                self.tracker.remove(self.project_path, self.local_repo, target.tag)
                if target.tag not in report.untracked_tags:
                    report.untracked_tags.append(target.tag)
        if report.untracked_tags:
            logger.debug(f"Removed tracking for {len(report.untracked_tags)} images")

        report.state = CleanupState.DONE
        self.log_summary(report)
        return report

    @staticmethod
    def _attempt(kind: str, ref: str, image: str, remove) -> RemovalOutcome:
        try:
            remove(ref)
            return RemovalOutcome(kind=kind, ref=ref, image=image, success=True)
        except DockerCommandError as e:
            logger.warning(f"Failed to remove {kind} {ref}: {e.stderr or e}")
            return RemovalOutcome(kind=kind, ref=ref, image=image, success=False, reason=e.stderr or str(e))

    @staticmethod
    def log_summary(report: CleanupReport) -> None:
        logger.info("📊 Cleanup Summary:")
        logger.info(f"   Images removed: {report.removed_images}/{len(report.targets)}")
        if report.removed_containers or report.failed_containers:
            logger.info(f"   Containers removed: {report.removed_containers}")
        if report.failed_containers:
            logger.info(f"   Container removals failed: {report.failed_containers}")
        if report.failed_images:
            logger.info(f"   Image removals failed: {report.failed_images}")
        if report.untracked_tags:
            logger.info(f"   Tracking entries removed: {len(report.untracked_tags)}")
        logger.info("✓ Cleanup complete")
