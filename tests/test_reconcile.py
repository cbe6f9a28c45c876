"""Unit tests for prim/reconcile.py"""

from conftest import FakeDockerClient, make_tracked

from prim.reconcile import CleanupTarget, ImageReconciler, sort_targets
from prim.report_utils import format_timestamp

REGISTRY_REPO = "registry.example.com/team/app"


class TestGatherTargets:
    """Tests for merging tracked builds with live engine state"""

    def test_both_sources_empty(self, fake_docker, tracker, project_dir):
        assert ImageReconciler(fake_docker, tracker).gather_targets(project_dir, "app", REGISTRY_REPO) == []

    def test_tracked_only(self, fake_docker, tracker, project_dir):
        tracker.record(make_tracked(project_dir, "app", "v1", "2026-10-01T10:00:00+00:00", size="10MB"))
        fake_docker.containers["app:v1"] = ["c1"]

        targets = ImageReconciler(fake_docker, tracker).gather_targets(project_dir, "app", REGISTRY_REPO)

        assert len(targets) == 1
        target = targets[0]
        assert target.image == "app:v1"
        assert target.tag == "v1"
        assert target.size == "10MB"
        assert target.created == "2026-10-01T10:00:00+00:00"
        assert target.is_tracked is True
        assert target.containers == ["c1"]

    def test_docker_only_images_are_untracked(self, fake_docker, tracker, project_dir):
        fake_docker.add_image("app", "manual", size="5MB", created="2026-10-02 09:00:00 +0000 UTC")
        fake_docker.add_image(REGISTRY_REPO, "v7", created="2026-10-03 09:00:00 +0000 UTC")

        targets = ImageReconciler(fake_docker, tracker).gather_targets(project_dir, "app", REGISTRY_REPO)

        assert [t.image for t in targets] == [f"{REGISTRY_REPO}:v7", "app:manual"]
        assert all(not t.is_tracked for t in targets)

    def test_tracked_fields_win_and_gaps_are_filled(self, fake_docker, tracker, project_dir):
        tracker.record(make_tracked(project_dir, "app", "v1", "2026-10-01T10:00:00+00:00", size=None))
        fake_docker.add_image("app", "v1", size="99MB", created="2026-09-01 00:00:00 +0000 UTC", containers=["c9"])

        [target] = ImageReconciler(fake_docker, tracker).gather_targets(project_dir, "app", REGISTRY_REPO)

        assert target.is_tracked is True
        assert target.created == "2026-10-01T10:00:00+00:00"
        assert target.size == "99MB"
        assert target.containers == ["c9"]

    def test_containers_always_come_from_engine(self, fake_docker, tracker, project_dir):
        tracker.record(make_tracked(project_dir, "app", "v1", "2026-10-01T10:00:00+00:00"))
        fake_docker.add_image("app", "v1")

        [target] = ImageReconciler(fake_docker, tracker).gather_targets(project_dir, "app", REGISTRY_REPO)

        assert target.containers == []

    def test_no_duplicate_references(self, fake_docker, tracker, project_dir):
        tracker.record(make_tracked(project_dir, "app", "v1", "2026-10-01T10:00:00+00:00"))
        fake_docker.add_image("app", "v1")
        fake_docker.add_image(REGISTRY_REPO, "v1")

        targets = ImageReconciler(fake_docker, tracker).gather_targets(project_dir, "app", REGISTRY_REPO)
        images = [t.image for t in targets]

        assert sorted(images) == sorted(set(images))
        assert set(images) == {"app:v1", f"{REGISTRY_REPO}:v1"}

    def test_same_local_and_registry_repo_listed_once(self, fake_docker, tracker, project_dir):
        fake_docker.add_image("app", "v1")
        listed = []
        original = fake_docker.list_images_by_repository

        def spy(repository):
            listed.append(repository)
            return original(repository)

        fake_docker.list_images_by_repository = spy

        targets = ImageReconciler(fake_docker, tracker).gather_targets(project_dir, "app", "app")

        assert listed == ["app"]
        assert [t.image for t in targets] == ["app:v1"]

    def test_idempotent(self, fake_docker, tracker, project_dir):
        tracker.record(make_tracked(project_dir, "app", "v1", "2026-10-01T10:00:00+00:00"))
        fake_docker.add_image("app", "v2", created="2026-10-05 09:00:00 +0000 UTC", containers=["c1"])
        reconciler = ImageReconciler(fake_docker, tracker)

        first = reconciler.gather_targets(project_dir, "app", REGISTRY_REPO)
        second = reconciler.gather_targets(project_dir, "app", REGISTRY_REPO)

        assert first == second

    def test_independent_of_listing_order(self, tracker, project_dir):
        tracker.record(make_tracked(project_dir, "app", "v1", "2026-10-01T10:00:00+00:00", size="10MB"))
        listings = [
            ("app", "v1", "10MB", "2026-10-01 10:00:05 +0000 UTC"),
            ("app", "v2", "11MB", "2026-10-04 08:00:00 +0000 UTC"),
            (REGISTRY_REPO, "v2", "11MB", "2026-10-04 08:00:00 +0000 UTC"),
        ]
        forward, backward = FakeDockerClient(), FakeDockerClient()
        for repository, tag, size, created in listings:
            forward.add_image(repository, tag, size=size, created=created)
        for repository, tag, size, created in reversed(listings):
            backward.add_image(repository, tag, size=size, created=created)

        assert ImageReconciler(forward, tracker).gather_targets(
            project_dir, "app", REGISTRY_REPO
        ) == ImageReconciler(backward, tracker).gather_targets(project_dir, "app", REGISTRY_REPO)

    def test_tracked_v1_and_untracked_v2(self, fake_docker, tracker, project_dir):
        """A tracked older build plus a newer hand-built image with a container"""
        tracker.record(make_tracked(project_dir, "app", "v1", "2026-10-01T10:00:00+00:00", size="10MB"))
        fake_docker.add_image("app", "v1", size="10MB", created="2026-10-01 10:00:05 +0000 UTC")
        fake_docker.add_image("app", "v2", size="11MB", created="2026-10-04 08:00:00 +0000 UTC", containers=["c1"])

        targets = ImageReconciler(fake_docker, tracker).gather_targets(project_dir, "app", REGISTRY_REPO)

        assert targets == [
            CleanupTarget(
                image="app:v2",
                tag="v2",
                size="11MB",
                created="2026-10-04 08:00:00 +0000 UTC",
                is_tracked=False,
                containers=["c1"],
            ),
            CleanupTarget(
                image="app:v1",
                tag="v1",
                size="10MB",
                created="2026-10-01T10:00:00+00:00",
                is_tracked=True,
                containers=[],
            ),
        ]


class TestSortTargets:
    """Tests for candidate ordering"""

    def test_newest_first_with_mixed_formats(self):
        targets = [
            CleanupTarget(image="app:a", tag="a", created="2026-10-01T10:00:00Z"),
            CleanupTarget(image="app:b", tag="b", created="2026-10-03 10:00:00 +0000 UTC"),
            CleanupTarget(image="app:c", tag="c", created="2026-10-02T10:00:00+00:00"),
        ]

        assert [t.tag for t in sort_targets(targets)] == ["b", "c", "a"]

    def test_missing_and_unparseable_sort_last(self):
        targets = [
            CleanupTarget(image="app:none", tag="none"),
            CleanupTarget(image="app:bad", tag="bad", created="yesterday-ish"),
            CleanupTarget(image="app:new", tag="new", created="2026-10-01T10:00:00+00:00"),
        ]

        assert [t.tag for t in sort_targets(targets)] == ["new", "bad", "none"]

    def test_ties_do_not_depend_on_input_order(self):
        a = CleanupTarget(image="app:a", tag="a", created="2026-10-01T10:00:00+00:00")
        b = CleanupTarget(image="app:b", tag="b", created="2026-10-01T10:00:00+00:00")

        assert sort_targets([a, b]) == sort_targets([b, a])
        assert [t.image for t in sort_targets([b, a])] == ["app:a", "app:b"]


class TestDescribe:
    """Tests for the selection menu label"""

    def test_docker_and_iso_times_render_alike(self):
        docker_style = CleanupTarget(image="app:v2", tag="v2", created="2026-10-04 08:00:00 +0000 UTC")
        iso_style = CleanupTarget(image="app:v1", tag="v1", created="2026-10-04T08:00:00+00:00", is_tracked=True)

        docker_label = docker_style.describe()
        iso_label = iso_style.describe()

        assert "UTC" not in docker_label
        assert docker_label.split(" - ")[1] == iso_label.split(" - ")[1].replace(" [tracked]", "")
        assert docker_label == f"app:v2 - {format_timestamp('2026-10-04T08:00:00+00:00')}"

    def test_unparseable_time_is_shown_raw(self):
        assert CleanupTarget(image="app:x", tag="x", created="someday").describe() == "app:x - someday"
