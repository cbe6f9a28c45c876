"""
Pytest configuration file.

Sets up the Python path so test files can import from the python/ directory,
and provides the fake docker engine and scripted prompter used by the
cleanup and command tests.
"""
import sys
from pathlib import Path

import pytest

# Add python directory to path for all tests
_python_dir = Path(__file__).parent.parent / 'python'
_python_dir_abs = str(_python_dir.absolute())
if _python_dir_abs not in sys.path:
    sys.path.insert(0, _python_dir_abs)

from prim.clean_preferences import CleanPreferences  # noqa: E402
from prim.docker_client import DockerCommandError, ImageListing  # noqa: E402
from prim.image_tracker import ImageTracker, TrackedImage  # noqa: E402


class FakeDockerClient:
    """In-memory stand-in for DockerClient that records every call."""

    def __init__(self):
        self.images = {}  # repository -> [ImageListing]
        self.containers = {}  # image ref -> [container ids]
        self.failing = set()  # refs/ids whose removal fails
        self.calls = []

    def add_image(self, repository, tag, size=None, created=None, containers=None):
        self.images.setdefault(repository, []).append(
            ImageListing(image=f"{repository}:{tag}", repository=repository, tag=tag, size=size, created=created)
        )
        if containers:
            self.containers[f"{repository}:{tag}"] = list(containers)

    def _has(self, image_ref):
        return any(listing.image == image_ref for listings in self.images.values() for listing in listings)

    # Engine interface used by the cleanup core
    def check_availability(self):
        self.calls.append(("check",))

    def list_images_by_repository(self, repository):
        return list(self.images.get(repository, []))

    def list_containers_by_image(self, image_ref):
        return list(self.containers.get(image_ref, []))

    def image_exists(self, image_ref):
        return self._has(image_ref)

    def remove_container(self, container_id):
        self.calls.append(("rm", container_id))
        if container_id in self.failing:
            raise DockerCommandError(["rm", "-f", container_id], 1, f"No such container: {container_id}")
        for ids in self.containers.values():
            if container_id in ids:
                ids.remove(container_id)

    def remove_image(self, image_ref):
        self.calls.append(("rmi", image_ref))
        if image_ref in self.failing or not self._has(image_ref):
            raise DockerCommandError(["rmi", image_ref], 1, f"No such image: {image_ref}")
        for repository, listings in self.images.items():
            self.images[repository] = [listing for listing in listings if listing.image != image_ref]

    # Build/deploy side
    def get_version(self):
        return "27.0.1"

    def get_image_size(self, image_ref):
        return "12.3MB"

    def build_image(self, context, dockerfile=None, image_name=None, build_args=None, no_cache=False, verbose=False):
        self.calls.append(("build", image_name, context, dockerfile, dict(build_args or {}), no_cache))
        repository, tag = image_name.rsplit(":", 1)
        self.add_image(repository, tag, size="12.3MB")

    def tag_image(self, source, target):
        self.calls.append(("tag", source, target))
        repository, tag = target.rsplit(":", 1)
        self.add_image(repository, tag)

    def push_image(self, image_name, verbose=False):
        self.calls.append(("push", image_name))

    def login(self, registry, username, password):
        self.calls.append(("login", registry, username))

    def run_container(self, image_ref, name=None, ports=None, env=None, detach=True, rm=True):
        self.calls.append(("run", image_ref, name, list(ports or []), dict(env or {}), detach, rm))
        return "c0ffee"

    def removals(self):
        return [call for call in self.calls if call[0] in ("rm", "rmi")]


class ScriptedPrompter:
    """Prompter that answers from pre-recorded responses."""

    ACCEPT = object()

    def __init__(self, confirms=None, selection=ACCEPT, choices=None, answers=None):
        self.confirms = list(confirms or [])
        self.selection = selection
        self.choices = list(choices or [])
        self.answers = dict(answers or {})
        self.confirm_calls = []
        self.checkbox_calls = []
        self.choose_calls = []

    def confirm(self, message, default=False):
        self.confirm_calls.append(message)
        return self.confirms.pop(0) if self.confirms else default

    def ask(self, message, default=""):
        return self.answers.get(message, default)

    def ask_secret(self, message):
        return self.answers.get(message, "")

    def choose(self, message, options, default=0):
        self.choose_calls.append((message, list(options)))
        return self.choices.pop(0) if self.choices else default

    def checkbox(self, message, labels, checked):
        self.checkbox_calls.append((list(labels), list(checked)))
        if self.selection is ScriptedPrompter.ACCEPT:
            return [i for i, is_checked in enumerate(checked) if is_checked]
        if callable(self.selection):
            return self.selection(labels, checked)
        return self.selection


def make_tracked(project_path, image_name, tag, built_at, size=None):
    return TrackedImage(
        image_name=image_name,
        tag=tag,
        full_image_name=f"{image_name}:{tag}",
        project_path=project_path,
        built_at=built_at,
        size=size,
    )


@pytest.fixture
def storage_dir(tmp_path):
    return tmp_path / "prim-images"


@pytest.fixture
def project_dir(tmp_path):
    path = tmp_path / "project"
    path.mkdir()
    return str(path)


@pytest.fixture
def tracker(storage_dir):
    return ImageTracker(storage_dir)


@pytest.fixture
def preferences(storage_dir):
    return CleanPreferences(storage_dir)


@pytest.fixture
def fake_docker():
    return FakeDockerClient()
