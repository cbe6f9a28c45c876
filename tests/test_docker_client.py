"""Unit tests for prim/docker_client.py"""

import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from prim.docker_client import DockerClient, DockerCommandError
from prim.error_utils import ActionableError, ErrorCategory


def completed(stdout=""):
    result = MagicMock()
    result.stdout = stdout
    return result


def failure(cmd, stderr="boom", returncode=1):
    return subprocess.CalledProcessError(returncode, cmd, output="", stderr=stderr)


@pytest.fixture
def client():
    return DockerClient(max_retries=2, initial_delay=0.01, max_delay=0.01, jitter=False)


class TestRunDockerCommand:
    """Tests for run_docker_command"""

    def test_returns_stdout(self, client):
        with patch("prim.docker_client.subprocess.run", return_value=completed("ok\n")) as mock_run:
            assert client.run_docker_command(["info"]) == "ok\n"

        args, kwargs = mock_run.call_args
        assert args[0] == ["docker", "info"]
        assert kwargs["check"] is True
        assert kwargs["capture_output"] is True

    def test_non_zero_exit_is_wrapped(self, client):
        with patch("prim.docker_client.subprocess.run", side_effect=failure(["docker", "rmi", "x"], "No such image")):
            with pytest.raises(DockerCommandError) as exc_info:
                client.run_docker_command(["rmi", "x"])

        assert exc_info.value.returncode == 1
        assert exc_info.value.stderr == "No such image"
        assert exc_info.value.args_list == ["rmi", "x"]

    def test_timeout_and_missing_binary_are_wrapped(self, client):
        with patch("prim.docker_client.subprocess.run", side_effect=subprocess.TimeoutExpired("docker", 5)):
            with pytest.raises(DockerCommandError, match="timed out"):
                client.run_docker_command(["info"])

        with patch("prim.docker_client.subprocess.run", side_effect=FileNotFoundError("docker")):
            with pytest.raises(DockerCommandError):
                client.run_docker_command(["info"])


class TestAvailability:
    """Tests for check_availability"""

    def test_not_installed(self, client):
        with patch("prim.docker_client.shutil.which", return_value=None):
            with pytest.raises(ActionableError) as exc_info:
                client.check_availability()

        assert exc_info.value.category == ErrorCategory.ENGINE
        assert "not installed" in exc_info.value.message

    def test_daemon_not_running(self, client):
        with patch("prim.docker_client.shutil.which", return_value="/usr/bin/docker"), patch(
            "prim.docker_client.subprocess.run", side_effect=failure(["docker", "info"], "Cannot connect")
        ):
            with pytest.raises(ActionableError, match="daemon is not running"):
                client.check_availability()

    def test_available(self, client):
        with patch("prim.docker_client.shutil.which", return_value="/usr/bin/docker"), patch(
            "prim.docker_client.subprocess.run", return_value=completed("")
        ):
            client.check_availability()


class TestQueries:
    """Tests for the engine state queries"""

    def test_list_images_by_repository(self, client):
        lines = [
            {"Repository": "app", "Tag": "v2", "Size": "11MB", "CreatedAt": "2026-10-04 08:00:00 +0000 UTC"},
            {"Repository": "app", "Tag": "<none>", "Size": "1MB", "CreatedAt": "2026-10-01 08:00:00 +0000 UTC"},
            {"Repository": "app", "Tag": "v1", "Size": "10MB", "CreatedAt": ""},
        ]
        stdout = "\n".join(json.dumps(line) for line in lines) + "\nnot json\n"

        with patch("prim.docker_client.subprocess.run", return_value=completed(stdout)) as mock_run:
            listings = client.list_images_by_repository("app")

        assert mock_run.call_args[0][0] == ["docker", "images", "app", "--format", "{{json .}}"]
        assert [listing.image for listing in listings] == ["app:v2", "app:v1"]
        assert listings[0].size == "11MB"
        assert listings[1].created is None

    def test_list_images_failure_is_empty(self, client):
        with patch("prim.docker_client.subprocess.run", side_effect=failure(["docker", "images"])):
            assert client.list_images_by_repository("app") == []

    def test_list_containers_dedupes(self, client):
        with patch("prim.docker_client.subprocess.run", return_value=completed("abc\ndef\nabc\n\n")) as mock_run:
            assert client.list_containers_by_image("app:v1") == ["abc", "def"]

        assert mock_run.call_args[0][0] == ["docker", "ps", "-a", "-q", "--filter", "ancestor=app:v1"]

    def test_list_containers_failure_is_empty(self, client):
        with patch("prim.docker_client.subprocess.run", side_effect=failure(["docker", "ps"])):
            assert client.list_containers_by_image("app:v1") == []

    def test_image_exists(self, client):
        with patch("prim.docker_client.subprocess.run", return_value=completed("[]")):
            assert client.image_exists("app:v1") is True
        with patch("prim.docker_client.subprocess.run", side_effect=failure(["docker", "image", "inspect"])):
            assert client.image_exists("app:v1") is False


class TestMutations:
    """Tests for removals, build, push and login"""

    def test_removals_raise(self, client):
        with patch("prim.docker_client.subprocess.run", side_effect=failure(["docker", "rm"])):
            with pytest.raises(DockerCommandError):
                client.remove_container("abc")
        with patch("prim.docker_client.subprocess.run", side_effect=failure(["docker", "rmi"])):
            with pytest.raises(DockerCommandError):
                client.remove_image("app:v1")

    def test_remove_commands(self, client):
        with patch("prim.docker_client.subprocess.run", return_value=completed()) as mock_run:
            client.remove_container("abc")
            client.remove_image("app:v1")

        assert [call[0][0] for call in mock_run.call_args_list] == [
            ["docker", "rm", "-f", "abc"],
            ["docker", "rmi", "app:v1"],
        ]

    def test_build_arguments(self, client):
        with patch("prim.docker_client.subprocess.run", return_value=completed()) as mock_run:
            client.build_image(".", "Dockerfile.prod", "app:v1", {"A": "1"}, no_cache=True)

        assert mock_run.call_args[0][0] == [
            "docker", "build", "-t", "app:v1", "-f", "Dockerfile.prod", "--no-cache", "--build-arg", "A=1", ".",
        ]

    def test_build_failure_is_actionable(self, client):
        with patch("prim.docker_client.subprocess.run", side_effect=failure(["docker", "build"])):
            with pytest.raises(ActionableError) as exc_info:
                client.build_image(".", None, "app:v1")

        assert exc_info.value.category == ErrorCategory.BUILD

    def test_push_retries_network_errors(self, client):
        side_effects = [failure(["docker", "push"], "connection reset by peer"), completed()]
        with patch("prim.docker_client.subprocess.run", side_effect=side_effects) as mock_run, patch(
            "prim.retry_utils.time.sleep"
        ) as mock_sleep:
            client.push_image("registry.example.com/app:v1")

        assert mock_run.call_count == 2
        mock_sleep.assert_called_once()

    def test_push_does_not_retry_auth_errors(self, client):
        with patch(
            "prim.docker_client.subprocess.run", side_effect=failure(["docker", "push"], "denied: requested access")
        ) as mock_run, patch("prim.retry_utils.time.sleep"):
            with pytest.raises(ActionableError):
                client.push_image("registry.example.com/app:v1")

        assert mock_run.call_count == 1

    def test_login_uses_stdin(self, client):
        with patch("prim.docker_client.subprocess.run", return_value=completed()) as mock_run:
            client.login("registry.example.com", "me", "secret")

        args, kwargs = mock_run.call_args
        assert args[0] == ["docker", "login", "registry.example.com", "--username", "me", "--password-stdin"]
        assert kwargs["input"] == "secret"
        assert "secret" not in args[0]

    def test_login_failure(self, client):
        with patch(
            "prim.docker_client.subprocess.run", side_effect=failure(["docker", "login"], "unauthorized")
        ), patch("prim.retry_utils.time.sleep"):
            with pytest.raises(ActionableError) as exc_info:
                client.login("registry.example.com", "me", "bad")

        assert exc_info.value.category == ErrorCategory.AUTHENTICATION

    def test_run_container(self, client):
        with patch("prim.docker_client.subprocess.run", return_value=completed("c0ffee\n")) as mock_run:
            container_id = client.run_container("app:v1", name="t", ports=["8080:80"], env={"A": "1"})

        assert container_id == "c0ffee"
        assert mock_run.call_args[0][0] == [
            "docker", "run", "-d", "--rm", "--name", "t", "-p", "8080:80", "-e", "A=1", "app:v1",
        ]
