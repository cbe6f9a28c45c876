#!/usr/bin/env python3
"""
Configuration Manager for prim

This module discovers and loads the project configuration (YAML or JSON),
merges it over defaults, applies environment variable overrides and
validates the result.
"""

import copy
import json
import logging
import os
import re
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from prim.error_utils import ActionableError, ErrorCategory
from prim.tag_generator import TagStrategy

DEFAULT_OUTPUT_FILE = ".registry-deploy.yaml"

CONFIG_FILE_NAMES = [
    ".registry-deploy.yaml",
    ".registry-deploy.yml",
    "image-manager.yml",
    "image-manager.yaml",
    ".image-manager.yml",
    ".image-manager.yaml",
    "image-manager.json",
    ".image-manager.json",
    # Backwards compatibility
    "container-deploy.yml",
    "container-deploy.yaml",
    ".container-deploy.yml",
    ".container-deploy.yaml",
    "container-deploy.json",
    ".container-deploy.json",
]

GLOBAL_CONFIG_FILES = [
    Path("~/.config/registry-deploy/config.yml"),
    Path("~/.config/container-deploy/config.yml"),
]

DEFAULT_CONFIG: Dict[str, Any] = {
    "project": {"name": "", "version": None, "dockerfile": None},
    "registry": {"url": "", "repository": "", "username": None, "password": None, "insecure": False},
    "docker": {"local_image_name": "app", "build_args": {}, "build_context": "."},
    "deployment": {
        "tag_strategy": TagStrategy.TIMESTAMP.value,
        "auto_cleanup": False,
        "push_latest": True,
        "dns_check": True,
    },
    "engine": {
        "timeout": None,  # Seconds per docker invocation, None = no limit
        "max_retries": 3,
        "initial_delay": 1.0,
        "max_delay": 30.0,
        "exponential_base": 2.0,
        "jitter": True,
    },
    "storage": {"directory": None},
}


class ConfigValidationError(Exception):
    """Raised when configuration validation fails"""


class ConfigNotFoundError(ActionableError):
    """Raised when no configuration file can be located"""

    def __init__(self, searched: List[str]):
        super().__init__(
            message="No configuration file found.",
            category=ErrorCategory.CONFIGURATION,
            suggestions=[
                f"Run 'prim init' to create {DEFAULT_OUTPUT_FILE}",
                "Pass an explicit file with --config <path>",
            ],
            details={"searched": ", ".join(searched)},
        )


def default_storage_dir() -> Path:
    """Location of the tracking and preference files for this platform.

    /var/tmp survives reboots on Linux/Unix; Windows has no equivalent so
    the user temp directory is used instead.
    """
    if sys.platform == "win32":
        return Path(tempfile.gettempdir()) / "prim-images"
    return Path("/var/tmp/prim-images")


def discover_config_file(search_dir: Optional[Path] = None) -> Path:
    """Find the configuration file for the project in search_dir (default: cwd).

    Raises:
        ConfigNotFoundError: if none of the known names exist
    """
    base = Path(search_dir) if search_dir else Path.cwd()
    searched = []
    for name in CONFIG_FILE_NAMES:
        candidate = base / name
        searched.append(str(candidate))
        if candidate.is_file():
            return candidate

    for global_file in GLOBAL_CONFIG_FILES:
        candidate = global_file.expanduser()
        searched.append(str(candidate))
        if candidate.is_file():
            return candidate

    raise ConfigNotFoundError(searched)


def _snake_case(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


class ConfigManager:
    """Manages configuration for one prim project"""

    def __init__(
        self,
        config_file: Optional[str] = None,
        validate: bool = True,
        data: Optional[Dict[str, Any]] = None,
    ):
        """Initialize ConfigManager

        Args:
            config_file: Path to a YAML/JSON config file (default: discovered from the cwd)
            validate: If True, validate configuration on initialization
            data: Raw configuration mapping; when given no file is read
        """
        if data is not None:
            self.config_file = Path(config_file) if config_file else None
            self.config = self._merge_config(DEFAULT_CONFIG, self._normalize(data))
        else:
            self.config_file = Path(config_file) if config_file else discover_config_file()
            self.config = self._load_config()

        if validate:
            self.validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from the config file with defaults"""
        if not self.config_file.is_file():
            raise ConfigNotFoundError([str(self.config_file)])

        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                if self.config_file.suffix.lower() == ".json":
                    user_config = json.load(f) or {}
                else:
                    user_config = yaml.safe_load(f) or {}
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigValidationError(f"Failed to load config from {self.config_file}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigValidationError(f"Failed to load config from {self.config_file}: top level must be a mapping")

        logging.debug(f"Loaded configuration from {self.config_file}")
        return self._merge_config(DEFAULT_CONFIG, self._normalize(user_config))

    @staticmethod
    def _normalize(user: Dict[str, Any]) -> Dict[str, Any]:
        """Accept camelCase section keys (localImageName, tagStrategy, ...) from older files.

        Only the keys directly under each section are renamed; the contents of
        build_args are user data and stay untouched.
        """
        normalized: Dict[str, Any] = {}
        for section, values in user.items():
            if isinstance(values, dict):
                normalized[section] = {_snake_case(k): v for k, v in values.items()}
            else:
                normalized[section] = values
        return normalized

    def _merge_config(self, default: Dict[str, Any], user: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge user config with defaults"""
        result = copy.deepcopy(default)
        for key, value in user.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict) and result[key]:
                result[key] = self._merge_config(result[key], value)
            elif value is not None or key not in result:
                result[key] = value
        return result

    # Project configuration
    def get_project_name(self) -> str:
        return (self.config["project"].get("name") or "").strip()

    def get_project_version(self) -> Optional[str]:
        version = self.config["project"].get("version")
        return str(version) if version is not None else None

    def get_dockerfile(self) -> Optional[str]:
        return self.config["project"].get("dockerfile") or None

    # Registry configuration
    def get_registry_url(self) -> str:
        """Get registry URL from environment or config"""
        return (os.environ.get("REGISTRY_URL") or self.config["registry"].get("url") or "").strip()

    def get_repository(self) -> str:
        """Get registry repository from environment or config"""
        return (os.environ.get("REGISTRY_REPOSITORY") or self.config["registry"].get("repository") or "").strip()

    def is_registry_insecure(self) -> bool:
        return bool(self.config["registry"].get("insecure", False))

    def get_registry_host(self) -> str:
        """Registry URL without scheme or trailing slash"""
        return re.sub(r"^https?://", "", self.get_registry_url()).rstrip("/")

    def get_registry_repo(self) -> str:
        """Registry-qualified repository, e.g. registry.example.com/team/app"""
        return f"{self.get_registry_host()}/{self.get_repository()}"

    def get_full_image_name(self, tag: str) -> str:
        return f"{self.get_registry_repo()}:{tag}"

    def get_credentials(self) -> Tuple[Optional[str], Optional[str]]:
        """Get (username, password) from config or environment"""
        registry = self.config["registry"]
        username = (
            registry.get("username") or os.environ.get("REGISTRY_USERNAME") or os.environ.get("DOCKER_USERNAME")
        )
        password = (
            registry.get("password") or os.environ.get("REGISTRY_PASSWORD") or os.environ.get("DOCKER_PASSWORD")
        )
        return username, password

    # Docker configuration
    def get_local_image_name(self) -> str:
        return self.config["docker"].get("local_image_name") or "app"

    def get_build_args(self) -> Dict[str, str]:
        return {str(k): str(v) for k, v in (self.config["docker"].get("build_args") or {}).items()}

    def get_build_context(self) -> str:
        return self.config["docker"].get("build_context") or "."

    # Deployment configuration
    def get_tag_strategy(self) -> TagStrategy:
        value = self.config["deployment"].get("tag_strategy") or TagStrategy.TIMESTAMP.value
        try:
            return TagStrategy(str(value).lower())
        except ValueError:
            raise ConfigValidationError(
                f"deployment.tag_strategy must be one of {[s.value for s in TagStrategy]}, got: {value}"
            )

    def is_auto_cleanup(self) -> bool:
        return bool(self.config["deployment"].get("auto_cleanup", False))

    def should_push_latest(self) -> bool:
        return self.config["deployment"].get("push_latest") is not False

    def is_dns_check_enabled(self) -> bool:
        return self.config["deployment"].get("dns_check") is not False

    # Engine configuration
    def get_engine_timeout(self) -> Optional[int]:
        """Get docker invocation timeout from config, with type coercion"""
        timeout = self.config["engine"].get("timeout")
        if timeout is None:
            return None
        try:
            return int(timeout)
        except (ValueError, TypeError):
            raise ConfigValidationError(
                f"engine.timeout must be an integer, got: {timeout} (type: {type(timeout).__name__})"
            )

    def get_max_retries(self) -> int:
        """Get max retries from config, with type coercion"""
        retries = self.config["engine"].get("max_retries", 3)
        try:
            return int(retries)
        except (ValueError, TypeError):
            raise ConfigValidationError(
                f"engine.max_retries must be an integer, got: {retries} (type: {type(retries).__name__})"
            )

    def get_retry_initial_delay(self) -> float:
        """Get initial retry delay from config, with type coercion"""
        delay = self.config["engine"].get("initial_delay", 1.0)
        try:
            return float(delay)
        except (ValueError, TypeError):
            raise ConfigValidationError(
                f"engine.initial_delay must be a number, got: {delay} (type: {type(delay).__name__})"
            )

    def get_retry_max_delay(self) -> float:
        """Get max retry delay from config, with type coercion"""
        delay = self.config["engine"].get("max_delay", 30.0)
        try:
            return float(delay)
        except (ValueError, TypeError):
            raise ConfigValidationError(
                f"engine.max_delay must be a number, got: {delay} (type: {type(delay).__name__})"
            )

    def get_retry_exponential_base(self) -> float:
        """Get exponential base for retry backoff from config, with type coercion"""
        base = self.config["engine"].get("exponential_base", 2.0)
        try:
            return float(base)
        except (ValueError, TypeError):
            raise ConfigValidationError(
                f"engine.exponential_base must be a number, got: {base} (type: {type(base).__name__})"
            )

    def get_retry_jitter(self) -> bool:
        return bool(self.config["engine"].get("jitter", True))

    # Storage configuration
    def get_storage_dir(self) -> Path:
        """Directory holding tracked-images.json and clean-preferences.json"""
        directory = os.environ.get("PRIM_STORAGE_DIR") or self.config["storage"].get("directory")
        return Path(directory).expanduser() if directory else default_storage_dir()

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.config)

    def save(self, file_path: str) -> None:
        """Write the configuration as YAML, or JSON when the file ends in .json"""
        data = _prune_none(self.to_dict())
        path = Path(file_path)
        with open(path, "w", encoding="utf-8") as f:
            if path.suffix.lower() == ".json":
                json.dump(data, f, indent=2)
                f.write("\n")
            else:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=True)

    def validate_config(self) -> None:
        """Validate configuration values

        Raises:
            ConfigValidationError: If configuration is invalid
        """
        errors = []
        warnings = []

        if not self.get_project_name():
            errors.append("Project name cannot be empty")

        registry_url = self.get_registry_url()
        if not registry_url:
            errors.append("Registry URL cannot be empty")
        elif not self._is_valid_registry_url(registry_url):
            errors.append(f"Invalid registry URL: {registry_url}")

        repository = self.get_repository()
        if not repository:
            errors.append("Registry repository cannot be empty")
        elif not self._is_valid_repository_name(repository):
            errors.append(
                f"Repository name '{repository}' contains invalid characters "
                "(lowercase alphanumeric, '.', '_', '-' and '/' only)"
            )

        local_image_name = self.get_local_image_name()
        if not self._is_valid_repository_name(local_image_name):
            errors.append(f"Local image name '{local_image_name}' is not a valid docker repository name")

        for getter in (
            self.get_tag_strategy,
            self.get_engine_timeout,
            self.get_max_retries,
            self.get_retry_initial_delay,
            self.get_retry_max_delay,
            self.get_retry_exponential_base,
        ):
            try:
                getter()
            except ConfigValidationError as e:
                errors.append(str(e))

        if not errors:
            timeout = self.get_engine_timeout()
            if timeout is not None and timeout < 1:
                errors.append(f"engine.timeout must be a positive integer (seconds), got: {timeout}")

            max_retries = self.get_max_retries()
            if max_retries < 0:
                errors.append(f"engine.max_retries must be a non-negative integer, got: {max_retries}")
            elif max_retries > 10:
                warnings.append(f"max_retries is very high ({max_retries}), pushes may take a long time")

            initial_delay = self.get_retry_initial_delay()
            max_delay = self.get_retry_max_delay()
            if initial_delay < 0:
                errors.append(f"engine.initial_delay must be a non-negative number, got: {initial_delay}")
            if max_delay < initial_delay:
                errors.append(f"engine.max_delay ({max_delay}) must be >= engine.initial_delay ({initial_delay})")

            if self.get_retry_exponential_base() < 1.0:
                errors.append(f"engine.exponential_base must be >= 1.0, got: {self.get_retry_exponential_base()}")

            if self.get_tag_strategy() == TagStrategy.MANUAL:
                warnings.append("Tag strategy is 'manual': build/deploy will require --tag")

        for warning in warnings:
            logging.warning(f"Configuration warning: {warning}")

        if errors:
            error_msg = "Configuration validation failed:\n  " + "\n  ".join(errors)
            raise ConfigValidationError(error_msg)

    def _is_valid_registry_url(self, url: str) -> bool:
        """Validate registry URL format: [scheme://]hostname[:port][/path]"""
        url = re.sub(r"^https?://", "", url).rstrip("/")
        pattern = r"^[a-zA-Z0-9]([a-zA-Z0-9\-\.]*[a-zA-Z0-9])?(:[0-9]{1,5})?(/[a-zA-Z0-9_\-\./]*)?$"
        return bool(re.match(pattern, url))

    def _is_valid_repository_name(self, name: str) -> bool:
        """Validate docker repository name format"""
        if not name:
            return False
        pattern = r"^[a-z0-9]+([._\-/][a-z0-9]+|__[a-z0-9]+)*$"
        return bool(re.match(pattern, name))

    def print_config(self) -> None:
        """Print current configuration"""
        username, password = self.get_credentials()
        print("Current Configuration:")
        print(f"  Config File: {self.config_file or 'n/a'}")
        print(f"  Project Name: {self.get_project_name()}")
        print(f"  Project Version: {self.get_project_version() or 'Not set'}")
        print(f"  Dockerfile: {self.get_dockerfile() or 'Dockerfile (docker default)'}")
        print(f"  Build Context: {self.get_build_context()}")
        print(f"  Local Image Name: {self.get_local_image_name()}")
        print(f"  Registry Repository: {self.get_registry_repo()}")
        print(f"  Registry Insecure: {self.is_registry_insecure()}")
        print(f"  Tag Strategy: {self.get_tag_strategy().value}")
        print(f"  Push Latest: {self.should_push_latest()}")
        print(f"  DNS Check: {self.is_dns_check_enabled()}")
        print(f"  Auto Cleanup: {self.is_auto_cleanup()}")
        print(f"  Storage Directory: {self.get_storage_dir()}")
        print(f"  Registry Username: {username or 'Not set'}")
        if password:
            print(f"  Registry Password: {'*' * len(password)}")
        else:
            print("  Registry Password: Not set")


def _prune_none(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _prune_none(v) for k, v in value.items() if v is not None}
    return value
