"""
Error message utilities for providing actionable guidance to users.

This module provides functions to create helpful error messages with
suggested fixes and troubleshooting steps.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCategory(Enum):
    """Categories of errors for better error handling"""

    ENGINE = "engine"
    AUTHENTICATION = "authentication"
    CONFIGURATION = "configuration"
    NETWORK = "network"
    BUILD = "build"
    UNKNOWN = "unknown"


class ActionableError(Exception):
    """Exception with actionable guidance for users"""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        suggestions: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize actionable error

        Args:
            message: Primary error message
            category: Error category for classification
            suggestions: List of suggested fixes
            details: Additional context information
        """
        self.message = message
        self.category = category
        self.suggestions = suggestions or []
        self.details = details or {}
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the complete error message with suggestions"""
        lines = [f"❌ {self.message}"]

        if self.suggestions:
            lines.append("\n💡 Suggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        if self.details:
            lines.append("\n📋 Additional details:")
            for key, value in self.details.items():
                lines.append(f"   {key}: {value}")

        return "\n".join(lines)


def create_docker_not_installed_error() -> ActionableError:
    """Create actionable error for a missing docker binary"""
    return ActionableError(
        message="Docker is not installed or not in PATH",
        category=ErrorCategory.ENGINE,
        suggestions=[
            "Install Docker Engine or Docker Desktop",
            "Make sure the 'docker' executable is on your PATH",
        ],
    )


def create_docker_daemon_error(error: Exception) -> ActionableError:
    """Create actionable error for an unreachable docker daemon"""
    error_str = str(error).lower()

    suggestions = [
        "Start the Docker daemon (e.g. 'sudo systemctl start docker')",
        "Check that your user can talk to the daemon ('docker info')",
    ]

    if "permission denied" in error_str:
        suggestions.insert(0, "Add your user to the 'docker' group or run with sufficient privileges")

    return ActionableError(
        message="Docker daemon is not running",
        category=ErrorCategory.ENGINE,
        suggestions=suggestions,
        details={"error_type": type(error).__name__, "error_message": str(error)},
    )


def create_docker_command_error(operation: str, error: Exception) -> ActionableError:
    """Create actionable error for a failed build/push/tag/run"""
    error_str = str(error).lower()
    category = ErrorCategory.BUILD if operation == "build" else ErrorCategory.ENGINE

    suggestions = [f"Re-run with --verbose to see the full 'docker {operation}' output"]

    if operation == "push":
        category = ErrorCategory.NETWORK
        suggestions.append("Verify you are logged into the registry ('prim deploy' logs in unless --skip-auth)")
        if "denied" in error_str or "unauthorized" in error_str:
            suggestions.insert(0, "Check that your registry credentials allow pushing to this repository")
    elif operation == "build":
        suggestions.append("Check the Dockerfile path and build context in your configuration")

    return ActionableError(
        message=f"docker {operation} failed",
        category=category,
        suggestions=suggestions,
        details={"error_type": type(error).__name__, "error_message": str(error)},
    )


def create_login_error(registry: str, error: Exception) -> ActionableError:
    """Create actionable error for registry authentication failures"""
    return ActionableError(
        message=f"Failed to log into registry {registry}",
        category=ErrorCategory.AUTHENTICATION,
        suggestions=[
            "Verify REGISTRY_USERNAME / REGISTRY_PASSWORD are set correctly",
            "Check registry.username / registry.password in your config file",
            "Use --skip-auth if you are already logged in",
        ],
        details={"registry": registry, "error_message": str(error)},
    )


def create_dns_error(host: str, error: Exception) -> ActionableError:
    """Create actionable error for registry DNS resolution failures"""
    return ActionableError(
        message=f"DNS check failed for {host}",
        category=ErrorCategory.NETWORK,
        suggestions=[
            "Verify the registry hostname in your config file",
            "Check /etc/hosts if using local hostnames",
            "Use --skip-dns-check or --force to continue anyway",
        ],
        details={"host": host, "error_message": str(error)},
    )


def create_config_error(field: str, value: Any, reason: str) -> ActionableError:
    """Create actionable error for configuration issues"""
    suggestions = [
        f"Check the '{field}' value in your config file",
        "Run 'prim init' to generate a fresh configuration",
    ]

    if "registry" in field:
        suggestions.append("Registry URL format: hostname[:port] (scheme optional)")

    return ActionableError(
        message=f"Invalid configuration for '{field}': {reason}",
        category=ErrorCategory.CONFIGURATION,
        suggestions=suggestions,
        details={"field": field, "value": value, "reason": reason},
    )
