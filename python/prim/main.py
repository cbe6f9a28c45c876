#!/usr/bin/env python3
"""
Unified entrypoint for prim, the Private Registry Image Manager.

Usage: prim [global-options] <command> [command-options]
"""

import argparse
import logging
import sys
from typing import List, Optional

from prim import __version__
from prim.commands import COMMAND_MODULES
from prim.commands.common import CommandContext
from prim.config_manager import DEFAULT_OUTPUT_FILE, ConfigValidationError
from prim.docker_client import DockerCommandError
from prim.error_utils import ActionableError
from prim.logging_utils import CLI_FORMAT, get_logger, log_exception, setup_logging

logger = get_logger(__name__)

COMMAND_SUMMARY = [
    ("Initialize configuration", "init", ""),
    ("Build Docker image", "build", "[--tag|-t] [--build-arg] [--no-cache]"),
    ("Deploy to registry", "deploy", "[--tag|-t] [--skip-build] [--no-latest] [--force] [--force-build]"),
    ("Show config/env", "status", "[--check-registry] [--verbose|-v]"),
    ("Run locally", "test", "[--tag|-t] [-p HOST:PORT] [-e KEY=VALUE] [--no-detach]"),
    ("Interactive cleanup", "clean", "[--tag|-t] [--yes|-y]"),
    ("Show help", "help", "[-x|--expanded]"),
]

EXPANDED_HELP = f"""
Global flags:
  -v, --verbose             Verbose output
  -i, -c, --config <path>   Use a specific configuration file (default: auto-discover)

init
  -o, --output <file>       Output config file (default: {DEFAULT_OUTPUT_FILE})
      --defaults            Use non-interactive defaults
      --force               Overwrite existing config without prompt

build
  -t, --tag <tag>           Use a specific tag (manual strategy)
  -c, --context <path>      Build context path (overrides config)
  -f, --dockerfile <path>   Path to Dockerfile (overrides config)
      --build-arg <KV>      Repeatable build arg KEY=VALUE (merges with config build_args)
      --no-cache            Build without cache
      --verbose             Show detailed build output
  Notes: without a tag, one is generated per deployment.tag_strategy.

deploy
  -t, --tag <tag>           Use a specific tag (overrides strategy)
      --skip-build          Skip building and use existing local image
      --skip-dns-check      Skip DNS check (overrides config)
      --force               Skip confirmation prompts
      --force-build         Build a new image instead of choosing from menu (useful for CI/CD)
      --no-latest           Do not push :latest tag
      --skip-auth           Do not login; assume already logged in
  Notes: credentials come from config or env REGISTRY_USERNAME/REGISTRY_PASSWORD.

status
  -v, --verbose             Show detailed information
      --check-registry      Check registry DNS resolution

test
  -t, --tag <tag>           Tag to test (defaults to generated if missing locally)
  -p, --port <map>          Repeatable port mapping HOST:CONTAINER
  -e, --env <KV>            Repeatable environment variable KEY=VALUE
  -n, --name <name>         Container name (default: im-test-<timestamp>)
      --no-detach           Run in foreground (default is detached)
      --no-rm               Do not auto-remove container on exit
  Notes: builds first if the image:tag is not present locally.

clean
  -t, --tag <tag>           Clean a specific tag (v prefix optional); without -t cleans all tags
  -y, --yes                 Proceed without interactive selection or confirmation
  Notes: discovers tracked and untracked project images; unchecked tags are remembered.

Tag strategies:
  timestamp   -> vYYYYMMDD-HHMMSS (UTC)
  git_commit  -> v<short-commit-sha> (fallback to timestamp if not a git repo)
  git_tag     -> v<nearest-git-tag> (fallback to git_commit)
  semver      -> v<project.version or package.json version> (fallback to timestamp)
  manual      -> exact tag provided (no automatic v-prefixing)

Config and env:
  Config discovery prefers {DEFAULT_OUTPUT_FILE} in the current directory, supports
  legacy names and also checks ~/.config/registry-deploy/config.yml.
  REGISTRY_URL / REGISTRY_REPOSITORY override the registry settings,
  PRIM_STORAGE_DIR overrides where tracking data is kept.
"""


def condensed_help() -> str:
    lines = [
        "",
        "Private Registry Image Manager (prim)",
        "Show this menu via: `prim`, `prim --help`, or `prim help`.",
        "",
        "Usage: prim [global-options] <command> [command-options]",
        "",
        "Global options:",
        "  [--config | -c | -i] <path>   Use a specific configuration file",
        "  [--verbose | -v]              Verbose output",
        "",
        "Commands:",
    ]
    desc_width = max(len(desc) for desc, _, _ in COMMAND_SUMMARY) + 2
    cmd_width = max(len(cmd) for _, cmd, _ in COMMAND_SUMMARY) + 2
    for desc, cmd, opts in COMMAND_SUMMARY:
        lines.append(f"  {desc.ljust(desc_width)}{cmd.ljust(cmd_width)}{opts}".rstrip())
    lines += [
        "",
        "Notes:",
        "  - Auto-generated tags are prefixed with v if missing (manual tags unchanged).",
        "  - Use `prim help --expanded` for detailed flags, strategies, and configuration info.",
    ]
    return "\n".join(lines)


def print_help(expanded: bool = False) -> None:
    print(condensed_help())
    if expanded:
        print(EXPANDED_HELP)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prim",
        description="Build, deploy and clean up container images for a project",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
    )
    parser.add_argument("-h", "--help", action="store_true", help="Show help")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("-c", "-i", "--config", dest="config_file", help="Configuration file path")
    parser.add_argument("--version", action="version", version=f"prim {__version__}")

    subparsers = parser.add_subparsers(dest="command")
    for module in COMMAND_MODULES:
        module.register(subparsers)

    help_parser = subparsers.add_parser("help", help="Show help")
    help_parser.add_argument("-x", "--expanded", action="store_true", help="Show detailed flags and configuration")
    return parser


def main(argv: Optional[List[str]] = None, context: Optional[CommandContext] = None) -> int:
    """Run the CLI and return the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.INFO, CLI_FORMAT)

    if args.help or args.command in (None, "help"):
        print_help(expanded=getattr(args, "expanded", False))
        return 0

    ctx = context or CommandContext(config_file=args.config_file, verbose=args.verbose)
    try:
        return args.func(args, ctx)
    except ActionableError as e:
        logger.error(e.format_message())
        return 1
    except ConfigValidationError as e:
        logger.error(str(e))
        return 1
    except (ValueError, DockerCommandError) as e:
        logger.error(f"{args.command.capitalize()} failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return 1
    except Exception as e:
        log_exception(logger, f"{args.command.capitalize()} failed", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
