"""prim init: write a project configuration file."""

import os
from pathlib import Path
from typing import Any, Dict

from prim.config_manager import DEFAULT_OUTPUT_FILE, ConfigManager
from prim.logging_utils import get_logger
from prim.tag_generator import TagStrategy

logger = get_logger(__name__)

TAG_STRATEGY_CHOICES = [
    ("Git commit", TagStrategy.GIT_COMMIT),
    ("Git tag", TagStrategy.GIT_TAG),
    ("Timestamp", TagStrategy.TIMESTAMP),
    ("Semver (package.json version)", TagStrategy.SEMVER),
    ("Manual (provide --tag)", TagStrategy.MANUAL),
]


def register(subparsers) -> None:
    parser = subparsers.add_parser("init", help="Initialize registry deploy configuration for a new project")
    parser.add_argument(
        "-o", "--output", default=DEFAULT_OUTPUT_FILE, help=f"Output file for configuration (default: {DEFAULT_OUTPUT_FILE})"
    )
    parser.add_argument("--defaults", action="store_true", help="Skip interactive prompts and use defaults")
    parser.add_argument("--force", action="store_true", help="Overwrite an existing configuration without asking")
    parser.set_defaults(func=run)


def default_config_data(project_name: str) -> Dict[str, Any]:
    return {
        "project": {"name": project_name, "dockerfile": "Dockerfile"},
        "registry": {"url": "registry.example.com", "repository": project_name},
        "docker": {"local_image_name": project_name, "build_args": {}, "build_context": "."},
        "deployment": {
            "tag_strategy": TagStrategy.GIT_COMMIT.value,
            "auto_cleanup": False,
            "push_latest": True,
            "dns_check": True,
        },
    }


def interactive_config_data(prompter, project_name: str) -> Dict[str, Any]:
    name = prompter.ask("Project name", project_name)
    dockerfile = prompter.ask("Dockerfile path (optional)", "Dockerfile")
    registry_url = prompter.ask("Registry URL (e.g., registry.example.com)", "registry.example.com")
    repository = prompter.ask("Registry repository (e.g., my/app)", name)
    username = prompter.ask("Registry username (leave blank to use env)", "")
    password = prompter.ask_secret("Registry password (leave blank to use env)")

    strategy_index = prompter.choose("Tag strategy", [label for label, _ in TAG_STRATEGY_CHOICES], default=0)
    strategy = TAG_STRATEGY_CHOICES[strategy_index or 0][1]

    return {
        "project": {"name": name, "dockerfile": dockerfile or None},
        "registry": {
            "url": registry_url,
            "repository": repository,
            "username": username or None,
            "password": password or None,
        },
        "docker": {"local_image_name": name, "build_args": {}, "build_context": "."},
        "deployment": {
            "tag_strategy": strategy.value,
            "push_latest": prompter.confirm("Also push latest tag?", default=True),
            "dns_check": prompter.confirm("Enable DNS check before deploy?", default=True),
            "auto_cleanup": prompter.confirm("Clean up local images after deploy?", default=False),
        },
    }


def run(args, ctx) -> int:
    logger.info("Initializing prim configuration")
    output = Path(args.output)

    if output.exists() and not args.force:
        if not ctx.prompter.confirm(f"Configuration file '{output}' already exists. Overwrite?", default=False):
            logger.info("Configuration initialization cancelled")
            return 0

    project_name = os.path.basename(ctx.project_path).lower()
    if args.defaults:
        logger.info("Creating configuration with default values")
        data = default_config_data(project_name)
    else:
        data = interactive_config_data(ctx.prompter, project_name)

    # Values may still be placeholders or come from the environment later
    ConfigManager(config_file=str(output), validate=False, data=data).save(str(output))
    logger.info(f"✓ Configuration saved to: {output}")

    print("\nNext steps:")
    print(f"  1. Edit {output} if needed")
    print("  2. Run: prim build")
    print("  3. Run: prim deploy")
    return 0
