"""
Formatting helpers shared by the commands.

This module provides functions to:
- Parse the timestamps found in tracking records and docker listings
- Render cleanup targets and tracked images as tables
"""
import re
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from tabulate import tabulate

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ============================================================================
# Timestamp Utilities
# ============================================================================

def utc_now_iso() -> str:
    """Current time as an ISO-8601 string with UTC offset."""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp or a docker CreatedAt label.

    Docker prints creation times like '2024-01-15 10:30:00 +0000 UTC'; the
    trailing zone name is dropped before parsing. Naive values are taken as
    UTC.

    Returns:
        Aware datetime, or None when the value is missing or unparseable
    """
    if not value or not isinstance(value, str):
        return None

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        docker_text = re.sub(r"\s+[A-Za-z]{2,5}$", "", text)
        for fmt in ("%Y-%m-%d %H:%M:%S %z", "%Y-%m-%d %H:%M:%S"):
            try:
                parsed = datetime.strptime(docker_text, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def timestamp_or_epoch(value: Optional[str]) -> datetime:
    """Like parse_timestamp, but missing/unparseable values become the epoch."""
    return parse_timestamp(value) or EPOCH


def format_timestamp(value: Optional[str]) -> str:
    parsed = parse_timestamp(value)
    if parsed is None:
        return value or "-"
    return parsed.astimezone().strftime("%Y-%m-%d %H:%M:%S")


# ============================================================================
# Table Rendering
# ============================================================================

def format_targets_table(targets: Iterable) -> str:
    """Render cleanup targets (image, size, created, tracked, containers) as a grid."""
    rows: List[List[str]] = []
    for target in targets:
        rows.append(
            [
                target.image,
                target.size or "-",
                format_timestamp(target.created),
                "yes" if target.is_tracked else "no",
                "\n".join(target.containers) if target.containers else "-",
            ]
        )
    headers = ["Image", "Size", "Created", "Tracked", "Containers"]
    return tabulate(rows, headers=headers, tablefmt="grid")


def format_tracked_table(images: Iterable) -> str:
    """Render tracked images (tag, built at, size, dockerfile) as a simple table."""
    rows = [[img.tag, format_timestamp(img.built_at), img.size or "-", img.dockerfile or "-"] for img in images]
    return tabulate(rows, headers=["Tag", "Built", "Size", "Dockerfile"], tablefmt="simple")
