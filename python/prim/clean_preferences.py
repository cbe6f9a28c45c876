"""
Cleanup preference store.

Remembers, per project path and image name, which tags the user chose to
keep during interactive cleanup. Stored next to the tracking file as a flat
JSON object keyed by "<project path>:<image name>". An empty exclusion set
is never written; the entry is removed instead.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Set

from prim.logging_utils import get_logger

logger = get_logger(__name__)

PREFERENCES_FILE = "clean-preferences.json"


def preference_key(project_path: str, image_name: str) -> str:
    return f"{project_path}:{image_name}"


class CleanPreferences:
    """Persisted exclusion sets for interactive cleanup."""

    def __init__(self, storage_dir: Path):
        self.storage_dir = Path(storage_dir)
        self.preferences_file = self.storage_dir / PREFERENCES_FILE

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not self.preferences_file.exists():
            return {}
        try:
            with open(self.preferences_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.debug(f"Could not read {self.preferences_file}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Dict[str, Any]]) -> None:
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        with open(self.preferences_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def get_excluded(self, project_path: str, image_name: str) -> Set[str]:
        entry = self._load().get(preference_key(project_path, image_name))
        if not isinstance(entry, dict):
            return set()
        return set(entry.get("excluded_tags") or [])

    def set_excluded(self, project_path: str, image_name: str, tags: Iterable[str]) -> None:
        """Replace the exclusion set; an empty set deletes the entry."""
        tags = set(tags)
        key = preference_key(project_path, image_name)
        try:
            data = self._load()
            if tags:
                data[key] = {
                    "project_path": project_path,
                    "image_name": image_name,
                    "excluded_tags": sorted(tags),
                }
            elif key in data:
                del data[key]
            else:
                return
            self._save(data)
            logger.debug(f"Saved clean preferences for {image_name}")
        except OSError as e:
            logger.warning(f"Failed to save clean preferences: {e}")

    def clear(self, project_path: str, image_name: str) -> None:
        self.set_excluded(project_path, image_name, [])

    def sweep_stale(self) -> int:
        """Drop entries whose project directory no longer exists.

        Returns:
            Number of entries removed
        """
        try:
            data = self._load()
            stale = [
                key
                for key, entry in data.items()
                if not isinstance(entry, dict) or not os.path.exists(entry.get("project_path") or "")
            ]
            for key in stale:
                del data[key]
            if stale:
                self._save(data)
                logger.debug("Cleaned up stale clean preferences")
            return len(stale)
        except OSError as e:
            logger.debug(f"Failed to cleanup stale preferences: {e}")
            return 0
