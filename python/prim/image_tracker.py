"""
Tracking store for images built by prim.

Every successful build is recorded in a single JSON file, keyed by
"<project path>:<image name>:<tag>". The store is a convenience: read
failures behave like an empty store and write failures are logged, never
raised, so tracking can not block a build or deploy.

The file is rewritten in full on every mutation without locking; two prim
processes mutating the same store at once can lose an update.
"""

import json
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from prim.logging_utils import get_logger
from prim.report_utils import parse_timestamp, timestamp_or_epoch

logger = get_logger(__name__)

TRACKING_FILE = "tracked-images.json"
DEFAULT_RETENTION = timedelta(days=7)


@dataclass
class TrackedImage:
    """A build performed by prim."""

    image_name: str
    tag: str
    full_image_name: str
    project_path: str
    built_at: str  # ISO-8601
    size: Optional[str] = None
    dockerfile: Optional[str] = None
    build_args: Dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return tracking_key(self.project_path, self.image_name, self.tag)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackedImage":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


def tracking_key(project_path: str, image_name: str, tag: str) -> str:
    return f"{project_path}:{image_name}:{tag}"


class ImageTracker:
    """Persisted record of every image prim has built."""

    def __init__(self, storage_dir: Path):
        """
        Args:
            storage_dir: Directory holding tracked-images.json
        """
        self.storage_dir = Path(storage_dir)
        self.tracking_file = self.storage_dir / TRACKING_FILE

    def _load(self) -> Dict[str, Dict[str, Any]]:
        """Read the whole store. Missing or corrupt files read as empty."""
        if not self.tracking_file.exists():
            return {}
        try:
            with open(self.tracking_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.debug(f"Could not read {self.tracking_file}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Dict[str, Any]]) -> None:
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        with open(self.tracking_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def _entries(self) -> Dict[str, TrackedImage]:
        entries = {}
        for key, value in self._load().items():
            try:
                entries[key] = TrackedImage.from_dict(value)
            except (TypeError, AttributeError):
                logger.debug(f"Ignoring malformed tracking entry: {key}")
        return entries

    def record(self, image: TrackedImage) -> None:
        """Insert or replace the entry for (project path, image name, tag)."""
        try:
            data = self._load()
            data[image.key] = asdict(image)
            self._save(data)
            logger.debug(f"Tracked image: {image.full_image_name}")
        except OSError as e:
            logger.warning(f"Failed to track image: {e}")

    def list_images(self, project_path: str, image_name: str) -> List[TrackedImage]:
        """Tracked builds of one project image, newest first."""
        matches = [
            image
            for image in self._entries().values()
            if image.project_path == project_path and image.image_name == image_name
        ]
        return sorted(matches, key=lambda img: timestamp_or_epoch(img.built_at), reverse=True)

    def get_image(self, project_path: str, image_name: str, tag: str) -> Optional[TrackedImage]:
        return self._entries().get(tracking_key(project_path, image_name, tag))

    def has_image(self, project_path: str, image_name: str, tag: str) -> bool:
        return tracking_key(project_path, image_name, tag) in self._load()

    def remove(self, project_path: str, image_name: str, tag: str) -> bool:
        """Drop one entry. Returns True when an entry was removed."""
        key = tracking_key(project_path, image_name, tag)
        try:
            data = self._load()
            if key not in data:
                return False
            del data[key]
            self._save(data)
            logger.debug(f"Removed tracked image: {image_name}:{tag}")
            return True
        except OSError as e:
            logger.warning(f"Failed to remove tracked image: {e}")
            return False

    def sweep_stale(self, retention: timedelta = DEFAULT_RETENTION, now: Optional[datetime] = None) -> int:
        """Drop entries built before now - retention.

        Entries whose build time can not be parsed are kept.

        Returns:
            Number of entries removed
        """
        cutoff = (now or datetime.now(timezone.utc)) - retention
        try:
            data = self._load()
            stale = []
            for key, value in data.items():
                built_at = parse_timestamp(value.get("built_at")) if isinstance(value, dict) else None
                if built_at is not None and built_at < cutoff:
                    stale.append(key)

            for key in stale:
                del data[key]
            if stale:
                self._save(data)
                logger.debug(f"Cleaned up {len(stale)} stale tracked images")
            return len(stale)
        except OSError as e:
            logger.debug(f"Failed to cleanup stale images: {e}")
            return 0

    def storage_info(self) -> Dict[str, Any]:
        """Location of the store and how many entries it holds."""
        return {
            "location": str(self.tracking_file),
            "exists": self.tracking_file.exists(),
            "entry_count": len(self._load()),
        }
