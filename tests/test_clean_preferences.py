"""Unit tests for prim/clean_preferences.py"""

import json

from prim.clean_preferences import PREFERENCES_FILE, CleanPreferences, preference_key


class TestExclusions:
    """Tests for storing and reading exclusion sets"""

    def test_unknown_project_has_no_exclusions(self, preferences, project_dir):
        assert preferences.get_excluded(project_dir, "app") == set()

    def test_round_trip(self, preferences, project_dir):
        preferences.set_excluded(project_dir, "app", {"v1", "v3"})

        assert preferences.get_excluded(project_dir, "app") == {"v1", "v3"}

    def test_set_replaces_rather_than_merges(self, preferences, project_dir):
        preferences.set_excluded(project_dir, "app", {"v1", "v3"})
        preferences.set_excluded(project_dir, "app", {"v2"})

        assert preferences.get_excluded(project_dir, "app") == {"v2"}

    def test_empty_set_deletes_entry(self, preferences, storage_dir, project_dir):
        preferences.set_excluded(project_dir, "app", {"v1"})
        preferences.set_excluded(project_dir, "app", set())

        with open(storage_dir / PREFERENCES_FILE) as f:
            data = json.load(f)
        assert preference_key(project_dir, "app") not in data
        assert preferences.get_excluded(project_dir, "app") == set()

    def test_empty_set_without_entry_writes_nothing(self, preferences, storage_dir, project_dir):
        preferences.set_excluded(project_dir, "app", [])

        assert not (storage_dir / PREFERENCES_FILE).exists()

    def test_entries_are_scoped_per_image(self, preferences, project_dir):
        preferences.set_excluded(project_dir, "app", {"v1"})
        preferences.set_excluded(project_dir, "worker", {"v9"})

        assert preferences.get_excluded(project_dir, "app") == {"v1"}
        assert preferences.get_excluded(project_dir, "worker") == {"v9"}

    def test_stored_layout(self, preferences, storage_dir, project_dir):
        preferences.set_excluded(project_dir, "app", {"v3", "v1"})

        with open(storage_dir / PREFERENCES_FILE) as f:
            data = json.load(f)
        assert data[preference_key(project_dir, "app")] == {
            "project_path": project_dir,
            "image_name": "app",
            "excluded_tags": ["v1", "v3"],
        }

    def test_clear(self, preferences, project_dir):
        preferences.set_excluded(project_dir, "app", {"v1"})
        preferences.clear(project_dir, "app")

        assert preferences.get_excluded(project_dir, "app") == set()


class TestSweepStale:
    """Tests for dropping preferences of deleted projects"""

    def test_removes_entries_for_missing_directories(self, preferences, project_dir, tmp_path):
        gone = str(tmp_path / "deleted-project")
        preferences.set_excluded(project_dir, "app", {"v1"})
        preferences.set_excluded(gone, "app", {"v1"})

        assert preferences.sweep_stale() == 1
        assert preferences.get_excluded(project_dir, "app") == {"v1"}
        assert preferences.get_excluded(gone, "app") == set()

    def test_nothing_to_sweep(self, preferences, project_dir):
        preferences.set_excluded(project_dir, "app", {"v1"})

        assert preferences.sweep_stale() == 0

    def test_corrupt_file_reads_as_empty(self, storage_dir, project_dir):
        storage_dir.mkdir(parents=True)
        (storage_dir / PREFERENCES_FILE).write_text("[1, 2")
        preferences = CleanPreferences(storage_dir)

        assert preferences.get_excluded(project_dir, "app") == set()
        assert preferences.sweep_stale() == 0
