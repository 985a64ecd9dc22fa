"""
Tests for the injection manifest (flakemonster/manifest.py).
"""

import io
import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from flakemonster.manifest import (
    MANIFEST_FILENAME,
    Manifest,
    get_manifest_dir,
    hash_content,
)
from flakemonster.types import FileInjectionRecord, InjectionPoint


def make_record(points=2):
    return FileInjectionRecord(
        adapter_id="javascript",
        original_hash=hash_content("before"),
        modified_hash=hash_content("after"),
        points=[
            InjectionPoint(
                id=f"0000000{i}", container_name="loadUser", index=i, line=3 + i, column=2, delay_ms=10 + i
            )
            for i in range(points)
        ],
        support_module_reference_added=True,
    )


class TestHashContent(unittest.TestCase):
    def test_prefix_and_stability(self):
        digest = hash_content("hello")
        self.assertTrue(digest.startswith("sha256:"))
        self.assertEqual(digest, hash_content("hello"))
        self.assertNotEqual(digest, hash_content("hello "))


class TestManifest(unittest.TestCase):
    """Tests for the Manifest class."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.manifest_dir = get_manifest_dir(self.temp_dir.name)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_manifest_dir_location(self):
        self.assertEqual(self.manifest_dir, Path(self.temp_dir.name) / ".flake-monster")

    def test_totals(self):
        manifest = Manifest(seed=42, mode="medium")
        manifest.add_file("src/a.js", make_record(2))
        manifest.add_file("src/b.js", make_record(3))
        self.assertEqual(manifest.get_total_injections(), 5)
        self.assertEqual(list(manifest.get_files()), ["src/a.js", "src/b.js"])

    def test_support_files_are_unique(self):
        manifest = Manifest()
        manifest.add_support_file("flake-monster.runtime.js")
        manifest.add_support_file("flake-monster.runtime.js")
        self.assertEqual(manifest.support_files, ["flake-monster.runtime.js"])

    def test_is_file_unmodified(self):
        manifest = Manifest()
        manifest.add_file("src/a.js", make_record())
        self.assertTrue(manifest.is_file_unmodified("src/a.js", hash_content("after")))
        self.assertFalse(manifest.is_file_unmodified("src/a.js", hash_content("after, edited")))
        self.assertFalse(manifest.is_file_unmodified("src/unknown.js", hash_content("after")))

    def test_save_and_load_round_trip(self):
        manifest = Manifest(seed=-5, mode="hardcore")
        manifest.add_file("src/a.js", make_record())
        manifest.add_support_file("flake-monster.runtime.js")
        path = manifest.save(self.manifest_dir)

        self.assertEqual(path, self.manifest_dir / MANIFEST_FILENAME)
        self.assertEqual([p.name for p in self.manifest_dir.iterdir()], [MANIFEST_FILENAME])

        loaded = Manifest.load(self.manifest_dir)
        self.assertIsNotNone(loaded)
        self.assertEqual((loaded.seed, loaded.mode), (-5, "hardcore"))
        self.assertEqual(loaded.created_at, manifest.created_at)
        self.assertEqual(loaded.get_files(), manifest.get_files())
        self.assertEqual(loaded.support_files, ["flake-monster.runtime.js"])

    def test_on_disk_shape(self):
        manifest = Manifest(seed=42, mode="medium")
        manifest.add_file("src/a.js", make_record(1))
        manifest.save(self.manifest_dir)
        data = json.loads((self.manifest_dir / MANIFEST_FILENAME).read_text(encoding="utf-8"))

        self.assertEqual(data["version"], 1)
        self.assertEqual(data["seed"], 42)
        entry = data["files"]["src/a.js"]
        self.assertEqual(entry["adapterId"], "javascript")
        self.assertTrue(entry["supportModuleReferenceAdded"])
        self.assertEqual(
            entry["injectionPoints"][0],
            {
                "id": "00000000",
                "containerName": "loadUser",
                "indexWithinContainer": 0,
                "sourceLine": 3,
                "sourceColumn": 2,
                "delayMilliseconds": 10,
            },
        )

    def test_load_missing_returns_none(self):
        self.assertIsNone(Manifest.load(self.manifest_dir))

    def test_load_corrupt_returns_none(self):
        """Test that a corrupt manifest is reported and treated as missing."""
        self.manifest_dir.mkdir()
        (self.manifest_dir / MANIFEST_FILENAME).write_text("{not json", encoding="utf-8")
        with patch("sys.stderr", new_callable=io.StringIO) as mock_stderr:
            self.assertIsNone(Manifest.load(self.manifest_dir))
        self.assertIn("Could not read manifest", mock_stderr.getvalue())

    def test_load_non_object_returns_none(self):
        self.manifest_dir.mkdir()
        (self.manifest_dir / MANIFEST_FILENAME).write_text("[1, 2]", encoding="utf-8")
        with patch("sys.stderr", new_callable=io.StringIO):
            self.assertIsNone(Manifest.load(self.manifest_dir))

    def test_load_malformed_entries_returns_none(self):
        """Test that file entries that are not objects are reported, not raised."""
        self.manifest_dir.mkdir()
        for files in ({"src/a.js": 5}, ["src/a.js"], {"src/a.js": {"injectionPoints": [7]}}):
            (self.manifest_dir / MANIFEST_FILENAME).write_text(
                json.dumps({"version": 1, "seed": 1, "mode": "light", "files": files}), encoding="utf-8"
            )
            with patch("sys.stderr", new_callable=io.StringIO) as mock_stderr:
                self.assertIsNone(Manifest.load(self.manifest_dir))
            self.assertIn("Ignoring malformed manifest", mock_stderr.getvalue())

    def test_delete(self):
        Manifest(seed=1, mode="light").save(self.manifest_dir)
        Manifest.delete(self.manifest_dir)
        self.assertIsNone(Manifest.load(self.manifest_dir))
        # Deleting again is a no-op.
        Manifest.delete(self.manifest_dir)


if __name__ == "__main__":
    unittest.main()
