"""
Shared test setup.

Points the service at a throwaway SQLite database and a non-existent config
file before any application module is imported.
"""

import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="club_placement_tests_")
os.environ["CLUB_PLACEMENT_DB_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["CLUB_PLACEMENT_CONFIG"] = os.path.join(_TMP_DIR, "config.json")
os.environ["CLUB_DIRECTORY_URL"] = "http://directory.invalid"
