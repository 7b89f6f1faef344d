"""Project start-up in a fresh interpreter."""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

from django.test import SimpleTestCase

SRC_DIR = Path(__file__).resolve().parents[1]


class BootTests(SimpleTestCase):
    def run_manage(self, *args):
        env = {**os.environ, "DJANGO_SETTINGS_MODULE": "core.settings"}
        return subprocess.run(
            [sys.executable, str(SRC_DIR / "manage.py"), *args],
            cwd=SRC_DIR,
            env=env,
            capture_output=True,
            text=True,
            timeout=120,
        )

    def test_system_checks_pass_on_a_cold_start(self):
        result = self.run_manage("check")

        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertNotIn("circular import", result.stderr)
