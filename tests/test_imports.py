"""
Tests that entry-point modules import cleanly in a fresh interpreter.

The test session has already imported most of carebase, which would hide
an import cycle, so each import runs in its own subprocess.
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]


@pytest.mark.parametrize(
    "module",
    [
        "carebase.api.app",
        "carebase.main",
        "carebase.auth",
        "carebase.auth.routes",
        "carebase.storage.gateway",
    ],
)
def test_module_imports_fresh(module):
    env = {**os.environ, "PYTHONPATH": str(ROOT), "SENTRY_DSN": ""}
    result = subprocess.run(
        [sys.executable, "-c", f"import {module}"],
        cwd=ROOT,
        env=env,
        capture_output=True,
        text=True,
        timeout=60,
    )
    assert result.returncode == 0, result.stderr
