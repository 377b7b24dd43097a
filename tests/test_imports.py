"""
Tests that every entry module imports cleanly in a fresh interpreter
"""
import os
import subprocess
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class TestModuleImports:
    """Each module is imported first, so an import cycle cannot hide behind test ordering"""

    @pytest.mark.parametrize('module', [
        'app.main',
        'app.database',
        'app.utils.security',
        'app.utils.prometheus_metrics',
        'app.schemas.user',
        'app.models.user',
        'app.services.photo',
        'app.dependencies.auth',
    ])
    def test_imports_first(self, module):
        completed = subprocess.run(
            [sys.executable, '-c', f'import {module}'],
            cwd=PROJECT_ROOT,
            env=os.environ.copy(),
            capture_output=True,
            text=True,
            timeout=60,
        )

        assert completed.returncode == 0, completed.stderr
