"""
Tests that the DRF plumbing modules import in any order.

DRF resolves DEFAULT_AUTHENTICATION_CLASSES while rest_framework.views is
still importing, so each ordering runs in a fresh interpreter.
"""
import os
import subprocess
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[3]


@pytest.mark.parametrize('modules', [
    ['apps.core.exceptions', 'rest_framework.views'],
    ['rest_framework.views', 'apps.core.exceptions'],
    ['apps.core.authentication', 'apps.core.exceptions'],
    ['apps.flights.views', 'apps.rbac.views_auth'],
])
def test_import_order(modules):
    code = 'import django; django.setup(); ' + '; '.join(f'import {name}' for name in modules)
    env = dict(os.environ, DJANGO_SETTINGS_MODULE='config.test_settings')
    env['PYTHONPATH'] = os.pathsep.join(filter(None, [str(PROJECT_ROOT), env.get('PYTHONPATH')]))

    result = subprocess.run(
        [sys.executable, '-c', code],
        cwd=PROJECT_ROOT,
        env=env,
        capture_output=True,
        text=True,
        timeout=60,
    )

    assert result.returncode == 0, result.stderr
