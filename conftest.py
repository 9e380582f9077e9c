"""Repo-wide test fixtures.

Snapshots and restores usage billing environment variables between tests
so load_config() in one test never sees another test's overrides.
"""

from __future__ import annotations

import os

import pytest

_CONFIG_ENV_VARS = [
    "USAGE_BILLING_DETAIL_MODE",
    "USAGE_BILLING_TIME_ZONE",
]


@pytest.fixture(autouse=True)
def _restore_env():
    """Snapshot config env vars before each test and restore after."""
    snapshot = {}
    for var in _CONFIG_ENV_VARS:
        val = os.environ.get(var)
        if val is not None:
            snapshot[var] = val

    yield

    for var in _CONFIG_ENV_VARS:
        if var in snapshot:
            os.environ[var] = snapshot[var]
        else:
            os.environ.pop(var, None)
