"""Shared fixtures for rc-common tests."""

from __future__ import annotations

import os

import pytest

os.environ.setdefault("RC_LOG_JSON", "false")
os.environ.setdefault("RC_YOUTUBE_CLIENT_ID", "test-client-id")
os.environ.setdefault("RC_YOUTUBE_CLIENT_SECRET", "test-client-secret")


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    from rc_common.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
