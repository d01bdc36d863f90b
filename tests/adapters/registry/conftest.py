"""Shared fixtures for registry adapter tests."""

from __future__ import annotations

import pytest

from tests.support.registry import RecordingHandler


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()
