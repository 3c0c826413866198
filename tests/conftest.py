"""Shared test fixtures and marker registration."""

from __future__ import annotations

import pytest

from remote_sftp._context import InlineContext
from tests.fakes import Recorder, ScriptedChannel


def pytest_configure(config: object) -> None:
    """Register custom markers."""
    if isinstance(config, pytest.Config):
        config.addinivalue_line("markers", "integration: requires external services")


@pytest.fixture
def channel() -> ScriptedChannel:
    return ScriptedChannel()


@pytest.fixture
def inline() -> InlineContext:
    return InlineContext()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()
