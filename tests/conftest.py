"""
Shared fixtures for registry tests.
"""

import os

# Settings are read at import time
os.environ["JWT_SECRET"] = "test-secret"
os.environ["DATABASE_URL"] = ""

from datetime import datetime, timedelta, timezone

import pytest

from cipherdocs.domains.registry.services import RegistryService

OWNER = "0x1111111111111111111111111111111111111111"
COLLABORATOR = "0x2222222222222222222222222222222222222222"
OUTSIDER = "0x3333333333333333333333333333333333333333"

KEY = bytes(range(32))


class FakeClock:
    """Clock that advances one second per call unless told otherwise."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.step = timedelta(seconds=1)

    def __call__(self) -> datetime:
        now = self.current
        self.current = self.current + self.step
        return now

    def rewind(self, delta: timedelta) -> None:
        self.current = self.current - delta


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return RegistryService(clock=clock)


@pytest.fixture
def document_id(registry):
    """A document owned by OWNER."""
    return registry.create_document(OWNER, "Doc Alpha", KEY)
