"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from aymc_remote.ssh.probe import RemoteStateProbe
from tests.fake_ssh import FakeSSH


@pytest.fixture
def fake_ssh():
    """Provide a fresh FakeSSH."""
    return FakeSSH()


@pytest.fixture
def probe(fake_ssh):
    return RemoteStateProbe(fake_ssh)
