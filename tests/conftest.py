from __future__ import annotations

from datetime import datetime

import pytest

from tests.fakes import Clock, make_container, make_repos


@pytest.fixture
def fixed_now() -> datetime:
    # Wednesday
    return datetime(2026, 3, 4, 12, 0, 0)


@pytest.fixture
def clock(fixed_now) -> Clock:
    return Clock(fixed_now)


@pytest.fixture
def repos():
    return make_repos()


@pytest.fixture
def container(repos, clock):
    return make_container(clock, repos)
