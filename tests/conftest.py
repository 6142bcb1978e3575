"""Pytest configuration for tierql tests."""

import pytest

from tierql.tenancy import get_current_tenant, set_current_tenant


class FakeClock:
    """Manually advanced clock in epoch-like seconds."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def reset_current_tenant():
    """Restore the tenant context after each test."""
    original = get_current_tenant()

    yield

    set_current_tenant(original)
