"""
Pytest fixtures and test configuration for Cortex tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from cortex import Cortex
from cortex.types import IdentityInput, Invariant, RiskPosture, StyleConstraint, Value


class FakeClock:
    """Controllable clock: call it for the current time, advance() to move it."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cortex(clock):
    """Fresh in-memory Cortex driven by the fake clock."""
    return Cortex.create(now_fn=clock)


@pytest.fixture
def sqlite_cortex(tmp_path, clock):
    """Cortex persisted to a temporary SQLite file."""
    return Cortex.create_with_sqlite(tmp_path / "cortex.db", now_fn=clock)


@pytest.fixture
def sample_identity_input():
    return IdentityInput(
        name="Careful Assistant",
        risk_posture=RiskPosture.CONSERVATIVE,
        values=[
            Value(name="honesty", description="Never misstate facts", priority=5),
            Value(name="brevity", description="Prefer short answers", priority=2),
            Value(name="safety", description="Avoid irreversible actions", priority=8),
        ],
        invariants=[
            Invariant(
                description="No secrets in output",
                rule="never print credentials",
                rationale="credentials leak",
            )
        ],
        style_constraints=[StyleConstraint(aspect="tone", constraint="plain and direct")],
        description="Test identity",
    )


@pytest.fixture
def identity(cortex, sample_identity_input):
    return cortex.identity.create(sample_identity_input)
