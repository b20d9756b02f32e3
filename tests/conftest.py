"""Shared fixtures for the settlement engine tests."""

from datetime import datetime, timezone

import pytest

from settlement_engine.config import Settings
from settlement_engine.models import PlayerBalance


FIXED_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def build_balances(**nets: int) -> list[PlayerBalance]:
    """Build a snapshot from keyword net positions, e.g. build_balances(A=50, B=-50)."""
    return [
        PlayerBalance.from_net(player_id, net, name=f"Player {player_id}")
        for player_id, net in nets.items()
    ]


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_TIME


@pytest.fixture
def four_players():
    """A(+50) B(+20) C(-30) D(-40)."""
    return build_balances(A=50, B=20, C=-30, D=-40)


@pytest.fixture
def five_players():
    """Greedy needs four payments here; three are enough."""
    return build_balances(A=7, B=6, C=-6, D=-4, E=-3)


@pytest.fixture
def make_balances():
    return build_balances
