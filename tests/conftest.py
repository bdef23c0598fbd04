"""
Shared pytest fixtures for bracket engine tests.

Running tests:
    pytest tests/                  - full suite
    pytest tests/ -m "not slow"   - fast subset (skips play-through of every bracket size)
"""
import pytest
import sys
import os
from datetime import datetime, timedelta

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from bracket.models import Entrant, MatchState
from bracket.service import TournamentService
from bracket.store import TournamentStore


class FixedClock:
    """Clock returning a fixed start time, one minute later on every call."""

    def __init__(self, start=datetime(2026, 1, 1, 12, 0, 0)):
        self.current = start

    def __call__(self):
        value = self.current
        self.current = value + timedelta(minutes=1)
        return value


def make_entrants(count, prefix='p'):
    """Entrants p1..pN already in seed order."""
    entrants = [Entrant(f"{prefix}{i}") for i in range(1, count + 1)]
    for position, entrant in enumerate(entrants, start=1):
        entrant.seed_position = position
    return entrants


def play_out(service, tournament, pick_winner=None):
    """Report every ready match until none is left; team1 wins unless pick_winner says otherwise."""
    played = 0
    while True:
        ready = [m for m in tournament.matches if m.state == MatchState.READY]
        if not ready:
            return played
        match = min(ready, key=lambda m: (m.round, m.id))
        team1_wins = pick_winner(match) if pick_winner else True
        winner, loser = (match.team1_ids, match.team2_ids) if team1_wins else (match.team2_ids, match.team1_ids)
        service.submit_result(tournament.id, match.id, list(winner), list(loser))
        played += 1


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def service(clock):
    """Service with an in-memory store and predictable ids."""
    counter = iter(range(1, 10000))
    return TournamentService(
        store=TournamentStore(),
        clock=clock,
        id_factory=lambda: f"t{next(counter)}",
    )


@pytest.fixture
def players():
    return [f"p{i}" for i in range(1, 9)]


@pytest.fixture
def client(service, monkeypatch):
    """Flask test client wired to the in-memory service."""
    import app as app_module
    monkeypatch.setattr(app_module, '_service', service)
    app_module.app.config['TESTING'] = True
    with app_module.app.test_client() as client:
        yield client
