"""
Tests for result application and advancement through the bracket.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from bracket.errors import MatchNotFoundError, MatchResultRejected
from bracket.models import (
    Tournament, TournamentFormat, BracketType, MatchState, Match
)
from bracket.progression import ProgressionEngine, find_terminal_match
from bracket.service import build_bracket
from bracket.templates import YamlTemplateProvider
from conftest import FixedClock, make_entrants


def new_tournament(num_teams, fmt=TournamentFormat.SINGLE_ELIMINATION):
    tournament = Tournament('t1', 'Test Cup', fmt)
    build_bracket(tournament, make_entrants(num_teams), YamlTemplateProvider())
    return tournament


def play(engine, pick_team1=lambda match: True):
    """Play every ready match; returns how many results were applied."""
    played = 0
    while True:
        ready = [m for m in engine.tournament.matches if m.state == MatchState.READY]
        if not ready:
            return played
        match = min(ready, key=lambda m: (m.round, m.id))
        if pick_team1(match):
            engine.apply_result(match.id, match.team1_ids, match.team2_ids)
        else:
            engine.apply_result(match.id, match.team2_ids, match.team1_ids)
        played += 1


def snapshot(tournament):
    return [m.to_dict() for m in tournament.matches]


class TestApplyResult:
    """Tests for a single result."""

    def test_winner_advances_to_first_empty_slot(self):
        tournament = new_tournament(4)
        engine = ProgressionEngine(tournament, FixedClock())
        engine.apply_result('W1R1', ['p1'], ['p4'])
        match = tournament.get_match('W1R1')
        assert match.completed
        assert match.state == MatchState.COMPLETED
        assert match.winner_ids == ['p1']
        assert match.loser_ids == ['p4']
        assert match.completed_at == '2026-01-01T12:00:00'
        assert tournament.get_match('W1R2').team1_ids == ['p1']
        assert tournament.get_match('W1R2').state == MatchState.PENDING

    def test_second_winner_fills_slot_two(self):
        tournament = new_tournament(4)
        engine = ProgressionEngine(tournament, FixedClock())
        engine.apply_result('W2R1', ['p2'], ['p3'])
        engine.apply_result('W1R1', ['p1'], ['p4'])
        final = tournament.get_match('W1R2')
        assert final.team1_ids == ['p2']
        assert final.team2_ids == ['p1']
        assert final.state == MatchState.READY

    def test_unknown_match_rejected(self):
        tournament = new_tournament(4)
        before = snapshot(tournament)
        with pytest.raises(MatchNotFoundError):
            ProgressionEngine(tournament).apply_result('W9R9', ['p1'], ['p2'])
        assert snapshot(tournament) == before

    def test_completed_match_rejected_without_change(self):
        """Test a second result for a match leaves the bracket untouched."""
        tournament = new_tournament(4)
        engine = ProgressionEngine(tournament, FixedClock())
        engine.apply_result('W1R1', ['p1'], ['p4'])
        before = snapshot(tournament)
        with pytest.raises(MatchResultRejected):
            engine.apply_result('W1R1', ['p4'], ['p1'])
        assert snapshot(tournament) == before

    def test_result_without_winner_rejected(self):
        tournament = new_tournament(4)
        with pytest.raises(MatchResultRejected):
            ProgressionEngine(tournament).apply_result('W1R1', [], ['p1'])
        assert not tournament.get_match('W1R1').completed

    def test_missing_target_logged_and_skipped(self, caplog):
        """Test a dangling edge keeps the accepted result and logs a warning."""
        tournament = Tournament('t1', 'Broken', TournamentFormat.SINGLE_ELIMINATION)
        match = Match('W1R1', round=1, winner_next='W7R2')
        match.team1_ids, match.team2_ids = ['a'], ['b']
        tournament.matches = [match]
        ProgressionEngine(tournament).apply_result('W1R1', ['a'], ['b'])
        assert match.completed
        assert 'W7R2' in caplog.text

    def test_full_target_logged_and_skipped(self, caplog):
        tournament = Tournament('t1', 'Broken', TournamentFormat.SINGLE_ELIMINATION)
        source = Match('W1R1', round=1, winner_next='W1R2')
        source.team1_ids, source.team2_ids = ['a'], ['b']
        target = Match('W1R2', round=2)
        target.team1_ids, target.team2_ids = ['c'], ['d']
        tournament.matches = [source, target]
        ProgressionEngine(tournament).apply_result('W1R1', ['a'], ['b'])
        assert source.completed
        assert (target.team1_ids, target.team2_ids) == (['c'], ['d'])
        assert 'no empty slot' in caplog.text


class TestSingleEliminationProgression:
    """Tests for single elimination play-through."""

    def test_five_team_fixture(self):
        """Test 5 entrants: 4 contested matches, seed 1 reaches the final on byes."""
        tournament = new_tournament(5)
        assert tournament.get_match('W1R3').team1_ids == ['p1']
        engine = ProgressionEngine(tournament, FixedClock())
        assert play(engine) == 4
        assert tournament.champion_ids == ['p1']
        assert tournament.runner_up_ids == ['p2']
        assert engine.all_matches_completed()

    def test_late_bye_after_result(self):
        """Test a match fed by a removed match advances its entrant once the other feeder is played."""
        tournament = new_tournament(6)
        engine = ProgressionEngine(tournament, FixedClock())
        three_one = tournament.get_match('W3R1')
        assert sorted([three_one.team1_ids[0], three_one.team2_ids[0]]) == ['p1', 'p4']
        engine.apply_result('W3R1', ['p1'], ['p4'])
        assert tournament.get_match('W2R2').is_bye
        assert tournament.get_match('W1R3').team1_ids == ['p1']

    def test_champion_from_terminal_match(self):
        tournament = new_tournament(2)
        engine = ProgressionEngine(tournament)
        engine.apply_result('W1R1', ['p2'], ['p1'])
        assert find_terminal_match(tournament).id == 'W1R1'
        assert tournament.champion_id == 'p2'
        assert tournament.runner_up_id == 'p1'

    def test_single_entrant_is_champion(self):
        tournament = new_tournament(1)
        assert tournament.matches == []
        assert tournament.champion_ids == ['p1']

    @pytest.mark.slow
    @pytest.mark.parametrize('num_teams', range(2, 65))
    def test_contested_matches_equal_entrants_minus_one(self, num_teams):
        """Test T-1 contested matches, and seeds 1 and 2 meeting in the final."""
        tournament = new_tournament(num_teams)
        seeds = {tuple(e.ids): e.seed_position for e in tournament.entrants}
        engine = ProgressionEngine(tournament, FixedClock())
        played = play(engine, lambda m: seeds[tuple(m.team1_ids)] < seeds[tuple(m.team2_ids)])
        assert played == num_teams - 1
        assert engine.all_matches_completed()
        assert tournament.champion_ids == ['p1']
        assert tournament.runner_up_ids == ['p2']


class TestDoubleEliminationProgression:
    """Tests for double elimination play-through."""

    def test_four_team_losers_drop_to_loser_bracket(self):
        tournament = new_tournament(4, TournamentFormat.DOUBLE_ELIMINATION)
        engine = ProgressionEngine(tournament, FixedClock())
        engine.apply_result('W1R1', ['p1'], ['p4'])
        engine.apply_result('W2R1', ['p2'], ['p3'])
        loser_first = tournament.get_match('L1R1')
        assert loser_first.team1_ids == ['p4']
        assert loser_first.team2_ids == ['p3']
        assert tournament.get_match('W1R2').state == MatchState.READY

    def test_four_team_full_run(self):
        """Test every slot is filled by a real entrant and F2 decides the champion."""
        tournament = new_tournament(4, TournamentFormat.DOUBLE_ELIMINATION)
        engine = ProgressionEngine(tournament, FixedClock())
        engine.apply_result('W1R1', ['p1'], ['p4'])
        engine.apply_result('W2R1', ['p2'], ['p3'])
        engine.apply_result('W1R2', ['p1'], ['p2'])
        engine.apply_result('L1R1', ['p3'], ['p4'])

        final = tournament.get_match('F1')
        assert final.bracket_type == BracketType.FINAL
        assert sorted(final.team1_ids + final.team2_ids) == ['p2', 'p3']
        engine.apply_result('F1', ['p2'], ['p3'])
        assert tournament.champion_ids == []

        championship = tournament.get_match('F2')
        assert championship.team1_ids == ['p1']
        assert championship.team2_ids == ['p2']
        engine.apply_result('F2', ['p2'], ['p1'])
        assert tournament.champion_id == 'p2'
        assert tournament.runner_up_id == 'p1'
        assert engine.all_matches_completed()
        assert not any(m.is_bye for m in tournament.matches)

    def test_loser_bracket_loss_eliminates(self):
        """Test a loser bracket loser goes nowhere."""
        tournament = new_tournament(4, TournamentFormat.DOUBLE_ELIMINATION)
        engine = ProgressionEngine(tournament, FixedClock())
        engine.apply_result('W1R1', ['p1'], ['p4'])
        engine.apply_result('W2R1', ['p2'], ['p3'])
        engine.apply_result('L1R1', ['p3'], ['p4'])
        placed = []
        for match in tournament.matches:
            if not match.completed:
                placed.extend(match.team1_ids + match.team2_ids)
        assert 'p4' not in placed

    @pytest.mark.slow
    @pytest.mark.parametrize('num_teams', range(3, 17))
    def test_play_through_every_size(self, num_teams):
        """Test all 2T-2 matches are played and the top seed wins when better seeds always win."""
        tournament = new_tournament(num_teams, TournamentFormat.DOUBLE_ELIMINATION)
        seeds = {tuple(e.ids): e.seed_position for e in tournament.entrants}
        engine = ProgressionEngine(tournament, FixedClock())
        played = play(engine, lambda m: seeds[tuple(m.team1_ids)] < seeds[tuple(m.team2_ids)])
        assert played == 2 * num_teams - 2
        assert engine.all_matches_completed()
        assert tournament.champion_ids == ['p1']
        assert tournament.runner_up_ids == ['p2']

    @pytest.mark.slow
    @pytest.mark.parametrize('num_teams', range(3, 17))
    def test_upsets_still_finish(self, num_teams):
        """Test the bracket completes when the worse seed always wins."""
        tournament = new_tournament(num_teams, TournamentFormat.DOUBLE_ELIMINATION)
        seeds = {tuple(e.ids): e.seed_position for e in tournament.entrants}
        engine = ProgressionEngine(tournament, FixedClock())
        played = play(engine, lambda m: seeds[tuple(m.team1_ids)] > seeds[tuple(m.team2_ids)])
        assert played == 2 * num_teams - 2
        assert len(tournament.champion_ids) == 1
        assert tournament.champion_ids != tournament.runner_up_ids
