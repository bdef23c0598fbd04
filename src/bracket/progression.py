"""
Match result application and advancement through the bracket graph.
"""
import logging
import threading
from datetime import datetime
from typing import List, Optional, Callable

from .byes import resolve_byes
from .errors import MatchNotFoundError, MatchResultRejected
from .models import Tournament, Match, BracketType, TournamentFormat
from .topology import terminal_match

logger = logging.getLogger(__name__)


def find_terminal_match(tournament: Tournament) -> Optional[Match]:
    """
    The match whose result decides the tournament.

    CHAMPIONSHIP in double elimination, the highest round match otherwise.
    """
    if tournament.format == TournamentFormat.DOUBLE_ELIMINATION:
        for match in tournament.matches:
            if match.bracket_type == BracketType.CHAMPIONSHIP:
                return match
        return None
    return terminal_match(tournament.matches)


class ProgressionEngine:
    """
    Applies reported results to one tournament's bracket.

    Winners move along winner_next; losers of winner bracket matches move
    along loser_next. Each call runs under the engine's lock, so a result is
    either applied with all its propagation or rejected with no change.
    """

    def __init__(self, tournament: Tournament, clock: Optional[Callable[[], datetime]] = None,
                 lock=None):
        self.tournament = tournament
        self.clock = clock or datetime.now
        self.lock = lock or threading.RLock()

    def _timestamp(self) -> str:
        return self.clock().isoformat()

    def apply_result(self, match_id: str, winner_ids: List[str], loser_ids: List[str]) -> Match:
        with self.lock:
            match = self.tournament.get_match(match_id)
            if match is None:
                raise MatchNotFoundError(f"Match {match_id} not found in tournament {self.tournament.id}")
            if match.completed:
                raise MatchResultRejected(f"Match {match_id} is already completed")
            if not winner_ids:
                raise MatchResultRejected(f"Match {match_id} result has no winner")

            match.completed = True
            match.completed_at = self._timestamp()
            match.winner_ids = list(winner_ids)
            match.loser_ids = list(loser_ids or [])
            logger.debug(f"Match {match_id}: {match.winner_ids} beat {match.loser_ids}")

            self._advance(match, match.winner_next, match.winner_ids, 'winner')
            if match.bracket_type == BracketType.WINNER and match.loser_next and match.loser_ids:
                self._advance(match, match.loser_next, match.loser_ids, 'loser')

            # A target whose other feeder was removed at construction settles now
            self.tournament.matches = resolve_byes(
                self.tournament.matches, match.completed_at, [match.winner_next, match.loser_next]
            )

            terminal = find_terminal_match(self.tournament)
            if terminal is match:
                self.tournament.champion_ids = list(match.winner_ids)
                self.tournament.runner_up_ids = list(match.loser_ids)
                logger.info(f"Tournament {self.tournament.id} decided: champion {self.tournament.champion_id}, "
                            f"runner-up {self.tournament.runner_up_id}")
            return match

    def _advance(self, source: Match, target_id: Optional[str], ids: List[str], role: str) -> None:
        if not target_id:
            return
        target = self.tournament.get_match(target_id)
        if target is None:
            logger.warning(f"Match {source.id}: {role} target {target_id} does not exist, not advancing {ids}")
            return
        if not target.place(ids):
            logger.warning(f"Match {source.id}: {role} target {target_id} has no empty slot, not advancing {ids}")
            return
        logger.debug(f"Advanced {role} {ids} from {source.id} to {target_id}")

    def all_matches_completed(self) -> bool:
        return all(m.completed for m in self.tournament.matches)
