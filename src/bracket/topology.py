"""
Single elimination bracket topology.

Sizes the bracket for an entrant count and creates the match nodes round by
round, wiring each match's winner edge to the next round.
"""
import math
import logging
from typing import List, Dict, Optional

from .models import Match, BracketType, make_match_id

logger = logging.getLogger(__name__)


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def calculate_bracket_size(num_teams: int) -> int:
    """Calculate the bracket size (next power of 2)."""
    if num_teams <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_teams))


def calculate_rounds(num_teams: int) -> int:
    """Number of single elimination rounds; zero when nobody has to play."""
    if num_teams < 2:
        return 0
    return int(math.log2(calculate_bracket_size(num_teams)))


def calculate_first_round_matches(num_teams: int) -> int:
    if num_teams < 2:
        return 0
    return calculate_bracket_size(num_teams) // 2


def calculate_total_matches(num_teams: int) -> int:
    """Matches actually contested: every one of them eliminates one entrant."""
    return max(num_teams - 1, 0)


def matches_in_round(num_teams: int, round_number: int) -> int:
    """Match nodes created for a 1-based round: bracket_size / 2^round."""
    return calculate_bracket_size(num_teams) // (2 ** round_number)


def build_single_elimination(num_teams: int) -> List[Match]:
    """
    Create the match nodes of a single elimination bracket.

    Matches are ordered by round, then by match number, with ids 'W{n}R{r}'.
    Matches n and n+1 of round r feed match ceil(n/2) of round r+1. No
    entrants are placed here; 0 or 1 entrants produce no matches at all.
    """
    rounds = calculate_rounds(num_teams)
    if rounds == 0:
        return []

    logger.debug(
        f"Single elimination for {num_teams} teams: bracket size {calculate_bracket_size(num_teams)}, "
        f"{rounds} rounds, {calculate_first_round_matches(num_teams)} first round matches, "
        f"{calculate_total_matches(num_teams)} contested matches"
    )

    rounds_matches: Dict[int, List[Match]] = {}
    for round_number in range(1, rounds + 1):
        rounds_matches[round_number] = [
            Match(make_match_id('W', match_number, round_number), BracketType.WINNER, round_number)
            for match_number in range(1, matches_in_round(num_teams, round_number) + 1)
        ]

    connect_rounds(rounds_matches)

    matches = []
    for round_number in range(1, rounds + 1):
        matches.extend(rounds_matches[round_number])
    return matches


def connect_rounds(rounds_matches: Dict[int, List[Match]]) -> None:
    """Point every match's winner edge at its match in the following round."""
    for round_number, current in rounds_matches.items():
        following = rounds_matches.get(round_number + 1)
        if not following:
            continue
        for index, match in enumerate(current):
            next_index = index // 2
            if next_index < len(following):
                match.winner_next = following[next_index].id


def terminal_match(matches: List[Match]) -> Optional[Match]:
    """The match without a winner edge in the highest round."""
    candidates = [m for m in matches if m.winner_next is None]
    return max(candidates, key=lambda m: m.round or 0) if candidates else None
