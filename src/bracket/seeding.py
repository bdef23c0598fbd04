"""
Entrant ordering and initial slot assignment.

Entrants are first ordered by the tournament's seeding policy, which fixes
their seed positions. Single elimination then fills first round matches by
walking them in order: two entrants per match until the switch point, one
entrant (a bye) per match afterwards. Double elimination seats entrants in
the template's winner bracket: round 1 matches and the open slot of round 2
matches fed by a single round 1 match. Both spread seeds so that seeds 1 and
2 start in opposite halves.
"""
import random
import logging
from typing import List, Dict, Optional, Callable

from .errors import BracketError, TemplateError
from .models import Entrant, Match, SeedingPolicy, BracketType, get_match_number
from .topology import calculate_bracket_size, calculate_first_round_matches, is_power_of_two

logger = logging.getLogger(__name__)


def order_entrants(entrants: List[Entrant], policy: SeedingPolicy,
                   rating_of: Optional[Callable[[Entrant], float]] = None,
                   rng: Optional[random.Random] = None) -> List[Entrant]:
    """
    Order entrants by seeding policy and assign 1-based seed positions.

    RATING_BASED sorts by rating, highest first (ties keep input order),
    RANDOM shuffles, AS_GIVEN keeps the input order.
    """
    ordered = list(entrants)
    if policy == SeedingPolicy.RATING_BASED:
        if rating_of is None:
            rating_of = lambda entrant: entrant.rating or 0
        for entrant in ordered:
            entrant.rating = rating_of(entrant)
        ordered.sort(key=lambda entrant: entrant.rating, reverse=True)
    elif policy == SeedingPolicy.RANDOM:
        (rng or random.Random()).shuffle(ordered)

    for position, entrant in enumerate(ordered, start=1):
        entrant.seed_position = position
    return ordered


def calculate_switch_point(num_teams: int) -> int:
    """
    Number of assigned entrants after which first round matches get one
    entrant each instead of two.
    """
    if is_power_of_two(num_teams):
        return num_teams
    first_round_matches = calculate_first_round_matches(num_teams)
    return first_round_matches * 2 - (num_teams - first_round_matches)


def first_round_occupancy(num_teams: int) -> List[int]:
    """
    How many entrants each first round match receives, in match order.

    For 5 teams: [2, 2, 1, 0] - two full matches, one bye and one match that
    stays empty. Past the switch point a match still takes two entrants when
    the matches left could not otherwise seat everyone (14 teams:
    [2, 2, 2, 2, 2, 2, 1, 1]).
    """
    switch_point = calculate_switch_point(num_teams)
    match_count = calculate_first_round_matches(num_teams)
    occupancy = []
    assigned = 0
    for index in range(match_count):
        remaining = num_teams - assigned
        if assigned < switch_point or remaining > match_count - index:
            take = min(2, remaining)
        else:
            take = min(1, remaining)
        occupancy.append(take)
        assigned += take
    return occupancy


def _split_seeds(seeds: List[Entrant], first_size: int, second_size: int):
    """
    Split seeds between two sides seating first_size and second_size entrants.

    The first side takes the best seed, then seeds alternate ABBA, so seeds 1
    and 2 never share a side.
    """
    first_seeds, second_seeds = [], []
    for index, seed in enumerate(seeds):
        wants_first = index % 4 in (0, 3)
        if len(second_seeds) == second_size or (wants_first and len(first_seeds) < first_size):
            first_seeds.append(seed)
        else:
            second_seeds.append(seed)
    return first_seeds, second_seeds


def _distribute(seeds: List[Entrant], positions: List[int], low: int, high: int,
                placement: Dict[int, Entrant]) -> None:
    """
    Spread seeds over the occupied slot positions of the subtree [low, high).

    The half with fewer occupied slots (more byes) takes the best seed.
    """
    if len(positions) == 1:
        placement[positions[0]] = seeds[0]
        return

    middle = (low + high) // 2
    left = [p for p in positions if p < middle]
    right = [p for p in positions if p >= middle]
    if not left:
        _distribute(seeds, right, middle, high, placement)
        return
    if not right:
        _distribute(seeds, left, low, middle, placement)
        return

    if len(right) < len(left):
        first, first_bounds, second, second_bounds = right, (middle, high), left, (low, middle)
    else:
        first, first_bounds, second, second_bounds = left, (low, middle), right, (middle, high)

    first_seeds, second_seeds = _split_seeds(seeds, len(first), len(second))
    _distribute(first_seeds, first, first_bounds[0], first_bounds[1], placement)
    _distribute(second_seeds, second, second_bounds[0], second_bounds[1], placement)


def assign_single_elimination(matches: List[Match], entrants: List[Entrant]) -> None:
    """
    Place seeded entrants into first round matches.

    Entrants must already be in seed order. The number of entrants per match
    comes from first_round_occupancy(); which seed lands in which slot is
    balanced across the bracket.
    """
    first_round = sorted((m for m in matches if m.round == 1), key=lambda m: get_match_number(m.id))
    num_teams = len(entrants)
    if not first_round or num_teams == 0:
        return

    occupancy = first_round_occupancy(num_teams)
    logger.debug(f"Switch point for single entrant assignment: {calculate_switch_point(num_teams)}")
    if len(first_round) != len(occupancy):
        raise BracketError(
            f"Bracket for {num_teams} entrants needs {len(occupancy)} first round matches, got {len(first_round)}"
        )

    # Slot position 2i is slot one of match i, 2i+1 is slot two
    positions = []
    for index, count in enumerate(occupancy):
        positions.extend(2 * index + slot for slot in range(count))

    placement: Dict[int, Entrant] = {}
    _distribute(list(entrants), positions, 0, calculate_bracket_size(num_teams), placement)
    if len(placement) != num_teams:
        raise BracketError(f"Only {len(placement)} of {num_teams} entrants could be placed")

    for position in sorted(placement):
        match = first_round[position // 2]
        if position % 2 == 0:
            match.team1_ids = list(placement[position].ids)
        else:
            match.team2_ids = list(placement[position].ids)

    logger.debug(f"Assigned {len(placement)} entrants to {len(first_round)} first round matches")


def assign_double_elimination(matches: List[Match], entrants: List[Entrant]) -> None:
    """
    Seed a double elimination bracket built from a template.

    Every winner bracket match has two inputs: feeding winner bracket matches,
    and an entrant slot for each input that no match feeds. Round 1 matches
    therefore take two entrants and a round 2 match fed by a single round 1
    match takes one directly. Seeds are spread over this tree the same way as
    in single elimination: at every match the side seating fewer entrants
    takes the better seed, so seeds 1 and 2 start in opposite halves and can
    only meet in the winner bracket final.
    """
    winners = sorted(
        (m for m in matches if m.bracket_type == BracketType.WINNER),
        key=lambda m: (m.round or 0, get_match_number(m.id))
    )
    by_id = {m.id: m for m in winners}
    feeders: Dict[str, List[Match]] = {m.id: [] for m in winners}
    roots = []
    for match in winners:
        if match.winner_next in by_id:
            feeders[match.winner_next].append(match)
        else:
            roots.append(match)

    if len(roots) != 1:
        raise TemplateError(f"Winner bracket must end in exactly one match, found {len(roots)}")
    for match_id, fed_by in feeders.items():
        if len(fed_by) > 2:
            raise TemplateError(f"Winner bracket match {match_id} is fed by {len(fed_by)} matches")

    capacity: Dict[str, int] = {}

    def seats(match):
        if match.id not in capacity:
            fed_by = feeders[match.id]
            capacity[match.id] = 2 - len(fed_by) + sum(seats(f) for f in fed_by)
        return capacity[match.id]

    total = seats(roots[0])
    if total != len(entrants):
        raise TemplateError(
            f"Winner bracket seats {total} entrants, tournament has {len(entrants)}"
        )

    def place(match, seeds):
        # None stands for an entrant slot on this match
        sides = [(None, 1)] * (2 - len(feeders[match.id]))
        sides.extend((f, capacity[f.id]) for f in feeders[match.id])
        (first, first_size), (second, second_size) = sorted(sides, key=lambda side: side[1])
        for side, side_seeds in zip((first, second), _split_seeds(seeds, first_size, second_size)):
            if side is None:
                match.place(list(side_seeds[0].ids))
            else:
                place(side, side_seeds)

    place(roots[0], list(entrants))
    for match in winners:
        if match.occupancy:
            logger.debug(f"Match {match.id}: team1={match.team1_ids}, team2={match.team2_ids}")
