"""
Automatic advancement for matches that can only ever hold one entrant.

Resolution runs as a work queue until nothing changes. A match is settled
once no unfinished match feeds it any more. A settled match with one occupant
is a bye: it completes with that occupant as winner and an empty loser, and
the winner moves on. A settled match with nobody in it is vacant and is
removed from the bracket, which may in turn settle the match it fed.

The same pass runs again after every result, because a match fed by a removed
match only settles once its other feeder has been played.
"""
import logging
from collections import defaultdict, deque
from typing import List, Dict, Optional, Iterable

from .models import Match

logger = logging.getLogger(__name__)


def _feeders(matches: List[Match]) -> Dict[str, List[Match]]:
    """Map each match id to the matches whose winner or loser edge points at it."""
    feeders = defaultdict(list)
    for match in matches:
        if match.winner_next:
            feeders[match.winner_next].append(match)
        if match.loser_next:
            feeders[match.loser_next].append(match)
    return feeders


def complete_as_bye(match: Match, by_id: Dict[str, Match], completed_at=None) -> None:
    """Mark a single-occupant match completed and advance its occupant."""
    match.completed = True
    match.completed_at = completed_at
    match.winner_ids = list(match.team1_ids or match.team2_ids)
    match.loser_ids = []

    target = by_id.get(match.winner_next) if match.winner_next else None
    if target is not None:
        target.place(match.winner_ids)


def resolve_byes(matches: List[Match], completed_at=None,
                 start_ids: Optional[Iterable[str]] = None) -> List[Match]:
    """
    Resolve byes to a fixed point and drop vacant matches.

    At construction every match is examined. After a result only the matches
    it fed (start_ids) need to be, since nothing else can have settled.
    Returns the surviving matches in their original order. Matches are
    updated in place.
    """
    by_id = {m.id: m for m in matches}
    feeders = _feeders(matches)
    removed = set()
    queue = deque(m.id for m in matches) if start_ids is None else deque(i for i in start_ids if i in by_id)
    byes = 0

    while queue:
        match = by_id[queue.popleft()]
        if match.completed or match.id in removed:
            continue
        waiting = [f for f in feeders[match.id] if f.id not in removed and not f.completed]
        if waiting:
            continue

        if match.occupancy == 1:
            complete_as_bye(match, by_id, completed_at)
            byes += 1
            logger.debug(f"Bye in {match.id}, advanced {match.winner_ids} to {match.winner_next}")
        elif match.occupancy == 0:
            removed.add(match.id)
            logger.debug(f"Removed vacant match {match.id}")
        else:
            continue

        for next_id in (match.winner_next, match.loser_next):
            if next_id and next_id in by_id:
                queue.append(next_id)

    if removed:
        # Nothing can reach a vacant match, so its own edges are the only references to drop
        for match in matches:
            if match.winner_next in removed:
                match.winner_next = None
            if match.loser_next in removed:
                match.loser_next = None

    logger.debug(f"Resolved {byes} byes, removed {len(removed)} vacant matches")
    return [m for m in matches if m.id not in removed]
