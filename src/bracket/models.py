"""
Data model for tournaments, entrants and bracket matches.
"""
import re
from enum import Enum
from typing import List, Dict, Optional


class TournamentFormat(Enum):
    SINGLE_ELIMINATION = 'SINGLE_ELIMINATION'
    DOUBLE_ELIMINATION = 'DOUBLE_ELIMINATION'


class GameMode(Enum):
    SINGLES = 'SINGLES'
    DOUBLES = 'DOUBLES'


class SeedingPolicy(Enum):
    RATING_BASED = 'RATING_BASED'
    RANDOM = 'RANDOM'
    AS_GIVEN = 'AS_GIVEN'


class TournamentStatus(Enum):
    CREATED = 'CREATED'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'


class BracketType(Enum):
    WINNER = 'WINNER'
    LOSER = 'LOSER'
    FINAL = 'FINAL'
    CHAMPIONSHIP = 'CHAMPIONSHIP'


class MatchState(Enum):
    PENDING = 'PENDING'
    READY = 'READY'
    COMPLETED = 'COMPLETED'


MATCH_ID_PATTERN = re.compile(r'^([WL])(\d+)R(\d+)$')


def make_match_id(bracket_prefix: str, match_number: int, round_number: int) -> str:
    """Build a human-readable match id such as 'W2R1' or 'L1R3'."""
    return f"{bracket_prefix}{match_number}R{round_number}"


def parse_match_id(match_id: str) -> Optional[tuple]:
    """
    Split a bracket match id into (prefix, match_number, round).

    Returns None for ids without a round suffix (e.g. 'F1', 'F2').
    """
    found = MATCH_ID_PATTERN.match(match_id or '')
    if not found:
        return None
    return found.group(1), int(found.group(2)), int(found.group(3))


def get_match_number(match_id: str) -> int:
    """Match number within its round, e.g. 3 for 'W3R1'; -1 if the id has none."""
    parsed = parse_match_id(match_id)
    return parsed[1] if parsed else -1


class Entrant:
    """A bracket entry: one player, or a player and partner in doubles."""

    def __init__(self, player_id, partner_id=None, seed_position=None, rating=None):
        self.player_id = player_id
        self.partner_id = partner_id
        self.seed_position = seed_position
        self.rating = rating

    @property
    def ids(self) -> List[str]:
        """Identifiers this entrant occupies a match slot with."""
        if self.partner_id:
            return [self.player_id, self.partner_id]
        return [self.player_id]

    def to_dict(self) -> Dict:
        return {
            'player_id': self.player_id,
            'partner_id': self.partner_id,
            'seed_position': self.seed_position,
            'rating': self.rating,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Entrant':
        return cls(data['player_id'], data.get('partner_id'),
                   data.get('seed_position'), data.get('rating'))

    def __repr__(self):
        return f"Entrant(player_id={self.player_id}, partner_id={self.partner_id}, seed_position={self.seed_position})"


class Match:
    """A node of the bracket graph."""

    def __init__(self, id, bracket_type=BracketType.WINNER, round=None,
                 winner_next=None, loser_next=None):
        self.id = id
        self.bracket_type = bracket_type
        self.round = round
        self.team1_ids = []
        self.team2_ids = []
        self.winner_ids = []
        self.loser_ids = []
        self.completed = False
        self.completed_at = None
        self.winner_next = winner_next  # id of the match the winner advances to
        self.loser_next = loser_next    # double elimination winner bracket only

    @property
    def occupancy(self) -> int:
        """Number of filled team slots (0, 1 or 2)."""
        return int(bool(self.team1_ids)) + int(bool(self.team2_ids))

    @property
    def state(self) -> MatchState:
        if self.completed:
            return MatchState.COMPLETED
        if self.occupancy == 2:
            return MatchState.READY
        return MatchState.PENDING

    @property
    def is_bye(self) -> bool:
        """A match completed automatically because it had a single occupant."""
        return self.completed and not self.loser_ids

    def place(self, ids: List[str]) -> bool:
        """
        Put ids into the first empty slot (slot one, then slot two).

        Returns False when both slots are already taken.
        """
        if not self.team1_ids:
            self.team1_ids = list(ids)
        elif not self.team2_ids:
            self.team2_ids = list(ids)
        else:
            return False
        return True

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'bracket_type': self.bracket_type.value,
            'round': self.round,
            'team1_ids': list(self.team1_ids),
            'team2_ids': list(self.team2_ids),
            'winner_ids': list(self.winner_ids),
            'loser_ids': list(self.loser_ids),
            'completed': self.completed,
            'completed_at': self.completed_at,
            'state': self.state.value,
            'winner_next': self.winner_next,
            'loser_next': self.loser_next,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Match':
        match = cls(data['id'], BracketType(data['bracket_type']), data.get('round'),
                    data.get('winner_next'), data.get('loser_next'))
        match.team1_ids = list(data.get('team1_ids') or [])
        match.team2_ids = list(data.get('team2_ids') or [])
        match.winner_ids = list(data.get('winner_ids') or [])
        match.loser_ids = list(data.get('loser_ids') or [])
        match.completed = bool(data.get('completed', False))
        match.completed_at = data.get('completed_at')
        return match

    def __repr__(self):
        return (f"Match(id={self.id}, bracket_type={self.bracket_type.value}, round={self.round}, "
                f"team1={self.team1_ids}, team2={self.team2_ids}, completed={self.completed})")


class Tournament:
    """A tournament record owning its entrants and match graph."""

    def __init__(self, id, name, format, mode=GameMode.SINGLES,
                 seeding=SeedingPolicy.AS_GIVEN, organizer_id=None, description=None):
        self.id = id
        self.name = name
        self.description = description
        self.format = format
        self.mode = mode
        self.seeding = seeding
        self.organizer_id = organizer_id
        self.status = TournamentStatus.CREATED
        self.entrants = []
        self.matches = []
        self.champion_ids = []
        self.runner_up_ids = []
        self.created_at = None
        self.started_at = None
        self.completed_at = None

    @property
    def champion_id(self) -> Optional[str]:
        return self.champion_ids[0] if self.champion_ids else None

    @property
    def runner_up_id(self) -> Optional[str]:
        return self.runner_up_ids[0] if self.runner_up_ids else None

    @property
    def current_round(self) -> Optional[int]:
        """Lowest round that still has an unfinished match."""
        open_rounds = [m.round for m in self.matches if not m.completed and m.round is not None]
        return min(open_rounds) if open_rounds else None

    @property
    def player_ids(self) -> List[str]:
        ids = []
        for entrant in self.entrants:
            ids.extend(entrant.ids)
        return ids

    def get_match(self, match_id: str) -> Optional[Match]:
        for match in self.matches:
            if match.id == match_id:
                return match
        return None

    def to_dict(self, include_matches: bool = True) -> Dict:
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'format': self.format.value,
            'mode': self.mode.value,
            'seeding': self.seeding.value,
            'organizer_id': self.organizer_id,
            'status': self.status.value,
            'champion_id': self.champion_id,
            'runner_up_id': self.runner_up_id,
            'champion_ids': list(self.champion_ids),
            'runner_up_ids': list(self.runner_up_ids),
            'current_round': self.current_round,
            'player_ids': self.player_ids,
            'entrants': [e.to_dict() for e in self.entrants],
            'created_at': self.created_at,
            'started_at': self.started_at,
            'completed_at': self.completed_at,
        }
        if include_matches:
            data['matches'] = [m.to_dict() for m in self.matches]
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> 'Tournament':
        tournament = cls(
            data['id'],
            data['name'],
            TournamentFormat(data['format']),
            GameMode(data.get('mode', GameMode.SINGLES.value)),
            SeedingPolicy(data.get('seeding', SeedingPolicy.AS_GIVEN.value)),
            data.get('organizer_id'),
            data.get('description'),
        )
        tournament.status = TournamentStatus(data.get('status', TournamentStatus.CREATED.value))
        tournament.entrants = [Entrant.from_dict(e) for e in data.get('entrants') or []]
        tournament.matches = [Match.from_dict(m) for m in data.get('matches') or []]
        tournament.champion_ids = list(data.get('champion_ids') or [])
        tournament.runner_up_ids = list(data.get('runner_up_ids') or [])
        tournament.created_at = data.get('created_at')
        tournament.started_at = data.get('started_at')
        tournament.completed_at = data.get('completed_at')
        return tournament

    def __repr__(self):
        return (f"Tournament(id={self.id}, name={self.name}, format={self.format.value}, "
                f"status={self.status.value}, matches={len(self.matches)})")
