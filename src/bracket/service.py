"""
Tournament lifecycle: validated construction, result reporting and queries.

The service owns the rules around the bracket engine. It validates creation
requests before any match exists, builds the bracket on a private Tournament
object and only then publishes it to the store, and checks every reported
result against the match's slots before handing it to the ProgressionEngine.
"""
import uuid
import random
import logging
import threading
from datetime import datetime
from typing import List, Dict, Optional, Callable, Tuple

from .byes import resolve_byes
from .errors import ValidationError, NotFoundError, InvalidTransitionError, MatchResultRejected
from .models import (
    Tournament, Entrant, Match, TournamentFormat, GameMode, SeedingPolicy,
    TournamentStatus, BracketType, MatchState
)
from .progression import ProgressionEngine
from .seeding import order_entrants, assign_single_elimination, assign_double_elimination
from .store import TournamentStore
from .templates import BracketTemplateProvider, YamlTemplateProvider, build_from_template
from .topology import build_single_elimination

logger = logging.getLogger(__name__)

NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 100

# Inclusive team count limits per format
TEAM_LIMITS = {
    TournamentFormat.SINGLE_ELIMINATION: (2, 64),
    TournamentFormat.DOUBLE_ELIMINATION: (3, 16),
}

RATING_FIELDS = {
    GameMode.SINGLES: 'singles_rating',
    GameMode.DOUBLES: 'doubles_rating',
}


def _parse_enum(enum_cls, value, field: str, default=None):
    if value is None or value == '':
        if default is None:
            raise ValidationError(f"'{field}' is required")
        return default
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        allowed = ', '.join(e.value for e in enum_cls)
        raise ValidationError(f"Invalid {field} '{value}'. Expected one of: {allowed}") from None


def _parse_pair(pair) -> Tuple[str, str]:
    if isinstance(pair, dict):
        first, second = pair.get('player1_id'), pair.get('player2_id')
    elif isinstance(pair, (list, tuple)) and len(pair) == 2:
        first, second = pair
    else:
        raise ValidationError(f"Invalid team pair: {pair!r}")
    if not first or not second:
        raise ValidationError("Both players must be specified in team pairs")
    return str(first), str(second)


def build_bracket(tournament: Tournament, entrants: List[Entrant],
                  template_provider: BracketTemplateProvider, completed_at=None) -> None:
    """
    Create, seed and bye-resolve the match graph for seeded entrants.

    Entrants must already be in seed order. A lone entrant gets no matches
    and is champion straight away.
    """
    count = len(entrants)
    if tournament.format == TournamentFormat.DOUBLE_ELIMINATION:
        matches = build_from_template(template_provider.get_template(count), count)
        assign_double_elimination(matches, entrants)
    else:
        matches = build_single_elimination(count)
        assign_single_elimination(matches, entrants)

    tournament.entrants = list(entrants)
    tournament.matches = resolve_byes(matches, completed_at)
    if count == 1:
        tournament.champion_ids = list(entrants[0].ids)
    logger.debug(f"Bracket for {tournament.id}: {len(tournament.matches)} matches for {count} entrants")


class TournamentService:
    """Creates tournaments and drives them from CREATED to COMPLETED."""

    def __init__(self, store: Optional[TournamentStore] = None,
                 template_provider: Optional[BracketTemplateProvider] = None,
                 player_directory: Optional[Dict[str, Dict]] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 rng: Optional[random.Random] = None,
                 id_factory: Optional[Callable[[], str]] = None):
        self.store = store if store is not None else TournamentStore()
        self.template_provider = template_provider if template_provider is not None else YamlTemplateProvider()
        self.player_directory = player_directory
        self.clock = clock or datetime.now
        self.rng = rng or random.Random()
        self.id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def _now(self) -> str:
        return self.clock().isoformat()

    def _lock_for(self, tournament_id: str) -> threading.RLock:
        with self._locks_guard:
            return self._locks.setdefault(tournament_id, threading.RLock())

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def validate_request(self, request: Dict) -> Dict:
        """
        Check a creation request and normalize it.

        Returns a dict with parsed enums, the player id list and, for
        doubles, the team pairs. Raises ValidationError on the first problem.
        """
        if not isinstance(request, dict):
            raise ValidationError("Tournament request must be an object")

        name = (request.get('name') or '').strip()
        if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
            raise ValidationError(
                f"Tournament name must be {NAME_MIN_LENGTH}-{NAME_MAX_LENGTH} characters"
            )

        fmt = _parse_enum(TournamentFormat, request.get('format'), 'format')
        mode = _parse_enum(GameMode, request.get('mode'), 'mode', GameMode.SINGLES)
        seeding = _parse_enum(SeedingPolicy, request.get('seeding'), 'seeding', SeedingPolicy.AS_GIVEN)

        player_ids = [str(p) for p in request.get('player_ids') or []]
        if not player_ids:
            raise ValidationError("At least one player is required")
        duplicates = sorted({p for p in player_ids if player_ids.count(p) > 1})
        if duplicates:
            raise ValidationError(f"Duplicate player ids: {', '.join(duplicates)}")

        if self.player_directory is not None:
            unknown = [p for p in player_ids if p not in self.player_directory]
            if unknown:
                raise ValidationError(f"Player not found with id: {', '.join(unknown)}")

        pairs = None
        if mode == GameMode.DOUBLES:
            if len(player_ids) % 2 != 0:
                raise ValidationError("Doubles tournaments require an even number of players")
            raw_pairs = request.get('team_pairs')
            if not raw_pairs:
                raise ValidationError("Team pairs must be specified for doubles tournaments")
            pairs = [_parse_pair(p) for p in raw_pairs]
            known = set(player_ids)
            seen = set()
            for first, second in pairs:
                for player_id in (first, second):
                    if player_id not in known:
                        raise ValidationError("Team pair contains player not in the player list")
                    if player_id in seen:
                        raise ValidationError("Player cannot be in multiple teams")
                    seen.add(player_id)
            if seen != known:
                raise ValidationError("All players must be assigned to teams")

        team_count = len(pairs) if pairs is not None else len(player_ids)
        low, high = TEAM_LIMITS[fmt]
        if not low <= team_count <= high:
            label = fmt.value.replace('_', ' ').lower()
            raise ValidationError(f"{label.capitalize()} tournaments support {low}-{high} teams")

        ratings = request.get('ratings') or {}
        if not isinstance(ratings, dict):
            raise ValidationError("'ratings' must map player ids to numbers")

        return {
            'name': name,
            'description': request.get('description'),
            'format': fmt,
            'mode': mode,
            'seeding': seeding,
            'organizer_id': request.get('organizer_id'),
            'player_ids': player_ids,
            'team_pairs': pairs,
            'ratings': ratings,
        }

    def player_rating(self, player_id: str, mode: GameMode, ratings: Dict) -> float:
        """Rating from the request, else the player directory, else 0."""
        if player_id in ratings:
            return float(ratings[player_id])
        if self.player_directory and player_id in self.player_directory:
            value = self.player_directory[player_id].get(RATING_FIELDS[mode])
            if value is not None:
                return float(value)
        logger.debug(f"No {mode.value.lower()} rating for player {player_id}, using 0")
        return 0.0

    def create_tournament(self, request: Dict) -> Tournament:
        params = self.validate_request(request)
        mode = params['mode']

        if params['team_pairs'] is not None:
            entrants = [Entrant(first, second) for first, second in params['team_pairs']]
        else:
            entrants = [Entrant(player_id) for player_id in params['player_ids']]

        def rating_of(entrant: Entrant) -> float:
            values = [self.player_rating(p, mode, params['ratings']) for p in entrant.ids]
            return sum(values) / len(values)

        ordered = order_entrants(entrants, params['seeding'], rating_of, self.rng)

        tournament = Tournament(
            self.id_factory(), params['name'], params['format'], mode,
            params['seeding'], params['organizer_id'], params['description']
        )
        tournament.created_at = self._now()
        build_bracket(tournament, ordered, self.template_provider, tournament.created_at)

        self.store.save(tournament)
        logger.info(f"Created {tournament.format.value} tournament {tournament.id} '{tournament.name}' "
                    f"with {len(ordered)} entrants and {len(tournament.matches)} matches")
        return tournament

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_tournament(self, tournament_id: str) -> Tournament:
        with self._lock_for(tournament_id):
            tournament = self.get_tournament(tournament_id)
            if tournament.status != TournamentStatus.CREATED:
                raise InvalidTransitionError("Tournament already started or completed")
            tournament.status = TournamentStatus.IN_PROGRESS
            tournament.started_at = self._now()
            self.store.save(tournament)
            logger.info(f"Started tournament {tournament_id}")
            return tournament

    def complete_tournament(self, tournament_id: str) -> Tournament:
        with self._lock_for(tournament_id):
            tournament = self.get_tournament(tournament_id)
            if tournament.status != TournamentStatus.IN_PROGRESS:
                raise InvalidTransitionError("Tournament not in progress")
            if not all(m.completed for m in tournament.matches):
                raise InvalidTransitionError("Cannot complete tournament - not all matches are finished")
            self._mark_completed(tournament)
            self.store.save(tournament)
            return tournament

    def _mark_completed(self, tournament: Tournament) -> None:
        tournament.status = TournamentStatus.COMPLETED
        tournament.completed_at = self._now()
        logger.info(f"Completed tournament {tournament.id}: champion {tournament.champion_id}")

    def delete_tournament(self, tournament_id: str) -> None:
        with self._lock_for(tournament_id):
            if not self.store.delete(tournament_id):
                raise NotFoundError(f"Tournament not found with id: {tournament_id}")
        with self._locks_guard:
            self._locks.pop(tournament_id, None)
        logger.info(f"Deleted tournament {tournament_id}")

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def submit_result(self, tournament_id: str, match_id: str,
                      winner_ids: List[str], loser_ids: List[str]) -> Match:
        """
        Record a match result and advance the bracket.

        The tournament must be in progress, the match must have both slots
        filled, and winner/loser must be exactly the two slot contents.
        Completing the last match completes the tournament.
        """
        with self._lock_for(tournament_id):
            tournament = self.get_tournament(tournament_id)
            if tournament.status != TournamentStatus.IN_PROGRESS:
                raise MatchResultRejected(f"Tournament {tournament_id} is not in progress")

            engine = ProgressionEngine(tournament, self.clock, self._lock_for(tournament_id))
            match = tournament.get_match(match_id)
            if match is not None and not match.completed:
                if match.state != MatchState.READY:
                    raise MatchResultRejected(f"Match {match_id} is waiting for its entrants")
                winner, loser = sorted(winner_ids or []), sorted(loser_ids or [])
                slots = (sorted(match.team1_ids), sorted(match.team2_ids))
                if (winner, loser) not in (slots, slots[::-1]):
                    raise MatchResultRejected(
                        f"Winner and loser must be the two teams of match {match_id}"
                    )
                # Keep the slot's own order
                winner_ids = match.team1_ids if winner == slots[0] else match.team2_ids
                loser_ids = match.team2_ids if winner == slots[0] else match.team1_ids

            match = engine.apply_result(match_id, winner_ids, loser_ids)
            if engine.all_matches_completed():
                self._mark_completed(tournament)
            self.store.save(tournament)
            return match

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_tournament(self, tournament_id: str) -> Tournament:
        tournament = self.store.get(tournament_id)
        if tournament is None:
            raise NotFoundError(f"Tournament not found with id: {tournament_id}")
        return tournament

    def list_tournaments(self) -> List[Tournament]:
        return self.store.all()

    def tournaments_by_organizer(self, organizer_id: str) -> List[Tournament]:
        return [t for t in self.store.all() if t.organizer_id == organizer_id]

    def tournaments_by_player(self, player_id: str) -> List[Tournament]:
        return [t for t in self.store.all() if player_id in t.player_ids]

    def tournaments_by_status(self, status) -> List[Tournament]:
        status = _parse_enum(TournamentStatus, status, 'status')
        return [t for t in self.store.all() if t.status == status]

    def get_matches(self, tournament_id: str) -> List[Match]:
        return list(self.get_tournament(tournament_id).matches)

    def get_matches_by_bracket(self, tournament_id: str, bracket_type) -> List[Match]:
        bracket_type = _parse_enum(BracketType, bracket_type, 'bracket type')
        return [m for m in self.get_matches(tournament_id) if m.bracket_type == bracket_type]

    def get_entrants(self, tournament_id: str) -> List[Entrant]:
        return sorted(self.get_tournament(tournament_id).entrants, key=lambda e: e.seed_position or 0)
