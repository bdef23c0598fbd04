"""
Flask JSON API for the tournament bracket engine.
"""
import os
import yaml
from flask import Flask, request, jsonify
from bracket.errors import (
    TournamentError, ValidationError, NotFoundError, InvalidTransitionError,
    MatchResultRejected, MatchNotFoundError, TemplateError, BracketError
)
from bracket.service import TournamentService
from bracket.store import TournamentStore
from bracket.templates import YamlTemplateProvider

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('BRACKET_DATA_DIR', os.path.join(BASE_DIR, 'data'))
# Empty means the templates shipped with the bracket package
TEMPLATE_DIR = os.environ.get('BRACKET_TEMPLATE_DIR') or None
# Optional YAML player directory: {player_id: {singles_rating: .., doubles_rating: ..}}
PLAYERS_FILE = os.environ.get('BRACKET_PLAYERS_FILE') or None


_service = None


def load_players(players_file: str = None):
    """Load the player directory, or None when no directory is configured."""
    players_file = players_file or PLAYERS_FILE
    if not players_file:
        return None
    if not os.path.exists(players_file):
        app.logger.warning(f'Player directory {players_file} does not exist')
        return {}
    try:
        with open(players_file, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        app.logger.warning(f'Failed to parse {players_file}: {e}')
        return {}
    players = data.get('players', data)
    return {str(player_id): info or {} for player_id, info in players.items()}


def get_service() -> TournamentService:
    """Tournament service backed by DATA_DIR, created on first use."""
    global _service
    if _service is None:
        _service = TournamentService(
            store=TournamentStore(DATA_DIR),
            template_provider=YamlTemplateProvider(TEMPLATE_DIR),
            player_directory=load_players(),
        )
    return _service


# Most specific class wins, so MatchNotFoundError maps to 404 and other rejections to 400
ERROR_STATUS = {
    ValidationError: 400,
    InvalidTransitionError: 400,
    MatchResultRejected: 400,
    NotFoundError: 404,
    MatchNotFoundError: 404,
    TemplateError: 500,
    BracketError: 500,
}


@app.errorhandler(TournamentError)
def handle_tournament_error(error):
    for cls in type(error).__mro__:
        if cls in ERROR_STATUS:
            status = ERROR_STATUS[cls]
            break
    else:
        status = 400
    if status >= 500:
        app.logger.error(f'Bracket configuration error: {error}')
    return jsonify({'error': str(error)}), status


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _ids(data: dict, list_key: str, single_key: str) -> list:
    """Read a team's ids from 'winner_ids' style lists or a single 'winner_id'."""
    value = data.get(list_key)
    if value is None and data.get(single_key) is not None:
        value = [data[single_key]]
    if not isinstance(value, list) or not value:
        raise ValidationError(f"'{list_key}' must be a non-empty list of player ids")
    return [str(v) for v in value]


def _summaries(tournaments) -> list:
    return [t.to_dict(include_matches=False) for t in tournaments]


@app.route('/api/tournaments', methods=['POST'])
def api_create_tournament():
    """Create a tournament and its bracket."""
    tournament = get_service().create_tournament(_json_body())
    app.logger.info(f'Created tournament {tournament.id} ({tournament.name})')
    return jsonify(tournament.to_dict()), 201


@app.route('/api/tournaments', methods=['GET'])
def api_list_tournaments():
    return jsonify(_summaries(get_service().list_tournaments()))


@app.route('/api/tournaments/<tournament_id>', methods=['GET'])
def api_get_tournament(tournament_id):
    return jsonify(get_service().get_tournament(tournament_id).to_dict())


@app.route('/api/tournaments/<tournament_id>', methods=['DELETE'])
def api_delete_tournament(tournament_id):
    get_service().delete_tournament(tournament_id)
    return '', 204


@app.route('/api/tournaments/organizer/<organizer_id>', methods=['GET'])
def api_tournaments_by_organizer(organizer_id):
    return jsonify(_summaries(get_service().tournaments_by_organizer(organizer_id)))


@app.route('/api/tournaments/player/<player_id>', methods=['GET'])
def api_tournaments_by_player(player_id):
    return jsonify(_summaries(get_service().tournaments_by_player(player_id)))


@app.route('/api/tournaments/status/<status>', methods=['GET'])
def api_tournaments_by_status(status):
    return jsonify(_summaries(get_service().tournaments_by_status(status)))


@app.route('/api/tournaments/<tournament_id>/start', methods=['PATCH'])
def api_start_tournament(tournament_id):
    return jsonify(get_service().start_tournament(tournament_id).to_dict())


@app.route('/api/tournaments/<tournament_id>/complete', methods=['PATCH'])
def api_complete_tournament(tournament_id):
    return jsonify(get_service().complete_tournament(tournament_id).to_dict())


@app.route('/api/tournaments/<tournament_id>/matches', methods=['GET'])
def api_tournament_matches(tournament_id):
    """
    Every match of the bracket, by round.

    First round matches that would never hold an entrant are not part of the
    bracket, so a 5 entrant bracket lists W1R1-W3R1 and no W4R1. Byes are
    listed as completed matches with an empty loser.
    """
    return jsonify([m.to_dict() for m in get_service().get_matches(tournament_id)])


@app.route('/api/tournaments/<tournament_id>/matches/bracket/<bracket_type>', methods=['GET'])
def api_tournament_matches_by_bracket(tournament_id, bracket_type):
    matches = get_service().get_matches_by_bracket(tournament_id, bracket_type)
    return jsonify([m.to_dict() for m in matches])


@app.route('/api/tournaments/<tournament_id>/matches/<match_id>', methods=['PATCH'])
def api_submit_result(tournament_id, match_id):
    """Report a match result: {"winner_ids": [...], "loser_ids": [...]}."""
    data = _json_body()
    winner_ids = _ids(data, 'winner_ids', 'winner_id')
    loser_ids = _ids(data, 'loser_ids', 'loser_id')
    match = get_service().submit_result(tournament_id, match_id, winner_ids, loser_ids)
    return jsonify(match.to_dict())


@app.route('/api/tournaments/<tournament_id>/players', methods=['GET'])
def api_tournament_players(tournament_id):
    return jsonify([e.to_dict() for e in get_service().get_entrants(tournament_id)])


if __name__ == '__main__':
    app.run(debug=True, port=5000)
