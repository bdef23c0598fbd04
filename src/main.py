# Command line entry point: build a bracket from a YAML entrant file and optionally play it out

import argparse
import logging
import random
import sys
import yaml
from bracket.errors import TournamentError
from bracket.models import MatchState, BracketType
from bracket.service import TournamentService
from bracket.templates import YamlTemplateProvider

FORMATS = {'single': 'SINGLE_ELIMINATION', 'double': 'DOUBLE_ELIMINATION'}
SEEDING = {'rating': 'RATING_BASED', 'random': 'RANDOM', 'as_given': 'AS_GIVEN'}


def load_entrants(file_path):
    """
    Read players (and doubles teams) from YAML:

        players:
          - alice
          - {id: bob, rating: 1500}
        teams:
          - [alice, bob]
    """
    with open(file_path, mode='r', encoding='utf-8') as file:
        data = yaml.safe_load(file) or {}
    if isinstance(data, list):
        data = {'players': data}

    player_ids = []
    ratings = {}
    for player in data.get('players') or []:
        if isinstance(player, dict):
            player_ids.append(str(player['id']))
            if player.get('rating') is not None:
                ratings[str(player['id'])] = player['rating']
        else:
            player_ids.append(str(player))
    return player_ids, ratings, data.get('teams')


def print_bracket(tournament):
    for bracket_type in BracketType:
        matches = [m for m in tournament.matches if m.bracket_type == bracket_type]
        if not matches:
            continue
        print(f"\n--- {bracket_type.value.title()} ---")
        for round_number in sorted({m.round for m in matches}):
            print(f"Round {round_number}")
            for match in (m for m in matches if m.round == round_number):
                team1 = ' / '.join(match.team1_ids) or 'TBD'
                team2 = ' / '.join(match.team2_ids) or 'TBD'
                line = f"  {match.id}: {team1} vs {team2}"
                if match.is_bye:
                    line += " (bye)"
                elif match.completed:
                    line += f" -> {' / '.join(match.winner_ids)}"
                print(line)


def simulate(service, tournament):
    """Play every ready match until none is left, the better seed always winning."""
    seeds = {tuple(e.ids): e.seed_position for e in tournament.entrants}
    service.start_tournament(tournament.id)
    while True:
        ready = [m for m in tournament.matches if m.state == MatchState.READY]
        if not ready:
            break
        match = min(ready, key=lambda m: (m.round, m.id))
        if seeds[tuple(match.team1_ids)] <= seeds[tuple(match.team2_ids)]:
            winner, loser = match.team1_ids, match.team2_ids
        else:
            winner, loser = match.team2_ids, match.team1_ids
        service.submit_result(tournament.id, match.id, winner, loser)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Build a single or double elimination bracket from a YAML list of entrants'
    )
    parser.add_argument('entrants', help='YAML file with players (and teams for doubles)')
    parser.add_argument('--format', choices=sorted(FORMATS), default='single', help='Bracket format')
    parser.add_argument('--mode', choices=['singles', 'doubles'], default='singles', help='Game mode')
    parser.add_argument('--seeding', choices=sorted(SEEDING), default='as_given', help='Seeding policy')
    parser.add_argument('--name', default='Bracket', help='Tournament name')
    parser.add_argument('--template-dir', help='Directory with double elimination templates')
    parser.add_argument('--simulate', action='store_true', help='Play the bracket out, better seed wins')
    parser.add_argument('--seed', type=int, help='Random seed for --seeding random')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    try:
        player_ids, ratings, teams = load_entrants(args.entrants)
    except (OSError, yaml.YAMLError, KeyError) as e:
        print(f"Error: Cannot read entrants from {args.entrants}: {e}", file=sys.stderr)
        return 1

    service = TournamentService(
        template_provider=YamlTemplateProvider(args.template_dir),
        rng=random.Random(args.seed),
    )
    request = {
        'name': args.name,
        'format': FORMATS[args.format],
        'mode': args.mode.upper(),
        'seeding': SEEDING[args.seeding],
        'player_ids': player_ids,
        'team_pairs': teams,
        'ratings': ratings,
    }

    try:
        tournament = service.create_tournament(request)
        print(f"{tournament.name}: {len(tournament.entrants)} entrants, {len(tournament.matches)} matches")
        for entrant in tournament.entrants:
            print(f"  Seed {entrant.seed_position}: {' / '.join(entrant.ids)}")
        if args.simulate:
            simulate(service, tournament)
    except TournamentError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    print_bracket(tournament)
    if args.simulate:
        print(f"\nChampion: {' / '.join(tournament.champion_ids)}")
        print(f"Runner-up: {' / '.join(tournament.runner_up_ids)}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
