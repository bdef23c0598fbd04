"""
Double elimination bracket templates.

A template describes the full match graph for one entrant count:

    entrants: 4
    matches:
      - {id: W1R1, bracket_type: WINNER, winner_next: W1R2, loser_next: L1R1}
      ...

Templates are loaded through a BracketTemplateProvider and turned into live
Match objects by build_from_template().
"""
import os
import math
import logging
from abc import ABC, abstractmethod
from typing import List, Dict, Optional

import yaml

from .errors import TemplateError, TemplateNotFoundError
from .models import Match, BracketType, parse_match_id

logger = logging.getLogger(__name__)

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), 'data', 'double_elimination')

MIN_ENTRANTS = 3
MAX_ENTRANTS = 16


class BracketTemplateProvider(ABC):
    """Source of double elimination templates, keyed by entrant count."""

    @abstractmethod
    def get_template(self, entrant_count: int) -> Dict:
        """Return the template dict for entrant_count or raise TemplateNotFoundError."""


class YamlTemplateProvider(BracketTemplateProvider):
    """Reads '{entrant_count}.yaml' files from a directory, caching each parsed file."""

    def __init__(self, directory: Optional[str] = None):
        self.directory = directory or TEMPLATE_DIR
        self._cache: Dict[int, Dict] = {}

    def template_path(self, entrant_count: int) -> str:
        return os.path.join(self.directory, f"{entrant_count}.yaml")

    def get_template(self, entrant_count: int) -> Dict:
        if entrant_count in self._cache:
            return self._cache[entrant_count]

        path = self.template_path(entrant_count)
        if not os.path.exists(path):
            raise TemplateNotFoundError(
                f"No double elimination template for {entrant_count} entrants ({path})"
            )

        with open(path, 'r') as f:
            try:
                template = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise TemplateError(f"Cannot parse template {path}: {e}") from e

        if not isinstance(template, dict) or not isinstance(template.get('matches'), list):
            raise TemplateError(f"Template {path} has no 'matches' list")

        logger.debug(f"Loaded template {path} with {len(template['matches'])} matches")
        self._cache[entrant_count] = template
        return template


class DictTemplateProvider(BracketTemplateProvider):
    """Serves templates held in memory, e.g. {4: {...}}."""

    def __init__(self, templates: Dict[int, Dict]):
        self.templates = dict(templates)

    def get_template(self, entrant_count: int) -> Dict:
        try:
            return self.templates[entrant_count]
        except KeyError:
            raise TemplateNotFoundError(
                f"No double elimination template for {entrant_count} entrants"
            ) from None


def winner_bracket_round_count(entrant_count: int) -> int:
    """Rounds reserved for the winner bracket: ceil(log2 T) + 1."""
    if entrant_count < 2:
        return 0
    return math.ceil(math.log2(entrant_count)) + 1


def _bracket_type(entry: Dict) -> BracketType:
    value = entry.get('bracket_type')
    try:
        return BracketType(str(value).upper())
    except ValueError:
        raise TemplateError(f"Unknown bracket type {value!r} for match {entry.get('id')}") from None


def build_from_template(template: Dict, entrant_count: int) -> List[Match]:
    """
    Create the matches described by a template and wire their edges.

    Pass one creates a match per entry and records template id -> match.
    Pass two resolves winner and loser edges through that mapping; an edge
    naming an id the template does not define raises TemplateError.
    """
    entries = template.get('matches') or []
    by_id: Dict[str, Match] = {}
    matches: List[Match] = []

    for entry in entries:
        match_id = entry.get('id')
        if not match_id:
            raise TemplateError("Template match without an id")
        if match_id in by_id:
            raise TemplateError(f"Duplicate template match id {match_id}")
        parsed = parse_match_id(match_id)
        match = Match(match_id, _bracket_type(entry), parsed[2] if parsed else None)
        by_id[match_id] = match
        matches.append(match)

    deepest = max((m.round for m in matches if m.round is not None), default=0)
    base_round = max(winner_bracket_round_count(entrant_count), deepest)
    for match in matches:
        if match.round is not None:
            continue
        if match.bracket_type == BracketType.FINAL:
            match.round = base_round + 1
        elif match.bracket_type == BracketType.CHAMPIONSHIP:
            match.round = base_round + 2
        else:
            raise TemplateError(f"Match {match.id} has no round in its id")

    for entry, match in zip(entries, matches):
        for edge in ('winner_next', 'loser_next'):
            target = entry.get(edge)
            if not target:
                continue
            if target not in by_id:
                raise TemplateError(f"Match {match.id} {edge} points at unknown match {target}")
            setattr(match, edge, by_id[target].id)

    logger.debug(f"Built {len(matches)} matches from template for {entrant_count} entrants")
    return matches
