"""
Exceptions raised by the bracket engine and tournament service.
"""


class TournamentError(Exception):
    """Base class for every tournament engine error."""


class ValidationError(TournamentError):
    """A construction request was rejected before any match was created."""


class NotFoundError(TournamentError):
    """No tournament exists with the requested id."""


class InvalidTransitionError(TournamentError):
    """Illegal tournament status transition (start/complete)."""


class MatchResultRejected(TournamentError):
    """A reported result was refused; the bracket was not modified."""


class MatchNotFoundError(MatchResultRejected):
    """The reported match id does not exist in the bracket."""


class TemplateError(TournamentError):
    """A double elimination template is malformed."""


class TemplateNotFoundError(TemplateError):
    """No double elimination template exists for the entrant count."""


class BracketError(TournamentError):
    """A bracket could not seat every entrant."""
