"""Exceptions raised by bracket, scoring and participant operations."""


class DrawSheetError(Exception):
    """Base class for every failure the core reports to its callers."""


class InvalidInput(DrawSheetError):
    """Raised for malformed arguments: empty participant lists, bad names, bad scores."""


class MatchNotFound(DrawSheetError):
    """Raised when a match id does not exist in the bracket."""

    def __init__(self, match_id):
        super().__init__(f'Match "{match_id}" not found.')
        self.match_id = match_id


class DuplicateName(DrawSheetError):
    """Raised when a participant name already exists (case-insensitive)."""

    def __init__(self, name):
        super().__init__(f'Participant name "{name}" already exists.')
        self.name = name


class NotFound(DrawSheetError):
    """Raised when a participant (or a saved tournament) does not exist."""

    def __init__(self, name, kind='Participant'):
        super().__init__(f'{kind} "{name}" not found.')
        self.name = name
        self.kind = kind


class TournamentInProgress(DrawSheetError):
    """Raised when the participant list is changed after real matches have started."""


class LastParticipant(DrawSheetError):
    """Raised when a removal would leave the bracket without participants."""

    def __init__(self, name):
        super().__init__(
            f'Cannot delete "{name}": the tournament needs at least one participant.')
        self.name = name
