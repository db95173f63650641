"""
Bracket and scoring data models.

Participant slots and winner fields are small tagged values instead of
overloaded strings, so a bye can never be mistaken for a participant and
"nobody advances" can never be mistaken for "not decided yet".  The
string markers only appear in the wire/snapshot form.
"""
from typing import List, Optional, Tuple

BYE_MARKER = "(bye)"
NO_WINNER_MARKER = "NO_WINNER"
RESERVED_NAMES = {BYE_MARKER, NO_WINNER_MARKER}


class Slot:
    """One participant position of a match: empty, a bye, or a named participant."""

    EMPTY = 'empty'
    BYE = 'bye'
    OCCUPIED = 'occupied'

    __slots__ = ('kind', 'name')

    def __init__(self, kind, name=None):
        if kind == Slot.OCCUPIED:
            if not name:
                raise ValueError("An occupied slot needs a participant name")
        elif name is not None:
            raise ValueError(f"A {kind} slot cannot carry a name")
        self.kind = kind
        self.name = name

    @classmethod
    def empty(cls):
        return cls(cls.EMPTY)

    @classmethod
    def bye(cls):
        return cls(cls.BYE)

    @classmethod
    def occupied(cls, name):
        return cls(cls.OCCUPIED, name)

    @property
    def is_empty(self):
        return self.kind == Slot.EMPTY

    @property
    def is_bye(self):
        return self.kind == Slot.BYE

    @property
    def is_occupied(self):
        return self.kind == Slot.OCCUPIED

    def holds(self, name):
        return self.kind == Slot.OCCUPIED and self.name == name

    def to_value(self):
        if self.kind == Slot.BYE:
            return BYE_MARKER
        return self.name

    @classmethod
    def from_value(cls, value):
        if value is None:
            return cls.empty()
        if value == BYE_MARKER:
            return cls.bye()
        return cls.occupied(value)

    def __eq__(self, other):
        if not isinstance(other, Slot):
            return NotImplemented
        return self.kind == other.kind and self.name == other.name

    def __hash__(self):
        return hash((self.kind, self.name))

    def __repr__(self):
        if self.kind == Slot.OCCUPIED:
            return f"Slot.occupied({self.name!r})"
        return f"Slot.{self.kind}()"


class Outcome:
    """The decision of a match or round: undecided, nobody advances, or a named winner."""

    UNDECIDED = 'undecided'
    NO_WINNER = 'no_winner'
    DECIDED = 'decided'

    __slots__ = ('kind', 'name')

    def __init__(self, kind, name=None):
        if kind == Outcome.DECIDED:
            if not name:
                raise ValueError("A decided outcome needs a winner name")
        elif name is not None:
            raise ValueError(f"A {kind} outcome cannot carry a name")
        self.kind = kind
        self.name = name

    @classmethod
    def undecided(cls):
        return cls(cls.UNDECIDED)

    @classmethod
    def no_winner(cls):
        return cls(cls.NO_WINNER)

    @classmethod
    def decided(cls, name):
        return cls(cls.DECIDED, name)

    @property
    def is_undecided(self):
        return self.kind == Outcome.UNDECIDED

    @property
    def is_no_winner(self):
        return self.kind == Outcome.NO_WINNER

    @property
    def is_decided(self):
        return self.kind == Outcome.DECIDED

    @property
    def is_final(self):
        """True once the outcome is known, including the no-advancement case."""
        return self.kind != Outcome.UNDECIDED

    def is_won_by(self, name):
        return self.kind == Outcome.DECIDED and self.name == name

    def to_value(self):
        if self.kind == Outcome.NO_WINNER:
            return NO_WINNER_MARKER
        return self.name

    @classmethod
    def from_value(cls, value):
        if value is None:
            return cls.undecided()
        if value == NO_WINNER_MARKER:
            return cls.no_winner()
        return cls.decided(value)

    def __eq__(self, other):
        if not isinstance(other, Outcome):
            return NotImplemented
        return self.kind == other.kind and self.name == other.name

    def __hash__(self):
        return hash((self.kind, self.name))

    def __repr__(self):
        if self.kind == Outcome.DECIDED:
            return f"Outcome.decided({self.name!r})"
        return f"Outcome.{self.kind}()"


class Match:
    """One bracket cell. Treated as immutable: use replace() to derive a changed copy."""

    __slots__ = ('id', 'participants', 'winner', 'next_match_id', 'position')

    def __init__(self, id, participants=None, winner=None, next_match_id=None, position=0):
        self.id = id
        self.participants = tuple(participants) if participants else (Slot.empty(), Slot.empty())
        self.winner = winner if winner is not None else Outcome.undecided()
        self.next_match_id = next_match_id
        self.position = position

    def replace(self, **changes):
        values = {
            'id': self.id,
            'participants': self.participants,
            'winner': self.winner,
            'next_match_id': self.next_match_id,
            'position': self.position,
        }
        values.update(changes)
        return Match(**values)

    def with_slot(self, index, slot):
        participants = list(self.participants)
        participants[index] = slot
        return self.replace(participants=tuple(participants))

    @property
    def has_bye(self):
        return any(slot.is_bye for slot in self.participants)

    @property
    def is_real(self):
        """Both slots hold named participants."""
        return all(slot.is_occupied for slot in self.participants)

    def names(self) -> List[str]:
        return [slot.name for slot in self.participants if slot.is_occupied]

    def to_dict(self):
        return {
            'id': self.id,
            'participants': [slot.to_value() for slot in self.participants],
            'winner': self.winner.to_value(),
            'nextMatchId': self.next_match_id,
            'position': self.position,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data['id'],
            participants=tuple(Slot.from_value(v) for v in data.get('participants', [None, None])),
            winner=Outcome.from_value(data.get('winner')),
            next_match_id=data.get('nextMatchId'),
            position=data.get('position', 0),
        )

    def __eq__(self, other):
        if not isinstance(other, Match):
            return NotImplemented
        return (self.id == other.id and self.participants == other.participants
                and self.winner == other.winner and self.next_match_id == other.next_match_id
                and self.position == other.position)

    def __repr__(self):
        return (f"Match(id={self.id}, participants={list(self.participants)}, "
                f"winner={self.winner}, next_match_id={self.next_match_id}, position={self.position})")


class RoundResult:
    """One scored sub-round of a match."""

    def __init__(self, player1_score=None, player2_score=None, win_method=None,
                 winner=None, win_method_reason=None):
        self.player1_score = player1_score
        self.player2_score = player2_score
        self.win_method = win_method
        self.winner = winner if winner is not None else Outcome.undecided()
        self.win_method_reason = win_method_reason

    def replace(self, **changes):
        values = {
            'player1_score': self.player1_score,
            'player2_score': self.player2_score,
            'win_method': self.win_method,
            'winner': self.winner,
            'win_method_reason': self.win_method_reason,
        }
        values.update(changes)
        return RoundResult(**values)

    @property
    def is_blank(self):
        return (self.player1_score is None and self.player2_score is None
                and self.win_method is None)

    @property
    def has_scores(self):
        return self.player1_score is not None and self.player2_score is not None

    def to_dict(self):
        data = {
            'player1Score': self.player1_score,
            'player2Score': self.player2_score,
            'winMethod': self.win_method,
            'winner': self.winner.to_value(),
        }
        if self.win_method_reason:
            data['winMethodReason'] = self.win_method_reason
        return data

    @classmethod
    def from_dict(cls, data):
        return cls(
            player1_score=data.get('player1Score'),
            player2_score=data.get('player2Score'),
            win_method=data.get('winMethod'),
            winner=Outcome.from_value(data.get('winner')),
            win_method_reason=data.get('winMethodReason'),
        )

    def __eq__(self, other):
        if not isinstance(other, RoundResult):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return (f"RoundResult({self.player1_score}-{self.player2_score}, "
                f"method={self.win_method}, winner={self.winner})")


class MatchHistoryEntry:
    """Audit record for a created or corrected match winner."""

    def __init__(self, timestamp, action, previous_winner, new_winner, reason=None):
        self.timestamp = timestamp
        self.action = action
        self.previous_winner = previous_winner
        self.new_winner = new_winner
        self.reason = reason

    def replace(self, **changes):
        values = {
            'timestamp': self.timestamp,
            'action': self.action,
            'previous_winner': self.previous_winner,
            'new_winner': self.new_winner,
            'reason': self.reason,
        }
        values.update(changes)
        return MatchHistoryEntry(**values)

    def to_dict(self):
        return {
            'timestamp': self.timestamp,
            'action': self.action,
            'previousWinner': self.previous_winner.to_value(),
            'newWinner': self.new_winner.to_value(),
            'reason': self.reason,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            timestamp=data.get('timestamp'),
            action=data.get('action', 'update'),
            previous_winner=Outcome.from_value(data.get('previousWinner')),
            new_winner=Outcome.from_value(data.get('newWinner')),
            reason=data.get('reason'),
        )

    def __eq__(self, other):
        if not isinstance(other, MatchHistoryEntry):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return (f"MatchHistoryEntry({self.action}: {self.previous_winner} -> "
                f"{self.new_winner}, reason={self.reason!r})")


class MatchLevelDecision:
    """Tie-break taken on the whole match: a judges' PUN decision or an extra round."""

    PUN = 'PUN'
    EXTRA_ROUND = 'EXTRA_ROUND'

    def __init__(self, method, winner=None, reason=''):
        self.method = method
        self.winner = winner if winner is not None else Outcome.undecided()
        self.reason = reason or ''

    def to_dict(self):
        return {'method': self.method, 'winner': self.winner.to_value(), 'reason': self.reason}

    @classmethod
    def from_dict(cls, data):
        if not data:
            return None
        return cls(data.get('method'), Outcome.from_value(data.get('winner')), data.get('reason', ''))

    def __eq__(self, other):
        if not isinstance(other, MatchLevelDecision):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"MatchLevelDecision(method={self.method}, winner={self.winner})"


class MatchResult:
    """Scoring record of one match."""

    def __init__(self, match_id, player1, player2, winner=None, completed=False,
                 rounds=None, comment=None, history=None, match_level_decision=None):
        self.match_id = match_id
        self.player1 = player1
        self.player2 = player2
        self.winner = winner if winner is not None else Outcome.undecided()
        self.completed = completed
        self.rounds = list(rounds) if rounds else []
        self.comment = comment
        self.history = list(history) if history else []
        self.match_level_decision = match_level_decision

    def replace(self, **changes):
        values = {
            'match_id': self.match_id,
            'player1': self.player1,
            'player2': self.player2,
            'winner': self.winner,
            'completed': self.completed,
            'rounds': self.rounds,
            'comment': self.comment,
            'history': self.history,
            'match_level_decision': self.match_level_decision,
        }
        values.update(changes)
        return MatchResult(**values)

    @property
    def players(self) -> Tuple[str, str]:
        return self.player1, self.player2

    @property
    def involves_bye(self):
        return BYE_MARKER in (self.player1, self.player2)

    def has_scoring(self):
        return any(not r.is_blank for r in self.rounds)

    def to_dict(self):
        data = {
            'matchId': self.match_id,
            'player1': self.player1,
            'player2': self.player2,
            'winner': self.winner.to_value(),
            'completed': self.completed,
            'rounds': [r.to_dict() for r in self.rounds],
            'history': [h.to_dict() for h in self.history],
        }
        if self.comment:
            data['comment'] = self.comment
        if self.match_level_decision is not None:
            data['matchLevelDecision'] = self.match_level_decision.to_dict()
        return data

    @classmethod
    def from_dict(cls, data):
        return cls(
            match_id=data['matchId'],
            player1=data.get('player1'),
            player2=data.get('player2'),
            winner=Outcome.from_value(data.get('winner')),
            completed=bool(data.get('completed', False)),
            rounds=[RoundResult.from_dict(r) for r in data.get('rounds', [])],
            comment=data.get('comment'),
            history=[MatchHistoryEntry.from_dict(h) for h in data.get('history', [])],
            match_level_decision=MatchLevelDecision.from_dict(data.get('matchLevelDecision')),
        )

    def __eq__(self, other):
        if not isinstance(other, MatchResult):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return (f"MatchResult(match_id={self.match_id}, {self.player1} vs {self.player2}, "
                f"winner={self.winner}, completed={self.completed})")


def bracket_to_list(bracket) -> List[List[dict]]:
    return [[match.to_dict() for match in round_matches] for round_matches in bracket]


def bracket_from_list(data) -> List[List[Match]]:
    return [[Match.from_dict(m) for m in round_matches] for round_matches in (data or [])]


def results_to_dict(match_results) -> dict:
    return {match_id: result.to_dict() for match_id, result in match_results.items()}


def results_from_dict(data) -> dict:
    return {match_id: MatchResult.from_dict(r) for match_id, r in (data or {}).items()}


def is_reserved_name(name: Optional[str]) -> bool:
    return name in RESERVED_NAMES
