"""
Winner propagation through a single elimination bracket.

A bracket is a list of rounds, each a list of Match objects.  Updates are
copy-on-write: only the rounds and matches that change are replaced, and a
call that changes nothing hands back the very same bracket object so
callers can detect changes by identity.
"""
from typing import Dict, List, Tuple

from drawsheet.errors import InvalidInput, MatchNotFound
from drawsheet.models import Match, NO_WINNER_MARKER, Outcome, Slot


def index_matches(bracket: List[List[Match]]) -> Dict[str, Tuple[int, int]]:
    """Map each match id to its (round_index, match_index)."""
    index = {}
    for round_index, round_matches in enumerate(bracket):
        for match_index, match in enumerate(round_matches):
            index[match.id] = (round_index, match_index)
    return index


class BracketEditor:
    """Collects match replacements and produces a structurally shared bracket."""

    def __init__(self, bracket: List[List[Match]]):
        self._original = bracket
        self._rounds = list(bracket)
        self._copied = set()
        self._index = index_matches(bracket)

    def get(self, match_id: str) -> Match:
        if match_id not in self._index:
            raise MatchNotFound(match_id)
        round_index, match_index = self._index[match_id]
        return self._rounds[round_index][match_index]

    def locate(self, match_id: str) -> Tuple[int, int]:
        if match_id not in self._index:
            raise MatchNotFound(match_id)
        return self._index[match_id]

    def put(self, match: Match):
        round_index, match_index = self.locate(match.id)
        if self._rounds[round_index][match_index] == match:
            return
        if round_index not in self._copied:
            self._rounds[round_index] = list(self._rounds[round_index])
            self._copied.add(round_index)
        self._rounds[round_index][match_index] = match

    def result(self) -> List[List[Match]]:
        changed = False
        for round_index in self._copied:
            original = self._original[round_index]
            current = self._rounds[round_index]
            # Matches edited back to their original value keep their identity.
            for i, match in enumerate(current):
                if match is not original[i] and match == original[i]:
                    current[i] = original[i]
            if all(a is b for a, b in zip(current, original)):
                self._rounds[round_index] = original
            else:
                changed = True
        if not changed:
            return self._original
        return self._rounds


def _coerce_outcome(winner) -> Outcome:
    if isinstance(winner, Outcome):
        return winner
    if winner == NO_WINNER_MARKER:
        return Outcome.no_winner()
    if isinstance(winner, str) and winner:
        return Outcome.decided(winner)
    raise InvalidInput(f"Invalid match winner: {winner!r}")


def set_match_winner(bracket: List[List[Match]], match_id: str, winner) -> List[List[Match]]:
    """
    Declare the winner of a match and advance it into the linked next match.

    `winner` is one of the match's participants (a name or Outcome.decided)
    or Outcome.no_winner() / "NO_WINNER" when both players were
    disqualified, in which case nothing advances.

    Raises MatchNotFound for an unknown id and InvalidInput when the winner
    is not a participant of the match or a slot is still unfilled.
    """
    outcome = _coerce_outcome(winner)
    editor = BracketEditor(bracket)
    match = editor.get(match_id)

    if outcome.is_undecided:
        raise InvalidInput(f'A winner is required for match "{match_id}".')
    if any(slot.is_empty for slot in match.participants):
        raise InvalidInput(
            f'Match "{match_id}" cannot be decided until both participants are known.')
    if outcome.is_decided and outcome.name not in match.names():
        raise InvalidInput(
            f'"{outcome.name}" is not a participant of match "{match_id}".')

    _apply_outcome(editor, match, outcome)
    return editor.result()


def settle_byes(bracket: List[List[Match]]) -> List[List[Match]]:
    """Auto-advance every participant whose opponent is a bye, following bye chains."""
    editor = BracketEditor(bracket)
    for match in bracket[0] if bracket else []:
        _resolve_byes(editor, editor.get(match.id))
    return editor.result()


def resettle(bracket: List[List[Match]]) -> List[List[Match]]:
    """
    Recompute everything that byes decide from the first round alone.

    Only valid before any real match has been decided: later rounds are
    cleared and refilled purely from bye advancement.
    """
    editor = BracketEditor(bracket)
    for round_index, round_matches in enumerate(bracket):
        for match in round_matches:
            if round_index == 0:
                editor.put(match.replace(winner=Outcome.undecided()))
            else:
                editor.put(match.replace(participants=(Slot.empty(), Slot.empty()),
                                         winner=Outcome.undecided()))
    for match in bracket[0] if bracket else []:
        _resolve_byes(editor, editor.get(match.id))
    return editor.result()


def _apply_outcome(editor: BracketEditor, match: Match, outcome: Outcome):
    previous = match.winner
    match = match.replace(winner=outcome)
    editor.put(match)
    if match.next_match_id is None:
        return
    if outcome.is_no_winner:
        if previous.is_decided:
            _withdraw(editor, match, previous.name)
        return
    _place(editor, match, Slot.occupied(outcome.name))


def _withdraw(editor: BracketEditor, match: Match, name: str):
    """Clear `name` from the next match once it no longer advances out of `match`."""
    next_match = editor.get(match.next_match_id)
    index = match.position % 2
    if not next_match.participants[index].holds(name):
        return
    updated = next_match.with_slot(index, Slot.empty())
    if next_match.winner.is_won_by(name):
        updated = updated.replace(winner=Outcome.undecided())
        editor.put(updated)
        if updated.next_match_id is not None:
            _withdraw(editor, updated, name)
        return
    editor.put(updated)


def _place(editor: BracketEditor, match: Match, slot: Slot):
    """Put the value coming out of `match` into its slot of the next match."""
    next_match = editor.get(match.next_match_id)
    index = match.position % 2
    previous = next_match.participants[index]
    updated = next_match.with_slot(index, slot)

    if (slot.is_occupied and previous.is_occupied and previous != slot
            and next_match.winner.is_won_by(previous.name)):
        # The successor was decided on the old occupant of this slot.
        _apply_outcome(editor, updated, Outcome.decided(slot.name))
        return

    editor.put(updated)
    _resolve_byes(editor, updated)


def _resolve_byes(editor: BracketEditor, match: Match):
    first, second = match.participants
    if first.is_bye and second.is_bye:
        if match.next_match_id is not None:
            _place(editor, match, Slot.bye())
        return
    if first.is_bye or second.is_bye:
        other = second if first.is_bye else first
        if (other.is_occupied and not match.winner.is_no_winner
                and not match.winner.is_won_by(other.name)):
            _apply_outcome(editor, match, Outcome.decided(other.name))
