"""
Adding, removing and renaming participants after a bracket exists.

Structural changes are only allowed before any real match has been
played; once play has started, disqualification is the way to take a
participant out.  Every function validates first and only then builds
the new structures, so a failure leaves the caller's state untouched.
"""
from typing import Dict, List, Tuple

from drawsheet.advancement import BracketEditor, resettle
from drawsheet.bracket import (
    bracket_size,
    build_bracket,
    calculate_bracket_size,
    iter_matches,
    list_participants,
    validate_participant_name,
)
from drawsheet.errors import DuplicateName, LastParticipant, NotFound, TournamentInProgress
from drawsheet.models import Match, MatchLevelDecision, MatchResult, Outcome, Slot

IN_PROGRESS_MESSAGE = (
    'Actual tournament matches have started. Use disqualification to remove participants.'
)


def get_round_status(bracket: List[List[Match]], match_results: Dict[str, MatchResult]) -> Dict:
    """
    Compute tournament progress from the current state.

    anyMatchesStarted: a real (non-bye) match has a result that is
    completed or partly scored, or a winner in the bracket.
    anyRoundsStarted: some round of a real match has a score or method.
    """
    any_matches_started = False
    any_rounds_started = False

    if not bracket:
        return {'anyMatchesStarted': False, 'anyRoundsStarted': False}

    for result in match_results.values():
        if result.involves_bye:
            continue
        if result.completed:
            any_matches_started = True
        if result.has_scoring():
            any_rounds_started = True
            any_matches_started = True

    if not any_matches_started:
        for _, match in iter_matches(bracket):
            if match.is_real and not match.winner.is_undecided:
                any_matches_started = True
                break

    return {'anyMatchesStarted': any_matches_started, 'anyRoundsStarted': any_rounds_started}


def is_tournament_started(bracket: List[List[Match]], match_results: Dict[str, MatchResult]) -> bool:
    return get_round_status(bracket, match_results)['anyMatchesStarted']


def can_modify_participants(bracket, match_results) -> Dict:
    if is_tournament_started(bracket, match_results):
        return {'canModify': False, 'reason': IN_PROGRESS_MESSAGE}
    return {'canModify': True}


def _ensure_not_started(bracket, match_results, action):
    if is_tournament_started(bracket, match_results):
        raise TournamentInProgress(
            f'Cannot {action} participants after actual matches have started. '
            f'Use disqualification instead.')


def _name_taken(bracket, name) -> bool:
    lowered = name.lower()
    return any(existing.lower() == lowered for existing in list_participants(bracket))


def _rename_outcome(outcome: Outcome, old_name: str, new_name: str) -> Outcome:
    if outcome.is_won_by(old_name):
        return Outcome.decided(new_name)
    return outcome


def _rename_result(result: MatchResult, old_name: str, new_name: str) -> MatchResult:
    def swap(value):
        return new_name if value == old_name else value

    rounds = [
        r.replace(winner=_rename_outcome(r.winner, old_name, new_name))
        if r.winner.is_won_by(old_name) else r
        for r in result.rounds
    ]
    history = [
        h.replace(previous_winner=_rename_outcome(h.previous_winner, old_name, new_name),
                  new_winner=_rename_outcome(h.new_winner, old_name, new_name))
        for h in result.history
    ]
    decision = result.match_level_decision
    if decision is not None and decision.winner.is_won_by(old_name):
        decision = MatchLevelDecision(decision.method, Outcome.decided(new_name), decision.reason)
    renamed = result.replace(
        player1=swap(result.player1),
        player2=swap(result.player2),
        winner=_rename_outcome(result.winner, old_name, new_name),
        rounds=rounds,
        history=history,
        match_level_decision=decision,
    )
    return result if renamed == result else renamed


def _result_mentions(result: MatchResult, name: str) -> bool:
    return (name in result.players or result.winner.is_won_by(name)
            or any(r.winner.is_won_by(name) for r in result.rounds)
            or any(h.previous_winner.is_won_by(name) or h.new_winner.is_won_by(name)
                   for h in result.history))


def rename_participant(bracket: List[List[Match]], match_results: Dict[str, MatchResult],
                       old_name: str, new_name: str) -> Tuple[List[List[Match]], Dict[str, MatchResult]]:
    """
    Replace every occurrence of old_name in the bracket and the match results.

    Raises InvalidInput for an unusable new name, DuplicateName when the new
    name already belongs to someone else (case-insensitive) and NotFound when
    old_name does not appear anywhere.
    """
    validate_participant_name(new_name)
    if old_name == new_name:
        if old_name not in list_participants(bracket):
            raise NotFound(old_name)
        return bracket, match_results
    if _name_taken(bracket, new_name) and old_name.lower() != new_name.lower():
        raise DuplicateName(new_name)

    editor = BracketEditor(bracket)
    found = False
    for _, match in iter_matches(bracket):
        participants = tuple(
            Slot.occupied(new_name) if slot.holds(old_name) else slot
            for slot in match.participants
        )
        winner = _rename_outcome(match.winner, old_name, new_name)
        if participants != match.participants or winner != match.winner:
            found = True
            editor.put(match.replace(participants=participants, winner=winner))

    new_results = {}
    for match_id, result in match_results.items():
        if _result_mentions(result, old_name):
            found = True
        new_results[match_id] = _rename_result(result, old_name, new_name)

    if not found:
        raise NotFound(old_name)
    return editor.result(), new_results


def remove_participant(bracket: List[List[Match]], match_results: Dict[str, MatchResult],
                       name: str, seed_type: str = 'as-entered'
                       ) -> Tuple[List[List[Match]], Dict[str, MatchResult]]:
    """
    Take a participant out of a tournament that has not started.

    When the remaining field fits a smaller bracket the bracket is rebuilt
    and all match results are dropped.  Otherwise the participant's slot
    becomes a bye, byes are re-advanced and results involving the
    participant are deleted.
    """
    _ensure_not_started(bracket, match_results, 'delete')
    participants = list_participants(bracket)
    if name not in participants:
        raise NotFound(name)
    remaining = [p for p in participants if p != name]
    if not remaining:
        raise LastParticipant(name)

    if calculate_bracket_size(len(remaining)) < bracket_size(bracket):
        return build_bracket(remaining, seed_type), {}

    editor = BracketEditor(bracket)
    for round_index, match in iter_matches(bracket):
        participants_after = tuple(
            Slot.bye() if slot.holds(name) and round_index == 0 else slot
            for slot in match.participants
        )
        winner = Outcome.undecided() if match.winner.is_won_by(name) else match.winner
        editor.put(match.replace(participants=participants_after, winner=winner))

    new_results = {
        match_id: result for match_id, result in match_results.items()
        if name not in result.players
    }
    return resettle(editor.result()), new_results


def add_participant(bracket: List[List[Match]], name: str, seed_type: str = 'as-entered',
                    match_results: Dict[str, MatchResult] = None) -> List[List[Match]]:
    """
    Add a participant to a tournament that has not started.

    The first free first-round slot (a bye or an empty slot, scanning
    matches in order and slot 0 before slot 1) is taken when one exists;
    otherwise the bracket is rebuilt one size larger, which invalidates all
    match results.
    """
    match_results = match_results or {}
    _ensure_not_started(bracket, match_results, 'add')
    validate_participant_name(name)
    if _name_taken(bracket, name):
        raise DuplicateName(name)

    for match in bracket[0] if bracket else []:
        for index, slot in enumerate(match.participants):
            if slot.is_bye or slot.is_empty:
                editor = BracketEditor(bracket)
                editor.put(match.with_slot(index, Slot.occupied(name)))
                return resettle(editor.result())

    return build_bracket(list_participants(bracket) + [name], seed_type)
