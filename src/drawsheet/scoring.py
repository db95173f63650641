"""
Round scoring and match winner determination.

A match is played as a best-of-N series of rounds.  Each round is decided
by score (PTF), by a point gap of POINT_GAP or more (PTG), or by one of
the methods that need no score.  Disqualification and withdrawal end the
whole match on the spot.
"""
from typing import Dict, List, Optional

from drawsheet.errors import InvalidInput
from drawsheet.models import MatchLevelDecision, MatchResult, Outcome, RoundResult

POINT_GAP = 12

WIN_METHODS = {
    'PTF': {'label': 'Win by Final Score', 'requires_score': True, 'allows_tie': True},
    'PTG': {'label': 'Win by Point Gap', 'requires_score': True},
    'DSQ': {'label': 'Win by Disqualification', 'match_ending': True},
    'PUN': {'label': 'Win by Punitive Declaration', 'allows_score': True, 'allows_tie': True,
            'default_reason': "Judge's decision for tied match"},
    'RSC': {'label': 'Win by Referee Stop the Contest',
            'default_reason': 'Referee stopped contest'},
    'WDR': {'label': 'Win by Withdrawal', 'match_ending': True},
    'DQB': {'label': 'Win by Disqualification for unsportsmanlike behavior', 'match_ending': True},
    'DQBOTH': {'label': 'Both Players Disqualified', 'match_ending': True, 'no_winner': True},
}

REASON_REQUIRED_METHODS = ('PUN', 'RSC')


def _method_info(code: str) -> Dict:
    if code not in WIN_METHODS:
        raise InvalidInput(f'Unknown win method "{code}". Use one of: {", ".join(WIN_METHODS)}.')
    return WIN_METHODS[code]


def is_match_ending(code: Optional[str]) -> bool:
    return bool(code) and WIN_METHODS.get(code, {}).get('match_ending', False)


def empty_round() -> RoundResult:
    return RoundResult()


def resize_rounds(rounds: List[RoundResult], rounds_per_match: int) -> List[RoundResult]:
    """Pad with blank rounds or truncate so there are exactly rounds_per_match rounds."""
    rounds = list(rounds[:rounds_per_match])
    while len(rounds) < rounds_per_match:
        rounds.append(empty_round())
    return rounds


def add_extra_round(rounds: List[RoundResult]) -> List[RoundResult]:
    return list(rounds) + [empty_round()]


def _validate_score(value, label):
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInput(f"{label} score must be a non-negative whole number, got {value!r}.")
    return value


def _winner_from_scores(round_result: RoundResult, player1: str, player2: str) -> Outcome:
    if round_result.player1_score > round_result.player2_score:
        return Outcome.decided(player1)
    if round_result.player2_score > round_result.player1_score:
        return Outcome.decided(player2)
    return Outcome.undecided()


def _apply_scores(round_result: RoundResult, player1: str, player2: str) -> RoundResult:
    if not round_result.has_scores:
        return round_result
    if round_result.win_method == 'PUN':
        # Judges pick the winner; scores are kept for reference only.
        return round_result
    p1, p2 = round_result.player1_score, round_result.player2_score
    if abs(p1 - p2) >= POINT_GAP:
        method = 'PTG'
    else:
        method = 'PTF'
    return round_result.replace(win_method=method,
                                winner=_winner_from_scores(round_result, player1, player2))


def _apply_win_method(round_result: RoundResult, method: Optional[str],
                      player1: str, player2: str) -> RoundResult:
    if method is None:
        return round_result.replace(win_method=None, winner=Outcome.undecided())
    info = _method_info(method)
    round_result = round_result.replace(win_method=method)

    if info.get('requires_score'):
        if round_result.has_scores:
            return round_result.replace(
                winner=_winner_from_scores(round_result, player1, player2))
        return round_result.replace(winner=Outcome.undecided())

    if info.get('no_winner'):
        return round_result.replace(player1_score=None, player2_score=None,
                                    winner=Outcome.no_winner())

    if not info.get('allows_score'):
        round_result = round_result.replace(player1_score=None, player2_score=None)
    # Methods without scores never pick a winner on their own.
    return round_result.replace(winner=Outcome.undecided())


def _apply_winner_choice(round_result: RoundResult, winner: Optional[str],
                         player1: str, player2: str) -> RoundResult:
    info = WIN_METHODS.get(round_result.win_method, {})
    if info.get('no_winner'):
        if winner is not None:
            raise InvalidInput("Both players are disqualified in this round; no winner can be chosen.")
        return round_result
    if winner is None:
        if round_result.win_method and not info.get('allows_tie'):
            raise InvalidInput(f"A {round_result.win_method} round cannot end in a tie; choose a winner.")
        return round_result.replace(winner=Outcome.undecided())
    if winner not in (player1, player2):
        raise InvalidInput(f'"{winner}" is not playing in this match ({player1} vs {player2}).')
    round_result = round_result.replace(winner=Outcome.decided(winner))
    if info.get('default_reason') and not round_result.win_method_reason:
        round_result = round_result.replace(win_method_reason=info['default_reason'])
    return round_result


def score_round(rounds: List[RoundResult], round_index: int, update: Dict,
                player1: str, player2: str) -> List[RoundResult]:
    """
    Apply a partial update to one round and return the new list of rounds.

    `update` may carry player1_score, player2_score, win_method, winner and
    win_method_reason.  The win method is applied first, then scores (which
    auto-decide PTF/PTG unless the round is a PUN), then an explicit winner
    choice.  Scores sent together with a method that takes none are
    ignored.  The input list is not modified.
    """
    if round_index < 0:
        raise InvalidInput(f"Round index cannot be negative, got {round_index}.")
    rounds = list(rounds)
    while len(rounds) <= round_index:
        rounds.append(empty_round())
    current = rounds[round_index]

    takes_scores = True
    if 'win_method' in update:
        current = _apply_win_method(current, update['win_method'], player1, player2)
        info = WIN_METHODS.get(current.win_method, {})
        takes_scores = current.win_method is None or bool(
            info.get('requires_score') or info.get('allows_score'))

    if takes_scores and ('player1_score' in update or 'player2_score' in update):
        current = current.replace(
            player1_score=_validate_score(
                update.get('player1_score', current.player1_score), 'Player 1'),
            player2_score=_validate_score(
                update.get('player2_score', current.player2_score), 'Player 2'),
        )
        current = _apply_scores(current, player1, player2)

    if 'winner' in update:
        current = _apply_winner_choice(current, update['winner'], player1, player2)

    if 'win_method_reason' in update:
        current = current.replace(win_method_reason=update['win_method_reason'] or None)

    rounds[round_index] = current
    return rounds


def count_round_wins(rounds: List[RoundResult], player1: str, player2: str):
    wins1 = sum(1 for r in rounds if r.winner.is_won_by(player1))
    wins2 = sum(1 for r in rounds if r.winner.is_won_by(player2))
    return wins1, wins2


def determine_match_winner(rounds: List[RoundResult], player1: str, player2: str,
                           rounds_per_match: int,
                           decision: Optional[MatchLevelDecision] = None) -> Outcome:
    """
    Reduce the rounds of a match to its winner.

    Returns Outcome.decided(name) for a majority or match-ending win,
    Outcome.no_winner() when both players were disqualified, and
    Outcome.undecided() while not enough rounds are decided.
    """
    if decision is not None and decision.method == MatchLevelDecision.PUN and decision.winner.is_decided:
        return decision.winner

    for r in rounds:
        if is_match_ending(r.win_method) and r.winner.is_final:
            return r.winner

    wins1, wins2 = count_round_wins(rounds, player1, player2)
    needed = rounds_per_match / 2
    if wins1 > needed:
        return Outcome.decided(player1)
    if wins2 > needed:
        return Outcome.decided(player2)
    return Outcome.undecided()


def needs_match_level_decision(rounds: List[RoundResult], player1: str, player2: str,
                               rounds_per_match: int) -> bool:
    """True when every round is scored but ties leave neither player with a majority."""
    if not rounds or any(not r.has_scores for r in rounds):
        return False

    tied_rounds = sum(
        1 for r in rounds
        if r.player1_score == r.player2_score and r.winner.is_undecided
        and r.win_method in (None, 'PTF')
    )
    if len(rounds) == 1:
        return tied_rounds == 1

    wins1, wins2 = count_round_wins(rounds, player1, player2)
    needed = rounds_per_match / 2
    no_majority = wins1 <= needed and wins2 <= needed
    return no_majority and (tied_rounds > 0 or wins1 == wins2)


def missing_reasons(rounds: List[RoundResult]) -> List[int]:
    """Indexes of PUN/RSC rounds that were decided without a written reason."""
    return [
        i for i, r in enumerate(rounds)
        if r.win_method in REASON_REQUIRED_METHODS
        and not (r.win_method_reason or '').strip()
    ]


def is_participant_disqualified(name: str, result: Optional[MatchResult]) -> bool:
    """Whether `name` was disqualified in the deciding round of a completed match."""
    if result is None or not result.completed or not result.rounds:
        return False
    decisive = None
    for r in reversed(result.rounds):
        if r.win_method and r.winner.is_final:
            decisive = r
            break
    if decisive is None or decisive.win_method not in ('DSQ', 'DQB', 'DQBOTH'):
        return False
    if decisive.win_method == 'DQBOTH':
        return name in result.players
    return name in result.players and not decisive.winner.is_won_by(name)
