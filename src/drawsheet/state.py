"""
Tournament state: the bracket, its match results and the settings around them.

TournamentState is an explicit value handed between the pure bracket
functions and the web/CLI layer.  Every operation returns a new state and
leaves the receiver untouched, so a failed operation can never leave a
half-applied change behind and a rebuilt bracket always travels together
with its (cleared) results.
"""
import json
import logging
import time
from datetime import datetime
from typing import Dict, List, Optional

from drawsheet.advancement import set_match_winner
from drawsheet.bracket import (
    SEED_TYPES,
    bracket_size,
    build_bracket,
    find_match,
    list_participants,
)
from drawsheet.errors import DuplicateName, InvalidInput, MatchNotFound
from drawsheet.models import (
    MatchHistoryEntry,
    MatchLevelDecision,
    MatchResult,
    NO_WINNER_MARKER,
    Outcome,
    bracket_from_list,
    bracket_to_list,
    results_from_dict,
    results_to_dict,
)
from drawsheet.participants import (
    add_participant,
    can_modify_participants,
    get_round_status,
    remove_participant,
    rename_participant,
)
from drawsheet.scoring import determine_match_winner, missing_reasons, needs_match_level_decision, resize_rounds

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


def get_default_settings() -> Dict:
    """Return default tournament settings."""
    return {
        'tournament_name': 'Tournament Draw Sheet',
        'seed_type': 'random',
        'rounds_per_match': 3,
    }


def new_tournament_id() -> str:
    return str(int(time.time() * 1000))


def _validate_rounds_per_match(rounds) -> int:
    if isinstance(rounds, bool) or not isinstance(rounds, int) or rounds < 1:
        raise InvalidInput(f"Rounds per match must be a positive whole number, got {rounds!r}.")
    return rounds


def _ensure_distinct(participants):
    """Names must be unique, ignoring case."""
    seen = set()
    for name in participants:
        if not isinstance(name, str):
            continue
        key = name.lower()
        if key in seen:
            raise DuplicateName(name)
        seen.add(key)


class TournamentState:
    """Snapshot of one tournament. Never mutated; operations return a new state."""

    def __init__(self, tournament_id=None, tournament_name=None, seed_type=None,
                 rounds_per_match=None, bracket=None, match_results=None, current_match_id=None):
        defaults = get_default_settings()
        self.tournament_id = tournament_id or new_tournament_id()
        self.tournament_name = tournament_name or defaults['tournament_name']
        self.seed_type = seed_type or defaults['seed_type']
        self.rounds_per_match = rounds_per_match or defaults['rounds_per_match']
        self.bracket = bracket
        self.match_results = match_results if match_results is not None else {}
        self.current_match_id = current_match_id

    def _replace(self, **changes) -> 'TournamentState':
        values = {
            'tournament_id': self.tournament_id,
            'tournament_name': self.tournament_name,
            'seed_type': self.seed_type,
            'rounds_per_match': self.rounds_per_match,
            'bracket': self.bracket,
            'match_results': self.match_results,
            'current_match_id': self.current_match_id,
        }
        values.update(changes)
        return TournamentState(**values)

    def _require_bracket(self):
        if not self.bracket:
            raise InvalidInput('No tournament bracket found. Generate a bracket first.')
        return self.bracket

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def participants(self) -> List[str]:
        return list_participants(self.bracket) if self.bracket else []

    @property
    def participant_count(self) -> int:
        return len(self.participants)

    def round_status(self) -> Dict:
        return get_round_status(self.bracket, self.match_results)

    def can_modify_participants(self) -> Dict:
        return can_modify_participants(self.bracket, self.match_results)

    def get_match(self, match_id):
        return find_match(self._require_bracket(), match_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def generate_bracket(self, participants: List[str], seed_type: str,
                         tournament_name: Optional[str] = None,
                         rounds_per_match: Optional[int] = None, rng=None) -> 'TournamentState':
        """Start a fresh tournament: new id, new bracket, no results."""
        rounds = self.rounds_per_match if rounds_per_match is None else rounds_per_match
        rounds = _validate_rounds_per_match(rounds)
        _ensure_distinct(participants)
        bracket = build_bracket(participants, seed_type, rng=rng)
        logger.info('Generated %d-slot bracket for %d participants (%s seeding)',
                    bracket_size(bracket), len(participants), seed_type)
        return TournamentState(
            tournament_name=tournament_name or self.tournament_name,
            seed_type=seed_type,
            rounds_per_match=rounds,
            bracket=bracket,
            match_results={},
        )

    def reset(self) -> 'TournamentState':
        return TournamentState()

    def rename_tournament(self, name: str) -> 'TournamentState':
        if not name or not name.strip():
            raise InvalidInput('Tournament name cannot be empty.')
        return self._replace(tournament_name=name.strip())

    def set_current_match(self, match_id: Optional[str]) -> 'TournamentState':
        if match_id is not None:
            self.get_match(match_id)
        return self._replace(current_match_id=match_id)

    def set_rounds_per_match(self, rounds: int) -> 'TournamentState':
        """Change the series length; existing results are padded or truncated to match."""
        rounds = _validate_rounds_per_match(rounds)
        results = {
            match_id: result.replace(rounds=resize_rounds(result.rounds, rounds))
            for match_id, result in self.match_results.items()
        }
        return self._replace(rounds_per_match=rounds, match_results=results)

    # ------------------------------------------------------------------
    # Winners and results
    # ------------------------------------------------------------------

    def set_match_winner(self, match_id: str, winner) -> 'TournamentState':
        """Declare a bracket winner directly and advance it."""
        bracket = self._require_bracket()
        match = find_match(bracket, match_id)
        result = self.match_results.get(match_id)
        if (match.is_real and not (result and result.completed)
                and winner not in (NO_WINNER_MARKER, Outcome.no_winner())):
            logger.warning('Setting winner for %s without completed match results', match_id)
        return self._replace(bracket=set_match_winner(bracket, match_id, winner))

    def _players_of(self, match_id: str):
        match = find_match(self._require_bracket(), match_id)
        if not match.is_real:
            raise InvalidInput(
                f'Match "{match_id}" does not have two participants yet and cannot be scored.')
        first, second = match.participants
        return first.name, second.name

    def save_intermediate(self, match_id: str, rounds, comment: str = '',
                          decision: Optional[MatchLevelDecision] = None) -> 'TournamentState':
        """Keep partly scored rounds without deciding the match."""
        existing = self.match_results.get(match_id)
        if existing is not None:
            player1, player2 = existing.player1, existing.player2
        else:
            player1, player2 = self._players_of(match_id)
        result = MatchResult(
            match_id=match_id,
            player1=player1,
            player2=player2,
            winner=Outcome.undecided(),
            completed=False,
            rounds=list(rounds),
            comment=comment or None,
            history=existing.history if existing else [],
            match_level_decision=decision,
        )
        logger.debug('Intermediate match state saved for %s', match_id)
        return self._replace(match_results=dict(self.match_results, **{match_id: result}))

    def complete_match(self, match_id: str, rounds, comment: str = '',
                       decision: Optional[MatchLevelDecision] = None,
                       change_reason: Optional[str] = None) -> 'TournamentState':
        """
        Decide a match from its scored rounds and advance the winner.

        The MatchResult and the bracket are updated together.  Raises
        InvalidInput when a PUN/RSC decision lacks a reason or when the
        rounds do not decide the match yet.
        """
        player1, player2 = self._players_of(match_id)
        rounds = list(rounds)

        missing = missing_reasons(rounds)
        if missing:
            numbers = ', '.join(str(i + 1) for i in missing)
            raise InvalidInput(
                f'Please provide a reason for the PUN/RSC decision in round(s) {numbers}.')
        if (decision is not None and decision.method == MatchLevelDecision.PUN
                and not decision.reason.strip()):
            raise InvalidInput('Please provide a reason for the match-level PUN decision.')

        winner = determine_match_winner(rounds, player1, player2, self.rounds_per_match, decision)
        if winner.is_undecided:
            if needs_match_level_decision(rounds, player1, player2, self.rounds_per_match):
                raise InvalidInput(
                    'Match is tied. Declare a match-level PUN winner or add an extra round.')
            raise InvalidInput(
                'Unable to determine a match winner. Complete more rounds or resolve any ties.')

        existing = self.match_results.get(match_id)
        entry = MatchHistoryEntry(
            timestamp=datetime.now().isoformat(),
            action='update' if existing and existing.completed else 'create',
            previous_winner=existing.winner if existing else Outcome.undecided(),
            new_winner=winner,
            reason=change_reason or None,
        )
        result = MatchResult(
            match_id=match_id,
            player1=player1,
            player2=player2,
            winner=winner,
            completed=True,
            rounds=rounds,
            comment=comment or None,
            history=(existing.history if existing else []) + [entry],
            match_level_decision=decision,
        )
        bracket = set_match_winner(self.bracket, match_id, winner)
        return self._replace(bracket=bracket,
                             match_results=dict(self.match_results, **{match_id: result}))

    def amend_match_winner(self, match_id: str, new_winner, reason: str) -> 'TournamentState':
        """Correct the winner of a scored match, keeping an audit entry."""
        result = self.match_results.get(match_id)
        if result is None:
            raise MatchNotFound(match_id)
        if not reason or not reason.strip():
            raise InvalidInput('A reason is required to change a match winner.')
        outcome = new_winner if isinstance(new_winner, Outcome) else Outcome.from_value(new_winner)
        if outcome.is_undecided:
            raise InvalidInput(f'A new winner is required for match "{match_id}".')
        if outcome.is_decided and outcome.name not in result.players:
            raise InvalidInput(f'"{outcome.name}" did not play in match "{match_id}".')

        bracket = set_match_winner(self._require_bracket(), match_id, outcome)
        entry = MatchHistoryEntry(
            timestamp=datetime.now().isoformat(),
            action='update',
            previous_winner=result.winner,
            new_winner=outcome,
            reason=reason.strip(),
        )
        amended = result.replace(winner=outcome, completed=True,
                                 history=result.history + [entry])
        logger.info('Match %s winner changed from %s to %s',
                    match_id, result.winner.to_value(), outcome.to_value())
        return self._replace(bracket=bracket,
                             match_results=dict(self.match_results, **{match_id: amended}))

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    def rename_participant(self, old_name: str, new_name: str) -> 'TournamentState':
        bracket, results = rename_participant(self._require_bracket(), self.match_results,
                                              old_name, new_name)
        return self._replace(bracket=bracket, match_results=results)

    def add_participant(self, name: str) -> 'TournamentState':
        bracket = self._require_bracket()
        new_bracket = add_participant(bracket, name, self.seed_type, self.match_results)
        results = self.match_results
        if bracket_size(new_bracket) != bracket_size(bracket):
            logger.info('Bracket regenerated to %d slots to add %s', bracket_size(new_bracket), name)
            results = {}
        return self._replace(bracket=new_bracket, match_results=results)

    def delete_participant(self, name: str) -> 'TournamentState':
        bracket = self._require_bracket()
        new_bracket, results = remove_participant(bracket, self.match_results, name, self.seed_type)
        if bracket_size(new_bracket) != bracket_size(bracket):
            logger.info('Bracket optimized from %d to %d slots after removing %s',
                        bracket_size(bracket), bracket_size(new_bracket), name)
        return self._replace(bracket=new_bracket, match_results=results)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def export_results_json(self) -> str:
        return json.dumps(results_to_dict(self.match_results), indent=2)

    def to_snapshot(self) -> Dict:
        return {
            'version': SNAPSHOT_VERSION,
            'tournamentId': self.tournament_id,
            'tournamentName': self.tournament_name,
            'seedType': self.seed_type,
            'roundsPerMatch': self.rounds_per_match,
            'participantCount': self.participant_count,
            'currentMatchId': self.current_match_id,
            'bracket': bracket_to_list(self.bracket) if self.bracket else None,
            'matchResults': results_to_dict(self.match_results),
        }

    @classmethod
    def from_snapshot(cls, data: Dict) -> 'TournamentState':
        seed_type = data.get('seedType')
        if seed_type is not None and seed_type not in SEED_TYPES:
            raise InvalidInput(f'Snapshot has unknown seed type "{seed_type}".')
        return cls(
            tournament_id=data.get('tournamentId'),
            tournament_name=data.get('tournamentName'),
            seed_type=seed_type,
            rounds_per_match=data.get('roundsPerMatch'),
            bracket=bracket_from_list(data.get('bracket')) or None,
            match_results=results_from_dict(data.get('matchResults')),
            current_match_id=data.get('currentMatchId'),
        )
