"""
Tests for TournamentState: the single write path for winners and results.
"""
import json
import logging
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from drawsheet.bracket import bracket_size, find_match
from drawsheet.errors import DuplicateName, InvalidInput, MatchNotFound, TournamentInProgress
from drawsheet.models import MatchLevelDecision, Outcome, RoundResult, Slot
from drawsheet.state import TournamentState, get_default_settings


def won(name, method='PTF', p1=None, p2=None):
    return RoundResult(player1_score=p1, player2_score=p2, win_method=method,
                       winner=Outcome.decided(name))


@pytest.fixture
def completed(state4):
    """Alice beat Bob 2-0 in the first semifinal."""
    return state4.complete_match("match-r1-1", [won("Alice", p1=21, p2=10), won("Alice", p1=21, p2=18)])


class TestDefaults:

    def test_default_settings(self):
        settings = get_default_settings()
        assert settings['tournament_name'] == 'Tournament Draw Sheet'
        assert settings['seed_type'] == 'random'
        assert settings['rounds_per_match'] == 3

    def test_new_state_is_empty(self):
        state = TournamentState()
        assert state.bracket is None
        assert state.match_results == {}
        assert state.participants == []
        assert state.tournament_id


class TestGenerate:

    def test_generate(self, four_players):
        state = TournamentState().generate_bracket(four_players, 'as-entered', 'Club Cup', 5)
        assert state.tournament_name == 'Club Cup'
        assert state.rounds_per_match == 5
        assert state.seed_type == 'as-entered'
        assert state.participants == four_players

    def test_generate_clears_results(self, completed, four_players):
        state = completed.generate_bracket(four_players, 'as-entered')
        assert state.match_results == {}

    def test_invalid_rounds(self, four_players):
        with pytest.raises(InvalidInput):
            TournamentState().generate_bracket(four_players, 'as-entered', rounds_per_match=0)

    def test_invalid_seed_type(self, four_players):
        with pytest.raises(InvalidInput):
            TournamentState().generate_bracket(four_players, 'by-rating')

    def test_operations_need_a_bracket(self):
        with pytest.raises(InvalidInput):
            TournamentState().set_match_winner("match-r1-1", "Alice")

    def test_duplicate_names_ignoring_case(self):
        with pytest.raises(DuplicateName) as excinfo:
            TournamentState().generate_bracket(["Ann", "ann", "Bob"], 'as-entered')
        assert "ann" in str(excinfo.value)


class TestCompleteMatch:

    def test_result_and_bracket_written_together(self, completed):
        result = completed.match_results["match-r1-1"]
        assert result.completed
        assert result.winner == Outcome.decided("Alice")
        assert (result.player1, result.player2) == ("Alice", "Bob")
        assert [h.action for h in result.history] == ['create']
        assert find_match(completed.bracket, "match-r1-1").winner == Outcome.decided("Alice")
        assert find_match(completed.bracket, "match-r2-1").participants[0] == Slot.occupied("Alice")

    def test_receiver_unchanged(self, state4, completed):
        assert state4.match_results == {}
        assert find_match(state4.bracket, "match-r1-1").winner.is_undecided

    def test_recompleting_appends_history(self, completed):
        state = completed.complete_match(
            "match-r1-1", [won("Bob", p1=1, p2=21), won("Bob", p1=2, p2=21)], change_reason='Wrong sheet')
        result = state.match_results["match-r1-1"]
        assert [h.action for h in result.history] == ['create', 'update']
        assert result.history[-1].previous_winner == Outcome.decided("Alice")
        assert result.history[-1].reason == 'Wrong sheet'
        assert find_match(state.bracket, "match-r2-1").participants[0] == Slot.occupied("Bob")

    def test_completing_after_blank_intermediate_is_a_create(self, state4):
        state = state4.save_intermediate("match-r1-2", [RoundResult()])
        state = state.complete_match("match-r1-2", [won("Carol", p1=21, p2=9), won("Carol", p1=21, p2=7)])
        result = state.match_results["match-r1-2"]
        assert [h.action for h in result.history] == ['create']
        assert result.history[0].previous_winner.is_undecided

    def test_tied_match_needs_decision(self, state4):
        rounds = [won("Alice", p1=21, p2=15), won("Bob", p1=15, p2=21),
                  RoundResult(15, 15, 'PTF')]
        with pytest.raises(InvalidInput, match="tied"):
            state4.complete_match("match-r1-1", rounds)

    def test_tie_resolved_by_punitive_decision(self, state4):
        rounds = [won("Alice", p1=21, p2=15), won("Bob", p1=15, p2=21),
                  RoundResult(15, 15, 'PTF')]
        decision = MatchLevelDecision('PUN', Outcome.decided("Bob"), 'Fewer penalties')
        state = state4.complete_match("match-r1-1", rounds, decision=decision)
        assert state.match_results["match-r1-1"].winner == Outcome.decided("Bob")

    def test_punitive_decision_needs_reason(self, state4):
        decision = MatchLevelDecision('PUN', Outcome.decided("Bob"), '  ')
        with pytest.raises(InvalidInput):
            state4.complete_match("match-r1-1", [won("Alice")], decision=decision)

    def test_incomplete_match(self, state4):
        with pytest.raises(InvalidInput, match="Unable to determine"):
            state4.complete_match("match-r1-1", [won("Alice")])

    def test_missing_reason(self, state4):
        with pytest.raises(InvalidInput, match="reason"):
            state4.complete_match("match-r1-1", [won("Alice", method='RSC'), won("Alice")])

    def test_both_disqualified_advances_nobody(self, state4):
        rounds = [RoundResult(win_method='DQBOTH', winner=Outcome.no_winner())]
        state = state4.complete_match("match-r1-1", rounds)
        assert state.match_results["match-r1-1"].winner == Outcome.no_winner()
        assert find_match(state.bracket, "match-r2-1").participants[0] == Slot.empty()

    def test_match_without_two_players(self, state4):
        with pytest.raises(InvalidInput):
            state4.complete_match("match-r2-1", [won("Alice"), won("Alice")])

    def test_unknown_match(self, state4):
        with pytest.raises(MatchNotFound):
            state4.complete_match("match-r9-9", [])


class TestAmend:

    def test_amend_winner(self, completed):
        state = completed.amend_match_winner("match-r1-1", "Bob", 'Scorer mixed up names')
        result = state.match_results["match-r1-1"]
        assert result.winner == Outcome.decided("Bob")
        assert len(result.history) == 2
        assert result.history[-1].previous_winner == Outcome.decided("Alice")
        assert find_match(state.bracket, "match-r2-1").participants[0] == Slot.occupied("Bob")

    def test_amend_requires_reason(self, completed):
        with pytest.raises(InvalidInput):
            completed.amend_match_winner("match-r1-1", "Bob", '')

    def test_amend_to_outsider(self, completed):
        with pytest.raises(InvalidInput):
            completed.amend_match_winner("match-r1-1", "Carol", 'Typo')

    def test_amend_to_no_winner(self, completed):
        state = completed.amend_match_winner("match-r1-1", "NO_WINNER", 'Both disqualified')
        assert state.match_results["match-r1-1"].winner == Outcome.no_winner()
        assert find_match(state.bracket, "match-r2-1").participants[0] == Slot.empty()

    def test_amend_without_result(self, state4):
        with pytest.raises(MatchNotFound):
            state4.amend_match_winner("match-r1-2", "Carol", 'Typo')


class TestDirectWinner:

    def test_direct_winner_logs_warning(self, state4, caplog):
        with caplog.at_level(logging.WARNING, logger='drawsheet.state'):
            state = state4.set_match_winner("match-r1-2", "Dave")
        assert "without completed match results" in caplog.text
        assert find_match(state.bracket, "match-r2-1").participants[1] == Slot.occupied("Dave")


class TestIntermediateAndSettings:

    def test_save_intermediate(self, state4):
        state = state4.save_intermediate("match-r1-2", [won("Carol", p1=21, p2=3)], comment='Rain delay')
        result = state.match_results["match-r1-2"]
        assert not result.completed
        assert result.winner.is_undecided
        assert result.comment == 'Rain delay'
        assert state.round_status() == {'anyMatchesStarted': True, 'anyRoundsStarted': True}
        assert state.can_modify_participants()['canModify'] is False

    def test_set_rounds_per_match_resizes_results(self, completed):
        state = completed.set_rounds_per_match(5)
        assert state.rounds_per_match == 5
        assert len(state.match_results["match-r1-1"].rounds) == 5
        assert len(completed.match_results["match-r1-1"].rounds) == 2

    @pytest.mark.parametrize("rounds", [0, -1, "3", True])
    def test_invalid_rounds_per_match(self, state4, rounds):
        with pytest.raises(InvalidInput):
            state4.set_rounds_per_match(rounds)

    def test_current_match(self, state4):
        assert state4.set_current_match("match-r1-2").current_match_id == "match-r1-2"
        with pytest.raises(MatchNotFound):
            state4.set_current_match("match-r7-1")

    def test_rename_tournament(self, state4):
        assert state4.rename_tournament(' Spring Open ').tournament_name == 'Spring Open'
        with pytest.raises(InvalidInput):
            state4.rename_tournament('   ')

    def test_reset(self, completed):
        state = completed.reset()
        assert state.bracket is None
        assert state.match_results == {}


class TestParticipants:

    def test_add_regenerating_clears_results(self, state4):
        state = state4.save_intermediate("match-r1-1", [RoundResult()])
        state = state.add_participant("Eve")
        assert bracket_size(state.bracket) == 8
        assert state.match_results == {}

    def test_delete(self, state4):
        state = state4.delete_participant("Dave")
        assert state.participants == ["Alice", "Bob", "Carol"]
        assert bracket_size(state.bracket) == 4

    def test_delete_after_start(self, completed):
        with pytest.raises(TournamentInProgress):
            completed.delete_participant("Dave")

    def test_rename(self, completed):
        state = completed.rename_participant("Alice", "Alicia")
        assert state.match_results["match-r1-1"].player1 == "Alicia"
        assert "Alicia" in state.participants


class TestSerialization:

    def test_export_results_json(self, completed):
        data = json.loads(completed.export_results_json())
        assert list(data) == ["match-r1-1"]
        assert data["match-r1-1"]["winner"] == "Alice"
        assert data["match-r1-1"]["rounds"][0]["player1Score"] == 21

    def test_snapshot_round_trip(self, completed):
        state = completed.set_current_match("match-r1-2")
        restored = TournamentState.from_snapshot(state.to_snapshot())
        assert restored.tournament_id == state.tournament_id
        assert restored.bracket == state.bracket
        assert restored.match_results == state.match_results
        assert restored.current_match_id == "match-r1-2"
        assert restored.rounds_per_match == 3

    def test_snapshot_uses_wire_markers(self):
        state = TournamentState().generate_bracket(["A", "B", "C"], 'as-entered')
        snapshot = state.to_snapshot()
        assert snapshot['bracket'][0][0]['participants'] == ["A", "(bye)"]
        assert snapshot['bracket'][1][0]['participants'] == ["A", None]
        assert snapshot['participantCount'] == 3
