"""
Unit tests for single elimination bracket generation.
"""
import math
import random
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from drawsheet.bracket import (
    get_round_name,
    calculate_bracket_size,
    calculate_byes,
    match_id_for,
    build_bracket,
    seed_participants,
    find_match,
    list_participants,
    calculate_match_number,
    find_participant_path,
    get_champion,
    get_bracket_display,
    _generate_bracket_order,
)
from drawsheet.errors import InvalidInput, MatchNotFound
from drawsheet.models import Outcome, Slot


class TestBracketHelpers:
    """Tests for bracket helper functions."""

    def test_get_round_name(self):
        assert get_round_name(2) == "Final"
        assert get_round_name(4) == "Semifinal"
        assert get_round_name(8) == "Quarterfinal"
        assert get_round_name(16) == "Round of 16"

    def test_calculate_bracket_size_exact_power(self):
        assert calculate_bracket_size(8) == 8
        assert calculate_bracket_size(16) == 16

    def test_calculate_bracket_size_not_power(self):
        """Test bracket size rounds up to next power of 2."""
        assert calculate_bracket_size(5) == 8
        assert calculate_bracket_size(9) == 16
        assert calculate_bracket_size(3) == 4

    def test_calculate_bracket_size_small(self):
        """A single participant still gets a two-slot bracket."""
        assert calculate_bracket_size(1) == 2
        assert calculate_bracket_size(2) == 2
        assert calculate_bracket_size(0) == 0

    def test_calculate_byes(self):
        assert calculate_byes(8) == 0
        assert calculate_byes(5) == 3  # 8 - 5
        assert calculate_byes(12) == 4  # 16 - 12
        assert calculate_byes(1) == 1

    def test_match_ids_are_one_based(self):
        assert match_id_for(0, 0) == "match-r1-1"
        assert match_id_for(2, 3) == "match-r3-4"


class TestBracketOrder:
    """Tests for bracket ordering (seeding)."""

    def test_bracket_order_8(self):
        assert _generate_bracket_order(8) == [1, 8, 4, 5, 2, 7, 3, 6]

    def test_bracket_order_4(self):
        assert _generate_bracket_order(4) == [1, 4, 2, 3]

    def test_bracket_order_covers_every_seed(self):
        assert sorted(_generate_bracket_order(16)) == list(range(1, 17))


class TestSeeding:

    def test_as_entered_keeps_order(self, five_players):
        assert seed_participants(five_players, 'as-entered') == five_players

    def test_ordered_keeps_order(self, five_players):
        assert seed_participants(five_players, 'ordered') == five_players

    def test_random_uses_given_rng(self, five_players):
        first = seed_participants(five_players, 'random', random.Random(7))
        second = seed_participants(five_players, 'random', random.Random(7))
        assert first == second
        assert sorted(first) == sorted(five_players)

    def test_random_does_not_modify_input(self, five_players):
        before = list(five_players)
        seed_participants(five_players, 'random', random.Random(1))
        assert five_players == before

    def test_unknown_seed_type(self, five_players):
        with pytest.raises(InvalidInput):
            seed_participants(five_players, 'alphabetical')


class TestBuildBracket:
    """Tests for bracket structure."""

    def test_empty_participants_rejected(self):
        with pytest.raises(InvalidInput):
            build_bracket([], 'as-entered')

    @pytest.mark.parametrize("name", ["", "   ", "(bye)", "NO_WINNER"])
    def test_unusable_names_rejected(self, name):
        with pytest.raises(InvalidInput):
            build_bracket(["Alice", name], 'as-entered')

    @pytest.mark.parametrize("n", list(range(1, 34)))
    def test_shape_for_any_count(self, n):
        players = [f"P{i}" for i in range(1, n + 1)]
        bracket = build_bracket(players, 'as-entered')
        size = calculate_bracket_size(n)

        assert len(bracket[0]) == size // 2
        assert len(bracket) == int(math.log2(size))
        assert len(bracket[-1]) == 1
        assert sorted(list_participants(bracket)) == sorted(players)

    @pytest.mark.parametrize("n", list(range(1, 34)))
    def test_no_bye_against_bye(self, n):
        bracket = build_bracket([f"P{i}" for i in range(n)], 'as-entered')
        for match in bracket[0]:
            assert not all(slot.is_bye for slot in match.participants)

    @pytest.mark.parametrize("n", [3, 5, 6, 7, 11, 13])
    def test_byes_are_advanced(self, n):
        bracket = build_bracket([f"P{i}" for i in range(n)], 'as-entered')
        for match in bracket[0]:
            if not match.has_bye:
                assert match.winner.is_undecided
                continue
            occupant = match.names()[0]
            assert match.winner == Outcome.decided(occupant)
            next_match = find_match(bracket, match.next_match_id)
            assert next_match.participants[match.position % 2] == Slot.occupied(occupant)

    @pytest.mark.parametrize("n", [4, 8, 13])
    def test_linkage(self, n):
        bracket = build_bracket([f"P{i}" for i in range(n)], 'as-entered')
        for round_index, round_matches in enumerate(bracket):
            for i, match in enumerate(round_matches):
                assert match.id == match_id_for(round_index, i)
                assert match.position == i
                if round_index == len(bracket) - 1:
                    assert match.next_match_id is None
                else:
                    assert match.next_match_id == match_id_for(round_index + 1, i // 2)

    def test_five_participants(self, bracket5):
        """A v bye, B v C, D v bye, E v bye with the bye winners pre-set."""
        first_round = bracket5[0]
        assert len(first_round) == 4
        assert [m.participants for m in first_round] == [
            (Slot.occupied("A"), Slot.bye()),
            (Slot.occupied("B"), Slot.occupied("C")),
            (Slot.occupied("D"), Slot.bye()),
            (Slot.occupied("E"), Slot.bye()),
        ]
        assert [m.winner for m in first_round] == [
            Outcome.decided("A"), Outcome.undecided(), Outcome.decided("D"), Outcome.decided("E"),
        ]
        assert bracket5[1][0].participants == (Slot.occupied("A"), Slot.empty())
        assert bracket5[1][1].participants == (Slot.occupied("D"), Slot.occupied("E"))

    def test_single_participant_is_champion(self):
        bracket = build_bracket(["Solo"], 'as-entered')
        assert len(bracket) == 1
        assert bracket[0][0].participants == (Slot.occupied("Solo"), Slot.bye())
        assert get_champion(bracket) == Outcome.decided("Solo")

    def test_two_participants(self):
        bracket = build_bracket(["A", "B"], 'as-entered')
        assert len(bracket) == 1
        assert bracket[0][0].is_real
        assert get_champion(bracket).is_undecided

    def test_input_list_not_modified(self, five_players):
        before = list(five_players)
        build_bracket(five_players, 'random', random.Random(3))
        assert five_players == before


class TestBracketQueries:

    def test_find_match_unknown(self, bracket4):
        with pytest.raises(MatchNotFound):
            find_match(bracket4, "match-r9-1")

    def test_list_participants_first_appearance(self, bracket5):
        assert list_participants(bracket5) == ["A", "B", "C", "D", "E"]

    def test_match_numbers_skip_byes(self, bracket5):
        assert [calculate_match_number(bracket5, 0, i) for i in range(4)] == [0, 1, 0, 0]
        assert calculate_match_number(bracket5, 1, 0) == 2
        assert calculate_match_number(bracket5, 1, 1) == 3
        assert calculate_match_number(bracket5, 2, 0) == 4

    def test_participant_path(self, bracket5):
        path = find_participant_path(bracket5, "A")
        assert [(p['round_index'], p['match_index']) for p in path] == [(0, 0), (1, 0)]
        assert find_participant_path(bracket5, "Nobody") == []

    def test_bracket_display(self, bracket5):
        display = get_bracket_display(bracket5)
        assert [r['name'] for r in display['rounds']] == ["Quarterfinal", "Semifinal", "Final"]
        assert display['bracket_size'] == 8
        assert display['total_rounds'] == 3
        assert display['total_participants'] == 5
        assert display['byes'] == 3
        assert display['matches_per_round'] == {"Quarterfinal": 1, "Semifinal": 2, "Final": 1}
        assert display['champion'] is None
        first = display['rounds'][0]['matches'][0]
        assert first['participants'] == ["A", "(bye)"]
        assert first['is_bye'] is True
