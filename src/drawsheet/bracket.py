"""
Single elimination bracket generation and queries.
"""
import math
import random
from typing import Dict, Iterator, List, Optional, Tuple

from drawsheet.advancement import index_matches, settle_byes
from drawsheet.errors import InvalidInput, MatchNotFound
from drawsheet.models import Match, Outcome, Slot, is_reserved_name

SEED_TYPES = ('random', 'ordered', 'as-entered')


def get_round_name(teams_in_round: int) -> str:
    """Get the name of a round based on number of participant slots."""
    if teams_in_round == 2:
        return "Final"
    elif teams_in_round == 4:
        return "Semifinal"
    elif teams_in_round == 8:
        return "Quarterfinal"
    else:
        return f"Round of {teams_in_round}"


def calculate_bracket_size(num_participants: int) -> int:
    """Calculate the bracket size (next power of 2, at least 2)."""
    if num_participants <= 0:
        return 0
    return max(2, 2 ** math.ceil(math.log2(num_participants)))


def calculate_byes(num_participants: int) -> int:
    """Calculate number of byes needed."""
    return calculate_bracket_size(num_participants) - num_participants


def match_id_for(round_index: int, match_index: int) -> str:
    return f"match-r{round_index + 1}-{match_index + 1}"


def _generate_bracket_order(bracket_size: int) -> List[int]:
    """
    Generate the standard tournament bracket order.
    This ensures that if all higher seeds win, they meet in the proper rounds.

    For 8 entries: [1, 8, 4, 5, 2, 7, 3, 6]
    This gives matchups: 1v8, 4v5, 2v7, 3v6
    """
    if bracket_size <= 1:
        return [1]
    if bracket_size == 2:
        return [1, 2]

    half_size = bracket_size // 2
    upper_half = _generate_bracket_order(half_size)
    lower_half = [bracket_size + 1 - seed for seed in upper_half]

    result = []
    for u, l in zip(upper_half, lower_half):
        result.extend([u, l])

    return result


def _bye_match_indices(num_matches: int, num_byes: int) -> set:
    """
    Pick the first-round matches that receive a bye.

    Matches are ranked by the standard bracket order, so byes land on the
    matches the top seeds would occupy and are spread over both halves.
    """
    order = _generate_bracket_order(num_matches)
    return {index for index, rank in enumerate(order) if rank <= num_byes}


def seed_participants(participants: List[str], seed_type: str,
                      rng: Optional[random.Random] = None) -> List[str]:
    """Return the participants in placement order for the given seeding mode."""
    if seed_type not in SEED_TYPES:
        raise InvalidInput(
            f'Unknown seed type "{seed_type}". Use one of: {", ".join(SEED_TYPES)}.')
    seeded = list(participants)
    if seed_type == 'random':
        (rng or random).shuffle(seeded)
    return seeded


def validate_participant_name(name) -> str:
    """Check a single participant name and return it unchanged."""
    if not isinstance(name, str) or not name.strip():
        raise InvalidInput("Participant name cannot be empty.")
    if is_reserved_name(name):
        raise InvalidInput(f'"{name}" is reserved and cannot be used as a participant name.')
    return name


def build_bracket(participants: List[str], seed_type: str = 'as-entered',
                  rng: Optional[random.Random] = None) -> List[List[Match]]:
    """
    Build a complete single elimination bracket.

    Round 0 holds bracket_size / 2 matches where bracket_size is the next
    power of two; each later round halves the match count down to a single
    final.  Byes are pre-decided and already advanced when this returns.

    Raises InvalidInput for an empty participant list, an unusable name or
    an unknown seed type.
    """
    if not participants:
        raise InvalidInput("At least one participant is required to build a bracket.")
    for name in participants:
        validate_participant_name(name)

    seeded = seed_participants(participants, seed_type, rng)
    bracket_size = calculate_bracket_size(len(seeded))
    total_rounds = int(math.log2(bracket_size))
    first_round_count = bracket_size // 2
    bye_matches = _bye_match_indices(first_round_count, calculate_byes(len(seeded)))

    bracket = []
    pending = iter(seeded)
    first_round = []
    for i in range(first_round_count):
        first = Slot.occupied(next(pending))
        if i in bye_matches:
            second = Slot.bye()
        else:
            second = Slot.occupied(next(pending))
        first_round.append(Match(
            id=match_id_for(0, i),
            participants=(first, second),
            next_match_id=match_id_for(1, i // 2) if total_rounds > 1 else None,
            position=i,
        ))
    bracket.append(first_round)

    for round_index in range(1, total_rounds):
        matches_in_round = bracket_size // (2 ** (round_index + 1))
        is_final = round_index == total_rounds - 1
        bracket.append([
            Match(
                id=match_id_for(round_index, i),
                next_match_id=None if is_final else match_id_for(round_index + 1, i // 2),
                position=i,
            )
            for i in range(matches_in_round)
        ])

    return settle_byes(bracket)


def iter_matches(bracket: List[List[Match]]) -> Iterator[Tuple[int, Match]]:
    for round_index, round_matches in enumerate(bracket):
        for match in round_matches:
            yield round_index, match


def find_match(bracket: List[List[Match]], match_id: str) -> Match:
    location = index_matches(bracket).get(match_id)
    if location is None:
        raise MatchNotFound(match_id)
    round_index, match_index = location
    return bracket[round_index][match_index]


def bracket_size(bracket: List[List[Match]]) -> int:
    """Number of first-round participant slots."""
    if not bracket:
        return 0
    return len(bracket[0]) * 2


def list_participants(bracket: List[List[Match]]) -> List[str]:
    """Unique participant names in order of first appearance."""
    seen = []
    for _, match in iter_matches(bracket):
        for name in match.names():
            if name not in seen:
                seen.append(name)
    return seen


def is_bye_match(match: Match) -> bool:
    return match.has_bye


def calculate_match_number(bracket: List[List[Match]], round_index: int, match_index: int) -> int:
    """Display number of a match, counting only matches without a bye. 0 for bye matches."""
    match = bracket[round_index][match_index]
    if is_bye_match(match):
        return 0
    number = 0
    for r in range(round_index):
        number += sum(1 for m in bracket[r] if not is_bye_match(m))
    number += sum(1 for m in bracket[round_index][:match_index] if not is_bye_match(m))
    return number + 1


def find_participant_path(bracket: List[List[Match]], name: str) -> List[Dict]:
    """All matches a participant appears in, round by round."""
    if not name:
        return []
    path = []
    for round_index, round_matches in enumerate(bracket):
        for match_index, match in enumerate(round_matches):
            if any(slot.holds(name) for slot in match.participants):
                path.append({'round_index': round_index, 'match_index': match_index, 'match': match})
    return path


def get_champion(bracket: List[List[Match]]) -> Outcome:
    if not bracket or not bracket[-1]:
        return Outcome.undecided()
    return bracket[-1][0].winner


def get_bracket_display(bracket: List[List[Match]]) -> Dict:
    """
    Get bracket data formatted for UI display.
    """
    size = bracket_size(bracket)
    rounds = []
    slots = size
    for round_index, round_matches in enumerate(bracket):
        rounds.append({
            'name': get_round_name(slots),
            'matches': [
                dict(m.to_dict(), match_number=calculate_match_number(bracket, round_index, i),
                     is_bye=is_bye_match(m))
                for i, m in enumerate(round_matches)
            ],
        })
        slots //= 2

    first_round_byes = sum(
        1 for m in (bracket[0] if bracket else []) for slot in m.participants if slot.is_bye
    )
    matches_per_round = {
        r['name']: sum(1 for m in r['matches'] if not m['is_bye']) for r in rounds
    }

    return {
        'rounds': rounds,
        'bracket_size': size,
        'total_rounds': len(bracket),
        'total_participants': len(list_participants(bracket)),
        'byes': first_round_byes,
        'matches_per_round': matches_per_round,
        'champion': get_champion(bracket).to_value(),
    }
