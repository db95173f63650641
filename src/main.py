# Entry point for building a draw sheet from the command line

import argparse
import logging
import os
import sys

import yaml

from drawsheet.bracket import SEED_TYPES, calculate_match_number, get_round_name
from drawsheet.errors import DrawSheetError
from drawsheet.state import TournamentState, get_default_settings
from drawsheet.store import TournamentStore


def load_participants(file_path):
    """Read participants from a YAML list, or one name per line."""
    with open(file_path, mode='r', encoding='utf-8') as file:
        content = file.read()
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError:
        data = None
    if isinstance(data, list):
        return [str(name).strip() for name in data if str(name).strip()]
    return [line.strip() for line in content.splitlines() if line.strip()]


def format_bracket(bracket):
    lines = []
    slots = len(bracket[0]) * 2
    for round_index, round_matches in enumerate(bracket):
        lines.append(f"\n--- {get_round_name(slots)} ---")
        for match_index, match in enumerate(round_matches):
            first, second = (slot.to_value() or 'TBD' for slot in match.participants)
            number = calculate_match_number(bracket, round_index, match_index)
            label = f"Match {number}" if number else "Bye"
            line = f"  {label:>9}: {first} vs {second}"
            if match.winner.is_final:
                line += f"  -> {match.winner.to_value()}"
            lines.append(line)
        slots //= 2
    return '\n'.join(lines)


def parse_args(argv=None):
    defaults = get_default_settings()
    parser = argparse.ArgumentParser(description='Build a single elimination draw sheet.')
    parser.add_argument('participants_file', help='YAML list or text file with one participant per line')
    parser.add_argument('--seed', choices=SEED_TYPES, default=defaults['seed_type'],
                        help='Seeding mode (default: %(default)s)')
    parser.add_argument('--name', default=defaults['tournament_name'], help='Tournament name')
    parser.add_argument('--rounds', type=int, default=defaults['rounds_per_match'],
                        help='Rounds per match (default: %(default)s)')
    parser.add_argument('--save', action='store_true', help='Save the tournament to the data directory')
    parser.add_argument('--data-dir', default=os.environ.get(
        'DRAWSHEET_DATA_DIR', os.path.join(os.path.dirname(os.path.dirname(__file__)), 'data')))
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.WARNING)

    participants = load_participants(args.participants_file)
    if not participants:
        print(f"No participants loaded. Check {args.participants_file}")
        return 1

    try:
        state = TournamentState(tournament_name=args.name).generate_bracket(
            participants, args.seed, rounds_per_match=args.rounds)
    except DrawSheetError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"{state.tournament_name}: {len(participants)} participants")
    print(format_bracket(state.bracket))

    if args.save:
        TournamentStore(args.data_dir).save(state)
        print(f"\nSaved tournament {state.tournament_id} to {args.data_dir}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
