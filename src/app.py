"""
Flask web application for Tournament Draw Sheet.
"""
import os
import logging
from flask import Flask, request, jsonify, Response

from drawsheet.bracket import SEED_TYPES, find_participant_path, get_bracket_display
from drawsheet.errors import (
    DrawSheetError,
    DuplicateName,
    InvalidInput,
    LastParticipant,
    MatchNotFound,
    NotFound,
    TournamentInProgress,
)
from drawsheet.models import MatchLevelDecision, RoundResult
from drawsheet.scoring import WIN_METHODS, determine_match_winner, needs_match_level_decision, score_round
from drawsheet.state import TournamentState, get_default_settings
from drawsheet.store import TournamentStore

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('DRAWSHEET_DATA_DIR', os.path.join(BASE_DIR, 'data'))

ERROR_STATUS = {
    InvalidInput: 400,
    MatchNotFound: 404,
    NotFound: 404,
    DuplicateName: 409,
    TournamentInProgress: 409,
    LastParticipant: 409,
}

# Request keys for a partial round update, mapped to score_round() keys
ROUND_UPDATE_KEYS = {
    'player1Score': 'player1_score',
    'player2Score': 'player2_score',
    'winMethod': 'win_method',
    'winner': 'winner',
    'winMethodReason': 'win_method_reason',
}


def get_store() -> TournamentStore:
    """Store for the configured data directory."""
    return TournamentStore(DATA_DIR)


def load_state() -> TournamentState:
    return get_store().load_active()


def update_state(operation) -> TournamentState:
    """Apply `operation` to the active tournament and save it under the store lock."""
    return get_store().update(operation)


def _state_payload(state: TournamentState) -> dict:
    return {
        'success': True,
        'tournament': state.to_snapshot(),
        'display': get_bracket_display(state.bracket) if state.bracket else None,
        'status': state.round_status(),
    }


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        raise InvalidInput('No data provided')
    if not isinstance(data, dict):
        raise InvalidInput('Request body must be a JSON object')
    return data


def _parse_rounds(data) -> list:
    rounds = data.get('rounds', [])
    if not isinstance(rounds, list):
        raise InvalidInput('rounds must be a list')
    if not all(isinstance(r, dict) for r in rounds):
        raise InvalidInput('Each round must be an object')
    return [RoundResult.from_dict(r) for r in rounds]


def _parse_decision(data):
    decision = data.get('matchLevelDecision')
    if decision is not None and not isinstance(decision, dict):
        raise InvalidInput('matchLevelDecision must be an object')
    return MatchLevelDecision.from_dict(decision)


@app.errorhandler(DrawSheetError)
def handle_drawsheet_error(error):
    status = ERROR_STATUS.get(type(error), 400)
    app.logger.info(f'{request.method} {request.path} rejected: {error}')
    return jsonify({'success': False, 'error': str(error)}), status


@app.route('/api/tournament', methods=['GET'])
def api_get_tournament():
    """Current tournament: snapshot, display data and progress flags."""
    return jsonify(_state_payload(load_state()))


@app.route('/api/tournament/generate', methods=['POST'])
def api_generate_bracket():
    """Generate a new bracket from a participant list.

    Body: participants (list of names), seed_type, optional tournament_name
    and rounds_per_match.
    """
    data = _json_body()
    participants = data.get('participants', [])
    if not isinstance(participants, list):
        raise InvalidInput('participants must be a list of names')
    participants = [p.strip() if isinstance(p, str) else p for p in participants]
    defaults = get_default_settings()
    seed_type = data.get('seed_type', defaults['seed_type'])
    if seed_type not in SEED_TYPES:
        raise InvalidInput(f'Invalid seed type "{seed_type}". Use one of: {", ".join(SEED_TYPES)}.')

    state = update_state(lambda current: current.generate_bracket(
        participants,
        seed_type,
        tournament_name=data.get('tournament_name'),
        rounds_per_match=data.get('rounds_per_match'),
    ))
    app.logger.info(f'Generated tournament {state.tournament_id} with {len(participants)} participants')
    return jsonify(_state_payload(state))


@app.route('/api/tournament/reset', methods=['POST'])
def api_reset_tournament():
    """Start over with an empty tournament."""
    state = update_state(lambda current: current.reset())
    return jsonify(_state_payload(state))


@app.route('/api/tournament/name', methods=['POST'])
def api_rename_tournament():
    data = _json_body()
    state = update_state(lambda current: current.rename_tournament(data.get('name', '')))
    return jsonify({'success': True, 'name': state.tournament_name})


@app.route('/api/settings/rounds', methods=['POST'])
def api_set_rounds_per_match():
    data = _json_body()
    state = update_state(lambda current: current.set_rounds_per_match(data.get('rounds_per_match')))
    return jsonify({'success': True, 'rounds_per_match': state.rounds_per_match})


@app.route('/api/matches/<match_id>/winner', methods=['POST'])
def api_set_match_winner(match_id):
    """Set a bracket winner directly (participant name or NO_WINNER)."""
    data = _json_body()
    winner = data.get('winner')
    if not winner:
        raise InvalidInput('Missing winner')
    state = update_state(lambda current: current.set_match_winner(match_id, winner))
    return jsonify(_state_payload(state))


@app.route('/api/matches/<match_id>/score-round', methods=['POST'])
def api_score_round(match_id):
    """Preview a round update without saving.

    Body: rounds (current rounds), round_index, update (partial round in
    wire keys). Returns the new rounds and the resulting match winner.
    """
    data = _json_body()
    state = load_state()
    match = state.get_match(match_id)
    if not match.is_real:
        raise InvalidInput(f'Match "{match_id}" does not have two participants yet.')
    player1, player2 = match.names()

    round_index = data.get('round_index', 0)
    if isinstance(round_index, bool) or not isinstance(round_index, int):
        raise InvalidInput('round_index must be a whole number')
    raw_update = data.get('update') or {}
    if not isinstance(raw_update, dict):
        raise InvalidInput('update must be an object')
    update = {
        ROUND_UPDATE_KEYS[key]: value
        for key, value in raw_update.items()
        if key in ROUND_UPDATE_KEYS
    }

    rounds = score_round(_parse_rounds(data), round_index, update, player1, player2)
    winner = determine_match_winner(rounds, player1, player2, state.rounds_per_match,
                                    _parse_decision(data))
    return jsonify({
        'success': True,
        'rounds': [r.to_dict() for r in rounds],
        'winner': winner.to_value(),
        'needs_match_level_decision': needs_match_level_decision(
            rounds, player1, player2, state.rounds_per_match),
    })


@app.route('/api/matches/<match_id>/intermediate', methods=['POST'])
def api_save_intermediate(match_id):
    data = _json_body()
    rounds = _parse_rounds(data)
    decision = _parse_decision(data)
    state = update_state(lambda current: current.save_intermediate(
        match_id, rounds, data.get('comment', ''), decision))
    return jsonify({'success': True, 'result': state.match_results[match_id].to_dict()})


@app.route('/api/matches/<match_id>/result', methods=['POST'])
def api_complete_match(match_id):
    """Complete a match from its rounds and advance the winner."""
    data = _json_body()
    rounds = _parse_rounds(data)
    decision = _parse_decision(data)
    state = update_state(lambda current: current.complete_match(
        match_id,
        rounds,
        comment=data.get('comment', ''),
        decision=decision,
        change_reason=data.get('change_reason'),
    ))
    payload = _state_payload(state)
    payload['result'] = state.match_results[match_id].to_dict()
    return jsonify(payload)


@app.route('/api/matches/<match_id>/amend', methods=['POST'])
def api_amend_match_winner(match_id):
    """Change the winner of a completed match. Requires a reason."""
    data = _json_body()
    state = update_state(lambda current: current.amend_match_winner(
        match_id, data.get('winner'), data.get('reason', '')))
    payload = _state_payload(state)
    payload['result'] = state.match_results[match_id].to_dict()
    return jsonify(payload)


@app.route('/api/matches/current', methods=['POST'])
def api_set_current_match():
    data = _json_body()
    state = update_state(lambda current: current.set_current_match(data.get('match_id')))
    return jsonify({'success': True, 'current_match_id': state.current_match_id})


@app.route('/api/participants/add', methods=['POST'])
def api_add_participant():
    data = _json_body()
    name = (data.get('name') or '').strip()
    state = update_state(lambda current: current.add_participant(name))
    return jsonify(_state_payload(state))


@app.route('/api/participants/rename', methods=['POST'])
def api_rename_participant():
    data = _json_body()
    old_name = (data.get('old_name') or '').strip()
    new_name = (data.get('new_name') or '').strip()
    if not old_name:
        raise InvalidInput('Missing participant name')
    state = update_state(lambda current: current.rename_participant(old_name, new_name))
    return jsonify(_state_payload(state))


@app.route('/api/participants/delete', methods=['POST'])
def api_delete_participant():
    data = _json_body()
    name = (data.get('name') or '').strip()
    if not name:
        raise InvalidInput('Missing participant name')
    state = update_state(lambda current: current.delete_participant(name))
    return jsonify(_state_payload(state))


@app.route('/api/participants/<name>/path', methods=['GET'])
def api_participant_path(name):
    """Every match the participant appears in, round by round."""
    state = load_state()
    if name not in state.participants:
        raise NotFound(name)
    path = [
        {'round_index': step['round_index'], 'match_index': step['match_index'],
         'match': step['match'].to_dict()}
        for step in find_participant_path(state.bracket, name)
    ]
    return jsonify({'success': True, 'participant': name, 'path': path})


@app.route('/api/status', methods=['GET'])
def api_status():
    state = load_state()
    status = state.round_status()
    status.update(state.can_modify_participants())
    status['win_methods'] = {code: info['label'] for code, info in WIN_METHODS.items()}
    return jsonify(status)


@app.route('/api/export/results', methods=['GET'])
def api_export_results():
    """Download all match results as JSON."""
    state = load_state()
    filename = f'match-results-{state.tournament_id}.json'
    return Response(
        state.export_results_json(),
        mimetype='application/json',
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )


@app.route('/api/tournaments', methods=['GET'])
def api_list_tournaments():
    store = get_store()
    return jsonify({'active': store.active_id(), 'tournaments': store.list_tournaments()})


@app.route('/api/tournaments/switch', methods=['POST'])
def api_switch_tournament():
    data = _json_body()
    tournament_id = data.get('id')
    if not tournament_id:
        raise InvalidInput('Missing tournament id')
    store = get_store()
    store.set_active(tournament_id)
    state = store.load_active()
    return jsonify(_state_payload(state))


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    app.run(debug=True, port=5000)
