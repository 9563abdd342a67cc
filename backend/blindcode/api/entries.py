from flask import Blueprint, jsonify, request

from blindcode.errors import ValidationError
from blindcode.services import games as game_service, scoring
from . import authorize_player, json_body, require_fields

entries = Blueprint('entries', __name__)


@entries.route('/games/<int:game_id>/entries', methods=['GET'])
def game_entries(game_id):
    game_service.get_game(game_id)
    return jsonify([e.to_dict(include_player=True) for e in scoring.get_game_entries(game_id)])


@entries.route('/games/<int:game_id>/entries/submitted', methods=['GET'])
def submitted_entries(game_id):
    game_service.get_game(game_id)
    return jsonify([e.to_dict(include_player=True) for e in scoring.get_submitted_entries(game_id)])


@entries.route('/entries/<int:entry_id>', methods=['GET'])
def get_entry(entry_id):
    return jsonify(scoring.get_entry(entry_id).to_dict(include_player=True))


@entries.route('/entries/<int:entry_id>', methods=['PUT'])
def update_entry(entry_id):
    authorize_player(scoring.get_entry(entry_id).player_id)
    data = json_body()
    html, streak, keystroke_count = require_fields(data, 'html', 'streak', 'keystroke_count')
    entry = scoring.update_entry(entry_id, html, streak, keystroke_count)
    return jsonify(entry.to_dict())


@entries.route('/entries/<int:entry_id>/snapshots', methods=['POST'])
def save_snapshot(entry_id):
    authorize_player(scoring.get_entry(entry_id).player_id)
    data = json_body()
    html, streak, keystroke_count, timestamp = require_fields(data, 'html', 'streak', 'keystroke_count', 'timestamp')
    snapshot = scoring.save_progress_snapshot(
        entry_id, html, streak, bool(data.get('power_mode', False)), keystroke_count, timestamp,
    )
    return jsonify(snapshot.to_dict()), 201


@entries.route('/entries/<int:entry_id>/snapshots', methods=['GET'])
def list_snapshots(entry_id):
    scoring.get_entry(entry_id)
    return jsonify([s.to_dict() for s in scoring.get_progress_snapshots(entry_id)])


@entries.route('/entries/<int:entry_id>/replay', methods=['GET'])
def replay(entry_id):
    target = request.args.get('target_duration_sec', type=int)
    return jsonify(scoring.get_replay(entry_id, target_duration_sec=target))


@entries.route('/entries/<int:entry_id>/submit', methods=['POST'])
def submit_entry(entry_id):
    authorize_player(scoring.get_entry(entry_id).player_id)
    data = json_body()
    html, total_score, max_streak, total_keystrokes = require_fields(
        data, 'html', 'total_score', 'max_streak', 'total_keystrokes'
    )
    entry = scoring.submit_entry(entry_id, html, total_score, max_streak, total_keystrokes)
    return jsonify(entry.to_dict())


@entries.route('/score', methods=['POST'])
def calculate_score():
    """Both scoring variants for the given typing metrics."""
    data = json_body()
    keystroke_count, max_streak = require_fields(data, 'keystroke_count', 'max_streak')
    power_mode_seconds = data.get('power_mode_seconds', 0)
    for name, value in (('keystroke_count', keystroke_count), ('max_streak', max_streak),
                        ('power_mode_seconds', power_mode_seconds)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(f'{name} must be a non-negative integer')
    return jsonify({
        'score': scoring.calculate_score(keystroke_count, max_streak, power_mode_seconds),
        'submit_score': scoring.submit_score(keystroke_count, max_streak),
    })
