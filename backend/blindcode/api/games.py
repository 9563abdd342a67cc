from flask import Blueprint, jsonify, current_app
from flask_login import login_required

from blindcode.errors import NotFound
from blindcode.services import now_ms, games as game_service, roster
from blindcode.services.patch import GamePatch
from blindcode.services.scheduler import expire_if_due
from . import current_user_id, json_body, require_fields

games = Blueprint('games', __name__)


def _game_payload(game):
    payload = game.to_dict(include_creator=True)
    cfg = current_app.config
    # Session settings so clients can drive timers and snapshots
    payload['session'] = {
        'snapshot_interval_ms': int(cfg.get('SNAPSHOT_INTERVAL_MS', 15000)),
        'streak_timeout_ms': int(cfg.get('STREAK_TIMEOUT_MS', 10000)),
        'power_mode_threshold': int(cfg.get('POWER_MODE_THRESHOLD', 200)),
    }
    payload['active_player_count'] = roster.get_active_player_count(game.id)
    payload['time_up'] = game.status == 'active' and game_service.is_time_up(game, now_ms())
    return payload


@games.route('', methods=['POST'])
@login_required
def create_game():
    data = json_body()
    title, reference_image_url = require_fields(data, 'title', 'reference_image_url')
    game = game_service.create_game(
        creator_id=current_user_id(),
        title=title,
        description=data.get('description', ''),
        reference_image_url=reference_image_url,
        hex_colors=data.get('hex_colors', []),
        requirements=data.get('requirements'),
        duration_minutes=data.get('duration_minutes'),
    )
    return jsonify(game.to_dict()), 201


@games.route('/mine', methods=['GET'])
@login_required
def my_games():
    return jsonify([g.to_dict() for g in game_service.get_games_by_creator(current_user_id())])


@games.route('/active', methods=['GET'])
def active_games():
    return jsonify([g.to_dict() for g in game_service.get_active_games()])


@games.route('/code/<string:short_code>', methods=['GET'])
def get_game_by_code(short_code):
    game = game_service.get_game_by_short_code(short_code)
    if not game:
        raise NotFound('Game not found')
    return jsonify(_game_payload(game))


@games.route('/<int:game_id>', methods=['GET'])
def get_game(game_id):
    return jsonify(_game_payload(game_service.get_game(game_id)))


@games.route('/<int:game_id>', methods=['PATCH'])
@login_required
def update_game(game_id):
    game = game_service.update_game(game_id, current_user_id(), GamePatch.from_json(json_body()))
    return jsonify(game.to_dict())


@games.route('/<int:game_id>', methods=['DELETE'])
@login_required
def delete_game(game_id):
    urls = game_service.delete_game(game_id, current_user_id())
    return jsonify({'deleted_asset_urls': urls})


_TRANSITION_ROUTES = {
    'lobby': game_service.open_lobby,
    'start': game_service.start_game,
    'end': game_service.end_game,
    'finish': game_service.finish_game,
    'reset': game_service.reset_game,
}


@games.route('/<int:game_id>/<any(lobby, start, end, finish, reset):action>', methods=['POST'])
@login_required
def transition_game(game_id, action):
    game = _TRANSITION_ROUTES[action](game_id, current_user_id())
    return jsonify(game.to_dict())


@games.route('/<int:game_id>/expire', methods=['POST'])
def expire_game(game_id):
    """Any client may report that time is up; only a due game is ended."""
    game_service.get_game(game_id)
    ended = expire_if_due(game_id)
    return jsonify({'ended': ended, 'game': game_service.get_game(game_id).to_dict()})
