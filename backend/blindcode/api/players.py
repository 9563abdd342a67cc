from flask import Blueprint, jsonify

from blindcode.services import games as game_service, roster
from . import authorize_player, current_user_id, json_body

players = Blueprint('players', __name__)


@players.route('/games/<int:game_id>/players', methods=['POST'])
def join_game(game_id):
    """Join as the logged-in user, or as a guest when not logged in.

    Guests must keep the returned player id and ``player_secret``; the
    secret goes in the X-Player-Secret header of entry writes and leave.
    """
    data = json_body()
    player = roster.join_game(game_id, data.get('handle'), user_id=current_user_id())
    entry = roster.get_player_entry(player.id)
    return jsonify({
        'player': player.to_dict(),
        'entry_id': entry.id,
        'player_secret': player.secret,
    }), 201


@players.route('/games/<int:game_id>/players', methods=['GET'])
def list_players(game_id):
    game_service.get_game(game_id)
    return jsonify([p.to_dict(include_user=True) for p in roster.get_game_players(game_id)])


@players.route('/games/<int:game_id>/players/count', methods=['GET'])
def active_player_count(game_id):
    game_service.get_game(game_id)
    return jsonify({'active': roster.get_active_player_count(game_id)})


@players.route('/games/<int:game_id>/players/me', methods=['GET'])
def my_player(game_id):
    user_id = current_user_id()
    player = roster.get_player_by_user_and_game(user_id, game_id) if user_id else None
    return jsonify(player.to_dict() if player else None)


@players.route('/players/<int:player_id>', methods=['GET'])
def get_player(player_id):
    return jsonify(roster.get_player(player_id).to_dict(include_user=True))


@players.route('/players/<int:player_id>/leave', methods=['POST'])
def leave_game(player_id):
    authorize_player(player_id)
    return jsonify(roster.leave_game(player_id).to_dict())


@players.route('/players/<int:player_id>/entry', methods=['GET'])
def player_entry(player_id):
    return jsonify(roster.get_player_entry(player_id).to_dict())
