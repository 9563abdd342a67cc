from flask import Blueprint, jsonify
from flask_login import login_required

from blindcode.services import games as game_service, scoring, voting
from . import current_user_id, json_body, require_fields

votes = Blueprint('votes', __name__)


@votes.route('/games/<int:game_id>/votes', methods=['POST'])
@login_required
def cast_vote(game_id):
    data = json_body()
    entry_id, score = require_fields(data, 'entry_id', 'score')
    vote = voting.cast_vote(game_id, entry_id, current_user_id(), score)
    return jsonify(vote.to_dict())


@votes.route('/games/<int:game_id>/winner', methods=['POST'])
@login_required
def select_winner(game_id):
    (entry_id,) = require_fields(json_body(), 'entry_id')
    vote = voting.select_winner(game_id, entry_id, current_user_id())
    return jsonify(vote.to_dict())


@votes.route('/games/<int:game_id>/votes', methods=['GET'])
def game_votes(game_id):
    game_service.get_game(game_id)
    return jsonify([v.to_dict() for v in voting.get_game_votes(game_id)])


@votes.route('/games/<int:game_id>/votes/mine', methods=['GET'])
@login_required
def my_votes(game_id):
    return jsonify([v.to_dict() for v in voting.get_user_votes_for_game(game_id, current_user_id())])


@votes.route('/entries/<int:entry_id>/votes', methods=['GET'])
def entry_votes(entry_id):
    scoring.get_entry(entry_id)
    return jsonify([v.to_dict() for v in voting.get_entry_votes(entry_id)])


@votes.route('/games/<int:game_id>/can-vote', methods=['GET'])
def can_vote(game_id):
    allowed, reason = voting.can_user_vote(game_id, current_user_id())
    return jsonify({'can_vote': allowed, 'reason': reason})


@votes.route('/games/<int:game_id>/leaderboard', methods=['GET'])
def leaderboard(game_id):
    return jsonify(voting.get_leaderboard(game_id))


@votes.route('/games/<int:game_id>/winners', methods=['GET'])
def winners(game_id):
    game_service.get_game(game_id)
    return jsonify(voting.get_winners(game_id))
