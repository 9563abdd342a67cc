from flask import Blueprint, jsonify
from flask_login import login_required

from blindcode.errors import NotFound
from blindcode.services import tokens as token_service
from . import current_user_id, json_body

tokens = Blueprint('tokens', __name__)


@tokens.route('/games/<int:game_id>/tokens', methods=['POST'])
@login_required
def create_token(game_id):
    vote_token = token_service.create_vote_token(game_id, current_user_id(), label=json_body().get('label'))
    return jsonify(vote_token.to_dict()), 201


@tokens.route('/games/<int:game_id>/tokens', methods=['GET'])
@login_required
def list_tokens(game_id):
    return jsonify([t.to_dict() for t in token_service.get_game_vote_tokens(game_id, current_user_id())])


@tokens.route('/tokens/<string:token>', methods=['GET'])
def token_info(token):
    info = token_service.get_token_info(token)
    if info is None:
        raise NotFound('Invalid vote token')
    return jsonify(info)


@tokens.route('/tokens/<string:token>/claim', methods=['POST'])
@login_required
def claim_token(token):
    return jsonify(token_service.claim_vote_token(token, current_user_id()))


@tokens.route('/vote-tokens/<int:token_id>/deactivate', methods=['POST'])
@login_required
def deactivate_token(token_id):
    return jsonify(token_service.deactivate_vote_token(token_id, current_user_id()).to_dict())


@tokens.route('/vote-tokens/<int:token_id>', methods=['DELETE'])
@login_required
def delete_token(token_id):
    token_service.delete_vote_token(token_id, current_user_id())
    return jsonify({'deleted': True})
