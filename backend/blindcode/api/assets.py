from flask import Blueprint, jsonify, redirect
from flask_login import login_required

from blindcode.errors import NotFound
from blindcode.services import games as game_service, assets as asset_service
from blindcode.services.patch import AssetPatch
from . import current_user_id, json_body, require_fields

assets = Blueprint('assets', __name__)


@assets.route('/api/games/<int:game_id>/assets', methods=['GET'])
def list_assets(game_id):
    game_service.get_game(game_id)
    return jsonify([a.to_dict() for a in asset_service.get_game_assets(game_id)])


@assets.route('/api/games/<int:game_id>/assets', methods=['POST'])
@login_required
def add_asset(game_id):
    data = json_body()
    name, url = require_fields(data, 'name', 'url')
    asset = asset_service.add_asset(game_id, current_user_id(), name, url, data.get('type', 'image'))
    return jsonify(asset.to_dict()), 201


@assets.route('/api/assets/<int:asset_id>', methods=['PATCH'])
@login_required
def update_asset(asset_id):
    asset = asset_service.update_asset(asset_id, current_user_id(), AssetPatch.from_json(json_body()))
    return jsonify(asset.to_dict())


@assets.route('/api/assets/<int:asset_id>', methods=['DELETE'])
@login_required
def remove_asset(asset_id):
    url = asset_service.remove_asset(asset_id, current_user_id())
    return jsonify({'deleted_asset_urls': [url]})


@assets.route('/a/<string:short_code>', methods=['GET'])
def asset_redirect(short_code):
    """Short link that players paste into their markup."""
    asset = asset_service.get_asset_by_short_code(short_code)
    if not asset:
        raise NotFound('Asset not found')
    response = redirect(asset.url, code=302)
    response.headers['Cache-Control'] = 'public, max-age=31536000, immutable'
    return response
