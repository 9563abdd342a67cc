from typing import List, Optional

from flask import current_app

from blindcode import db
from blindcode.errors import NotFound, Unauthorized, ValidationError
from blindcode.models import Game, Asset, ASSET_TYPES, generate_code
from . import atomic
from .patch import AssetPatch


def _require_text(name, value):
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{name} is required')


def _owned_game(game_id, creator_id) -> Game:
    game = db.session.get(Game, game_id)
    if not game:
        raise NotFound('Game not found')
    if creator_id is None or game.creator_id != creator_id:
        raise Unauthorized('Only the creator can manage assets')
    return game


def _owned_asset(asset_id, creator_id) -> Asset:
    asset = db.session.get(Asset, asset_id)
    if not asset:
        raise NotFound('Asset not found')
    _owned_game(asset.game_id, creator_id)
    return asset


def add_asset(game_id, creator_id, name, url, type='image') -> Asset:
    _require_text('name', name)
    _require_text('url', url)
    if type not in ASSET_TYPES:
        raise ValidationError(f"type must be one of {', '.join(ASSET_TYPES)}")
    with atomic():
        game = _owned_game(game_id, creator_id)
        asset = Asset(
            game_id=game.id,
            short_code=generate_code(Asset, 'short_code', current_app.config.get('ASSET_CODE_LENGTH', 4)),
            name=name,
            url=url,
            type=type,
        )
        db.session.add(asset)
    current_app.logger.info(f"[asset-add] game={game_id} asset={asset.id} code={asset.short_code}")
    return asset


def update_asset(asset_id, creator_id, patch: AssetPatch) -> Asset:
    with atomic():
        asset = _owned_asset(asset_id, creator_id)
        for name, value in patch.changes():
            _require_text(name, value)
            setattr(asset, name, value)
    return asset


def remove_asset(asset_id, creator_id) -> str:
    """Delete an asset and return its URL for external cleanup."""
    with atomic():
        asset = _owned_asset(asset_id, creator_id)
        url = asset.url
        db.session.delete(asset)
    return url


def get_game_assets(game_id) -> List[Asset]:
    return Asset.query.filter_by(game_id=game_id).order_by(Asset.id).all()


def get_asset_by_short_code(short_code) -> Optional[Asset]:
    if not short_code:
        return None
    return Asset.query.filter_by(short_code=short_code.lower()).first()
