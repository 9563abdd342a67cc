import re
from typing import List, Optional

from flask import current_app

from blindcode import db
from blindcode.errors import NotFound, Unauthorized, InvalidStateTransition, ValidationError
from blindcode.models import (
    Game, Asset, Player, Entry, ProgressSnapshot, Vote, VoteToken, generate_code,
)
from . import atomic, now_ms, notify_game
from .patch import GamePatch
from .users import get_user

# action -> (allowed source statuses, target status)
TRANSITIONS = {
    'open_lobby': (('draft',), 'lobby'),
    'start_game': (('lobby',), 'active'),
    'end_game': (('active',), 'voting'),
    'finish_game': (('voting',), 'finished'),
    'reset_game': (('active', 'voting', 'finished'), 'lobby'),
}
EDITABLE_STATUSES = ('draft', 'lobby')

_HEX_RE = re.compile(r'^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$')


def _validate_required_text(name, value):
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{name} is required')


def _validate_hex_colors(colors):
    if not isinstance(colors, list):
        raise ValidationError('hex_colors must be a list')
    for color in colors:
        if not isinstance(color, dict) or not color.get('name') or not isinstance(color.get('hex'), str):
            raise ValidationError('Each color needs a name and a hex value')
        if not _HEX_RE.match(color['hex']):
            raise ValidationError(f"Invalid hex color: {color['hex']}")


def _validate_duration(minutes):
    if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes <= 0:
        raise ValidationError('duration_minutes must be a positive integer')


def _validate_optional_text(name, value):
    if value is not None and not isinstance(value, str):
        raise ValidationError(f'{name} must be a string')


# ---- Queries ----

def get_game(game_id) -> Game:
    game = db.session.get(Game, game_id)
    if not game:
        raise NotFound('Game not found')
    return game


def get_game_by_short_code(short_code) -> Optional[Game]:
    if not short_code:
        return None
    return Game.query.filter_by(short_code=short_code.lower()).first()


def get_games_by_creator(creator_id) -> List[Game]:
    return Game.query.filter_by(creator_id=creator_id).order_by(Game.id).all()


def get_active_games() -> List[Game]:
    return Game.query.filter_by(status='active').order_by(Game.id).all()


def is_time_up(game: Game, now: int) -> bool:
    deadline = game.deadline_ms()
    return deadline is not None and now >= deadline


# ---- Mutations ----

def _lock_game(game_id) -> Game:
    game = Game.query.filter_by(id=game_id).with_for_update().first()
    if not game:
        raise NotFound('Game not found')
    return game


def _load_owned_game(game_id, creator_id) -> Game:
    game = _lock_game(game_id)
    if creator_id is None or game.creator_id != creator_id:
        raise Unauthorized('Only the creator can manage this game')
    return game


def _transition(game: Game, action: str) -> str:
    sources, target = TRANSITIONS[action]
    if game.status not in sources:
        raise InvalidStateTransition(
            f"Cannot {action.replace('_', ' ')} while the game is '{game.status}'"
        )
    return target


def create_game(creator_id, title, description, reference_image_url, hex_colors,
                requirements=None, duration_minutes=None) -> Game:
    _validate_required_text('title', title)
    _validate_required_text('reference_image_url', reference_image_url)
    _validate_optional_text('description', description)
    _validate_optional_text('requirements', requirements)
    _validate_hex_colors(hex_colors)
    if duration_minutes is None:
        duration_minutes = current_app.config.get('DEFAULT_DURATION_MINUTES', 15)
    _validate_duration(duration_minutes)

    if not get_user(creator_id):
        raise NotFound('Creator not found')

    with atomic():
        game = Game(
            creator_id=creator_id,
            title=title,
            description=description or '',
            short_code=generate_code(Game, 'short_code', current_app.config.get('SHORT_CODE_LENGTH', 6)),
            reference_image_url=reference_image_url,
            requirements=requirements,
            duration_minutes=duration_minutes,
            status='draft',
        )
        game.hex_colors = hex_colors
        db.session.add(game)
    current_app.logger.info(f"[create] game={game.id} code={game.short_code} creator={creator_id}")
    return game


def update_game(game_id, creator_id, patch: GamePatch) -> Game:
    with atomic():
        game = _load_owned_game(game_id, creator_id)
        if game.status not in EDITABLE_STATUSES:
            raise InvalidStateTransition(f"Cannot edit a game that is '{game.status}'")
        for name, value in patch.changes():
            if name in ('title', 'reference_image_url'):
                _validate_required_text(name, value)
            elif name in ('description', 'requirements'):
                _validate_optional_text(name, value)
                if name == 'description' and value is None:
                    value = ''
            elif name == 'hex_colors':
                _validate_hex_colors(value)
            elif name == 'duration_minutes':
                _validate_duration(value)
            setattr(game, name, value)
    notify_game(game)
    return game


def open_lobby(game_id, creator_id) -> Game:
    with atomic():
        game = _load_owned_game(game_id, creator_id)
        game.status = _transition(game, 'open_lobby')
    current_app.logger.info(f"[lobby] game={game.id} code={game.short_code}")
    notify_game(game)
    return game


def start_game(game_id, creator_id) -> Game:
    with atomic():
        game = _load_owned_game(game_id, creator_id)
        game.status = _transition(game, 'start_game')
        game.started_at = now_ms()
        game.ended_at = None
    current_app.logger.info(f"[start] game={game.id} code={game.short_code} duration={game.duration_minutes}m")
    notify_game(game)
    from .scheduler import schedule_end_timer
    schedule_end_timer(current_app._get_current_object(), game.id)
    return game


def close_game(game: Game, now: int) -> int:
    """Move an active game to voting and force-submit unsubmitted entries.

    Runs inside the caller's transaction. Returns the number of entries
    that were auto-submitted.
    """
    pending = Entry.query.filter_by(game_id=game.id, is_submitted=False).all()
    for entry in pending:
        entry.is_submitted = True
        entry.submitted_at = now
    game.status = 'voting'
    game.ended_at = now
    return len(pending)


def end_game(game_id, creator_id) -> Game:
    with atomic():
        game = _load_owned_game(game_id, creator_id)
        _transition(game, 'end_game')
        auto_submitted = close_game(game, now_ms())
    current_app.logger.info(f"[end] game={game.id} code={game.short_code} auto_submitted={auto_submitted}")
    notify_game(game)
    return game


def finish_game(game_id, creator_id) -> Game:
    with atomic():
        game = _load_owned_game(game_id, creator_id)
        game.status = _transition(game, 'finish_game')
    current_app.logger.info(f"[finish] game={game.id} code={game.short_code}")
    notify_game(game)
    return game


def _delete_participants(game_id) -> None:
    """Bulk-delete snapshots, votes, entries and players of a game.

    Each step is a no-op when the rows are already gone.
    """
    entry_ids = [row.id for row in Entry.query.with_entities(Entry.id).filter_by(game_id=game_id)]
    ProgressSnapshot.query.filter(ProgressSnapshot.entry_id.in_(entry_ids)).delete(synchronize_session=False)
    Vote.query.filter_by(game_id=game_id).delete(synchronize_session=False)
    Entry.query.filter_by(game_id=game_id).delete(synchronize_session=False)
    Player.query.filter_by(game_id=game_id).delete(synchronize_session=False)


def reset_game(game_id, creator_id) -> Game:
    """Send a played game back to the lobby, keeping its setup and assets."""
    with atomic():
        game = _load_owned_game(game_id, creator_id)
        game.status = _transition(game, 'reset_game')
        _delete_participants(game.id)
        game.started_at = None
        game.ended_at = None
    current_app.logger.info(f"[reset] game={game.id} code={game.short_code}")
    notify_game(game)
    return game


def delete_game(game_id, creator_id) -> List[str]:
    """Delete a game and everything attached to it.

    Returns the externally hosted URLs (assets and the reference image) that
    are now orphaned; purging them is left to the caller.
    """
    with atomic():
        game = _load_owned_game(game_id, creator_id)
        code = game.short_code
        assets = Asset.query.filter_by(game_id=game.id).all()
        deleted_asset_urls = [a.url for a in assets]
        if game.reference_image_url:
            deleted_asset_urls.append(game.reference_image_url)
        Asset.query.filter_by(game_id=game.id).delete(synchronize_session=False)
        _delete_participants(game.id)
        VoteToken.query.filter_by(game_id=game.id).delete(synchronize_session=False)
        db.session.delete(game)
    current_app.logger.info(f"[delete] game={game_id} code={code} urls={len(deleted_asset_urls)}")
    return deleted_asset_urls
