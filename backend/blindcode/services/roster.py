import hmac
import secrets
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from blindcode import db
from blindcode.errors import NotFound, Unauthorized, InvalidStateTransition, ValidationError
from blindcode.models import Game, Player, Entry
from . import atomic, now_ms, notify_game

JOINABLE_STATUSES = ('lobby', 'active')
PLAYER_SECRET_BYTES = 24


def _find_player(user_id, game_id) -> Optional[Player]:
    return Player.query.filter_by(user_id=user_id, game_id=game_id).first()


def join_game(game_id, handle, user_id=None) -> Player:
    """Admit a player and create their empty entry.

    A registered user who already joined gets the same player back,
    reactivated, with the original handle. Guests always get a new player;
    the client keeps the returned id to reconnect.
    """
    if not isinstance(handle, str) or not handle.strip():
        raise ValidationError('handle is required')
    try:
        return _join(game_id, handle.strip(), user_id)
    except IntegrityError:
        # A concurrent join for the same (user, game) won the insert
        if user_id is None:
            raise
        return _join(game_id, handle.strip(), user_id)


def _join(game_id, handle, user_id) -> Player:
    with atomic():
        game = db.session.get(Game, game_id)
        if not game:
            raise NotFound('Game not found')
        if game.status == 'draft':
            raise InvalidStateTransition('This game is not open for players yet')

        player = _find_player(user_id, game.id) if user_id is not None else None
        rejoined = player is not None
        if rejoined:
            player.is_active = True
        else:
            if game.status not in JOINABLE_STATUSES:
                raise InvalidStateTransition(f"Cannot join a game that is '{game.status}'")
            player = Player(
                game_id=game.id,
                user_id=user_id,
                handle=handle,
                joined_at=now_ms(),
                is_active=True,
                secret=secrets.token_urlsafe(PLAYER_SECRET_BYTES),
            )
            db.session.add(player)
            db.session.flush()
            db.session.add(Entry(
                game_id=game.id,
                player_id=player.id,
                html='',
                is_submitted=False,
                total_score=0,
                max_streak=0,
                total_keystrokes=0,
            ))
    current_app.logger.info(
        f"[join] game={game.id} player={player.id} user={user_id} rejoin={rejoined}"
    )
    notify_game(game)
    return player


def leave_game(player_id) -> Player:
    with atomic():
        player = db.session.get(Player, player_id)
        if not player:
            raise NotFound('Player not found')
        player.is_active = False
    game = db.session.get(Game, player.game_id)
    current_app.logger.info(f"[leave] game={player.game_id} player={player.id}")
    if game:
        notify_game(game)
    return player


def get_player(player_id) -> Player:
    player = db.session.get(Player, player_id)
    if not player:
        raise NotFound('Player not found')
    return player


def authorize_player(player_id, user_id=None, secret=None) -> Player:
    """Check the caller may act for this player and return it.

    A registered player is only ever acted for by its own login; a guest by
    whoever holds the secret handed out at join.
    """
    player = get_player(player_id)
    if player.user_id is not None:
        if user_id != player.user_id:
            raise Unauthorized('You can only act for your own player')
    elif not secret or not hmac.compare_digest(player.secret.encode(), str(secret).encode()):
        raise Unauthorized('A valid player secret is required')
    return player


def get_player_by_user_and_game(user_id, game_id) -> Optional[Player]:
    return _find_player(user_id, game_id)


def get_game_players(game_id) -> List[Player]:
    return Player.query.filter_by(game_id=game_id).order_by(Player.id).all()


def get_active_player_count(game_id) -> int:
    return Player.query.filter_by(game_id=game_id, is_active=True).count()


def get_player_entry(player_id) -> Entry:
    entry = Entry.query.filter_by(player_id=player_id).first()
    if not entry:
        raise NotFound('Entry not found')
    return entry
