import secrets
import string
from typing import List, Optional

from flask import current_app

from blindcode import db
from blindcode.errors import NotFound, Unauthorized, ValidationError
from blindcode.models import Game, VoteToken
from . import atomic, now_ms

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits


def generate_token(length: int) -> str:
    while True:
        token = ''.join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))
        if not VoteToken.query.filter_by(token=token).first():
            return token


def _require_creator(game_id, creator_id) -> Game:
    game = db.session.get(Game, game_id)
    if not game:
        raise NotFound('Game not found')
    if creator_id is None or game.creator_id != creator_id:
        raise Unauthorized('Only the game creator can manage vote tokens')
    return game


def _load_owned_token(token_id, creator_id) -> VoteToken:
    vote_token = db.session.get(VoteToken, token_id)
    if not vote_token:
        raise NotFound('Token not found')
    game = db.session.get(Game, vote_token.game_id)
    if not game or creator_id is None or game.creator_id != creator_id:
        raise Unauthorized('Only the game creator can manage vote tokens')
    return vote_token


def create_vote_token(game_id, creator_id, label=None) -> VoteToken:
    if label is not None and not isinstance(label, str):
        raise ValidationError('label must be a string')
    with atomic():
        game = _require_creator(game_id, creator_id)
        vote_token = VoteToken(
            game_id=game.id,
            token=generate_token(current_app.config.get('VOTE_TOKEN_LENGTH', 12)),
            label=label,
            created_at=now_ms(),
            is_active=True,
        )
        db.session.add(vote_token)
    current_app.logger.info(f"[token-create] game={game_id} token_id={vote_token.id} label={label!r}")
    return vote_token


def get_game_vote_tokens(game_id, creator_id) -> List[VoteToken]:
    game = _require_creator(game_id, creator_id)
    return VoteToken.query.filter_by(game_id=game.id).order_by(VoteToken.id).all()


def claim_vote_token(token, user_id) -> dict:
    """Bind a token to the first user who claims it.

    Claiming again as the same user is a no-op with the same result; any
    other user is refused.
    """
    if user_id is None:
        raise Unauthorized('Login required to claim a vote token')
    with atomic():
        vote_token = VoteToken.query.filter_by(token=token).with_for_update().first()
        if not vote_token:
            raise NotFound('Invalid vote token')
        if not vote_token.is_active:
            raise Unauthorized('This vote token is no longer active')
        if vote_token.used_by is not None and vote_token.used_by != user_id:
            raise Unauthorized('This vote token has already been claimed by another user')
        if vote_token.used_by is None:
            vote_token.used_by = user_id
            current_app.logger.info(f"[token-claim] game={vote_token.game_id} token_id={vote_token.id} user={user_id}")
    return {'game_id': vote_token.game_id, 'label': vote_token.label}


def deactivate_vote_token(token_id, creator_id) -> VoteToken:
    with atomic():
        vote_token = _load_owned_token(token_id, creator_id)
        vote_token.is_active = False
    return vote_token


def delete_vote_token(token_id, creator_id) -> None:
    with atomic():
        vote_token = _load_owned_token(token_id, creator_id)
        db.session.delete(vote_token)


def get_token_info(token) -> Optional[dict]:
    """Public view of a token for the judge landing page."""
    vote_token = VoteToken.query.filter_by(token=token).first()
    if not vote_token or not vote_token.is_active:
        return None
    game = db.session.get(Game, vote_token.game_id)
    if not game:
        return None
    return {
        'game_id': vote_token.game_id,
        'game_title': game.title,
        'game_status': game.status,
        'label': vote_token.label,
        'is_claimed': vote_token.used_by is not None,
    }
