from flask import request
from flask_login import current_user

from blindcode.errors import ValidationError
from blindcode.services import roster

PLAYER_SECRET_HEADER = 'X-Player-Secret'


def current_user_id():
    if current_user and current_user.is_authenticated:
        return current_user.id
    return None


def json_body():
    return request.get_json(silent=True) or {}


def require_fields(data, *names):
    missing = [n for n in names if data.get(n) is None]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")
    return [data[n] for n in names]


def authorize_player(player_id):
    """The caller's login for registered players, the secret header for guests."""
    return roster.authorize_player(player_id, current_user_id(), request.headers.get(PLAYER_SECRET_HEADER))
