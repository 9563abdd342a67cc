from typing import Optional

from flask import current_app

from blindcode import db
from blindcode.errors import ValidationError
from blindcode.models import User
from . import atomic


def get_user(user_id) -> Optional[User]:
    if user_id is None:
        return None
    return db.session.get(User, user_id)


def get_user_by_provider_id(provider_id) -> Optional[User]:
    return User.query.filter_by(provider_id=str(provider_id)).first()


def upsert_user(provider_id, username, name=None, avatar_url=None, email=None) -> User:
    """Create or refresh the user linked to an external identity.

    Called once per successful login; profile fields are overwritten with
    whatever the provider returned this time.
    """
    if provider_id in (None, '') or not username:
        raise ValidationError('provider_id and username are required')
    with atomic():
        user = get_user_by_provider_id(provider_id)
        if user is None:
            user = User(provider_id=str(provider_id))
            db.session.add(user)
        user.username = username
        user.name = name
        user.avatar_url = avatar_url
        user.email = email
    current_app.logger.info(f"[login] user={user.id} provider_id={user.provider_id}")
    return user
