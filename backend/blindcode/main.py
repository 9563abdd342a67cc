import hmac

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user

from blindcode.services.users import upsert_user

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the blind coding game server!'})


def _trusted_identity_request():
    expected = current_app.config.get('IDENTITY_SHARED_SECRET') or ''
    provided = request.headers.get('X-Identity-Secret', '')
    return bool(expected) and hmac.compare_digest(expected, provided)


@main.route('/auth/github', methods=['POST'])
def github_login():
    """Log in a user whose GitHub OAuth exchange was done by the frontend.

    The frontend proves it is trusted with the shared identity secret.
    """
    if not _trusted_identity_request():
        return jsonify({'error': 'Untrusted identity provider'}), 401
    data = request.get_json(silent=True) or {}
    user = upsert_user(
        provider_id=data.get('github_id'),
        username=data.get('username'),
        name=data.get('name'),
        avatar_url=data.get('avatar_url'),
        email=data.get('email'),
    )
    login_user(user, remember=True)
    return jsonify({'user': user.to_dict()})


@main.route('/auth/me')
@login_required
def me():
    return jsonify({'user': current_user.to_dict()})


@main.route('/auth/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'message': 'Logged out successfully.'})
