import os
import sys
import pytest

# Ensure the backend root (containing the `blindcode` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from blindcode import create_app, db, socketio

IDENTITY_SECRET = 'test-identity-secret'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = 'http://localhost:3000'
    IDENTITY_SHARED_SECRET = IDENTITY_SECRET
    DEFAULT_DURATION_MINUTES = 15
    SHORT_CODE_LENGTH = 6
    ASSET_CODE_LENGTH = 4
    VOTE_TOKEN_LENGTH = 12
    STREAK_TIMEOUT_MS = 10000
    POWER_MODE_THRESHOLD = 200
    SNAPSHOT_INTERVAL_MS = 15000
    REPLAY_TARGET_DURATION_SEC = 10
    STRICT_SCORE_VALIDATION = False
    TIMER_HEARTBEAT_SEC = 0


class FakeClock:
    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def base_app(clock):
    """App with its tables created but no application context left pushed.

    HTTP tests use this so every test-client request gets its own app
    context, and Flask-Login's per-context user cache cannot leak between
    clients.
    """
    application = create_app(TestConfig)
    application.config['CLOCK'] = clock
    with application.app_context():
        # Ensure models are imported so tables are created
        import blindcode.models  # noqa: F401
        db.create_all()
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def flask_app(base_app):
    """The app with an application context pushed, for service-level tests."""
    with base_app.app_context():
        yield base_app
        db.session.remove()


@pytest.fixture()
def client(base_app):
    return base_app.test_client()



@pytest.fixture()
def make_user(flask_app):
    from blindcode.services.users import upsert_user
    counter = {'n': 0}

    def _make(username=None):
        counter['n'] += 1
        n = counter['n']
        return upsert_user(provider_id=str(1000 + n), username=username or f'user{n}')
    return _make


@pytest.fixture()
def make_game(flask_app):
    from blindcode.services import games as game_service

    def _make(creator, status='draft', **overrides):
        fields = {
            'title': 'Landing page',
            'description': 'Recreate the hero section',
            'reference_image_url': 'https://utfs.io/f/reference-key',
            'hex_colors': [{'name': 'Background', 'hex': '#112233'}],
        }
        fields.update(overrides)
        game = game_service.create_game(creator_id=creator.id, **fields)
        path = ['lobby', 'active', 'voting', 'finished']
        steps = {
            'lobby': game_service.open_lobby,
            'active': game_service.start_game,
            'voting': game_service.end_game,
            'finished': game_service.finish_game,
        }
        if status != 'draft':
            for step in path[:path.index(status) + 1]:
                steps[step](game.id, creator.id)
        return game
    return _make


@pytest.fixture()
def login(base_app):
    """Return a fresh test client logged in as the given GitHub profile."""
    def _login(github_id, username):
        c = base_app.test_client()
        res = c.post(
            '/auth/github',
            json={'github_id': github_id, 'username': username},
            headers={'X-Identity-Secret': IDENTITY_SECRET},
        )
        assert res.status_code == 200
        return c, res.get_json()['user']
    return _login


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
