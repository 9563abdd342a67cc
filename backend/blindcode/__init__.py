from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from blindcode.config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def _allowed_origins(config):
    raw = config.get('CORS_ORIGINS') or ''
    return [o.strip() for o in raw.split(',') if o.strip()]


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = _allowed_origins(flask_app.config)

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from blindcode.errors import register_error_handlers
    register_error_handlers(flask_app)

    # Import and register blueprints here
    from blindcode.main import main
    flask_app.register_blueprint(main)

    from blindcode.api.games import games
    from blindcode.api.players import players
    from blindcode.api.entries import entries
    from blindcode.api.votes import votes
    from blindcode.api.tokens import tokens
    from blindcode.api.assets import assets
    flask_app.register_blueprint(games, url_prefix='/api/games')
    flask_app.register_blueprint(players, url_prefix='/api')
    flask_app.register_blueprint(entries, url_prefix='/api')
    flask_app.register_blueprint(votes, url_prefix='/api')
    flask_app.register_blueprint(tokens, url_prefix='/api')
    flask_app.register_blueprint(assets)

    from blindcode.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Flask-Login user loader
    from blindcode.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Login required'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
