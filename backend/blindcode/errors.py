"""Typed failures raised by the game services.

Routes never catch these; the handler registered in ``create_app`` turns
them into ``{'error': message}`` JSON responses.
"""

from flask import jsonify


class GameError(Exception):
    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message, 'type': type(self).__name__}


class NotFound(GameError):
    status_code = 404


class Unauthorized(GameError):
    status_code = 403


class InvalidStateTransition(GameError):
    status_code = 409


class ValidationError(GameError):
    status_code = 400


def register_error_handlers(app):
    @app.errorhandler(GameError)
    def handle_game_error(exc):
        app.logger.info(f"[rejected] {type(exc).__name__}: {exc.message}")
        return jsonify(exc.to_dict()), exc.status_code
