"""Game domain services: lifecycle, roster, scoring, voting and timers.

This package contains the domain logic imported by HTTP routes and socket
handlers, keeping transport concerns separated from core game mechanics.
Every mutation runs inside ``atomic()`` so it commits once or not at all.
"""

import time
from contextlib import contextmanager

from flask import current_app

from blindcode import db, socketio


def system_clock() -> int:
    return int(time.time() * 1000)


def now_ms() -> int:
    """Current time in epoch ms from the app's injected ``CLOCK``."""
    clock = current_app.config.get('CLOCK') or system_clock
    return int(clock())


@contextmanager
def atomic():
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def notify_game(game) -> None:
    """Tell viewers in the game's room to refetch state."""
    socketio.emit('state_update', {'game_code': game.short_code}, to=f"game:{game.short_code}", namespace='/ws')
