import time
from typing import Set, Tuple

from flask import current_app, has_app_context

from blindcode import db, socketio
from blindcode.models import Game
from . import atomic, now_ms, notify_game
from .games import close_game, is_time_up


_scheduled_end_keys: Set[Tuple[int, int]] = set()


def _in_app_context(app, fn, *args):
    if has_app_context() and current_app._get_current_object() is app:
        return fn(*args)
    with app.app_context():
        return fn(*args)


def expire_if_due(game_id: int, expected_started_at=None) -> bool:
    """End an active game whose time is up.

    Safe to call from any poller, any number of times, and late: it only
    acts while the game is still in the same active run and past its
    deadline. Returns True if this call ended the game.
    """
    with atomic():
        game = Game.query.filter_by(id=game_id).with_for_update().first()
        if not game or game.status != 'active':
            return False
        if expected_started_at is not None and game.started_at != expected_started_at:
            return False
        now = now_ms()
        if not is_time_up(game, now):
            return False
        auto_submitted = close_game(game, now)
    current_app.logger.info(f"[expire] game={game.id} code={game.short_code} auto_submitted={auto_submitted}")
    notify_game(game)
    return True


def schedule_end_timer(app, game_id: int) -> None:
    """Schedule the automatic end of an active game at its deadline.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Ensures a single timer per (game_id, started_at)
    - A timer left over from an earlier run (reset, restarted) aborts itself
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    def _prepare():
        game = db.session.get(Game, game_id)
        if not game or game.status != 'active' or game.started_at is None:
            return None
        key = (game.id, game.started_at)
        if key in _scheduled_end_keys:
            app.logger.info(f"[timer-skip] game={game.id} started_at={game.started_at} already scheduled")
            return None
        _scheduled_end_keys.add(key)
        delay = max(0.0, (game.deadline_ms() - now_ms()) / 1000.0)
        app.logger.info(f"[timer-set] game={game.id} delay={delay:.1f}s deadline={game.deadline_ms()}")
        return game.started_at, delay

    prepared = _in_app_context(app, _prepare)
    if prepared is None:
        return
    started_at, delay = prepared

    def _fire(gid: int, expected_started_at: int):
        _scheduled_end_keys.discard((gid, expected_started_at))
        ended = expire_if_due(gid, expected_started_at=expected_started_at)
        app.logger.info(f"[timer-fire] game={gid} ended={ended}")

    def _worker(gid: int, expected_started_at: int, delay_sec: float):
        if app.config.get('TESTING'):
            # Delays come from the injected clock; fire without sleeping
            delay_sec = 0.0
        hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0) or 0)
        if hb > 0:
            slept = 0.0
            while slept < delay_sec:
                step = min(hb, delay_sec - slept)
                time.sleep(step)
                slept += step
                app.logger.info(f"[timer-heartbeat] game={gid} remaining={max(0.0, delay_sec - slept):.0f}s")
        elif delay_sec > 0:
            time.sleep(delay_sec)
        _in_app_context(app, _fire, gid, expected_started_at)

    if app.config.get('TESTING'):
        _worker(game_id, started_at, delay)
    else:
        socketio.start_background_task(_worker, game_id, started_at, delay)
