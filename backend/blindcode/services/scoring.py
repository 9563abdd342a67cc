import math
from typing import List, Optional

from flask import current_app

from blindcode import db
from blindcode.errors import NotFound, InvalidStateTransition, ValidationError
from blindcode.models import Game, Entry, ProgressSnapshot
from . import atomic, now_ms

STREAK_TIMEOUT_MS = 10 * 1000
POWER_MODE_THRESHOLD = 200
POWER_MODE_FLAT_BONUS = 100


def calculate_score(keystroke_count: int, max_streak: int, power_mode_seconds: int = 0) -> int:
    """Score with a bonus for every second spent in power mode.

    keystrokes + floor(max_streak * 1.5) + power_mode_seconds * 2
    """
    return int(keystroke_count + math.floor(max_streak * 1.5) + power_mode_seconds * 2)


def submit_score(keystroke_count: int, max_streak: int, power_mode_threshold: int = POWER_MODE_THRESHOLD) -> int:
    """Score used at submit time: a flat bonus once power mode was reached."""
    bonus = POWER_MODE_FLAT_BONUS if max_streak >= power_mode_threshold else 0
    return int(keystroke_count + math.floor(max_streak * 1.5) + bonus)


class StreakTracker:
    """Typing-session state for one player, driven by edit timestamps (ms).

    Each edit extends the streak by one. A gap of ``timeout_ms`` without
    edits drops the streak to 0 and leaves power mode; ``max_streak`` is
    never reset.
    """

    def __init__(self, timeout_ms: int = STREAK_TIMEOUT_MS, power_mode_threshold: int = POWER_MODE_THRESHOLD):
        self.timeout_ms = timeout_ms
        self.power_mode_threshold = power_mode_threshold
        self.streak = 0
        self.max_streak = 0
        self.keystroke_count = 0
        self.power_mode = False
        self.power_mode_ms = 0
        self._last_edit_ms: Optional[int] = None
        self._power_since: Optional[int] = None

    def record_edit(self, at_ms: int) -> None:
        self.tick(at_ms)
        self.keystroke_count += 1
        self.streak += 1
        self.max_streak = max(self.max_streak, self.streak)
        if not self.power_mode and self.streak >= self.power_mode_threshold:
            self.power_mode = True
            self._power_since = at_ms
        self._last_edit_ms = at_ms

    def tick(self, at_ms: int) -> None:
        """Apply the inactivity timeout as of ``at_ms``."""
        if self._last_edit_ms is None or self.streak == 0:
            return
        expires_at = self._last_edit_ms + self.timeout_ms
        if at_ms >= expires_at:
            self._drop_streak(expires_at)

    def reset(self, at_ms: Optional[int] = None) -> None:
        self._drop_streak(at_ms if at_ms is not None else self._last_edit_ms)

    def _drop_streak(self, at_ms: Optional[int]) -> None:
        if self.power_mode and self._power_since is not None and at_ms is not None:
            self.power_mode_ms += max(0, at_ms - self._power_since)
        self.streak = 0
        self.power_mode = False
        self._power_since = None

    def power_mode_seconds(self, at_ms: Optional[int] = None) -> int:
        total = self.power_mode_ms
        if self.power_mode and self._power_since is not None and at_ms is not None:
            total += max(0, at_ms - self._power_since)
        return total // 1000

    def score(self, at_ms: Optional[int] = None) -> int:
        return calculate_score(self.keystroke_count, self.max_streak, self.power_mode_seconds(at_ms))

    def submit_score(self) -> int:
        return submit_score(self.keystroke_count, self.max_streak, self.power_mode_threshold)


def playback_speed(snapshot_count: int, target_duration_sec: int) -> float:
    """Snapshots per second so a replay lasts about ``target_duration_sec``."""
    if snapshot_count <= 1 or target_duration_sec <= 0:
        return 1.0
    return max(1.0, snapshot_count / target_duration_sec)


def _require_counts(**values) -> None:
    for name, value in values.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f'{name} must be an integer')
        if value < 0:
            raise ValidationError(f'{name} must not be negative')


def _require_html(html) -> None:
    if not isinstance(html, str):
        raise ValidationError('html must be a string')


def _load_entry(entry_id, statuses, action) -> Entry:
    entry = db.session.get(Entry, entry_id)
    if not entry:
        raise NotFound('Entry not found')
    game = db.session.get(Game, entry.game_id)
    if not game:
        raise NotFound('Game not found')
    if game.status not in statuses:
        raise InvalidStateTransition(f"Cannot {action} while the game is '{game.status}'")
    return entry


def update_entry(entry_id, html, streak, keystroke_count) -> Entry:
    """Periodic save while coding; ``max_streak`` only ever grows."""
    _require_html(html)
    _require_counts(streak=streak, keystroke_count=keystroke_count)
    with atomic():
        entry = _load_entry(entry_id, ('active',), 'update an entry')
        entry.html = html
        entry.total_keystrokes = keystroke_count
        entry.max_streak = max(entry.max_streak or 0, streak)
    return entry


def save_progress_snapshot(entry_id, html, streak, power_mode, keystroke_count, timestamp) -> ProgressSnapshot:
    _require_html(html)
    _require_counts(streak=streak, keystroke_count=keystroke_count, timestamp=timestamp)
    with atomic():
        entry = _load_entry(entry_id, ('active',), 'save progress')
        snapshot = ProgressSnapshot(
            entry_id=entry.id,
            html=html,
            streak=streak,
            power_mode=bool(power_mode),
            keystroke_count=keystroke_count,
            timestamp=timestamp,
        )
        db.session.add(snapshot)
    return snapshot


def submit_entry(entry_id, html, total_score, max_streak, total_keystrokes) -> Entry:
    """Mark an entry final with the client-computed metrics.

    Accepted while the game is active and, for late auto-submits, during
    voting. A repeated submit keeps the first ``submitted_at``.
    """
    _require_html(html)
    _require_counts(total_score=total_score, max_streak=max_streak, total_keystrokes=total_keystrokes)
    if current_app.config.get('STRICT_SCORE_VALIDATION'):
        threshold = current_app.config.get('POWER_MODE_THRESHOLD', POWER_MODE_THRESHOLD)
        expected = submit_score(total_keystrokes, max_streak, threshold)
        if total_score != expected:
            raise ValidationError(f'total_score {total_score} does not match computed score {expected}')
    with atomic():
        entry = _load_entry(entry_id, ('active', 'voting'), 'submit an entry')
        if not entry.is_submitted:
            entry.is_submitted = True
            entry.submitted_at = now_ms()
        entry.html = html
        entry.total_score = total_score
        entry.max_streak = max_streak
        entry.total_keystrokes = total_keystrokes
    current_app.logger.info(f"[submit] entry={entry.id} score={total_score} streak={max_streak} keys={total_keystrokes}")
    return entry


def get_entry(entry_id) -> Entry:
    entry = db.session.get(Entry, entry_id)
    if not entry:
        raise NotFound('Entry not found')
    return entry


def get_game_entries(game_id) -> List[Entry]:
    return Entry.query.filter_by(game_id=game_id).order_by(Entry.id).all()


def get_submitted_entries(game_id) -> List[Entry]:
    entries = Entry.query.filter_by(game_id=game_id, is_submitted=True).order_by(Entry.id).all()
    return sorted(entries, key=lambda e: e.total_score, reverse=True)


def get_progress_snapshots(entry_id) -> List[ProgressSnapshot]:
    return (
        ProgressSnapshot.query.filter_by(entry_id=entry_id)
        .order_by(ProgressSnapshot.timestamp, ProgressSnapshot.id)
        .all()
    )


def get_replay(entry_id, target_duration_sec=None) -> dict:
    entry = get_entry(entry_id)
    if target_duration_sec is None:
        target_duration_sec = current_app.config.get('REPLAY_TARGET_DURATION_SEC', 10)
    snapshots = get_progress_snapshots(entry.id)
    return {
        'entry_id': entry.id,
        'snapshots': [s.to_dict() for s in snapshots],
        'duration_ms': snapshots[-1].timestamp if snapshots else 0,
        'speed': playback_speed(len(snapshots), target_duration_sec),
    }
