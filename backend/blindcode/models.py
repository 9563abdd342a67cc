from blindcode import db
from flask_login import UserMixin
import json
import random
import string

GAME_STATUSES = ('draft', 'lobby', 'active', 'voting', 'finished')
ASSET_TYPES = ('image', 'font', 'other')

_CODE_ALPHABET = string.ascii_lowercase + string.digits


def generate_code(model, column, length):
    """Generate a short code that is not yet used in ``model.column``."""
    while True:
        code = ''.join(random.choices(_CODE_ALPHABET, k=length))
        if not model.query.filter(getattr(model, column) == code).first():
            return code


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    provider_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    username = db.Column(db.String(128), nullable=False)
    name = db.Column(db.String(256), nullable=True)
    avatar_url = db.Column(db.Text, nullable=True)
    email = db.Column(db.String(256), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'provider_id': self.provider_id,
            'username': self.username,
            'name': self.name,
            'avatar_url': self.avatar_url,
            'email': self.email,
        }


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    creator_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    title = db.Column(db.String(256), nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    short_code = db.Column(db.String(16), unique=True, nullable=False, index=True)
    reference_image_url = db.Column(db.Text, nullable=False)
    hex_colors_json = db.Column('hex_colors', db.Text, nullable=False, default='[]')
    requirements = db.Column(db.Text, nullable=True)
    duration_minutes = db.Column(db.Integer, nullable=False, default=15)
    status = db.Column(db.String(16), nullable=False, default='draft', index=True)  # draft, lobby, active, voting, finished
    started_at = db.Column(db.BigInteger, nullable=True)  # epoch ms
    ended_at = db.Column(db.BigInteger, nullable=True)

    creator = db.relationship('User')

    @property
    def hex_colors(self):
        return json.loads(self.hex_colors_json) if self.hex_colors_json else []

    @hex_colors.setter
    def hex_colors(self, colors):
        self.hex_colors_json = json.dumps([{'name': c['name'], 'hex': c['hex']} for c in colors])

    def deadline_ms(self):
        if self.started_at is None:
            return None
        return self.started_at + self.duration_minutes * 60 * 1000

    def to_dict(self, include_creator=False):
        data = {
            'id': self.id,
            'creator_id': self.creator_id,
            'title': self.title,
            'description': self.description,
            'short_code': self.short_code,
            'reference_image_url': self.reference_image_url,
            'hex_colors': self.hex_colors,
            'requirements': self.requirements,
            'duration_minutes': self.duration_minutes,
            'status': self.status,
            'started_at': self.started_at,
            'ended_at': self.ended_at,
            'deadline': self.deadline_ms(),
        }
        if include_creator:
            data['creator'] = self.creator.to_dict() if self.creator else None
        return data


class Asset(db.Model):
    __tablename__ = 'asset'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    short_code = db.Column(db.String(16), unique=True, nullable=False, index=True)
    name = db.Column(db.String(256), nullable=False)
    url = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(16), nullable=False, default='image')  # image, font, other

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'short_code': self.short_code,
            'name': self.name,
            'url': self.url,
            'type': self.type,
        }


class Player(db.Model):
    __tablename__ = 'player'
    __table_args__ = (
        # NULL user_id (guests) never collides
        db.UniqueConstraint('user_id', 'game_id', name='uq_player_user_game'),
    )
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    handle = db.Column(db.String(64), nullable=False)
    joined_at = db.Column(db.BigInteger, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    # Capability handed to the client once at join; never serialized
    secret = db.Column(db.String(64), nullable=False)

    user = db.relationship('User')
    entry = db.relationship('Entry', back_populates='player', uselist=False)

    def to_dict(self, include_user=False):
        data = {
            'id': self.id,
            'game_id': self.game_id,
            'user_id': self.user_id,
            'handle': self.handle,
            'joined_at': self.joined_at,
            'is_active': self.is_active,
        }
        if include_user:
            data['user'] = self.user.to_dict() if self.user else None
        return data


class Entry(db.Model):
    __tablename__ = 'entry'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False, unique=True, index=True)
    html = db.Column(db.Text, nullable=False, default='')
    is_submitted = db.Column(db.Boolean, nullable=False, default=False)
    submitted_at = db.Column(db.BigInteger, nullable=True)
    total_score = db.Column(db.Integer, nullable=False, default=0)
    max_streak = db.Column(db.Integer, nullable=False, default=0)
    total_keystrokes = db.Column(db.Integer, nullable=False, default=0)

    player = db.relationship('Player', back_populates='entry')

    def to_dict(self, include_player=False):
        data = {
            'id': self.id,
            'game_id': self.game_id,
            'player_id': self.player_id,
            'html': self.html,
            'is_submitted': self.is_submitted,
            'submitted_at': self.submitted_at,
            'total_score': self.total_score,
            'max_streak': self.max_streak,
            'total_keystrokes': self.total_keystrokes,
        }
        if include_player:
            data['player'] = self.player.to_dict() if self.player else None
        return data


class ProgressSnapshot(db.Model):
    __tablename__ = 'progress_snapshot'
    id = db.Column(db.Integer, primary_key=True)
    entry_id = db.Column(db.Integer, db.ForeignKey('entry.id'), nullable=False, index=True)
    html = db.Column(db.Text, nullable=False, default='')
    streak = db.Column(db.Integer, nullable=False, default=0)
    power_mode = db.Column(db.Boolean, nullable=False, default=False)
    keystroke_count = db.Column(db.Integer, nullable=False, default=0)
    timestamp = db.Column(db.BigInteger, nullable=False)  # ms since game start

    def to_dict(self):
        return {
            'id': self.id,
            'entry_id': self.entry_id,
            'html': self.html,
            'streak': self.streak,
            'power_mode': self.power_mode,
            'keystroke_count': self.keystroke_count,
            'timestamp': self.timestamp,
        }


class Vote(db.Model):
    __tablename__ = 'vote'
    __table_args__ = (
        db.UniqueConstraint('judge_id', 'game_id', 'entry_id', name='uq_vote_judge_game_entry'),
        db.Index('ix_vote_judge_game', 'judge_id', 'game_id'),
    )
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    entry_id = db.Column(db.Integer, db.ForeignKey('entry.id'), nullable=False, index=True)
    judge_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    score = db.Column(db.Integer, nullable=False)  # 1-10
    is_winner = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'entry_id': self.entry_id,
            'judge_id': self.judge_id,
            'score': self.score,
            'is_winner': self.is_winner,
        }


class VoteToken(db.Model):
    __tablename__ = 'vote_token'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    token = db.Column(db.String(64), unique=True, nullable=False, index=True)
    label = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.BigInteger, nullable=False)
    used_by = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'token': self.token,
            'label': self.label,
            'created_at': self.created_at,
            'used_by': self.used_by,
            'is_active': self.is_active,
        }
