from typing import List, Optional, Tuple

from flask import current_app
from sqlalchemy.exc import IntegrityError

from blindcode import db
from blindcode.errors import NotFound, Unauthorized, InvalidStateTransition, ValidationError
from blindcode.models import Game, Entry, Player, Vote, VoteToken
from . import atomic, notify_game

MIN_SCORE = 1
MAX_SCORE = 10
VOTE_WEIGHT = 10
VOTING_STATUSES = ('voting', 'finished')


def can_vote(game: Game, user_id) -> bool:
    """Creator, or holder of an active vote token they claimed for this game."""
    if game is None or user_id is None:
        return False
    if game.creator_id == user_id:
        return True
    token = VoteToken.query.filter_by(game_id=game.id, used_by=user_id, is_active=True).first()
    return token is not None


def can_user_vote(game_id, user_id) -> Tuple[bool, str]:
    game = db.session.get(Game, game_id)
    if not game:
        return False, 'Game not found'
    if user_id is not None and game.creator_id == user_id:
        return True, 'creator'
    if can_vote(game, user_id):
        return True, 'token'
    return False, 'No permission to vote'


def _validate_score(score) -> None:
    if isinstance(score, bool) or not isinstance(score, int):
        raise ValidationError('score must be an integer')
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise ValidationError(f'score must be between {MIN_SCORE} and {MAX_SCORE}')


def _load_ballot(game_id, entry_id, judge_id) -> Tuple[Game, Entry]:
    """Lock the game and check the judge may vote on this entry right now."""
    game = Game.query.filter_by(id=game_id).with_for_update().first()
    if not game:
        raise NotFound('Game not found')
    if not can_vote(game, judge_id):
        raise Unauthorized('You are not authorized to vote on this game')
    if game.status not in VOTING_STATUSES:
        raise InvalidStateTransition(f"Voting is not open while the game is '{game.status}'")
    entry = Entry.query.filter_by(id=entry_id, game_id=game.id).first()
    if not entry:
        raise NotFound('Entry not found')
    return game, entry


def _find_vote(judge_id, game_id, entry_id) -> Optional[Vote]:
    return Vote.query.filter_by(judge_id=judge_id, game_id=game_id, entry_id=entry_id).first()


def cast_vote(game_id, entry_id, judge_id, score) -> Vote:
    """Record or update a judge's 1-10 score for one entry."""
    try:
        vote, game = _cast(game_id, entry_id, judge_id, score)
    except IntegrityError:
        # A concurrent cast by the same judge for this entry inserted first
        vote, game = _cast(game_id, entry_id, judge_id, score)
    current_app.logger.info(f"[vote] game={game_id} entry={entry_id} judge={judge_id} score={score}")
    notify_game(game)
    return vote


def _cast(game_id, entry_id, judge_id, score):
    with atomic():
        game, entry = _load_ballot(game_id, entry_id, judge_id)
        _validate_score(score)
        vote = _find_vote(judge_id, game.id, entry.id)
        if vote:
            vote.score = score
        else:
            vote = Vote(game_id=game.id, entry_id=entry.id, judge_id=judge_id, score=score, is_winner=False)
            db.session.add(vote)
    return vote, game


def select_winner(game_id, entry_id, judge_id) -> Vote:
    """Make ``entry_id`` this judge's only winner pick for the game.

    Clearing earlier picks and setting the new one happen in one
    transaction, so no reader sees zero or two winners for the judge.
    """
    with atomic():
        game, entry = _load_ballot(game_id, entry_id, judge_id)
        judge_votes = (
            Vote.query.filter_by(judge_id=judge_id, game_id=game.id)
            .with_for_update()
            .all()
        )
        target = None
        for vote in judge_votes:
            if vote.entry_id == entry.id:
                target = vote
            elif vote.is_winner:
                vote.is_winner = False
        if target is None:
            target = Vote(game_id=game.id, entry_id=entry.id, judge_id=judge_id, score=MAX_SCORE, is_winner=True)
            db.session.add(target)
        else:
            target.is_winner = True
    current_app.logger.info(f"[winner] game={game_id} entry={entry_id} judge={judge_id}")
    notify_game(game)
    return target


def get_game_votes(game_id) -> List[Vote]:
    return Vote.query.filter_by(game_id=game_id).order_by(Vote.id).all()


def get_entry_votes(entry_id) -> List[Vote]:
    return Vote.query.filter_by(entry_id=entry_id).order_by(Vote.id).all()


def get_user_votes_for_game(game_id, user_id) -> List[Vote]:
    return Vote.query.filter_by(judge_id=user_id, game_id=game_id).order_by(Vote.id).all()


def get_leaderboard(game_id) -> List[dict]:
    """Rank every entry (submitted or not) by typing score plus weighted votes.

    The sort is stable over entries in creation order, so equal combined
    scores keep the earlier entry first.
    """
    game = db.session.get(Game, game_id)
    if not game:
        raise NotFound('Game not found')
    entries = Entry.query.filter_by(game_id=game.id).order_by(Entry.id).all()
    votes_by_entry = {}
    for vote in get_game_votes(game.id):
        votes_by_entry.setdefault(vote.entry_id, []).append(vote)

    rows = []
    for entry in entries:
        votes = votes_by_entry.get(entry.id, [])
        total_vote_score = sum(v.score for v in votes)
        rows.append({
            'entry': entry.to_dict(),
            'player': entry.player.to_dict() if entry.player else None,
            'votes': [v.to_dict() for v in votes],
            'total_vote_score': total_vote_score,
            'is_winner': any(v.is_winner for v in votes),
            'combined_score': entry.total_score + total_vote_score * VOTE_WEIGHT,
        })
    return sorted(rows, key=lambda r: r['combined_score'], reverse=True)


def get_winners(game_id) -> List[dict]:
    """Every judge's winner pick, joined with its entry and player."""
    winners = []
    for vote in Vote.query.filter_by(game_id=game_id, is_winner=True).order_by(Vote.id).all():
        entry = db.session.get(Entry, vote.entry_id)
        if not entry:
            continue
        player = db.session.get(Player, entry.player_id)
        winners.append({
            'vote': vote.to_dict(),
            'entry': entry.to_dict(),
            'player': player.to_dict() if player else None,
        })
    return winners
