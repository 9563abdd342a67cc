import pytest

from blindcode import db
from blindcode.errors import NotFound, Unauthorized, InvalidStateTransition, ValidationError
from blindcode.models import Game, Player, Entry, ProgressSnapshot, Vote, VoteToken, Asset
from blindcode.services import games as game_service, roster, scoring, voting, tokens, assets
from blindcode.services.patch import GamePatch, UNSET


def test_create_game_defaults(make_user, make_game):
    creator = make_user()
    game = make_game(creator)
    assert game.status == 'draft'
    assert game.duration_minutes == 15
    assert len(game.short_code) == 6
    assert game.hex_colors == [{'name': 'Background', 'hex': '#112233'}]
    assert game.started_at is None
    assert game_service.get_game_by_short_code(game.short_code.upper()).id == game.id


def test_create_game_requires_title_and_reference(make_user):
    creator = make_user()
    with pytest.raises(ValidationError):
        game_service.create_game(creator.id, '', 'd', 'https://img', [])
    with pytest.raises(ValidationError):
        game_service.create_game(creator.id, 'Title', 'd', '', [])
    with pytest.raises(ValidationError):
        game_service.create_game(creator.id, 'Title', 'd', 'https://img', [{'name': 'x', 'hex': 'red'}])
    with pytest.raises(ValidationError):
        game_service.create_game(creator.id, 'Title', 'd', 'https://img', [], duration_minutes=0)
    with pytest.raises(NotFound):
        game_service.create_game(creator.id + 100, 'Title', 'd', 'https://img', [])
    assert Game.query.count() == 0


def test_short_codes_are_unique(make_user, make_game):
    creator = make_user()
    codes = {make_game(creator).short_code for _ in range(20)}
    assert len(codes) == 20


def test_full_lifecycle(make_user, make_game, clock):
    creator = make_user()
    game = make_game(creator)
    game_service.open_lobby(game.id, creator.id)
    assert game.status == 'lobby'

    game_service.start_game(game.id, creator.id)
    assert game.status == 'active'
    assert game.started_at == clock.now

    clock.advance(60_000)
    game_service.end_game(game.id, creator.id)
    assert game.status == 'voting'
    assert game.ended_at == clock.now

    game_service.finish_game(game.id, creator.id)
    assert game.status == 'finished'


def test_start_from_draft_is_rejected_and_unchanged(make_user, make_game):
    creator = make_user()
    game = make_game(creator)
    with pytest.raises(InvalidStateTransition):
        game_service.start_game(game.id, creator.id)
    assert game_service.get_game(game.id).status == 'draft'
    assert game_service.get_game(game.id).started_at is None


@pytest.mark.parametrize('status,action', [
    ('draft', 'end_game'),
    ('lobby', 'finish_game'),
    ('active', 'open_lobby'),
    ('voting', 'start_game'),
    ('finished', 'end_game'),
    ('lobby', 'reset_game'),
])
def test_invalid_transitions(make_user, make_game, status, action):
    creator = make_user()
    game = make_game(creator, status=status)
    with pytest.raises(InvalidStateTransition):
        getattr(game_service, action)(game.id, creator.id)
    assert game_service.get_game(game.id).status == status


def test_transitions_are_creator_only(make_user, make_game):
    creator, other = make_user(), make_user()
    game = make_game(creator)
    with pytest.raises(Unauthorized):
        game_service.open_lobby(game.id, other.id)
    with pytest.raises(Unauthorized):
        game_service.delete_game(game.id, other.id)
    assert game_service.get_game(game.id).status == 'draft'


def test_missing_game_is_not_found(make_user):
    creator = make_user()
    with pytest.raises(NotFound):
        game_service.get_game(999)
    with pytest.raises(NotFound):
        game_service.open_lobby(999, creator.id)


def test_end_game_auto_submits_pending_entries(make_user, make_game, clock):
    creator = make_user()
    game = make_game(creator, status='active')
    pending = roster.join_game(game.id, 'alice')
    done = roster.join_game(game.id, 'bob')
    done_entry = roster.get_player_entry(done.id)
    scoring.submit_entry(done_entry.id, '<p>bob</p>', 42, 10, 30)
    submitted_at = done_entry.submitted_at
    scoring.update_entry(roster.get_player_entry(pending.id).id, '<p>a</p>', 250, 500)

    clock.advance(5_000)
    game_service.end_game(game.id, creator.id)

    entry = roster.get_player_entry(pending.id)
    assert game.status == 'voting'
    assert entry.is_submitted is True
    assert entry.submitted_at == clock.now
    # Only the submission flags change; the last saved metrics stay as they were
    assert entry.total_score == 0
    assert entry.max_streak == 250
    assert entry.total_keystrokes == 500
    done_entry = roster.get_player_entry(done.id)
    assert done_entry.submitted_at == submitted_at
    assert done_entry.total_score == 42


def test_update_game_patch_only_touches_given_fields(make_user, make_game):
    creator = make_user()
    game = make_game(creator, requirements='Use flexbox')
    game_service.update_game(game.id, creator.id, GamePatch(title='New title', duration_minutes=20))
    assert game.title == 'New title'
    assert game.duration_minutes == 20
    assert game.description == 'Recreate the hero section'
    assert game.requirements == 'Use flexbox'

    game_service.update_game(game.id, creator.id, GamePatch(requirements=None))
    assert game.requirements is None


def test_patch_from_json_keeps_absent_fields_unset():
    patch = GamePatch.from_json({'title': 'x', 'requirements': None, 'status': 'finished'})
    assert patch.title == 'x'
    assert patch.requirements is None
    assert patch.description is UNSET
    assert dict(patch.changes()) == {'title': 'x', 'requirements': None}
    assert GamePatch().is_empty()


def test_update_game_rejected_once_started(make_user, make_game):
    creator = make_user()
    game = make_game(creator, status='active')
    with pytest.raises(InvalidStateTransition):
        game_service.update_game(game.id, creator.id, GamePatch(title='Too late'))
    assert game_service.get_game(game.id).title == 'Landing page'


def test_update_game_invalid_value_leaves_game_unchanged(make_user, make_game):
    creator = make_user()
    game = make_game(creator)
    with pytest.raises(ValidationError):
        game_service.update_game(game.id, creator.id, GamePatch(description='changed', title=''))
    assert game_service.get_game(game.id).description == 'Recreate the hero section'


def _populate(creator, game):
    player = roster.join_game(game.id, 'alice')
    entry = roster.get_player_entry(player.id)
    scoring.save_progress_snapshot(entry.id, '<div>', 3, False, 3, 1000)
    game_service.end_game(game.id, creator.id)
    voting.cast_vote(game.id, entry.id, creator.id, 8)
    return player, entry


def test_reset_game_clears_participants_keeps_setup(make_user, make_game):
    creator = make_user()
    game = make_game(creator, status='active')
    assets.add_asset(game.id, creator.id, 'logo', 'https://utfs.io/f/logo', 'image')
    tokens.create_vote_token(game.id, creator.id, label='Judge 1')
    _populate(creator, game)

    game_service.reset_game(game.id, creator.id)

    game = game_service.get_game(game.id)
    assert game.status == 'lobby'
    assert game.started_at is None and game.ended_at is None
    assert game.title == 'Landing page'
    assert Player.query.filter_by(game_id=game.id).count() == 0
    assert Entry.query.filter_by(game_id=game.id).count() == 0
    assert ProgressSnapshot.query.count() == 0
    assert Vote.query.filter_by(game_id=game.id).count() == 0
    assert Asset.query.filter_by(game_id=game.id).count() == 1
    assert VoteToken.query.filter_by(game_id=game.id).count() == 1


def test_delete_game_cascades_and_returns_urls(make_user, make_game):
    creator = make_user()
    game = make_game(creator, status='active')
    game_id = game.id
    assets.add_asset(game_id, creator.id, 'logo', 'https://utfs.io/f/logo', 'image')
    assets.add_asset(game_id, creator.id, 'font', 'https://utfs.io/f/font', 'font')
    tokens.create_vote_token(game_id, creator.id)
    _populate(creator, game)

    urls = game_service.delete_game(game_id, creator.id)

    assert sorted(urls) == sorted([
        'https://utfs.io/f/logo', 'https://utfs.io/f/font', 'https://utfs.io/f/reference-key',
    ])
    assert db.session.get(Game, game_id) is None
    for model in (Asset, Player, Entry, Vote, VoteToken):
        assert model.query.filter_by(game_id=game_id).count() == 0
    assert ProgressSnapshot.query.count() == 0
    with pytest.raises(NotFound):
        game_service.delete_game(game_id, creator.id)


def test_queries_by_creator_and_status(make_user, make_game):
    creator, other = make_user(), make_user()
    a = make_game(creator, status='active')
    make_game(creator)
    make_game(other, status='active')
    assert len(game_service.get_games_by_creator(creator.id)) == 2
    active = game_service.get_active_games()
    assert a.id in [g.id for g in active]
    assert len(active) == 2


def test_is_time_up(make_user, make_game, clock):
    creator = make_user()
    game = make_game(creator, status='active', duration_minutes=1)
    assert not game_service.is_time_up(game, clock.now + 59_999)
    assert game_service.is_time_up(game, clock.now + 60_000)
