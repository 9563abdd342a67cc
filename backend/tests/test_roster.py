import pytest

from blindcode.errors import NotFound, Unauthorized, InvalidStateTransition, ValidationError
from blindcode.models import Player, Entry
from blindcode.services import roster


def test_join_creates_player_and_empty_entry(make_user, make_game, clock):
    creator = make_user()
    game = make_game(creator, status='lobby')
    player = roster.join_game(game.id, 'alice')

    assert player.is_active is True
    assert player.joined_at == clock.now
    assert player.user_id is None
    entry = roster.get_player_entry(player.id)
    assert entry.html == ''
    assert entry.is_submitted is False
    assert (entry.total_score, entry.max_streak, entry.total_keystrokes) == (0, 0, 0)


def test_rejoin_is_idempotent(make_user, make_game):
    creator, user = make_user(), make_user()
    game = make_game(creator, status='lobby')
    first = roster.join_game(game.id, 'alice', user_id=user.id)
    roster.leave_game(first.id)
    second = roster.join_game(game.id, 'renamed', user_id=user.id)

    assert second.id == first.id
    assert second.is_active is True
    assert second.handle == 'alice'
    assert Player.query.filter_by(game_id=game.id).count() == 1
    assert Entry.query.filter_by(game_id=game.id).count() == 1
    assert roster.get_player_by_user_and_game(user.id, game.id).id == first.id


def test_guests_always_get_new_players(make_user, make_game):
    creator = make_user()
    game = make_game(creator, status='lobby')
    a = roster.join_game(game.id, 'guest')
    b = roster.join_game(game.id, 'guest')
    assert a.id != b.id
    assert Entry.query.filter_by(game_id=game.id).count() == 2


def test_leave_keeps_entry_and_updates_count(make_user, make_game):
    creator = make_user()
    game = make_game(creator, status='active')
    a = roster.join_game(game.id, 'alice')
    roster.join_game(game.id, 'bob')
    assert roster.get_active_player_count(game.id) == 2

    roster.leave_game(a.id)
    assert roster.get_active_player_count(game.id) == 1
    assert roster.get_player(a.id).is_active is False
    assert roster.get_player_entry(a.id) is not None
    assert len(roster.get_game_players(game.id)) == 2


def test_submission_does_not_change_active_count(make_user, make_game):
    from blindcode.services import scoring
    creator = make_user()
    game = make_game(creator, status='active')
    player = roster.join_game(game.id, 'alice')
    scoring.submit_entry(roster.get_player_entry(player.id).id, '<p/>', 10, 2, 8)
    assert roster.get_active_player_count(game.id) == 1


def test_join_draft_game_is_rejected(make_user, make_game):
    creator = make_user()
    game = make_game(creator)
    with pytest.raises(InvalidStateTransition):
        roster.join_game(game.id, 'alice')
    assert Player.query.count() == 0


def test_new_players_rejected_after_game_ends_but_rejoin_works(make_user, make_game):
    from blindcode.services import games as game_service
    creator, user = make_user(), make_user()
    game = make_game(creator, status='active')
    player = roster.join_game(game.id, 'alice', user_id=user.id)
    game_service.end_game(game.id, creator.id)

    with pytest.raises(InvalidStateTransition):
        roster.join_game(game.id, 'late')
    assert roster.join_game(game.id, 'alice', user_id=user.id).id == player.id


def test_join_validation_and_missing_game(make_user, make_game):
    creator = make_user()
    game = make_game(creator, status='lobby')
    with pytest.raises(ValidationError):
        roster.join_game(game.id, '   ')
    with pytest.raises(NotFound):
        roster.join_game(999, 'alice')
    with pytest.raises(NotFound):
        roster.leave_game(999)


def test_guest_gets_unguessable_secret(make_user, make_game):
    game = make_game(make_user(), status='lobby')
    alice = roster.join_game(game.id, 'alice')
    bob = roster.join_game(game.id, 'bob')
    assert len(alice.secret) >= 32
    assert alice.secret != bob.secret
    assert 'secret' not in alice.to_dict()


def test_authorize_player(make_user, make_game):
    owner, other = make_user(), make_user()
    game = make_game(owner, status='lobby')
    registered = roster.join_game(game.id, 'reg', user_id=other.id)
    guest = roster.join_game(game.id, 'guest')

    assert roster.authorize_player(registered.id, user_id=other.id).id == registered.id
    with pytest.raises(Unauthorized):
        roster.authorize_player(registered.id, user_id=owner.id)
    # A registered player's secret is not a substitute for its login
    with pytest.raises(Unauthorized):
        roster.authorize_player(registered.id, secret=registered.secret)

    assert roster.authorize_player(guest.id, secret=guest.secret).id == guest.id
    for secret in (None, '', 'wrong', registered.secret, 'é'):
        with pytest.raises(Unauthorized):
            roster.authorize_player(guest.id, user_id=other.id, secret=secret)
    with pytest.raises(NotFound):
        roster.authorize_player(999, secret='x')
