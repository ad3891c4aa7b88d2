import pytest

from config import EngineConfig
from models.game import Phase
from models.room import MatchRegistry, RoomError


@pytest.fixture
def registry(timer_factory):
    return MatchRegistry(EngineConfig(seed=5), timer_factory=timer_factory)


def fill(registry, room_id='r1', names=('A', 'B', 'C', 'D')):
    return [registry.join(room_id, name)[1] for name in names]


def test_first_join_creates_room(registry):
    room, seat = registry.join('r1', 'A')
    assert seat == 0
    assert 'r1' in registry and len(registry) == 1
    assert room.seats == ['A', None, None, None]
    assert room.match is None


def test_match_starts_when_fourth_seat_fills(registry):
    assert fill(registry) == [0, 1, 2, 3]
    room = registry.get('r1')
    assert room.is_full
    assert room.match is not None
    state = room.match.state
    assert state.phase == Phase.DISCARD
    assert [p.name for p in state.players] == ['A', 'B', 'C', 'D']


def test_full_room_rejects_fifth_player(registry):
    fill(registry)
    with pytest.raises(RoomError):
        registry.join('r1', 'E')


def test_leave_stops_match_and_frees_seat(registry, timers):
    fill(registry)
    room = registry.get('r1')
    match = room.match
    player = match.state.players[0]
    match.apply_discard(0, player.hand.to_list()[0].id)

    room = registry.leave('r1', 1)

    assert room.seats == ['A', None, 'C', 'D']
    assert room.match is None
    assert all(t.cancelled for t in timers)

    _, seat = registry.join('r1', 'E')
    assert seat == 1
    assert room.match is not None


def test_room_destroyed_when_last_player_leaves(registry):
    registry.join('r1', 'A')
    registry.join('r1', 'B')
    assert registry.leave('r1', 0) is not None
    assert registry.leave('r1', 1) is None
    assert 'r1' not in registry


def test_leave_rejects_unknown_room_and_empty_seat(registry):
    with pytest.raises(RoomError):
        registry.leave('nope', 0)
    registry.join('r1', 'A')
    with pytest.raises(RoomError):
        registry.leave('r1', 2)
    with pytest.raises(RoomError):
        registry.leave('r1', None)


def test_reset_requires_full_room(registry):
    registry.join('r1', 'A')
    with pytest.raises(RoomError):
        registry.reset('r1')
    with pytest.raises(RoomError):
        registry.reset('r2')


def test_reset_redeals(registry):
    fill(registry)
    match = registry.get('r1').match
    match.apply_discard(0, match.state.players[0].hand.to_list()[0].id)

    room = registry.reset('r1')

    assert room.match is match
    assert match.state.window_id == 0
    assert match.state.current_player == 0
    assert match.state.check_conservation()


def test_rooms_are_independent(registry):
    fill(registry, 'r1')
    fill(registry, 'r2', names=('W', 'X', 'Y', 'Z'))
    first, second = registry.get('r1').match, registry.get('r2').match
    assert first is not second
    first.apply_discard(0, first.state.players[0].hand.to_list()[0].id)
    assert second.state.window_id == 0
