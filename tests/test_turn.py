"""
手番の進行（ツモ・打牌・槓・終局）のテスト
"""
import random

import pytest

from config import EngineConfig
from models.game import GameState, Phase, WinType
from models.meld import MeldType
from logic.calls import ActionType
from logic.errors import IllegalAction, MalformedInput
from logic.turn import TurnStateMachine
from conftest import BASE_HANDS

# 席2が5mを3枚持つ（明槓・碰・加槓用）。4sをツモれば自摸和了
KONG_HANDS = {
    0: BASE_HANDS[0],
    1: BASE_HANDS[1],
    2: '555m 123456789p 11s 23s',
    3: BASE_HANDS[3],
}

# 親が配牌時点で暗槓できる
AN_KONG_HANDS = {
    0: '1111m 479p 147s 1234567z',
    1: BASE_HANDS[1],
    2: BASE_HANDS[2],
    3: BASE_HANDS[3],
}

# 席0が東を捨てると誰も鳴けず、席1は1sで和了
SELF_DRAW_HANDS = {
    0: '19m 19p 123789s 1234567z',
    1: '123456789m 123456p 1s',
    2: '255m 788p 4569s 234567z',
    3: '2468m 2468p 2468s 2345z',
}


def test_initial_state(make_match):
    match = make_match(BASE_HANDS)
    state = match.state
    assert state.phase == Phase.DISCARD
    assert state.current_player == 0
    assert [len(p.hand) for p in state.players] == [17, 16, 16, 16]
    assert len(state.deck) == 71
    assert state.check_conservation()
    assert match.compute_available_actions(0) == {ActionType.DISCARD}
    assert match.compute_available_actions(1) == set()


def test_init_match_requires_four_seats():
    with pytest.raises(ValueError):
        TurnStateMachine.init_match(['A', 'B', 'C'])


def test_discard_rejections_leave_state_untouched(make_match, pick):
    match = make_match(BASE_HANDS)
    before = match.to_dict()
    not_mine = pick(match, 1, '2m')

    with pytest.raises(IllegalAction):
        match.apply_discard(1, not_mine.id)
    with pytest.raises(MalformedInput):
        match.apply_discard(0, not_mine.id)
    with pytest.raises(MalformedInput):
        match.apply_discard(0, 999)
    with pytest.raises(MalformedInput):
        match.apply_discard(0, '5')
    with pytest.raises(MalformedInput):
        match.apply_discard(-1, not_mine.id)
    with pytest.raises(IllegalAction):
        match.apply_an_kong(0)
    with pytest.raises(IllegalAction):
        match.apply_bu_kong(0)
    with pytest.raises(IllegalAction):
        match.apply_claim(0, 'Hu')

    assert match.to_dict() == before


def test_discard_during_claim_window_is_rejected(make_match, pick):
    match = make_match(BASE_HANDS)
    match.apply_discard(0, pick(match, 0, '5m').id)
    with pytest.raises(IllegalAction):
        match.apply_discard(2, pick(match, 2, '5m').id)


def test_kong_claim_draws_replacement(make_match, pick):
    match = make_match(KONG_HANDS, draws='6s')
    match.apply_discard(0, pick(match, 0, '5m').id)
    assert match.compute_available_actions(2) == {ActionType.KONG, ActionType.PONG, ActionType.PASS}

    deck_before = len(match.state.deck)
    match.apply_claim(2, 'Kong')

    state = match.state
    player = state.players[2]
    assert player.melds[0].type == MeldType.KONG
    assert len(player.melds[0].tiles) == 4
    assert len(player.hand) == 14
    assert len(state.deck) == deck_before - 1
    assert state.last_drawn.tile_34 == 23
    assert state.current_player == 2 and state.phase == Phase.DISCARD
    assert state.check_conservation()


def test_kong_replacement_can_win(make_match, pick):
    match = make_match(KONG_HANDS, draws='4s')
    match.apply_discard(0, pick(match, 0, '5m').id)
    match.apply_claim(2, 'Kong')

    state = match.state
    assert state.phase == Phase.GAME_OVER
    assert state.winner == 2
    assert state.win_type == WinType.SELF_DRAW


def test_concealed_kong_keeps_discard_phase(make_match):
    match = make_match(AN_KONG_HANDS, draws='3m')
    assert ActionType.AN_KONG in match.compute_available_actions(0)

    with pytest.raises(IllegalAction):
        match.apply_an_kong(0, kind=5)
    with pytest.raises(MalformedInput):
        match.apply_an_kong(0, kind='1m')
    with pytest.raises(IllegalAction):
        match.apply_an_kong(1)

    match.apply_an_kong(0, kind=0)

    state = match.state
    player = state.players[0]
    assert len(player.hand) == 14
    assert player.melds[0].type == MeldType.AN_KONG
    assert player.melds[0].from_seat is None
    assert state.last_drawn.tile_34 == 2
    assert state.phase == Phase.DISCARD and state.current_player == 0
    assert state.check_conservation()


def test_promoted_kong_after_pong(make_match, pick):
    match = make_match(KONG_HANDS, draws='6s')
    match.apply_discard(0, pick(match, 0, '5m').id)
    match.apply_claim(2, 'Pong')
    assert match.compute_available_actions(2) == {
        ActionType.DISCARD, ActionType.BU_KONG,
    }

    match.apply_bu_kong(2, kind=4)

    state = match.state
    player = state.players[2]
    assert len(player.melds) == 1
    assert player.melds[0].type == MeldType.BU_KONG
    assert player.melds[0].from_seat == 0
    assert len(player.hand) == 14
    assert not any(t.tile_34 == 4 for t in player.hand.to_list())
    assert state.phase == Phase.DISCARD and state.current_player == 2
    assert state.check_conservation()


def test_promoted_kong_replacement_can_win(make_match, pick):
    match = make_match(KONG_HANDS, draws='4s')
    match.apply_discard(0, pick(match, 0, '5m').id)
    match.apply_claim(2, 'Pong')
    match.apply_bu_kong(2)
    assert match.state.winner == 2
    assert match.state.win_type == WinType.SELF_DRAW


def test_self_draw_on_ordinary_draw(make_match, pick):
    match = make_match(SELF_DRAW_HANDS, draws='1s')
    match.apply_discard(0, pick(match, 0, '1z').id)

    state = match.state
    assert state.phase == Phase.GAME_OVER
    assert state.winner == 1
    assert state.win_type == WinType.SELF_DRAW
    assert len(state.players[1].hand) == 17
    assert state.check_conservation()


def test_dealer_can_declare_self_draw_on_initial_hand(make_match):
    hands = dict(BASE_HANDS)
    hands[0] = '123456789m 123456p 11s'
    match = make_match(hands)
    assert ActionType.HU in match.compute_available_actions(0)

    match.apply_claim(0, 'Hu')

    assert match.state.winner == 0
    assert match.state.win_type == WinType.SELF_DRAW


def empty_deck(state):
    """山を席3の河へ移して、枚数を保ったまま空にする"""
    state.players[3].discards.extend(state.deck)
    state.deck = []


def assert_exhausted(state):
    assert state.phase == Phase.GAME_OVER
    assert state.winner is None
    assert state.win_type is None
    assert state.check_conservation()


def test_deck_exhaustion_ends_without_winner(make_match, pick):
    match = make_match(BASE_HANDS)
    empty_deck(match.state)

    match.apply_discard(0, pick(match, 0, '1z').id)

    assert_exhausted(match.state)


def test_deck_exhaustion_on_concealed_kong_replacement(make_match):
    match = make_match(AN_KONG_HANDS)
    empty_deck(match.state)

    match.apply_an_kong(0)

    assert_exhausted(match.state)
    assert match.state.players[0].melds[0].type == MeldType.AN_KONG


def test_deck_exhaustion_on_claimed_kong_replacement(make_match, pick):
    match = make_match(KONG_HANDS)
    empty_deck(match.state)
    match.apply_discard(0, pick(match, 0, '5m').id)

    match.apply_claim(2, 'Kong')

    assert_exhausted(match.state)
    assert match.state.players[2].melds[0].type == MeldType.KONG


def test_deck_exhaustion_on_promoted_kong_replacement(make_match, pick):
    match = make_match(KONG_HANDS)
    match.apply_discard(0, pick(match, 0, '5m').id)
    match.apply_claim(2, 'Pong')
    empty_deck(match.state)

    match.apply_bu_kong(2)

    assert_exhausted(match.state)
    assert match.state.players[2].melds[0].type == MeldType.BU_KONG


def test_game_over_rejects_further_actions(make_match, pick):
    match = make_match(SELF_DRAW_HANDS, draws='1s')
    match.apply_discard(0, pick(match, 0, '1z').id)
    assert match.state.is_game_over
    before = match.to_dict()

    with pytest.raises(IllegalAction):
        match.apply_discard(1, pick(match, 1, '1s').id)
    with pytest.raises(IllegalAction):
        match.apply_an_kong(1)
    with pytest.raises(IllegalAction):
        match.apply_bu_kong(1)
    match.apply_claim(2, 'Pass')
    assert match.to_dict() == before
    assert match.compute_available_actions(1) == set()


def test_serialization_round_trip(make_match, pick):
    match = make_match(KONG_HANDS, draws='6s')
    match.apply_discard(0, pick(match, 0, '5m').id)
    match.apply_claim(2, 'Pong')
    data = match.state.to_dict()

    restored = GameState.from_dict(data)

    assert restored.to_dict() == data
    assert restored.players[2].melds == match.state.players[2].melds
    assert restored.check_conservation()


def test_restore_during_claim_window_reopens_it(make_match, pick, timer_factory, timers):
    match = make_match(BASE_HANDS, draws='3m')
    match.apply_discard(0, pick(match, 0, '5m').id)
    data = match.state.to_dict()
    match.close()

    restored = TurnStateMachine(GameState.from_dict(data), EngineConfig(seed=1), timer_factory)
    assert restored.state.phase == Phase.ACTION
    assert restored.pending_seats() == {2}
    assert timers[-1].started and not timers[-1].cancelled

    restored.apply_claim(2, 'Pong', window_id=data['window_id'])
    assert restored.state.phase == Phase.DISCARD
    assert restored.state.current_player == 2
    assert restored.state.check_conservation()


def test_restored_claim_window_still_times_out(make_match, pick, timer_factory, timers):
    match = make_match(BASE_HANDS, draws='3m')
    match.apply_discard(0, pick(match, 0, '5m').id)
    data = match.state.to_dict()
    match.close()

    restored = TurnStateMachine(GameState.from_dict(data), EngineConfig(seed=1), timer_factory)
    timers[-1].fire()

    state = restored.state
    assert state.phase == Phase.DISCARD
    assert state.current_player == 1
    assert state.last_drawn.tile_34 == 2
    assert state.check_conservation()


def test_reset_deals_a_fresh_match(make_match, pick, timers):
    match = make_match(BASE_HANDS)
    match.apply_discard(0, pick(match, 0, '5m').id)
    state = match.reset()
    assert state is match.state
    assert state.phase == Phase.DISCARD
    assert state.window_id == 0
    assert [p.name for p in state.players] == ['A', 'B', 'C', 'D']
    assert timers[0].cancelled
    assert state.check_conservation()


def hand_sizes_hold(state):
    for seat, player in enumerate(state.players):
        size = len(player.hand) + 3 * len(player.melds)
        expected = 17 if state.phase == Phase.DISCARD and seat == state.current_player else 16
        if size != expected:
            return False
    return True


def play_random_step(match, rng):
    state = match.state
    if state.phase == Phase.ACTION:
        seat = rng.choice(sorted(match.pending_seats()))
        action = rng.choice(sorted(match.compute_available_actions(seat)))
        match.apply_claim(seat, action)
        return

    seat = state.current_player
    actions = match.compute_available_actions(seat)
    if ActionType.HU in actions and rng.random() < 0.5:
        match.apply_claim(seat, ActionType.HU)
    elif ActionType.AN_KONG in actions and rng.random() < 0.5:
        match.apply_an_kong(seat)
    elif ActionType.BU_KONG in actions and rng.random() < 0.5:
        match.apply_bu_kong(seat)
    else:
        tile = rng.choice(state.players[seat].hand.to_list())
        match.apply_discard(seat, tile.id)


@pytest.mark.parametrize('seed', range(6))
def test_random_games_keep_invariants(seed, timer_factory):
    rng = random.Random(seed)
    match = TurnStateMachine.init_match(['A', 'B', 'C', 'D'], EngineConfig(seed=seed), timer_factory)

    for _ in range(2000):
        if match.state.is_game_over:
            break
        play_random_step(match, rng)
        state = match.state
        assert state.check_conservation()
        if not state.is_game_over:
            assert hand_sizes_hold(state)

    assert match.state.is_game_over
