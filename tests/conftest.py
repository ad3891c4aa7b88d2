import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest

from config import EngineConfig
from models.tile_utils import Tile
from logic.turn import TurnStateMachine

SUIT_OFFSETS = {'m': 0, 'p': 9, 's': 18, 'z': 27}

# 誰も鳴けない・アガれない配牌（席0が5mを捨てると席2だけが碰できる）
BASE_HANDS = {
    0: '159m 1479p 147s 1234567z',
    1: '28m 258p 2568s 1234567z',
    2: '55m 3689p 369s 1234567z',
    3: '46m 147p 2358s 1234567z',
}


def parse_kinds(text):
    """'123m 11z' -> 34種インデックスのリスト"""
    kinds = []
    for group in text.split():
        offset = SUIT_OFFSETS[group[-1]]
        kinds.extend(offset + int(ch) - 1 for ch in group[:-1])
    return kinds


class TileBag:
    """同じ種類の牌に重複しない id を順に割り当てる"""

    def __init__(self):
        self.used = {}

    def take(self, text):
        tiles = []
        for kind in parse_kinds(text):
            n = self.used.get(kind, 0)
            assert n < 4, f"more than four copies of kind {kind}"
            self.used[kind] = n + 1
            tiles.append(Tile(kind * 4 + n))
        return tiles


class FakeTimer:
    """threading.Timer の代わり。テストから fire() で発火させる"""

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self, force=False):
        if self.cancelled and not force:
            return
        self.function(*self.args, **self.kwargs)


def stack_deck(state, tiles):
    """tiles を先頭から順にツモられるように山の末尾へ移す"""
    ids = {t.id for t in tiles}
    assert ids <= {t.id for t in state.deck}, "stacked tiles must still be in the deck"
    rest = [t for t in state.deck if t.id not in ids]
    state.deck = rest + list(reversed(tiles))


@pytest.fixture
def timers():
    return []


@pytest.fixture
def timer_factory(timers):
    def factory(interval, function, args=None, kwargs=None):
        timer = FakeTimer(interval, function, args, kwargs)
        timers.append(timer)
        return timer
    return factory


@pytest.fixture
def base_hands():
    return dict(BASE_HANDS)


@pytest.fixture
def make_match(timer_factory):
    """
    4席の配牌を全て指定して対局を作る。draws は次にツモられる牌の順
    """
    def make(hands, draws='', seed=1):
        bag = TileBag()
        preset = {seat: bag.take(text) for seat, text in hands.items()}
        drawn = bag.take(draws) if draws else []
        match = TurnStateMachine.init_match(
            ['A', 'B', 'C', 'D'], EngineConfig(seed=seed), timer_factory, preset_hands=preset,
        )
        stack_deck(match.state, drawn)
        return match
    return make


@pytest.fixture
def pick():
    """席の手牌から指定した種類の牌を1枚取り出す（手牌は変更しない）"""
    def pick_tile(match, seat, text):
        kind = parse_kinds(text)[0]
        for tile in match.state.players[seat].hand.to_list():
            if tile.tile_34 == kind:
                return tile
        raise AssertionError(f"seat {seat} holds no {text}")
    return pick_tile
