"""
胡（和了）判定
16枚麻雀: 5面子 + 1雀頭 の17枚、または副露なしの八対子
"""
from typing import List, Optional, Sequence

from mahjong.utils import is_honor, simplify

from models.tile_utils import Tile, hand_to_counts, sort_hand

SETS_REQUIRED = 5
WINNING_SIZE = 17
EIGHT_PAIRS = 8


class _SetSearch:
    """
    ソート済みの牌列に使用済みフラグを付けて面子分解を探索する。
    分岐順は 雀頭 → 先頭の刻子 → 先頭から始まる順子 で、最初に成功した時点で打ち切る。
    """

    def __init__(self, tiles: Sequence[Tile]):
        self.keys = [t.tile_34 for t in sort_hand(tiles)]
        self.used = [False] * len(self.keys)
        self.left = len(self.keys)

    def _next(self, start: int) -> int:
        for i in range(start, len(self.keys)):
            if not self.used[i]:
                return i
        return -1

    def _find(self, start: int, key: int) -> int:
        for i in range(start, len(self.keys)):
            if not self.used[i] and self.keys[i] == key:
                return i
        return -1

    def _mark(self, indices, value: bool) -> None:
        for i in indices:
            self.used[i] = value
        self.left += -len(indices) if value else len(indices)

    def _try(self, indices, sets_needed: int, has_pair: bool) -> bool:
        self._mark(indices, True)
        found = self.search(sets_needed, has_pair)
        self._mark(indices, False)
        return found

    def search(self, sets_needed: int, has_pair: bool = False) -> bool:
        if self.left == 0:
            return sets_needed == 0 and has_pair

        # 雀頭: 隣り合う同じ牌
        if not has_pair:
            i = self._next(0)
            while i != -1:
                j = self._next(i + 1)
                if j == -1:
                    break
                if self.keys[i] == self.keys[j] and self._try((i, j), sets_needed, True):
                    return True
                i = j

        if sets_needed <= 0 or self.left < 3:
            return False

        first = self._next(0)
        key = self.keys[first]

        # 刻子: 先頭3枚が同じ
        second = self._next(first + 1)
        third = self._next(second + 1)
        if self.keys[second] == key and self.keys[third] == key:
            if self._try((first, second, third), sets_needed - 1, has_pair):
                return True

        # 順子: 先頭牌から始まる同種の連番（字牌は不可）
        if not is_honor(key) and simplify(key) <= 6:
            second = self._find(first + 1, key + 1)
            third = self._find(first + 1, key + 2)
            if second != -1 and third != -1:
                if self._try((first, second, third), sets_needed - 1, has_pair):
                    return True

        return False


class WinEvaluator:
    """胡判定クラス（副作用なし）"""

    @staticmethod
    def is_eight_pairs(tiles: Sequence[Tile]) -> bool:
        """
        八対子判定: 17枚のうち、ちょうど2枚の種類が8つあれば成立。
        17枚目の扱いは規則上未確定のため、文字どおりの判定をしている。
        """
        if len(tiles) != WINNING_SIZE:
            return False
        counts = hand_to_counts(tiles)
        return sum(1 for c in counts if c == 2) == EIGHT_PAIRS

    def is_winning_hand(
        self,
        hand_tiles: Sequence[Tile],
        melds: Sequence = (),
        candidate: Optional[Tile] = None,
    ) -> bool:
        """
        手牌（＋候補牌）と副露でアガり形になるか判定する

        Args:
            hand_tiles: 手牌
            melds: 既存の副露（1つにつき1面子として数える）
            candidate: 追加で判定する牌（ロン・ツモ牌）

        Returns:
            アガり形なら True。枚数が合わない手は単に False
        """
        tiles = list(hand_tiles)
        if candidate is not None:
            tiles.append(candidate)

        if not melds and len(tiles) == WINNING_SIZE and self.is_eight_pairs(tiles):
            return True

        sets_needed = SETS_REQUIRED - len(melds)
        if sets_needed < 0:
            return False
        return _SetSearch(tiles).search(sets_needed)

    def winning_tiles(self, hand_tiles: Sequence[Tile], melds: Sequence = ()) -> List[int]:
        """
        あと1枚でアガれる牌の種類（34種インデックス）一覧

        Args:
            hand_tiles: 待ちの状態の手牌
            melds: 既存の副露
        """
        counts = hand_to_counts(list(hand_tiles) + [t for m in melds for t in m.tiles])
        winners: List[int] = []
        for kind in range(34):
            if counts[kind] >= 4:
                continue
            if self.is_winning_hand(hand_tiles, melds, Tile(kind * 4)):
                winners.append(kind)
        return winners


_default_evaluator = WinEvaluator()


def is_winning_hand(hand_tiles: Sequence[Tile], melds: Sequence = (), candidate: Optional[Tile] = None) -> bool:
    return _default_evaluator.is_winning_hand(hand_tiles, melds, candidate)
