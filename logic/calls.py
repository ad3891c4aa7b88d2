"""
吃・碰・槓・胡などの鳴き判定
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from models.meld import Meld, MeldType
from models.tile_utils import Tile
from logic.win import WinEvaluator


class ActionType(str, Enum):
    """プレイヤーが取れる行動"""
    DISCARD = 'Discard'
    CHI = 'Chi'
    PONG = 'Pong'
    KONG = 'Kong'
    AN_KONG = 'AnKong'
    BU_KONG = 'BuKong'
    HU = 'Hu'
    PASS = 'Pass'


# 捨て牌に対する応答として使える行動
CLAIM_TYPES = (ActionType.HU, ActionType.KONG, ActionType.PONG, ActionType.CHI, ActionType.PASS)


class MeldRules:
    """鳴き可否の判定クラス（手牌は変更しない）"""

    @staticmethod
    def _matching(hand_tiles: Sequence[Tile], tile: Tile) -> List[Tile]:
        return [t for t in hand_tiles if t.matches(tile)]

    @staticmethod
    def can_pong(hand_tiles: Sequence[Tile], tile: Tile) -> bool:
        """
        碰（同じ牌3つ）が可能かどうか判定

        Args:
            hand_tiles: 自分の手牌
            tile: 捨てられた牌
        """
        return len(MeldRules._matching(hand_tiles, tile)) >= 2

    @staticmethod
    def can_kong(hand_tiles: Sequence[Tile], tile: Tile) -> bool:
        """明槓: 手牌にちょうど3枚あるか"""
        return len(MeldRules._matching(hand_tiles, tile)) == 3

    @staticmethod
    def possible_an_kongs(hand_tiles: Sequence[Tile]) -> List[Tile]:
        """
        暗槓できる牌（4枚揃っている種類）を返す

        Returns:
            各種類の先頭の牌
        """
        groups = {}
        for t in hand_tiles:
            groups.setdefault(t.tile_34, []).append(t)
        return [tiles[0] for tiles in groups.values() if len(tiles) == 4]

    @staticmethod
    def possible_bu_kongs(hand_tiles: Sequence[Tile], melds: Sequence[Meld]) -> List[Tuple[int, Tile]]:
        """
        加槓できる組み合わせ（碰の副露と、手牌にある4枚目）を返す

        Returns:
            (副露のインデックス, 手牌の4枚目) のリスト
        """
        possible = []
        for idx, meld in enumerate(melds):
            if meld.type != MeldType.PONG:
                continue
            match = MeldRules._matching(hand_tiles, meld.tiles[0])
            if match:
                possible.append((idx, match[0]))
        return possible

    @staticmethod
    def can_chi(hand_tiles: Sequence[Tile], tile: Tile) -> List[Tuple[Tile, Tile]]:
        """
        吃の可能な組み合わせをすべて検出

        捨て牌 r に対して {r-2, r-1}, {r-1, r+1}, {r+1, r+2} をそれぞれ独立に調べる。
        字牌では成立しない。席の制限（下家のみ）は呼び出し側で判定する。

        Returns:
            手牌から出す2枚の組のリスト（例: [(3m, 4m), (4m, 6m)]）
        """
        if tile.is_honor:
            return []

        def find(rank: int) -> Optional[Tile]:
            for t in hand_tiles:
                if t.suit == tile.suit and t.rank == rank:
                    return t
            return None

        options = []
        for low, high in ((tile.rank - 2, tile.rank - 1),
                          (tile.rank - 1, tile.rank + 1),
                          (tile.rank + 1, tile.rank + 2)):
            a, b = find(low), find(high)
            if a is not None and b is not None:
                options.append((a, b))
        return options

    @staticmethod
    def can_hu(hand_tiles: Sequence[Tile], melds: Sequence[Meld], tile: Optional[Tile], evaluator: WinEvaluator) -> bool:
        """
        胡（捨て牌で和了）が可能かどうか判定

        Args:
            hand_tiles: 自分の手牌
            melds: 自分の副露
            tile: 捨てられた牌（ツモ判定なら None）
            evaluator: WinEvaluator のインスタンス
        """
        return evaluator.is_winning_hand(hand_tiles, melds, tile)


@dataclass
class ClaimResponse:
    """捨て牌への応答"""
    seat: int
    action: ActionType
    tiles: List[Tile] = field(default_factory=list)  # 吃で使う手牌2枚（任意）

    def to_dict(self) -> dict:
        return {
            'seat': self.seat,
            'action': self.action.value,
            'tiles': [t.id for t in self.tiles],
        }
