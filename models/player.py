"""
プレイヤー（席）のモデル
"""
from typing import List, Optional

from models.hand import Hand
from models.meld import Meld, MeldType
from models.tile_utils import Tile


class Player:
	"""1つの席の手牌・副露・捨て牌"""

	def __init__(self, player_id: int, name: Optional[str] = None):
		"""
		Args:
			player_id: 席番号 (0-3)
			name: 表示名
		"""
		self.player_id = player_id
		self.name = name or f"Player {player_id}"
		self.hand = Hand()
		self.discards: List[Tile] = []
		self.melds: List[Meld] = []

	def add_tile(self, tile: Tile) -> None:
		"""ツモ牌を追加"""
		self.hand.add_tile(tile)

	def discard_tile(self, tile_id: int) -> Tile:
		"""指定 id の牌を捨てる"""
		tile = self.hand.remove_tile(tile_id)
		self.discards.append(tile)
		return tile

	def take_last_discard(self) -> Tile:
		"""鳴かれた（または胡された）捨て牌を河から取り除く"""
		return self.discards.pop()

	def call_pong(self, tile: Tile, from_seat: int) -> Meld:
		"""
		碰を成立させる

		Args:
			tile: 捨てられた牌
			from_seat: 捨てた席
		"""
		own = self.hand.matching(tile)[:2]
		meld = Meld(MeldType.PONG, (tile, *own), from_seat)
		self.hand.remove_tiles(own)
		self.melds.append(meld)
		return meld

	def call_kong(self, tile: Tile, from_seat: int) -> Meld:
		"""明槓を成立させる（手牌の3枚＋捨て牌）"""
		own = self.hand.matching(tile)
		meld = Meld(MeldType.KONG, (tile, *own), from_seat)
		self.hand.remove_tiles(own)
		self.melds.append(meld)
		return meld

	def call_chi(self, tile: Tile, own: List[Tile], from_seat: int) -> Meld:
		"""
		吃を成立させる

		Args:
			tile: 捨てられた牌
			own: 手牌から出す2枚
			from_seat: 捨てた席
		"""
		meld = Meld(MeldType.CHI, (tile, *own), from_seat)
		self.hand.remove_tiles(own)
		self.melds.append(meld)
		return meld

	def declare_an_kong(self, tile: Tile) -> Meld:
		"""手牌の同種4枚で暗槓する"""
		own = self.hand.matching(tile)
		meld = Meld(MeldType.AN_KONG, tuple(own))
		self.hand.remove_tiles(own)
		self.melds.append(meld)
		return meld

	def promote_bu_kong(self, meld_index: int, tile: Tile) -> Meld:
		"""碰の副露に4枚目を加えて加槓にする（副露の位置は変えない）"""
		pong = self.melds[meld_index]
		meld = Meld(MeldType.BU_KONG, (*pong.tiles, tile), pong.from_seat)
		self.hand.remove_tile(tile.id)
		self.melds[meld_index] = meld
		return meld

	def tile_count(self) -> int:
		"""手牌・副露・捨て牌の合計枚数"""
		return len(self.hand) + sum(len(m.tiles) for m in self.melds) + len(self.discards)

	def to_dict(self, reveal_hand: bool = True) -> dict:
		"""プレイヤー情報を辞書化"""
		return {
			'player_id': self.player_id,
			'name': self.name,
			'hand': [t.id for t in self.hand.to_list()] if reveal_hand else None,
			'hand_count': len(self.hand),
			'discards': [t.id for t in self.discards],
			'melds': [m.to_dict() for m in self.melds],
		}

	def __repr__(self) -> str:
		return f"Player({self.player_id}, {self.name!r})"
