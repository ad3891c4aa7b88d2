"""
手牌を表すクラス
"""
from typing import List, Optional, Sequence

from models.tile_utils import Tile, sort_hand, format_hand_compact
from models.meld import Meld
from logic.win import WinEvaluator


class Hand:
	"""手牌を管理するクラス"""

	def __init__(self, tiles: List[Tile] = None):
		"""
		Args:
			tiles: 手牌リスト（初期値: 空）
		"""
		self.tiles = sort_hand(tiles) if tiles is not None else []
		self._win_evaluator = WinEvaluator()

	def add_tile(self, tile: Tile) -> None:
		"""牌を手に追加"""
		self.tiles.append(tile)
		self.sort()

	def find(self, tile_id: int) -> Optional[Tile]:
		"""id で手牌を検索"""
		for tile in self.tiles:
			if tile.id == tile_id:
				return tile
		return None

	def remove_tile(self, tile_id: int) -> Tile:
		"""指定 id の牌を削除して返す"""
		for i, tile in enumerate(self.tiles):
			if tile.id == tile_id:
				return self.tiles.pop(i)
		raise KeyError(f"Tile {tile_id} is not in hand")

	def remove_tiles(self, tiles: Sequence[Tile]) -> List[Tile]:
		"""複数の牌をまとめて削除（全て揃っていなければ何もしない）"""
		ids = [t.id for t in tiles]
		if len(set(ids)) != len(ids) or any(self.find(i) is None for i in ids):
			raise KeyError(f"Tiles {ids} are not all in hand")
		return [self.remove_tile(i) for i in ids]

	def matching(self, tile: Tile) -> List[Tile]:
		"""同種の牌を返す"""
		return [t for t in self.tiles if t.matches(tile)]

	def sort(self) -> None:
		"""手牌をソート"""
		self.tiles = sort_hand(self.tiles)

	def get_compact_format(self) -> str:
		"""コンパクト形式で取得"""
		return format_hand_compact(self.tiles)

	def is_winning(self, melds: Sequence[Meld] = (), candidate: Optional[Tile] = None) -> bool:
		"""
		手牌（＋候補牌）と副露でアガり形になるか判定

		Args:
			melds: 既存の副露
			candidate: 加えて判定する牌（ロン判定用）
		"""
		return self._win_evaluator.is_winning_hand(self.tiles, melds, candidate)

	def to_list(self) -> List[Tile]:
		"""牌リストとして取得"""
		return self.tiles[:]

	def __len__(self) -> int:
		"""手牌枚数"""
		return len(self.tiles)

	def __contains__(self, tile: Tile) -> bool:
		return self.find(tile.id) is not None

	def __str__(self) -> str:
		return self.get_compact_format()

	def __repr__(self) -> str:
		return f"Hand({len(self.tiles)} tiles: {self.get_compact_format()})"
