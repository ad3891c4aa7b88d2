"""
牌の定義と操作ユーティリティ
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Tuple

from mahjong.constants import HAKU
from mahjong.tile import TilesConverter
from mahjong.utils import is_honor, is_man, is_pin, is_sou, simplify

TOTAL_TILES = 136


class Suit(str, Enum):
	"""牌の種類"""
	MAN = 'Man'
	PIN = 'Pin'
	SOU = 'Sou'
	WIND = 'Wind'
	DRAGON = 'Dragon'


SUIT_ORDER = {Suit.MAN: 0, Suit.PIN: 1, Suit.SOU: 2, Suit.WIND: 3, Suit.DRAGON: 4}

WIND_NAMES = ['East', 'South', 'West', 'North']
DRAGON_NAMES = ['White', 'Green', 'Red']
SUIT_NAMES = {Suit.MAN: 'Character', Suit.PIN: 'Dot', Suit.SOU: 'Bamboo'}


@dataclass(frozen=True)
class Tile:
	"""
	1枚の牌。id は mahjong ライブラリの136形式（0-135）で、同種4枚をそれぞれ区別する。
	"""
	id: int

	@property
	def tile_34(self) -> int:
		"""34種インデックス"""
		return self.id // 4

	@property
	def suit(self) -> Suit:
		t = self.tile_34
		if is_man(t):
			return Suit.MAN
		if is_pin(t):
			return Suit.PIN
		if is_sou(t):
			return Suit.SOU
		return Suit.WIND if t < HAKU else Suit.DRAGON

	@property
	def rank(self) -> int:
		"""数牌は1-9、風牌は1-4、三元牌は1-3"""
		t = self.tile_34
		if not is_honor(t):
			return simplify(t) + 1
		if t < HAKU:
			return t - 26
		return t - HAKU + 1

	@property
	def kind(self) -> Tuple[Suit, int]:
		"""(suit, rank) の組。同種判定に使う"""
		return self.suit, self.rank

	@property
	def is_honor(self) -> bool:
		return is_honor(self.tile_34)

	@property
	def name(self) -> str:
		suit = self.suit
		if suit == Suit.WIND:
			return f"{WIND_NAMES[self.rank - 1]} Wind"
		if suit == Suit.DRAGON:
			return f"{DRAGON_NAMES[self.rank - 1]} Dragon"
		return f"{self.rank} {SUIT_NAMES[suit]}"

	def matches(self, other: 'Tile') -> bool:
		"""同じ種類（suit, rank）の牌か"""
		return self.tile_34 == other.tile_34

	def __repr__(self) -> str:
		return f"Tile({self.id}: {self.name})"


def build_tiles() -> List[Tile]:
	"""136枚すべての牌を id 順で生成する（未シャッフル）"""
	return [Tile(i) for i in range(TOTAL_TILES)]


def tiles_from_string(man: str = None, pin: str = None, sou: str = None, honors: str = None) -> List[Tile]:
	"""
	文字列表記から牌リストを作る（例: man='123', honors='11'）。
	honors は 1-4 が東南西北、5-7 が白發中。同じ牌は別々の id になる。
	"""
	ids = TilesConverter.string_to_136_array(man=man, pin=pin, sou=sou, honors=honors)
	return [Tile(i) for i in ids]


def tile_sort_key(tile: Tile) -> Tuple[int, int, int]:
	return SUIT_ORDER[tile.suit], tile.rank, tile.id


def sort_hand(hand: Iterable[Tile]) -> List[Tile]:
	"""手牌を標準順序（種類→数字）でソート"""
	return sorted(hand, key=tile_sort_key)


def format_hand_compact(hand: Iterable[Tile]) -> str:
	"""
	手牌をコンパクト形式でフォーマット
	例: "123m456p77z"
	"""
	return TilesConverter.to_one_line_string([t.id for t in hand])


def hand_to_counts(hand: Iterable[Tile]) -> List[int]:
	"""手牌をカウント配列に変換（34要素）"""
	return TilesConverter.to_34_array([t.id for t in hand])
