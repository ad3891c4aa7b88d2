"""
副露（吃・碰・槓）を表すクラス
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from models.tile_utils import Tile, sort_hand


class MeldType(str, Enum):
	CHI = 'Chi'
	PONG = 'Pong'
	KONG = 'Kong'        # 明槓（捨て牌から）
	AN_KONG = 'AnKong'   # 暗槓
	BU_KONG = 'BuKong'   # 加槓（碰に4枚目を追加）


MELD_SIZES = {
	MeldType.CHI: 3,
	MeldType.PONG: 3,
	MeldType.KONG: 4,
	MeldType.AN_KONG: 4,
	MeldType.BU_KONG: 4,
}


@dataclass(frozen=True)
class Meld:
	"""
	Args:
		type: 副露の種類
		tiles: 構成牌（吃・碰は3枚、槓は4枚）
		from_seat: 鳴いた相手の席（暗槓は None）
	"""
	type: MeldType
	tiles: Tuple[Tile, ...]
	from_seat: Optional[int] = None

	def __post_init__(self):
		tiles = tuple(sort_hand(self.tiles))
		object.__setattr__(self, 'tiles', tiles)
		if len(tiles) != MELD_SIZES[self.type]:
			raise ValueError(f"{self.type.value} needs {MELD_SIZES[self.type]} tiles, got {len(tiles)}")
		if self.type == MeldType.CHI:
			kinds = [t.kind for t in tiles]
			if tiles[0].is_honor or len({s for s, _ in kinds}) != 1 or \
					[r for _, r in kinds] != list(range(kinds[0][1], kinds[0][1] + 3)):
				raise ValueError(f"Not a run: {tiles}")
		elif not all(t.matches(tiles[0]) for t in tiles):
			raise ValueError(f"{self.type.value} tiles must match: {tiles}")

	def to_dict(self) -> dict:
		return {
			'type': self.type.value,
			'tiles': [t.id for t in self.tiles],
			'from_seat': self.from_seat,
		}

	@classmethod
	def from_dict(cls, data: dict) -> 'Meld':
		return cls(
			type=MeldType(data['type']),
			tiles=tuple(Tile(i) for i in data['tiles']),
			from_seat=data.get('from_seat'),
		)

	def __repr__(self) -> str:
		return f"Meld({self.type.value}, {[t.id for t in self.tiles]})"
