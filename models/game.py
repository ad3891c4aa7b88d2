"""
対局状態（全席の手牌・副露・河、山、手番、局面）の集約
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from models.dealer import Dealer, NUM_SEATS, DEALER_SEAT
from models.meld import Meld
from models.player import Player
from models.tile_utils import Tile, TOTAL_TILES


class Phase(str, Enum):
	DRAW = 'Draw'
	DISCARD = 'Discard'
	ACTION = 'Action'
	GAME_OVER = 'GameOver'


class WinType(str, Enum):
	SELF_DRAW = 'self_draw'
	DISCARD = 'discard'


@dataclass(frozen=True)
class LastDiscard:
	tile: Tile
	from_seat: int


def next_seat(seat: int) -> int:
	"""次の席（吃できるのもこの席）"""
	return (seat + 1) % NUM_SEATS


class GameState:
	"""1対局分の状態。変更は TurnStateMachine と ClaimArbiter からのみ行う"""

	def __init__(self, players: List[Player], deck: List[Tile]):
		"""
		Args:
			players: 4席分のプレイヤー
			deck: 残りの山（末尾からツモる）
		"""
		self.players = players
		self.deck = deck
		self.current_player: int = DEALER_SEAT
		self.phase: Phase = Phase.DISCARD
		self.turn_count: int = 0
		self.last_drawn: Optional[Tile] = None
		self.last_discarded: Optional[LastDiscard] = None
		self.winner: Optional[int] = None
		self.win_type: Optional[WinType] = None
		self.window_id: int = 0  # 捨て牌ごとの鳴き受付番号

	@classmethod
	def new(cls, names: Sequence[str], dealer: Optional[Dealer] = None, preset_hands=None) -> 'GameState':
		"""配牌済みの新しい対局を作る"""
		if len(names) != NUM_SEATS:
			raise ValueError(f"A match needs exactly {NUM_SEATS} seats, got {len(names)}")
		dealer = dealer or Dealer()
		hands, deck = dealer.deal(preset_hands)
		players = []
		for seat, (name, tiles) in enumerate(zip(names, hands)):
			player = Player(seat, name)
			for tile in tiles:
				player.add_tile(tile)
			players.append(player)
		return cls(players, deck)

	@property
	def is_game_over(self) -> bool:
		return self.phase == Phase.GAME_OVER

	def tile_count(self) -> int:
		"""山・手牌・副露・河の総数（常に136）"""
		return len(self.deck) + sum(p.tile_count() for p in self.players)

	def check_conservation(self) -> bool:
		return self.tile_count() == TOTAL_TILES

	def to_dict(self) -> Dict[str, Any]:
		"""状態全体を JSON 化できる辞書にする（永続化の単位）"""
		last = self.last_discarded
		return {
			'current_player': self.current_player,
			'phase': self.phase.value,
			'turn_count': self.turn_count,
			'last_drawn': self.last_drawn.id if self.last_drawn else None,
			'last_discarded': {'tile': last.tile.id, 'from_seat': last.from_seat} if last else None,
			'winner': self.winner,
			'win_type': self.win_type.value if self.win_type else None,
			'window_id': self.window_id,
			'deck': [t.id for t in self.deck],
			'wall_count': len(self.deck),
			'players': [p.to_dict() for p in self.players],
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'GameState':
		"""to_dict の出力から状態を復元"""
		players = []
		for p_data in data['players']:
			player = Player(p_data['player_id'], p_data.get('name'))
			for tile_id in p_data['hand']:
				player.add_tile(Tile(tile_id))
			player.discards = [Tile(i) for i in p_data.get('discards', [])]
			player.melds = [Meld.from_dict(m) for m in p_data.get('melds', [])]
			players.append(player)

		state = cls(players, [Tile(i) for i in data['deck']])
		state.current_player = data.get('current_player', DEALER_SEAT)
		state.phase = Phase(data.get('phase', Phase.DISCARD.value))
		state.turn_count = data.get('turn_count', 0)
		state.last_drawn = Tile(data['last_drawn']) if data.get('last_drawn') is not None else None
		last = data.get('last_discarded')
		state.last_discarded = LastDiscard(Tile(last['tile']), last['from_seat']) if last else None
		state.winner = data.get('winner')
		state.win_type = WinType(data['win_type']) if data.get('win_type') else None
		state.window_id = data.get('window_id', 0)
		return state

	def __repr__(self) -> str:
		return (f"GameState(phase={self.phase.value}, current={self.current_player}, "
				f"deck={len(self.deck)}, winner={self.winner})")
