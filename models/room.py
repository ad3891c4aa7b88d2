"""
対局部屋の管理（最初の入室で作成、全員退出で破棄）
"""
import threading
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from config import EngineConfig
from models.dealer import NUM_SEATS
from logic.turn import TurnStateMachine


class RoomError(ValueError):
	"""入室・退出の失敗（満席、存在しない席など）"""


class Room:
	"""1つの部屋。席は固定の4枠で、4人揃うと対局が始まる"""

	def __init__(self, room_id: str):
		self.room_id = room_id
		self.seats: List[Optional[str]] = [None] * NUM_SEATS
		self.match: Optional[TurnStateMachine] = None

	@property
	def is_full(self) -> bool:
		return all(name is not None for name in self.seats)

	@property
	def is_empty(self) -> bool:
		return all(name is None for name in self.seats)

	def to_dict(self) -> dict:
		return {
			'room_id': self.room_id,
			'seats': list(self.seats),
			'started': self.match is not None,
		}


class MatchRegistry:
	"""部屋の登録簿。Webアプリなどの呼び出し側が1つ持って渡す"""

	def __init__(self, config: Optional[EngineConfig] = None, timer_factory: Callable = threading.Timer):
		"""
		Args:
			config: 対局に渡すエンジン設定
			timer_factory: 鳴き締め切りタイマーの生成関数
		"""
		self.config = config or EngineConfig()
		self.timer_factory = timer_factory
		self.rooms: Dict[str, Room] = {}
		self._lock = threading.Lock()

	def get(self, room_id: str) -> Optional[Room]:
		return self.rooms.get(room_id)

	def join(self, room_id: str, name: str) -> Tuple[Room, int]:
		"""
		空いている最初の席に座る。4席揃ったら対局を開始する

		Returns:
			(部屋, 席番号)
		"""
		with self._lock:
			room = self.rooms.get(room_id)
			if room is None:
				room = Room(room_id)
				self.rooms[room_id] = room
				logger.info(f"room {room_id} created")

			if room.is_full:
				raise RoomError(f"Room {room_id} is full")
			seat = room.seats.index(None)
			room.seats[seat] = name
			logger.info(f"{name} joined room {room_id} at seat {seat}")

			if room.is_full and room.match is None:
				room.match = TurnStateMachine.init_match(room.seats, self.config, self.timer_factory)
			return room, seat

	def leave(self, room_id: str, seat: int) -> Optional[Room]:
		"""
		席を空ける。部屋が空になれば破棄し、そうでなければ対局を打ち切る

		Returns:
			残った部屋（破棄した場合は None）
		"""
		with self._lock:
			room = self.rooms.get(room_id)
			if room is None:
				raise RoomError(f"Unknown room: {room_id}")
			if not isinstance(seat, int) or seat < 0 or seat >= NUM_SEATS or room.seats[seat] is None:
				raise RoomError(f"Seat {seat} is not occupied")

			logger.info(f"{room.seats[seat]} left room {room_id}")
			room.seats[seat] = None
			if room.match is not None:
				room.match.close()
				room.match = None

			if room.is_empty:
				del self.rooms[room_id]
				logger.info(f"room {room_id} destroyed")
				return None
			return room

	def reset(self, room_id: str) -> Room:
		"""対局を配牌し直す（4人揃っている場合のみ）"""
		with self._lock:
			room = self.rooms.get(room_id)
			if room is None:
				raise RoomError(f"Unknown room: {room_id}")
			if not room.is_full:
				raise RoomError(f"Room {room_id} is waiting for players")
			if room.match is None:
				room.match = TurnStateMachine.init_match(room.seats, self.config, self.timer_factory)
			else:
				room.match.reset(room.seats)
			return room

	def __len__(self) -> int:
		return len(self.rooms)

	def __contains__(self, room_id: str) -> bool:
		return room_id in self.rooms
