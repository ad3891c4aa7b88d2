"""
山の生成と配牌
"""
import random
from typing import Dict, Iterable, List, Optional, Tuple

from models.tile_utils import Tile, build_tiles, sort_hand

NUM_SEATS = 4
HAND_SIZE = 16
DEALER_SEAT = 0


class Dealer:
	"""136枚の山を作ってシャッフルし、配牌するクラス"""

	def __init__(self, seed: Optional[int] = None, rng: Optional[random.Random] = None):
		"""
		Args:
			seed: 乱数シード（再現用）
			rng: 乱数生成器（指定時は seed より優先）
		"""
		self.rng = rng if rng is not None else random.Random(seed)

	def build_deck(self) -> List[Tile]:
		"""シャッフル済みの山を返す。ツモは末尾から行う"""
		deck = build_tiles()
		self.rng.shuffle(deck)
		return deck

	def deal(self, preset_hands: Optional[Dict[int, Iterable[Tile]]] = None) -> Tuple[List[List[Tile]], List[Tile]]:
		"""
		各席に16枚ずつ配り、親（席0）にもう1枚配る。

		Args:
			preset_hands: 席ごとに固定したい牌（局面の再現用）。残りは山から補う

		Returns:
			(4席分の手牌, 残りの山)
		"""
		deck = self.build_deck()
		hands: List[List[Tile]] = [[] for _ in range(NUM_SEATS)]

		if preset_hands:
			reserved = set()
			for seat, tiles in preset_hands.items():
				if seat < 0 or seat >= NUM_SEATS:
					raise ValueError(f"Invalid seat: {seat}")
				tiles = list(tiles)
				limit = HAND_SIZE + (1 if seat == DEALER_SEAT else 0)
				if len(tiles) > limit:
					raise ValueError(f"Too many preset tiles for seat {seat}: {len(tiles)}")
				for tile in tiles:
					if tile.id in reserved:
						raise ValueError(f"Tile dealt twice: {tile!r}")
					reserved.add(tile.id)
				hands[seat].extend(tiles)
			deck = [t for t in deck if t.id not in reserved]

		for _ in range(HAND_SIZE):
			for hand in hands:
				if len(hand) < HAND_SIZE:
					hand.append(deck.pop())

		# 親に1枚多く与える
		if len(hands[DEALER_SEAT]) < HAND_SIZE + 1:
			hands[DEALER_SEAT].append(deck.pop())

		return [sort_hand(h) for h in hands], deck
