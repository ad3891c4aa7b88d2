"""
スタンドアロンのCLI版対局シミュレータ（全席ツモ切り、胡できれば胡）
"""
import argparse

from config import EngineConfig, configure_logging
from models.game import Phase
from models.tile_utils import format_hand_compact
from logic.calls import ActionType
from logic.turn import TurnStateMachine


def print_hands(match: TurnStateMachine) -> None:
	"""全プレイヤーの手牌を表示"""
	for player in match.state.players:
		s = format_hand_compact(player.hand.to_list())
		melds = ' '.join(f"[{m.type.value}:{format_hand_compact(m.tiles)}]" for m in player.melds)
		print(f"Player {player.player_id}: {len(player.hand)} tiles -> {s} {melds}")


def respond_to_claims(match: TurnStateMachine) -> None:
	"""鳴き受付中の席は胡できれば胡、それ以外は Pass"""
	while match.state.phase == Phase.ACTION:
		for seat in sorted(match.pending_seats()):
			actions = match.compute_available_actions(seat)
			claim = ActionType.HU if ActionType.HU in actions else ActionType.PASS
			match.apply_claim(seat, claim)
			if match.state.phase != Phase.ACTION:
				break


def simulate_game(turns: int = 200, seed: int = None) -> TurnStateMachine:
	"""シミュレーションを実行"""
	match = TurnStateMachine.init_match(
		['East', 'South', 'West', 'North'], EngineConfig(seed=seed),
	)
	state = match.state

	print("Taiwan Mahjong CLI - dealing and draw/discard simulation")
	print("--- Initial hands ---")
	print_hands(match)
	print(f"Wall: {len(state.deck)} tiles remaining\n")

	for _ in range(turns):
		state = match.state
		if state.is_game_over:
			break
		seat = state.current_player
		actions = match.compute_available_actions(seat)
		if ActionType.HU in actions:
			match.apply_claim(seat, ActionType.HU)
			break

		player = state.players[seat]
		drawn = state.last_drawn
		tile = drawn if drawn is not None and drawn in player.hand else player.hand.to_list()[-1]
		match.apply_discard(seat, tile.id)
		print(f"Player {seat} discards {tile.name} ({len(player.hand)} tiles)")
		respond_to_claims(match)

	state = match.state
	print("\n--- Final hands ---")
	print_hands(match)
	if state.is_game_over:
		winner = 'none' if state.winner is None else f"Player {state.winner} ({state.win_type.value})"
		print(f"Game over after {state.turn_count} turns, winner: {winner}")
	print(f"Wall: {len(state.deck)} tiles remaining, total tiles: {state.tile_count()}")
	match.close()
	return match


def main():
	"""メイン関数"""
	parser = argparse.ArgumentParser(description='Taiwan Mahjong simulator - CLI Mode')
	parser.add_argument('--turns', type=int, default=200)
	parser.add_argument('--seed', type=int, default=None)
	parser.add_argument('--log-level', default='WARNING')
	args = parser.parse_args()

	configure_logging(args.log_level)
	simulate_game(turns=args.turns, seed=args.seed)


if __name__ == '__main__':
	main()
