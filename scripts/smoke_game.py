import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from logic.turn import TurnStateMachine

print('creating match')
m = TurnStateMachine.init_match(['a', 'b', 'c', 'd'])
print('wall count', len(m.state.deck))
seat = m.state.current_player
tile = m.state.players[seat].hand.to_list()[0]
m.apply_discard(seat, tile.id)
print('after discard:', m.state.phase.value, 'pending', sorted(m.pending_seats()))
print('available actions:', {s: sorted(a.value for a in m.compute_available_actions(s)) for s in range(4)})
print('tile count', m.state.tile_count())
m.close()
