
from typing import Optional

from flask import Blueprint, Flask, current_app, jsonify, request

from config import Config, configure_logging, load_config
from models.game import Phase
from models.meld import MeldType
from models.room import MatchRegistry, RoomError
from logic.errors import EngineError
from logic.turn import TurnStateMachine

api = Blueprint('api', __name__)


def get_registry() -> MatchRegistry:
	return current_app.config['REGISTRY']


def get_match_or_error(room_id: str):
	"""部屋と進行中の対局を取得。無ければ (None, エラーレスポンス)"""
	room = get_registry().get(room_id)
	if room is None:
		return None, (jsonify({'error': f'Unknown room: {room_id}'}), 404)
	if room.match is None:
		return None, (jsonify({'error': 'Match has not started'}), 409)
	return room.match, None


def redact_meld(meld: dict) -> dict:
	"""他家の暗槓は両端以外を伏せる"""
	if meld['type'] != MeldType.AN_KONG.value:
		return meld
	tiles = meld['tiles']
	return dict(meld, tiles=[tiles[0], None, None, tiles[-1]])


def build_state_response(match: TurnStateMachine, seat: Optional[int], result: dict = None) -> dict:
	"""指定した席から見える状態をフロント向けJSONに整形（他家の手牌は伏せる）"""
	data = match.to_dict()
	state = match.state
	data.pop('deck', None)
	reveal_all = state.phase == Phase.GAME_OVER
	for p in data['players']:
		if p['player_id'] == seat or reveal_all:
			continue
		p['hand'] = None
		p['melds'] = [redact_meld(m) for m in p['melds']]

	if seat is not None:
		player = state.players[seat]
		data['my_seat'] = seat
		data['available_actions'] = sorted(a.value for a in match.compute_available_actions(seat))
		if len(player.hand) % 3 == 1:
			data['waits'] = match.evaluator.winning_tiles(player.hand.to_list(), player.melds)
		else:
			data['waits'] = []
	if result:
		data.update(result)
	return data


def parse_seat(payload: dict):
	try:
		return int(payload.get('seat'))
	except (TypeError, ValueError):
		return None


@api.errorhandler(EngineError)
def handle_engine_error(e: EngineError):
	return jsonify(e.to_dict()), 400


@api.errorhandler(RoomError)
def handle_room_error(e: RoomError):
	return jsonify({'error': str(e)}), 400


@api.route('/', methods=['GET'])
def index():
	return jsonify({'rooms': [room.to_dict() for room in get_registry().rooms.values()]})


@api.route('/rooms/<room_id>/join', methods=['POST'])
def join(room_id):
	payload = request.get_json(silent=True) or {}
	name = payload.get('name')
	if not name:
		return jsonify({'error': 'name is required'}), 400

	room, seat = get_registry().join(room_id, name)
	response = {'room': room.to_dict(), 'seat': seat}
	if room.match is not None:
		response['state'] = build_state_response(room.match, seat)
	return jsonify(response)


@api.route('/rooms/<room_id>/leave', methods=['POST'])
def leave(room_id):
	payload = request.get_json(silent=True) or {}
	seat = parse_seat(payload)
	if get_registry().get(room_id) is None:
		return jsonify({'error': f'Unknown room: {room_id}'}), 404
	room = get_registry().leave(room_id, seat)
	return jsonify({'room': room.to_dict() if room else None})


@api.route('/rooms/<room_id>/reset', methods=['POST'])
def reset(room_id):
	if get_registry().get(room_id) is None:
		return jsonify({'error': f'Unknown room: {room_id}'}), 404
	room = get_registry().reset(room_id)
	return jsonify({'room': room.to_dict(), 'state': build_state_response(room.match, None)})


@api.route('/rooms/<room_id>/state', methods=['GET'])
def state(room_id):
	match, error = get_match_or_error(room_id)
	if error:
		return error
	seat = request.args.get('seat', type=int)
	if seat is not None and not 0 <= seat < len(match.state.players):
		return jsonify({'error': f'Unknown seat: {seat}'}), 400
	return jsonify(build_state_response(match, seat))


@api.route('/rooms/<room_id>/discard', methods=['POST'])
def discard(room_id):
	match, error = get_match_or_error(room_id)
	if error:
		return error

	payload = request.get_json(silent=True) or {}
	seat = parse_seat(payload)
	try:
		tile_id = int(payload.get('tile_id'))
	except (TypeError, ValueError):
		return jsonify({'error': 'Invalid parameters'}), 400

	match.apply_discard(seat, tile_id)
	return jsonify(build_state_response(match, seat))


@api.route('/rooms/<room_id>/claim', methods=['POST'])
def claim(room_id):
	"""捨て牌への応答（Hu/Kong/Pong/Chi/Pass）を受け付ける"""
	match, error = get_match_or_error(room_id)
	if error:
		return error

	payload = request.get_json(silent=True) or {}
	seat = parse_seat(payload)
	tiles = payload.get('tiles') or None
	window_id = payload.get('window_id')
	if tiles is not None and (not isinstance(tiles, list) or not all(isinstance(t, int) for t in tiles)):
		return jsonify({'error': 'Invalid parameters'}), 400

	match.apply_claim(seat, payload.get('claim'), tiles=tiles, window_id=window_id)
	return jsonify(build_state_response(match, seat))


@api.route('/rooms/<room_id>/ankong', methods=['POST'])
def an_kong(room_id):
	match, error = get_match_or_error(room_id)
	if error:
		return error
	payload = request.get_json(silent=True) or {}
	seat = parse_seat(payload)
	match.apply_an_kong(seat, payload.get('kind'))
	return jsonify(build_state_response(match, seat))


@api.route('/rooms/<room_id>/bukong', methods=['POST'])
def bu_kong(room_id):
	match, error = get_match_or_error(room_id)
	if error:
		return error
	payload = request.get_json(silent=True) or {}
	seat = parse_seat(payload)
	match.apply_bu_kong(seat, payload.get('kind'))
	return jsonify(build_state_response(match, seat))


def create_app(config: Optional[Config] = None, registry: Optional[MatchRegistry] = None) -> Flask:
	"""
	Args:
		config: 設定（省略時は load_config()）
		registry: 部屋の登録簿（テストで差し替える）
	"""
	config = config or load_config()
	app = Flask(__name__)
	app.secret_key = config.web.secret_key
	app.config['MAHJONG'] = config
	app.config['REGISTRY'] = registry or MatchRegistry(config.engine)
	app.register_blueprint(api)
	return app


if __name__ == '__main__':
	config = load_config()
	configure_logging(config.engine.log_level)
	app = create_app(config)
	app.run(host=config.web.host, port=config.web.port, debug=config.web.debug)
