"""
手番の進行（ツモ → 打牌 → 鳴き受付 → 打牌 / 終局）
"""
import threading
from typing import Callable, Dict, Iterable, Optional, Sequence, Set, Union

from loguru import logger

from config import EngineConfig
from models.dealer import Dealer, NUM_SEATS
from models.game import GameState, LastDiscard, Phase, WinType, next_seat
from models.tile_utils import Tile
from logic.calls import ActionType, CLAIM_TYPES, MeldRules
from logic.claims import ClaimArbiter, ClaimResolution
from logic.errors import IllegalAction, MalformedInput
from logic.win import WinEvaluator


class TurnStateMachine:
    """
    1対局の進行を管理するクラス。
    公開メソッドは全て対局ごとのロックの内側で実行され、検証が全て通ってから状態を変更する。
    """

    def __init__(self, state: GameState, config: Optional[EngineConfig] = None,
                 timer_factory: Callable = threading.Timer, dealer: Optional[Dealer] = None):
        """
        Args:
            state: 配牌済みの対局状態
            config: エンジン設定（鳴きの締め切りなど）
            timer_factory: 締め切りタイマーの生成関数
            dealer: reset() で使う配牌役
        """
        self.config = config or EngineConfig()
        self.state = state
        self.dealer = dealer or Dealer(self.config.seed)
        self.evaluator = WinEvaluator()
        self.arbiter = ClaimArbiter(self.evaluator, self.config.claim_timeout_ms, timer_factory)
        self._lock = threading.RLock()

        # 鳴き受付中に保存された状態は受付を開き直す（締め切りも改めて設定）
        if state.phase == Phase.ACTION and state.last_discarded is not None:
            window = self.arbiter.open(state, self._on_deadline)
            if not window.pending:
                self._apply_resolution(ClaimResolution(ActionType.PASS))

    @classmethod
    def init_match(cls, seats: Sequence[str], config: Optional[EngineConfig] = None,
                   timer_factory: Callable = threading.Timer, dealer: Optional[Dealer] = None,
                   preset_hands=None) -> 'TurnStateMachine':
        """
        4席揃った時点で対局を作る

        Args:
            seats: 4人分の名前
            preset_hands: 席ごとに固定する配牌（局面の再現用）
        """
        config = config or EngineConfig()
        dealer = dealer or Dealer(config.seed)
        state = GameState.new(seats, dealer, preset_hands)
        logger.info(f"match started: seats={list(seats)} deck={len(state.deck)}")
        return cls(state, config, timer_factory, dealer)

    # ---- 検証 ----

    @staticmethod
    def _check_seat(seat) -> int:
        if not isinstance(seat, int) or isinstance(seat, bool) or seat < 0 or seat >= NUM_SEATS:
            raise MalformedInput(f"Unknown seat: {seat!r}")
        return seat

    def _check_own_discard_phase(self, seat: int) -> None:
        state = self.state
        if state.is_game_over:
            raise IllegalAction("Game is already over")
        if state.phase != Phase.DISCARD:
            raise IllegalAction(f"Cannot act during {state.phase.value} phase")
        if seat != state.current_player:
            raise IllegalAction(f"It is seat {state.current_player}'s turn")

    @staticmethod
    def _parse_claim(claim: Union[ActionType, str]) -> ActionType:
        try:
            action = ActionType(claim)
        except ValueError:
            raise MalformedInput(f"Unknown claim: {claim!r}") from None
        if action not in CLAIM_TYPES:
            raise MalformedInput(f"{action.value} is not a claim")
        return action

    @staticmethod
    def _check_kind(kind) -> int:
        if not isinstance(kind, int) or isinstance(kind, bool) or kind < 0 or kind >= 34:
            raise MalformedInput(f"Unknown tile kind: {kind!r}")
        return kind

    # ---- 公開操作 ----

    def apply_discard(self, seat: int, tile_id: int) -> GameState:
        """
        現在の手番の席が牌を捨て、鳴きの受付を開始する。
        応答すべき席が無ければそのまま次の席がツモる。

        Args:
            seat: 捨てる席
            tile_id: 捨てる牌の id

        Raises:
            IllegalAction: 手番でない、打牌の局面でない
            MalformedInput: 席・牌が不正
        """
        with self._lock:
            seat = self._check_seat(seat)
            self._check_own_discard_phase(seat)
            player = self.state.players[seat]
            if not isinstance(tile_id, int) or isinstance(tile_id, bool) or player.hand.find(tile_id) is None:
                raise MalformedInput(f"Tile {tile_id!r} is not in seat {seat}'s hand")

            state = self.state
            tile = player.discard_tile(tile_id)
            state.last_discarded = LastDiscard(tile, seat)
            state.last_drawn = None
            state.window_id += 1
            state.phase = Phase.ACTION
            logger.debug(f"seat {seat} discards {tile.name} (window {state.window_id})")

            window = self.arbiter.open(state, self._on_deadline)
            if not window.pending:
                self._apply_resolution(ClaimResolution(ActionType.PASS))
            return state

    def apply_claim(self, seat: int, claim: Union[ActionType, str],
                    tiles: Optional[Sequence[int]] = None, window_id: Optional[int] = None) -> GameState:
        """
        捨て牌に対する応答（Hu / Kong / Pong / Chi / Pass）。
        自分の打牌の局面での Hu（window_id なし）は自摸和了の宣言として扱う。

        解決済みの捨て牌への応答や、古い window_id の応答は何もせずに現在の状態を返す。

        Args:
            seat: 応答する席
            claim: 行動
            tiles: 吃で使う手牌2枚の id（省略時は最初の組み合わせ）
            window_id: 対象の捨て牌の受付番号（省略可）
        """
        with self._lock:
            seat = self._check_seat(seat)
            action = self._parse_claim(claim)
            state = self.state

            # window_id 付きの応答は捨て牌宛てなので、自摸和了の宣言とはみなさない
            if window_id is None and state.phase == Phase.DISCARD \
                    and seat == state.current_player and action == ActionType.HU:
                return self._declare_self_draw(seat)

            if state.phase != Phase.ACTION or self.arbiter.window is None \
                    or (window_id is not None and window_id != state.window_id):
                logger.debug(f"stale {action.value} from seat {seat} ignored (phase={state.phase.value})")
                return state

            hand_tiles = state.players[seat].hand.to_list()
            response = self.arbiter.validate(seat, action, tiles, hand_tiles)
            resolution = self.arbiter.submit(response)
            if resolution is not None:
                self._apply_resolution(resolution)
            return state

    def apply_an_kong(self, seat: int, kind: Optional[int] = None) -> GameState:
        """
        暗槓: 手牌の同種4枚を副露にして1枚補充する。打牌の局面のまま

        Args:
            seat: 宣言する席
            kind: 槓する牌の34種インデックス（省略時は最初の候補）
        """
        with self._lock:
            seat = self._check_seat(seat)
            self._check_own_discard_phase(seat)
            player = self.state.players[seat]
            options = MeldRules.possible_an_kongs(player.hand.to_list())
            if not options:
                raise IllegalAction(f"Seat {seat} has no concealed kong")
            if kind is not None:
                kind = self._check_kind(kind)
                options = [t for t in options if t.tile_34 == kind]
                if not options:
                    raise IllegalAction(f"Seat {seat} cannot declare a concealed kong of kind {kind}")

            meld = player.declare_an_kong(options[0])
            logger.debug(f"seat {seat} declares AnKong {meld.tiles[0].name}")
            self._draw(seat)
            return self.state

    def apply_bu_kong(self, seat: int, kind: Optional[int] = None) -> GameState:
        """
        加槓: 碰の副露に手牌の4枚目を加えて1枚補充する。打牌の局面のまま
        """
        with self._lock:
            seat = self._check_seat(seat)
            self._check_own_discard_phase(seat)
            player = self.state.players[seat]
            options = MeldRules.possible_bu_kongs(player.hand.to_list(), player.melds)
            if not options:
                raise IllegalAction(f"Seat {seat} has no pong to promote")
            if kind is not None:
                kind = self._check_kind(kind)
                options = [(idx, t) for idx, t in options if t.tile_34 == kind]
                if not options:
                    raise IllegalAction(f"Seat {seat} cannot promote a pong of kind {kind}")

            meld_index, tile = options[0]
            player.promote_bu_kong(meld_index, tile)
            logger.debug(f"seat {seat} declares BuKong {tile.name}")
            self._draw(seat)
            return self.state

    def compute_available_actions(self, seat: int) -> Set[ActionType]:
        """
        指定した席が今の局面で取れる行動の集合

        Returns:
            打牌の局面の手番: Discard / AnKong / BuKong / Hu
            鳴き受付中の未応答の席: 可能な鳴き + Pass
        """
        with self._lock:
            seat = self._check_seat(seat)
            state = self.state
            if state.phase == Phase.DISCARD and seat == state.current_player:
                player = state.players[seat]
                hand_tiles = player.hand.to_list()
                actions = {ActionType.DISCARD}
                if MeldRules.possible_an_kongs(hand_tiles):
                    actions.add(ActionType.AN_KONG)
                if MeldRules.possible_bu_kongs(hand_tiles, player.melds):
                    actions.add(ActionType.BU_KONG)
                if MeldRules.can_hu(hand_tiles, player.melds, None, self.evaluator):
                    actions.add(ActionType.HU)
                return actions
            window = self.arbiter.window
            if state.phase == Phase.ACTION and window is not None and seat in window.pending:
                return set(window.eligible[seat]) | {ActionType.PASS}
            return set()

    def pending_seats(self) -> Set[int]:
        """鳴き受付中で応答を待っている席"""
        with self._lock:
            window = self.arbiter.window
            if self.state.phase != Phase.ACTION or window is None:
                return set()
            return set(window.pending)

    def expire_claim_window(self) -> GameState:
        """締め切りを待たずに受付を打ち切る（未応答は Pass 扱い）"""
        self._on_deadline(self.state.window_id)
        return self.state

    def close(self) -> None:
        """締め切りタイマーを取り消す（部屋の解散時など）"""
        with self._lock:
            self.arbiter.close()

    def reset(self, names: Optional[Iterable[str]] = None) -> GameState:
        """状態を破棄して配牌し直す"""
        with self._lock:
            self.arbiter.close()
            names = list(names) if names is not None else [p.name for p in self.state.players]
            self.state = GameState.new(names, self.dealer)
            logger.info(f"match reset: seats={names}")
            return self.state

    # ---- 遷移 ----

    def _on_deadline(self, window_id: int) -> None:
        with self._lock:
            if self.state.phase != Phase.ACTION or window_id != self.state.window_id:
                return
            resolution = self.arbiter.expire(window_id)
            if resolution is not None:
                self._apply_resolution(resolution)

    def _apply_resolution(self, resolution: ClaimResolution) -> None:
        state = self.state
        last = state.last_discarded
        self.arbiter.close()

        if resolution.action == ActionType.PASS:
            self._advance_after_pass(last.from_seat)
            return

        seat = resolution.seat
        claimant = state.players[seat]
        tile = state.players[last.from_seat].take_last_discard()
        state.last_discarded = None

        if resolution.action == ActionType.HU:
            claimant.add_tile(tile)
            self._finish(seat, WinType.DISCARD)
            return

        if resolution.action == ActionType.PONG:
            claimant.call_pong(tile, last.from_seat)
        elif resolution.action == ActionType.KONG:
            claimant.call_kong(tile, last.from_seat)
        else:
            claimant.call_chi(tile, resolution.tiles, last.from_seat)
        logger.debug(f"seat {seat} claims {resolution.action.value} on {tile.name}")

        state.current_player = seat
        if resolution.action == ActionType.KONG:
            self._draw(seat)
        else:
            state.phase = Phase.DISCARD

    def _advance_after_pass(self, discarder: int) -> None:
        state = self.state
        state.last_discarded = None
        state.turn_count += 1
        state.current_player = next_seat(discarder)
        self._draw(state.current_player)

    def _draw(self, seat: int) -> Optional[Tile]:
        """1枚ツモってツモ和了を判定する。山が空なら流局"""
        state = self.state
        state.phase = Phase.DRAW
        if not state.deck:
            logger.info("deck exhausted: game over without winner")
            self._finish(None, None)
            return None

        tile = state.deck.pop()
        player = state.players[seat]
        player.add_tile(tile)
        state.last_drawn = tile
        if player.hand.is_winning(player.melds):
            self._finish(seat, WinType.SELF_DRAW)
        else:
            state.phase = Phase.DISCARD
        return tile

    def _declare_self_draw(self, seat: int) -> GameState:
        player = self.state.players[seat]
        if not player.hand.is_winning(player.melds):
            raise IllegalAction(f"Seat {seat}'s hand is not complete")
        self._finish(seat, WinType.SELF_DRAW)
        return self.state

    def _finish(self, winner: Optional[int], win_type: Optional[WinType]) -> None:
        state = self.state
        self.arbiter.close()
        state.phase = Phase.GAME_OVER
        state.winner = winner
        state.win_type = win_type
        logger.info(f"game over: winner={winner} win_type={win_type.value if win_type else None} "
                    f"turns={state.turn_count}")

    def to_dict(self) -> Dict:
        """状態と受付中の鳴き情報"""
        with self._lock:
            data = self.state.to_dict()
            window = self.arbiter.window
            data['claim_window'] = window.to_dict() if window is not None and not window.is_resolved else None
            return data
