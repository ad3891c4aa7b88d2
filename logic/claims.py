"""
捨て牌1枚に対する鳴きの受付と解決
"""
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, List, Optional, Sequence, Set

from loguru import logger

from models.game import GameState, next_seat
from models.tile_utils import Tile
from logic.calls import ActionType, ClaimResponse, MeldRules
from logic.errors import IllegalAction, MalformedInput
from logic.win import WinEvaluator

DEFAULT_TIMEOUT_MS = 3000


@dataclass
class ClaimResolution:
    """鳴き受付の結果（1つの捨て牌につき1回だけ決まる）"""
    action: ActionType          # HU / KONG / PONG / CHI / PASS
    seat: Optional[int] = None  # PASS なら None
    tiles: List[Tile] = field(default_factory=list)
    timed_out: bool = False


class ClaimWindow:
    """
    1つの捨て牌に対する受付期間。
    応答は到着順に queue に積まれ、1つずつ処理される。
    """

    def __init__(self, window_id: int, tile: Tile, discarder: int,
                 eligible: Dict[int, Set[ActionType]], chi_options: Dict[int, list]):
        self.window_id = window_id
        self.tile = tile
        self.discarder = discarder
        self.eligible = eligible
        self.chi_options = chi_options
        self.pending: Set[int] = set(eligible)
        self.queue: Deque[ClaimResponse] = deque()
        self.resolution: Optional[ClaimResolution] = None
        self.timer = None

    @property
    def is_resolved(self) -> bool:
        return self.resolution is not None

    def to_dict(self) -> dict:
        return {
            'window_id': self.window_id,
            'tile': self.tile.id,
            'discarder': self.discarder,
            'pending': sorted(self.pending),
            'eligible': {str(s): sorted(a.value for a in acts) for s, acts in self.eligible.items()},
        }


class ClaimArbiter:
    """鳴きの優先判定と締め切り管理"""

    def __init__(self, evaluator: Optional[WinEvaluator] = None,
                 timeout_ms: int = DEFAULT_TIMEOUT_MS,
                 timer_factory: Callable = threading.Timer):
        """
        Args:
            evaluator: 胡判定に使う WinEvaluator
            timeout_ms: 応答の締め切り（ミリ秒）
            timer_factory: threading.Timer 互換の生成関数（テストでは手動で発火させる）
        """
        self.evaluator = evaluator or WinEvaluator()
        self.timeout_ms = timeout_ms
        self.timer_factory = timer_factory
        self.window: Optional[ClaimWindow] = None

    def build_eligibility(self, state: GameState, tile: Tile, discarder: int):
        """
        捨て牌に対して各席が取れる鳴きを作成（捨てた席は除く、吃は下家のみ）

        Returns:
            (席→可能な鳴き, 席→吃の組み合わせ)
        """
        eligible: Dict[int, Set[ActionType]] = {}
        chi_options: Dict[int, list] = {}
        chi_seat = next_seat(discarder)

        for i in range(1, len(state.players)):
            seat = (discarder + i) % len(state.players)
            player = state.players[seat]
            hand_tiles = player.hand.to_list()
            actions: Set[ActionType] = set()
            if MeldRules.can_hu(hand_tiles, player.melds, tile, self.evaluator):
                actions.add(ActionType.HU)
            if MeldRules.can_kong(hand_tiles, tile):
                actions.add(ActionType.KONG)
            if MeldRules.can_pong(hand_tiles, tile):
                actions.add(ActionType.PONG)
            if seat == chi_seat:
                options = MeldRules.can_chi(hand_tiles, tile)
                if options:
                    actions.add(ActionType.CHI)
                    chi_options[seat] = options
            if actions:
                eligible[seat] = actions
        return eligible, chi_options

    def open(self, state: GameState, on_deadline: Callable[[int], None]) -> ClaimWindow:
        """
        直前の捨て牌に対する受付を開始する。応答すべき席が無ければ締め切りは設定しない
        """
        self.close()
        last = state.last_discarded
        eligible, chi_options = self.build_eligibility(state, last.tile, last.from_seat)
        window = ClaimWindow(state.window_id, last.tile, last.from_seat, eligible, chi_options)
        self.window = window

        if window.pending:
            timer = self.timer_factory(self.timeout_ms / 1000.0, on_deadline, args=(window.window_id,))
            timer.daemon = True
            window.timer = timer
            timer.start()
            logger.debug(f"claim window {window.window_id} opened on {last.tile.name}: "
                         f"pending={sorted(window.pending)}")
        return window

    def close(self) -> None:
        """受付を終了し、締め切りタイマーを取り消す"""
        if self.window is not None and self.window.timer is not None:
            self.window.timer.cancel()
            self.window.timer = None
        self.window = None

    def validate(self, seat: int, action: ActionType, tile_ids: Optional[Sequence[int]], hand_tiles) -> ClaimResponse:
        """
        応答が正当か確認する（状態は変更しない）

        Raises:
            IllegalAction: 権利のない鳴き、下家以外の吃
            MalformedInput: 手牌にない牌の指定
        """
        window = self.window
        if seat not in window.eligible:
            raise IllegalAction(f"Seat {seat} is not eligible for the current discard")
        if action == ActionType.PASS:
            return ClaimResponse(seat, action)
        if action == ActionType.CHI and seat != next_seat(window.discarder):
            raise IllegalAction(f"Chi is only allowed for seat {next_seat(window.discarder)}")
        if action not in window.eligible[seat]:
            raise IllegalAction(f"Seat {seat} cannot claim {action.value} on {window.tile.name}")

        tiles: List[Tile] = []
        if action == ActionType.CHI:
            options = window.chi_options[seat]
            if tile_ids:
                by_id = {t.id: t for t in hand_tiles}
                if len(tile_ids) != 2 or len(set(tile_ids)) != 2 or any(i not in by_id for i in tile_ids):
                    raise MalformedInput(f"Chi needs two distinct tiles from hand, got {list(tile_ids)}")
                tiles = [by_id[i] for i in tile_ids]
                kinds = sorted(t.tile_34 for t in tiles)
                if not any(sorted((a.tile_34, b.tile_34)) == kinds for a, b in options):
                    raise IllegalAction(f"Tiles {list(tile_ids)} do not complete a run with {window.tile.name}")
            else:
                tiles = list(options[0])
        return ClaimResponse(seat, action, tiles)

    def submit(self, response: ClaimResponse) -> Optional[ClaimResolution]:
        """
        応答を到着順に処理する。解決済み・応答済みの席からの応答は無視する

        Returns:
            この応答で解決した場合はその結果、まだ待つ場合や無視した場合は None
        """
        window = self.window
        if window is None or window.is_resolved:
            logger.debug(f"late response ignored: {response.to_dict()}")
            return None
        window.queue.append(response)
        return self._drain(window)

    def _drain(self, window: ClaimWindow) -> Optional[ClaimResolution]:
        while window.queue and not window.is_resolved:
            response = window.queue.popleft()
            if response.seat not in window.pending:
                logger.debug(f"duplicate response ignored: {response.to_dict()}")
                continue
            if response.action == ActionType.PASS:
                window.pending.discard(response.seat)
                if not window.pending:
                    self._resolve(window, ClaimResolution(ActionType.PASS))
            else:
                window.pending.clear()
                self._resolve(window, ClaimResolution(response.action, response.seat, response.tiles))
        window.queue.clear()
        return window.resolution

    def expire(self, window_id: int) -> Optional[ClaimResolution]:
        """締め切り: 未応答の席は全て Pass とみなす"""
        window = self.window
        if window is None or window.window_id != window_id or window.is_resolved:
            return None
        logger.debug(f"claim window {window_id} timed out: treating {sorted(window.pending)} as pass")
        window.pending.clear()
        window.timer = None
        return self._resolve(window, ClaimResolution(ActionType.PASS, timed_out=True))

    def _resolve(self, window: ClaimWindow, resolution: ClaimResolution) -> ClaimResolution:
        window.resolution = resolution
        if window.timer is not None:
            window.timer.cancel()
            window.timer = None
        logger.debug(f"claim window {window.window_id} resolved: {resolution.action.value} seat={resolution.seat}")
        return resolution
