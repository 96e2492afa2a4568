from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

from src.chessmind.domain.chess.board import BOARD_SIZE, Board, Color, Move, Square
from src.chessmind.domain.training.agent import LearningAgent, reward_for
from src.chessmind.domain.training.records import (
    GameStatistic,
    PersistenceError,
    StatisticsSink,
    WeightStore,
    winner_tag,
)
from src.chessmind.interface.telemetry.logging import get_logger


class SessionError(RuntimeError):
    """Base class for play-session domain errors."""

    code: str = "session_error"


class IllegalMoveError(SessionError):
    code = "illegal_move"


class GameFinishedError(SessionError):
    code = "game_finished"


class NotYourTurnError(SessionError):
    code = "not_your_turn"


@dataclass(frozen=True)
class BoardSnapshot:
    fen: str
    cells: List[List[Optional[dict[str, str]]]]
    turn: Color
    human_color: Color
    result: str
    termination: Optional[str]
    game_over: bool
    winner: Optional[str]
    check: bool
    move_count: int
    epsilon: float
    last_agent_move: Optional[str] = None
    moves: List[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "fen": self.fen,
            "board": self.cells,
            "turn": self.turn.value,
            "humanColor": self.human_color.value,
            "result": self.result,
            "termination": self.termination,
            "gameOver": self.game_over,
            "winner": self.winner,
            "check": self.check,
            "moveCount": self.move_count,
            "epsilon": self.epsilon,
            "lastAgentMove": self.last_agent_move,
            "moves": list(self.moves),
        }


class PlaySession:
    """One human-versus-agent game guarded by a lock.

    The agent searches on a clone with the lock released and only applies its
    move if the board is still the one it searched.
    """

    def __init__(
        self,
        agent: LearningAgent,
        *,
        statistics: StatisticsSink | None = None,
        weight_store: WeightStore | None = None,
        initial_fen: str | None = None,
    ) -> None:
        self._agent = agent
        self._statistics = statistics
        self._weight_store = weight_store
        self._initial_fen = initial_fen
        self._lock = threading.Lock()
        self._board = self._new_board()
        self._generation = 0
        self._moves: List[str] = []
        self._last_agent_move: Optional[str] = None
        self._logger = get_logger("chessmind.play")

    @property
    def agent(self) -> LearningAgent:
        return self._agent

    @property
    def human_color(self) -> Color:
        return self._agent.color.opponent

    def snapshot(self) -> BoardSnapshot:
        with self._lock:
            return self._snapshot_locked()

    def render(self) -> str:
        with self._lock:
            return str(self._board)

    def submit_move(self, move: Move, *, respond: bool = True) -> BoardSnapshot:
        """Apply a human move, then (optionally) let the agent answer."""
        with self._lock:
            board = self._board
            uci = _describe(board, move)
            if board.game_over:
                raise GameFinishedError("The game is already over; reset to play again.")
            if board.turn is self._agent.color:
                raise NotYourTurnError("It is not the human player's turn.")
            if not board.is_legal(move):
                self._logger.info("move_rejected", uci=uci)
                raise IllegalMoveError(f"Move {uci} is not legal in the current position.")

            board.apply(move)
            self._moves.append(uci)
            if board.game_over:
                self._finish_game_locked()

        if respond:
            self.agent_move()
        return self.snapshot()

    def agent_move(self) -> Optional[Move]:
        """Let the agent move if it is its turn; returns the move applied."""
        with self._lock:
            board = self._board
            if board.game_over or board.turn is not self._agent.color:
                return None
            workspace = board.clone()
            generation = self._generation
            move_count = board.move_count
            self._agent.record_state(workspace)

        move = self._agent.choose_move(workspace)

        with self._lock:
            board = self._board
            if (
                generation != self._generation
                or board.move_count != move_count
                or board.game_over
                or board.turn is not self._agent.color
            ):
                self._logger.info("agent_move_discarded", generation=generation)
                return None
            if move is None:
                return None
            uci = board.uci(move)
            board.apply(move)
            self._moves.append(uci)
            self._last_agent_move = uci
            if board.game_over:
                self._finish_game_locked()
        return move

    def reset(self) -> BoardSnapshot:
        with self._lock:
            self._board = self._new_board()
            self._generation += 1
            self._moves = []
            self._last_agent_move = None
            self._agent.reset_history()
            snapshot = self._snapshot_locked()
        self._logger.info("game_reset", generation=self._generation)
        return snapshot

    def save_weights(self) -> Optional[Path]:
        if self._weight_store is None:
            return None
        try:
            return self._weight_store.save(self._agent.network)
        except PersistenceError as exc:
            self._logger.error("weights_save_failed", error=str(exc))
            return None

    def _new_board(self) -> Board:
        return Board.from_fen(self._initial_fen) if self._initial_fen else Board.new_initial()

    def _finish_game_locked(self) -> None:
        board = self._board
        reward = reward_for(board.winner, self._agent.color)
        steps = self._agent.learn(reward)
        winner = winner_tag(board.result)
        self._logger.info(
            "game_finished",
            winner=winner.value,
            termination=board.termination.value if board.termination else None,
            moves=board.move_count,
            reward=reward,
            training_steps=steps,
            epsilon=round(self._agent.epsilon, 5),
        )

        self.save_weights()

        if self._statistics is not None:
            try:
                stored = self._statistics.add_game(
                    GameStatistic(
                        game_number=0,  # numbered by the sink
                        winner=winner.value,
                        epsilon=self._agent.epsilon,
                        moves_count=board.move_count,
                    )
                )
            except PersistenceError as exc:
                self._logger.error("statistics_write_failed", error=str(exc))
            else:
                self._logger.info("game_recorded", game_number=stored.game_number)

    def _snapshot_locked(self) -> BoardSnapshot:
        board = self._board
        cells: List[List[Optional[dict[str, str]]]] = []
        for row in range(BOARD_SIZE):
            line: List[Optional[dict[str, str]]] = []
            for col in range(BOARD_SIZE):
                piece = board.piece_at(Square(row, col))
                line.append(
                    None
                    if piece is None
                    else {"piece": piece.kind.name, "color": piece.color.value, "symbol": piece.symbol}
                )
            cells.append(line)

        winner = board.winner
        return BoardSnapshot(
            fen=board.fen(),
            cells=cells,
            turn=board.turn,
            human_color=self.human_color,
            result=board.result.value,
            termination=board.termination.value if board.termination else None,
            game_over=board.game_over,
            winner=winner.value if winner is not None else None,
            check=board.check,
            move_count=board.move_count,
            epsilon=self._agent.epsilon,
            last_agent_move=self._last_agent_move,
            moves=list(self._moves),
        )


def _describe(board: Board, move: Move) -> str:
    if move.source.on_board and move.target.on_board:
        return board.uci(move)
    return f"{tuple(move.source)}->{tuple(move.target)}"


__all__ = [
    "BoardSnapshot",
    "GameFinishedError",
    "IllegalMoveError",
    "NotYourTurnError",
    "PlaySession",
    "SessionError",
]
