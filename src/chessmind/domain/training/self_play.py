from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from src.chessmind.domain.chess.board import (
    MOVE_LIMIT,
    Board,
    Color,
    GameResult,
    Move,
    Termination,
)
from src.chessmind.domain.training.agent import LearningAgent, reward_for
from src.chessmind.domain.training.records import GameWinner, winner_tag


@dataclass(frozen=True)
class PlayedMove:
    ply: int
    color: Color
    move: Move
    uci: str
    evaluation: float
    fingerprint: str


@dataclass(frozen=True)
class SelfPlayEpisode:
    moves: List[PlayedMove]
    result: GameResult
    termination: Optional[Termination]
    final_fen: str
    interrupted: bool = False

    @property
    def winner(self) -> GameWinner:
        return winner_tag(self.result)

    @property
    def winning_color(self) -> Optional[Color]:
        if self.result is GameResult.white_won:
            return Color.white
        if self.result is GameResult.black_won:
            return Color.black
        return None

    @property
    def move_count(self) -> int:
        return len(self.moves)

    def reward_for(self, color: Color) -> float:
        return reward_for(self.winning_color, color)


class SelfPlayCollector:
    """Play one game between two agents that share a network."""

    def __init__(
        self,
        white: LearningAgent,
        black: LearningAgent,
        *,
        max_moves: int = MOVE_LIMIT,
    ) -> None:
        if white.color is not Color.white or black.color is not Color.black:
            raise ValueError("SelfPlayCollector needs a white and a black agent")
        if max_moves < 1:
            raise ValueError("max_moves must be positive")
        self._agents: Dict[Color, LearningAgent] = {Color.white: white, Color.black: black}
        self._max_moves = max_moves

    @property
    def max_moves(self) -> int:
        return self._max_moves

    def generate_episode(self, should_stop: Callable[[], bool] | None = None) -> SelfPlayEpisode:
        """Play from the initial position until the game ends or the ply cap is hit.

        Games that reach the cap without a result are scored as draws by move
        limit. When `should_stop` turns true between plies the episode comes
        back flagged as interrupted.
        """
        board = Board.new_initial()
        played: List[PlayedMove] = []
        interrupted = False

        while not board.game_over and len(played) < self._max_moves:
            if should_stop is not None and should_stop():
                interrupted = True
                break

            agent = self._agents[board.turn]
            features = agent.record_state(board)
            fingerprint = board.fingerprint()
            move = agent.choose_move(board)
            if move is None:
                break

            played.append(
                PlayedMove(
                    ply=len(played) + 1,
                    color=board.turn,
                    move=move,
                    uci=board.uci(move),
                    evaluation=agent.network.forward(features),
                    fingerprint=fingerprint,
                )
            )
            board.apply(move)

        result = board.result
        termination = board.termination
        if not board.game_over:
            result = GameResult.drawn
            termination = None if interrupted else Termination.move_limit

        return SelfPlayEpisode(
            moves=played,
            result=result,
            termination=termination,
            final_fen=board.fen(),
            interrupted=interrupted,
        )


__all__ = ["PlayedMove", "SelfPlayCollector", "SelfPlayEpisode"]
