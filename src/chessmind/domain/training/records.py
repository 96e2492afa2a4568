from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, List, Optional, Protocol

from src.chessmind.domain.chess.board import Color, GameResult, Move

FINGERPRINT_LENGTH = 64


class MoveOutcome(str, Enum):
    """Result of a game as seen by the side that played a given move."""

    win = "win"
    loss = "loss"
    draw = "draw"
    ongoing = "ongoing"


class GameWinner(str, Enum):
    white = "white"
    black = "black"
    draw = "draw"


def winner_tag(result: GameResult) -> GameWinner:
    """Map a board result to a record tag; unfinished games count as draws."""
    if result is GameResult.white_won:
        return GameWinner.white
    if result is GameResult.black_won:
        return GameWinner.black
    return GameWinner.draw


def outcome_for(winner: GameWinner, color: Color) -> MoveOutcome:
    if winner is GameWinner.draw:
        return MoveOutcome.draw
    return MoveOutcome.win if winner.value == color.value else MoveOutcome.loss


@dataclass(frozen=True)
class MoveRecord:
    """One played move with the mover's evaluation of the position before it."""

    game_id: int
    move_number: int
    move: Move
    evaluation: float
    fingerprint: str
    result: MoveOutcome = MoveOutcome.ongoing
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class GameRecord:
    id: int
    started_at: datetime
    white_epsilon: float
    black_epsilon: float
    finished_at: Optional[datetime] = None
    winner: Optional[str] = None
    moves_count: Optional[int] = None


@dataclass(frozen=True)
class PositionStats:
    fingerprint: str
    total_games: int
    wins: int
    losses: int
    draws: int
    average_evaluation: Optional[float] = None
    best_move: Optional[Move] = None
    best_move_evaluation: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "fingerprint": self.fingerprint,
            "totalGames": self.total_games,
            "wins": self.wins,
            "losses": self.losses,
            "draws": self.draws,
            "averageEvaluation": self.average_evaluation,
            "bestMove": (
                self.best_move.source.algebraic + self.best_move.target.algebraic
                if self.best_move is not None
                else None
            ),
            "bestMoveEvaluation": self.best_move_evaluation,
        }


@dataclass(frozen=True)
class GameStatistic:
    """Summary line kept by the statistics sink for every finished game."""

    game_number: int
    winner: str
    epsilon: float
    moves_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "gameNumber": self.game_number,
            "winner": self.winner,
            "epsilon": self.epsilon,
            "movesCount": self.moves_count,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "GameStatistic":
        return cls(
            game_number=int(payload["gameNumber"]),
            winner=str(payload["winner"]),
            epsilon=float(payload["epsilon"]),
            moves_count=int(payload["movesCount"]),
        )


@dataclass(frozen=True)
class WinRates:
    """Percentages of finished games won by white, won by black and drawn."""

    white: float
    black: float
    draw: float
    total_games: int


class PersistenceError(RuntimeError):
    """Base class for storage failures that must not abort training."""


class WeightPersistenceError(PersistenceError):
    pass


class GameRecordError(PersistenceError):
    pass


class StatisticsError(PersistenceError):
    pass


class GameRecordRepository(Protocol):
    """Persistence contract for played games and their moves."""

    def start_game(
        self,
        white_epsilon: float,
        black_epsilon: float,
        started_at: datetime | None = None,
    ) -> int:
        ...

    def record_moves(self, records: Iterable[MoveRecord]) -> int:
        ...

    def finish_game(
        self,
        game_id: int,
        winner: str,
        moves_count: int,
        finished_at: datetime | None = None,
    ) -> GameRecord:
        ...

    def get_game(self, game_id: int) -> GameRecord | None:
        ...

    def total_games(self) -> int:
        ...

    def position_stats(self, fingerprint: str) -> PositionStats:
        ...

    def similar_moves(self, fingerprint: str, limit: int = 10) -> List[MoveRecord]:
        ...

    def update_move_results(self, game_id: int, result: MoveOutcome) -> int:
        ...


class StatisticsSink(Protocol):
    def add_game(self, statistic: GameStatistic) -> GameStatistic:
        """Store a finished game; the sink assigns the sequence number it returns."""
        ...

    def games(self) -> List[GameStatistic]:
        ...


class WeightStore(Protocol):
    def save(self, network: Any) -> Path:
        ...

    def load_into(self, network: Any) -> bool:
        ...


__all__ = [
    "FINGERPRINT_LENGTH",
    "GameRecord",
    "GameRecordError",
    "GameRecordRepository",
    "GameStatistic",
    "GameWinner",
    "MoveOutcome",
    "MoveRecord",
    "PersistenceError",
    "PositionStats",
    "StatisticsError",
    "StatisticsSink",
    "WeightPersistenceError",
    "WeightStore",
    "WinRates",
    "outcome_for",
    "winner_tag",
]
