from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Optional, Protocol

import torch

from src.chessmind.domain.chess.board import Board, Move
from src.chessmind.domain.training.features import board_to_tensor

DEFAULT_SEARCH_DEPTH = 2


class PositionEvaluator(Protocol):
    """Anything that scores an encoded position, e.g. `SharedNetwork`."""

    def forward(self, features: torch.Tensor) -> float:
        ...


@dataclass(frozen=True)
class SearchResult:
    value: float
    move: Optional[Move]


class MoveSelector:
    """Epsilon-greedy move choice backed by depth-limited alpha-beta minimax."""

    def __init__(
        self,
        evaluator: PositionEvaluator,
        *,
        depth: int = DEFAULT_SEARCH_DEPTH,
        rng: random.Random | None = None,
    ) -> None:
        if depth < 1:
            raise ValueError("Search depth must be at least 1")
        self._evaluator = evaluator
        self._depth = depth
        self._rng = rng or random.Random()

    @property
    def depth(self) -> int:
        return self._depth

    def evaluate(self, board: Board) -> float:
        return self._evaluator.forward(board_to_tensor(board))

    def choose_move(self, board: Board, epsilon: float) -> Optional[Move]:
        """Pick a move for the side to move; `None` only when none is legal.

        The caller's board is never mutated: the search runs on a private clone.
        """
        moves = board.legal_moves()
        if not moves:
            return None
        if self._rng.random() < epsilon:
            return self._rng.choice(moves)

        workspace = board.clone()
        result = self.minimax(workspace, self._depth, -math.inf, math.inf, True)
        if result.move is None:
            return self._rng.choice(moves)
        return result.move

    def minimax(
        self,
        board: Board,
        depth: int,
        alpha: float,
        beta: float,
        maximizing: bool,
    ) -> SearchResult:
        """Alpha-beta search; `board` is restored via undo before returning.

        The root always maximizes the evaluator's score, whichever side is to
        move. Ties keep the first move in `legal_moves()` order.
        """
        if depth == 0 or board.game_over:
            return SearchResult(self.evaluate(board), None)

        moves = board.legal_moves()
        if not moves:
            return SearchResult(self.evaluate(board), None)

        best_move: Optional[Move] = None
        if maximizing:
            best = -math.inf
            for move in moves:
                board.apply(move)
                value = self.minimax(board, depth - 1, alpha, beta, False).value
                board.undo()
                if value > best:
                    best, best_move = value, move
                alpha = max(alpha, value)
                if beta <= alpha:
                    break
        else:
            best = math.inf
            for move in moves:
                board.apply(move)
                value = self.minimax(board, depth - 1, alpha, beta, True).value
                board.undo()
                if value < best:
                    best, best_move = value, move
                beta = min(beta, value)
                if beta <= alpha:
                    break
        return SearchResult(best, best_move)


__all__ = ["DEFAULT_SEARCH_DEPTH", "MoveSelector", "PositionEvaluator", "SearchResult"]
