from __future__ import annotations

import random
from typing import List, Optional, Protocol, Sequence

import torch

from src.chessmind.domain.chess.board import Board, Color, Move
from src.chessmind.domain.training.features import board_to_tensor
from src.chessmind.domain.training.search import DEFAULT_SEARCH_DEPTH, MoveSelector

DEFAULT_EPSILON = 0.1
DEFAULT_GAMMA = 0.99
EPSILON_DECAY = 0.995
EPSILON_FLOOR = 0.01

WIN_REWARD = 1.0
LOSS_REWARD = 0.0
DRAW_REWARD = 0.5


class TrainableEvaluator(Protocol):
    def forward(self, features: torch.Tensor) -> float:
        ...

    def train(self, features: torch.Tensor, target: float) -> float:
        ...


class LearningAgent:
    """One side of the board: epsilon-greedy search plus a TD(1)-style update.

    The evaluator is shared by reference; two agents built on the same
    `SharedNetwork` train the same weights.
    """

    def __init__(
        self,
        color: Color,
        network: TrainableEvaluator,
        *,
        epsilon: float = DEFAULT_EPSILON,
        gamma: float = DEFAULT_GAMMA,
        search_depth: int = DEFAULT_SEARCH_DEPTH,
        rng: random.Random | None = None,
    ) -> None:
        if not 0.0 <= epsilon <= 1.0:
            raise ValueError(f"Epsilon must lie in [0, 1], received {epsilon!r}")
        if not 0.0 < gamma <= 1.0:
            raise ValueError(f"Gamma must lie in (0, 1], received {gamma!r}")
        self.color = color
        self.network = network
        self.epsilon = epsilon
        self.gamma = gamma
        self._selector = MoveSelector(network, depth=search_depth, rng=rng)
        self._history: List[torch.Tensor] = []

    @property
    def state_history(self) -> Sequence[torch.Tensor]:
        return tuple(self._history)

    @property
    def selector(self) -> MoveSelector:
        return self._selector

    def record_state(self, board: Board) -> torch.Tensor:
        features = board_to_tensor(board)
        self._history.append(features)
        return features

    def choose_move(self, board: Board) -> Optional[Move]:
        return self._selector.choose_move(board, self.epsilon)

    def evaluate(self, board: Board) -> float:
        return self._selector.evaluate(board)

    def learn(self, final_reward: float) -> int:
        """Train every recorded state toward the discounted final reward.

        The newest state gets the full reward, each older one a further
        factor of gamma. Epsilon then decays and the history is cleared.
        Returns the number of training steps; an empty history changes nothing.
        """
        if not self._history:
            return 0

        discount = 1.0
        for features in reversed(self._history):
            self.network.train(features, final_reward * discount)
            discount *= self.gamma

        steps = len(self._history)
        self.epsilon = max(EPSILON_FLOOR, self.epsilon * EPSILON_DECAY)
        self._history.clear()
        return steps

    def reset_history(self) -> None:
        self._history.clear()


def reward_for(winner: Optional[Color], color: Color) -> float:
    """Terminal reward from `color`'s point of view; `None` means a draw."""
    if winner is None:
        return DRAW_REWARD
    return WIN_REWARD if winner is color else LOSS_REWARD


__all__ = [
    "DEFAULT_EPSILON",
    "DEFAULT_GAMMA",
    "DRAW_REWARD",
    "EPSILON_DECAY",
    "EPSILON_FLOOR",
    "LOSS_REWARD",
    "LearningAgent",
    "TrainableEvaluator",
    "WIN_REWARD",
    "reward_for",
]
