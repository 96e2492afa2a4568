from __future__ import annotations

import math
from typing import Sequence

import torch
import torch.nn as nn
import torch.nn.functional as F

INPUT_FEATURES = 12 * 8 * 8  # 12 piece planes over 64 squares

HIDDEN_SIZES = (256, 128)


class ValueNetwork(nn.Module):
    """Feed-forward position evaluator: 768 -> 256 -> 128 -> 1.

    Hidden layers use ReLU, the output uses tanh so scores lie in [-1, 1].
    """

    def __init__(
        self,
        input_features: int = INPUT_FEATURES,
        hidden_sizes: Sequence[int] = HIDDEN_SIZES,
    ) -> None:
        super().__init__()
        if len(hidden_sizes) != 2:
            raise ValueError("ValueNetwork expects exactly two hidden layer sizes.")
        self.input_features = input_features
        self.hidden_sizes = tuple(hidden_sizes)

        self.fc1 = nn.Linear(input_features, hidden_sizes[0])
        self.fc2 = nn.Linear(hidden_sizes[0], hidden_sizes[1])
        self.fc3 = nn.Linear(hidden_sizes[1], 1)

        self._initialize_parameters()

    def _initialize_parameters(self) -> None:
        for m in self.modules():
            if isinstance(m, nn.Linear):
                # He-style uniform range, scaled by fan-in.
                bound = math.sqrt(2.0 / m.in_features)
                nn.init.uniform_(m.weight, -bound, bound)
                nn.init.zeros_(m.bias)

    def forward(self, x: torch.Tensor) -> torch.Tensor:  # type: ignore[override]
        if x.ndim != 2:
            raise ValueError("Expected input tensor of shape (batch, features)")
        if x.size(1) != self.input_features:
            raise ValueError(f"Expected {self.input_features} features, received {x.size(1)}")

        x = F.relu(self.fc1(x))
        x = F.relu(self.fc2(x))
        return torch.tanh(self.fc3(x))  # (B, 1)


__all__ = ["HIDDEN_SIZES", "INPUT_FEATURES", "ValueNetwork"]
