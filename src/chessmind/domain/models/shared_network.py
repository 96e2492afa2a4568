from __future__ import annotations

import copy
import math
import threading
from typing import Any, Mapping, Sequence

import torch

from src.chessmind.domain.models.value_network import ValueNetwork

DEFAULT_LEARNING_RATE = 1e-3
DEFAULT_MOMENTUM = 0.9
STATE_FORMAT_VERSION = 1

# tanh saturates to exactly +/-1.0 in floating point for large activations.
_OUTPUT_BOUND = math.nextafter(1.0, 0.0)


def is_valid_hyperparameter(value: Any) -> bool:
    """Learning rate and momentum must be finite numbers in (0, 1]."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and 0.0 < value <= 1.0


class SharedNetwork:
    """Value network plus its momentum optimizer behind one re-entrant lock.

    A single instance is handed to both self-play agents (and to the play
    session), so every forward and training call is serialized here.
    """

    def __init__(
        self,
        model: ValueNetwork | None = None,
        *,
        learning_rate: float = DEFAULT_LEARNING_RATE,
        momentum: float = DEFAULT_MOMENTUM,
    ) -> None:
        if not is_valid_hyperparameter(learning_rate):
            raise ValueError(f"Learning rate must lie in (0, 1], received {learning_rate!r}")
        if not is_valid_hyperparameter(momentum):
            raise ValueError(f"Momentum must lie in (0, 1], received {momentum!r}")
        self._model = model or ValueNetwork()
        self._optimizer = torch.optim.SGD(
            self._model.parameters(),
            lr=learning_rate,
            momentum=momentum,
        )
        self._lock = threading.RLock()

    @property
    def model(self) -> ValueNetwork:
        return self._model

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def learning_rate(self) -> float:
        return float(self._optimizer.param_groups[0]["lr"])

    @property
    def momentum(self) -> float:
        return float(self._optimizer.param_groups[0]["momentum"])

    def forward(self, features: torch.Tensor) -> float:
        """Score one encoded position; the result lies strictly inside (-1, 1)."""
        with self._lock, torch.no_grad():
            self._model.eval()
            output = self._model(features.reshape(1, -1)).item()
        return max(-_OUTPUT_BOUND, min(_OUTPUT_BOUND, output))

    def train(self, features: torch.Tensor, target: float) -> float:
        """Take one momentum step on `0.5 * (target - output) ** 2`; returns the loss."""
        with self._lock:
            self._model.train()
            self._optimizer.zero_grad(set_to_none=True)
            output = self._model(features.reshape(1, -1)).squeeze()
            loss = 0.5 * (float(target) - output).pow(2)
            loss.backward()
            self._optimizer.step()
            return float(loss.detach().item())

    def train_batch(self, inputs: Sequence[torch.Tensor], targets: Sequence[float]) -> float:
        """Sequential single-example steps; returns the mean loss."""
        if len(inputs) != len(targets):
            raise ValueError(f"Got {len(inputs)} inputs but {len(targets)} targets")
        if not inputs:
            return 0.0
        with self._lock:
            losses = [self.train(features, target) for features, target in zip(inputs, targets)]
        return sum(losses) / len(losses)

    def accuracy(self, inputs: Sequence[torch.Tensor], targets: Sequence[float]) -> float:
        """Fraction of samples where a positive score agrees with a target above 0.5."""
        if len(inputs) != len(targets):
            raise ValueError(f"Got {len(inputs)} inputs but {len(targets)} targets")
        if not inputs:
            return 0.0
        correct = 0
        for features, target in zip(inputs, targets):
            predicted_win = self.forward(features) > 0.0
            if predicted_win == (target > 0.5):
                correct += 1
        return correct / len(inputs)

    def export_state(self) -> dict[str, Any]:
        with self._lock:
            return {
                "format_version": STATE_FORMAT_VERSION,
                "model_state_dict": copy.deepcopy(self._model.state_dict()),
                "optimizer_state_dict": copy.deepcopy(self._optimizer.state_dict()),
                "learning_rate": self.learning_rate,
                "momentum": self.momentum,
            }

    def restore_state(self, state: Mapping[str, Any]) -> tuple[str, ...]:
        """Adopt weights (and momentum buffers) from `export_state` output.

        Nothing is changed when the weights do not fit this architecture; the
        error propagates. Hyperparameters outside (0, 1] are skipped and the
        current values kept; their names are returned.
        """
        model_state = state.get("model_state_dict")
        if not isinstance(model_state, Mapping):
            raise ValueError("State is missing a model_state_dict mapping.")

        with self._lock:
            previous = {"learning_rate": self.learning_rate, "momentum": self.momentum}

            staging_model = copy.deepcopy(self._model)
            staging_model.load_state_dict(model_state)
            staging_optimizer = torch.optim.SGD(
                staging_model.parameters(),
                lr=previous["learning_rate"],
                momentum=previous["momentum"],
            )
            optimizer_state = state.get("optimizer_state_dict")
            if optimizer_state is not None:
                staging_optimizer.load_state_dict(optimizer_state)

            self._model.load_state_dict(staging_model.state_dict())
            if optimizer_state is not None:
                self._optimizer.load_state_dict(staging_optimizer.state_dict())
            else:
                self._optimizer.state.clear()

            rejected = []
            for name, key in (("learning_rate", "lr"), ("momentum", "momentum")):
                value = state.get(name, previous[name])
                if not is_valid_hyperparameter(value):
                    rejected.append(name)
                    value = previous[name]
                for group in self._optimizer.param_groups:
                    group[key] = float(value)
            return tuple(rejected)


__all__ = [
    "DEFAULT_LEARNING_RATE",
    "DEFAULT_MOMENTUM",
    "STATE_FORMAT_VERSION",
    "SharedNetwork",
    "is_valid_hyperparameter",
]
