"""Value network components for ChessMind."""

from .shared_network import (
    DEFAULT_LEARNING_RATE,
    DEFAULT_MOMENTUM,
    SharedNetwork,
    is_valid_hyperparameter,
)
from .value_network import INPUT_FEATURES, ValueNetwork

__all__ = [
    "DEFAULT_LEARNING_RATE",
    "DEFAULT_MOMENTUM",
    "INPUT_FEATURES",
    "SharedNetwork",
    "ValueNetwork",
    "is_valid_hyperparameter",
]
