"""RL-focused infrastructure helpers."""

from .weight_store import FileWeightStore

__all__ = ["FileWeightStore"]
