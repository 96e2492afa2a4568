from __future__ import annotations

import os
import pickle
from datetime import datetime, timezone
from pathlib import Path

import torch

from src.chessmind.domain.models.shared_network import SharedNetwork
from src.chessmind.domain.training.records import WeightPersistenceError, WeightStore
from src.chessmind.interface.telemetry.logging import get_logger


class FileWeightStore(WeightStore):
    """Persist the shared network as a single `.pt` file.

    Saving goes through a temp file and an atomic replace. Loading is best
    effort: a missing, corrupt or mismatched file leaves the network as it was.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._logger = get_logger("chessmind.weights")

    @property
    def path(self) -> Path:
        return self._path

    def save(self, network: SharedNetwork) -> Path:
        state = network.export_state()
        state["saved_at"] = datetime.now(timezone.utc).isoformat()
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            torch.save(state, tmp_path)
            os.replace(tmp_path, self._path)
        except (OSError, RuntimeError, pickle.PicklingError) as exc:
            raise WeightPersistenceError(f"Failed to save weights to {self._path}: {exc}") from exc
        self._logger.info("weights_saved", path=str(self._path))
        return self._path

    def load_into(self, network: SharedNetwork) -> bool:
        """Restore saved weights into `network`; False when nothing was loaded."""
        if not self._path.exists():
            self._logger.info("weights_not_found", path=str(self._path))
            return False

        try:
            state = torch.load(self._path, map_location="cpu")
        except (OSError, RuntimeError, EOFError, ValueError, pickle.UnpicklingError) as exc:
            self._logger.warning("weights_load_failed", path=str(self._path), error=str(exc))
            return False
        if not isinstance(state, dict):
            self._logger.warning("weights_load_failed", path=str(self._path), error="unexpected payload")
            return False

        try:
            rejected = network.restore_state(state)
        except (KeyError, TypeError, ValueError, RuntimeError) as exc:
            self._logger.warning("weights_load_failed", path=str(self._path), error=str(exc))
            return False

        if rejected:
            self._logger.warning(
                "weights_hyperparameters_rejected",
                path=str(self._path),
                rejected=list(rejected),
                learning_rate=network.learning_rate,
                momentum=network.momentum,
            )
        self._logger.info("weights_loaded", path=str(self._path))
        return True


__all__ = ["FileWeightStore"]
