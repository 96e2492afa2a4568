from __future__ import annotations

import json
import os
import threading
from dataclasses import replace
from pathlib import Path
from typing import List

from src.chessmind.domain.training.records import (
    GameStatistic,
    GameWinner,
    StatisticsError,
    StatisticsSink,
    WinRates,
)
from src.chessmind.interface.telemetry.logging import get_logger


class JsonStatisticsStore(StatisticsSink):
    """Per-game summaries kept in memory and mirrored to a JSON document.

    The file holds `{"games": [...]}` and is rewritten after every add.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._games: List[GameStatistic] = []
        self._logger = get_logger("chessmind.statistics")
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def add_game(self, statistic: GameStatistic) -> GameStatistic:
        """Append a finished game, numbered next in sequence whatever number it carried."""
        with self._lock:
            stored = replace(statistic, game_number=len(self._games) + 1)
            self._games.append(stored)
            self._write_locked()
        return stored

    def games(self) -> List[GameStatistic]:
        with self._lock:
            return list(self._games)

    def win_rates(self) -> WinRates:
        with self._lock:
            total = len(self._games)
            if total == 0:
                return WinRates(white=0.0, black=0.0, draw=0.0, total_games=0)
            counts = {winner.value: 0 for winner in GameWinner}
            for game in self._games:
                counts[game.winner] = counts.get(game.winner, 0) + 1
        return WinRates(
            white=counts[GameWinner.white.value] * 100.0 / total,
            black=counts[GameWinner.black.value] * 100.0 / total,
            draw=counts[GameWinner.draw.value] * 100.0 / total,
            total_games=total,
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._games)

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
            games = [GameStatistic.from_dict(item) for item in payload.get("games", [])]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            self._logger.warning("statistics_load_failed", path=str(self._path), error=str(exc))
            return
        self._games = games

    def _write_locked(self) -> None:
        payload = {"games": [game.to_dict() for game in self._games]}
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise StatisticsError(f"Failed to write statistics to {self._path}: {exc}") from exc


__all__ = ["JsonStatisticsStore"]
