from __future__ import annotations

import threading
from typing import Any, Callable

from src.chessmind.interface.telemetry.logging import get_logger

GameCallable = Callable[[Callable[[], bool]], Any]


class SelfPlayRunner:
    """Background thread that keeps playing games until stopped.

    `play_game` receives a `should_stop` callable to poll between plies.
    """

    def __init__(
        self,
        play_game: GameCallable,
        *,
        pause_seconds: float = 0.0,
        name: str = "chessmind-self-play",
    ) -> None:
        self._play_game = play_game
        self._pause_seconds = max(0.0, pause_seconds)
        self._name = name
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._games_completed = 0
        self._last_error: str | None = None
        self._logger = get_logger("chessmind.selfplay.runner")

    @property
    def running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    @property
    def games_completed(self) -> int:
        return self._games_completed

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def start(self) -> bool:
        """Start the loop; False when it is already running."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return False
            self._stop_event.clear()
            self._last_error = None
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()
        self._logger.info("selfplay_started")
        return True

    def stop(self, timeout: float | None = None) -> bool:
        """Ask the loop to finish; False when it was not running."""
        with self._lock:
            thread = self._thread
            if thread is None or not thread.is_alive():
                return False
            self._stop_event.set()
        if timeout is None or timeout > 0:
            thread.join(timeout)
        self._logger.info("selfplay_stop_requested", games_completed=self._games_completed)
        return True

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                result = self._play_game(self._stop_event.is_set)
            except Exception as exc:
                self._last_error = str(exc)
                self._logger.exception("selfplay_game_failed", error=str(exc))
                break
            if result is not None:
                self._games_completed += 1
            if self._pause_seconds:
                self._stop_event.wait(self._pause_seconds)
        self._logger.info("selfplay_stopped", games_completed=self._games_completed)


__all__ = ["GameCallable", "SelfPlayRunner"]
