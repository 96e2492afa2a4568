from __future__ import annotations

import threading

from src.chessmind.domain.training.self_play_runner import SelfPlayRunner


def test_runner_plays_until_stopped() -> None:
    played = threading.Event()

    def play_game(should_stop):
        played.set()
        should_stop()
        return object()

    runner = SelfPlayRunner(play_game, pause_seconds=0.01)

    assert runner.start() is True
    assert runner.start() is False
    assert played.wait(timeout=5)
    assert runner.stop(timeout=5) is True

    assert runner.running is False
    assert runner.games_completed >= 1
    assert runner.last_error is None
    assert runner.stop() is False


def test_interrupted_games_are_not_counted() -> None:
    def play_game(should_stop):
        return None

    runner = SelfPlayRunner(play_game, pause_seconds=0.01)
    runner.start()
    runner.stop(timeout=5)

    assert runner.games_completed == 0


def test_failure_stops_the_loop_and_is_reported() -> None:
    def play_game(should_stop):
        raise RuntimeError("board exploded")

    runner = SelfPlayRunner(play_game)
    runner.start()
    runner._thread.join(timeout=5)

    assert runner.running is False
    assert runner.last_error == "board exploded"
    assert runner.start() is True
    runner.stop(timeout=5)
