from __future__ import annotations

import threading
import time
from dataclasses import replace
from pathlib import Path

import pytest

from src.chessmind.domain.chess.board import Board
from src.chessmind.infrastructure.persistence.game_record_repository import repository_scope
from src.chessmind.interface.http.app import create_app


@pytest.fixture
def file_backed_app(app_config, tmp_path: Path, network):
    config = replace(
        app_config,
        database_url=f"sqlite+pysqlite:///{tmp_path / 'db' / 'chess.db'}",
        weights_path=tmp_path / "weights.pt",
        statistics_path=tmp_path / "games.json",
        games_dir=tmp_path / "games",
        max_game_moves=16,
    )
    flask_app = create_app(config, network=network)
    flask_app.config.update(TESTING=True)
    yield flask_app
    flask_app.extensions["chessmind"].runner.stop(timeout=30)


def test_self_play_and_position_lookups_share_a_file_database(file_backed_app) -> None:
    context = file_backed_app.extensions["chessmind"]
    fingerprint = Board.new_initial().fingerprint()
    statuses: list[int] = []
    errors: list[BaseException] = []
    done = threading.Event()

    def lookups() -> None:
        client = file_backed_app.test_client()
        try:
            while not done.is_set():
                statuses.append(client.get(f"/api/positions/{fingerprint}").status_code)
        except BaseException as exc:  # surfaced through the assertion below
            errors.append(exc)

    assert context.runner.start()
    readers = [threading.Thread(target=lookups) for _ in range(3)]
    for reader in readers:
        reader.start()

    deadline = time.monotonic() + 60
    while context.orchestrator.games_played < 3 and time.monotonic() < deadline:
        time.sleep(0.05)
    done.set()
    for reader in readers:
        reader.join(timeout=30)
    assert context.runner.stop(timeout=30)

    assert errors == []
    assert statuses and set(statuses) == {200}
    assert context.runner.last_error is None
    assert context.orchestrator.games_played >= 3
    assert context.orchestrator.persistence_failures == 0

    with repository_scope(file_backed_app.config["SESSION_FACTORY"]) as repository:
        assert repository.total_games() == context.orchestrator.games_played
        for game_id in range(1, context.orchestrator.games_played + 1):
            game = repository.get_game(game_id)
            assert game is not None and game.finished_at is not None
            assert game.moves_count == len(repository.moves_for_game(game_id))

    numbers = [game.game_number for game in context.statistics.games()]
    assert numbers == list(range(1, len(numbers) + 1))
    assert len(numbers) == context.orchestrator.games_played
