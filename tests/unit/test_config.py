from __future__ import annotations

from pathlib import Path

import pytest

from src.chessmind.infrastructure.config import load_config

_KEYS = (
    "DATABASE_URL",
    "WEIGHTS_PATH",
    "STATISTICS_PATH",
    "GAMES_DIR",
    "TENSORBOARD_LOG_DIR",
    "FLASK_ENV",
    "STRUCTLOG_LEVEL",
    "TRAINING_LEARNING_RATE",
    "TRAINING_MOMENTUM",
    "AGENT_EPSILON",
    "AGENT_GAMMA",
    "SEARCH_DEPTH",
    "CHECKPOINT_INTERVAL",
    "MAX_GAME_MOVES",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for key in _KEYS:
        monkeypatch.delenv(key, raising=False)
        monkeypatch.delenv(f"CM_{key}", raising=False)
    return monkeypatch


def test_defaults(clean_env: pytest.MonkeyPatch) -> None:
    config = load_config()

    assert config.database_url == "sqlite+pysqlite:///data/chess.db"
    assert config.weights_path == Path("models/weights.pt").resolve()
    assert config.statistics_path.name == "games.json"
    assert config.tensorboard_log_dir is None
    assert config.flask_env == "production"
    assert config.additional == {}
    assert config.agent_epsilon == 0.1
    assert config.agent_gamma == 0.99
    assert config.search_depth == 2
    assert config.checkpoint_interval == 10
    assert config.max_game_moves == 200


def test_environment_overrides(clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    clean_env.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    clean_env.setenv("WEIGHTS_PATH", str(tmp_path / "w.pt"))
    clean_env.setenv("TENSORBOARD_LOG_DIR", str(tmp_path / "tb"))
    clean_env.setenv("STRUCTLOG_LEVEL", "DEBUG")
    clean_env.setenv("SEARCH_DEPTH", "3")
    clean_env.setenv("AGENT_EPSILON", "0.25")

    config = load_config()

    assert config.database_url == "sqlite+pysqlite:///:memory:"
    assert config.weights_path == (tmp_path / "w.pt").resolve()
    assert config.tensorboard_log_dir == (tmp_path / "tb").resolve()
    assert config.additional == {"STRUCTLOG_LEVEL": "DEBUG"}
    assert config.search_depth == 3
    assert config.agent_epsilon == 0.25


def test_prefix_and_unparseable_numbers(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("CM_CHECKPOINT_INTERVAL", "often")
    clean_env.setenv("CM_TRAINING_MOMENTUM", "0.5")
    clean_env.setenv("TRAINING_MOMENTUM", "0.7")

    config = load_config(prefix="CM_")

    assert config.checkpoint_interval == 10
    assert config.training_momentum == 0.5
