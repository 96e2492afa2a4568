from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import os


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Centralized runtime configuration for training, play and the API."""

    database_url: str
    weights_path: Path
    statistics_path: Path
    games_dir: Path
    tensorboard_log_dir: Path | None = None
    flask_env: str = "production"
    additional: dict[str, str] = field(default_factory=dict)
    training_learning_rate: float = 1e-3
    training_momentum: float = 0.9
    agent_epsilon: float = 0.1
    agent_gamma: float = 0.99
    search_depth: int = 2
    checkpoint_interval: int = 10
    max_game_moves: int = 200


def load_config(prefix: str = "") -> AppConfig:
    """Load application configuration from environment variables."""

    def _get_env(key: str, default: str = "") -> str:
        env_key = f"{prefix}{key}"
        return os.getenv(env_key, default)

    def _parse_float(raw: str, fallback: float) -> float:
        try:
            return float(raw)
        except (TypeError, ValueError):
            return fallback

    def _parse_int(raw: str, fallback: int) -> int:
        try:
            return int(raw)
        except (TypeError, ValueError):
            return fallback

    database_url = _get_env("DATABASE_URL", "sqlite+pysqlite:///data/chess.db")
    weights_path = Path(_get_env("WEIGHTS_PATH", "models/weights.pt")).resolve()
    statistics_path = Path(_get_env("STATISTICS_PATH", "stats/games.json")).resolve()
    games_dir = Path(_get_env("GAMES_DIR", "data/games")).resolve()
    tensorboard_raw = _get_env("TENSORBOARD_LOG_DIR", "")
    tensorboard_dir = Path(tensorboard_raw).resolve() if tensorboard_raw else None

    additional_keys = ("STRUCTLOG_LEVEL",)
    additional: dict[str, str] = {}
    for key in additional_keys:
        value = _get_env(key, "")
        if value:
            additional[key] = value

    return AppConfig(
        database_url=database_url,
        weights_path=weights_path,
        statistics_path=statistics_path,
        games_dir=games_dir,
        tensorboard_log_dir=tensorboard_dir,
        flask_env=_get_env("FLASK_ENV", "production"),
        additional=additional,
        training_learning_rate=_parse_float(_get_env("TRAINING_LEARNING_RATE", "0.001"), 0.001),
        training_momentum=_parse_float(_get_env("TRAINING_MOMENTUM", "0.9"), 0.9),
        agent_epsilon=_parse_float(_get_env("AGENT_EPSILON", "0.1"), 0.1),
        agent_gamma=_parse_float(_get_env("AGENT_GAMMA", "0.99"), 0.99),
        search_depth=_parse_int(_get_env("SEARCH_DEPTH", "2"), 2),
        checkpoint_interval=_parse_int(_get_env("CHECKPOINT_INTERVAL", "10"), 10),
        max_game_moves=_parse_int(_get_env("MAX_GAME_MOVES", "200"), 200),
    )


__all__ = ["AppConfig", "load_config"]
