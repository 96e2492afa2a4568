from __future__ import annotations

import random
import threading
from dataclasses import dataclass, field

from flask import Flask
from sqlalchemy.orm import sessionmaker

from src.chessmind.domain.chess.board import Color
from src.chessmind.domain.chess.play_session import PlaySession
from src.chessmind.domain.models.shared_network import SharedNetwork
from src.chessmind.domain.training.agent import LearningAgent
from src.chessmind.domain.training.self_play_orchestrator import SelfPlayOrchestrator
from src.chessmind.domain.training.self_play_runner import SelfPlayRunner
from src.chessmind.infrastructure.config import AppConfig, load_config
from src.chessmind.infrastructure.persistence.base import Base, create_engine_from_config
from src.chessmind.infrastructure.persistence.game_record_repository import (
    repository_scope,
)
from src.chessmind.infrastructure.persistence.statistics_store import JsonStatisticsStore
from src.chessmind.infrastructure.rl.weight_store import FileWeightStore
from src.chessmind.interface.http.gameplay_routes import EXTENSION_KEY, gameplay_bp
from src.chessmind.interface.telemetry.logging import setup_logging, get_logger


@dataclass
class GameplayContext:
    """Process-wide objects shared by the API handlers."""

    network: SharedNetwork
    play_session: PlaySession
    runner: SelfPlayRunner
    orchestrator: SelfPlayOrchestrator
    statistics: JsonStatisticsStore
    weight_store: FileWeightStore
    storage_lock: threading.Lock = field(default_factory=threading.Lock)


def create_app(config: AppConfig | None = None, *, network: SharedNetwork | None = None) -> Flask:
    """Instantiate Flask application with shared configuration."""
    cfg = config or load_config()

    setup_logging(cfg.additional.get("STRUCTLOG_LEVEL", "INFO"))
    logger = get_logger("chessmind.app")

    app = Flask(__name__)
    app.config.update(
        DATABASE_URL=cfg.database_url,
        WEIGHTS_PATH=str(cfg.weights_path),
        STATISTICS_PATH=str(cfg.statistics_path),
        ENV=cfg.flask_env,
        APP_CONFIG=cfg,
    )

    engine = create_engine_from_config(cfg)
    Base.metadata.create_all(bind=engine)
    session_factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    app.config["SESSION_FACTORY"] = session_factory

    weight_store = FileWeightStore(cfg.weights_path)
    if network is None:
        network = SharedNetwork(
            learning_rate=cfg.training_learning_rate,
            momentum=cfg.training_momentum,
        )
        weight_store.load_into(network)
    statistics = JsonStatisticsStore(cfg.statistics_path)

    agent = LearningAgent(
        Color.black,
        network,
        epsilon=cfg.agent_epsilon,
        gamma=cfg.agent_gamma,
        search_depth=cfg.search_depth,
    )
    play_session = PlaySession(agent, statistics=statistics, weight_store=weight_store)

    # Every self-play game and every position lookup opens its own session under this lock.
    storage_lock = threading.Lock()
    orchestrator = SelfPlayOrchestrator(
        network,
        repository_scope=lambda: repository_scope(session_factory, storage_lock),
        statistics=statistics,
        weight_store=weight_store,
        games_dir=cfg.games_dir,
        checkpoint_interval=cfg.checkpoint_interval,
        max_moves=cfg.max_game_moves,
        epsilon=cfg.agent_epsilon,
        gamma=cfg.agent_gamma,
        search_depth=cfg.search_depth,
        rng=random.Random(),
    )

    def _play_one(should_stop):
        summary = orchestrator.play_game(should_stop)
        if summary is not None and orchestrator.games_played % max(1, cfg.checkpoint_interval) == 0:
            orchestrator.save_weights()
        return summary

    runner = SelfPlayRunner(_play_one)

    app.extensions[EXTENSION_KEY] = GameplayContext(
        network=network,
        play_session=play_session,
        runner=runner,
        orchestrator=orchestrator,
        statistics=statistics,
        weight_store=weight_store,
        storage_lock=storage_lock,
    )
    app.register_blueprint(gameplay_bp, url_prefix="/api")

    @app.get("/healthz")
    def healthcheck():
        return {"status": "ok"}, 200

    logger.info(
        "flask_app_initialized",
        env=cfg.flask_env,
        weights_path=str(cfg.weights_path),
        statistics_path=str(cfg.statistics_path),
    )
    return app


__all__ = ["EXTENSION_KEY", "GameplayContext", "create_app"]
