from __future__ import annotations

from dataclasses import replace
from pathlib import Path
import pytest
import torch
from sqlalchemy.orm import sessionmaker

from src.chessmind.domain.models.shared_network import SharedNetwork
from src.chessmind.infrastructure.config import AppConfig
from src.chessmind.infrastructure.persistence.base import (
    Base,
    create_engine_from_config,
)
from src.chessmind.infrastructure.persistence import game_record_repository  # noqa: F401
from src.chessmind.interface.http.app import create_app


@pytest.fixture(scope="session")
def app_config(tmp_path_factory: pytest.TempPathFactory) -> AppConfig:
    """Provide a configuration tuned for isolated tests."""
    root: Path = tmp_path_factory.mktemp("artifacts")
    return AppConfig(
        database_url="sqlite+pysqlite:///:memory:",
        weights_path=root / "models" / "weights.pt",
        statistics_path=root / "stats" / "games.json",
        games_dir=root / "games",
        tensorboard_log_dir=None,
        flask_env="test",
        additional={},
        search_depth=1,
        max_game_moves=24,
    )


@pytest.fixture(scope="session")
def engine(app_config: AppConfig):
    engine = create_engine_from_config(app_config)
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(engine):
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    session = factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def network() -> SharedNetwork:
    torch.manual_seed(1234)
    return SharedNetwork()


@pytest.fixture
def app(app_config: AppConfig, tmp_path: Path, network: SharedNetwork):
    config = replace(
        app_config,
        weights_path=tmp_path / "weights.pt",
        statistics_path=tmp_path / "games.json",
        games_dir=tmp_path / "games",
    )
    flask_app = create_app(config, network=network)
    flask_app.config.update(TESTING=True)
    yield flask_app
    flask_app.extensions["chessmind"].runner.stop(timeout=30)
