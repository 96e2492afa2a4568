from __future__ import annotations

import json
from pathlib import Path

import pytest
import structlog
from click.testing import CliRunner

from src.chessmind.interface.cli import play, train


@pytest.fixture
def cli_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{tmp_path / 'db' / 'chess.db'}")
    monkeypatch.setenv("WEIGHTS_PATH", str(tmp_path / "weights.pt"))
    monkeypatch.setenv("STATISTICS_PATH", str(tmp_path / "games.json"))
    monkeypatch.setenv("GAMES_DIR", str(tmp_path / "games"))
    monkeypatch.setenv("SEARCH_DEPTH", "1")
    monkeypatch.delenv("TENSORBOARD_LOG_DIR", raising=False)
    monkeypatch.delenv("STRUCTLOG_LEVEL", raising=False)
    return tmp_path


def test_train_command_plays_and_saves(cli_env: Path) -> None:
    result = CliRunner().invoke(
        train.main,
        ["--games", "2", "--max-moves", "6", "--epsilon", "1.0", "--seed", "3", "--quiet"],
    )

    assert result.exit_code == 0, result.output
    assert "Self-play finished: 2 games" in result.output
    assert (cli_env / "weights.pt").exists()
    assert (cli_env / "db" / "chess.db").exists()
    assert len(json.loads((cli_env / "games.json").read_text(encoding="utf-8"))["games"]) == 2


def test_train_command_rejects_zero_games(cli_env: Path) -> None:
    result = CliRunner().invoke(train.main, ["--games", "0"])

    assert result.exit_code != 0
    assert "--games" in result.output


def test_play_command_accepts_a_move_and_quits(cli_env: Path) -> None:
    result = CliRunner().invoke(play.main, [], input="e2 e4\nquit\n")

    assert result.exit_code == 0, result.output
    assert "Agent plays" in result.output
    assert "Goodbye." in result.output
    assert (cli_env / "weights.pt").exists()


def test_play_command_reports_unreadable_moves(cli_env: Path) -> None:
    result = CliRunner().invoke(play.main, [], input="banana\ne2e5\nq\n")

    assert result.exit_code == 0, result.output
    assert "Could not read that move" in result.output
    assert "not legal" in result.output


@pytest.mark.parametrize("text", ["e2 e4", "e2-e4", "e2e4", " e2e4 "])
def test_parse_move_accepts_common_forms(text: str) -> None:
    assert play.parse_move(text).source.algebraic == "e2"
    assert play.parse_move(text).target.algebraic == "e4"


def test_commands_leave_no_log_context_behind(cli_env: Path) -> None:
    structlog.contextvars.clear_contextvars()

    train_result = CliRunner().invoke(train.main, ["--games", "1", "--max-moves", "4", "--quiet"])
    assert train_result.exit_code == 0, train_result.output
    assert structlog.contextvars.get_contextvars() == {}

    play_result = CliRunner().invoke(play.main, [], input="quit\n")
    assert play_result.exit_code == 0, play_result.output
    assert structlog.contextvars.get_contextvars() == {}
