from __future__ import annotations

import random
from pathlib import Path

import pytest

from src.chessmind.domain.chess.board import STARTING_FEN, Color, Move
from src.chessmind.domain.chess.play_session import (
    GameFinishedError,
    IllegalMoveError,
    NotYourTurnError,
    PlaySession,
)
from src.chessmind.domain.training.agent import LearningAgent
from src.chessmind.infrastructure.persistence.statistics_store import JsonStatisticsStore
from src.chessmind.infrastructure.rl.weight_store import FileWeightStore

# White mates with Qh8.
MATE_IN_ONE_FEN = "k7/8/1K6/8/8/8/7Q/8 w - - 0 1"


def _agent(network, color: Color = Color.black) -> LearningAgent:
    return LearningAgent(color, network, epsilon=0.0, search_depth=1, rng=random.Random(5))


def test_human_move_gets_an_agent_reply(network) -> None:
    session = PlaySession(_agent(network))

    snapshot = session.submit_move(Move.from_uci("e2e4"))

    assert snapshot.turn is Color.white
    assert snapshot.move_count == 2
    assert snapshot.moves[0] == "e2e4"
    assert snapshot.last_agent_move == snapshot.moves[1]
    assert snapshot.human_color is Color.white
    assert len(session.agent.state_history) == 1


def test_illegal_move_leaves_board_unchanged(network) -> None:
    session = PlaySession(_agent(network))

    with pytest.raises(IllegalMoveError) as excinfo:
        session.submit_move(Move.from_uci("e2e5"))

    assert excinfo.value.code == "illegal_move"
    assert session.snapshot().fen == STARTING_FEN


def test_human_cannot_move_twice(network) -> None:
    session = PlaySession(_agent(network))
    session.submit_move(Move.from_uci("e2e4"), respond=False)

    with pytest.raises(NotYourTurnError):
        session.submit_move(Move.from_uci("d2d4"))


def test_finished_game_is_recorded(network, tmp_path: Path) -> None:
    statistics = JsonStatisticsStore(tmp_path / "games.json")
    weights = FileWeightStore(tmp_path / "weights.pt")
    session = PlaySession(
        _agent(network),
        statistics=statistics,
        weight_store=weights,
        initial_fen=MATE_IN_ONE_FEN,
    )

    snapshot = session.submit_move(Move.from_uci("h2h8"))

    assert snapshot.game_over
    assert snapshot.result == "white_won"
    assert snapshot.termination == "checkmate"
    assert snapshot.winner == "white"
    assert snapshot.last_agent_move is None
    assert [game.winner for game in statistics.games()] == ["white"]
    assert weights.path.exists()

    with pytest.raises(GameFinishedError):
        session.submit_move(Move.from_uci("b6b7"))


def test_agent_learns_when_it_is_mated(network, tmp_path: Path) -> None:
    # Black (the agent) only has pawn moves; Qh8 then mates.
    statistics = JsonStatisticsStore(tmp_path / "games.json")
    session = PlaySession(
        LearningAgent(Color.black, network, epsilon=0.5, search_depth=1, rng=random.Random(5)),
        statistics=statistics,
        initial_fen="k7/3p4/1K6/8/8/8/7Q/8 b - - 0 1",
    )

    reply = session.agent_move()
    assert reply is not None and reply.source == Move.from_uci("d7d6").source
    assert len(session.agent.state_history) == 1

    snapshot = session.submit_move(Move.from_uci("h2h8"))

    assert snapshot.game_over
    assert snapshot.winner == "white"
    assert session.agent.epsilon == pytest.approx(0.5 * 0.995)
    assert session.agent.state_history == ()
    assert statistics.games()[0].moves_count == snapshot.move_count


def test_reset_discards_a_stale_agent_move(network) -> None:
    class ResettingAgent(LearningAgent):
        session: PlaySession | None = None

        def choose_move(self, board):
            move = super().choose_move(board)
            if self.session is not None:
                self.session.reset()
            return move

    agent = ResettingAgent(Color.black, network, epsilon=0.0, search_depth=1)
    session = PlaySession(agent)
    agent.session = session
    session.submit_move(Move.from_uci("e2e4"), respond=False)

    assert session.agent_move() is None
    snapshot = session.snapshot()
    assert snapshot.fen == STARTING_FEN
    assert snapshot.moves == []


def test_agent_opens_when_it_plays_white(network) -> None:
    session = PlaySession(_agent(network, Color.white))

    move = session.agent_move()

    snapshot = session.snapshot()
    assert move is not None
    assert snapshot.human_color is Color.black
    assert snapshot.turn is Color.black
    assert session.agent_move() is None


def test_snapshot_serialises_the_grid(network) -> None:
    payload = PlaySession(_agent(network)).snapshot().to_dict()

    assert len(payload["board"]) == 8
    assert all(len(row) == 8 for row in payload["board"])
    assert payload["board"][7][4] == {"piece": "king", "color": "white", "symbol": "K"}
    assert payload["board"][4][4] is None
    assert payload["turn"] == "white"
    assert payload["gameOver"] is False
    assert payload["lastAgentMove"] is None
