from __future__ import annotations

import random
import time
from contextlib import nullcontext
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, ContextManager, Optional

try:
    from torch.utils.tensorboard import SummaryWriter
except Exception:  # pragma: no cover - optional dependency
    SummaryWriter = None

import chess
import chess.pgn

from src.chessmind.domain.chess.board import MOVE_LIMIT, Color, Termination
from src.chessmind.domain.models.shared_network import SharedNetwork
from src.chessmind.domain.training.agent import (
    DEFAULT_EPSILON,
    DEFAULT_GAMMA,
    LearningAgent,
)
from src.chessmind.domain.training.records import (
    GameRecordRepository,
    GameStatistic,
    GameWinner,
    MoveRecord,
    PersistenceError,
    StatisticsSink,
    WeightStore,
    outcome_for,
)
from src.chessmind.domain.training.search import DEFAULT_SEARCH_DEPTH
from src.chessmind.domain.training.self_play import SelfPlayCollector, SelfPlayEpisode
from src.chessmind.interface.telemetry.logging import get_logger

DEFAULT_CHECKPOINT_INTERVAL = 10

_PGN_RESULTS = {
    GameWinner.white: "1-0",
    GameWinner.black: "0-1",
    GameWinner.draw: "1/2-1/2",
}


@dataclass(frozen=True, slots=True)
class GameSummary:
    game_number: int
    game_id: Optional[int]
    winner: GameWinner
    termination: Optional[Termination]
    move_count: int
    white_epsilon: float
    black_epsilon: float
    elapsed_seconds: float


@dataclass(frozen=True, slots=True)
class TrainingSummary:
    games_played: int
    white_wins: int
    black_wins: int
    draws: int
    persistence_failures: int
    elapsed_seconds: float
    last_checkpoint: Optional[Path] = None


class SelfPlayOrchestrator:
    """Run self-play games, learn from them and hand results to the stores.

    Storage failures are logged and counted but never stop training. Give
    either a long-lived `repository` or a `repository_scope` factory that opens
    a fresh repository (and database session) for each game. Game numbers come
    from the statistics sink when there is one.
    """

    def __init__(
        self,
        network: SharedNetwork,
        *,
        repository: GameRecordRepository | None = None,
        repository_scope: Callable[[], ContextManager[GameRecordRepository]] | None = None,
        statistics: StatisticsSink | None = None,
        weight_store: WeightStore | None = None,
        games_dir: Path | None = None,
        tensorboard_root: Path | None = None,
        checkpoint_interval: int = DEFAULT_CHECKPOINT_INTERVAL,
        max_moves: int = MOVE_LIMIT,
        epsilon: float = DEFAULT_EPSILON,
        gamma: float = DEFAULT_GAMMA,
        search_depth: int = DEFAULT_SEARCH_DEPTH,
        rng: random.Random | None = None,
    ) -> None:
        rng = rng or random.Random()
        self._network = network
        self._white = LearningAgent(
            Color.white, network, epsilon=epsilon, gamma=gamma, search_depth=search_depth, rng=rng
        )
        self._black = LearningAgent(
            Color.black, network, epsilon=epsilon, gamma=gamma, search_depth=search_depth, rng=rng
        )
        self._collector = SelfPlayCollector(self._white, self._black, max_moves=max_moves)
        self._repository = repository
        self._repository_scope = repository_scope
        self._statistics = statistics
        self._weight_store = weight_store
        self._games_dir = games_dir
        self._tensorboard_root = tensorboard_root
        self._checkpoint_interval = max(1, checkpoint_interval)
        self._game_offset = len(statistics.games()) if statistics is not None else 0
        self._games_played = 0
        self._persistence_failures = 0
        self._logger = get_logger("chessmind.selfplay")

    @property
    def network(self) -> SharedNetwork:
        return self._network

    @property
    def white_agent(self) -> LearningAgent:
        return self._white

    @property
    def black_agent(self) -> LearningAgent:
        return self._black

    @property
    def games_played(self) -> int:
        return self._games_played

    @property
    def persistence_failures(self) -> int:
        return self._persistence_failures

    def play_game(self, should_stop: Callable[[], bool] | None = None) -> Optional[GameSummary]:
        """Play, learn and persist one game; `None` if it was interrupted."""
        started_at = datetime.now(timezone.utc)
        start = time.perf_counter()
        episode = self._collector.generate_episode(should_stop)

        if episode.interrupted:
            self._white.reset_history()
            self._black.reset_history()
            self._logger.info("game_interrupted", moves=episode.move_count)
            return None

        self._white.learn(episode.reward_for(Color.white))
        self._black.learn(episode.reward_for(Color.black))
        self._games_played += 1
        provisional_number = self._game_offset + self._games_played

        game_id = self._persist_episode(episode, started_at)
        game_number = self._record_statistic(episode, provisional_number)
        if episode.termination is Termination.checkmate and self._games_dir is not None:
            self.export_pgn(
                episode,
                self._games_dir / f"checkmate_game_{game_number}.pgn",
                game_number=game_number,
            )

        summary = GameSummary(
            game_number=game_number,
            game_id=game_id,
            winner=episode.winner,
            termination=episode.termination,
            move_count=episode.move_count,
            white_epsilon=self._white.epsilon,
            black_epsilon=self._black.epsilon,
            elapsed_seconds=time.perf_counter() - start,
        )
        self._logger.info(
            "game_finished",
            game_number=game_number,
            game_id=game_id,
            winner=summary.winner.value,
            termination=summary.termination.value if summary.termination else None,
            moves=summary.move_count,
            white_epsilon=round(summary.white_epsilon, 5),
            black_epsilon=round(summary.black_epsilon, 5),
            elapsed_seconds=round(summary.elapsed_seconds, 3),
        )
        return summary

    def train(
        self,
        num_games: int,
        *,
        progress_callback: Callable[[GameSummary, int, int], None] | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> TrainingSummary:
        """Play `num_games` games, checkpointing every `checkpoint_interval` games and at the end."""
        if num_games < 1:
            raise ValueError("num_games must be at least 1")

        writer = self._open_writer()
        start = time.perf_counter()
        wins = {GameWinner.white: 0, GameWinner.black: 0, GameWinner.draw: 0}
        played = 0
        last_checkpoint: Optional[Path] = None
        failures_before = self._persistence_failures

        try:
            for index in range(1, num_games + 1):
                if should_stop is not None and should_stop():
                    break
                summary = self.play_game(should_stop)
                if summary is None:
                    break
                played += 1
                wins[summary.winner] += 1

                if writer is not None:
                    score = {GameWinner.white: 1.0, GameWinner.black: 0.0, GameWinner.draw: 0.5}
                    writer.add_scalar("selfplay/moves", summary.move_count, summary.game_number)
                    writer.add_scalar("selfplay/epsilon", summary.white_epsilon, summary.game_number)
                    writer.add_scalar("selfplay/white_score", score[summary.winner], summary.game_number)
                    writer.flush()

                if progress_callback is not None:
                    progress_callback(summary, index, num_games)

                if index % self._checkpoint_interval == 0:
                    last_checkpoint = self.save_weights() or last_checkpoint
        finally:
            if writer is not None:
                writer.flush()
                writer.close()

        if played % self._checkpoint_interval != 0 or played == 0:
            last_checkpoint = self.save_weights() or last_checkpoint

        return TrainingSummary(
            games_played=played,
            white_wins=wins[GameWinner.white],
            black_wins=wins[GameWinner.black],
            draws=wins[GameWinner.draw],
            persistence_failures=self._persistence_failures - failures_before,
            elapsed_seconds=time.perf_counter() - start,
            last_checkpoint=last_checkpoint,
        )

    def save_weights(self) -> Optional[Path]:
        if self._weight_store is None:
            return None
        try:
            path = self._weight_store.save(self._network)
        except PersistenceError as exc:
            self._persistence_failures += 1
            self._logger.error("weights_save_failed", error=str(exc))
            return None
        self._logger.info("checkpoint_saved", path=str(path), games=self._games_played)
        return path

    def export_pgn(self, episode: SelfPlayEpisode, path: Path, *, game_number: int = 0) -> Path:
        """Write the episode as PGN through python-chess."""
        game = chess.pgn.Game()
        game.headers["Event"] = "ChessMind Self-Play"
        game.headers["Round"] = str(game_number)
        game.headers["White"] = "ChessMind"
        game.headers["Black"] = "ChessMind"
        game.headers["Result"] = _PGN_RESULTS[episode.winner]
        if episode.termination is not None:
            game.headers["Termination"] = episode.termination.value
        game.headers["FinalFEN"] = episode.final_fen

        node = game
        for played in episode.moves:
            node = node.add_variation(chess.Move.from_uci(played.uci))

        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            handle.write(str(game))
            handle.write("\n")
        return path

    def _persist_episode(self, episode: SelfPlayEpisode, started_at: datetime) -> Optional[int]:
        if self._repository is None and self._repository_scope is None:
            return None
        winner = episode.winner
        try:
            with self._open_repository() as repository:
                game_id = repository.start_game(
                    self._white.epsilon,
                    self._black.epsilon,
                    started_at=started_at,
                )
                repository.record_moves(
                    MoveRecord(
                        game_id=game_id,
                        move_number=played.ply,
                        move=played.move,
                        evaluation=played.evaluation,
                        fingerprint=played.fingerprint,
                        result=outcome_for(winner, played.color),
                    )
                    for played in episode.moves
                )
                repository.finish_game(game_id, winner.value, episode.move_count)
        except PersistenceError as exc:
            self._persistence_failures += 1
            self._logger.error("game_record_failed", error=str(exc))
            return None
        return game_id

    def _open_repository(self) -> ContextManager[GameRecordRepository]:
        if self._repository_scope is not None:
            return self._repository_scope()
        return nullcontext(self._repository)

    def _record_statistic(self, episode: SelfPlayEpisode, provisional_number: int) -> int:
        """Hand the game to the statistics sink; returns the number it was filed under."""
        if self._statistics is None:
            return provisional_number
        try:
            stored = self._statistics.add_game(
                GameStatistic(
                    game_number=provisional_number,
                    winner=episode.winner.value,
                    epsilon=self._white.epsilon,
                    moves_count=episode.move_count,
                )
            )
        except PersistenceError as exc:
            self._persistence_failures += 1
            self._logger.error("statistics_write_failed", error=str(exc))
            return provisional_number
        return stored.game_number

    def _open_writer(self) -> Any:
        if self._tensorboard_root is None or SummaryWriter is None:
            return None
        self._tensorboard_root.mkdir(parents=True, exist_ok=True)
        return SummaryWriter(str(self._tensorboard_root))


__all__ = ["DEFAULT_CHECKPOINT_INTERVAL", "GameSummary", "SelfPlayOrchestrator", "TrainingSummary"]
