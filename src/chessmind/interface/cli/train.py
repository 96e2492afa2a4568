from __future__ import annotations

import random
from pathlib import Path

import click
import torch

from src.chessmind.domain.models.shared_network import SharedNetwork
from src.chessmind.domain.training.self_play_orchestrator import GameSummary, SelfPlayOrchestrator
from src.chessmind.infrastructure.config import AppConfig, load_config
from src.chessmind.infrastructure.persistence.base import (
    Base,
    create_engine_from_config,
    create_session_factory,
)
from src.chessmind.infrastructure.persistence.game_record_repository import repository_scope
from src.chessmind.infrastructure.persistence.statistics_store import JsonStatisticsStore
from src.chessmind.infrastructure.rl.weight_store import FileWeightStore
from src.chessmind.interface.telemetry.logging import bind_context, clear_context, setup_logging


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--games", type=int, default=100, show_default=True, help="Number of self-play games to play.")
@click.option("--checkpoint-interval", type=int, default=None, help="Save weights every N games.")
@click.option("--max-moves", type=int, default=None, help="Ply cap per game.")
@click.option("--epsilon", type=float, default=None, help="Initial exploration rate for both agents.")
@click.option("--search-depth", type=int, default=None, help="Minimax depth in plies.")
@click.option(
    "--weights",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Weight file to resume from and save to.",
)
@click.option("--seed", type=int, default=None, help="Seed torch and the move sampler.")
@click.option("--quiet", is_flag=True, help="Only print the final summary.")
def main(
    games: int,
    checkpoint_interval: int | None,
    max_moves: int | None,
    epsilon: float | None,
    search_depth: int | None,
    weights: Path | None,
    seed: int | None,
    quiet: bool,
) -> None:
    """Train the value network through self-play and persist the results."""
    if games < 1:
        raise click.BadParameter("must be at least 1", param_hint="--games")
    if checkpoint_interval is not None and checkpoint_interval < 1:
        raise click.BadParameter("must be at least 1", param_hint="--checkpoint-interval")
    if max_moves is not None and max_moves < 1:
        raise click.BadParameter("must be at least 1", param_hint="--max-moves")
    if epsilon is not None and not 0.0 <= epsilon <= 1.0:
        raise click.BadParameter("must lie in [0, 1]", param_hint="--epsilon")
    if search_depth is not None and search_depth < 1:
        raise click.BadParameter("must be at least 1", param_hint="--search-depth")

    config = load_config()
    setup_logging(config.additional.get("STRUCTLOG_LEVEL", "WARNING" if quiet else "INFO"))
    bind_context(command="train")
    try:
        _run_training(config, games, checkpoint_interval, max_moves, epsilon, search_depth, weights, seed, quiet)
    finally:
        clear_context()


def _run_training(
    config: AppConfig,
    games: int,
    checkpoint_interval: int | None,
    max_moves: int | None,
    epsilon: float | None,
    search_depth: int | None,
    weights: Path | None,
    seed: int | None,
    quiet: bool,
) -> None:
    rng = random.Random(seed)
    if seed is not None:
        torch.manual_seed(seed)

    engine = create_engine_from_config(config)
    Base.metadata.create_all(bind=engine)

    network = SharedNetwork(
        learning_rate=config.training_learning_rate,
        momentum=config.training_momentum,
    )
    weight_store = FileWeightStore(weights or config.weights_path)
    if weight_store.load_into(network):
        click.echo(f"Loaded weights from {weight_store.path}.", err=True)
    statistics = JsonStatisticsStore(config.statistics_path)

    def progress(summary: GameSummary, current: int, total: int) -> None:
        if quiet:
            return
        percent = int(current * 100 / total)
        termination = summary.termination.value if summary.termination else "unfinished"
        click.echo(
            f"[training] game {current}/{total} ({percent}%) | winner={summary.winner.value}"
            f" termination={termination} moves={summary.move_count}"
            f" epsilon={summary.white_epsilon:.4f} elapsed={summary.elapsed_seconds:.1f}s"
        )

    session_factory = create_session_factory(engine=engine)
    orchestrator = SelfPlayOrchestrator(
        network,
        repository_scope=lambda: repository_scope(session_factory),
        statistics=statistics,
        weight_store=weight_store,
        games_dir=config.games_dir,
        tensorboard_root=config.tensorboard_log_dir,
        checkpoint_interval=checkpoint_interval or config.checkpoint_interval,
        max_moves=max_moves or config.max_game_moves,
        epsilon=config.agent_epsilon if epsilon is None else epsilon,
        gamma=config.agent_gamma,
        search_depth=search_depth or config.search_depth,
        rng=rng,
    )
    summary = orchestrator.train(games, progress_callback=progress)

    rates = statistics.win_rates()
    click.secho(
        f"Self-play finished: {summary.games_played} games"
        f" (white {summary.white_wins}, black {summary.black_wins}, draws {summary.draws})"
        f" in {summary.elapsed_seconds:.1f}s",
        fg="green",
    )
    click.echo(
        f"All-time results over {rates.total_games} games: white {rates.white:.1f}%,"
        f" black {rates.black:.1f}%, draw {rates.draw:.1f}%"
    )
    if summary.last_checkpoint is not None:
        click.echo(f"Weights saved to {summary.last_checkpoint}")
    if summary.persistence_failures:
        click.secho(f"{summary.persistence_failures} storage operations failed; see logs.", fg="yellow")


if __name__ == "__main__":  # pragma: no cover
    main()


__all__ = ["main"]
