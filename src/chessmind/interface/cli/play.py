from __future__ import annotations

import click

from src.chessmind.domain.chess.board import Color, Move
from src.chessmind.domain.chess.play_session import PlaySession, SessionError
from src.chessmind.domain.models.shared_network import SharedNetwork
from src.chessmind.domain.training.agent import LearningAgent
from src.chessmind.infrastructure.config import AppConfig, load_config
from src.chessmind.infrastructure.persistence.statistics_store import JsonStatisticsStore
from src.chessmind.infrastructure.rl.weight_store import FileWeightStore
from src.chessmind.interface.telemetry.logging import bind_context, clear_context, setup_logging

QUIT_COMMANDS = frozenset({"quit", "exit", "q"})


def parse_move(text: str) -> Move:
    """Accept `e2 e4`, `e2-e4` or `e2e4`."""
    compact = "".join(text.replace("-", " ").split())
    return Move.from_uci(compact)


def _announce_result(session: PlaySession) -> None:
    snapshot = session.snapshot()
    if snapshot.winner is None:
        reason = snapshot.termination or "draw"
        click.secho(f"Game drawn ({reason}).", fg="yellow")
    elif snapshot.winner == snapshot.human_color.value:
        click.secho("Checkmate - you win!", fg="green")
    else:
        click.secho("Checkmate - the agent wins.", fg="red")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--color",
    type=click.Choice([color.value for color in Color]),
    default=Color.white.value,
    show_default=True,
    help="Side you play.",
)
def main(color: str) -> None:
    """Play against the agent in the terminal; type moves like `e2 e4`, `quit` to exit."""
    config = load_config()
    setup_logging(config.additional.get("STRUCTLOG_LEVEL", "WARNING"), json_output=False)
    bind_context(command="play")
    try:
        _play(config, Color(color))
    finally:
        clear_context()


def _play(config: AppConfig, human_color: Color) -> None:
    network = SharedNetwork(
        learning_rate=config.training_learning_rate,
        momentum=config.training_momentum,
    )
    weight_store = FileWeightStore(config.weights_path)
    if weight_store.load_into(network):
        click.echo(f"Loaded weights from {weight_store.path}.")
    else:
        click.echo("Starting with a freshly initialised network.")

    agent = LearningAgent(
        human_color.opponent,
        network,
        epsilon=config.agent_epsilon,
        gamma=config.agent_gamma,
        search_depth=config.search_depth,
    )
    session = PlaySession(
        agent,
        statistics=JsonStatisticsStore(config.statistics_path),
        weight_store=weight_store,
    )
    click.echo(f"You play {human_color.value}. Enter moves like 'e2 e4'; 'quit' saves and exits.")

    while True:
        click.echo(session.render())
        snapshot = session.snapshot()

        if snapshot.game_over:
            _announce_result(session)
            if not click.confirm("Play again?", default=True):
                break
            session.reset()
            continue

        if snapshot.turn is agent.color:
            click.echo("Agent is thinking...")
            move = session.agent_move()
            if move is not None:
                click.echo(f"Agent plays {move.source.algebraic} {move.target.algebraic}")
            continue

        if snapshot.check:
            click.secho("You are in check.", fg="yellow")
        text = click.prompt("Your move", default="", show_default=False).strip().lower()
        if text in QUIT_COMMANDS:
            break
        if not text:
            continue
        try:
            session.submit_move(parse_move(text), respond=False)
        except ValueError:
            click.secho("Could not read that move; use the form 'e2 e4'.", fg="red")
        except SessionError as exc:
            click.secho(str(exc), fg="red")

    saved = session.save_weights()
    if saved is not None:
        click.echo(f"Weights saved to {saved}.")
    click.echo("Goodbye.")


if __name__ == "__main__":  # pragma: no cover
    main()


__all__ = ["main", "parse_move"]
