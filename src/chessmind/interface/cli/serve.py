from __future__ import annotations

import click

from src.chessmind.interface.http.app import create_app


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", type=int, default=8080, show_default=True)
def main(host: str, port: int) -> None:
    """Serve the JSON gameplay API."""
    app = create_app()
    click.echo(f"Serving ChessMind on http://{host}:{port}")
    app.run(host=host, port=port, threaded=True)


if __name__ == "__main__":  # pragma: no cover
    main()


__all__ = ["main"]
