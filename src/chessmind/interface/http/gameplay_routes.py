from __future__ import annotations

from typing import Any
from uuid import uuid4

from flask import Blueprint, current_app, jsonify, request

from src.chessmind.domain.chess.board import Move
from src.chessmind.domain.chess.play_session import SessionError
from src.chessmind.domain.training.records import FINGERPRINT_LENGTH, PersistenceError
from src.chessmind.infrastructure.persistence.game_record_repository import repository_scope
from src.chessmind.interface.telemetry.logging import bind_trace, get_logger

EXTENSION_KEY = "chessmind"
_FINGERPRINT_CHARS = frozenset(".PNBRQKpnbrqk")
_COORDINATE_KEYS = ("fromRow", "fromCol", "toRow", "toCol")

gameplay_bp = Blueprint("gameplay", __name__)
logger = get_logger("chessmind.api")

_ERROR_STATUS = {
    "illegal_move": 409,
    "game_finished": 409,
    "not_your_turn": 409,
}


def _context():
    return current_app.extensions[EXTENSION_KEY]


def _trace_id() -> str:
    return request.headers.get("X-Trace-Id") or uuid4().hex


def _repository():
    return repository_scope(current_app.config["SESSION_FACTORY"], _context().storage_lock)


def _domain_error(code: str, message: str, status: int = 400, detail: Any | None = None):
    payload: dict[str, Any] = {"code": code, "message": message}
    if detail is not None:
        payload["detail"] = detail
    return jsonify(payload), status


def _parse_move(payload: dict[str, Any]) -> Move:
    uci = payload.get("uci")
    if isinstance(uci, str):
        return Move.from_uci(uci)

    coordinates = [payload.get(key) for key in _COORDINATE_KEYS]
    if not all(isinstance(value, int) and not isinstance(value, bool) for value in coordinates):
        raise ValueError("Provide uci as a string or integer fromRow, fromCol, toRow and toCol.")
    return Move.from_coordinates(*coordinates)


@gameplay_bp.get("/state")
def get_state():
    snapshot = _context().play_session.snapshot()
    return jsonify(snapshot.to_dict()), 200


@gameplay_bp.post("/move")
def submit_move():
    payload = request.get_json(silent=True) or {}
    trace_id = _trace_id()
    log = bind_trace(logger, trace_id)

    try:
        move = _parse_move(payload)
    except ValueError as exc:
        return _domain_error("invalid_move", str(exc), status=400)

    try:
        snapshot = _context().play_session.submit_move(move)
    except SessionError as exc:
        log.warning("move_rejected", code=exc.code, detail=str(exc))
        return _domain_error(exc.code, str(exc), status=_ERROR_STATUS.get(exc.code, 400))

    log.info(
        "move_accepted",
        agent_move=snapshot.last_agent_move,
        move_count=snapshot.move_count,
        game_over=snapshot.game_over,
    )
    body = snapshot.to_dict()
    body["traceId"] = trace_id
    return jsonify(body), 200


@gameplay_bp.post("/reset")
def reset_game():
    session = _context().play_session
    session.reset()
    session.agent_move()
    bind_trace(logger, _trace_id()).info("game_reset")
    return jsonify({"status": "ok", "state": session.snapshot().to_dict()}), 200


@gameplay_bp.get("/stats")
def get_stats():
    statistics = _context().statistics
    rates = statistics.win_rates()
    return (
        jsonify(
            {
                "games": [game.to_dict() for game in statistics.games()],
                "winRates": {
                    "white": rates.white,
                    "black": rates.black,
                    "draw": rates.draw,
                    "totalGames": rates.total_games,
                },
            }
        ),
        200,
    )


@gameplay_bp.get("/positions/<fingerprint>")
def get_position(fingerprint: str):
    if len(fingerprint) != FINGERPRINT_LENGTH or not set(fingerprint) <= _FINGERPRINT_CHARS:
        return _domain_error(
            "invalid_fingerprint",
            f"fingerprint must be {FINGERPRINT_LENGTH} characters of '.' and PNBRQK/pnbrqk.",
        )

    limit = request.args.get("limit", default=10, type=int)
    try:
        with _repository() as repository:
            stats = repository.position_stats(fingerprint)
            similar = repository.similar_moves(fingerprint, limit=max(1, min(limit, 100)))
    except PersistenceError as exc:
        bind_trace(logger, _trace_id()).error("position_lookup_failed", error=str(exc))
        return _domain_error("storage_error", "Position lookup failed.", status=503)

    return (
        jsonify(
            {
                "stats": stats.to_dict(),
                "similarMoves": [
                    {
                        "gameId": record.game_id,
                        "moveNumber": record.move_number,
                        "uci": record.move.source.algebraic + record.move.target.algebraic,
                        "evaluation": record.evaluation,
                        "result": record.result.value,
                    }
                    for record in similar
                ],
            }
        ),
        200,
    )


@gameplay_bp.post("/selfplay/start")
def start_self_play():
    runner = _context().runner
    if not runner.start():
        return _domain_error("selfplay_running", "Self-play is already running.", status=409)
    return jsonify({"success": True, "running": True}), 200


@gameplay_bp.post("/selfplay/stop")
def stop_self_play():
    runner = _context().runner
    if not runner.stop(timeout=0):
        return _domain_error("selfplay_not_running", "Self-play is not running.", status=409)
    return jsonify({"success": True}), 200


@gameplay_bp.get("/selfplay/status")
def self_play_status():
    context = _context()
    return (
        jsonify(
            {
                "running": context.runner.running,
                "gamesCompleted": context.runner.games_completed,
                "gamesPlayed": context.orchestrator.games_played,
                "lastError": context.runner.last_error,
            }
        ),
        200,
    )


__all__ = ["EXTENSION_KEY", "gameplay_bp"]
