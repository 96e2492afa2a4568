from .board import (
    BOARD_SIZE,
    Board,
    Color,
    GameResult,
    MOVE_LIMIT,
    Move,
    Piece,
    PieceKind,
    STARTING_FEN,
    Square,
    Termination,
)

__all__ = [
    "BOARD_SIZE",
    "Board",
    "Color",
    "GameResult",
    "MOVE_LIMIT",
    "Move",
    "Piece",
    "PieceKind",
    "STARTING_FEN",
    "Square",
    "Termination",
]
