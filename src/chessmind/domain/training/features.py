from __future__ import annotations

import torch

from src.chessmind.domain.chess.board import BOARD_SIZE, Board, Color, PieceKind

BOARD_HEIGHT = BOARD_SIZE
BOARD_WIDTH = BOARD_SIZE
PIECE_PLANES = 2 * len(PieceKind)
INPUT_FEATURES = PIECE_PLANES * BOARD_HEIGHT * BOARD_WIDTH


def _piece_plane_index(kind: PieceKind, color: Color) -> int:
    offset = 0 if color is Color.white else len(PieceKind)
    return offset + (kind - 1)


def feature_index(kind: PieceKind, color: Color, row: int, col: int) -> int:
    """Flat position of a (kind, color) piece on (row, col) in the encoding."""
    return _piece_plane_index(kind, color) * BOARD_HEIGHT * BOARD_WIDTH + row * BOARD_WIDTH + col


def board_to_tensor(board: Board) -> torch.Tensor:
    """Encode piece placement as 12 one-hot planes flattened to 768 floats.

    Planes run white pawn..king, then black pawn..king; each plane is the
    8x8 grid in row-major order. Side to move, castling rights and the
    en-passant square are not part of the encoding.
    """

    indices = [
        feature_index(piece.kind, piece.color, square.row, square.col)
        for square, piece in board.pieces()
    ]
    tensor = torch.zeros(INPUT_FEATURES, dtype=torch.float32)
    if indices:
        tensor[torch.tensor(indices, dtype=torch.long)] = 1.0
    return tensor


__all__ = [
    "BOARD_HEIGHT",
    "BOARD_WIDTH",
    "INPUT_FEATURES",
    "PIECE_PLANES",
    "board_to_tensor",
    "feature_index",
]
