from __future__ import annotations

import torch

from src.chessmind.domain.chess.board import Board, Color, Move, PieceKind, Square
from src.chessmind.domain.training.features import (
    INPUT_FEATURES,
    board_to_tensor,
    feature_index,
)


def test_initial_position_encoding() -> None:
    tensor = board_to_tensor(Board.new_initial())

    assert tensor.shape == (INPUT_FEATURES,)
    assert tensor.dtype == torch.float32
    assert int(tensor.sum().item()) == 32
    assert set(tensor.unique().tolist()) == {0.0, 1.0}

    assert tensor[feature_index(PieceKind.king, Color.white, 7, 4)] == 1.0
    assert tensor[feature_index(PieceKind.queen, Color.black, 0, 3)] == 1.0
    assert tensor[feature_index(PieceKind.pawn, Color.white, 4, 4)] == 0.0


def test_plane_layout() -> None:
    assert feature_index(PieceKind.pawn, Color.white, 0, 0) == 0
    assert feature_index(PieceKind.king, Color.white, 7, 7) == 6 * 64 - 1
    assert feature_index(PieceKind.pawn, Color.black, 0, 0) == 6 * 64
    assert feature_index(PieceKind.king, Color.black, 7, 7) == INPUT_FEATURES - 1


def test_encoding_tracks_piece_movement_only() -> None:
    board = Board.new_initial()
    before = board_to_tensor(board)

    board.apply(Move.from_uci("e2e4"))
    after = board_to_tensor(board)

    changed = (before != after).nonzero().flatten().tolist()
    assert sorted(changed) == sorted(
        [
            feature_index(PieceKind.pawn, Color.white, 6, 4),
            feature_index(PieceKind.pawn, Color.white, 4, 4),
        ]
    )


def test_side_to_move_is_not_encoded() -> None:
    white_to_move = Board.from_fen("4k3/8/8/8/8/8/8/4K3 w - - 0 1")
    black_to_move = Board.from_fen("4k3/8/8/8/8/8/8/4K3 b - - 0 1")

    assert torch.equal(board_to_tensor(white_to_move), board_to_tensor(black_to_move))
    assert board_to_tensor(white_to_move)[feature_index(PieceKind.king, Color.black, *Square(0, 4))] == 1.0
