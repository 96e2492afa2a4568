from __future__ import annotations

import random

import chess
import pytest

from src.chessmind.domain.chess.board import Board, Termination


def _reference_moves(board: Board) -> set[str]:
    reference = chess.Board(board.fen())
    # python-chess offers all four promotions; ours always promotes to a queen.
    return {move.uci() for move in reference.legal_moves if move.promotion in (None, chess.QUEEN)}


@pytest.mark.parametrize("seed", range(6))
def test_legal_moves_match_python_chess_on_random_playouts(seed: int) -> None:
    rng = random.Random(seed)
    board = Board.new_initial()

    for _ply in range(160):
        ours = {board.uci(move) for move in board.legal_moves()}
        assert ours == _reference_moves(board), board.fen()

        reference = chess.Board(board.fen())
        assert board.check == reference.is_check()
        if not ours:
            if board.termination is Termination.checkmate:
                assert reference.is_checkmate()
            else:
                assert reference.is_stalemate()
            break

        board.apply(rng.choice(board.legal_moves()))


@pytest.mark.parametrize(
    "fen",
    [
        "r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1",
        "8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8 w - - 0 1",
        "r3k2r/Pppp1ppp/1b3nbN/nP6/BBP1P3/q4N2/Pp1P2PP/R2Q1RK1 w kq - 0 1",
        "rnbq1k1r/pp1Pbppp/2p5/8/2B5/8/PPP1NnPP/RNBQK2R w KQ - 1 8",
    ],
)
def test_legal_moves_match_python_chess_on_tactical_positions(fen: str) -> None:
    board = Board.from_fen(fen)

    assert {board.uci(move) for move in board.legal_moves()} == _reference_moves(board)
