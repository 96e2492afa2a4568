#!/usr/bin/env python
from __future__ import annotations

import argparse
import random
import time

import torch

from src.chessmind.domain.chess.board import Board
from src.chessmind.domain.models.shared_network import SharedNetwork
from src.chessmind.domain.training.features import board_to_tensor
from src.chessmind.domain.training.search import MoveSelector


def benchmark_search(*, depth: int, positions: int, seed: int) -> tuple[float, float]:
    """Greedy move choices per second over positions from random openings."""
    rng = random.Random(seed)
    torch.manual_seed(seed)
    network = SharedNetwork()
    selector = MoveSelector(network, depth=depth, rng=rng)

    boards = []
    for _ in range(positions):
        board = Board.new_initial()
        for _ply in range(rng.randint(0, 12)):
            moves = board.legal_moves()
            if not moves:
                break
            board.apply(rng.choice(moves))
        boards.append(board)

    t0 = time.time()
    for board in boards:
        selector.choose_move(board, epsilon=0.0)
    t1 = time.time()

    elapsed = max(t1 - t0, 1e-9)
    return positions / elapsed, elapsed


def benchmark_training(*, iterations: int, seed: int) -> float:
    """Single-example momentum steps per second."""
    torch.manual_seed(seed)
    network = SharedNetwork()
    features = board_to_tensor(Board.new_initial())

    t0 = time.time()
    for step in range(iterations):
        network.train(features, 1.0 if step % 2 else 0.0)
    t1 = time.time()
    return iterations / max(t1 - t0, 1e-9)


def main() -> None:
    parser = argparse.ArgumentParser(description="Measure search and training throughput of the value network.")
    parser.add_argument("--depth", type=int, default=2, help="Minimax depth in plies.")
    parser.add_argument("--positions", type=int, default=20)
    parser.add_argument("--iterations", type=int, default=500)
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args()

    moves_per_s, elapsed = benchmark_search(depth=args.depth, positions=args.positions, seed=args.seed)
    steps_per_s = benchmark_training(iterations=args.iterations, seed=args.seed)
    print(
        f"search depth={args.depth}: {moves_per_s:.2f} moves/s ({elapsed:.2f}s for {args.positions} positions)\n"
        f"training: {steps_per_s:.1f} steps/s"
    )


if __name__ == "__main__":
    main()
