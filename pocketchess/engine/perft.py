from __future__ import annotations

from typing import Dict

from .position import PocketBoard


def perft(board: PocketBoard, depth: int) -> int:
    """Compute perft node count for `board` at `depth`.

    Definition:
    - depth == 0 returns 1 (the current node).
    - depth > 0 returns the sum over all legal child positions' perft(depth-1).

    Drops count as moves. The board is restored before returning.
    """
    if depth < 0:
        raise ValueError("depth must be >= 0")
    if depth == 0:
        return 1

    moves = list(board.legal_moves)
    if depth == 1:
        return len(moves)

    nodes = 0
    for m in moves:
        board.push(m)
        try:
            nodes += perft(board, depth - 1)
        finally:
            board.pop()
    return nodes


def divide(board: PocketBoard, depth: int) -> Dict[str, int]:
    """Return perft(depth - 1) per root move, keyed by UCI string."""
    if depth < 1:
        raise ValueError("depth must be >= 1")
    counts: Dict[str, int] = {}
    for m in list(board.legal_moves):
        board.push(m)
        try:
            counts[m.uci()] = perft(board, depth - 1)
        finally:
            board.pop()
    return counts
