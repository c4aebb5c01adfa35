from __future__ import annotations

from typing import Dict

from .board import Position
from .movegen import legal_moves_for_side


def perft(position: Position, depth: int) -> int:
    """Compute perft node count for ``position`` at ``depth``.

    Definition:
    - depth == 0 returns 1 (the current node).
    - depth > 0 returns the sum over all legal child positions' perft(depth-1).

    Children are visited with make/unmake on ``position`` itself, which is
    restored before returning. En passant is never generated and promotions
    are queen-only, so counts differ from standard tables once those occur.
    """
    if depth < 0:
        raise ValueError("depth must be >= 0")
    if depth == 0:
        return 1

    moves = legal_moves_for_side(position)
    if depth == 1:
        return len(moves)

    nodes = 0
    for m in moves:
        with position.applied(m):
            nodes += perft(position, depth - 1)
    return nodes


def divide(position: Position, depth: int) -> Dict[str, int]:
    """Return perft(depth - 1) per root move, keyed by coordinate notation."""
    if depth < 1:
        raise ValueError("depth must be >= 1")
    out: Dict[str, int] = {}
    for m in legal_moves_for_side(position):
        with position.applied(m):
            out[m.to_uci()] = perft(position, depth - 1)
    return out
