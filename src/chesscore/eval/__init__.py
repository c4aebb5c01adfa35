"""Evaluation heuristics and related utilities.

Pure, deterministic, and side-effect free (terminal detection makes and
unmakes moves but restores the position).
"""

from __future__ import annotations

from typing import Final, Iterable, List, Tuple

from chesscore.engine.board import (
    BISHOP,
    KING,
    KNIGHT,
    PAWN,
    QUEEN,
    ROOK,
    WHITE,
    Piece,
    Position,
)
from chesscore.engine.move import Square
from chesscore.engine.movegen import has_legal_moves, in_check


# Material values in centipawns
P_VAL: Final = 100
N_VAL: Final = 320
B_VAL: Final = 330
R_VAL: Final = 500
Q_VAL: Final = 900
K_VAL: Final = 20000  # sentinel, cancels out while both kings stand

PIECE_VALUES: Final = {
    PAWN: P_VAL,
    KNIGHT: N_VAL,
    BISHOP: B_VAL,
    ROOK: R_VAL,
    QUEEN: Q_VAL,
    KING: K_VAL,
}

# Heuristic weights (centipawns)
CENTER_BONUS: Final = 10
CENTER_SQUARES: Final = ((3, 3), (3, 4), (4, 3), (4, 4))  # d5 e5 d4 e4

# Scores at or beyond this magnitude mean checkmate
MATE_SCORE: Final = 1_000_000
DRAW_SCORE: Final = 0

# Phase weights for king table blending
PHASE_TOTAL: Final = 24
PHASE_WEIGHTS: Final = {KNIGHT: 1, BISHOP: 1, ROOK: 2, QUEEN: 4}


# Simple piece-square tables (white perspective), centipawns.
# Laid out as seen from White: first line is rank 8, i.e. grid row 0.
# Source-inspired but simplified; tuned for clarity not strength.
# fmt: off
PSQT_P: Final = [
     0,   0,   0,   0,   0,   0,   0,   0,
    50,  50,  50,  50,  50,  50,  50,  50,
    10,  10,  20,  30,  30,  20,  10,  10,
     5,   5,  10,  25,  25,  10,   5,   5,
     0,   0,   0,  20,  20,   0,   0,   0,
     5,  -5, -10,   0,   0, -10,  -5,   5,
     5,  10,  10, -20, -20,  10,  10,   5,
     0,   0,   0,   0,   0,   0,   0,   0,
]

PSQT_N: Final = [
    -50, -40, -30, -30, -30, -30, -40, -50,
    -40, -20,   0,   5,   5,   0, -20, -40,
    -30,   5,  10,  15,  15,  10,   5, -30,
    -30,   0,  15,  20,  20,  15,   0, -30,
    -30,   5,  15,  20,  20,  15,   5, -30,
    -30,   0,  10,  15,  15,  10,   0, -30,
    -40, -20,   0,   0,   0,   0, -20, -40,
    -50, -40, -30, -30, -30, -30, -40, -50,
]

PSQT_B: Final = [
    -20, -10, -10, -10, -10, -10, -10, -20,
    -10,   0,   0,   0,   0,   0,   0, -10,
    -10,   0,   5,  10,  10,   5,   0, -10,
    -10,   5,   5,  10,  10,   5,   5, -10,
    -10,   0,  10,  10,  10,  10,   0, -10,
    -10,  10,  10,  10,  10,  10,  10, -10,
    -10,   5,   0,   0,   0,   0,   5, -10,
    -20, -10, -10, -10, -10, -10, -10, -20,
]

PSQT_R: Final = [
     0,   0,   0,   0,   0,   0,   0,   0,
     5,  10,  10,  10,  10,  10,  10,   5,
    -5,   0,   0,   0,   0,   0,   0,  -5,
    -5,   0,   0,   0,   0,   0,   0,  -5,
    -5,   0,   0,   0,   0,   0,   0,  -5,
    -5,   0,   0,   0,   0,   0,   0,  -5,
    -5,   0,   0,   0,   0,   0,   0,  -5,
     0,   0,   5,  10,  10,   5,   0,   0,
]

PSQT_Q: Final = [
    -20, -10, -10,  -5,  -5, -10, -10, -20,
    -10,   0,   0,   0,   0,   0,   0, -10,
    -10,   0,   5,   5,   5,   5,   0, -10,
     -5,   0,   5,   5,   5,   5,   0,  -5,
     -5,   0,   5,   5,   5,   5,   0,  -5,
    -10,   0,   5,   5,   5,   5,   0, -10,
    -10,   0,   0,   0,   0,   0,   0, -10,
    -20, -10, -10,  -5,  -5, -10, -10, -20,
]

PSQT_K: Final = [
    -30, -40, -40, -50, -50, -40, -40, -30,
    -30, -40, -40, -50, -50, -40, -40, -30,
    -30, -40, -40, -50, -50, -40, -40, -30,
    -30, -40, -40, -50, -50, -40, -40, -30,
    -20, -30, -30, -40, -40, -30, -30, -20,
    -10, -20, -20, -20, -20, -20, -20, -10,
     20,  20,   0,   0,   0,   0,  20,  20,
     20,  30,  10,   0,   0,  10,  30,  20,
]

PSQT_K_EG: Final = [
    -50, -30, -30, -30, -30, -30, -30, -50,
    -30, -10,   0,   0,   0,   0, -10, -30,
    -30,   0,  10,  15,  15,  10,   0, -30,
    -30,   0,  15,  20,  20,  15,   0, -30,
    -30,   0,  15,  20,  20,  15,   0, -30,
    -30,   0,  10,  15,  15,  10,   0, -30,
    -30, -10,   0,   0,   0,   0, -10, -30,
    -50, -30, -30, -30, -30, -30, -30, -50,
]
# fmt: on

PSQT: Final = {
    PAWN: PSQT_P,
    KNIGHT: PSQT_N,
    BISHOP: PSQT_B,
    ROOK: PSQT_R,
    QUEEN: PSQT_Q,
}


def _table_index(sq: Square, color: str) -> int:
    row, col = sq
    # Black reads the table mirrored vertically
    if color != WHITE:
        row = 7 - row
    return row * 8 + col


def _game_phase(pieces: Iterable[Tuple[Square, Piece]]) -> int:
    """Return the middlegame weight on a 0..128 scale from remaining material."""
    units = sum(PHASE_WEIGHTS.get(p.kind, 0) for _, p in pieces)
    return max(0, min(128, (units * 128) // PHASE_TOTAL))


def static_eval(position: Position) -> int:
    """Return a material + PSQT + center evaluation in centipawns.

    Positive means advantage for White. Side-to-move adjustment is done by
    the search (negamax) so this function is side-agnostic. Terminal states
    are not detected here; see :func:`evaluate`.
    """
    pieces: List[Tuple[Square, Piece]] = list(position.pieces())
    mg_scaled = _game_phase(pieces)
    eg_scaled = 128 - mg_scaled

    score = 0
    for sq, piece in pieces:
        idx = _table_index(sq, piece.color)
        value = PIECE_VALUES[piece.kind]
        if piece.kind == KING:
            # King tables: blend MG/EG
            value += (mg_scaled * PSQT_K[idx] + eg_scaled * PSQT_K_EG[idx]) // 128
        else:
            value += PSQT[piece.kind][idx]
        score += value if piece.color == WHITE else -value

    for sq in CENTER_SQUARES:
        piece = position.piece_at(sq)
        if piece is not None:
            score += CENTER_BONUS if piece.color == WHITE else -CENTER_BONUS

    return score


def evaluate(position: Position) -> int:
    """Score ``position`` in centipawns, positive favoring White.

    If the side to move has no legal moves the result is terminal: a
    checkmated White scores ``-MATE_SCORE``, a checkmated Black
    ``+MATE_SCORE``, and stalemate scores ``DRAW_SCORE``.
    """
    side = position.side_to_move
    if not has_legal_moves(position, side):
        if in_check(position, side):
            return -MATE_SCORE if side == WHITE else MATE_SCORE
        return DRAW_SCORE
    return static_eval(position)
