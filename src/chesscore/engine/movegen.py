"""Pseudo-legal move generation, attack detection and legality filtering.

All functions are pure with respect to the position they receive: the
legality filter makes and unmakes candidates in place but always restores
the position before returning.
"""

from __future__ import annotations

from typing import List, Optional

from .board import (
    BISHOP,
    KING,
    KING_HOME,
    KNIGHT,
    PAWN,
    PAWN_START_ROW,
    PROMOTION_ROW,
    QUEEN,
    ROOK,
    Piece,
    Position,
    opponent,
)
from .move import (
    CAPTURE,
    CASTLE_KINGSIDE,
    CASTLE_QUEENSIDE,
    DOUBLE_STEP,
    PROMOTION,
    Move,
    Square,
)


KNIGHT_OFFSETS = ((-2, -1), (-2, 1), (-1, -2), (-1, 2), (1, -2), (1, 2), (2, -1), (2, 1))
KING_OFFSETS = ((-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1))
DIAGONALS = ((-1, -1), (-1, 1), (1, -1), (1, 1))
ORTHOGONALS = ((-1, 0), (1, 0), (0, -1), (0, 1))
SLIDER_DIRECTIONS = {
    BISHOP: DIAGONALS,
    ROOK: ORTHOGONALS,
    QUEEN: DIAGONALS + ORTHOGONALS,
}
# White pawns walk towards row 0 (rank 8)
PAWN_DIRECTION = {"w": -1, "b": 1}

# (kind, rook column, columns that must be empty, columns the king crosses)
CASTLING_LANES = (
    (CASTLE_KINGSIDE, 7, (5, 6), (5, 6)),
    (CASTLE_QUEENSIDE, 0, (1, 2, 3), (3, 2)),
)


def _on_board(row: int, col: int) -> bool:
    return 0 <= row < 8 and 0 <= col < 8


def _plain_move(piece: Piece, from_sq: Square, to_sq: Square, target: Optional[Piece]) -> Move:
    if target is None:
        return Move(from_sq, to_sq, piece.symbol)
    return Move(from_sq, to_sq, piece.symbol, captured=target.symbol, kind=CAPTURE)


def pseudo_moves(position: Position, sq: Square) -> List[Move]:
    """Return moves obeying piece movement rules for the piece on ``sq``.

    King safety is not checked, except that castling candidates already
    require the king not to start in, pass through, or land on an attacked
    square. An empty square yields no moves.
    """
    piece = position.piece_at(sq)
    if piece is None:
        return []
    if piece.kind == PAWN:
        return _pawn_moves(position, sq, piece)
    if piece.kind == KNIGHT:
        return _step_moves(position, sq, piece, KNIGHT_OFFSETS)
    if piece.kind == KING:
        moves = _step_moves(position, sq, piece, KING_OFFSETS)
        moves.extend(_castling_moves(position, sq, piece))
        return moves
    return _slider_moves(position, sq, piece)


def _step_moves(position: Position, sq: Square, piece: Piece, offsets) -> List[Move]:
    moves: List[Move] = []
    r, c = sq
    for dr, dc in offsets:
        tr, tc = r + dr, c + dc
        if not _on_board(tr, tc):
            continue
        target = position.grid[tr][tc]
        if target is not None and target.color == piece.color:
            continue
        moves.append(_plain_move(piece, sq, (tr, tc), target))
    return moves


def _slider_moves(position: Position, sq: Square, piece: Piece) -> List[Move]:
    moves: List[Move] = []
    r, c = sq
    for dr, dc in SLIDER_DIRECTIONS[piece.kind]:
        tr, tc = r, c
        while True:
            tr += dr
            tc += dc
            if not _on_board(tr, tc):
                break
            target = position.grid[tr][tc]
            if target is not None and target.color == piece.color:
                break
            moves.append(_plain_move(piece, sq, (tr, tc), target))
            if target is not None:
                break
    return moves


def _pawn_moves(position: Position, sq: Square, piece: Piece) -> List[Move]:
    moves: List[Move] = []
    r, c = sq
    d = PAWN_DIRECTION[piece.color]

    # Single and double steps onto empty squares
    if _on_board(r + d, c) and position.grid[r + d][c] is None:
        moves.append(_pawn_move(piece, sq, (r + d, c), None))
        if r == PAWN_START_ROW[piece.color] and position.grid[r + 2 * d][c] is None:
            moves.append(Move(sq, (r + 2 * d, c), piece.symbol, kind=DOUBLE_STEP))

    # Diagonal captures onto enemy pieces only
    for dc in (-1, 1):
        tr, tc = r + d, c + dc
        if not _on_board(tr, tc):
            continue
        target = position.grid[tr][tc]
        if target is not None and target.color != piece.color:
            moves.append(_pawn_move(piece, sq, (tr, tc), target))
    return moves


def _pawn_move(piece: Piece, from_sq: Square, to_sq: Square, target: Optional[Piece]) -> Move:
    if to_sq[0] == PROMOTION_ROW[piece.color]:
        # Auto-queen; no under-promotion
        return Move(
            from_sq,
            to_sq,
            piece.symbol,
            captured=target.symbol if target is not None else None,
            kind=PROMOTION,
            promotion=QUEEN,
        )
    return _plain_move(piece, from_sq, to_sq, target)


def _castling_moves(position: Position, sq: Square, king: Piece) -> List[Move]:
    if king.has_moved or sq != KING_HOME[king.color]:
        return []
    enemy = opponent(king.color)
    if is_attacked(position, sq, enemy):
        return []
    row = sq[0]
    moves: List[Move] = []
    for kind, rook_col, between, king_path in CASTLING_LANES:
        rook = position.grid[row][rook_col]
        if rook is None or rook.kind != ROOK or rook.color != king.color or rook.has_moved:
            continue
        if any(position.grid[row][col] is not None for col in between):
            continue
        if any(is_attacked(position, (row, col), enemy) for col in king_path):
            continue
        moves.append(Move(sq, (row, king_path[-1]), king.symbol, kind=kind))
    return moves


# --- Attack detection ---
def is_attacked(position: Position, sq: Square, by_side: str) -> bool:
    """Return True if ``sq`` is attacked by any piece of ``by_side``.

    Scans outward from ``sq``: pawn diagonals, knight and king offsets, then
    slider rays up to the first occupied square. Pawns attack diagonally
    whether or not the square is occupied.
    """
    r, c = sq

    d = PAWN_DIRECTION[by_side]
    for dc in (-1, 1):
        p = position.piece_at((r - d, c + dc))
        if p is not None and p.color == by_side and p.kind == PAWN:
            return True

    for offsets, kind in ((KNIGHT_OFFSETS, KNIGHT), (KING_OFFSETS, KING)):
        for dr, dc in offsets:
            p = position.piece_at((r + dr, c + dc))
            if p is not None and p.color == by_side and p.kind == kind:
                return True

    for directions, kinds in ((DIAGONALS, (BISHOP, QUEEN)), (ORTHOGONALS, (ROOK, QUEEN))):
        for dr, dc in directions:
            tr, tc = r, c
            while True:
                tr += dr
                tc += dc
                if not _on_board(tr, tc):
                    break
                p = position.grid[tr][tc]
                if p is not None:
                    if p.color == by_side and p.kind in kinds:
                        return True
                    break

    return False


def king_square(position: Position, side: str) -> Optional[Square]:
    for sq, piece in position.pieces(side):
        if piece.kind == KING:
            return sq
    return None


def in_check(position: Position, side: Optional[str] = None) -> bool:
    """Return True if ``side`` (default: side to move) is in check.

    A side without a king counts as in check so that malformed positions
    end the search instead of crashing it.
    """
    s = position.side_to_move if side is None else side
    if s not in ("w", "b"):
        raise ValueError("side must be 'w' or 'b'")
    ks = king_square(position, s)
    if ks is None:
        return True
    return is_attacked(position, ks, opponent(s))


# --- Legality filter ---
def legal_moves(position: Position, sq: Square) -> List[Move]:
    """Return the moves of the piece on ``sq`` that keep its own king safe."""
    piece = position.piece_at(sq)
    if piece is None:
        return []
    return _filter_legal(position, piece.color, pseudo_moves(position, sq))


def _filter_legal(position: Position, side: str, candidates: List[Move]) -> List[Move]:
    legal: List[Move] = []
    for move in candidates:
        with position.applied(move):
            safe = not in_check(position, side)
        if safe:
            legal.append(move)
    return legal


def legal_moves_for_side(position: Position, side: Optional[str] = None) -> List[Move]:
    """Return every legal move of ``side`` (default: side to move)."""
    s = position.side_to_move if side is None else side
    moves: List[Move] = []
    for sq, _ in list(position.pieces(s)):
        moves.extend(legal_moves(position, sq))
    return moves


def has_legal_moves(position: Position, side: Optional[str] = None) -> bool:
    s = position.side_to_move if side is None else side
    for sq, _ in list(position.pieces(s)):
        if legal_moves(position, sq):
            return True
    return False


def legal_captures(position: Position, side: Optional[str] = None) -> List[Move]:
    """Return legal capturing moves of ``side`` (used by quiescence search)."""
    s = position.side_to_move if side is None else side
    captures: List[Move] = []
    for sq, _ in list(position.pieces(s)):
        candidates = [m for m in pseudo_moves(position, sq) if m.is_capture]
        captures.extend(_filter_legal(position, s, candidates))
    return captures
