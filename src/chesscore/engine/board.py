from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from .move import (
    CASTLE_KINGSIDE,
    PROMOTION,
    Move,
    Square,
    str_to_square,
)


STARTPOS_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

WHITE = "w"
BLACK = "b"

# Piece kinds (FEN letters, lowercase)
PAWN, KNIGHT, BISHOP, ROOK, QUEEN, KING = "p", "n", "b", "r", "q", "k"
PIECE_KINDS = (PAWN, KNIGHT, BISHOP, ROOK, QUEEN, KING)

# Home squares used for castling eligibility (row 0 is rank 8)
KING_HOME = {WHITE: (7, 4), BLACK: (0, 4)}
ROOK_HOMES = {
    WHITE: {"K": (7, 7), "Q": (7, 0)},
    BLACK: {"k": (0, 7), "q": (0, 0)},
}
PAWN_START_ROW = {WHITE: 6, BLACK: 1}
PROMOTION_ROW = {WHITE: 0, BLACK: 7}


def opponent(side: str) -> str:
    return BLACK if side == WHITE else WHITE


@dataclass
class Piece:
    """A square occupant.

    ``has_moved`` is flipped in place by :meth:`Position.make_move` and
    restored by :meth:`Position.unmake_move`.
    """

    kind: str
    color: str
    has_moved: bool = False

    @property
    def symbol(self) -> str:
        return self.kind.upper() if self.color == WHITE else self.kind

    @classmethod
    def from_symbol(cls, ch: str, has_moved: bool = False) -> "Piece":
        kind = ch.lower()
        if kind not in PIECE_KINDS:
            raise ValueError(f"invalid piece in FEN: {ch!r}")
        return cls(kind=kind, color=WHITE if ch.isupper() else BLACK, has_moved=has_moved)


@dataclass
class Undo:
    """Everything needed to invert one :meth:`Position.make_move` call."""

    move: Move
    piece: Piece
    prev_has_moved: bool
    captured: Optional[Piece]
    prev_side: str
    prev_halfmove: int
    prev_fullmove: int
    rook: Optional[Piece] = None
    rook_from: Optional[Square] = None
    rook_to: Optional[Square] = None
    rook_prev_has_moved: bool = False


def _empty_grid() -> List[List[Optional[Piece]]]:
    return [[None] * 8 for _ in range(8)]


@dataclass
class Position:
    """Board state: an 8x8 grid of optional pieces plus side to move.

    Notes:
    - Squares are ``(row, col)``; row 0 is rank 8, col 0 is file a.
    - The position is only ever mutated through make_move/unmake_move.
    """

    grid: List[List[Optional[Piece]]] = field(default_factory=_empty_grid)
    side_to_move: str = WHITE
    halfmove_clock: int = 0
    fullmove_number: int = 1

    @classmethod
    def startpos(cls) -> "Position":
        """Create a position with the standard initial arrangement."""
        return cls.from_fen(STARTPOS_FEN)

    @classmethod
    def from_fen(cls, fen: str) -> "Position":
        """Create a position from a Forsyth–Edwards Notation (FEN) string.

        Args:
            fen (str): FEN string describing the position to load.

        Returns:
            Position: Position initialized with the state encoded in ``fen``.

        Raises:
            ValueError: If ``fen`` is empty, has the wrong number of fields, or
                contains invalid piece placement, castling rights, en passant
                square, or move counters.

        Notes:
            Castling rights are folded into the ``has_moved`` flags of kings
            and rooks on their home squares. The en-passant field is validated
            and then dropped since en passant is not played.
        """
        if not fen or not isinstance(fen, str):
            raise ValueError("FEN must be a non-empty string")
        parts = fen.strip().split()
        if len(parts) != 6:
            raise ValueError("FEN must have 6 fields")
        placement, stm, castling, ep, halfmove, fullmove = parts

        # Parse piece placement; FEN lists rank 8 first, which is row 0
        ranks = placement.split("/")
        if len(ranks) != 8:
            raise ValueError("FEN board must have 8 ranks")
        grid = _empty_grid()
        for row, rank in enumerate(ranks):
            col = 0
            for ch in rank:
                if ch.isdigit():
                    n = int(ch)
                    if n < 1 or n > 8:
                        raise ValueError("invalid empty count in FEN rank")
                    col += n
                else:
                    if col >= 8:
                        raise ValueError("too many squares in FEN rank")
                    grid[row][col] = Piece.from_symbol(ch)
                    col += 1
            if col != 8:
                raise ValueError("rank does not sum to 8 squares in FEN")

        if stm not in (WHITE, BLACK):
            raise ValueError("side to move must be 'w' or 'b'")

        if castling == "-":
            castling = ""
        elif any(ch not in "KQkq" for ch in castling):
            raise ValueError("invalid castling rights")

        if ep != "-":
            try:
                ep_row, _ = str_to_square(ep)
            except ValueError as e:
                raise ValueError("invalid en passant square") from e
            # ranks 3 and 6
            if ep_row not in (5, 2):
                raise ValueError("invalid en passant square rank")

        try:
            halfmove_clock = int(halfmove)
            fullmove_number = int(fullmove)
        except ValueError as e:
            raise ValueError("invalid move counters in FEN") from e
        if halfmove_clock < 0 or fullmove_number <= 0:
            raise ValueError("invalid move counters in FEN")

        pos = cls(
            grid=grid,
            side_to_move=stm,
            halfmove_clock=halfmove_clock,
            fullmove_number=fullmove_number,
        )
        pos._seed_moved_flags(castling)
        return pos

    def _seed_moved_flags(self, castling: str) -> None:
        """Derive ``has_moved`` flags from FEN castling rights and pawn ranks."""
        for sq, piece in self.pieces():
            if piece.kind == PAWN:
                piece.has_moved = sq[0] != PAWN_START_ROW[piece.color]
            elif piece.kind in (KING, ROOK):
                piece.has_moved = True
        for side in (WHITE, BLACK):
            king = self.piece_at(KING_HOME[side])
            if king is None or king.kind != KING or king.color != side:
                continue
            for right, rook_sq in ROOK_HOMES[side].items():
                rook = self.piece_at(rook_sq)
                if right in castling and rook is not None and rook.kind == ROOK and rook.color == side:
                    rook.has_moved = False
                    king.has_moved = False

    def to_fen(self) -> str:
        """Serialize the current position into a FEN string.

        Castling rights are derived from unmoved kings and rooks; the en
        passant field is always ``-``.
        """
        ranks_str: List[str] = []
        for row in range(8):
            run = 0
            out = []
            for col in range(8):
                piece = self.grid[row][col]
                if piece is None:
                    run += 1
                else:
                    if run > 0:
                        out.append(str(run))
                        run = 0
                    out.append(piece.symbol)
            if run > 0:
                out.append(str(run))
            ranks_str.append("".join(out))
        placement = "/".join(ranks_str)
        castling = self.castling_rights() or "-"
        return f"{placement} {self.side_to_move} {castling} - {self.halfmove_clock} {self.fullmove_number}"

    def castling_rights(self) -> str:
        """Return castling rights in ``KQkq`` order implied by moved flags."""
        rights = ""
        for side in (WHITE, BLACK):
            king = self.piece_at(KING_HOME[side])
            if king is None or king.kind != KING or king.color != side or king.has_moved:
                continue
            for right, rook_sq in ROOK_HOMES[side].items():
                rook = self.piece_at(rook_sq)
                if rook is not None and rook.kind == ROOK and rook.color == side and not rook.has_moved:
                    rights += right
        return rights

    def to_rows(self) -> List[str]:
        """Return the board as eight strings of symbols, rank 8 first; ``.`` is empty."""
        return ["".join(p.symbol if p else "." for p in row) for row in self.grid]

    def piece_at(self, sq: Square) -> Optional[Piece]:
        row, col = sq
        if not (0 <= row < 8 and 0 <= col < 8):
            return None
        return self.grid[row][col]

    def pieces(self, side: Optional[str] = None) -> Iterator[Tuple[Square, Piece]]:
        """Yield ``(square, piece)`` for every occupied square, optionally of one side."""
        for row in range(8):
            for col in range(8):
                piece = self.grid[row][col]
                if piece is not None and (side is None or piece.color == side):
                    yield (row, col), piece

    # --- Move executor ---
    def make_move(self, move: Move) -> Undo:
        """Apply ``move`` in place and return the record that inverts it.

        Supports quiet moves, captures, double steps, castling (the rook is
        relocated too) and promotion (the pawn is replaced by a new piece).

        Raises:
            ValueError: If the origin square is empty, or a castling move has
                no rook to relocate.
        """
        fr, fc = move.from_sq
        tr, tc = move.to_sq
        piece = self.grid[fr][fc]
        if piece is None:
            raise ValueError("no piece to move from from_sq")

        rook: Optional[Piece] = None
        rook_from: Optional[Square] = None
        rook_to: Optional[Square] = None
        if move.is_castle:
            rook_from = (fr, 7) if move.kind == CASTLE_KINGSIDE else (fr, 0)
            # rook lands on the square the king passed over
            rook_to = (fr, (fc + tc) // 2)
            rook = self.grid[rook_from[0]][rook_from[1]]
            if rook is None:
                raise ValueError("no rook to castle with")

        captured = self.grid[tr][tc]
        undo = Undo(
            move=move,
            piece=piece,
            prev_has_moved=piece.has_moved,
            captured=captured,
            prev_side=self.side_to_move,
            prev_halfmove=self.halfmove_clock,
            prev_fullmove=self.fullmove_number,
            rook=rook,
            rook_from=rook_from,
            rook_to=rook_to,
            rook_prev_has_moved=rook.has_moved if rook is not None else False,
        )

        self.grid[fr][fc] = None
        if move.kind == PROMOTION:
            self.grid[tr][tc] = Piece(move.promotion or QUEEN, piece.color, has_moved=True)
        else:
            self.grid[tr][tc] = piece
        piece.has_moved = True

        if rook is not None and rook_from is not None and rook_to is not None:
            self.grid[rook_from[0]][rook_from[1]] = None
            self.grid[rook_to[0]][rook_to[1]] = rook
            rook.has_moved = True

        # Counters are bookkeeping for FEN output only
        if piece.kind == PAWN or captured is not None:
            self.halfmove_clock = 0
        else:
            self.halfmove_clock += 1
        if piece.color == BLACK:
            self.fullmove_number += 1

        self.side_to_move = opponent(self.side_to_move)
        return undo

    def unmake_move(self, undo: Undo) -> None:
        """Exactly reverse the :meth:`make_move` call that produced ``undo``."""
        fr, fc = undo.move.from_sq
        tr, tc = undo.move.to_sq

        self.grid[tr][tc] = undo.captured
        self.grid[fr][fc] = undo.piece
        undo.piece.has_moved = undo.prev_has_moved

        if undo.rook is not None and undo.rook_from is not None and undo.rook_to is not None:
            self.grid[undo.rook_to[0]][undo.rook_to[1]] = None
            self.grid[undo.rook_from[0]][undo.rook_from[1]] = undo.rook
            undo.rook.has_moved = undo.rook_prev_has_moved

        self.side_to_move = undo.prev_side
        self.halfmove_clock = undo.prev_halfmove
        self.fullmove_number = undo.prev_fullmove

    @contextmanager
    def applied(self, move: Move) -> Iterator[Undo]:
        """Make ``move`` for the duration of a ``with`` block, then unmake it.

        The position is restored even when the block raises.
        """
        undo = self.make_move(move)
        try:
            yield undo
        finally:
            self.unmake_move(undo)

    def __str__(self) -> str:
        lines = [f"{8 - i} {row}" for i, row in enumerate(self.to_rows())]
        lines.append("  abcdefgh")
        return "\n".join(lines)
