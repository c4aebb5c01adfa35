from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


Square = Tuple[int, int]

# Move kinds
QUIET = "quiet"
CAPTURE = "capture"
DOUBLE_STEP = "double_step"
CASTLE_KINGSIDE = "castle_kingside"
CASTLE_QUEENSIDE = "castle_queenside"
PROMOTION = "promotion"

MOVE_KINDS = frozenset(
    {QUIET, CAPTURE, DOUBLE_STEP, CASTLE_KINGSIDE, CASTLE_QUEENSIDE, PROMOTION}
)


@dataclass(frozen=True)
class Move:
    """Engine-internal move representation.

    A move is a value record; it never owns board state.

    Attributes:
        from_sq (Square): Origin square as ``(row, col)``.
        to_sq (Square): Destination square as ``(row, col)``.
        piece (str): FEN symbol of the moving piece (uppercase for White).
        captured (Optional[str]): FEN symbol of the captured piece, if any.
        kind (str): One of the move kind constants of this module.
        promotion (Optional[str]): Lowercase kind the pawn promotes to.
    """

    from_sq: Square
    to_sq: Square
    piece: str
    captured: Optional[str] = None
    kind: str = QUIET
    promotion: Optional[str] = None

    @property
    def is_capture(self) -> bool:
        return self.captured is not None

    @property
    def is_castle(self) -> bool:
        return self.kind in (CASTLE_KINGSIDE, CASTLE_QUEENSIDE)

    def to_uci(self) -> str:
        """Serialize the move into long algebraic (coordinate) form.

        Returns:
            str: Move encoded like ``"e2e4"`` or ``"e7e8q"``.
        """
        return square_to_str(self.from_sq) + square_to_str(self.to_sq) + (self.promotion or "")


def parse_uci(uci: str) -> Tuple[Square, Square]:
    """Parse coordinate notation into an origin/destination pair.

    Only queen promotion exists in this engine, so a fifth character is
    accepted only when it is ``q``.

    Args:
        uci (str): Move encoded like ``"e2e4"``.

    Returns:
        Tuple[Square, Square]: Origin and destination squares.

    Raises:
        ValueError: If the string has an invalid length, squares, or promotion
            piece.
    """
    if len(uci) not in (4, 5):
        raise ValueError(f"invalid UCI move length: {uci!r}")
    from_sq = str_to_square(uci[0:2])
    to_sq = str_to_square(uci[2:4])
    if len(uci) == 5 and uci[4].lower() != "q":
        raise ValueError(f"invalid promotion piece: {uci[4]!r}")
    return from_sq, to_sq


def str_to_square(s: str) -> Square:
    """Convert algebraic notation into a ``(row, col)`` square.

    Row 0 is rank 8, row 7 is rank 1.

    Raises:
        ValueError: If ``s`` is not a valid square.
    """
    if len(s) != 2 or s[0] < "a" or s[0] > "h" or s[1] < "1" or s[1] > "8":
        raise ValueError(f"invalid square: {s!r}")
    col = ord(s[0]) - ord("a")
    row = 8 - int(s[1])
    return row, col


def square_to_str(sq: Square) -> str:
    """Convert a ``(row, col)`` square into algebraic notation.

    Raises:
        ValueError: If ``sq`` is off the board.
    """
    row, col = sq
    if not (0 <= row < 8 and 0 <= col < 8):
        raise ValueError(f"invalid square: {sq!r}")
    return chr(ord("a") + col) + str(8 - row)
