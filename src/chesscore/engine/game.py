from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .board import BLACK, WHITE, Position, Undo, opponent
from .move import Move, Square
from .movegen import has_legal_moves, in_check, legal_moves, legal_moves_for_side


ONGOING = "ongoing"
CHECK = "check"
CHECKMATE = "checkmate"
STALEMATE = "stalemate"


class IllegalMoveError(ValueError):
    """Requested move is not in the legal move set of the side to move."""


@dataclass(frozen=True)
class GameStatus:
    """Game state seen from the side to move.

    ``side`` names the side in check or checkmated; it is ``None`` for
    ongoing games and stalemate.
    """

    state: str
    side: Optional[str] = None

    @property
    def is_over(self) -> bool:
        return self.state in (CHECKMATE, STALEMATE)


def game_status(position: Position) -> GameStatus:
    side = position.side_to_move
    checked = in_check(position, side)
    if not has_legal_moves(position, side):
        return GameStatus(CHECKMATE, side) if checked else GameStatus(STALEMATE)
    if checked:
        return GameStatus(CHECK, side)
    return GameStatus(ONGOING)


@dataclass
class Game:
    """Game wrapper around a position with helper operations.

    Responsibility: track the position, expose legal moves, apply and undo
    moves, and keep the display record (history, captured pieces).
    """

    position: Position
    move_stack: List[Tuple[Move, Undo]] = field(default_factory=list)
    # Captured piece symbols keyed by the capturing side
    captured: Dict[str, List[str]] = field(
        default_factory=lambda: {WHITE: [], BLACK: []}
    )

    @classmethod
    def new(cls) -> "Game":
        return cls(position=Position.startpos())

    @classmethod
    def from_fen(cls, fen: str) -> "Game":
        return cls(position=Position.from_fen(fen))

    def to_fen(self) -> str:
        return self.position.to_fen()

    @property
    def side_to_move(self) -> str:
        return self.position.side_to_move

    def legal_moves(self) -> List[Move]:
        return legal_moves_for_side(self.position)

    def selectable_moves(self, sq: Square) -> List[Move]:
        """Legal moves of the piece on ``sq`` if it belongs to the side to move."""
        piece = self.position.piece_at(sq)
        if piece is None or piece.color != self.position.side_to_move:
            return []
        return legal_moves(self.position, sq)

    def try_move(self, from_sq: Square, to_sq: Square) -> Move:
        """Play the legal move ``from_sq -> to_sq`` for the side to move.

        Raises:
            IllegalMoveError: If no such legal move exists; the position is
                left untouched.
        """
        move = next(
            (m for m in self.selectable_moves(from_sq) if m.to_sq == to_sq),
            None,
        )
        if move is None:
            raise IllegalMoveError("illegal move")
        self.apply_move(move)
        return move

    def apply_move(self, move: Move) -> None:
        # Validate legality against the freshly generated set
        if move not in self.selectable_moves(move.from_sq):
            raise IllegalMoveError("illegal move")
        mover = self.position.side_to_move
        undo = self.position.make_move(move)
        self.move_stack.append((move, undo))
        if move.captured is not None:
            self.captured[mover].append(move.captured)

    def undo_move(self) -> Optional[Move]:
        """Take back the last move; a no-op returning ``None`` when there is none."""
        if not self.move_stack:
            return None
        move, undo = self.move_stack.pop()
        self.position.unmake_move(undo)
        if move.captured is not None:
            self.captured[self.position.side_to_move].pop()
        return move

    # --- State flags for protocol ---
    def status(self) -> GameStatus:
        return game_status(self.position)

    def in_check(self) -> bool:
        return in_check(self.position)

    def checkmate(self) -> bool:
        return self.status().state == CHECKMATE

    def stalemate(self) -> bool:
        return self.status().state == STALEMATE

    def winner(self) -> Optional[str]:
        st = self.status()
        if st.state == CHECKMATE and st.side is not None:
            return opponent(st.side)
        return None

    def last_move(self) -> Optional[Move]:
        return self.move_stack[-1][0] if self.move_stack else None

    def move_history_uci(self) -> List[str]:
        return [m.to_uci() for m, _ in self.move_stack]
