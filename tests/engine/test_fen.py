from __future__ import annotations

import pytest

from chesscore.engine.board import STARTPOS_FEN, Position
from chesscore.engine.move import str_to_square


def test_startpos_round_trip() -> None:
    p = Position.from_fen(STARTPOS_FEN)
    assert p.to_fen() == STARTPOS_FEN
    assert Position.startpos() == p


@pytest.mark.parametrize(
    "fen",
    [
        # Mixed pieces and empty squares, some castling rights
        "r1bqkbnr/pppp1ppp/2n5/4p3/3P4/5N2/PPP1PPPP/RNBQKB1R b KQ - 2 3",
        # All castling rights
        "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1",
        # Partial rights
        "r3k2r/8/8/8/8/8/8/R3K2R w Kq - 0 1",
        "4k3/8/8/8/8/8/8/4K3 b - - 7 42",
    ],
)
def test_round_trip_various_positions(fen: str) -> None:
    p = Position.from_fen(fen)
    assert p.to_fen() == fen


def test_en_passant_field_is_dropped() -> None:
    p = Position.from_fen("rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1")
    assert p.to_fen() == "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"


def test_castling_rights_fold_into_moved_flags() -> None:
    p = Position.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w K - 0 1")
    assert p.piece_at(str_to_square("e1")).has_moved is False
    assert p.piece_at(str_to_square("h1")).has_moved is False
    assert p.piece_at(str_to_square("a1")).has_moved is True
    assert p.piece_at(str_to_square("e8")).has_moved is True


def test_pawn_moved_flag_follows_rank() -> None:
    p = Position.from_fen("4k3/3p4/8/8/4P3/8/2P5/4K3 w - - 0 1")
    assert p.piece_at(str_to_square("c2")).has_moved is False
    assert p.piece_at(str_to_square("e4")).has_moved is True
    assert p.piece_at(str_to_square("d7")).has_moved is False


def test_rows_start_at_rank_eight() -> None:
    rows = Position.startpos().to_rows()
    assert rows[0] == "rnbqkbnr"
    assert rows[4] == "........"
    assert rows[7] == "RNBQKBNR"


@pytest.mark.parametrize(
    "fen",
    [
        "",  # empty
        "8/8/8/8/8/8/8 w - - 0 1",  # not enough ranks
        "8/8/8/8/8/8/8/8 w - - 0",  # missing fields
        "8/8/8/8/8/8/8/8 x - - 0 1",  # bad side to move
        "8/8/8/8/8/8/8/8 w A - 0 1",  # bad castling
        "8/8/8/8/8/8/8/8 w - z9 0 1",  # bad ep square
        "8/8/8/8/8/8/8/8 w - - -1 1",  # bad halfmove
        "8/8/8/8/8/8/8/8 w - - 0 0",  # bad fullmove
        "9/8/8/8/8/8/8/8 w - - 0 1",  # too many squares
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNX w KQkq - 0 1",  # bad piece
    ],
)
def test_invalid_fen_raises(fen: str) -> None:
    with pytest.raises(ValueError):
        Position.from_fen(fen)
