from __future__ import annotations

from chesscore.engine.board import Position
from chesscore.engine.move import PROMOTION, str_to_square
from chesscore.engine.movegen import legal_moves


def test_push_promotion_is_auto_queen() -> None:
    p = Position.from_fen("8/P6k/8/8/8/8/8/K7 w - - 0 1")
    moves = legal_moves(p, str_to_square("a7"))
    assert [m.to_uci() for m in moves] == ["a7a8q"]
    mv = moves[0]
    assert mv.kind == PROMOTION
    assert mv.promotion == "q"


def test_capture_promotion_records_victim() -> None:
    p = Position.from_fen("1r5k/P7/8/8/8/8/8/K7 w - - 0 1")
    moves = {m.to_uci(): m for m in legal_moves(p, str_to_square("a7"))}
    assert set(moves) == {"a7a8q", "a7b8q"}
    assert moves["a7b8q"].captured == "r"
    assert moves["a7a8q"].captured is None


def test_promotion_places_queen_and_undo_restores_pawn() -> None:
    fen = "1r5k/P7/8/8/8/8/8/K7 w - - 0 1"
    p = Position.from_fen(fen)
    mv = next(m for m in legal_moves(p, str_to_square("a7")) if m.to_uci() == "a7b8q")
    undo = p.make_move(mv)
    queen = p.piece_at(str_to_square("b8"))
    assert queen is not None and queen.symbol == "Q"
    assert p.piece_at(str_to_square("a7")) is None
    p.unmake_move(undo)
    assert p.to_fen() == fen
    assert p.piece_at(str_to_square("a7")).symbol == "P"
    assert p.piece_at(str_to_square("b8")).symbol == "r"


def test_black_promotes_on_rank_one() -> None:
    p = Position.from_fen("7k/8/8/8/8/8/p7/7K b - - 0 1")
    assert [m.to_uci() for m in legal_moves(p, str_to_square("a2"))] == ["a2a1q"]
