from __future__ import annotations

from chesscore.engine.board import Position
from chesscore.engine.game import Game
from chesscore.engine.move import CASTLE_KINGSIDE, str_to_square
from chesscore.engine.movegen import legal_moves_for_side


def moves_set(p: Position) -> set[str]:
    return {m.to_uci() for m in legal_moves_for_side(p)}


def test_white_castling_available_when_clear_and_not_in_check() -> None:
    p = Position.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
    ms = moves_set(p)
    assert "e1g1" in ms
    assert "e1c1" in ms


def test_black_castling_available() -> None:
    p = Position.from_fen("r3k2r/8/8/8/8/8/8/R3K2R b KQkq - 0 1")
    ms = moves_set(p)
    assert "e8g8" in ms
    assert "e8c8" in ms


def test_white_castling_blocked_when_in_check() -> None:
    # Black rook on e8 gives check on e1
    p = Position.from_fen("k3r3/8/8/8/8/8/8/R3K2R w KQ - 0 1")
    ms = moves_set(p)
    assert "e1g1" not in ms
    assert "e1c1" not in ms


def test_castling_through_attacked_square_is_illegal() -> None:
    # Rook on f8 covers f1, which the king would pass
    p = Position.from_fen("k4r2/8/8/8/8/8/8/R3K2R w KQ - 0 1")
    ms = moves_set(p)
    assert "e1g1" not in ms
    assert "e1c1" in ms


def test_attacked_b_file_does_not_stop_queenside_castling() -> None:
    # Only the rook crosses b1
    p = Position.from_fen("kr6/8/8/8/8/8/8/R3K2R w KQ - 0 1")
    assert "e1c1" in moves_set(p)


def test_castling_blocked_by_piece_between() -> None:
    p = Position.from_fen("r3k2r/8/8/8/8/8/8/RN2K1NR w KQkq - 0 1")
    ms = moves_set(p)
    assert "e1g1" not in ms
    assert "e1c1" not in ms


def test_castling_moves_rook_and_undo_restores() -> None:
    fen = "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"
    p = Position.from_fen(fen)
    mv = next(m for m in legal_moves_for_side(p) if m.to_uci() == "e1g1")
    assert mv.kind == CASTLE_KINGSIDE
    undo = p.make_move(mv)
    assert p.piece_at(str_to_square("g1")).symbol == "K"
    assert p.piece_at(str_to_square("f1")).symbol == "R"
    assert p.piece_at(str_to_square("h1")) is None
    assert p.castling_rights() == "kq"
    p.unmake_move(undo)
    assert p.to_fen() == fen


def test_queenside_castle_places_rook_on_d_file() -> None:
    p = Position.from_fen("r3k2r/8/8/8/8/8/8/R3K2R b KQkq - 0 1")
    mv = next(m for m in legal_moves_for_side(p) if m.to_uci() == "e8c8")
    p.make_move(mv)
    assert p.piece_at(str_to_square("c8")).symbol == "k"
    assert p.piece_at(str_to_square("d8")).symbol == "r"
    assert p.piece_at(str_to_square("a8")) is None


def test_rook_that_moved_and_returned_cannot_castle() -> None:
    game = Game.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
    game.try_move(str_to_square("h1"), str_to_square("h2"))
    game.try_move(str_to_square("a8"), str_to_square("a7"))
    game.try_move(str_to_square("h2"), str_to_square("h1"))
    game.try_move(str_to_square("a7"), str_to_square("a8"))
    ms = moves_set(game.position)
    assert "e1g1" not in ms
    assert "e1c1" in ms
    assert game.to_fen().split()[2] == "Qk"


def test_undo_restores_castling_rights() -> None:
    game = Game.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
    game.try_move(str_to_square("e1"), str_to_square("f1"))
    assert game.to_fen().split()[2] == "kq"
    game.undo_move()
    assert game.to_fen().split()[2] == "KQkq"
    assert "e1g1" in moves_set(game.position)
