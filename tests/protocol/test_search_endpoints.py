from __future__ import annotations

from fastapi.testclient import TestClient

from chesscore.config import Settings
from chesscore.engine.movegen import legal_moves_for_side
from chesscore.protocol.http import app as app_module
from chesscore.protocol.http.app import create_app


FOOLS_MATE = "rnb1kbnr/pppp1ppp/8/4p3/6Pq/5P2/PPPPP2P/RNBQKBNR w KQkq - 1 3"
MATE_IN_ONE = "6k1/5ppp/8/8/8/8/8/R5K1 w - - 0 1"
START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"


def _client() -> TestClient:
    return TestClient(create_app(Settings(ai_depth=2, max_depth=3)))


def _game_at(client: TestClient, fen: str) -> str:
    game_id = client.post("/api/games").json()["game_id"]
    assert client.post(f"/api/games/{game_id}/position", json={"fen": fen}).status_code == 200
    return game_id


def test_search_endpoint_shape() -> None:
    client = _client()
    game_id = client.post("/api/games").json()["game_id"]

    r = client.post(f"/api/games/{game_id}/search", json={"depth": 2})
    assert r.status_code == 200
    data = r.json()
    assert {"best_move", "score", "pv", "nodes", "depth", "time_ms", "aborted"}.issubset(data)
    assert data["depth"] == 2
    assert "cp" in data["score"]
    assert data["pv"][0] == data["best_move"]

    # The search does not touch the game
    state = client.get(f"/api/games/{game_id}/state").json()
    assert state["move_history"] == []


def test_search_reports_mate_score() -> None:
    client = _client()
    game_id = _game_at(client, MATE_IN_ONE)
    data = client.post(f"/api/games/{game_id}/search", json={}).json()
    assert data["best_move"] == "a1a8"
    assert data["score"] == {"mate": 1}


def test_search_depth_limits() -> None:
    client = _client()
    game_id = client.post("/api/games").json()["game_id"]

    r = client.post(f"/api/games/{game_id}/search", json={"depth": 9})
    assert r.status_code == 400
    assert "depth" in r.json()["error"]["message"]

    r = client.post(f"/api/games/{game_id}/search", json={"depth": 0})
    assert r.status_code == 422
    err = r.json()["error"]
    assert err["code"] == "unprocessable_entity"
    assert err["field_errors"][0]["field"].endswith("depth")


def test_ai_move_plays_for_side_to_move() -> None:
    client = _client()
    game_id = client.post("/api/games").json()["game_id"]
    client.post(f"/api/games/{game_id}/move", json={"move": "e2e4"})

    r = client.post(f"/api/games/{game_id}/ai-move", json={"depth": 1})
    assert r.status_code == 200
    body = r.json()
    assert body["state"]["side_to_move"] == "w"
    assert body["state"]["move_history"][0] == "e2e4"
    assert body["state"]["move_history"][1] == body["move"]
    assert body["search"]["best_move"] == body["move"]


def test_ai_move_delivers_mate() -> None:
    client = _client()
    game_id = _game_at(client, MATE_IN_ONE)
    body = client.post(f"/api/games/{game_id}/ai-move", json={}).json()
    assert body["move"] == "a1a8"
    assert body["state"]["status"] == "checkmate"


def test_ai_move_on_finished_game_is_409() -> None:
    client = _client()
    game_id = _game_at(client, FOOLS_MATE)
    r = client.post(f"/api/games/{game_id}/ai-move", json={})
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "conflict"


def test_hint() -> None:
    client = _client()
    game_id = _game_at(client, MATE_IN_ONE)
    r = client.post(f"/api/games/{game_id}/hint")
    assert r.status_code == 200
    assert r.json() == {"move": "a1a8"}

    over = _game_at(client, FOOLS_MATE)
    assert client.post(f"/api/games/{over}/hint").json() == {"move": None}


def test_perft_endpoint() -> None:
    client = _client()
    start = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
    r = client.post("/api/perft", json={"fen": start, "depth": 2})
    assert r.status_code == 200
    assert r.json() == {"nodes": 400}

    r = client.post("/api/perft", json={"fen": "not a fen", "depth": 1})
    assert r.status_code == 400

    r = client.post("/api/perft", json={"fen": start, "depth": -1})
    assert r.status_code == 422


def test_unknown_game_endpoints_404() -> None:
    client = _client()
    for path in ("search", "ai-move", "hint", "undo"):
        r = client.post(f"/api/games/nope/{path}", json={})
        assert r.status_code == 404, path


def test_ai_move_searches_a_copy_taken_before_the_worker_runs(monkeypatch) -> None:
    app = create_app(Settings(ai_depth=1, max_depth=3))
    client = TestClient(app)
    game_id = client.post("/api/games").json()["game_id"]
    live = app.state.store.get(game_id).position
    real_analyse = app_module.analyse
    seen = []

    def analyse_while_live_board_changes(position, max_depth, movetime_ms=None):
        # Another request has a move made but not yet undone on the live board
        e2e4 = next(m for m in legal_moves_for_side(live) if m.to_uci() == "e2e4")
        undo = live.make_move(e2e4)
        try:
            seen.append((position is live, position.side_to_move, position.to_fen()))
            return real_analyse(position, max_depth, movetime_ms)
        finally:
            live.unmake_move(undo)

    monkeypatch.setattr(app_module, "analyse", analyse_while_live_board_changes)
    r = client.post(f"/api/games/{game_id}/ai-move", json={})
    assert r.status_code == 200
    assert seen == [(False, "w", START_FEN)]
    state = r.json()["state"]
    assert state["side_to_move"] == "b"
    assert state["move_history"] == [r.json()["move"]]


def test_search_uses_configured_movetime_by_default() -> None:
    client = TestClient(create_app(Settings(ai_depth=2, max_depth=8, ai_movetime_ms=1)))
    game_id = client.post("/api/games").json()["game_id"]
    data = client.post(f"/api/games/{game_id}/search", json={"depth": 8}).json()
    assert data["aborted"] is True
    assert data["depth"] < 8
    assert data["best_move"] is not None
