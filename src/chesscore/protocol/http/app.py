from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ConfigDict, Field
from starlette import status
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from chesscore.config import Settings
from chesscore.engine.board import Position
from chesscore.engine.game import Game, IllegalMoveError
from chesscore.engine.move import Square, parse_uci, square_to_str, str_to_square
from chesscore.engine.perft import perft as perft_nodes
from chesscore.search.ai import analyse, hint
from chesscore.search.service import SearchResult, SearchService

from .error import (
    exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
)
from .logging_middleware import RequestIDLoggingMiddleware
from .session import InMemorySessionStore, Session


logger = logging.getLogger(__name__)


class CreateGameResponse(BaseModel):
    game_id: str
    fen: str


class SetPositionRequest(BaseModel):
    fen: str = Field(..., description="FEN string")


class MoveRequest(BaseModel):
    """Either ``move`` in coordinate notation or a ``from``/``to`` pair."""

    model_config = ConfigDict(populate_by_name=True)

    from_sq: Optional[str] = Field(default=None, alias="from", description="Origin square, e.g. e2")
    to_sq: Optional[str] = Field(default=None, alias="to", description="Destination square, e.g. e4")
    move: Optional[str] = Field(default=None, description="Coordinate move string, e.g. e2e4")


class SearchRequest(BaseModel):
    depth: Optional[int] = Field(default=None, ge=1)
    movetime_ms: Optional[int] = Field(default=None, ge=1)


class AIMoveRequest(BaseModel):
    depth: Optional[int] = Field(default=None, ge=1)


class PerftRequest(BaseModel):
    fen: str = Field(..., description="FEN string")
    depth: int = Field(default=1, ge=0, le=6)


class GameState(BaseModel):
    game_id: str
    fen: str
    side_to_move: str
    status: str
    # Side in check or checkmated, if any
    status_side: Optional[str]
    winner: Optional[str]
    in_check: bool
    checkmate: bool
    stalemate: bool
    legal_moves: List[str]
    last_move: Optional[str]
    move_history: List[str]
    captured: Dict[str, List[str]]
    board: List[str]


class SquareMoves(BaseModel):
    square: str
    moves: List[str]
    targets: List[str]


class SearchResponse(BaseModel):
    best_move: Optional[str]
    score: Optional[Dict[str, int]]
    pv: List[str]
    nodes: int
    depth: int
    time_ms: int
    aborted: bool


class AIMoveResponse(BaseModel):
    move: str
    search: SearchResponse
    state: GameState


class HintResponse(BaseModel):
    move: Optional[str]


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    app = FastAPI(title="Chesscore API", version="0.1.0")

    logging.basicConfig(level=settings.log_level)

    # Middleware & error handling
    app.add_middleware(RequestIDLoggingMiddleware)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, exception_handler)

    store = InMemorySessionStore()
    app.state.settings = settings
    app.state.store = store

    def resolve_depth(requested: Optional[int]) -> int:
        depth = requested if requested is not None else settings.ai_depth
        if depth > settings.max_depth:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"depth must be <= {settings.max_depth}",
            )
        return depth

    @app.get("/healthz")
    async def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/games", response_model=CreateGameResponse)
    async def create_game() -> CreateGameResponse:
        game_id = store.create(Game.new())
        game = _require_session(store, game_id).game
        return CreateGameResponse(game_id=game_id, fen=game.to_fen())

    @app.get("/api/games/{game_id}/state", response_model=GameState)
    async def get_state(game_id: str) -> GameState:
        session = _require_session(store, game_id)
        return _game_state(game_id, session.game)

    @app.post("/api/games/{game_id}/position", response_model=GameState)
    async def set_position(game_id: str, req: SetPositionRequest) -> GameState:
        session = _require_session(store, game_id)
        try:
            game = Game.from_fen(req.fen)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"invalid FEN: {e}")
        async with session.lock:
            store.set(game_id, game)
        return _game_state(game_id, game)

    @app.get("/api/games/{game_id}/moves/{square}", response_model=SquareMoves)
    async def square_moves(game_id: str, square: str) -> SquareMoves:
        session = _require_session(store, game_id)
        sq = _parse_square(square)
        moves = session.game.selectable_moves(sq)
        return SquareMoves(
            square=square_to_str(sq),
            moves=[m.to_uci() for m in moves],
            targets=[square_to_str(m.to_sq) for m in moves],
        )

    @app.post("/api/games/{game_id}/move", response_model=GameState)
    async def make_move(game_id: str, req: MoveRequest) -> GameState:
        session = _require_session(store, game_id)
        from_sq, to_sq = _parse_move_request(req)
        async with session.lock:
            try:
                session.game.try_move(from_sq, to_sq)
            except IllegalMoveError:
                raise HTTPException(status_code=400, detail="illegal move")
            return _game_state(game_id, session.game)

    @app.post("/api/games/{game_id}/undo", response_model=GameState)
    async def undo(game_id: str) -> GameState:
        session = _require_session(store, game_id)
        async with session.lock:
            session.game.undo_move()
            return _game_state(game_id, session.game)

    @app.post("/api/games/{game_id}/search", response_model=SearchResponse)
    async def search(game_id: str, req: SearchRequest) -> SearchResponse:
        session = _require_session(store, game_id)
        depth = resolve_depth(req.depth)
        # Search a snapshot so the event loop and other requests keep the live game
        snapshot = copy.deepcopy(session.game.position)
        movetime_ms = req.movetime_ms if req.movetime_ms is not None else settings.ai_movetime_ms
        res = await run_in_threadpool(SearchService().search, snapshot, depth, movetime_ms)
        return _search_response(res)

    @app.post("/api/games/{game_id}/ai-move", response_model=AIMoveResponse)
    async def ai_move(game_id: str, req: AIMoveRequest) -> AIMoveResponse:
        session = _require_session(store, game_id)
        depth = resolve_depth(req.depth)
        async with session.lock:
            game = session.game
            if game.status().is_over:
                raise HTTPException(status_code=409, detail="game is over")
            # Copy on the event loop; unlocked readers make/unmake on the live position
            snapshot = copy.deepcopy(game.position)
            res = await run_in_threadpool(analyse, snapshot, depth, settings.ai_movetime_ms)
            if res.best_move is None:
                raise HTTPException(status_code=409, detail="no legal move")
            game.apply_move(res.best_move)
            return AIMoveResponse(
                move=res.best_move.to_uci(),
                search=_search_response(res),
                state=_game_state(game_id, game),
            )

    @app.post("/api/games/{game_id}/hint", response_model=HintResponse)
    async def get_hint(game_id: str) -> HintResponse:
        session = _require_session(store, game_id)
        snapshot = copy.deepcopy(session.game.position)
        move = await run_in_threadpool(hint, snapshot)
        return HintResponse(move=move.to_uci() if move else None)

    @app.post("/api/perft")
    async def perft(req: PerftRequest) -> Dict[str, Any]:
        try:
            position = Position.from_fen(req.fen)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"invalid FEN: {e}")
        nodes = await run_in_threadpool(perft_nodes, position, req.depth)
        return {"nodes": nodes}

    return app


def _require_session(store: InMemorySessionStore, game_id: str) -> Session:
    session = store.session(game_id)
    if session is None:
        raise HTTPException(status_code=404, detail="game not found")
    return session


def _parse_square(text: str) -> Square:
    try:
        return str_to_square(text.lower())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _parse_move_request(req: MoveRequest) -> tuple[Square, Square]:
    if req.move is not None:
        try:
            return parse_uci(req.move.lower())
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
    if req.from_sq is None or req.to_sq is None:
        raise HTTPException(status_code=400, detail="either move or from/to is required")
    return _parse_square(req.from_sq), _parse_square(req.to_sq)


def _game_state(game_id: str, game: Game) -> GameState:
    st = game.status()
    last = game.last_move()
    return GameState(
        game_id=game_id,
        fen=game.to_fen(),
        side_to_move=game.side_to_move,
        status=st.state,
        status_side=st.side,
        winner=game.winner(),
        in_check=game.in_check(),
        checkmate=game.checkmate(),
        stalemate=game.stalemate(),
        legal_moves=[m.to_uci() for m in game.legal_moves()],
        last_move=last.to_uci() if last else None,
        move_history=game.move_history_uci(),
        captured={side: list(symbols) for side, symbols in game.captured.items()},
        board=game.position.to_rows(),
    )


def _search_response(res: SearchResult) -> SearchResponse:
    # Score object: either cp or mate (UCI-style)
    score: Optional[Dict[str, int]]
    if res.mate_in is not None:
        score = {"mate": res.mate_in}
    elif res.score_cp is not None:
        score = {"cp": res.score_cp}
    else:
        score = None
    return SearchResponse(
        best_move=res.best_move.to_uci() if res.best_move else None,
        score=score,
        pv=[m.to_uci() for m in res.pv],
        nodes=res.nodes,
        depth=res.depth,
        time_ms=res.time_ms,
        aborted=res.aborted,
    )


# Default app for non-factory servers
app = create_app()
