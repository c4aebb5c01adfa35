from __future__ import annotations

import copy
import logging
import threading
from typing import Callable, Optional

from chesscore.engine.board import WHITE, Position
from chesscore.engine.move import Move
from chesscore.engine.movegen import legal_moves_for_side
from chesscore.eval import evaluate

from .service import SearchResult, SearchService, order_moves


logger = logging.getLogger(__name__)


def analyse(
    position: Position,
    max_depth: int,
    movetime_ms: Optional[int] = None,
    *,
    stop_event: Optional[threading.Event] = None,
) -> SearchResult:
    """Run the iterative-deepening search on a private copy of ``position``."""
    work = copy.deepcopy(position)
    result = SearchService().search(
        work, depth=max_depth, movetime_ms=movetime_ms, stop_event=stop_event
    )
    logger.info(
        "ai decision",
        extra={
            "side": position.side_to_move,
            "best_move": result.best_move.to_uci() if result.best_move else None,
            "score_cp": result.score_cp,
            "mate_in": result.mate_in,
            "depth": result.depth,
            "nodes": result.nodes,
            "time_ms": result.time_ms,
        },
    )
    return result


def best_move(
    position: Position,
    max_depth: int,
    movetime_ms: Optional[int] = None,
    *,
    stop_event: Optional[threading.Event] = None,
) -> Optional[Move]:
    """Return the computer's move for the side to move, or ``None`` if it has none.

    ``position`` itself is never mutated.
    """
    return analyse(position, max_depth, movetime_ms, stop_event=stop_event).best_move


def hint(position: Position) -> Optional[Move]:
    """Suggest a move for the side to move by one-ply lookahead.

    Each legal move is scored by the evaluation of the resulting position
    (checkmate and stalemate included), from the mover's point of view.
    """
    work = copy.deepcopy(position)
    side = work.side_to_move
    suggestion: Optional[Move] = None
    best_score: Optional[int] = None
    for m in order_moves(legal_moves_for_side(work)):
        with work.applied(m):
            score = evaluate(work)
        if side != WHITE:
            score = -score
        if best_score is None or score > best_score:
            best_score = score
            suggestion = m
    return suggestion


class BestMoveWorker:
    """Compute :func:`best_move` on a background thread.

    The result is delivered once, either through ``on_done`` or by calling
    :meth:`result`. :meth:`stop` ends the search early; the deepest completed
    iteration is still returned.
    """

    def __init__(
        self,
        position: Position,
        max_depth: int,
        movetime_ms: Optional[int] = None,
        on_done: Optional[Callable[[Optional[Move]], None]] = None,
    ) -> None:
        self._position = copy.deepcopy(position)
        self._max_depth = max_depth
        self._movetime_ms = movetime_ms
        self._on_done = on_done
        self._stop_event = threading.Event()
        self._done = threading.Event()
        self._result: Optional[SearchResult] = None
        self._error: Optional[Exception] = None
        self._thread = threading.Thread(target=self._run, name="chesscore-ai", daemon=True)

    def start(self) -> "BestMoveWorker":
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop_event.set()

    def done(self) -> bool:
        return self._done.is_set()

    def _run(self) -> None:
        try:
            self._result = analyse(
                self._position,
                self._max_depth,
                self._movetime_ms,
                stop_event=self._stop_event,
            )
        except Exception as e:
            logger.exception("background search failed")
            self._error = e
        finally:
            self._done.set()
        if self._error is None and self._on_done is not None:
            try:
                self._on_done(self._result.best_move if self._result else None)
            except Exception:
                logger.exception("on_done callback failed")

    def result(self, timeout: Optional[float] = None) -> Optional[Move]:
        """Wait for the search and return its move.

        Raises:
            TimeoutError: If the search is still running after ``timeout``.
        """
        if not self._done.wait(timeout):
            raise TimeoutError("search still running")
        if self._error is not None:
            raise self._error
        return self._result.best_move if self._result else None
