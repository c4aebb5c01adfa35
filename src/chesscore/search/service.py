from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from chesscore.engine.board import WHITE, Position
from chesscore.engine.move import Move
from chesscore.engine.movegen import in_check, legal_captures, legal_moves_for_side
from chesscore.eval import DRAW_SCORE, MATE_SCORE, PIECE_VALUES, static_eval


logger = logging.getLogger(__name__)

INF = 10_000_000
# Mate scores are MATE_SCORE - ply; anything this close to MATE_SCORE is a mate
MATE_WINDOW = 512

IterCallback = Callable[[int, int, int, Optional[int], Optional[int], List[Move]], None]


class SearchAborted(Exception):
    """Raised inside the tree when the deadline passes or a stop is requested."""


@dataclass
class SearchResult:
    best_move: Optional[Move]
    score_cp: Optional[int]
    mate_in: Optional[int]
    pv: List[Move]
    nodes: int
    qnodes: int
    depth: int
    time_ms: int
    aborted: bool = False
    iters: List[Dict[str, int]] = field(default_factory=list)


def move_order_key(move: Move) -> int:
    """Captures first by MVV-LVA, then promotions, then quiet moves."""
    score = 0
    if move.captured is not None:
        victim = PIECE_VALUES[move.captured.lower()]
        attacker = PIECE_VALUES[move.piece.lower()]
        score += 1_000_000 + victim * 10 - attacker
    if move.promotion is not None:
        score += 500_000
    return score


def order_moves(moves: Iterable[Move], first: Optional[Move] = None) -> List[Move]:
    """Return ``moves`` sorted for alpha-beta, with ``first`` (if present) in front."""
    ordered = sorted(moves, key=move_order_key, reverse=True)
    if first is not None and first in ordered:
        ordered.remove(first)
        ordered.insert(0, first)
    return ordered


def relative_eval(position: Position) -> int:
    """Static evaluation from the side to move's point of view."""
    score = static_eval(position)
    return score if position.side_to_move == WHITE else -score


def mate_distance(score: int) -> Optional[int]:
    """Convert a mate score into moves to mate (negative: side to move is mated)."""
    if abs(score) < MATE_SCORE - MATE_WINDOW:
        return None
    if score > 0:
        return (MATE_SCORE - score + 1) // 2
    return -((MATE_SCORE + score + 1) // 2)


class SearchService:
    """Negamax alpha-beta search with quiescence and iterative deepening.

    The position handed to :meth:`search` is explored with make/unmake and is
    restored before the call returns, including when the search is aborted.
    """

    def search(
        self,
        position: Position,
        depth: int = 1,
        movetime_ms: Optional[int] = None,
        *,
        stop_event: Optional[threading.Event] = None,
        on_iter: Optional[IterCallback] = None,
    ) -> SearchResult:
        if depth < 1:
            raise ValueError("depth must be >= 1")

        nodes = 0
        qnodes = 0
        start = time.perf_counter()
        deadline = start + movetime_ms / 1000 if movetime_ms is not None else None

        def check_abort() -> None:
            if stop_event is not None and stop_event.is_set():
                raise SearchAborted("stop requested")
            if deadline is not None and time.perf_counter() >= deadline:
                raise SearchAborted("out of time")

        def negamax(d: int, alpha: int, beta: int, ply: int) -> Tuple[int, List[Move]]:
            nonlocal nodes
            check_abort()

            # Depth horizon: switch to quiescence
            if d == 0:
                return quiesce(alpha, beta, ply)
            nodes += 1

            legal = legal_moves_for_side(position)
            if not legal:
                if in_check(position):
                    # Checkmated: distance-to-mate scores prefer quicker mates
                    return -MATE_SCORE + ply, []
                return DRAW_SCORE, []

            best_line: List[Move] = []
            for m in order_moves(legal):
                with position.applied(m):
                    child_score, child_pv = negamax(d - 1, -beta, -alpha, ply + 1)
                score = -child_score
                if score > alpha:
                    alpha = score
                    best_line = [m] + child_pv
                if alpha >= beta:
                    # Beta cutoff: remaining siblings cannot change the result
                    break
            return alpha, best_line

        def quiesce(alpha: int, beta: int, ply: int) -> Tuple[int, List[Move]]:
            nonlocal nodes, qnodes
            check_abort()
            nodes += 1
            qnodes += 1

            stand_pat = relative_eval(position)
            if stand_pat >= beta:
                return beta, []
            if stand_pat > alpha:
                alpha = stand_pat

            best_line: List[Move] = []
            for m in order_moves(legal_captures(position)):
                with position.applied(m):
                    child_score, child_pv = quiesce(-beta, -alpha, ply + 1)
                score = -child_score
                if score >= beta:
                    return beta, []
                if score > alpha:
                    alpha = score
                    best_line = [m] + child_pv
            return alpha, best_line

        def search_root(d: int, root_moves: List[Move]) -> Tuple[int, List[Move]]:
            alpha = -INF
            best_line: List[Move] = []
            for m in root_moves:
                with position.applied(m):
                    child_score, child_pv = negamax(d - 1, -INF, -alpha, 1)
                score = -child_score
                if score > alpha:
                    alpha = score
                    best_line = [m] + child_pv
            return alpha, best_line

        root_moves = legal_moves_for_side(position)
        if not root_moves:
            # Terminal root: report mate or stalemate without a move
            score = -MATE_SCORE if in_check(position) else DRAW_SCORE
            mate_in = mate_distance(score)
            return SearchResult(
                best_move=None,
                score_cp=score if mate_in is None else None,
                mate_in=mate_in,
                pv=[],
                nodes=1,
                qnodes=0,
                depth=0,
                time_ms=int((time.perf_counter() - start) * 1000),
            )

        last_score = 0
        last_pv: List[Move] = []
        completed_depth = 0
        aborted = False
        iters: List[Dict[str, int]] = []
        prev_nodes = 0
        prev_qnodes = 0

        # Iterative deepening from 1..depth; each completed depth replaces the result
        for d in range(1, depth + 1):
            iter_start = time.perf_counter()
            ordered = order_moves(root_moves, first=last_pv[0] if last_pv else None)
            try:
                score, pv = search_root(d, ordered)
            except SearchAborted as e:
                logger.debug("search aborted at depth %d: %s", d, e)
                aborted = True
                break
            last_score, last_pv, completed_depth = score, pv, d
            iters.append(
                {
                    "depth": d,
                    "score": score,
                    "time_ms": int((time.perf_counter() - iter_start) * 1000),
                    "nodes": nodes - prev_nodes,
                    "qnodes": qnodes - prev_qnodes,
                }
            )
            prev_nodes, prev_qnodes = nodes, qnodes
            logger.debug(
                "depth %d score %d nodes %d pv %s",
                d,
                score,
                nodes,
                " ".join(m.to_uci() for m in pv),
            )
            if on_iter is not None:
                mate_cb = mate_distance(score)
                try:
                    on_iter(
                        d,
                        int((time.perf_counter() - start) * 1000),
                        nodes,
                        score if mate_cb is None else None,
                        mate_cb,
                        pv,
                    )
                except Exception:
                    logger.exception("on_iter callback failed")
            if score >= MATE_SCORE - MATE_WINDOW:
                # Forced mate found; deeper iterations cannot improve on it
                break

        if last_pv:
            best_move: Optional[Move] = last_pv[0]
        else:
            # Not even depth 1 finished: fall back to the best-ordered legal move
            best_move = order_moves(root_moves)[0]

        mate_in = mate_distance(last_score) if completed_depth else None
        return SearchResult(
            best_move=best_move,
            score_cp=(last_score if mate_in is None else None) if completed_depth else None,
            mate_in=mate_in,
            pv=last_pv,
            nodes=nodes,
            qnodes=qnodes,
            depth=completed_depth,
            time_ms=int((time.perf_counter() - start) * 1000),
            aborted=aborted,
            iters=iters,
        )


def full_minimax(position: Position, depth: int) -> int:
    """Unpruned negamax over the same tree :class:`SearchService` explores.

    Every move is searched at every node and quiescence visits every capture,
    so the result is the exact minimax value. Used to validate pruning.
    """
    if depth < 1:
        raise ValueError("depth must be >= 1")

    def node(d: int, ply: int) -> int:
        if d == 0:
            return qnode()
        legal = legal_moves_for_side(position)
        if not legal:
            return -MATE_SCORE + ply if in_check(position) else DRAW_SCORE
        best = -INF
        for m in legal:
            with position.applied(m):
                best = max(best, -node(d - 1, ply + 1))
        return best

    def qnode() -> int:
        best = relative_eval(position)
        for m in legal_captures(position):
            with position.applied(m):
                best = max(best, -qnode())
        return best

    return node(depth, 0)
