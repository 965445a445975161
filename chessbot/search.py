"""
Move selection: iterative deepening over negamax alpha-beta search, with a
capped quiescence extension and a transposition table.

Call graph:
    Engine.select_move()          iterative deepening, time budget, fallbacks
      -> negamax()                alpha-beta over all legal moves
           -> TranspositionTable  read/write at every interior node
           -> quiescence()        forcing moves only, at depth 0
                -> Evaluator      static score (stand-pat)

Score convention:
    Every score is relative to the side to move at the node that produced
    it. A parent negates its child's score, so "maximizing" is always the
    side to move and the two halves of classic minimax collapse into one
    function.

Board discipline:
    The board is mutated in place. Every move is applied through the
    pushed() context manager, which pops it again on every exit path:
    normal return, beta cutoff, or a TimeBudgetExceeded raised deep in the
    tree. A search therefore always leaves the board as it found it.

Cancellation:
    The stop event is checked at every node and the clock every
    TIME_CHECK_NODES nodes. Either one raises TimeBudgetExceeded, which
    unwinds to select_move(); the move from the deepest completed iteration
    is returned.
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterable, Iterator, NamedTuple

import chess

from chessbot.config import EngineConfig
from chessbot.constants import (
    CHECKMATE_SCORE,
    DRAW_SCORE,
    INFINITY,
    MATE_THRESHOLD,
    PIECE_VALUES,
    TIME_CHECK_NODES,
    TT_EXACT,
    TT_LOWERBOUND,
    TT_UPPERBOUND,
)
from chessbot.errors import CacheCorruption, NoLegalMoves, TimeBudgetExceeded
from chessbot.evaluate import Evaluator, get_evaluator
from chessbot.transposition import TranspositionTable, fingerprint

_log = logging.getLogger(__name__)


@dataclass
class SearchState:
    """
    Mutable state for one call to Engine.select_move().

    Attributes:
        evaluator:      Static evaluation strategy.
        table:          The engine's transposition table (outlives the search).
        config:         Engine tunables (quiescence cap, move ordering, time use).
        stop_event:     Set by the caller to cancel, or by the search itself
                        when the time budget runs out.
        time_limit_ms:  Time budget in milliseconds.
        start_time:     Monotonic timestamp when the search began.
        node_count:     Alpha-beta plus quiescence nodes visited.
        qnode_count:    Quiescence nodes visited.
        max_qdepth:     Deepest quiescence extension reached (0 = horizon).
        root_best_move: Best root move seen so far in the running iteration.
                        Only used when the first iteration is interrupted.
        root_best_score: Score of root_best_move.
    """

    evaluator: Evaluator
    table: TranspositionTable
    config: EngineConfig = field(default_factory=EngineConfig)
    stop_event: threading.Event = field(default_factory=threading.Event)
    time_limit_ms: float = float("inf")
    start_time: float = field(default_factory=time.monotonic)
    node_count: int = 0
    qnode_count: int = 0
    max_qdepth: int = 0
    root_best_move: chess.Move | None = None
    root_best_score: int = 0


class SearchResult(NamedTuple):
    move: chess.Move
    score: int
    depth: int
    nodes: int


@contextmanager
def pushed(board: chess.Board, move: chess.Move) -> Iterator[None]:
    """Apply `move` for the duration of the block; always undo it on exit."""
    board.push(move)
    try:
        yield
    finally:
        board.pop()


def mate_in(score: int) -> int | None:
    """
    Convert a mate score to a UCI "mate N" value (full moves, signed).

    Returns None for ordinary centipawn scores.
    """
    if score > MATE_THRESHOLD:
        return (CHECKMATE_SCORE - score + 1) // 2
    if score < -MATE_THRESHOLD:
        return -((CHECKMATE_SCORE + score + 1) // 2)
    return None


def _out_of_time(state: SearchState) -> bool:
    elapsed_ms = (time.monotonic() - state.start_time) * 1000
    return elapsed_ms >= state.time_limit_ms * state.config.time_usage_fraction


def _tick(state: SearchState) -> None:
    """Count a node and raise TimeBudgetExceeded if the search must stop."""
    if state.stop_event.is_set():
        raise TimeBudgetExceeded("search stopped")
    state.node_count += 1
    if state.node_count % TIME_CHECK_NODES == 0 and _out_of_time(state):
        state.stop_event.set()
        raise TimeBudgetExceeded(f"time budget of {state.time_limit_ms:.0f} ms used up")


def _score_to_tt(score: int, ply: int) -> int:
    # Mate scores count plies from the root; the table stores them counted
    # from the node so they stay valid when the node is reached at another ply.
    if score > MATE_THRESHOLD:
        return score + ply
    if score < -MATE_THRESHOLD:
        return score - ply
    return score


def _score_from_tt(score: int, ply: int) -> int:
    if score > MATE_THRESHOLD:
        return score - ply
    if score < -MATE_THRESHOLD:
        return score + ply
    return score


def _order_moves(board: chess.Board, moves: Iterable[chess.Move]) -> list[chess.Move]:
    """
    Order moves with MVV-LVA: captures first, most valuable victim first,
    cheapest attacker first among equal victims. Quiet moves keep their
    generation order behind the captures (the sort is stable).

    Score formula:
        captures: 10_000 + victim_value - attacker_value
        quiet moves: 0
    """
    def _mvv_lva_score(move: chess.Move) -> int:
        if not board.is_capture(move):
            return 0
        attacker = board.piece_at(move.from_square)
        victim = board.piece_at(move.to_square)
        attacker_val = PIECE_VALUES.get(attacker.piece_type, 0) if attacker else 0
        # En passant: the captured pawn is not on move.to_square.
        victim_val = PIECE_VALUES.get(victim.piece_type, 0) if victim else PIECE_VALUES[chess.PAWN]
        return 10_000 + victim_val - attacker_val

    return sorted(moves, key=_mvv_lva_score, reverse=True)


def is_forcing(board: chess.Board, move: chess.Move) -> bool:
    """True for captures, pawn moves to the first or last rank, and checks."""
    if board.is_capture(move):
        return True
    piece = board.piece_at(move.from_square)
    if (
        piece is not None
        and piece.piece_type == chess.PAWN
        and chess.square_rank(move.to_square) in (0, 7)
    ):
        return True
    return board.gives_check(move)


def find_mate_in_one(
    board: chess.Board,
    moves: Iterable[chess.Move] | None = None,
) -> chess.Move | None:
    """Return the first move (in generation order) that checkmates, or None."""
    for move in list(board.legal_moves) if moves is None else moves:
        with pushed(board, move):
            if board.is_checkmate():
                return move
    return None


def quiescence(
    board: chess.Board,
    alpha: int,
    beta: int,
    ply: int,
    qdepth: int,
    state: SearchState,
) -> int:
    """
    Search forcing moves past the horizon until the position is quiet.

    Evaluating a position in the middle of an exchange misjudges it: the
    static score sees the piece just captured but not the recapture. This
    search keeps playing captures, checks and promotions until none are
    left, or until config.quiescence_depth extra plies have been played.

    Stand-pat: the side to move may decline every forcing move, so the
    static evaluation is a lower bound on the score. If it already reaches
    beta the opponent will never allow this position and we return at once.

    The search is fail-soft: it may return scores outside [alpha, beta].
    alpha only ever rises; the best score is tracked separately.

    Args:
        board:  Current position. Modified in place and restored.
        alpha:  Lower bound of the search window.
        beta:   Upper bound of the search window.
        ply:    Distance from the root, for mate scores.
        qdepth: Plies already searched past the horizon.
        state:  Search state.

    Returns:
        Score from the side-to-move's perspective.
    """
    _tick(state)
    state.qnode_count += 1
    if qdepth > state.max_qdepth:
        state.max_qdepth = qdepth

    moves = list(board.legal_moves)
    if not moves:
        return -(CHECKMATE_SCORE - ply) if board.is_check() else DRAW_SCORE

    stand_pat = state.evaluator(board)
    if stand_pat >= beta or qdepth >= state.config.quiescence_depth:
        return stand_pat

    best_score = stand_pat
    if stand_pat > alpha:
        alpha = stand_pat

    forcing = [m for m in moves if is_forcing(board, m)]
    if state.config.order_moves:
        forcing = _order_moves(board, forcing)

    for move in forcing:
        with pushed(board, move):
            score = -quiescence(board, -beta, -alpha, ply + 1, qdepth + 1, state)

        if score >= beta:
            return score
        if score > best_score:
            best_score = score
        if score > alpha:
            alpha = score

    return best_score


def negamax(
    board: chess.Board,
    depth: int,
    alpha: int,
    beta: int,
    ply: int,
    state: SearchState,
) -> tuple[int, chess.Move | None]:
    """
    Alpha-beta search to a fixed depth, with quiescence at the leaves.

    Moves are searched in generation order (MVV-LVA when config.order_moves
    is set). The best move only changes on a strictly better score, so among
    equal moves the first one searched wins.

    Args:
        board: Current position. Modified in place and restored.
        depth: Remaining depth in plies; 0 drops into quiescence.
        alpha: Lower bound of the search window.
        beta:  Upper bound of the search window.
        ply:   Distance from the root (0 at the root).
        state: Search state.

    Returns:
        (score, best_move). best_move is None for terminal and leaf nodes.
        Mates score CHECKMATE_SCORE - ply for the side delivering them, so
        faster mates score higher.
    """
    _tick(state)

    # Terminal: checkmate, stalemate, insufficient material, 75-move rule,
    # fivefold repetition. The root always has legal moves (select_move
    # checks) and is searched even if a draw rule already applies.
    if ply > 0 and board.is_game_over():
        if board.is_checkmate():
            return -(CHECKMATE_SCORE - ply), None
        return DRAW_SCORE, None

    if depth == 0:
        return quiescence(board, alpha, beta, ply, 0, state), None

    key = fingerprint(board)
    entry = state.table.probe(key, depth)
    if entry is not None:
        try:
            state.table.validate(entry, board)
        except CacheCorruption as exc:
            _log.warning("discarding cache entry: %s", exc)
            state.table.discard(key)
        else:
            score = _score_from_tt(entry.score, ply)
            if (
                entry.flag == TT_EXACT
                or (entry.flag == TT_LOWERBOUND and score >= beta)
                or (entry.flag == TT_UPPERBOUND and score <= alpha)
            ):
                if ply == 0:
                    state.root_best_move = entry.best_move
                    state.root_best_score = score
                return score, entry.best_move

    alpha_orig = alpha
    best_score = -INFINITY
    best_move = None

    moves = list(board.legal_moves)
    if state.config.order_moves:
        moves = _order_moves(board, moves)

    for move in moves:
        with pushed(board, move):
            child_score, _ = negamax(board, depth - 1, -beta, -alpha, ply + 1, state)
        score = -child_score

        if score > best_score:
            best_score = score
            best_move = move
            if ply == 0:
                state.root_best_move = move
                state.root_best_score = score

        if best_score > alpha:
            alpha = best_score

        if alpha >= beta:
            break

    if best_score <= alpha_orig:
        flag = TT_UPPERBOUND
    elif best_score >= beta:
        flag = TT_LOWERBOUND
    else:
        flag = TT_EXACT
    state.table.store(key, depth, _score_to_tt(best_score, ply), flag, best_move)

    return best_score, best_move


class Engine:
    """
    A move-selecting agent: configuration, evaluator and transposition table.

    The table lives as long as the engine, so positions searched for one move
    are still cached when the next move is requested. new_game() clears it.

    Example:
        >>> import chess
        >>> engine = Engine()
        >>> result = engine.select_move(chess.Board(), time_limit_ms=5_000)
        >>> result.move in chess.Board().legal_moves
        True
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()
        self.evaluator = get_evaluator(self.config.evaluator)
        self.table = TranspositionTable(self.config.hash_size, self.config.replacement)

    def configure(self, config: EngineConfig) -> None:
        """
        Switch to a new configuration.

        The table is rebuilt when its size or replacement policy changes,
        and emptied when the evaluator or quiescence depth changes, since
        stored scores depend on both. Raises ValueError for an unknown
        evaluator, leaving the engine unchanged.
        """
        evaluator = get_evaluator(config.evaluator)
        if (config.hash_size, config.replacement) != (self.config.hash_size, self.config.replacement):
            self.table = TranspositionTable(config.hash_size, config.replacement)
        elif (config.evaluator, config.quiescence_depth) != (
            self.config.evaluator,
            self.config.quiescence_depth,
        ):
            self.table.clear()
        self.config = config
        self.evaluator = evaluator

    def new_game(self) -> None:
        self.table.clear()

    def make_state(
        self,
        time_limit_ms: float = float("inf"),
        stop_event: threading.Event | None = None,
    ) -> SearchState:
        return SearchState(
            evaluator=self.evaluator,
            table=self.table,
            config=self.config,
            stop_event=stop_event if stop_event is not None else threading.Event(),
            time_limit_ms=float(time_limit_ms),
            start_time=time.monotonic(),
        )

    def search(
        self,
        board: chess.Board,
        depth: int,
        alpha: int = -INFINITY,
        beta: int = INFINITY,
        state: SearchState | None = None,
    ) -> tuple[int, chess.Move | None]:
        """Run one fixed-depth alpha-beta search from `board` (no time limit by default)."""
        if state is None:
            state = self.make_state()
        return negamax(board, depth, alpha, beta, 0, state)

    def select_move(
        self,
        board: chess.Board,
        time_limit_ms: float = float("inf"),
        stop_event: threading.Event | None = None,
        max_depth: int | None = None,
    ) -> SearchResult:
        """
        Return the best move for the side to move.

        Searches depth 1, 2, ... max_depth (config.max_depth by default),
        keeping the best move of each completed iteration. An iteration cut
        short by the time budget or the stop event is discarded. If not even
        the first iteration completes, the best root move it had seen is
        used, and failing that the first legal move.

        Args:
            board:         Position to move from. Restored before returning.
            time_limit_ms: Time budget in milliseconds.
            stop_event:    Optional event; setting it ends the search early.
            max_depth:     Override for config.max_depth.

        Returns:
            SearchResult(move, score, depth, nodes). depth is the deepest
            completed iteration (0 if none completed); score is relative to
            the side to move.

        Raises:
            NoLegalMoves: The side to move is checkmated or stalemated.
        """
        legal_moves = list(board.legal_moves)
        if not legal_moves:
            raise NoLegalMoves(board.fen())

        state = self.make_state(time_limit_ms, stop_event)

        if self.evaluator.shortcut_mates:
            mate = find_mate_in_one(board, legal_moves)
            if mate is not None:
                _log.debug("mate in one: %s", mate.uci())
                return SearchResult(mate, CHECKMATE_SCORE - 1, 1, state.node_count)

        max_depth = max_depth or self.config.max_depth
        best_move: chess.Move | None = None
        best_score = 0
        completed_depth = 0

        for depth in range(1, max_depth + 1):
            if state.stop_event.is_set() or _out_of_time(state):
                break
            try:
                score, move = negamax(board, depth, -INFINITY, INFINITY, 0, state)
            except TimeBudgetExceeded as exc:
                _log.debug("depth %d abandoned: %s", depth, exc)
                break

            best_move, best_score, completed_depth = move, score, depth
            _log.debug(
                "depth %d: best %s score %d nodes %d",
                depth, move.uci() if move else None, score, state.node_count,
            )

        if best_move is None:
            if state.root_best_move is not None:
                best_move, best_score = state.root_best_move, state.root_best_score
            else:
                best_move, best_score = legal_moves[0], 0
            _log.info("no iteration completed; falling back to %s", best_move.uci())

        return SearchResult(best_move, best_score, completed_depth, state.node_count)
