"""
FastAPI application exposing the chessbot engine over HTTP.

Endpoints:
    POST /api/move    FEN + time budget in, engine move + resulting FEN out
    GET  /api/health  liveness probe with the available evaluators

Architecture notes:
- Sync endpoints: FastAPI runs sync handlers in a thread pool, which is the
  right place for a CPU-bound search.
- One Engine per evaluator strategy, created lazily and kept for the life of
  the process so their transposition tables stay warm between requests.
  Each engine is guarded by a lock because a table is not safe to share
  between concurrent searches.
- Stateless per request otherwise: the client sends the full FEN each time.
"""

import logging
import threading

import chess
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, field_validator

from chessbot.config import EngineConfig
from chessbot.errors import NoLegalMoves
from chessbot.evaluate import EVALUATORS
from chessbot.search import Engine

logging.basicConfig(level=logging.INFO)
_log = logging.getLogger(__name__)

MAX_REQUEST_DEPTH = 6

app = FastAPI(title="chessbot", version="1.0.0")

_engines: dict[str, tuple[Engine, threading.Lock]] = {}
_engines_lock = threading.Lock()


def _engine_for(evaluator: str) -> tuple[Engine, threading.Lock]:
    with _engines_lock:
        if evaluator not in _engines:
            _engines[evaluator] = (Engine(EngineConfig(evaluator=evaluator)), threading.Lock())
        return _engines[evaluator]


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class MoveRequest(BaseModel):
    """
    Client request to the engine.

    Fields:
        fen:        Full FEN of the current position.
        time_limit: Seconds allocated to the engine, clamped to [0.1, 30.0].
        depth:      Optional iterative-deepening limit, clamped to
                    [1, MAX_REQUEST_DEPTH]; the engine default otherwise.
        evaluator:  Evaluation strategy name.
    """

    fen: str
    time_limit: float = 1.0
    depth: int | None = None
    evaluator: str = "material"

    @field_validator("time_limit")
    @classmethod
    def clamp_time_limit(cls, v: float) -> float:
        return max(0.1, min(v, 30.0))

    @field_validator("depth")
    @classmethod
    def clamp_depth(cls, v: int | None) -> int | None:
        if v is None:
            return None
        return max(1, min(v, MAX_REQUEST_DEPTH))


class MoveResponse(BaseModel):
    """
    Engine reply.

    Fields:
        move:  Chosen move in UCI notation (e.g. "e2e4", "e7e8q").
        fen:   Position after the move.
        score: Centipawns from the engine's (side to move's) perspective.
        depth: Deepest completed iteration.
        nodes: Nodes searched.
    """

    move: str
    fen: str
    score: int
    depth: int
    nodes: int


class HealthResponse(BaseModel):
    status: str
    evaluators: list[str]


# ---------------------------------------------------------------------------
# API routes
# ---------------------------------------------------------------------------


@app.post("/api/move", response_model=MoveResponse)
def api_move(request: MoveRequest) -> MoveResponse:
    """
    Compute the engine's move for the given position.

    Raises:
        HTTPException 400: Malformed FEN, unknown evaluator, or the game is
                           already over.
        HTTPException 500: The search itself failed.
    """
    try:
        board = chess.Board(request.fen)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid FEN: {exc}") from exc

    if request.evaluator not in EVALUATORS:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown evaluator {request.evaluator!r}; expected one of {sorted(EVALUATORS)}",
        )

    if board.is_game_over():
        raise HTTPException(status_code=400, detail=f"Game is already over: {board.result()}")

    engine, lock = _engine_for(request.evaluator)
    time_limit_ms = int(request.time_limit * 1000)

    try:
        with lock:
            result = engine.select_move(board, time_limit_ms, max_depth=request.depth)
    except NoLegalMoves as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        _log.exception("Engine search failed for FEN=%s", request.fen)
        raise HTTPException(status_code=500, detail=f"Engine error: {exc}") from exc

    _log.info(
        "Move=%s score=%d depth=%d nodes=%d evaluator=%s fen=%s",
        result.move.uci(),
        result.score,
        result.depth,
        result.nodes,
        request.evaluator,
        request.fen[:40],
    )

    board.push(result.move)
    return MoveResponse(
        move=result.move.uci(),
        fen=board.fen(),
        score=result.score,
        depth=result.depth,
        nodes=result.nodes,
    )


@app.get("/api/health", response_model=HealthResponse)
def api_health() -> HealthResponse:
    return HealthResponse(status="ok", evaluators=sorted(EVALUATORS))
