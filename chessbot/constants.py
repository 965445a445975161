"""
Engine constants: piece values, evaluation weights, search parameters, and
table sizes.

All numeric constants used throughout the engine are defined here so that
the search and evaluation modules never introduce their own magic numbers.
Per-engine tunables (depth, hash size, evaluator choice) start from these
values and live in chessbot.config.EngineConfig.

Piece values follow the centipawn convention (1 pawn = 100 cp).
"""

import chess

# ---------------------------------------------------------------------------
# Piece values (centipawns)
# ---------------------------------------------------------------------------
# Knights and bishops are valued equally; the evaluation does not model the
# bishop pair.

PAWN_VALUE: int = 100
KNIGHT_VALUE: int = 300
BISHOP_VALUE: int = 300
ROOK_VALUE: int = 500
QUEEN_VALUE: int = 900
KING_VALUE: int = 20_000  # Excluded from material sums; used by move ordering

PIECE_VALUES: dict[int, int] = {
    chess.PAWN:   PAWN_VALUE,
    chess.KNIGHT: KNIGHT_VALUE,
    chess.BISHOP: BISHOP_VALUE,
    chess.ROOK:   ROOK_VALUE,
    chess.QUEEN:  QUEEN_VALUE,
    chess.KING:   KING_VALUE,
}

# ---------------------------------------------------------------------------
# Piece-square tables
# ---------------------------------------------------------------------------
# Row 0 is the piece's own back rank, row 7 the promotion rank; columns are
# files a..h. A black pawn on e7 therefore reads row 1, column 4, exactly
# like a white pawn on e2.
#
# Pawns are pushed towards the centre and forwards; central pawns that
# never left the second rank are penalised.

PAWN_TABLE: tuple[tuple[int, ...], ...] = (
    ( 0,  0,   0,   0,   0,   0,  0,  0),
    ( 5, 10,  10, -20, -20,  10, 10,  5),
    ( 5, -5, -10,   0,   0, -10, -5,  5),
    ( 0,  0,   0,  20,  20,   0,  0,  0),
    ( 5,  5,  10,  25,  25,  10,  5,  5),
    (10, 10,  20,  30,  30,  20, 10, 10),
    (50, 50,  50,  50,  50,  50, 50, 50),
    ( 0,  0,   0,   0,   0,   0,  0,  0),
)

ZERO_TABLE: tuple[tuple[int, ...], ...] = tuple((0,) * 8 for _ in range(8))

PIECE_SQUARE_TABLES: dict[int, tuple[tuple[int, ...], ...]] = {
    chess.PAWN:   PAWN_TABLE,
    chess.KNIGHT: ZERO_TABLE,
    chess.BISHOP: ZERO_TABLE,
    chess.ROOK:   ZERO_TABLE,
    chess.QUEEN:  ZERO_TABLE,
    chess.KING:   ZERO_TABLE,
}

# ---------------------------------------------------------------------------
# Positional heuristics
# ---------------------------------------------------------------------------

PASSED_PAWN_BONUS: int = 20
KING_EXPOSED_PENALTY: int = 50

# Centralization evaluator: bonus = CENTRALIZATION_BASE - doubled Manhattan
# distance from the centre point (between d4/e4/d5/e5). The doubled distance
# runs from 2 (central squares) to 14 (corners), so the bonus is 0..12.
CENTRALIZATION_BASE: int = 14
CENTRALIZED_PIECES: frozenset[int] = frozenset(
    {chess.KNIGHT, chess.BISHOP, chess.ROOK, chess.QUEEN}
)
CHECK_PENALTY: int = 50

# ---------------------------------------------------------------------------
# Special scores
# ---------------------------------------------------------------------------
# Mate scores are CHECKMATE_SCORE - ply, so anything above MATE_THRESHOLD is
# a forced mate. INFINITY bounds the root window and is never a real score.

CHECKMATE_SCORE: int = 99_999
MATE_THRESHOLD: int = CHECKMATE_SCORE - 1_000
DRAW_SCORE: int = 0
INFINITY: int = CHECKMATE_SCORE + 1

# ---------------------------------------------------------------------------
# Search parameters
# ---------------------------------------------------------------------------

# Iterative deepening runs depth 1..DEFAULT_MAX_DEPTH unless the caller or
# the time budget says otherwise.
DEFAULT_MAX_DEPTH: int = 3

# Extra plies of captures/checks/promotions searched past the horizon.
# When exhausted, quiescence returns the stand-pat score.
QUIESCENCE_MAX_DEPTH: int = 8

# How often (in nodes) the search reads the clock. The stop event itself is
# checked at every node.
TIME_CHECK_NODES: int = 1_024

# ---------------------------------------------------------------------------
# Transposition table
# ---------------------------------------------------------------------------

TT_SIZE: int = 1 << 18  # 262,144 slots
TT_EXACT: int = 0
TT_LOWERBOUND: int = 1  # Fail-high: true score >= stored score
TT_UPPERBOUND: int = 2  # Fail-low: true score <= stored score

REPLACE_ALWAYS: str = "always"
REPLACE_DEPTH: str = "depth"

# ---------------------------------------------------------------------------
# Time management
# ---------------------------------------------------------------------------
# Share of the time budget the engine may consume before it stops starting
# new work.
TIME_USAGE_FRACTION: float = 0.9
