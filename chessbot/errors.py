"""
Exceptions raised by the search core.

Only NoLegalMoves ever leaves Engine.select_move(). The other two are
raised deep inside the recursion and recovered by the search itself.
"""


class SearchError(Exception):
    """Base class for search-core errors."""


class NoLegalMoves(SearchError):
    """The position has no legal moves (checkmate or stalemate).

    Callers are expected to detect finished games before asking for a move;
    reaching this is a caller bug, not a search failure.
    """

    def __init__(self, fen: str) -> None:
        super().__init__(f"no legal moves in position {fen}")
        self.fen = fen


class CacheCorruption(SearchError):
    """A cached entry does not belong to the position it was found for.

    Raised when the stored best move is illegal in the probed position, which
    means two positions share a fingerprint. Recovered by recomputing.
    """


class TimeBudgetExceeded(SearchError):
    """The search ran out of time or was asked to stop.

    Raised from inside the recursion so every pending move is unwound on
    the way out; Engine.select_move() catches it and falls back to the best
    move found so far.
    """
