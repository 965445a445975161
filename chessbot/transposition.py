"""
Transposition table: a bounded cache of search results.

The same position is often reached through different move orders
(1.e4 e5 2.Nf3 and 1.Nf3 e5 2.e4 transpose). Caching the result of a search
lets the engine skip re-searching those positions.

Keys are (Zobrist fingerprint, remaining depth): a result computed for a
3-ply search is never handed back for a 4-ply query, and the reverse. The
table has a fixed number of slots indexed by fingerprint, so memory stays
bounded no matter how long the engine runs; when two positions map to the
same slot the replacement policy decides which one stays.

Scores are stored together with a bound flag, because alpha-beta only
computes an exact score when the result fell inside the search window:
    TT_EXACT       the stored score is the true score
    TT_LOWERBOUND  the search failed high; the true score is >= stored
    TT_UPPERBOUND  the search failed low; the true score is <= stored
"""

from dataclasses import dataclass

import chess
import chess.polyglot

from chessbot.constants import REPLACE_ALWAYS, REPLACE_DEPTH, TT_SIZE
from chessbot.errors import CacheCorruption


def fingerprint(board: chess.Board) -> int:
    """64-bit polyglot Zobrist hash of the position (pieces, turn, castling, en passant)."""
    return chess.polyglot.zobrist_hash(board)


@dataclass(frozen=True)
class TTEntry:
    key: int
    depth: int
    score: int
    flag: int
    best_move: chess.Move | None


class TranspositionTable:
    """
    Fixed-size slot table of TTEntry objects.

    Attributes:
        size:        Number of slots.
        replacement: "always" overwrites the slot on every store; "depth"
                     keeps an existing entry for a different position when
                     it was searched deeper than the new one.
        hits:        Probes that returned an entry.
        misses:      Probes that found nothing usable.
        collisions:  Probes that found a different position or depth in the
                     slot (counted as misses too).
    """

    def __init__(self, size: int = TT_SIZE, replacement: str = REPLACE_ALWAYS) -> None:
        if size < 1:
            raise ValueError(f"table size must be >= 1, got {size}")
        if replacement not in (REPLACE_ALWAYS, REPLACE_DEPTH):
            raise ValueError(f"unknown replacement policy: {replacement!r}")
        self.size = size
        self.replacement = replacement
        self._slots: list[TTEntry | None] = [None] * size
        self._used = 0
        self.hits = 0
        self.misses = 0
        self.collisions = 0

    def __len__(self) -> int:
        return self._used

    def probe(self, key: int, depth: int) -> TTEntry | None:
        """Return the entry stored for exactly (key, depth), or None."""
        entry = self._slots[key % self.size]
        if entry is None:
            self.misses += 1
            return None
        if entry.key != key or entry.depth != depth:
            self.collisions += 1
            self.misses += 1
            return None
        self.hits += 1
        return entry

    def store(
        self,
        key: int,
        depth: int,
        score: int,
        flag: int,
        best_move: chess.Move | None,
    ) -> None:
        """Write a search result, subject to the replacement policy."""
        index = key % self.size
        current = self._slots[index]
        if current is None:
            self._used += 1
        elif (
            self.replacement == REPLACE_DEPTH
            and current.key != key
            and current.depth > depth
        ):
            return
        self._slots[index] = TTEntry(key, depth, score, flag, best_move)

    def discard(self, key: int) -> None:
        """Drop the slot holding `key`, if it still does."""
        index = key % self.size
        entry = self._slots[index]
        if entry is not None and entry.key == key:
            self._slots[index] = None
            self._used -= 1

    def clear(self) -> None:
        """Forget every entry and reset the counters (new game)."""
        self._slots = [None] * self.size
        self._used = 0
        self.hits = 0
        self.misses = 0
        self.collisions = 0

    @staticmethod
    def validate(entry: TTEntry, board: chess.Board) -> None:
        """
        Check that `entry` can belong to `board`.

        Zobrist hashes are 64-bit, so two different positions sharing one is
        rare but possible. The stored best move is the cheap witness: if it is
        not legal here, the entry was written for another position.

        Raises:
            CacheCorruption: The entry's best move is illegal in `board`.
        """
        if entry.best_move is not None and not board.is_legal(entry.best_move):
            raise CacheCorruption(
                f"cached move {entry.best_move.uci()} is illegal in {board.fen()}"
            )
