"""
Static position evaluation.

The search needs a numeric score for every position it cannot search any
further. This module provides two scoring strategies behind one contract,
Evaluator(board) -> int, so they can be swapped per engine and compared
against each other:

- "material" (default): material, piece-square tables, a passed-pawn bonus
  and a king-exposure penalty.
- "centralization": material plus a bonus for keeping knights, bishops,
  rooks and queens near the centre, a penalty for being in check, and
  immediate selection of mating moves at the root.

Both strategies score from the perspective of the side to move. This is the
negamax convention: a positive score means the side to move is ahead, and
the search negates the score when it hands it back to the parent node.
"""

from dataclasses import dataclass
from typing import Callable

import chess

from chessbot.constants import (
    CENTRALIZATION_BASE,
    CENTRALIZED_PIECES,
    CHECK_PENALTY,
    KING_EXPOSED_PENALTY,
    PASSED_PAWN_BONUS,
    PIECE_SQUARE_TABLES,
    PIECE_VALUES,
)

# (file step, rank step) for the eight king lines: four orthogonal, four diagonal.
_DIRECTIONS: tuple[tuple[int, int], ...] = (
    (0, 1), (1, 1), (1, 0), (1, -1),
    (0, -1), (-1, -1), (-1, 0), (-1, 1),
)


def _material(piece_type: int) -> int:
    # Both kings are always on the board, so the king's value would cancel out.
    return 0 if piece_type == chess.KING else PIECE_VALUES[piece_type]


def _slides_along(piece_type: int, d_file: int, d_rank: int) -> bool:
    """True if a piece of this type attacks along the (d_file, d_rank) line."""
    if piece_type == chess.QUEEN:
        return True
    if piece_type == chess.ROOK:
        return d_file == 0 or d_rank == 0
    if piece_type == chess.BISHOP:
        return d_file != 0 and d_rank != 0
    return False


def is_passed_pawn(board: chess.Board, square: chess.Square, color: chess.Color) -> bool:
    """
    Return True if the pawn of `color` on `square` is passed.

    A pawn is passed when no enemy pawn stands anywhere ahead of it on its
    own file or the two adjacent files, and no friendly pawn stands ahead of
    it on its own file (the rear pawn of a doubled pair is not passed).

    Pawn chains are deliberately not considered: a lone passed pawn gets the
    same bonus as a supported one.

    Args:
        board:  Position to inspect. Not modified.
        square: Square of the pawn.
        color:  Colour of the pawn.
    """
    file = chess.square_file(square)
    rank = chess.square_rank(square)
    forward = 1 if color == chess.WHITE else -1
    last = 8 if color == chess.WHITE else -1

    for ahead in range(rank + forward, last, forward):
        for d_file in (-1, 0, 1):
            f = file + d_file
            if not 0 <= f < 8:
                continue
            piece = board.piece_at(chess.square(f, ahead))
            if piece is None or piece.piece_type != chess.PAWN:
                continue
            if piece.color != color:
                return False
            if d_file == 0:
                return False
    return True


def is_king_exposed(board: chess.Board, square: chess.Square, color: chess.Color) -> bool:
    """
    Return True if the king of `color` on `square` is exposed.

    The king is exposed when either:
        - one of its forward diagonal files (the files left and right of the
          king, whichever exist) has no friendly pawn within two ranks in
          front of the king, or
        - an enemy slider has an unobstructed line to the king: a queen along
          any of the eight lines, a rook along ranks and files, a bishop
          along diagonals.

    Args:
        board:  Position to inspect. Not modified.
        square: Square of the king.
        color:  Colour of the king.
    """
    file = chess.square_file(square)
    rank = chess.square_rank(square)
    forward = 1 if color == chess.WHITE else -1

    # Pawn shelter on both forward diagonals.
    for d_file in (-1, 1):
        f = file + d_file
        if not 0 <= f < 8:
            continue
        sheltered = False
        for step in (1, 2):
            r = rank + step * forward
            if not 0 <= r < 8:
                break
            piece = board.piece_at(chess.square(f, r))
            if piece is not None and piece.piece_type == chess.PAWN and piece.color == color:
                sheltered = True
                break
        if not sheltered:
            return True

    # Open lines: walk outwards until the first occupied square.
    for d_file, d_rank in _DIRECTIONS:
        f, r = file + d_file, rank + d_rank
        while 0 <= f < 8 and 0 <= r < 8:
            piece = board.piece_at(chess.square(f, r))
            if piece is not None:
                if piece.color != color and _slides_along(piece.piece_type, d_file, d_rank):
                    return True
                break
            f += d_file
            r += d_rank

    return False


def evaluate(board: chess.Board) -> int:
    """
    Composite centipawn evaluation from the side-to-move's perspective.

    Every piece contributes its material value plus its piece-square bonus.
    Pawns earn PASSED_PAWN_BONUS when passed; kings lose KING_EXPOSED_PENALTY
    when exposed. Pieces of the side to move count positive, the opponent's
    negative.

    Piece-square tables are written from each side's own point of view, so
    a black piece reads the table with its rank mirrored.

    Args:
        board: The position to score. Not modified.

    Returns:
        Centipawn score. Positive = side to move is ahead.

    Example:
        >>> import chess
        >>> evaluate(chess.Board())
        0
    """
    us = board.turn
    score = 0

    for sq, piece in board.piece_map().items():
        pt = piece.piece_type
        file = chess.square_file(sq)
        row = chess.square_rank(sq) if piece.color == chess.WHITE else 7 - chess.square_rank(sq)

        value = _material(pt) + PIECE_SQUARE_TABLES[pt][row][file]
        if pt == chess.PAWN and is_passed_pawn(board, sq, piece.color):
            value += PASSED_PAWN_BONUS
        elif pt == chess.KING and is_king_exposed(board, sq, piece.color):
            value -= KING_EXPOSED_PENALTY

        score += value if piece.color == us else -value

    return score


def centralization_bonus(square: chess.Square) -> int:
    """CENTRALIZATION_BASE minus the doubled Manhattan distance to the centre."""
    file = chess.square_file(square)
    rank = chess.square_rank(square)
    return CENTRALIZATION_BASE - (abs(2 * file - 7) + abs(2 * rank - 7))


def evaluate_centralization(board: chess.Board) -> int:
    """
    Material plus centralization, from the side-to-move's perspective.

    Knights, bishops, rooks and queens earn centralization_bonus() for their
    square. The side to move loses CHECK_PENALTY when it is in check.
    """
    us = board.turn
    score = 0

    for sq, piece in board.piece_map().items():
        value = _material(piece.piece_type)
        if piece.piece_type in CENTRALIZED_PIECES:
            value += centralization_bonus(sq)
        score += value if piece.color == us else -value

    if board.is_check():
        score -= CHECK_PENALTY

    return score


@dataclass(frozen=True)
class Evaluator:
    """
    A named evaluation strategy.

    Attributes:
        name:           Registry key, also the UCI/HTTP option value.
        score:          Position -> centipawns from the side-to-move's view.
        shortcut_mates: When True, the engine plays any mate-in-one it finds
                        at the root without running the search.
    """

    name: str
    score: Callable[[chess.Board], int]
    shortcut_mates: bool = False

    def __call__(self, board: chess.Board) -> int:
        return self.score(board)


MATERIAL = Evaluator("material", evaluate)
CENTRALIZATION = Evaluator("centralization", evaluate_centralization, shortcut_mates=True)

EVALUATORS: dict[str, Evaluator] = {e.name: e for e in (MATERIAL, CENTRALIZATION)}


def get_evaluator(name: str) -> Evaluator:
    """Look up an evaluation strategy by name; raises ValueError if unknown."""
    try:
        return EVALUATORS[name]
    except KeyError:
        raise ValueError(
            f"unknown evaluator {name!r}; expected one of {sorted(EVALUATORS)}"
        ) from None
