import threading

import chess
import pytest

from chessbot.config import EngineConfig
from chessbot.constants import CHECKMATE_SCORE, DRAW_SCORE, INFINITY, TT_EXACT
from chessbot.errors import NoLegalMoves
from chessbot.evaluate import Evaluator, evaluate
from chessbot.search import (
    Engine,
    find_mate_in_one,
    is_forcing,
    mate_in,
    pushed,
    quiescence,
)
from chessbot.transposition import fingerprint

ITALIAN = "r1bqkb1r/pppp1ppp/2n2n2/4p3/2B1P3/5N2/PPPP1PPP/RNBQK2R w KQkq - 4 4"
BACK_RANK_MATE = "6k1/5ppp/8/8/8/8/8/R5K1 w - - 0 1"
ROOK_MATE_IN_TWO = "7k/R7/5K2/8/8/8/8/8 w - - 0 1"
FOOLS_MATE = "rnb1kbnr/pppp1ppp/8/4p3/6Pq/5P2/PPPPP2P/RNBQKBNR w KQkq - 1 3"
STALEMATE = "7k/5Q2/6K1/8/8/8/8/8 b - - 0 1"
HANGING_QUEEN = "4k3/8/8/3q4/4P3/8/8/4K3 w - - 0 1"
MUTUAL_QUEENS = "q3k3/8/8/8/8/8/8/3QK2R w K - 0 1"


def minimax(board, depth, ply, state):
    """Unpruned reference search with the same leaf and terminal rules."""
    if ply > 0 and board.is_game_over():
        return -(CHECKMATE_SCORE - ply) if board.is_checkmate() else DRAW_SCORE
    if depth == 0:
        return quiescence(board, -INFINITY, INFINITY, ply, 0, state)
    best = -INFINITY
    for move in list(board.legal_moves):
        with pushed(board, move):
            score = -minimax(board, depth - 1, ply + 1, state)
        best = max(best, score)
    return best


def forces_mate_in_two(board, move):
    """True if every reply to `move` allows a mate in one."""
    with pushed(board, move):
        replies = list(board.legal_moves)
        if not replies:
            return False
        for reply in replies:
            with pushed(board, reply):
                if find_mate_in_one(board) is None:
                    return False
    return True


def _stopping_evaluator(stop_event, after):
    calls = {"n": 0}

    def score(board):
        calls["n"] += 1
        if calls["n"] >= after:
            stop_event.set()
        return evaluate(board)

    return Evaluator("stopping", score)


# ════════════════════════════════════════════════════════════════════════════
#  HELPERS
# ════════════════════════════════════════════════════════════════════════════

class TestHelpers:
    def test_pushed_restores_board(self):
        b = chess.Board()
        with pushed(b, chess.Move.from_uci("e2e4")):
            assert b.piece_at(chess.E4) is not None
        assert b.fen() == chess.STARTING_FEN

    def test_pushed_restores_board_on_error(self):
        b = chess.Board()
        with pytest.raises(RuntimeError):
            with pushed(b, chess.Move.from_uci("e2e4")):
                raise RuntimeError("boom")
        assert b.fen() == chess.STARTING_FEN

    def test_is_forcing(self):
        b = chess.Board("4k3/P7/8/3p4/4P3/8/8/4K2R w - - 0 1")
        assert is_forcing(b, chess.Move.from_uci("e4d5"))   # capture
        assert is_forcing(b, chess.Move.from_uci("a7a8q"))  # promotion
        assert is_forcing(b, chess.Move.from_uci("h1h8"))   # check
        assert not is_forcing(b, chess.Move.from_uci("e1d2"))

    def test_find_mate_in_one(self):
        b = chess.Board(BACK_RANK_MATE)
        assert find_mate_in_one(b) == chess.Move.from_uci("a1a8")
        assert b.fen() == BACK_RANK_MATE
        assert find_mate_in_one(chess.Board()) is None

    @pytest.mark.parametrize(
        "score, expected",
        [
            (CHECKMATE_SCORE - 1, 1),
            (CHECKMATE_SCORE - 3, 2),
            (-(CHECKMATE_SCORE - 2), -1),
            (-(CHECKMATE_SCORE - 4), -2),
            (150, None),
            (-150, None),
        ],
    )
    def test_mate_in(self, score, expected):
        assert mate_in(score) == expected


# ════════════════════════════════════════════════════════════════════════════
#  QUIESCENCE
# ════════════════════════════════════════════════════════════════════════════

class TestQuiescence:
    def test_quiet_position_returns_stand_pat(self):
        b = chess.Board()
        state = Engine().make_state()
        assert quiescence(b, -INFINITY, INFINITY, 0, 0, state) == evaluate(b)

    def test_sees_winning_capture(self):
        b = chess.Board(HANGING_QUEEN)
        state = Engine().make_state()
        assert quiescence(b, -INFINITY, INFINITY, 0, 0, state) > evaluate(b) + 500
        assert b.fen() == HANGING_QUEEN

    def test_zero_cap_falls_back_to_stand_pat(self):
        b = chess.Board(HANGING_QUEEN)
        state = Engine(EngineConfig(quiescence_depth=0)).make_state()
        assert quiescence(b, -INFINITY, INFINITY, 0, 0, state) == evaluate(b)
        assert state.max_qdepth == 0

    def test_stand_pat_cutoff(self):
        b = chess.Board(HANGING_QUEEN)
        state = Engine().make_state()
        stand_pat = evaluate(b)
        assert quiescence(b, stand_pat - 10, stand_pat, 0, 0, state) == stand_pat
        assert state.qnode_count == 1

    @pytest.mark.parametrize("cap", [1, 2, 4])
    def test_depth_cap_bounds_forcing_lines(self, cap):
        b = chess.Board(MUTUAL_QUEENS)
        state = Engine(EngineConfig(quiescence_depth=cap)).make_state()
        quiescence(b, -INFINITY, INFINITY, 0, 0, state)
        assert state.max_qdepth <= cap
        assert b.fen() == MUTUAL_QUEENS

    def test_mate_inside_quiescence(self):
        b = chess.Board(FOOLS_MATE)
        state = Engine().make_state()
        assert quiescence(b, -INFINITY, INFINITY, 3, 0, state) == -(CHECKMATE_SCORE - 3)

    def test_stalemate_inside_quiescence(self):
        b = chess.Board(STALEMATE)
        state = Engine().make_state()
        assert quiescence(b, -INFINITY, INFINITY, 0, 0, state) == DRAW_SCORE


# ════════════════════════════════════════════════════════════════════════════
#  ALPHA-BETA
# ════════════════════════════════════════════════════════════════════════════

class TestAlphaBeta:
    @pytest.mark.parametrize(
        "fen, depth",
        [
            (chess.STARTING_FEN, 2),
            (ITALIAN, 2),
            (HANGING_QUEEN, 3),
            (ROOK_MATE_IN_TWO, 3),
        ],
    )
    @pytest.mark.parametrize("order_moves", [False, True])
    def test_matches_unpruned_minimax(self, fen, depth, order_moves):
        config = EngineConfig(quiescence_depth=4, order_moves=order_moves)
        pruned_score, move = Engine(config).search(chess.Board(fen), depth)

        reference = Engine(config)
        expected = minimax(chess.Board(fen), depth, 0, reference.make_state())

        assert pruned_score == expected
        assert move in chess.Board(fen).legal_moves

    def test_board_restored(self):
        b = chess.Board(ITALIAN)
        Engine().search(b, 2)
        assert b.fen() == ITALIAN

    def test_results_are_cached(self):
        engine = Engine()
        b = chess.Board(ITALIAN)
        first = engine.search(b, 2)
        assert len(engine.table) > 0
        entry = engine.table.probe(fingerprint(b), 2)
        assert entry is not None and entry.flag == TT_EXACT
        assert engine.search(b, 2) == first

    def test_corrupt_cache_entry_is_recomputed(self):
        engine = Engine()
        b = chess.Board()
        bogus = chess.Move.from_uci("e2e5")
        engine.table.store(fingerprint(b), 1, 12_345, TT_EXACT, bogus)

        score, move = engine.search(b, 1)

        assert move in b.legal_moves
        assert score != 12_345
        assert engine.table.probe(fingerprint(b), 1).best_move == move

    def test_cache_is_depth_aware(self):
        engine = Engine()
        b = chess.Board(HANGING_QUEEN)
        engine.table.store(fingerprint(b), 1, 777, TT_EXACT, chess.Move.from_uci("e1d1"))
        score, _ = engine.search(b, 2)
        assert score != 777

    def test_mate_score_prefers_faster_mate(self):
        score, move = Engine().search(chess.Board(BACK_RANK_MATE), 3)
        assert move == chess.Move.from_uci("a1a8")
        assert score == CHECKMATE_SCORE - 1


# ════════════════════════════════════════════════════════════════════════════
#  SEARCH CONTROLLER
# ════════════════════════════════════════════════════════════════════════════

class TestSelectMove:
    @pytest.mark.parametrize(
        "fen",
        [chess.STARTING_FEN, ITALIAN, HANGING_QUEEN, ROOK_MATE_IN_TWO, MUTUAL_QUEENS],
    )
    def test_returns_legal_move(self, fen):
        b = chess.Board(fen)
        result = Engine().select_move(b, max_depth=2)
        assert result.move in b.legal_moves
        assert result.depth == 2
        assert b.fen() == fen

    def test_starting_position_depth_one_picks_first_best(self):
        b = chess.Board()
        scores = []
        moves = list(b.legal_moves)
        for move in moves:
            with pushed(b, move):
                scores.append(-evaluate(b))
        best = max(scores)

        result = Engine().select_move(b, max_depth=1)

        assert result.move == moves[scores.index(best)]
        assert result.score == best

    @pytest.mark.parametrize("evaluator", ["material", "centralization"])
    def test_plays_mate_in_one(self, evaluator):
        b = chess.Board(BACK_RANK_MATE)
        result = Engine(EngineConfig(evaluator=evaluator)).select_move(b)
        assert result.move == chess.Move.from_uci("a1a8")
        assert mate_in(result.score) == 1

    def test_mate_shortcut_skips_search(self):
        result = Engine(EngineConfig(evaluator="centralization")).select_move(
            chess.Board(BACK_RANK_MATE)
        )
        assert result.nodes == 0
        assert result.depth == 1

    def test_prefers_mate_over_material(self):
        # Nxh5 wins the queen, but Ra8 mates.
        fen = "6k1/5ppp/8/7q/8/6N1/8/R5K1 w - - 0 1"
        result = Engine().select_move(chess.Board(fen), max_depth=2)
        assert result.move == chess.Move.from_uci("a1a8")
        assert mate_in(result.score) == 1

    def test_finds_mate_in_two(self):
        b = chess.Board(ROOK_MATE_IN_TWO)
        assert find_mate_in_one(b) is None
        result = Engine().select_move(b, max_depth=3)
        assert forces_mate_in_two(b, result.move)
        assert mate_in(result.score) == 2

    def test_checkmated_side_raises(self):
        with pytest.raises(NoLegalMoves):
            Engine().select_move(chess.Board(FOOLS_MATE))

    def test_stalemated_side_raises(self):
        with pytest.raises(NoLegalMoves) as excinfo:
            Engine().select_move(chess.Board(STALEMATE))
        assert excinfo.value.fen == STALEMATE

    def test_cache_survives_between_moves(self):
        engine = Engine()
        b = chess.Board(ITALIAN)
        engine.select_move(b, max_depth=2)
        hits_before = engine.table.hits
        engine.select_move(b, max_depth=2)
        assert engine.table.hits > hits_before

    def test_new_game_clears_cache(self):
        engine = Engine()
        engine.select_move(chess.Board(ITALIAN), max_depth=2)
        engine.new_game()
        assert len(engine.table) == 0


class TestCancellation:
    def test_preset_stop_event_returns_first_legal_move(self):
        b = chess.Board(ITALIAN)
        stop = threading.Event()
        stop.set()
        result = Engine().select_move(b, stop_event=stop)
        assert result.move == next(iter(b.legal_moves))
        assert result.depth == 0

    def test_zero_budget_returns_legal_move(self):
        b = chess.Board(ITALIAN)
        result = Engine().select_move(b, time_limit_ms=0)
        assert result.move in b.legal_moves
        assert result.depth == 0

    def test_stop_mid_search_unwinds_board(self):
        b = chess.Board(ITALIAN)
        stop = threading.Event()
        engine = Engine()
        engine.evaluator = _stopping_evaluator(stop, after=400)

        result = engine.select_move(b, stop_event=stop, max_depth=4)

        assert stop.is_set()
        assert result.depth < 4
        assert result.move in b.legal_moves
        assert b.fen() == ITALIAN

    def test_stop_during_first_iteration_still_returns_legal_move(self):
        b = chess.Board(HANGING_QUEEN)
        stop = threading.Event()
        engine = Engine()
        engine.evaluator = _stopping_evaluator(stop, after=3)

        result = engine.select_move(b, stop_event=stop, max_depth=1)

        assert result.depth == 0
        assert result.move in b.legal_moves
        assert b.fen() == HANGING_QUEEN
