import chess
import pytest

from chessbot.config import EngineConfig
from chessbot.constants import DEFAULT_MAX_DEPTH, QUIESCENCE_MAX_DEPTH, REPLACE_DEPTH, TT_SIZE
from chessbot.search import Engine


class TestEngineConfig:
    def test_defaults(self):
        config = EngineConfig()
        assert config.max_depth == DEFAULT_MAX_DEPTH
        assert config.quiescence_depth == QUIESCENCE_MAX_DEPTH
        assert config.hash_size == TT_SIZE
        assert config.evaluator == "material"
        assert config.order_moves is False

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_depth": 0},
            {"quiescence_depth": -1},
            {"hash_size": 0},
            {"replacement": "lru"},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            EngineConfig(**kwargs)

    def test_with_option_returns_copy(self):
        config = EngineConfig()
        changed = config.with_option("Depth", "5")
        assert changed.max_depth == 5
        assert config.max_depth == DEFAULT_MAX_DEPTH

    @pytest.mark.parametrize("name", ["QuiescenceDepth", "Quiescence Depth", "quiescencedepth"])
    def test_option_names_ignore_case_and_spaces(self, name):
        assert EngineConfig().with_option(name, "2").quiescence_depth == 2

    @pytest.mark.parametrize("value, expected", [("true", True), ("ON", True), ("1", True), ("false", False)])
    def test_order_moves_flag(self, value, expected):
        assert EngineConfig().with_option("OrderMoves", value).order_moves is expected

    def test_replacement_option(self):
        assert EngineConfig().with_option("Replacement", "depth").replacement == REPLACE_DEPTH

    def test_unknown_option(self):
        with pytest.raises(KeyError):
            EngineConfig().with_option("Threads", "4")

    @pytest.mark.parametrize("name, value", [("Depth", "deep"), ("Depth", "0"), ("Replacement", "lru")])
    def test_bad_option_value(self, name, value):
        with pytest.raises(ValueError):
            EngineConfig().with_option(name, value)


class TestEngineConfigure:
    def test_evaluator_switch(self):
        engine = Engine()
        engine.configure(EngineConfig(evaluator="centralization"))
        assert engine.evaluator.name == "centralization"

    def test_unknown_evaluator_leaves_engine_unchanged(self):
        engine = Engine()
        before = engine.config
        with pytest.raises(ValueError):
            engine.configure(EngineConfig(evaluator="nnue"))
        assert engine.config is before
        assert engine.evaluator.name == "material"

    def test_table_rebuilt_on_size_change(self):
        engine = Engine(EngineConfig(hash_size=64))
        engine.table.store(1, 1, 0, 0, None)
        engine.configure(EngineConfig(hash_size=128))
        assert engine.table.size == 128
        assert len(engine.table) == 0

    def test_table_kept_when_only_depth_changes(self):
        engine = Engine(EngineConfig(hash_size=64))
        table = engine.table
        table.store(1, 1, 0, 0, None)
        engine.configure(EngineConfig(hash_size=64, max_depth=5))
        assert engine.table is table
        assert len(engine.table) == 1

    def test_evaluator_switch_discards_cached_scores(self):
        italian = chess.Board("r1bqkbnr/pppp1ppp/2n5/4p3/2B1P3/5N2/PPPP1PPP/RNBQK2R b KQkq - 3 3")
        engine = Engine()
        engine.search(italian, 2)
        assert len(engine.table) > 0
        engine.configure(EngineConfig(evaluator="centralization"))
        assert len(engine.table) == 0
        fresh = Engine(EngineConfig(evaluator="centralization"))
        assert engine.search(italian, 2) == fresh.search(italian, 2)

    def test_quiescence_depth_change_discards_cached_scores(self):
        board = chess.Board("r1bqkbnr/pppp1ppp/2n5/4p3/2B1P3/5N2/PPPP1PPP/RNBQK2R b KQkq - 3 3")
        engine = Engine()
        engine.search(board, 2)
        engine.configure(EngineConfig(quiescence_depth=0))
        assert len(engine.table) == 0
        fresh = Engine(EngineConfig(quiescence_depth=0))
        assert engine.search(board, 2) == fresh.search(board, 2)
