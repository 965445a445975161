"""
Per-engine configuration.

constants.py holds the fixed tuning values; EngineConfig holds the knobs a
front-end may change at runtime (UCI setoption, HTTP request fields). The
defaults come straight from constants.py.
"""

from dataclasses import dataclass, replace

from chessbot.constants import (
    DEFAULT_MAX_DEPTH,
    QUIESCENCE_MAX_DEPTH,
    REPLACE_ALWAYS,
    REPLACE_DEPTH,
    TIME_USAGE_FRACTION,
    TT_SIZE,
)

# UCI option name -> (EngineConfig field, parser)
_OPTIONS = {
    "depth": ("max_depth", int),
    "quiescencedepth": ("quiescence_depth", int),
    "hash": ("hash_size", int),
    "replacement": ("replacement", str),
    "evaluator": ("evaluator", str),
    "ordermoves": ("order_moves", lambda v: v.strip().lower() in ("true", "1", "yes", "on")),
}


@dataclass(frozen=True)
class EngineConfig:
    """
    Tunables for one Engine instance.

    Attributes:
        max_depth:          Deepest iterative-deepening iteration.
        quiescence_depth:   Extra plies of forcing moves past the horizon.
        hash_size:          Number of transposition-table slots.
        replacement:        Table replacement policy, "always" or "depth".
        evaluator:          Name of the evaluation strategy (see
                            chessbot.evaluate.EVALUATORS).
        order_moves:        Search captures first (MVV-LVA). Off by default so
                            equal-scoring moves are chosen in generation order.
        time_usage_fraction: Share of the time budget the search may use.
    """

    max_depth: int = DEFAULT_MAX_DEPTH
    quiescence_depth: int = QUIESCENCE_MAX_DEPTH
    hash_size: int = TT_SIZE
    replacement: str = REPLACE_ALWAYS
    evaluator: str = "material"
    order_moves: bool = False
    time_usage_fraction: float = TIME_USAGE_FRACTION

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {self.max_depth}")
        if self.quiescence_depth < 0:
            raise ValueError(f"quiescence_depth must be >= 0, got {self.quiescence_depth}")
        if self.hash_size < 1:
            raise ValueError(f"hash_size must be >= 1, got {self.hash_size}")
        if self.replacement not in (REPLACE_ALWAYS, REPLACE_DEPTH):
            raise ValueError(f"unknown replacement policy: {self.replacement!r}")

    def with_option(self, name: str, value: str) -> "EngineConfig":
        """
        Return a copy with one option changed, using UCI option names.

        Option names are matched case-insensitively and without spaces, so
        "Quiescence Depth" and "QuiescenceDepth" are the same option.

        Raises:
            KeyError:   Unknown option name.
            ValueError: The value does not parse or fails validation.
        """
        key = name.replace(" ", "").lower()
        if key not in _OPTIONS:
            raise KeyError(name)
        field_name, parse = _OPTIONS[key]
        return replace(self, **{field_name: parse(value)})
