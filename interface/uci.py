"""
UCI (Universal Chess Interface) protocol handler.

UCI is the text protocol chess GUIs and testing tools (cutechess-cli,
fastchess) use to drive engines. The engine reads commands from stdin and
writes responses to stdout, flushing every line.

Protocol overview:
    GUI → Engine: uci, isready, ucinewgame, setoption, position, go, stop, quit
    Engine → GUI: id, option, uciok, readyok, info, bestmove

Threading model:
    The UCI loop runs on the main thread and never blocks on the search.
    "go" starts the search on a daemon thread with its own copy of the
    board; "stop" sets the shared threading.Event and joins the thread.

stdout carries protocol lines only. Diagnostics go to stderr.
"""

import sys
import os
import threading
import time

# Make 'chessbot' importable when this script is run directly from a checkout
# (python interface/uci.py) rather than as an installed package.
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _REPO_ROOT not in sys.path:
    sys.path.insert(0, _REPO_ROOT)

import chess

from chessbot.constants import QUIESCENCE_MAX_DEPTH, TT_SIZE
from chessbot.errors import NoLegalMoves
from chessbot.evaluate import EVALUATORS
from chessbot.search import Engine, mate_in

ENGINE_NAME = "chessbot"
ENGINE_AUTHOR = "chessbot developers"

# Bare "go": no clock, so the time budget is effectively unlimited.
INFINITE_TIME_MS = 10_000_000

# Upper bound of the Depth option; "go infinite" iterates this deep.
MAX_DEPTH = 64


def _send(line: str) -> None:
    """Write one protocol line to stdout and flush it."""
    print(line, flush=True)


def _log(message: str) -> None:
    """Write a diagnostic line to stderr; stdout is reserved for the protocol."""
    print(message, file=sys.stderr, flush=True)


def format_score(score: int) -> str:
    """UCI score token: "cp <n>", or "mate <n>" for forced mates."""
    mate = mate_in(score)
    return f"mate {mate}" if mate is not None else f"cp {score}"


class UciHandler:
    """
    Stateful handler for the UCI protocol.

    Attributes:
        board:         Current position, updated by "position" commands.
        engine:        The engine; its transposition table persists across
                       moves of one game and is cleared by "ucinewgame".
        search_thread: Active search thread, or None.
        stop_event:    Event shared with the search thread.
    """

    def __init__(self, engine: Engine | None = None) -> None:
        self.board: chess.Board = chess.Board()
        self.engine: Engine = engine or Engine()
        self.search_thread: threading.Thread | None = None
        self.stop_event: threading.Event = threading.Event()

    # -----------------------------------------------------------------------
    # Command handlers
    # -----------------------------------------------------------------------

    def handle_uci(self) -> None:
        """Identify the engine, list its options, and finish with "uciok"."""
        config = self.engine.config
        _send(f"id name {ENGINE_NAME}")
        _send(f"id author {ENGINE_AUTHOR}")
        _send(f"option name Depth type spin default {config.max_depth} min 1 max {MAX_DEPTH}")
        _send(
            f"option name QuiescenceDepth type spin default {config.quiescence_depth} "
            f"min 0 max {4 * QUIESCENCE_MAX_DEPTH}"
        )
        _send(f"option name Hash type spin default {config.hash_size} min 1 max {16 * TT_SIZE}")
        _send(
            f"option name Replacement type combo default {config.replacement} "
            "var always var depth"
        )
        evaluator_vars = " ".join(f"var {name}" for name in EVALUATORS)
        _send(f"option name Evaluator type combo default {config.evaluator} {evaluator_vars}")
        _send(f"option name OrderMoves type check default {str(config.order_moves).lower()}")
        _send("uciok")

    def handle_isready(self) -> None:
        _send("readyok")

    def handle_ucinewgame(self) -> None:
        """Stop any search, reset the board, and clear the transposition table."""
        self._stop_search()
        self.board = chess.Board()
        self.engine.new_game()

    def handle_setoption(self, tokens: list[str]) -> None:
        """
        Apply a "setoption name <name> value <value>" command.

        Option names may contain spaces. Unknown options and bad values are
        reported on stderr and otherwise ignored, as UCI requires.

        Args:
            tokens: The command tokens with "setoption" already stripped.
        """
        if not tokens or tokens[0] != "name":
            _log(f"uci: malformed setoption: {' '.join(tokens)!r}")
            return

        if "value" in tokens:
            value_idx = tokens.index("value")
            name = " ".join(tokens[1:value_idx])
            value = " ".join(tokens[value_idx + 1:])
        else:
            name = " ".join(tokens[1:])
            value = ""

        self._stop_search()
        try:
            self.engine.configure(self.engine.config.with_option(name, value))
        except KeyError:
            _log(f"uci: unknown option: {name!r}")
        except ValueError as e:
            _log(f"uci: bad value for option {name!r}: {e}")

    def handle_position(self, tokens: list[str]) -> None:
        """
        Parse and apply a "position" command.

        Command formats:
            position startpos
            position startpos moves e2e4 e7e5 ...
            position fen <FEN>
            position fen <FEN> moves e2e4 e7e5 ...

        Args:
            tokens: The command tokens with "position" already stripped.
        """
        try:
            if not tokens:
                return

            if tokens[0] == "startpos":
                board = chess.Board()
                move_tokens = tokens[2:] if len(tokens) > 1 and tokens[1] == "moves" else []
            elif tokens[0] == "fen":
                if "moves" in tokens:
                    moves_idx = tokens.index("moves")
                    fen = " ".join(tokens[1:moves_idx])
                    move_tokens = tokens[moves_idx + 1:]
                else:
                    fen = " ".join(tokens[1:])
                    move_tokens = []
                board = chess.Board(fen)
            else:
                _log(f"uci: unknown position type: {tokens[0]}")
                return

            for uci_move in move_tokens:
                move = chess.Move.from_uci(uci_move)
                if move in board.legal_moves:
                    board.push(move)
                else:
                    _log(f"uci: illegal move in position command: {uci_move}")
                    break

            self.board = board

        except ValueError as e:
            _log(f"uci: error in position command: {e}")

    def handle_go(self, tokens: list[str]) -> None:
        """
        Parse a "go" command and start the search on a daemon thread.

        Supported parameters: movetime, wtime/btime/winc/binc, depth,
        infinite. The reply is an "info" line followed by "bestmove". In
        infinite mode the reply is held back until "stop" arrives, even if
        the search finishes first.

        Args:
            tokens: The command tokens with "go" already stripped.
        """
        self._stop_search()

        time_limit_ms, depth, infinite = self._parse_go(tokens)

        self.stop_event = threading.Event()
        board_copy = self.board.copy()
        stop_event = self.stop_event
        engine = self.engine

        def search_and_reply() -> None:
            try:
                start = time.monotonic()
                result = engine.select_move(board_copy, time_limit_ms, stop_event, max_depth=depth)
                elapsed_ms = max(1, int((time.monotonic() - start) * 1000))
                nps = max(1, result.nodes * 1000 // elapsed_ms)
                if infinite:
                    stop_event.wait()
                _send(
                    f"info depth {result.depth} score {format_score(result.score)} "
                    f"nodes {result.nodes} nps {nps} time {elapsed_ms}"
                )
                _send(f"bestmove {result.move.uci()}")
            except NoLegalMoves:
                # Checkmate or stalemate: UCI still requires a bestmove reply.
                if infinite:
                    stop_event.wait()
                _send("bestmove (none)")
            except Exception as e:
                _log(f"search error: {e!r}")
                _send("bestmove (none)")

        self.search_thread = threading.Thread(target=search_and_reply, daemon=True)
        self.search_thread.start()

    def handle_stop(self) -> None:
        self._stop_search()

    def handle_quit(self) -> None:
        self._stop_search()
        sys.exit(0)

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    def _stop_search(self) -> None:
        """Signal the running search to stop and wait (up to 2s) for it to exit."""
        self.stop_event.set()
        if self.search_thread is not None and self.search_thread.is_alive():
            self.search_thread.join(timeout=2.0)
        self.search_thread = None

    def _parse_go(self, tokens: list[str]) -> tuple[int, int | None, bool]:
        """
        Extract (time budget in ms, depth limit or None, infinite) from "go"
        tokens.

        Time budget, in order of precedence:
            movetime <ms>                      exactly this long
            wtime/btime <ms> [winc/binc <ms>]  1/40 of our clock plus increment
            anything else                      INFINITE_TIME_MS
        "go depth N" without a clock searches exactly N plies without a
        time limit. "go infinite" ignores any clock and iterates to MAX_DEPTH
        unless a depth is given.
        """
        infinite = "infinite" in tokens
        params: dict[str, int] = {}
        i = 0
        while i < len(tokens) - 1:
            key = tokens[i]
            try:
                params[key] = int(tokens[i + 1])
                i += 2
            except (ValueError, IndexError):
                i += 1

        depth = params.get("depth")
        if depth is not None and depth < 1:
            depth = None

        if infinite:
            return INFINITE_TIME_MS, depth or MAX_DEPTH, True

        if "movetime" in params:
            return params["movetime"], depth, False

        color = self.board.turn
        time_key = "wtime" if color == chess.WHITE else "btime"
        inc_key = "winc" if color == chess.WHITE else "binc"

        if time_key in params:
            time_left = params[time_key]
            increment = params.get(inc_key, 0)
            return max(1, time_left // 40 + increment), depth, False

        return INFINITE_TIME_MS, depth, False


def run_uci_loop() -> None:
    """
    Main UCI loop: read commands until "quit" or end of input.

    Each command runs inside its own try/except so a bug in one handler does
    not take the engine down mid-game.
    """
    handler = UciHandler()

    for raw_line in sys.stdin:
        line = raw_line.strip()
        if not line:
            continue

        tokens = line.split()
        command = tokens[0]
        args = tokens[1:]

        try:
            if command == "uci":
                handler.handle_uci()
            elif command == "isready":
                handler.handle_isready()
            elif command == "ucinewgame":
                handler.handle_ucinewgame()
            elif command == "setoption":
                handler.handle_setoption(args)
            elif command == "position":
                handler.handle_position(args)
            elif command == "go":
                handler.handle_go(args)
            elif command == "stop":
                handler.handle_stop()
            elif command == "quit":
                handler.handle_quit()
            else:
                _log(f"uci: ignoring unknown command: {command!r}")

        except Exception as e:
            _log(f"uci: unhandled error for command {command!r}: {e}")


if __name__ == "__main__":
    run_uci_loop()
