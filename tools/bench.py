#!/usr/bin/env python3
"""
Benchmark: nodes, time and chosen move per position, for every evaluator.

Each position is searched to a fixed depth through the UCI front-end, once
per evaluation strategy, so node counts are comparable between strategies
and between engine versions. Fewer nodes at the same depth means better
pruning; higher NPS means cheaper evaluation.

Usage: python3 tools/bench.py [depth]
"""
import subprocess
import sys
import os

REPO = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
PYTHON = sys.executable
ENGINE = os.path.join(REPO, "interface", "uci.py")

if REPO not in sys.path:
    sys.path.insert(0, REPO)

from chessbot.evaluate import EVALUATORS  # noqa: E402

DEFAULT_DEPTH = 3

# Fixed positions spanning opening, middlegame, tactics and endgame.
POSITIONS = [
    ("Start",        "startpos"),
    ("After 1.e4",   "startpos moves e2e4"),
    ("Italian",      "startpos moves e2e4 e7e5 g1f3 b8c6 f1c4"),
    ("Mid-open",     "fen r1bqkb1r/pppp1ppp/2n2n2/4p3/2B1P3/5N2/PPPP1PPP/RNBQK2R w KQkq - 4 4"),
    ("Complex mid",  "fen r2q1rk1/ppp2ppp/2np1n2/2b1p1B1/2B1P1b1/2NP1N2/PPP2PPP/R2Q1RK1 w - - 0 8"),
    ("Back rank",    "fen 6k1/5ppp/8/8/8/8/8/R5K1 w - - 0 1"),
    ("Rook mate",    "fen 7k/R7/5K2/8/8/8/8/8 w - - 0 1"),
    ("Passed pawns", "fen 8/1p4k1/p7/P1K5/8/8/8/8 w - - 0 1"),
]


def run_position(label: str, pos_spec: str, evaluator: str, depth: int) -> dict:
    """Search one position in a fresh engine process and parse its reply.

    Args:
        label: Human-readable position name.
        pos_spec: UCI position string (e.g. "startpos" or "fen <FEN>").
        evaluator: Evaluation strategy name.
        depth: Search depth in plies.

    Returns:
        Dict with keys: label, evaluator, move, depth, score, nodes, nps, time_ms.
    """
    env = {**os.environ, "PYTHONPATH": REPO}
    proc = subprocess.Popen(
        [PYTHON, ENGINE],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.DEVNULL,
        text=True,
        env=env,
    )
    cmds = (
        f"uci\nsetoption name Evaluator value {evaluator}\nisready\n"
        f"position {pos_spec}\ngo depth {depth}\n"
    )
    proc.stdin.write(cmds)
    proc.stdin.flush()

    nodes = time_ms = nps = reached = 0
    score = "-"
    move = "(none)"
    for line in proc.stdout:
        line = line.strip()
        if line.startswith("info depth"):
            parts = line.split()

            def _get(key: str) -> int:
                try:
                    return int(parts[parts.index(key) + 1])
                except (ValueError, IndexError):
                    return 0

            reached = _get("depth")
            nodes = _get("nodes")
            nps = _get("nps")
            time_ms = _get("time")
            if "mate" in parts:
                score = f"#{_get('mate')}"
            else:
                score = str(_get("cp"))
        elif line.startswith("bestmove"):
            move = line.split()[1]
            break

    proc.stdin.write("quit\n")
    proc.stdin.flush()
    proc.wait(timeout=5)

    return {
        "label": label,
        "evaluator": evaluator,
        "move": move,
        "depth": reached,
        "score": score,
        "nodes": nodes,
        "nps": nps,
        "time_ms": time_ms,
    }


def main() -> None:
    depth = int(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_DEPTH

    print(f"chessbot benchmark — {PYTHON}, depth {depth}")
    print()
    print(
        f"{'Position':<14} {'Evaluator':<15} {'Move':<7} {'Depth':>5} {'Score':>6} "
        f"{'Nodes':>8} {'NPS':>8} {'Time(ms)':>9}"
    )
    print("-" * 84)

    for evaluator in EVALUATORS:
        results = []
        for label, pos in POSITIONS:
            r = run_position(label, pos, evaluator, depth)
            results.append(r)
            print(
                f"{r['label']:<14} {r['evaluator']:<15} {r['move']:<7} {r['depth']:>5} "
                f"{r['score']:>6} {r['nodes']:>8,} {r['nps']:>8,} {r['time_ms']:>9,}"
            )

        valid = [r for r in results if r["nodes"] > 0]
        if valid:
            avg_nodes = sum(r["nodes"] for r in valid) // len(valid)
            avg_time = sum(r["time_ms"] for r in valid) // len(valid)
            avg_nps = sum(r["nps"] for r in valid) // len(valid)
            print(
                f"{'AVERAGE':<14} {evaluator:<15} {'':<7} {'':<5} {'':<6} "
                f"{avg_nodes:>8,} {avg_nps:>8,} {avg_time:>9,}"
            )
        print("-" * 84)


if __name__ == "__main__":
    main()
