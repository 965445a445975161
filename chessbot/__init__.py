"""
chessbot: the move-selection core of a chess-playing agent.

Given a python-chess board and a time budget, the engine returns one legal
move chosen by iterative-deepening alpha-beta search with a quiescence
extension, a transposition table, and a pluggable static evaluator.

Modules:
    constants     — Piece values, piece-square tables, search parameters
    config        — EngineConfig: per-engine tunables
    errors        — NoLegalMoves, CacheCorruption, TimeBudgetExceeded
    evaluate      — Static evaluation strategies and pawn/king predicates
    transposition — Zobrist fingerprints and the bounded transposition table
    search        — Quiescence, negamax alpha-beta, Engine.select_move()
"""
