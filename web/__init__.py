"""
Web application package for the chessbot engine.

Provides a FastAPI REST API for requesting engine moves over HTTP.
Run with: uvicorn web.app:app
"""
