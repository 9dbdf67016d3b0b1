"""
HTTP API - caller-facing surface of the research pipeline.
"""

from .server import app, create_api_server, main, run_api_server

__all__ = ["app", "create_api_server", "main", "run_api_server"]
