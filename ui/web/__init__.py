"""
Web UI Module - FastAPI-based HTTP interface
============================================

This module provides the HTTP interface of the responder, including:
- Inbound message endpoint for the chat platform bridge
- Test message simulator
- Response listing with remaining cooldowns
- Configuration reload and save
"""

from .app import create_app, run_app
from .routes import router

__all__ = [
    "create_app",
    "run_app",
    "router",
]
