"""
Exception handlers for the VaultMind-AI server.

This package contains the exception handlers and a setup function to
register them with the FastAPI application.
"""

from .global_handler import setup_exception_handlers

__all__ = ["setup_exception_handlers"]
