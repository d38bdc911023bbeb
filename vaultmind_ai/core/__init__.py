"""
Core utilities and configuration for VaultMind-AI.

This package provides logging configuration and monitoring helpers shared by
the orchestration core and the server.
"""

from vaultmind_ai.core.logging_config import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
