"""Transcript persistence: repository interface and implementations."""

from .interfaces import TranscriptRepository
from .memory import InMemoryTranscriptRepository
from .sql import SqlTranscriptRepository, create_all, create_engine, create_sessionmaker

__all__ = [
    "InMemoryTranscriptRepository",
    "SqlTranscriptRepository",
    "TranscriptRepository",
    "create_all",
    "create_engine",
    "create_sessionmaker",
]
