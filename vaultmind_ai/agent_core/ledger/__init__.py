"""Reversible-operation ledger (undo/redo)."""

from .ledger import DEFAULT_CAPACITY, LedgerEntry, ReversibleLedger
from .reversals import Reversal

__all__ = ["DEFAULT_CAPACITY", "LedgerEntry", "Reversal", "ReversibleLedger"]
