"""Human approval of requested actions."""

from .broker import ApprovalBroker

__all__ = ["ApprovalBroker"]
