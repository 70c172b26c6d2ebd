"""
casserve API Server

HTTP surface over the content and ref stores.
"""

from .dispatcher import Dispatcher, Operation, Precondition, error_body, status_for
from .router import create_app

__all__ = [
    "Dispatcher",
    "Operation",
    "Precondition",
    "error_body",
    "status_for",
    "create_app",
]
