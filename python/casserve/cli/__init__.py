"""
casserve CLI module.

This module provides the command-line interface for casserve.
"""

from .main import cli, main

__all__ = ["cli", "main"]
