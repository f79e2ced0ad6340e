"""
Logging module for runsvdir.
This module provides the logging setup shared by the command line entry point
and the supervisor.
"""

from .setup import setup_logging

__all__ = ["setup_logging"]
