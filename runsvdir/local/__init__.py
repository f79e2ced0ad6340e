"""
Local package for runsvdir.

This package provides the effective configuration through the config module
and the process supervision machinery in the supervisor subpackage.
"""

from .config import effective_settings

__all__ = ["effective_settings"]
