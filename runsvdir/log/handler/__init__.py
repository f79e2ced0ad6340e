"""
Logging handlers for the supervisor.
The console handler is the standard StreamHandler; this package adds
optional shipping of records to Grafana Loki.
"""

from .loki import LokiHandler

__all__ = ["LokiHandler"]
