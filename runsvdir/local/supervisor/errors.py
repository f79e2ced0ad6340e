"""
Exceptions raised while reconciling the service directory.

Only `DirectoryListError` escapes a pass. The others are raised while a single
service entry is processed and are logged and absorbed by the reconciler.
"""
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .fingerprint import Fingerprint


class SupervisorError(Exception):
    """Base class for every error raised by the supervisor package."""


class DirectoryListError(SupervisorError):
    """The service directory itself could not be listed."""

    def __init__(self, directory: Path, cause: OSError) -> None:
        super().__init__(f"Reading dir '{directory}' failed: {cause}")
        self.directory = directory
        self.cause = cause


class EntryReadError(SupervisorError):
    """An entry of the service directory could not be read."""

    def __init__(self, directory: Path, cause: OSError) -> None:
        super().__init__(f"Reading dir entry on '{directory}' failed: {cause}")
        self.directory = directory
        self.cause = cause


class FingerprintError(SupervisorError):
    """A run file could not be opened or read while hashing it."""

    def __init__(self, path: Path, cause: OSError) -> None:
        super().__init__(f"Hashing '{path}' failed: {cause}")
        self.path = path
        self.cause = cause


class SpawnError(SupervisorError):
    """Launching a run file failed."""

    def __init__(self, fingerprint: "Fingerprint", cause: OSError) -> None:
        super().__init__(f"Spawn process {fingerprint} failed: {cause}")
        self.fingerprint = fingerprint
        self.cause = cause
