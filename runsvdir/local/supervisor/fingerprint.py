"""
Content-derived identity of a service's run file.

A fingerprint is a SHA-256 digest over the path and the full content of the
file, each framed by a zero byte and an explicit length. Two fingerprints are
equal only if the same path held byte-for-byte identical content.
"""
import os
import sys
import base64
import hashlib
import functools
from pathlib import Path
from typing import Optional, Union

from runsvdir.local.config import effective_settings as config
from .errors import FingerprintError

PathLike = Union[str, os.PathLike]

_SEPARATOR = b"\x00"
_LENGTH_WIDTH = 8  # bytes, native byte order


def _encode_length(length: int) -> bytes:
    return length.to_bytes(_LENGTH_WIDTH, sys.byteorder)


@functools.total_ordering
class Fingerprint:
    """
    The identity of a run file at the time it was read.

    The originating path is kept for diagnostics only; equality, hashing and
    ordering use the digest bytes.
    """
    __slots__ = ("digest", "path")

    def __init__(self, digest: bytes, path: Path) -> None:
        self.digest = digest
        self.path = path

    @property
    def hex(self) -> str:
        return self.digest.hex()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Fingerprint):
            return NotImplemented
        return self.digest == other.digest

    def __lt__(self, other: "Fingerprint") -> bool:
        if not isinstance(other, Fingerprint):
            return NotImplemented
        return self.digest < other.digest

    def __hash__(self) -> int:
        return hash(self.digest)

    def __str__(self) -> str:
        encoded = base64.b64encode(self.digest).decode("ascii").rstrip("=")
        return f"{encoded} [{str(self.path)!r}]"

    def __repr__(self) -> str:
        return f"Fingerprint({self.hex[:16]}..., path={str(self.path)!r})"


def _start_hash(path: Path) -> "hashlib._Hash":
    raw_path = os.fsencode(path)
    hasher = hashlib.sha256()
    hasher.update(raw_path)
    hasher.update(_SEPARATOR)
    hasher.update(_encode_length(len(raw_path)))
    hasher.update(_SEPARATOR)
    return hasher


def _finish_hash(hasher: "hashlib._Hash", total_len: int, path: Path) -> Fingerprint:
    hasher.update(_SEPARATOR)
    hasher.update(_encode_length(total_len))
    return Fingerprint(hasher.digest(), path)


def fingerprint_bytes(path: PathLike, content: bytes) -> Fingerprint:
    """
    Computes the fingerprint of `content` as if it had been read from `path`.

    :param path: The path the content belongs to.
    :param content: The full file content.
    :return: The resulting Fingerprint.
    """
    path = Path(path)
    hasher = _start_hash(path)
    hasher.update(content)
    return _finish_hash(hasher, len(content), path)


def _read_chunk(f, size: int) -> bytes:
    while True:
        try:
            return f.read(size)
        except InterruptedError:
            continue


def fingerprint(path: PathLike, chunk_size: Optional[int] = None) -> Fingerprint:
    """
    Streams a file through SHA-256 and returns its fingerprint.

    :param path: The file to hash, normally `<service>/run`.
    :param chunk_size: Bytes read per call. Defaults to FINGERPRINT_CHUNK_SIZE;
        0 reads the whole file in one call.
    :return: The resulting Fingerprint.
    :raises FingerprintError: If the file cannot be opened or read.
    """
    path = Path(path)
    if chunk_size is None:
        chunk_size = config.FINGERPRINT_CHUNK_SIZE
    read_size = chunk_size if chunk_size > 0 else -1

    hasher = _start_hash(path)
    total_len = 0
    try:
        with path.open("rb") as f:
            while True:
                chunk = _read_chunk(f, read_size)
                if not chunk:
                    break
                hasher.update(chunk)
                total_len += len(chunk)
                if read_size < 0:
                    break
    except OSError as e:
        raise FingerprintError(path, e) from e
    return _finish_hash(hasher, total_len, path)
