# backend/replay/frame_store.py
"""
Recorded telemetry frames with circular sequential access.

Design:
- Recording is read once into memory and never modified
- A cursor advances through it and wraps to 0 at the end
- next_chunk() never short-reads: the recording is treated as circular
"""

from __future__ import annotations

from pathlib import Path

import numpy as np

from constants import RECORDING_SUFFIX


class ReplayError(Exception):
    """Base class for replay errors."""


class ResourceNotFound(ReplayError):
    """
    Raised when a frame recording is missing, unreadable or empty.

    Aborts a start attempt before any thread is spawned.
    """


def list_recordings(directory: str | Path) -> list[str]:
    """
    Names of the recordings available in `directory`, sorted.

    A missing directory has no recordings.
    """
    root = Path(directory)
    if not root.is_dir():
        return []
    return sorted(
        p.name
        for p in root.iterdir()
        if p.is_file() and p.suffix == RECORDING_SUFFIX
    )


class FrameStore:
    """
    Immutable byte recording plus a read cursor.

    Owned by a single ReplayLoop; not thread-safe by itself.
    """

    def __init__(self, data: bytes, *, name: str = "<memory>") -> None:
        if not data:
            raise ResourceNotFound(f"Recording {name!r} is empty")

        buf = np.frombuffer(data, dtype=np.uint8).copy()
        buf.setflags(write=False)

        self._data: np.ndarray = buf
        self._name = name
        self._cursor = 0

    # -------------------------
    # Construction
    # -------------------------

    @classmethod
    def load(cls, resource_name: str, *, directory: str | Path) -> FrameStore:
        """
        Read `resource_name` from `directory` into memory.

        Only plain files directly inside `directory` are accepted.

        Raises:
            ResourceNotFound if the file is absent, outside `directory`,
            unreadable or empty.
        """
        root = Path(directory).resolve()
        path = (root / resource_name).resolve()
        if path.parent != root:
            raise ResourceNotFound(f"Recording outside {root}: {resource_name!r}")
        if not path.is_file():
            raise ResourceNotFound(f"Recording not found: {path}")

        try:
            data = path.read_bytes()
        except OSError as exc:
            raise ResourceNotFound(f"Recording unreadable: {path}: {exc}") from exc

        return cls(data, name=resource_name)

    @classmethod
    def from_bytes(cls, data: bytes, *, name: str = "<memory>") -> FrameStore:
        return cls(data, name=name)

    # -------------------------
    # Circular access
    # -------------------------

    def next_chunk(self, length: int) -> bytes:
        """
        Return the next `length` bytes, wrapping to the start as needed.

        Always exactly `length` bytes, even when length exceeds the
        recording size.
        """
        if length <= 0:
            raise ValueError("length must be > 0")

        indices = np.arange(self._cursor, self._cursor + length)
        chunk = np.take(self._data, indices, mode="wrap")

        self._cursor = (self._cursor + length) % len(self._data)
        return chunk.tobytes()

    # -------------------------
    # Introspection helpers
    # -------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def cursor(self) -> int:
        return self._cursor

    def __len__(self) -> int:
        return len(self._data)
