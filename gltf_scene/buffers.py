"""Decoded binary buffers, indexed by their position in ``buffers``."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Optional

from .byte_source import read_bytes
from .errors import OutOfRangeError, SceneLoadError
from .jsonfields import get_str
from .model import LoadStats


class BufferPool:
    """Immutable byte arrays for every declared buffer."""

    def __init__(self, buffers: Optional[List[bytes]] = None) -> None:
        self._buffers: List[bytes] = [bytes(b) for b in (buffers or [])]

    def __len__(self) -> int:
        return len(self._buffers)

    def get(self, index: int) -> bytes:
        if index < 0 or index >= len(self._buffers):
            raise OutOfRangeError(f"buffer index {index} out of range ({len(self._buffers)} buffers)")
        return self._buffers[index]

    @classmethod
    def from_entries(
        cls,
        entries: List[Any],
        base_dir: Optional[Path] = None,
        bin_chunk: Optional[bytes] = None,
        stats: Optional[LoadStats] = None,
        strict: bool = False,
    ) -> "BufferPool":
        """
        Load every entry of the ``buffers`` array.

        A buffer that cannot be loaded keeps an empty slot so later buffer
        indices stay aligned; with ``strict`` it aborts the load instead.
        A GLB BIN chunk backs the first buffer when that buffer has no uri.
        """
        stats = stats if stats is not None else LoadStats()
        loaded: List[bytes] = []

        for index, entry in enumerate(entries):
            try:
                loaded.append(cls._load_entry(index, entry, base_dir, bin_chunk))
                stats.buffers_loaded += 1
            except (OSError, ValueError) as exc:
                if strict:
                    raise SceneLoadError(f"Could not load buffer {index}: {exc}") from exc
                logging.warning("Could not load buffer %d: %s", index, exc)
                stats.record("buffers", index, str(exc))
                loaded.append(b"")

        return cls(loaded)

    @staticmethod
    def _load_entry(
        index: int,
        entry: Any,
        base_dir: Optional[Path],
        bin_chunk: Optional[bytes],
    ) -> bytes:
        if not isinstance(entry, dict):
            raise ValueError("buffer entry is not an object")

        uri = get_str(entry, "uri")
        if uri is None:
            if index == 0 and bin_chunk is not None:
                return bin_chunk
            raise ValueError("no URI found for buffer")

        data = read_bytes(uri, base_dir)
        declared = entry.get("byteLength")
        if isinstance(declared, int) and not isinstance(declared, bool) and declared > len(data):
            logging.warning(
                "Buffer %d declares %d bytes but only %d were read", index, declared, len(data)
            )
        return data
