"""Exception types raised while loading a glTF scene."""

from __future__ import annotations

from typing import Optional

ON_ERROR_RAISE = "raise"
ON_ERROR_SKIP = "skip"
ON_ERROR_POLICIES = (ON_ERROR_RAISE, ON_ERROR_SKIP)


class SceneLoadError(Exception):
    """Fatal failure: the whole load is aborted."""


class ResolutionError(Exception):
    """Accessor resolution failed (bad index, missing field, overrun)."""

    def __init__(self, message: str, accessor_index: Optional[int] = None) -> None:
        super().__init__(message)
        self.accessor_index = accessor_index


class OutOfRangeError(ResolutionError):
    pass


class MissingFieldError(ResolutionError):
    pass


class BufferOverrunError(ResolutionError):
    pass
