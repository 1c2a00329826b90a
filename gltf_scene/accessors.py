"""
accessors.py
============

Accessor -> bufferView -> buffer resolution.

An accessor describes ``count`` elements of a given shape (SCALAR, VEC3,
...) and component type (5126 float, 5123 unsigned short, ...) starting
at ``bufferView.byteOffset + accessor.byteOffset``. Consecutive elements
are ``bufferView.byteStride`` bytes apart, or tightly packed when the view
declares no stride.

Every read is bounds-checked against the whole buffer: an element that
would end past the last byte raises ``BufferOverrunError`` and nothing is
returned. Typed reads first compact the strided elements into a packed
byte window, then decode that window with numpy (little-endian).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .buffers import BufferPool
from .errors import (
    BufferOverrunError,
    MissingFieldError,
    OutOfRangeError,
    ResolutionError,
)
from .jsonfields import get_index, get_int, get_list, get_str

COMPONENT_BYTE = 5120
COMPONENT_UNSIGNED_BYTE = 5121
COMPONENT_SHORT = 5122
COMPONENT_UNSIGNED_SHORT = 5123
COMPONENT_UNSIGNED_INT = 5125
COMPONENT_FLOAT = 5126

COMPONENT_DTYPES: Dict[int, str] = {
    COMPONENT_BYTE: "<i1",
    COMPONENT_UNSIGNED_BYTE: "<u1",
    COMPONENT_SHORT: "<i2",
    COMPONENT_UNSIGNED_SHORT: "<u2",
    COMPONENT_UNSIGNED_INT: "<u4",
    COMPONENT_FLOAT: "<f4",
}

INDEX_COMPONENT_TYPES = (
    COMPONENT_UNSIGNED_BYTE,
    COMPONENT_UNSIGNED_SHORT,
    COMPONENT_UNSIGNED_INT,
)

# Divisors for normalized integer attributes (glTF 2.0 3.11).
NORMALIZED_DIVISORS: Dict[int, float] = {
    COMPONENT_BYTE: 127.0,
    COMPONENT_UNSIGNED_BYTE: 255.0,
    COMPONENT_SHORT: 32767.0,
    COMPONENT_UNSIGNED_SHORT: 65535.0,
}

TYPE_COMPONENT_COUNT: Dict[str, int] = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
    "VEC4": 4,
    "MAT2": 4,
    "MAT3": 9,
    "MAT4": 16,
}


def is_supported_index_type(component_type: Optional[int]) -> bool:
    return component_type in INDEX_COMPONENT_TYPES


@dataclass(frozen=True)
class ElementLayout:
    """Where the elements of one accessor live and how big each one is."""

    buffer: bytes
    offset: int
    stride: int
    count: int
    element_size: int
    component_type: int
    components: int


class AccessorResolver:
    """
    Resolves accessors of one document against its loaded buffers.

    Holds no mutable state, so one resolver can be shared by threads that
    decode different meshes or animations.
    """

    def __init__(self, document: Dict[str, Any], buffers: BufferPool) -> None:
        self._accessors = get_list(document, "accessors")
        self._buffer_views = get_list(document, "bufferViews")
        self._buffers = buffers

    # -- lookups ------------------------------------------------------------

    def accessor(self, accessor_index: int) -> Dict[str, Any]:
        if self._accessors is None:
            raise OutOfRangeError("document has no 'accessors' array", accessor_index)
        if accessor_index < 0 or accessor_index >= len(self._accessors):
            raise OutOfRangeError(
                f"accessor {accessor_index} out of range ({len(self._accessors)} accessors)",
                accessor_index,
            )
        accessor = self._accessors[accessor_index]
        if not isinstance(accessor, dict):
            raise MissingFieldError(f"accessor {accessor_index} is not an object", accessor_index)
        return accessor

    def _buffer_view(self, accessor_index: int, accessor: Dict[str, Any]) -> Dict[str, Any]:
        view_index = get_index(accessor, "bufferView")
        if view_index is None:
            raise MissingFieldError(
                f"accessor {accessor_index} does not contain a valid 'bufferView' index",
                accessor_index,
            )
        if self._buffer_views is None or view_index >= len(self._buffer_views):
            raise OutOfRangeError(
                f"accessor {accessor_index} references missing bufferView {view_index}",
                accessor_index,
            )
        view = self._buffer_views[view_index]
        if not isinstance(view, dict):
            raise MissingFieldError(f"bufferView {view_index} is not an object", accessor_index)
        return view

    def _buffer_for(self, accessor_index: int, view: Dict[str, Any]) -> bytes:
        buffer_index = get_index(view, "buffer")
        if buffer_index is None:
            raise MissingFieldError(
                f"bufferView for accessor {accessor_index} does not contain a valid 'buffer' index",
                accessor_index,
            )
        try:
            return self._buffers.get(buffer_index)
        except OutOfRangeError as exc:
            raise OutOfRangeError(str(exc), accessor_index) from exc

    def component_type(self, accessor_index: int) -> Optional[int]:
        return get_int(self.accessor(accessor_index), "componentType")

    # -- layout -------------------------------------------------------------

    def layout(
        self,
        accessor_index: int,
        components: Optional[int] = None,
        component_type: Optional[int] = None,
    ) -> ElementLayout:
        """
        Compute offset, stride and element size for ``accessor_index``.

        ``components``/``component_type`` override what the accessor
        declares; the default stride is still the natural size of the
        declared element so that a VEC3 read over a VEC4 accessor steps
        over whole VEC4 elements.
        """
        accessor = self.accessor(accessor_index)
        view = self._buffer_view(accessor_index, accessor)
        buffer = self._buffer_for(accessor_index, view)

        declared_type = get_int(accessor, "componentType")
        if component_type is None:
            component_type = declared_type if declared_type is not None else COMPONENT_FLOAT
        if component_type not in COMPONENT_DTYPES:
            raise ResolutionError(
                f"accessor {accessor_index} has unsupported componentType {component_type}",
                accessor_index,
            )
        component_size = np.dtype(COMPONENT_DTYPES[component_type]).itemsize

        declared_components = TYPE_COMPONENT_COUNT.get(get_str(accessor, "type", "") or "")
        if components is None:
            if declared_components is None:
                raise MissingFieldError(
                    f"accessor {accessor_index} does not declare a known 'type'", accessor_index
                )
            components = declared_components
        elif declared_components is not None and declared_components != components:
            logging.debug(
                "Accessor %d declares %d components, reading %d",
                accessor_index, declared_components, components,
            )

        count = get_int(accessor, "count")
        if count is None or count < 0:
            raise MissingFieldError(
                f"accessor {accessor_index} does not contain a valid 'count'", accessor_index
            )

        element_size = components * component_size
        natural_type = declared_type if declared_type in COMPONENT_DTYPES else component_type
        natural_size = (declared_components or components) * np.dtype(
            COMPONENT_DTYPES[natural_type]
        ).itemsize

        stride = get_int(view, "byteStride")
        if stride is None or stride <= 0:
            stride = natural_size
        if stride < element_size:
            raise ResolutionError(
                f"accessor {accessor_index}: byteStride {stride} is smaller than element size {element_size}",
                accessor_index,
            )

        offset = get_int(view, "byteOffset", 0) + get_int(accessor, "byteOffset", 0)
        if offset < 0:
            raise ResolutionError(f"accessor {accessor_index} has a negative byte offset", accessor_index)

        return ElementLayout(
            buffer=buffer,
            offset=offset,
            stride=stride,
            count=count,
            element_size=element_size,
            component_type=component_type,
            components=components,
        )

    # -- byte windows ---------------------------------------------------------

    @staticmethod
    def _compact(layout: ElementLayout, accessor_index: int) -> bytes:
        if layout.count == 0:
            return b""

        end = layout.offset + (layout.count - 1) * layout.stride + layout.element_size
        if end > len(layout.buffer):
            raise BufferOverrunError(
                f"accessor {accessor_index} reads bytes [{layout.offset}, {end}) "
                f"past the end of a {len(layout.buffer)}-byte buffer",
                accessor_index,
            )

        if layout.stride == layout.element_size:
            return layout.buffer[layout.offset:end]

        elements = np.ndarray(
            shape=(layout.count, layout.element_size),
            dtype=np.uint8,
            buffer=layout.buffer,
            offset=layout.offset,
            strides=(layout.stride, 1),
        )
        return elements.tobytes()

    def resolve(
        self,
        accessor_index: int,
        components: Optional[int] = None,
        component_type: Optional[int] = None,
    ) -> bytes:
        """Return the accessor's elements as one packed byte string."""
        layout = self.layout(accessor_index, components, component_type)
        return self._compact(layout, accessor_index)

    def resolve_raw_window(self, accessor_index: int) -> bytes:
        """
        Materialize the accessor's whole buffer view.

        With a ``byteStride`` the view is copied one stride at a time, only
        while a full stride still fits in ``byteLength``; without one it is
        a single slice. The accessor's own offset and count are not used.
        """
        accessor = self.accessor(accessor_index)
        view = self._buffer_view(accessor_index, accessor)
        buffer = self._buffer_for(accessor_index, view)

        byte_offset = get_int(view, "byteOffset", 0)
        byte_length = get_int(view, "byteLength", 0)
        byte_stride = get_int(view, "byteStride", 0)
        end = byte_offset + byte_length
        if byte_offset < 0 or byte_length < 0 or end > len(buffer):
            raise BufferOverrunError(
                f"bufferView range [{byte_offset}, {end}) of accessor {accessor_index} "
                f"exceeds a {len(buffer)}-byte buffer",
                accessor_index,
            )

        if byte_stride <= 0:
            return buffer[byte_offset:end]

        steps = byte_length // byte_stride
        return buffer[byte_offset:byte_offset + steps * byte_stride]

    # -- typed reads ----------------------------------------------------------

    def _read_floats(self, accessor_index: int, components: int) -> np.ndarray:
        layout = self.layout(accessor_index, components)
        window = self._compact(layout, accessor_index)
        values = np.frombuffer(window, dtype=COMPONENT_DTYPES[layout.component_type])
        values = values.reshape(layout.count, components).astype(np.float32)

        if layout.component_type != COMPONENT_FLOAT and self.accessor(accessor_index).get("normalized") is True:
            divisor = NORMALIZED_DIVISORS.get(layout.component_type)
            if divisor is not None:
                values = np.maximum(values / np.float32(divisor), np.float32(-1.0))
        return values

    def as_float_scalars(self, accessor_index: int) -> np.ndarray:
        return self._read_floats(accessor_index, 1).reshape(-1)

    def as_vec2_array(self, accessor_index: int) -> np.ndarray:
        return self._read_floats(accessor_index, 2)

    def as_vec3_array(self, accessor_index: int) -> np.ndarray:
        return self._read_floats(accessor_index, 3)

    def as_vec4_array(self, accessor_index: int) -> np.ndarray:
        return self._read_floats(accessor_index, 4)

    def as_index_array(self, accessor_index: int, component_type: Optional[int] = None) -> np.ndarray:
        """
        Decode an index accessor into uint32 values.

        8- and 16-bit indices are widened; an unsupported component type
        yields an empty array instead of an error.
        """
        if component_type is None:
            component_type = self.component_type(accessor_index)
            if component_type is None:
                raise MissingFieldError(
                    f"accessor {accessor_index} does not contain 'componentType'", accessor_index
                )

        if not is_supported_index_type(component_type):
            logging.warning(
                "Accessor %d: unsupported index component type %s", accessor_index, component_type
            )
            return np.zeros(0, dtype=np.uint32)

        layout = self.layout(accessor_index, 1, component_type)
        window = self._compact(layout, accessor_index)
        return np.frombuffer(window, dtype=COMPONENT_DTYPES[component_type]).astype(np.uint32)


def to_tuples(values: np.ndarray) -> List[Tuple[float, ...]]:
    return [tuple(float(v) for v in row) for row in values.tolist()]
