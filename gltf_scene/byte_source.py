"""
byte_source.py
==============

Raw byte loading for the root document and the buffers it references.

The root document is either a JSON text file or a GLB container
(12-byte header, JSON chunk, optional BIN chunk). Buffer URIs are local
paths resolved against the root document's directory, or ``data:`` URIs.
"""

from __future__ import annotations

import base64
import json
import logging
import struct
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple
from urllib.parse import unquote

from .errors import SceneLoadError

GLTF_MAGIC = 0x46546C67
JSON_CHUNK_TYPE = 0x4E4F534A
BIN_CHUNK_TYPE = 0x004E4942
GLB_HEADER = struct.Struct("<III")
GLB_CHUNK_HEADER = struct.Struct("<II")


def decode_data_uri(uri: str) -> bytes:
    """Decode ``data:[<mime>][;base64],<payload>`` into the payload bytes."""
    if not uri.startswith("data:"):
        raise ValueError("not a data URI")
    header, sep, payload = uri[len("data:"):].partition(",")
    if not sep:
        raise ValueError(f"malformed data URI: {uri[:32]!r}")

    if "base64" in (param.strip().lower() for param in header.split(";")[1:]):
        return base64.b64decode(payload)
    return unquote(payload).encode("utf-8")


def read_bytes(uri: str, base_dir: Optional[Path] = None) -> bytes:
    """Load the bytes named by a buffer URI. Raises OSError or ValueError."""
    if uri.startswith("data:"):
        return decode_data_uri(uri)

    path = Path(unquote(uri))
    if base_dir is not None and not path.is_absolute():
        path = base_dir / path
    logging.debug("Reading buffer %s", path)
    return path.read_bytes()


def _glb_chunks(data: bytes, end: int) -> Iterator[Tuple[int, bytes]]:
    offset = GLB_HEADER.size
    while offset + GLB_CHUNK_HEADER.size <= end:
        length, chunk_type = GLB_CHUNK_HEADER.unpack_from(data, offset)
        start = offset + GLB_CHUNK_HEADER.size
        if start + length > end:
            raise SceneLoadError(
                f"GLB chunk at byte {offset} declares {length} bytes, only {end - start} remain"
            )
        yield chunk_type, data[start:start + length]
        offset = start + length


def _parse_glb(data: bytes) -> Tuple[Dict[str, Any], Optional[bytes]]:
    """Split a GLB container into its JSON document and first BIN chunk (``None`` if absent)."""
    if len(data) < GLB_HEADER.size + GLB_CHUNK_HEADER.size:
        raise SceneLoadError(f"GLB container too small ({len(data)} bytes)")

    _, version, declared_length = GLB_HEADER.unpack_from(data, 0)
    if version != 2:
        raise SceneLoadError(f"Unsupported GLB container version {version}")
    if declared_length > len(data):
        raise SceneLoadError(f"GLB declares {declared_length} bytes but holds {len(data)}")

    json_chunk: Optional[bytes] = None
    bin_chunk: Optional[bytes] = None
    for chunk_type, payload in _glb_chunks(data, declared_length):
        if chunk_type == JSON_CHUNK_TYPE and json_chunk is None:
            json_chunk = payload
        elif chunk_type == BIN_CHUNK_TYPE and bin_chunk is None:
            bin_chunk = payload

    if json_chunk is None:
        raise SceneLoadError("GLB container has no JSON chunk")

    try:
        text = json_chunk.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise SceneLoadError(f"GLB JSON chunk is not UTF-8: {exc}") from exc
    return _parse_json(text.rstrip(" \t\r\n\x00")), bin_chunk


def _parse_json(text: str) -> Dict[str, Any]:
    try:
        payload = json.loads(text)
    except ValueError as exc:
        raise SceneLoadError(f"Unparsable JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise SceneLoadError("glTF JSON root is not an object")
    return payload


def read_document(path: Path) -> Tuple[Dict[str, Any], Optional[bytes]]:
    """
    Read the root document.

    Returns the parsed JSON object and, for GLB containers, the BIN chunk
    (``None`` for plain JSON files).
    """
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise SceneLoadError(f"Cannot read {path}: {exc}") from exc

    if len(data) >= 4 and struct.unpack_from("<I", data, 0)[0] == GLTF_MAGIC:
        logging.debug("Reading %s as GLB container (%d bytes)", path, len(data))
        return _parse_glb(data)

    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise SceneLoadError(f"{path} is not UTF-8 text: {exc}") from exc
    return _parse_json(text), None
