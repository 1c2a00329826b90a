"""
model.py
========

In-memory scene records produced by the loader.

Nodes live in a flat arena (``NodeGraph.nodes``) addressed by their
position in the source ``nodes`` array; parent/child links are integer
handles into that arena, built once and never rewired.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields as dataclass_fields
from typing import Dict, Iterator, List, Optional, Tuple

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]
Vec4 = Tuple[float, float, float, float]

IDENTITY_MATRIX: Tuple[float, ...] = (
    1.0, 0.0, 0.0, 0.0,
    0.0, 1.0, 0.0, 0.0,
    0.0, 0.0, 1.0, 0.0,
    0.0, 0.0, 0.0, 1.0,
)
IDENTITY_TRANSLATION: Vec3 = (0.0, 0.0, 0.0)
IDENTITY_ROTATION: Vec4 = (0.0, 0.0, 0.0, 1.0)
IDENTITY_SCALE: Vec3 = (1.0, 1.0, 1.0)
DEFAULT_BASE_COLOR: Vec4 = (1.0, 1.0, 1.0, 1.0)


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

@dataclass
class Vertex:
    position: Vec3
    normal: Vec3 = (0.0, 0.0, 0.0)
    uv: Vec2 = (0.0, 0.0)


@dataclass
class Primitive:
    vertices: List[Vertex] = field(default_factory=list)
    indices: List[int] = field(default_factory=list)
    material_index: Optional[int] = None


@dataclass
class Mesh:
    name: str = ""
    primitives: List[Primitive] = field(default_factory=list)
    # Last primitive material wins; kept at mesh level for consumers that
    # bind one material per mesh.
    material_index: Optional[int] = None

    @property
    def vertices(self) -> List[Vertex]:
        out: List[Vertex] = []
        for primitive in self.primitives:
            out.extend(primitive.vertices)
        return out

    @property
    def indices(self) -> List[int]:
        """Indices of every primitive, rebased onto ``vertices``."""
        out: List[int] = []
        base = 0
        for primitive in self.primitives:
            out.extend(index + base for index in primitive.indices)
            base += len(primitive.vertices)
        return out


@dataclass
class Material:
    name: str = ""
    base_color_factor: Vec4 = DEFAULT_BASE_COLOR
    metallic_factor: float = 1.0
    roughness_factor: float = 1.0
    base_color_texture: str = ""


# ---------------------------------------------------------------------------
# Node graph
# ---------------------------------------------------------------------------

def _quaternion_to_matrix3(q: Vec4) -> List[List[float]]:
    x, y, z, w = q
    norm = math.sqrt(x * x + y * y + z * z + w * w)
    if norm == 0.0:
        return [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]]
    x, y, z, w = x / norm, y / norm, z / norm, w / norm
    return [
        [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
        [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
        [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
    ]


@dataclass
class Node:
    index: int
    name: str
    transform: Tuple[float, ...] = IDENTITY_MATRIX
    translation: Vec3 = IDENTITY_TRANSLATION
    rotation: Vec4 = IDENTITY_ROTATION
    scale: Vec3 = IDENTITY_SCALE
    mesh: Optional[int] = None
    children: Tuple[int, ...] = ()
    has_matrix: bool = False

    def local_matrix(self) -> Tuple[float, ...]:
        """Column-major local transform: the source matrix, else T * R * S."""
        if self.has_matrix:
            return self.transform
        r = _quaternion_to_matrix3(self.rotation)
        sx, sy, sz = self.scale
        tx, ty, tz = self.translation
        return (
            r[0][0] * sx, r[1][0] * sx, r[2][0] * sx, 0.0,
            r[0][1] * sy, r[1][1] * sy, r[2][1] * sy, 0.0,
            r[0][2] * sz, r[1][2] * sz, r[2][2] * sz, 0.0,
            tx, ty, tz, 1.0,
        )


@dataclass
class NodeGraph:
    nodes: List[Optional[Node]] = field(default_factory=list)
    roots: List[int] = field(default_factory=list)

    def get(self, handle: int) -> Node:
        if handle < 0 or handle >= len(self.nodes):
            raise IndexError(f"node handle {handle} out of range")
        node = self.nodes[handle]
        if node is None:
            raise IndexError(f"node handle {handle} refers to a skipped entry")
        return node

    def children_of(self, handle: int) -> List[Node]:
        return [self.get(child) for child in self.get(handle).children]

    def root_nodes(self) -> List[Node]:
        return [self.get(handle) for handle in self.roots]

    def walk(self, handle: int) -> Iterator[Node]:
        """Depth-first, pre-order; a handle already visited is not re-entered."""
        seen = set()
        stack = [handle]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            node = self.get(current)
            yield node
            stack.extend(reversed(node.children))

    def __len__(self) -> int:
        return len(self.nodes)


# ---------------------------------------------------------------------------
# Animation
# ---------------------------------------------------------------------------

@dataclass
class AnimationKey:
    time: float
    translation: Optional[Vec3] = None
    rotation: Optional[Vec4] = None
    scale: Optional[Vec3] = None


@dataclass
class AnimationChannel:
    target_node: str = ""
    path: Optional[str] = None
    interpolation: str = "LINEAR"
    keys: List[AnimationKey] = field(default_factory=list)


@dataclass
class Animation:
    name: str = ""
    channels: List[AnimationChannel] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Load bookkeeping and the scene aggregate
# ---------------------------------------------------------------------------

@dataclass
class LoadStats:
    buffers_loaded: int = 0
    meshes_built: int = 0
    primitives_skipped: int = 0
    materials_built: int = 0
    materials_skipped: int = 0
    nodes_built: int = 0
    nodes_skipped: int = 0
    channels_built: int = 0
    channels_skipped: int = 0
    unsupported_index_types: int = 0
    diagnostics: List[Dict] = field(default_factory=list)

    def record(self, stage: str, index: Optional[int], error: str) -> None:
        self.diagnostics.append({"stage": stage, "index": index, "error": error})


def merge_stats(target: LoadStats, source: LoadStats) -> None:
    """Merge *source* into *target* by summing int fields and extending list fields."""
    for f in dataclass_fields(LoadStats):
        src_val = getattr(source, f.name)
        if isinstance(src_val, int):
            setattr(target, f.name, getattr(target, f.name) + src_val)
        elif isinstance(src_val, list):
            getattr(target, f.name).extend(src_val)


@dataclass
class Scene:
    nodes: NodeGraph = field(default_factory=NodeGraph)
    meshes: List[Mesh] = field(default_factory=list)
    materials: List[Material] = field(default_factory=list)
    animations: List[Animation] = field(default_factory=list)
    stats: LoadStats = field(default_factory=LoadStats)

    @property
    def root_nodes(self) -> List[Node]:
        return self.nodes.root_nodes()
