"""Decode glTF 2.0 scenes (JSON + binary buffers) into an in-memory scene graph."""

from .accessors import AccessorResolver
from .buffers import BufferPool
from .errors import (
    BufferOverrunError,
    MissingFieldError,
    OutOfRangeError,
    ResolutionError,
    SceneLoadError,
)
from .loader import LoaderOptions, SceneLoader, load_scene
from .model import (
    Animation,
    AnimationChannel,
    AnimationKey,
    LoadStats,
    Material,
    Mesh,
    Node,
    NodeGraph,
    Primitive,
    Scene,
    Vertex,
)

__all__ = [
    "AccessorResolver",
    "Animation",
    "AnimationChannel",
    "AnimationKey",
    "BufferOverrunError",
    "BufferPool",
    "LoadStats",
    "LoaderOptions",
    "Material",
    "Mesh",
    "MissingFieldError",
    "Node",
    "NodeGraph",
    "OutOfRangeError",
    "Primitive",
    "ResolutionError",
    "Scene",
    "SceneLoadError",
    "SceneLoader",
    "Vertex",
    "load_scene",
]
