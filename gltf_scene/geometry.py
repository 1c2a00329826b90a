"""
geometry.py
===========

Builds ``Mesh`` records from the ``meshes`` array.

For each primitive, POSITION (plus NORMAL and TEXCOORD_0 when present)
fill the vertex list and ``indices`` fills the index list. A primitive
without POSITION contributes no vertices; a malformed mesh entry becomes
an empty mesh so node ``mesh`` indices keep pointing at the right slot.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional, Tuple

from .accessors import AccessorResolver, is_supported_index_type, to_tuples
from .errors import ON_ERROR_RAISE, ON_ERROR_SKIP, ResolutionError
from .jsonfields import get_dict, get_index, get_list, get_str
from .model import LoadStats, Mesh, Primitive, Vertex, merge_stats


def _optional_attribute(
    resolver: AccessorResolver,
    attributes: dict,
    name: str,
    reader: str,
    vertex_count: int,
    mesh_index: int,
    stats: LoadStats,
) -> Optional[List[Tuple[float, ...]]]:
    accessor_index = get_index(attributes, name)
    if accessor_index is None:
        return None

    try:
        values = getattr(resolver, reader)(accessor_index)
    except ResolutionError as exc:
        logging.warning("Mesh %d: %s accessor %d ignored: %s", mesh_index, name, accessor_index, exc)
        stats.record("meshes", mesh_index, f"{name}: {exc}")
        return None

    if len(values) != vertex_count:
        logging.warning(
            "%s accessor %d has %d elements for %d positions; ignored",
            name, accessor_index, len(values), vertex_count,
        )
        return None
    return to_tuples(values)


def _build_vertices(
    resolver: AccessorResolver,
    attributes: dict,
    mesh_index: int,
    stats: LoadStats,
) -> List[Vertex]:
    position_accessor = get_index(attributes, "POSITION")
    if position_accessor is None:
        return []

    positions = to_tuples(resolver.as_vec3_array(position_accessor))
    vertices = [Vertex(position=p) for p in positions]

    # NORMAL and TEXCOORD_0 never fail the primitive.
    normals = _optional_attribute(resolver, attributes, "NORMAL", "as_vec3_array", len(vertices), mesh_index, stats)
    if normals is not None:
        for vertex, normal in zip(vertices, normals):
            vertex.normal = normal

    uvs = _optional_attribute(resolver, attributes, "TEXCOORD_0", "as_vec2_array", len(vertices), mesh_index, stats)
    if uvs is not None:
        for vertex, uv in zip(vertices, uvs):
            vertex.uv = uv

    return vertices


def _build_indices(
    resolver: AccessorResolver,
    accessor_index: int,
    mesh_index: int,
    stats: LoadStats,
) -> List[int]:
    component_type = resolver.component_type(accessor_index)
    if component_type is not None and not is_supported_index_type(component_type):
        stats.unsupported_index_types += 1
        stats.record("meshes", mesh_index, f"unsupported index component type {component_type}")
    return [int(i) for i in resolver.as_index_array(accessor_index, component_type)]


def build_mesh(
    mesh_index: int,
    mesh_json: Any,
    resolver: AccessorResolver,
    stats: LoadStats,
    on_resolution_error: str = ON_ERROR_RAISE,
) -> Mesh:
    """Build one mesh; ``ResolutionError`` propagates unless ``on_resolution_error`` is "skip"."""
    if not isinstance(mesh_json, dict):
        logging.warning("Mesh %d is not an object; left empty", mesh_index)
        stats.record("meshes", mesh_index, "mesh is not an object")
        return Mesh()

    mesh = Mesh(name=get_str(mesh_json, "name", "") or "")
    primitives = get_list(mesh_json, "primitives")
    if primitives is None:
        logging.warning("Mesh %d has no 'primitives' array", mesh_index)
        stats.record("meshes", mesh_index, "missing primitives")
        return mesh

    for primitive_index, primitive_json in enumerate(primitives):
        attributes = get_dict(primitive_json, "attributes")
        if attributes is None:
            logging.warning("Mesh %d primitive %d has no attributes; skipped", mesh_index, primitive_index)
            stats.primitives_skipped += 1
            stats.record("meshes", mesh_index, f"primitive {primitive_index} has no attributes")
            continue

        try:
            primitive = Primitive(vertices=_build_vertices(resolver, attributes, mesh_index, stats))
            indices_accessor = get_index(primitive_json, "indices")
            if indices_accessor is not None:
                primitive.indices = _build_indices(resolver, indices_accessor, mesh_index, stats)
        except ResolutionError as exc:
            if on_resolution_error != ON_ERROR_SKIP:
                raise
            logging.warning("Mesh %d primitive %d skipped: %s", mesh_index, primitive_index, exc)
            stats.primitives_skipped += 1
            stats.record("meshes", mesh_index, f"primitive {primitive_index}: {exc}")
            continue

        material_index = get_index(primitive_json, "material")
        if material_index is not None:
            primitive.material_index = material_index
            mesh.material_index = material_index

        mesh.primitives.append(primitive)

    stats.meshes_built += 1
    logging.debug(
        "Mesh %d: %d primitives, %d vertices", mesh_index, len(mesh.primitives), len(mesh.vertices)
    )
    return mesh


def _mesh_worker(
    mesh_index: int,
    mesh_json: Any,
    resolver: AccessorResolver,
    on_resolution_error: str,
) -> Tuple[Mesh, LoadStats]:
    """Worker function for parallel mesh decoding. Returns the mesh and local stats."""
    stats = LoadStats()
    mesh = build_mesh(mesh_index, mesh_json, resolver, stats, on_resolution_error)
    return mesh, stats


def build_meshes(
    meshes_json: List[Any],
    resolver: AccessorResolver,
    stats: LoadStats,
    on_resolution_error: str = ON_ERROR_RAISE,
    workers: int = 1,
) -> List[Mesh]:
    if workers <= 1 or len(meshes_json) <= 1:
        return [
            build_mesh(index, mesh_json, resolver, stats, on_resolution_error)
            for index, mesh_json in enumerate(meshes_json)
        ]

    total = len(meshes_json)
    meshes: List[Mesh] = []
    with ThreadPoolExecutor(max_workers=workers) as executor:
        results = executor.map(
            _mesh_worker,
            range(total),
            meshes_json,
            [resolver] * total,
            [on_resolution_error] * total,
        )
        for mesh, worker_stats in results:
            merge_stats(stats, worker_stats)
            meshes.append(mesh)
    return meshes
