"""
cli.py
======

Load a glTF/GLB scene and print a summary of what was decoded.

Usage:
    python3 -m gltf_scene scene.gltf \\
        --root-rule unreferenced \\
        --workers 4 --verbose \\
        --report load_report.json
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional, Sequence

from .errors import ON_ERROR_RAISE, ON_ERROR_SKIP, ResolutionError, SceneLoadError
from .loader import LoaderOptions, SceneLoader
from .model import Scene
from .scene_graph import ROOT_RULE_CHILDLESS, ROOT_RULES


def _fmt(values: Sequence[float]) -> str:
    return " ".join(f"{v:g}" for v in values)


def format_scene(scene: Scene, max_items: int = 8) -> str:
    lines: List[str] = ["Scene:", "  Nodes:"]
    for node in scene.root_nodes:
        lines.append(f"    Node: {node.name}")
        lines.append(f"      Mesh Index: {node.mesh if node.mesh is not None else -1}")
        if node.has_matrix:
            lines.append(f"      Matrix: {_fmt(node.transform)}")
        else:
            lines.append(f"      Translation: {_fmt(node.translation)}")
            lines.append(f"      Rotation: {_fmt(node.rotation)}")
            lines.append(f"      Scale: {_fmt(node.scale)}")
        children = scene.nodes.children_of(node.index)
        if children:
            lines.append("      Children: " + ", ".join(child.name for child in children))

    lines.append("  Meshes:")
    for index, mesh in enumerate(scene.meshes):
        vertices = mesh.vertices
        material = mesh.material_index if mesh.material_index is not None else -1
        lines.append(
            f"    Mesh {index} '{mesh.name}': {len(mesh.primitives)} primitives, "
            f"{len(vertices)} vertices, {len(mesh.indices)} indices, material {material}"
        )
        for vertex in vertices[:max_items]:
            lines.append(f"      Position: {_fmt(vertex.position)}")
        if len(vertices) > max_items:
            lines.append(f"      ... {len(vertices) - max_items} more")

    lines.append("  Materials:")
    for material in scene.materials:
        lines.append(
            f"    Material '{material.name}': base color {_fmt(material.base_color_factor)}, "
            f"metallic {material.metallic_factor:g}, roughness {material.roughness_factor:g}, "
            f"texture '{material.base_color_texture}'"
        )

    lines.append("  Animations:")
    for animation in scene.animations:
        lines.append(f"    Animation '{animation.name}': {len(animation.channels)} channels")
        for channel in animation.channels:
            lines.append(
                f"      Channel: node {channel.target_node or '?'} {channel.path or '?'} "
                f"({channel.interpolation}, {len(channel.keys)} keys)"
            )
    return "\n".join(lines)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Decode a glTF 2.0 scene (JSON + external buffers, or GLB) and print a summary."
    )
    parser.add_argument("path", type=Path, help="Root .gltf or .glb file")
    parser.add_argument(
        "--strict", action="store_true",
        help="Abort when any stage's top-level array (buffers, materials, meshes, nodes, animations) is missing.",
    )
    parser.add_argument(
        "--root-rule", choices=ROOT_RULES, default=ROOT_RULE_CHILDLESS,
        help="How root nodes are chosen (default: %(default)s).",
    )
    parser.add_argument(
        "--time-only-animations", action="store_true",
        help="Keep only key times for animation channels; do not decode sampler outputs.",
    )
    parser.add_argument(
        "--skip-unresolvable", action="store_true",
        help="Skip primitives/channels whose accessors cannot be resolved instead of failing.",
    )
    parser.add_argument(
        "--workers", type=int, default=1,
        help="Threads used to decode meshes and animations (default: 1).",
    )
    parser.add_argument("--max-items", type=int, default=8, help="Vertices listed per mesh")
    parser.add_argument(
        "--report", type=Path, default=None,
        help="Path for a JSON load report (counters and diagnostics)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")

    args = parser.parse_args(argv)
    if args.workers < 1:
        parser.error("--workers must be >= 1")
    return args


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(message)s",
        datefmt="%H:%M:%S",
    )

    options = LoaderOptions(
        strict_stages=args.strict,
        root_rule=args.root_rule,
        decode_animation_outputs=not args.time_only_animations,
        on_resolution_error=ON_ERROR_SKIP if args.skip_unresolvable else ON_ERROR_RAISE,
        workers=args.workers,
    )

    try:
        scene = SceneLoader(args.path, options).load()
    except SceneLoadError as exc:
        logging.error("Could not load %s: %s", args.path, exc)
        return 1
    except ResolutionError as exc:
        logging.error("Accessor resolution failed in %s: %s", args.path, exc)
        return 1

    print(format_scene(scene, max_items=args.max_items))

    if args.report:
        args.report.parent.mkdir(parents=True, exist_ok=True)
        args.report.write_text(json.dumps(asdict(scene.stats), indent=2))
        logging.info("Report written to %s", args.report)

    if scene.stats.diagnostics:
        logging.warning("%d elements were skipped or defaulted", len(scene.stats.diagnostics))

    return 0
