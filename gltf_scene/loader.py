"""
loader.py
=========

Orchestrates a scene load:

    buffers -> materials -> meshes -> nodes -> animations

Each stage reads its own top-level array. By default a missing array
yields an empty result; ``LoaderOptions(strict_stages=True)`` restores
the historical rule where any missing stage array aborts the load.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .accessors import AccessorResolver
from .animations import build_animations
from .buffers import BufferPool
from .byte_source import read_document
from .errors import ON_ERROR_POLICIES, ON_ERROR_RAISE, SceneLoadError
from .geometry import build_meshes
from .jsonfields import get_list
from .materials import build_materials
from .model import LoadStats, Scene
from .scene_graph import ROOT_RULE_CHILDLESS, ROOT_RULES, build_node_graph


@dataclass
class LoaderOptions:
    strict_stages: bool = False
    root_rule: str = ROOT_RULE_CHILDLESS
    decode_animation_outputs: bool = True
    on_resolution_error: str = ON_ERROR_RAISE
    workers: int = 1

    def validate(self) -> None:
        if self.root_rule not in ROOT_RULES:
            raise ValueError(f"root_rule must be one of {ROOT_RULES}, got {self.root_rule!r}")
        if self.on_resolution_error not in ON_ERROR_POLICIES:
            raise ValueError(
                f"on_resolution_error must be one of {ON_ERROR_POLICIES}, got {self.on_resolution_error!r}"
            )
        if self.workers < 1:
            raise ValueError("workers must be >= 1")


class SceneLoader:
    def __init__(self, path: Union[str, Path], options: Optional[LoaderOptions] = None) -> None:
        self.path = Path(path)
        self.options = options or LoaderOptions()
        self.options.validate()

    def load(self) -> Scene:
        """Read the root file and build the scene. Raises SceneLoadError on fatal errors."""
        document, bin_chunk = read_document(self.path)
        logging.info("Loading scene %s", self.path)
        return self.load_document(document, base_dir=self.path.parent, bin_chunk=bin_chunk)

    def _stage_array(self, document: Dict[str, Any], key: str) -> List[Any]:
        values = get_list(document, key)
        if values is not None:
            return values
        if self.options.strict_stages:
            raise SceneLoadError(f"No '{key}' array found in the JSON data")
        logging.debug("No '%s' array; stage produces nothing", key)
        return []

    def load_document(
        self,
        document: Dict[str, Any],
        base_dir: Optional[Path] = None,
        bin_chunk: Optional[bytes] = None,
    ) -> Scene:
        options = self.options
        stats = LoadStats()

        if get_list(document, "buffers") is None and get_list(document, "accessors"):
            raise SceneLoadError("Document declares accessors but no 'buffers' array")

        buffers = BufferPool.from_entries(
            self._stage_array(document, "buffers"),
            base_dir=base_dir,
            bin_chunk=bin_chunk,
            stats=stats,
            strict=options.strict_stages,
        )
        resolver = AccessorResolver(document, buffers)

        materials = build_materials(self._stage_array(document, "materials"), document, stats)
        meshes = build_meshes(
            self._stage_array(document, "meshes"),
            resolver,
            stats,
            on_resolution_error=options.on_resolution_error,
            workers=options.workers,
        )
        nodes = build_node_graph(
            self._stage_array(document, "nodes"),
            stats,
            root_rule=options.root_rule,
        )
        animations = build_animations(
            self._stage_array(document, "animations"),
            resolver,
            stats,
            decode_outputs=options.decode_animation_outputs,
            on_resolution_error=options.on_resolution_error,
            workers=options.workers,
        )

        scene = Scene(
            nodes=nodes,
            meshes=meshes,
            materials=materials,
            animations=animations,
            stats=stats,
        )
        logging.info(
            "Scene loaded: %d buffers, %d materials, %d meshes, %d nodes (%d roots), %d animations, %d diagnostics",
            len(buffers), len(materials), len(meshes), len(nodes), len(nodes.roots),
            len(animations), len(stats.diagnostics),
        )
        return scene


def load_scene(path: Union[str, Path], options: Optional[LoaderOptions] = None) -> Scene:
    return SceneLoader(path, options).load()
