"""Material extraction from the ``materials`` array (no image decoding)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from .jsonfields import get_dict, get_float, get_floats, get_index, get_list, get_str, item_at
from .model import LoadStats, Material


def resolve_texture_uri(document: Dict[str, Any], texture_index: int) -> str:
    """Follow textures[i].source -> images[j].uri; empty string on any broken link."""
    texture = item_at(get_list(document, "textures"), texture_index)
    if not isinstance(texture, dict):
        logging.warning("Texture %d not found", texture_index)
        return ""

    image_index = get_index(texture, "source")
    if image_index is None:
        logging.warning("Texture %d has no valid 'source'", texture_index)
        return ""

    image = item_at(get_list(document, "images"), image_index)
    uri = get_str(image, "uri")
    if uri is None:
        logging.warning("Image %d of texture %d has no uri", image_index, texture_index)
        return ""
    return uri


def build_materials(materials_json: List[Any], document: Dict[str, Any], stats: LoadStats) -> List[Material]:
    """
    Build one ``Material`` per entry that has a ``pbrMetallicRoughness`` object.

    Entries without it are dropped from the output entirely, so output
    positions can differ from source material indices.
    """
    materials: List[Material] = []

    for index, material_json in enumerate(materials_json):
        if not isinstance(material_json, dict):
            logging.warning("Material %d is not an object; skipped", index)
            stats.materials_skipped += 1
            stats.record("materials", index, "material is not an object")
            continue

        pbr = get_dict(material_json, "pbrMetallicRoughness")
        if pbr is None:
            logging.warning("Material %d has no pbrMetallicRoughness object; skipped", index)
            stats.materials_skipped += 1
            stats.record("materials", index, "missing pbrMetallicRoughness")
            continue

        material = Material(
            name=get_str(material_json, "name", "") or "",
            metallic_factor=get_float(pbr, "metallicFactor", 1.0),
            roughness_factor=get_float(pbr, "roughnessFactor", 1.0),
        )

        if "baseColorFactor" in pbr:
            color = get_floats(pbr, "baseColorFactor", 4)
            if color is not None:
                material.base_color_factor = color
            else:
                logging.warning("Material %d: baseColorFactor does not contain 4 numbers", index)
                stats.record("materials", index, "baseColorFactor does not contain 4 numbers")

        texture_index = get_index(get_dict(pbr, "baseColorTexture"), "index")
        if texture_index is not None:
            material.base_color_texture = resolve_texture_uri(document, texture_index)

        materials.append(material)
        stats.materials_built += 1

    return materials
