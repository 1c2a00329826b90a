"""
scene_graph.py
==============

Two-pass node hierarchy build.

Pass 1 creates one ``Node`` per entry of ``nodes`` (same positions, so a
child index can point forwards or backwards). Pass 2 attaches children by
handle, in declared order, duplicates included. Roots are then chosen by
one of two rules:

``childless``
    a node whose own child list is empty is a root. A leaf that is also
    somebody's child therefore counts as a root while its parent does
    not; this is the historical behavior and stays the default.
``unreferenced``
    a node that no other node lists as a child is a root.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Set

from .jsonfields import get_floats, get_index, get_list, get_str
from .model import LoadStats, Node, NodeGraph

ROOT_RULE_CHILDLESS = "childless"
ROOT_RULE_UNREFERENCED = "unreferenced"
ROOT_RULES = (ROOT_RULE_CHILDLESS, ROOT_RULE_UNREFERENCED)


def _build_node(index: int, node_json: dict, stats: LoadStats) -> Node:
    node = Node(
        index=index,
        name=get_str(node_json, "name", f"Unnamed_Node_{index}"),
        mesh=get_index(node_json, "mesh"),
    )

    if "matrix" in node_json:
        matrix = get_floats(node_json, "matrix", 16)
        if matrix is not None:
            # A matrix overrides translation/rotation/scale entirely.
            node.transform = matrix
            node.has_matrix = True
            return node
        logging.warning("Node %d: matrix is not 16 numbers; ignored", index)
        stats.record("nodes", index, "matrix is not 16 numbers")

    for key, length in (("translation", 3), ("rotation", 4), ("scale", 3)):
        if key not in node_json:
            continue
        values = get_floats(node_json, key, length)
        if values is None:
            logging.warning("Node %d: %s is not %d numbers; ignored", index, key, length)
            stats.record("nodes", index, f"{key} is not {length} numbers")
            continue
        setattr(node, key, values)

    return node


def _attach_children(index: int, node_json: dict, arena: List[Optional[Node]]) -> List[int]:
    children: List[int] = []
    for child in get_list(node_json, "children") or []:
        if not isinstance(child, int) or isinstance(child, bool):
            logging.debug("Node %d: ignoring non-integer child %r", index, child)
            continue
        if child < 0 or child >= len(arena) or arena[child] is None:
            logging.warning("Node %d: child index %d out of range; ignored", index, child)
            continue
        children.append(child)
    return children


def build_node_graph(
    nodes_json: List[Any],
    stats: Optional[LoadStats] = None,
    root_rule: str = ROOT_RULE_CHILDLESS,
) -> NodeGraph:
    if root_rule not in ROOT_RULES:
        raise ValueError(f"Unknown root rule: {root_rule!r} (expected one of {ROOT_RULES})")
    stats = stats if stats is not None else LoadStats()

    # Pass 1: one arena slot per source entry.
    arena: List[Optional[Node]] = []
    for index, node_json in enumerate(nodes_json):
        if not isinstance(node_json, dict):
            logging.warning("Node %d is not an object; skipped", index)
            stats.nodes_skipped += 1
            stats.record("nodes", index, "node is not an object")
            arena.append(None)
            continue
        arena.append(_build_node(index, node_json, stats))
        stats.nodes_built += 1

    # Pass 2: child handles.
    referenced: Set[int] = set()
    for index, node_json in enumerate(nodes_json):
        node = arena[index]
        if node is None:
            continue
        node.children = tuple(_attach_children(index, node_json, arena))
        referenced.update(node.children)

    if root_rule == ROOT_RULE_CHILDLESS:
        roots = [n.index for n in arena if n is not None and not n.children]
    else:
        roots = [n.index for n in arena if n is not None and n.index not in referenced]

    logging.debug("Built %d nodes, %d roots (%s rule)", len(arena), len(roots), root_rule)
    return NodeGraph(nodes=arena, roots=roots)
