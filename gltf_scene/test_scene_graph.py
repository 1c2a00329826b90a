import unittest

from gltf_scene.model import IDENTITY_MATRIX, LoadStats
from gltf_scene.scene_graph import (
    ROOT_RULE_CHILDLESS,
    ROOT_RULE_UNREFERENCED,
    build_node_graph,
)

MATRIX = [float(v) for v in range(1, 17)]


def _root_names(graph) -> list:
    return [node.name for node in graph.root_nodes()]


class RootRuleTests(unittest.TestCase):
    def test_childless_rule_makes_leaf_the_root(self) -> None:
        # Historical rule: roots are nodes with no children of their own,
        # so the parent A is NOT a root and its child B is.
        graph = build_node_graph(
            [{"name": "A", "children": [1]}, {"name": "B", "children": []}],
            root_rule=ROOT_RULE_CHILDLESS,
        )
        self.assertEqual(_root_names(graph), ["B"])

    def test_childless_rule_is_the_default(self) -> None:
        graph = build_node_graph([{"name": "A", "children": [1]}, {"name": "B"}])
        self.assertEqual(_root_names(graph), ["B"])

    def test_unreferenced_rule_makes_parent_the_root(self) -> None:
        graph = build_node_graph(
            [{"name": "A", "children": [1]}, {"name": "B", "children": []}],
            root_rule=ROOT_RULE_UNREFERENCED,
        )
        self.assertEqual(_root_names(graph), ["A"])

    def test_unknown_rule(self) -> None:
        with self.assertRaises(ValueError):
            build_node_graph([], root_rule="first")


class ChildLinkTests(unittest.TestCase):
    def test_forward_and_backward_references_resolve(self) -> None:
        graph = build_node_graph(
            [
                {"name": "leaf"},
                {"name": "mid", "children": [0]},
                {"name": "top", "children": [1, 3]},
                {"name": "late"},
            ],
            root_rule=ROOT_RULE_UNREFERENCED,
        )
        self.assertEqual(graph.get(2).children, (1, 3))
        self.assertEqual([n.name for n in graph.children_of(1)], ["leaf"])
        self.assertEqual(_root_names(graph), ["top"])
        self.assertEqual([n.name for n in graph.walk(2)], ["top", "mid", "leaf", "late"])

    def test_duplicate_children_are_kept(self) -> None:
        graph = build_node_graph([{"children": [1, 1]}, {}])
        self.assertEqual(graph.get(0).children, (1, 1))

    def test_invalid_child_entries_are_ignored(self) -> None:
        graph = build_node_graph([{"children": [1, "2", 7, -1, True, 1.5]}, {}])
        self.assertEqual(graph.get(0).children, (1,))

    def test_child_link_shares_the_arena_node(self) -> None:
        graph = build_node_graph([{"children": [1]}, {"name": "child"}])
        self.assertIs(graph.children_of(0)[0], graph.get(1))

    def test_walk_stops_on_cycles(self) -> None:
        graph = build_node_graph([{"children": [1]}, {"children": [0]}])
        self.assertEqual([n.index for n in graph.walk(0)], [0, 1])

    def test_malformed_entry_keeps_its_slot(self) -> None:
        stats = LoadStats()
        graph = build_node_graph([{"name": "a", "children": [1, 2]}, "oops", {"name": "c"}], stats)
        self.assertIsNone(graph.nodes[1])
        self.assertEqual(graph.get(0).children, (2,))
        self.assertEqual(stats.nodes_skipped, 1)
        self.assertEqual(stats.nodes_built, 2)
        with self.assertRaises(IndexError):
            graph.get(1)


class NodeFieldTests(unittest.TestCase):
    def test_matrix_wins_over_translation(self) -> None:
        graph = build_node_graph([{"matrix": MATRIX, "translation": [5, 6, 7]}])
        node = graph.get(0)
        self.assertTrue(node.has_matrix)
        self.assertEqual(list(node.transform), MATRIX)
        self.assertEqual(node.translation, (0.0, 0.0, 0.0))
        self.assertEqual(node.local_matrix(), tuple(MATRIX))

    def test_trs_defaults(self) -> None:
        node = build_node_graph([{}]).get(0)
        self.assertEqual(node.name, "Unnamed_Node_0")
        self.assertIsNone(node.mesh)
        self.assertFalse(node.has_matrix)
        self.assertEqual(node.transform, IDENTITY_MATRIX)
        self.assertEqual(node.translation, (0.0, 0.0, 0.0))
        self.assertEqual(node.rotation, (0.0, 0.0, 0.0, 1.0))
        self.assertEqual(node.scale, (1.0, 1.0, 1.0))

    def test_explicit_empty_name_is_kept(self) -> None:
        graph = build_node_graph([{"name": ""}, {"name": 7}])
        self.assertEqual(graph.get(0).name, "")
        self.assertEqual(graph.get(1).name, "Unnamed_Node_1")

    def test_trs_fields_parse_independently(self) -> None:
        stats = LoadStats()
        graph = build_node_graph(
            [{"name": "n", "mesh": 2, "translation": [1, 2, 3], "rotation": [0, 0], "scale": [2, 2, 2]}],
            stats,
        )
        node = graph.get(0)
        self.assertEqual(node.mesh, 2)
        self.assertEqual(node.translation, (1.0, 2.0, 3.0))
        self.assertEqual(node.rotation, (0.0, 0.0, 0.0, 1.0))
        self.assertEqual(node.scale, (2.0, 2.0, 2.0))
        self.assertEqual(len(stats.diagnostics), 1)

    def test_bad_matrix_falls_back_to_trs(self) -> None:
        node = build_node_graph([{"matrix": [1, 2, 3], "translation": [1, 0, 0]}]).get(0)
        self.assertFalse(node.has_matrix)
        self.assertEqual(node.translation, (1.0, 0.0, 0.0))

    def test_local_matrix_composes_translation_and_scale(self) -> None:
        node = build_node_graph([{"translation": [1, 2, 3], "scale": [2, 3, 4]}]).get(0)
        self.assertEqual(
            node.local_matrix(),
            (2.0, 0.0, 0.0, 0.0,
             0.0, 3.0, 0.0, 0.0,
             0.0, 0.0, 4.0, 0.0,
             1.0, 2.0, 3.0, 1.0),
        )

    def test_negative_mesh_index_means_none(self) -> None:
        self.assertIsNone(build_node_graph([{"mesh": -1}]).get(0).mesh)


if __name__ == "__main__":
    unittest.main()
