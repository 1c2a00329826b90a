import base64
import contextlib
import io
import json
import struct
import tempfile
import unittest
from pathlib import Path

from gltf_scene import cli
from gltf_scene.errors import ON_ERROR_SKIP, BufferOverrunError, OutOfRangeError, SceneLoadError
from gltf_scene.loader import LoaderOptions, SceneLoader, load_scene
from gltf_scene.scene_graph import ROOT_RULE_UNREFERENCED

POSITION_BYTES = struct.pack("<3f", 1.0, 2.0, 3.0)


def _minimal_document(uri: str = "scene.bin") -> dict:
    return {
        "asset": {"version": "2.0"},
        "buffers": [{"uri": uri, "byteLength": 12}],
        "bufferViews": [{"buffer": 0, "byteOffset": 0, "byteLength": 12}],
        "accessors": [{"bufferView": 0, "componentType": 5126, "count": 1, "type": "VEC3"}],
        "meshes": [{"primitives": [{"attributes": {"POSITION": 0}}]}],
        "nodes": [{"name": "root", "mesh": 0}],
    }


def _write_gltf(directory: Path, document: dict, blobs: dict = None) -> Path:
    for name, data in (blobs or {}).items():
        (directory / name).write_bytes(data)
    path = directory / "scene.gltf"
    path.write_text(json.dumps(document))
    return path


def _build_glb_chunks(json_bytes: bytes, binary_blob: bytes = None) -> bytes:
    json_bytes += b" " * (-len(json_bytes) % 4)
    chunks = struct.pack("<II", len(json_bytes), 0x4E4F534A) + json_bytes
    if binary_blob is not None:
        binary_blob += b"\x00" * (-len(binary_blob) % 4)
        chunks += struct.pack("<II", len(binary_blob), 0x004E4942) + binary_blob
    return struct.pack("<III", 0x46546C67, 2, 12 + len(chunks)) + chunks


def _build_glb(document: dict, binary_blob: bytes = None) -> bytes:
    return _build_glb_chunks(json.dumps(document).encode("utf-8"), binary_blob)


class EndToEndTests(unittest.TestCase):
    def test_minimal_scene(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = _write_gltf(Path(temp_dir), _minimal_document(), {"scene.bin": POSITION_BYTES})
            scene = load_scene(path)

        self.assertEqual(len(scene.meshes), 1)
        mesh = scene.meshes[0]
        self.assertEqual([v.position for v in mesh.vertices], [(1.0, 2.0, 3.0)])
        self.assertEqual(mesh.indices, [])
        self.assertEqual(len(scene.root_nodes), 1)
        self.assertEqual(scene.root_nodes[0].mesh, 0)
        self.assertEqual(scene.root_nodes[0].name, "root")
        self.assertEqual(scene.materials, [])
        self.assertEqual(scene.animations, [])
        self.assertEqual(scene.stats.buffers_loaded, 1)

    def test_strict_stages_abort_on_missing_animations(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = _write_gltf(Path(temp_dir), _minimal_document(), {"scene.bin": POSITION_BYTES})
            with self.assertRaises(SceneLoadError):
                SceneLoader(path, LoaderOptions(strict_stages=True)).load()

    def test_strict_stages_accept_complete_document(self) -> None:
        document = _minimal_document()
        document["materials"] = []
        document["animations"] = []
        with tempfile.TemporaryDirectory() as temp_dir:
            path = _write_gltf(Path(temp_dir), document, {"scene.bin": POSITION_BYTES})
            scene = SceneLoader(path, LoaderOptions(strict_stages=True)).load()
        self.assertEqual(len(scene.meshes), 1)

    def test_accessors_without_buffers_is_fatal(self) -> None:
        document = _minimal_document()
        del document["buffers"]
        with self.assertRaises(SceneLoadError):
            SceneLoader("unused.gltf").load_document(document)

    def test_unreadable_root_file(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            with self.assertRaises(SceneLoadError):
                load_scene(Path(temp_dir) / "missing.gltf")

    def test_unparsable_json(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "scene.gltf"
            path.write_text("{not json")
            with self.assertRaises(SceneLoadError):
                load_scene(path)

    def test_json_root_must_be_object(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "scene.gltf"
            path.write_text("[1, 2, 3]")
            with self.assertRaises(SceneLoadError):
                load_scene(path)

    def test_missing_buffer_file_is_recorded_then_overruns(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = _write_gltf(Path(temp_dir), _minimal_document())
            with self.assertRaises(BufferOverrunError):
                load_scene(path)
            scene = SceneLoader(path, LoaderOptions(on_resolution_error=ON_ERROR_SKIP)).load()
            with self.assertRaises(SceneLoadError):
                SceneLoader(path, LoaderOptions(strict_stages=True)).load()

        self.assertEqual(scene.meshes[0].primitives, [])
        stages = [d["stage"] for d in scene.stats.diagnostics]
        self.assertIn("buffers", stages)
        self.assertIn("meshes", stages)

    def test_data_uri_buffer(self) -> None:
        uri = "data:application/octet-stream;base64," + base64.b64encode(POSITION_BYTES).decode("ascii")
        scene = SceneLoader("inline.gltf").load_document(_minimal_document(uri))
        self.assertEqual(scene.meshes[0].vertices[0].position, (1.0, 2.0, 3.0))

    def test_glb_container_binds_bin_chunk(self) -> None:
        document = _minimal_document()
        document["buffers"] = [{"byteLength": 12}]
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "scene.glb"
            path.write_bytes(_build_glb(document, POSITION_BYTES))
            scene = load_scene(path)
        self.assertEqual(scene.meshes[0].vertices[0].position, (1.0, 2.0, 3.0))

    def test_truncated_glb(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "scene.glb"
            path.write_bytes(_build_glb(_minimal_document(), POSITION_BYTES)[:30])
            with self.assertRaises(SceneLoadError):
                load_scene(path)

    def test_glb_json_chunk_must_be_utf8(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "scene.glb"
            path.write_bytes(_build_glb_chunks(b"\xff\xfe{}", POSITION_BYTES))
            with self.assertRaises(SceneLoadError):
                load_scene(path)
            self.assertEqual(cli.main([str(path)]), 1)

    def test_glb_without_bin_chunk_reports_missing_uri(self) -> None:
        document = _minimal_document()
        document["buffers"] = [{"byteLength": 12}]
        with tempfile.TemporaryDirectory() as temp_dir:
            path = Path(temp_dir) / "scene.glb"
            path.write_bytes(_build_glb(document))
            scene = SceneLoader(path, LoaderOptions(on_resolution_error=ON_ERROR_SKIP)).load()

        buffer_errors = [d["error"] for d in scene.stats.diagnostics if d["stage"] == "buffers"]
        self.assertEqual(buffer_errors, ["no URI found for buffer"])
        self.assertEqual(scene.stats.buffers_loaded, 0)

    def test_malformed_data_uri_is_recorded(self) -> None:
        document = _minimal_document("data:application/octet-stream;base64")
        scene = SceneLoader("x.gltf", LoaderOptions(on_resolution_error=ON_ERROR_SKIP)).load_document(document)
        self.assertEqual(scene.meshes[0].primitives, [])
        self.assertIn("buffers", [d["stage"] for d in scene.stats.diagnostics])

    def test_root_rule_option(self) -> None:
        document = _minimal_document()
        document["buffers"] = [{"uri": "data:application/octet-stream;base64,AACAPwAAAEAAAEBA"}]
        document["nodes"] = [{"name": "A", "children": [1]}, {"name": "B", "mesh": 0}]

        childless = SceneLoader("x.gltf").load_document(document)
        unreferenced = SceneLoader("x.gltf", LoaderOptions(root_rule=ROOT_RULE_UNREFERENCED)).load_document(document)

        self.assertEqual([node.name for node in childless.root_nodes], ["B"])
        self.assertEqual([node.name for node in unreferenced.root_nodes], ["A"])

    def test_skip_policy_and_workers(self) -> None:
        document = _minimal_document()
        document["buffers"] = [{"uri": "data:application/octet-stream;base64,AACAPwAAAEAAAEBA"}]
        document["meshes"].append({"primitives": [{"attributes": {"POSITION": 7}}]})

        with self.assertRaises(OutOfRangeError):
            SceneLoader("x.gltf").load_document(document)

        options = LoaderOptions(on_resolution_error=ON_ERROR_SKIP, workers=2)
        scene = SceneLoader("x.gltf", options).load_document(document)
        self.assertEqual(len(scene.meshes), 2)
        self.assertEqual(scene.meshes[0].vertices[0].position, (1.0, 2.0, 3.0))
        self.assertEqual(scene.meshes[1].primitives, [])
        self.assertEqual(scene.stats.primitives_skipped, 1)

    def test_invalid_options(self) -> None:
        with self.assertRaises(ValueError):
            SceneLoader("x.gltf", LoaderOptions(root_rule="nope"))
        with self.assertRaises(ValueError):
            SceneLoader("x.gltf", LoaderOptions(on_resolution_error="ignore"))
        with self.assertRaises(ValueError):
            SceneLoader("x.gltf", LoaderOptions(workers=0))


class CliTests(unittest.TestCase):
    def test_main_prints_summary_and_writes_report(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            path = _write_gltf(root, _minimal_document(), {"scene.bin": POSITION_BYTES})
            report = root / "reports" / "load.json"
            out = io.StringIO()
            with contextlib.redirect_stdout(out):
                code = cli.main([str(path), "--report", str(report)])
            payload = json.loads(report.read_text())

        self.assertEqual(code, 0)
        self.assertIn("Node: root", out.getvalue())
        self.assertIn("Position: 1 2 3", out.getvalue())
        self.assertEqual(payload["meshes_built"], 1)

    def test_main_returns_one_on_fatal_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            self.assertEqual(cli.main([str(Path(temp_dir) / "missing.gltf")]), 1)


if __name__ == "__main__":
    unittest.main()
