from __future__ import annotations

import io
import json
import os
import tempfile
import unittest
import xml.etree.ElementTree as ET
from pathlib import Path
from unittest import mock

from fixtures import APPROVAL, TWO_NODES, spec

from flowlayout import cli
from flowlayout.svg import SVG_NS


class CLIAcceptanceTests(unittest.TestCase):
    def run_cli(self, argv: list, stdin_text: str = "") -> tuple:
        stdout = io.StringIO()
        stderr = io.StringIO()
        stdin = io.StringIO(stdin_text)
        with mock.patch("sys.stdout", stdout), mock.patch("sys.stderr", stderr), mock.patch("sys.stdin", stdin):
            code = cli.main(argv)
        return code, stdout.getvalue(), stderr.getvalue()

    def write_spec(self, directory: str, data: dict, name: str = "flow.json") -> Path:
        path = Path(directory) / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    def test_requires_subcommand(self) -> None:
        code, _out, err = self.run_cli([])
        self.assertEqual(code, 2)
        self.assertIn("E_ARGS", err)
        self.assertIn("subcommand", err)

    def test_unknown_option_is_usage_error(self) -> None:
        code, _out, err = self.run_cli(["validate", "--bogus"])
        self.assertEqual(code, 2)
        self.assertIn("error[E_ARGS]", err)

    def test_validate_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            src = self.write_spec(td, APPROVAL)
            code, out, err = self.run_cli(["validate", str(src)])
        self.assertEqual(code, 0, err)
        self.assertEqual(out.strip(), "ok: 7 nodes, 7 edges, complexity Low")

    def test_validate_reports_dangling_edge(self) -> None:
        data = spec(TWO_NODES)
        data["edges"][0]["to"] = "X"
        code, _out, err = self.run_cli(["validate", "--text", json.dumps(data)])
        self.assertEqual(code, 3)
        self.assertIn("error[E_SPEC_DANGLING_EDGE]", err)
        self.assertIn("hint:", err)

    def test_validate_reports_duplicate_id(self) -> None:
        data = spec(TWO_NODES)
        data["nodes"][1]["id"] = "A"
        code, _out, err = self.run_cli(["validate"], stdin_text=json.dumps(data))
        self.assertEqual(code, 3)
        self.assertIn("E_SPEC_DUPLICATE_ID", err)

    def test_json_error_format(self) -> None:
        data = spec(TWO_NODES)
        data["edges"][0]["from"] = "Q"
        code, _out, err = self.run_cli(["--error-format", "json", "validate", "--text", json.dumps(data)])
        self.assertEqual(code, 3)
        payload = json.loads(err.strip().splitlines()[-1])
        self.assertFalse(payload["ok"])
        self.assertEqual(payload["code"], "E_SPEC_DANGLING_EDGE")
        self.assertIn("message", payload)
        self.assertIn("hint", payload)
        self.assertTrue(payload["retryable"])

    def test_malformed_input_is_generation_error(self) -> None:
        code, _out, err = self.run_cli(["validate", "--text", "{nodes: ["])
        self.assertEqual(code, 2)
        self.assertIn("E_GENERATION", err)
        self.assertNotIn("Traceback", err)

    def test_debug_prints_traceback(self) -> None:
        code, _out, err = self.run_cli(["--debug", "validate", "--text", "{nodes: ["])
        self.assertEqual(code, 2)
        self.assertIn("Traceback", err)

    def test_debug_env_var_prints_traceback(self) -> None:
        with mock.patch.dict(os.environ, {"FLOWLAYOUT_DEBUG": "1"}):
            _code, _out, err = self.run_cli(["validate", "--text", "[]"])
        self.assertIn("Traceback", err)

    def test_fenced_input_is_accepted(self) -> None:
        fenced = "```json\n" + json.dumps(TWO_NODES) + "\n```\n"
        code, out, err = self.run_cli(["validate"], stdin_text=fenced)
        self.assertEqual(code, 0, err)
        self.assertIn("2 nodes", out)

    def test_empty_stdin(self) -> None:
        code, _out, err = self.run_cli(["validate"], stdin_text="  \n")
        self.assertEqual(code, 2)
        self.assertIn("stdin was empty", err)

    def test_missing_input_file(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            code, _out, err = self.run_cli(["validate", str(Path(td) / "absent.json")])
        self.assertEqual(code, 2)
        self.assertIn("E_IO_READ", err)

    def test_text_and_file_are_exclusive(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            src = self.write_spec(td, TWO_NODES)
            code, _out, err = self.run_cli(["validate", str(src), "--text", "{}"])
        self.assertEqual(code, 2)
        self.assertIn("E_ARGS", err)

    def test_layout_writes_positions_next_to_input(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            src = self.write_spec(td, APPROVAL)
            code, out, err = self.run_cli(["layout", str(src)])
            self.assertEqual(code, 0, err)
            target = Path(td) / "flow.layout.json"
            self.assertTrue(target.exists())
            self.assertIn("Wrote", out)
            payload = json.loads(target.read_text(encoding="utf-8"))
        self.assertEqual(payload["title"], "Device approval")
        self.assertEqual(payload["direction"], "TB")
        self.assertTrue(payload["settled"])
        self.assertGreater(payload["ticks"], 0)
        self.assertEqual(payload["complexity"], "Low")
        self.assertEqual([n["id"] for n in payload["nodes"]], [n["id"] for n in APPROVAL["nodes"]])

    def test_layout_from_text_goes_to_stdout(self) -> None:
        code, out, err = self.run_cli(["layout", "--text", json.dumps(TWO_NODES), "--max-ticks", "5"])
        self.assertEqual(code, 0, err)
        payload = json.loads(out)
        self.assertFalse(payload["settled"])
        self.assertEqual(payload["ticks"], 5)

    def test_layout_rejects_bad_canvas(self) -> None:
        code, _out, err = self.run_cli(["layout", "--text", json.dumps(TWO_NODES), "--width", "0"])
        self.assertEqual(code, 2)
        self.assertIn("--width", err)

    def test_render_to_stdout_is_svg(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            src = self.write_spec(td, APPROVAL)
            code, out, err = self.run_cli(["render", str(src), "--stdout", "--theme", "lotus", "--mode", "dark"])
        self.assertEqual(code, 0, err)
        root = ET.fromstring(out)
        self.assertEqual(root.tag, f"{{{SVG_NS}}}svg")
        ids = [g.get("id") for g in root.iter(f"{{{SVG_NS}}}g") if g.get("id")]
        self.assertEqual(ids, [n["id"] for n in APPROVAL["nodes"]])

    def test_render_output_path(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            src = self.write_spec(td, TWO_NODES)
            target = Path(td) / "out" / "chart.svg"
            target.parent.mkdir()
            code, out, err = self.run_cli(["render", str(src), "-o", str(target), "--zoom", "2"])
            self.assertEqual(code, 0, err)
            self.assertTrue(target.exists())
            self.assertIn(str(target), out)

    def test_render_unknown_theme(self) -> None:
        code, _out, err = self.run_cli(["render", "--text", json.dumps(TWO_NODES), "--theme", "Cactus"])
        self.assertEqual(code, 2)
        self.assertIn("E_ARGS", err)
        self.assertIn("Sakura", err)

    def test_stdout_and_output_are_exclusive(self) -> None:
        code, _out, err = self.run_cli(["render", "--text", "{}", "--stdout", "-o", "x.svg"])
        self.assertEqual(code, 2)
        self.assertIn("mutually exclusive", err)

    def test_prompt_and_language(self) -> None:
        code, out, _err = self.run_cli(["prompt"])
        self.assertEqual(code, 0)
        self.assertIn("nodes", out)
        code, out, _err = self.run_cli(["prompt", "--language", "ja"])
        self.assertEqual(code, 0)
        self.assertIn("User-selected language code: ja", out)

    def test_themes_lists_palettes(self) -> None:
        code, out, _err = self.run_cli(["themes"])
        self.assertEqual(code, 0)
        names = out.split()
        self.assertIn("Sakura", names)
        self.assertEqual(len(names), 8)


if __name__ == "__main__":
    unittest.main()
