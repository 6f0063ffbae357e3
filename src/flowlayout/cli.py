"""Command-line interface for flowchart validation, layout and rendering."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import traceback
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, Optional, Tuple

from .interaction import ScaleExtent, ViewTransform
from .model import GenerationError, GraphSpec, ValidationError, build, parse_document
from .projector import Projector
from .resources import load_prompt
from .simulation import Simulation, SimulationConfig
from .svg import render_svg
from .themes import MODES, PALETTES, get_theme

logger = logging.getLogger(__name__)

SUBCOMMANDS = "validate, layout, render, prompt, themes"


@dataclass
class CliError(Exception):
    code: str
    message: str
    hint: Optional[str] = None
    exit_code: int = 1
    file: Optional[str] = None
    retryable: bool = True


class UsageError(Exception):
    pass


class FriendlyArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # pragma: no cover - argparse callback
        raise UsageError(message)


def _add_input_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", nargs="?", help="Input flowchart .json file")
    parser.add_argument("--text", help="Raw flowchart JSON")


def _add_layout_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--width", type=float, default=800.0, help="Canvas width")
    parser.add_argument("--height", type=float, default=600.0, help="Canvas height")
    parser.add_argument("--max-ticks", type=int, default=1000, help="Tick budget before giving up on settling")
    parser.add_argument("--seed", type=int, default=0, help="Seed for coincident-node jiggle")
    parser.add_argument("--stdout", action="store_true", help="Write output to stdout")
    parser.add_argument("-o", "--output", help="Output path")


def _build_parser() -> argparse.ArgumentParser:
    parser = FriendlyArgumentParser(
        prog="flowlayout",
        description="Lay out flowchart specs with a force simulation and render them to SVG.",
    )
    parser.add_argument("--error-format", choices=["text", "json"], default="text")
    parser.add_argument("--debug", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log simulation progress to stderr")

    subparsers = parser.add_subparsers(dest="command")

    validate_parser = subparsers.add_parser("validate", help="Validate a flowchart spec")
    _add_input_args(validate_parser)

    layout_parser = subparsers.add_parser("layout", help="Simulate until settled and write node positions")
    _add_input_args(layout_parser)
    _add_layout_args(layout_parser)

    render_parser = subparsers.add_parser("render", help="Simulate until settled and write SVG")
    _add_input_args(render_parser)
    _add_layout_args(render_parser)
    render_parser.add_argument("--theme", default="Sakura", help="Palette name (see `themes`)")
    render_parser.add_argument("--mode", choices=list(MODES), default="light")
    render_parser.add_argument("--zoom", type=float, default=1.0, help="View scale (0.1 to 4)")

    prompt_parser = subparsers.add_parser("prompt", help="Print the generator system prompt")
    prompt_parser.add_argument("--language", help="Output language code appended to the prompt")

    subparsers.add_parser("themes", help="List built-in palettes")

    return parser


def _read_input(path: Optional[str], text: Optional[str]) -> Tuple[str, str, Optional[Path]]:
    if path and text is not None:
        raise CliError(
            "E_ARGS",
            "--text cannot be combined with file input",
            hint="Use either FILE or --text.",
            exit_code=2,
        )

    if text is not None:
        return text, "<text>", None

    if path:
        input_path = Path(path)
        if not input_path.exists():
            raise CliError(
                "E_IO_READ",
                f"input file not found: {input_path}",
                exit_code=2,
                file=str(input_path),
            )
        try:
            return input_path.read_text(encoding="utf-8"), str(input_path), input_path
        except OSError as exc:
            raise CliError(
                "E_IO_READ",
                f"failed to read input file: {input_path}",
                hint=str(exc),
                exit_code=2,
                file=str(input_path),
            )

    if sys.stdin.isatty():
        raise CliError(
            "E_ARGS",
            "no input provided",
            hint="Use a subcommand with FILE, --text, or pipe stdin.",
            exit_code=2,
        )

    data = sys.stdin.read()
    if not data.strip():
        raise CliError(
            "E_ARGS",
            "stdin was empty",
            hint="Pipe flowchart JSON into stdin.",
            exit_code=2,
        )
    return data, "<stdin>", None


def _write_text(path: Path, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise CliError(
            "E_IO_WRITE",
            f"failed to write output file: {path}",
            hint=str(exc),
            exit_code=4,
            file=str(path),
        )


def _error_from_exception(exc: Exception) -> CliError:
    if isinstance(exc, CliError):
        return exc
    if isinstance(exc, GenerationError):
        return CliError(
            exc.code,
            str(exc),
            hint="Input must be a JSON object with 'nodes' and 'edges' arrays.",
            exit_code=2,
            retryable=True,
        )
    if isinstance(exc, ValidationError):
        return CliError(
            exc.code,
            str(exc),
            hint="Check node ids are unique and every edge endpoint names a node.",
            exit_code=3,
            retryable=True,
        )
    return CliError(
        "E_INTERNAL",
        str(exc) or exc.__class__.__name__,
        hint="Re-run with --debug to see traceback.",
        exit_code=1,
        retryable=False,
    )


def _emit_error(err: CliError, *, error_format: str) -> None:
    if error_format == "json":
        payload = {
            "ok": False,
            "code": err.code,
            "message": err.message,
            "file": err.file,
            "hint": err.hint,
            "retryable": err.retryable,
        }
        sys.stderr.write(json.dumps(payload) + "\n")
        return

    sys.stderr.write(f"error[{err.code}]: {err.message}\n")
    if err.hint:
        sys.stderr.write(f"hint: {err.hint}\n")


def _check_output_args(args: argparse.Namespace) -> None:
    if args.stdout and args.output:
        raise CliError(
            "E_ARGS",
            "--stdout and --output are mutually exclusive",
            hint="Choose either --stdout or --output.",
            exit_code=2,
        )
    if args.width <= 0 or args.height <= 0:
        raise CliError(
            "E_ARGS",
            "--width and --height must be > 0",
            hint="Use a positive canvas size like 800x600.",
            exit_code=2,
        )
    if args.max_ticks < 0:
        raise CliError("E_ARGS", "--max-ticks must be >= 0", exit_code=2)


def _load_spec(args: argparse.Namespace) -> Tuple[GraphSpec, Optional[Path]]:
    source, source_name, source_path = _read_input(args.input, args.text)
    logger.debug("reading flowchart from %s", source_name)
    return parse_document(source), source_path


def _settle(spec: GraphSpec, args: argparse.Namespace) -> Tuple[Simulation, int]:
    config = replace(SimulationConfig(), width=args.width, height=args.height, seed=args.seed)
    graph, state = build(spec, center=config.center)
    simulation = Simulation(graph, state, config)
    ticks = simulation.run(args.max_ticks)
    if simulation.is_settled:
        logger.info("layout settled after %d ticks", ticks)
    else:
        logger.warning("layout did not settle within %d ticks (alpha=%.4f)", ticks, state.alpha)
    return simulation, ticks


def _emit(content: str, args: argparse.Namespace, source_path: Optional[Path], default_name: str) -> None:
    if args.stdout or source_path is None:
        sys.stdout.write(content)
        if not content.endswith("\n"):
            sys.stdout.write("\n")
        return
    output_path = Path(args.output) if args.output else source_path.with_name(source_path.stem + default_name)
    _write_text(output_path, content)
    print(f"Wrote {output_path}")


def _handle_validate(args: argparse.Namespace) -> int:
    spec, _source_path = _load_spec(args)
    graph, _state = build(spec)
    print(f"ok: {len(graph.nodes)} nodes, {len(graph.edges)} edges, complexity {graph.complexity}")
    return 0


def _handle_layout(args: argparse.Namespace) -> int:
    _check_output_args(args)
    spec, source_path = _load_spec(args)
    simulation, ticks = _settle(spec, args)
    state = simulation.state
    payload = {
        "title": spec.title,
        "direction": spec.direction.value,
        "settled": simulation.is_settled,
        "ticks": ticks,
        "complexity": simulation.graph.complexity,
        "alpha": round(state.alpha, 6),
        "nodes": [
            {"id": node_id, "x": round(x, 3), "y": round(y, 3)}
            for node_id, (x, y) in state.snapshot().items()
        ],
    }
    _emit(json.dumps(payload, indent=2, ensure_ascii=False), args, source_path, ".layout.json")
    return 0


def _handle_render(args: argparse.Namespace) -> int:
    _check_output_args(args)
    try:
        theme = get_theme(args.theme, args.mode)
    except KeyError:
        raise CliError(
            "E_ARGS",
            f"unknown theme: {args.theme}",
            hint=f"Use one of: {', '.join(PALETTES)}.",
            exit_code=2,
        )
    if args.zoom <= 0:
        raise CliError(
            "E_ARGS",
            "--zoom must be > 0",
            hint="Use a positive scale factor like 1 or 2.",
            exit_code=2,
        )

    spec, source_path = _load_spec(args)
    simulation, _ticks = _settle(spec, args)
    center = simulation.config.center
    view = ViewTransform().scaled_to(args.zoom, center, ScaleExtent())
    primitives = Projector().project(simulation.graph, simulation.state, view, theme)
    svg_text = render_svg(primitives, theme, width=args.width, height=args.height, title=spec.title)
    _emit(svg_text, args, source_path, ".svg")
    return 0


def _handle_prompt(args: argparse.Namespace) -> int:
    print(load_prompt(args.language), end="")
    return 0


def _handle_themes(_args: argparse.Namespace) -> int:
    for name in PALETTES:
        print(name)
    return 0


_HANDLERS = {
    "validate": _handle_validate,
    "layout": _handle_layout,
    "render": _handle_render,
    "prompt": _handle_prompt,
    "themes": _handle_themes,
}


def main(argv: Optional[Iterable[str]] = None) -> int:
    raw_argv = list(argv) if argv is not None else sys.argv[1:]
    parser = _build_parser()

    if not raw_argv:
        err = CliError(
            "E_ARGS",
            "missing subcommand",
            hint=f"Use one of: {SUBCOMMANDS}.",
            exit_code=2,
        )
        _emit_error(err, error_format="text")
        return err.exit_code

    debug_enabled = "--debug" in raw_argv or os.getenv("FLOWLAYOUT_DEBUG") == "1"
    error_format = "text"
    if "--error-format" in raw_argv:
        idx = raw_argv.index("--error-format")
        if idx + 1 < len(raw_argv):
            error_format = raw_argv[idx + 1]

    try:
        args = parser.parse_args(raw_argv)
        error_format = args.error_format
        if args.verbose:
            logging.basicConfig(level=logging.DEBUG, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")

        handler = _HANDLERS.get(args.command)
        if handler is None:
            raise CliError(
                "E_ARGS",
                "missing subcommand",
                hint=f"Use one of: {SUBCOMMANDS}.",
                exit_code=2,
            )
        return handler(args)
    except UsageError as exc:
        err = CliError(
            "E_ARGS",
            str(exc),
            hint=f"Use subcommands: {SUBCOMMANDS}.",
            exit_code=2,
        )
        _emit_error(err, error_format=error_format)
        return err.exit_code
    except Exception as exc:  # pragma: no cover - exercised in integration tests
        err = _error_from_exception(exc)
        _emit_error(err, error_format=error_format)
        if debug_enabled:
            traceback.print_exc(file=sys.stderr)
        return err.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
