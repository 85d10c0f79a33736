"""CLI entry point: ``python -m millcam <command> ...``

Commands::

    emit      program.json  -o part.nc     declarative operations → G-code
    mill      model.json|model.stl -o part.nc   slice primitives → G-code
    parse     part.nc                      summarise points, arcs and cycles
    validate  part.nc --machine vmc-medium check limits, estimate run time
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .config.machine_profiles import MachineModel, get_profile
from .config.settings import ToolpathSettings
from .core.mesh import SUPPORTED_EXTENSIONS, load_mesh_primitive
from .core.primitives import load_elements
from .core.program import MachineProgram, OptimizationLevel, load_program
from .core.toolpath.synthesis import generate_toolpath
from .core.units import Units
from .gcode.emitter import emit, emit_toolpath
from .gcode.parser import parse_gcode
from .gcode.validate import validate_program


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="millcam",
        description="Compile primitives and operations to mill G-code, or decode G-code.",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    e = sub.add_parser("emit", help="Emit G-code from a program description (JSON)")
    e.add_argument("program", type=Path)
    e.add_argument("-o", "--output", type=Path, default=None,
                   help="Output .nc file (default: <program>.nc)")

    m = sub.add_parser("mill", help="Slice primitives (JSON) or a mesh file into G-code")
    m.add_argument("input", type=Path)
    m.add_argument("-o", "--output", type=Path, default=None,
                   help="Output .nc file (default: <input>.nc)")
    m.add_argument("--settings", type=Path, default=None,
                   help="Toolpath settings JSON (camelCase or snake_case keys)")
    m.add_argument("--depth", type=float, default=None,
                   help="Cut depth below the top surface (default: whole part)")
    m.add_argument("--units", choices=["inch", "mm"], default="mm",
                   help="Working units (default: mm)")
    m.add_argument("--optimize", choices=[lvl.value for lvl in OptimizationLevel],
                   default="basic", help="Modal word elision (default: basic)")
    m.add_argument("--block-numbers", action="store_true", help="Add N words")

    pa = sub.add_parser("parse", help="Decode G-code into points, arcs and cycles")
    pa.add_argument("input", type=Path)
    pa.add_argument("--integer", action="store_true",
                    help="Coordinates are integer thousandths")
    pa.add_argument("--json", action="store_true", help="Print the canned cycles as JSON")

    v = sub.add_parser("validate", help="Check G-code against machine limits")
    v.add_argument("input", type=Path)
    v.add_argument("--machine", choices=[mdl.value for mdl in MachineModel],
                   default=MachineModel.GENERIC.value,
                   help="Machine profile (default: generic)")
    return p


def _read(path: Path) -> str:
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return path.read_text()


def _cmd_emit(args) -> int:
    program = load_program(args.program)
    output: Path = args.output or args.program.with_suffix(".nc")
    print(f"Emitting {program.name}: {len(program.operations)} operations ...")
    output.write_text(emit(program))
    print(f"Wrote {output}")
    return 0


def _cmd_mill(args) -> int:
    if args.input.suffix.lower() in SUPPORTED_EXTENSIONS:
        print(f"Loading mesh {args.input} ...")
        elements = [load_mesh_primitive(args.input)]
    else:
        print(f"Loading primitives {args.input} ...")
        elements = load_elements(json.loads(_read(args.input)))
    print(f"  {len(elements)} top-level elements")

    settings = ToolpathSettings.load(args.settings) if args.settings else ToolpathSettings()
    toolpath = generate_toolpath(elements, settings, depth=args.depth)
    if toolpath.is_empty:
        print("Error: nothing to cut at any depth", file=sys.stderr)
        return 1
    print(f"  {len(toolpath.segments)} segments, "
          f"cutting {toolpath.cutting_length():.1f}, rapid {toolpath.rapid_length():.1f}")

    program = MachineProgram(
        name=args.input.stem,
        units=Units(args.units),
        optimization=OptimizationLevel(args.optimize),
        block_numbers=args.block_numbers,
        include_comments=settings.include_comments,
    )
    output: Path = args.output or args.input.with_suffix(".nc")
    output.write_text(emit_toolpath(toolpath, program))
    print(f"Wrote {output}")
    return 0


def _cmd_parse(args) -> int:
    parsed = parse_gcode(_read(args.input), integer_coordinates=args.integer)
    if args.json:
        print(json.dumps([
            {
                "type": c.type,
                "x": c.start_point.x,
                "y": c.start_point.y,
                "depth": c.depth,
                "retract_height": c.retract_height,
                "peck_increment": c.peck_increment,
                "dwell_time": c.dwell_time,
            }
            for c in parsed.fixed_cycles
        ], indent=2))
        return 0
    print(f"Points: {len(parsed.points)}  Arcs: {len(parsed.arcs)}  "
          f"Canned-cycle holes: {len(parsed.fixed_cycles)}")
    if parsed.bounds is not None:
        lo, hi = parsed.bounds.min, parsed.bounds.max
        print(f"  Bounds: ({lo.x:.3f}, {lo.y:.3f}, {lo.z:.3f}) -> "
              f"({hi.x:.3f}, {hi.y:.3f}, {hi.z:.3f}) {parsed.units.label()}")
    return 0


def _cmd_validate(args) -> int:
    profile = get_profile(MachineModel(args.machine))
    result = validate_program(_read(args.input), profile.limits)
    stats = result.statistics
    print(f"Machine: {profile}")
    print(f"  Rapid {stats.rapid_distance:.1f}  Cutting {stats.cutting_distance:.1f}  "
          f"Time {stats.estimated_time / 60:.1f} min  "
          f"Tool changes {stats.tool_changes}  Deepest Z {stats.max_depth:.3f}")
    for issue in result.warnings:
        print(f"  Warning: {issue}")
    if not result.is_valid:
        print("VALIDATION ERRORS:", file=sys.stderr)
        for issue in result.errors:
            print(f"  ERROR: {issue}", file=sys.stderr)
        return 1
    return 0


_COMMANDS = {
    "emit": _cmd_emit,
    "mill": _cmd_mill,
    "parse": _cmd_parse,
    "validate": _cmd_validate,
}


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return _COMMANDS[args.command](args)
    except (FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
