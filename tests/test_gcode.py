"""Tests for G-code emission: program bracket, operations, cycles, post passes."""

import pytest

from millcam.config.settings import ToolpathSettings
from millcam.core.geometry.shapes import Arc, ArcDirection, Circle
from millcam.core.geometry.vector import Point3D
from millcam.core.operation import (
    ApproachStrategy,
    Compensation,
    Coolant,
    MachineOperation,
    OperationParameters,
    OperationType,
)
from millcam.core.program import (
    Controller,
    CoordinateFormat,
    MachineProgram,
    OptimizationLevel,
)
from millcam.core.tool import Tool, ToolType
from millcam.core.toolpath.base import LinearMove, RapidMove, Toolpath
from millcam.core.toolpath.synthesis import synthesize
from millcam.core.units import Units
from millcam.gcode.cycles import cycle_code, expand_cycle, tapping_feed
from millcam.gcode.emitter import emit, emit_toolpath
from millcam.gcode.gcode_writer import WordFormat, fmt, fmt_decimal_point
from millcam.gcode.postprocess import number_blocks, optimize_modal


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _drill_op(op_type: OperationType = OperationType.DRILL, **params) -> MachineOperation:
    params.setdefault("feedrate", 100.0)
    return MachineOperation(
        type=op_type,
        tool=Tool(number=3, diameter=6.8, tool_type=ToolType.DRILL),
        depth=20.0,
        geometry=(Point3D(10, 10, 0), Point3D(20, 10, 0)),
        parameters=OperationParameters(**params),
    )


def _square_contour(**params) -> MachineOperation:
    return MachineOperation(
        type=OperationType.CONTOUR,
        tool=Tool(number=2, diameter=6.0),
        depth=4.0,
        stepdown=2.0,
        geometry=(Point3D(0, 0, 0), Point3D(10, 0, 0), Point3D(10, 10, 0), Point3D(0, 10, 0)),
        parameters=OperationParameters(**params),
    )


def _facing_op(**params) -> MachineOperation:
    return MachineOperation(
        type=OperationType.FACING,
        tool=Tool(number=5, diameter=50.0, tool_type=ToolType.FACE_MILL),
        depth=0.5,
        geometry=(Point3D(0, 0, 0), Point3D(100, 0, 0)),
        parameters=OperationParameters(**params),
    )


def _lines(program: MachineProgram) -> list[str]:
    return emit(program).splitlines()


def _index(lines: list[str], prefix: str) -> int:
    return next(i for i, line in enumerate(lines) if line.startswith(prefix))


# ---------------------------------------------------------------------------
# Word formatting
# ---------------------------------------------------------------------------


class TestWordFormat:
    @pytest.mark.parametrize("value,expected", [
        (1.5, "1.5"), (100.0, "100"), (-0.00001, "0"), (0.1234, "0.1234"),
    ])
    def test_fmt(self, value, expected):
        assert fmt(value) == expected

    @pytest.mark.parametrize("value,expected", [
        (10.0, "10."), (12.5, "12.5"), (0.0, "0."), (-0.0001, "0."), (-20.0, "-20."),
    ])
    def test_fmt_decimal_point(self, value, expected):
        assert fmt_decimal_point(value) == expected

    def test_integer_coordinates(self):
        wf = WordFormat(CoordinateFormat.INTEGER)
        assert wf.coord(12.5) == "12500"
        assert wf.coord(-20.0) == "-20000"
        assert wf.axes(x=1.0, y=None, z=-0.25) == ["X1000", "Z-250"]


# ---------------------------------------------------------------------------
# Program bracket
# ---------------------------------------------------------------------------


class TestProgramBracket:
    def test_header_order(self):
        lines = _lines(MachineProgram())
        assert lines[0] == "%"
        assert lines[-1] == "%"
        order = [_index(lines, code) for code in ("G21", "G90", "G17", "G40 G49 G80", "G54")]
        assert order == sorted(order)

    def test_inch_units(self):
        lines = _lines(MachineProgram(units=Units.INCH))
        assert "G20 (INCH)" in lines

    def test_program_number_and_material(self):
        lines = _lines(MachineProgram(name="bracket", program_number=1000, material="6061"))
        assert lines[1] == "O1000 (BRACKET)"
        assert "(MATERIAL: 6061)" in lines

    def test_footer_sequence(self):
        lines = _lines(MachineProgram())
        assert lines[-5:] == [
            "G0 Z100. (RETRACT)",
            "M5 (SPINDLE STOP)",
            "M9 (COOLANT OFF)",
            "M30 (PROGRAM END)",
            "%",
        ]

    def test_work_offset_and_extensions(self):
        lines = _lines(MachineProgram(work_offset="G55", extensions=["G64 P0.01"]))
        assert "G55 (WORK OFFSET)" in lines
        assert "G64 P0.01" in lines

    def test_high_speed_mode_bracket(self):
        lines = _lines(MachineProgram(high_speed_mode=True))
        assert _index(lines, "G05.1 Q1") < _index(lines, "G05.1 Q0") < _index(lines, "M30")

    def test_comments_can_be_disabled(self):
        text = emit(MachineProgram(operations=[_drill_op()], include_comments=False))
        assert "(" not in text


# ---------------------------------------------------------------------------
# Tool change
# ---------------------------------------------------------------------------


class TestToolChange:
    def test_sequence(self):
        lines = _lines(MachineProgram(operations=[_drill_op()]))
        t = _index(lines, "T3 M6")
        assert lines[t - 1] == "G0 Z100."
        assert lines[t + 1] == "G43 H3"
        assert lines[t + 2] == "S3000 M3"
        assert lines[t + 3] == "M8"

    def test_max_rpm_caps_spindle(self):
        op = _drill_op()
        op.tool.max_rpm = 2000
        assert "S2000 M3" in _lines(MachineProgram(operations=[op]))

    @pytest.mark.parametrize("coolant,code", [(Coolant.MIST, "M7"), (Coolant.OFF, "M9")])
    def test_coolant(self, coolant, code):
        lines = _lines(MachineProgram(operations=[_drill_op(coolant=coolant)]))
        assert lines[_index(lines, "S3000 M3") + 1] == code

    def test_tool_change_position(self):
        program = MachineProgram(operations=[_drill_op()],
                                 tool_change_position=Point3D(0, 200, 50))
        lines = _lines(program)
        t = _index(lines, "T3 M6")
        assert lines[t - 2:t] == ["G0 Z50.", "G0 X0. Y200."]

    def test_optional_stop_between_operations(self):
        program = MachineProgram(operations=[_drill_op(), _drill_op()], optional_stop=True)
        lines = _lines(program)
        assert lines.count("M01") == 1
        assert _index(lines, "(OPERATION 2") < _index(lines, "M01")


# ---------------------------------------------------------------------------
# Hole cycles
# ---------------------------------------------------------------------------


class TestHoleCycles:
    def test_drill(self):
        lines = _lines(MachineProgram(operations=[_drill_op()]))
        i = _index(lines, "G81")
        assert lines[i] == "G81 X10. Y10. R5. Z-20. F100 (DRILLING)"
        assert lines[i + 1] == "X20. Y10."
        assert lines[i + 2].startswith("G80")

    def test_drill_with_peck_increment(self):
        lines = _lines(MachineProgram(operations=[_drill_op(peck_increment=2.0)]))
        assert lines[_index(lines, "G83")].startswith("G83 X10. Y10. R5. Z-20. Q2. F100")

    def test_peck_defaults_to_tool_diameter(self):
        lines = _lines(MachineProgram(operations=[_drill_op(OperationType.PECK_DRILL)]))
        assert " Q6.8 " in lines[_index(lines, "G83")]

    def test_chip_break(self):
        lines = _lines(MachineProgram(operations=[_drill_op(OperationType.CHIP_BREAK_DRILL)]))
        assert lines[_index(lines, "G73")].startswith("G73 X10. Y10.")

    def test_dwell_written_in_milliseconds(self):
        lines = _lines(MachineProgram(operations=[_drill_op(dwell_time=0.5)]))
        assert " P500 " in lines[_index(lines, "G82")]

    def test_rigid_tapping(self):
        op = _drill_op(OperationType.TAP, spindle_speed=800, thread_pitch=1.25, rigid_tapping=True)
        lines = _lines(MachineProgram(operations=[op]))
        m29 = _index(lines, "M29")
        assert lines[m29] == "M29 S800 (RIGID TAPPING)"
        assert lines[m29 + 1].startswith("G84 X10. Y10. R5. Z-20. F1000")

    def test_boring(self):
        bore = _lines(MachineProgram(operations=[_drill_op(OperationType.BORE)]))
        dwell = _lines(MachineProgram(operations=[_drill_op(OperationType.BORE, dwell_time=1.0)]))
        assert any(line.startswith("G85") for line in bore)
        assert " P1000 " in dwell[_index(dwell, "G82")]

    def test_integer_format(self):
        program = MachineProgram(operations=[_drill_op()],
                                 coordinate_format=CoordinateFormat.INTEGER)
        lines = _lines(program)
        assert lines[_index(lines, "G81")].startswith("G81 X10000 Y10000 R5000 Z-20000 F100")

    def test_no_holes_is_an_error(self):
        op = _drill_op()
        op.geometry = ()
        with pytest.raises(ValueError, match="at least one hole"):
            emit(MachineProgram(operations=[op]))

    def test_cycle_code_selection(self):
        assert cycle_code(_drill_op()) == 81
        assert cycle_code(_drill_op(peck_increment=1.0)) == 83
        assert cycle_code(_drill_op(dwell_time=0.2)) == 82
        assert cycle_code(_drill_op(OperationType.TAP)) == 84
        with pytest.raises(ValueError):
            cycle_code(_square_contour())

    def test_tapping_feed(self):
        assert tapping_feed(1.25, 800) == pytest.approx(1000.0)


class TestExpandCycle:
    def test_drill_with_return_to_initial(self):
        moves = expand_cycle(81, 1.0, 2.0, initial_z=100.0, r=5.0, z=-20.0,
                             return_to_initial=True)
        assert [m.point.z for m in moves] == [100.0, 5.0, -20.0, 5.0, 100.0]
        assert [m.rapid for m in moves] == [True, True, False, True, True]

    def test_deep_peck_retracts_to_r(self):
        moves = expand_cycle(83, 0.0, 0.0, initial_z=5.0, r=5.0, z=-20.0, q=8.0)
        feeds = [m.point.z for m in moves if not m.rapid]
        assert feeds == [-3.0, -11.0, -19.0, -20.0]
        retracts = [m.point.z for m in moves[2:-1] if m.rapid]
        assert retracts == [5.0, 5.0, 5.0]

    def test_chip_break_backs_off(self):
        moves = expand_cycle(73, 0.0, 0.0, initial_z=5.0, r=5.0, z=-20.0, q=8.0)
        assert moves[3].point.z == pytest.approx(-2.5)
        assert moves[3].rapid

    def test_tapping_feeds_out(self):
        moves = expand_cycle(84, 0.0, 0.0, initial_z=5.0, r=5.0, z=-10.0)
        assert moves[-1].point.z == 5.0
        assert not moves[-1].rapid

    def test_traverse_at_current_height(self):
        moves = expand_cycle(81, 0.0, 0.0, initial_z=0.0, r=5.0, z=-10.0, current_z=5.0)
        assert moves[0].point.z == 5.0


# ---------------------------------------------------------------------------
# Profile / contour
# ---------------------------------------------------------------------------


class TestProfile:
    def test_compensation_wraps_passes(self):
        op = _square_contour(compensation=Compensation.LEFT)
        lines = _lines(MachineProgram(operations=[op]))
        g41 = _index(lines, "G41 D2")
        g40 = max(i for i, line in enumerate(lines) if line.startswith("G40 (CANCEL CUTTER"))
        cuts = [i for i, line in enumerate(lines) if line.startswith("G1 ")]
        assert g41 < min(cuts)
        assert g40 > max(cuts)

    def test_stepdown_passes(self):
        lines = _lines(MachineProgram(operations=[_square_contour()]))
        assert "(PASS 1/2 Z-2.000)" in lines
        assert "(PASS 2/2 Z-4.000)" in lines
        assert "G1 Z-2. F100" in lines
        assert "G1 Z-4. F100" in lines
        assert sum("(CLOSE LOOP)" in line for line in lines) == 2

    def test_arc_geometry(self):
        op = _square_contour()
        op.geometry = (
            Point3D(0, 0, 0),
            Arc(center=(5.0, 0.0), start=Point3D(0, 0, 0), end=Point3D(10, 0, 0),
                radius=5.0, direction=ArcDirection.CW),
        )
        lines = _lines(MachineProgram(operations=[op]))
        assert "G2 X10. Y0. I5. J0. F500" in lines

    def test_helix_entry(self):
        lines = _lines(MachineProgram(operations=[_square_contour(approach=ApproachStrategy.HELIX)]))
        helix = [line for line in lines if "(HELIX ENTRY)" in line]
        assert len(helix) == 2
        assert helix[0].startswith("G3 X0. Y0. Z-2. I-2.4 J0.")

    def test_ramp_entry(self):
        lines = _lines(MachineProgram(operations=[_square_contour(approach=ApproachStrategy.RAMP)]))
        ramp = [line for line in lines if "(RAMP ENTRY)" in line]
        assert ramp[0].startswith("G1 X10. Z-2.")

    def test_missing_geometry(self):
        op = _square_contour()
        op.geometry = ()
        with pytest.raises(ValueError, match="geometry"):
            emit(MachineProgram(operations=[op]))

    def test_zero_depth_is_one_pass_at_surface(self):
        op = _square_contour()
        op.depth = 0.0
        op.stepdown = None
        lines = _lines(MachineProgram(operations=[op]))
        assert "(PASS 1/1 Z0.000)" in lines
        assert "G1 Z0. F100" in lines
        assert sum(line.startswith("(PASS") for line in lines) == 1

    def test_ramp_at_zero_depth_plunges(self):
        op = _square_contour(approach=ApproachStrategy.RAMP)
        op.depth = 0.0
        op.stepdown = None
        lines = _lines(MachineProgram(operations=[op]))
        assert not any("(RAMP ENTRY)" in line for line in lines)


# ---------------------------------------------------------------------------
# Facing
# ---------------------------------------------------------------------------


class TestFacing:
    def test_parallel_passes(self):
        lines = _lines(MachineProgram(operations=[_facing_op(facing_width=60.0)]))
        passes = [line for line in lines if "(FACE PASS" in line]
        assert len(passes) == 4
        assert passes[0] == "G1 X100. Y0. F500 (FACE PASS 1)"
        assert passes[1] == "G1 X0. Y20. F500 (FACE PASS 2)"
        assert passes[-1].startswith("G1 X0. Y60.")
        assert "G1 Z-0.5 F100" in lines

    def test_coincident_points(self):
        op = _facing_op()
        op.geometry = (Point3D(1, 1, 0), Point3D(1, 1, 0))
        with pytest.raises(ValueError, match="coincide"):
            emit(MachineProgram(operations=[op]))

    def test_needs_two_points(self):
        op = _facing_op()
        op.geometry = (Point3D(0, 0, 0),)
        with pytest.raises(ValueError, match="start and an end"):
            emit(MachineProgram(operations=[op]))

    def test_zero_diameter_without_stepover(self):
        op = _facing_op()
        op.tool = Tool(number=5, diameter=0.0, tool_type=ToolType.FACE_MILL)
        lines = _lines(MachineProgram(operations=[op]))
        passes = [line for line in lines if "(FACE PASS" in line]
        assert passes == [
            "G1 X100. Y0. F500 (FACE PASS 1)",
            "G1 X0. Y100. F500 (FACE PASS 2)",
        ]


# ---------------------------------------------------------------------------
# Control dialects
# ---------------------------------------------------------------------------


class TestControllers:
    def test_generic_has_no_bracket(self):
        lines = _lines(MachineProgram(controller=Controller.GENERIC, program_number=1000))
        assert "%" not in lines
        assert not any(line.startswith("O") for line in lines)
        assert lines[0] == "(PROGRAM)"
        assert lines[-1] == "M30 (PROGRAM END)"

    def test_generic_drops_vendor_codes(self):
        op = _drill_op(OperationType.TAP, spindle_speed=800, thread_pitch=1.25, rigid_tapping=True)
        program = MachineProgram(operations=[op], controller=Controller.GENERIC,
                                 high_speed_mode=True)
        lines = _lines(program)
        assert not any(line.startswith(("M29", "G05.1")) for line in lines)
        assert lines[_index(lines, "G84")].startswith("G84 X10. Y10. R5. Z-20. F1000")

    def test_heidenhain_bracket(self):
        program = MachineProgram(name="side plate", controller=Controller.HEIDENHAIN)
        lines = _lines(program)
        assert lines[0] == "BEGIN PGM SIDE_PLATE MM"
        assert lines[-1] == "END PGM SIDE_PLATE MM"
        assert "G71 (MM)" in lines
        assert "G40 (CANCEL COMP)" in lines
        assert not any(line.startswith(("G54", "G94", "%")) for line in lines)

    def test_heidenhain_inch(self):
        lines = _lines(MachineProgram(controller=Controller.HEIDENHAIN, units=Units.INCH))
        assert lines[0] == "BEGIN PGM PROGRAM INCH"
        assert "G70 (INCH)" in lines

    def test_heidenhain_tool_call(self):
        program = MachineProgram(operations=[_drill_op()], controller=Controller.HEIDENHAIN)
        lines = _lines(program)
        t = _index(lines, "TOOL CALL 3 Z S3000")
        assert lines[t + 1:t + 3] == ["M3", "M8"]
        assert not any(line.startswith(("T3 M6", "G43")) for line in lines)

    def test_heidenhain_writes_holes_as_moves(self):
        program = MachineProgram(operations=[_drill_op()], controller=Controller.HEIDENHAIN)
        lines = _lines(program)
        assert not any(line.startswith(("G81", "G80")) for line in lines)
        first = _index(lines, "(HOLE 1)")
        assert lines[first + 1:first + 5] == ["G0 X10. Y10.", "G0 Z5.", "G1 Z-20. F100", "G0 Z5."]
        assert "(HOLE 2)" in lines

    def test_keyword_blocks_survive_optimisation(self):
        program = MachineProgram(operations=[_drill_op(), _drill_op()],
                                 controller=Controller.HEIDENHAIN,
                                 optimization=OptimizationLevel.ADVANCED)
        lines = _lines(program)
        assert lines.count("TOOL CALL 3 Z S3000 (DRILL D=6.8)") == 2
        assert lines[-1] == "END PGM PROGRAM MM"

    def test_from_dict(self):
        assert MachineProgram.from_dict({"controller": "heidenhain"}).controller is Controller.HEIDENHAIN
        assert MachineProgram.from_dict({}).controller is Controller.FANUC
        with pytest.raises(ValueError):
            MachineProgram.from_dict({"controller": "siemens"})


class TestExpandedHoles:
    def test_drill_without_canned_cycle(self):
        lines = _lines(MachineProgram(operations=[_drill_op(use_canned_cycle=False)]))
        assert not any(line.startswith("G81") for line in lines)
        second = _index(lines, "(HOLE 2)")
        assert lines[second + 1:second + 5] == ["G0 X20. Y10.", "G0 Z5.", "G1 Z-20. F100", "G0 Z5."]

    def test_dwell_at_bottom(self):
        lines = _lines(MachineProgram(operations=[_drill_op(use_canned_cycle=False, dwell_time=0.5)]))
        bottom = lines.index("G1 Z-20. F100")
        assert lines[bottom + 1] == "G4 P500 (DWELL)"
        assert lines[bottom + 2] == "G0 Z5."

    def test_peck_returns_to_r(self):
        lines = _lines(MachineProgram(operations=[_drill_op(use_canned_cycle=False,
                                                            peck_increment=10.0)]))
        first = _index(lines, "(HOLE 1)")
        assert lines[first + 1:first + 8] == [
            "G0 X10. Y10.", "G0 Z5.",
            "G1 Z-5. F100", "G0 Z5.",
            "G1 Z-15. F100", "G0 Z5.",
            "G1 Z-20. F100",
        ]

    def test_tap_reverses_spindle(self):
        op = _drill_op(OperationType.TAP, spindle_speed=800, thread_pitch=1.25,
                       rigid_tapping=True, use_canned_cycle=False)
        lines = _lines(MachineProgram(operations=[op]))
        assert not any(line.startswith(("G84", "M29")) for line in lines)
        first = _index(lines, "(HOLE 1)")
        assert lines[first + 3:first + 7] == [
            "G1 Z-20. F1000", "M4 (REVERSE OUT)", "G1 Z5. F1000", "M3",
        ]


# ---------------------------------------------------------------------------
# Synthesized toolpaths
# ---------------------------------------------------------------------------


class TestEmitToolpath:
    def test_circle_level(self):
        segs = synthesize([Circle((0.0, 0.0), 10.0)], -1.0, ToolpathSettings())
        lines = emit_toolpath(Toolpath(segs)).splitlines()
        assert "(Z LEVEL -1.000)" in lines
        assert "G3 X13. Y0. Z-1. I-13. J0. F1000" in lines
        assert lines[-2].startswith("M30")

    def test_tool_change_included(self):
        tp = Toolpath([RapidMove(Point3D(0, 0, 5), Point3D(1, 0, 5))])
        text = emit_toolpath(tp, tool=Tool(number=7, diameter=3.0))
        assert "T7 M6" in text
        assert "G43 H7" in text

    def test_advanced_optimization_drops_modal_words(self):
        tp = Toolpath([
            LinearMove(Point3D(0, 0, 0), Point3D(1, 0, 0), 200.0),
            LinearMove(Point3D(1, 0, 0), Point3D(2, 0, 0), 200.0),
        ])
        program = MachineProgram(optimization=OptimizationLevel.ADVANCED)
        lines = emit_toolpath(tp, program).splitlines()
        assert "G1 X1. Y0. Z0. F200" in lines
        assert "X2. Y0. Z0." in lines

    def test_block_numbers(self):
        program = MachineProgram(block_numbers=True)
        lines = emit_toolpath(Toolpath(), program).splitlines()
        numbered = [line for line in lines if line.startswith("N")]
        assert numbered[0] == "N0010 G21 (MM)"
        assert numbered[1].startswith("N0020 G90")
        assert lines[0] == "%"
        assert lines[1] == "(PROGRAM)"


# ---------------------------------------------------------------------------
# Post passes
# ---------------------------------------------------------------------------


class TestPostprocess:
    def test_basic_drops_repeated_feed_and_speed(self):
        out = optimize_modal(["G1 X1. F100", "G1 X2. F100", "S3000 M3", "S3000 M3"],
                             OptimizationLevel.BASIC)
        assert out == ["G1 X1. F100", "G1 X2.", "S3000 M3", "M3"]

    def test_advanced_drops_repeated_motion(self):
        out = optimize_modal(["G0 X0.", "G0 X1.", "G1 Z-1. F100", "G1 X2. F100"],
                             OptimizationLevel.ADVANCED)
        assert out == ["G0 X0.", "X1.", "G1 Z-1. F100", "X2."]

    def test_cycle_resets_motion_mode(self):
        out = optimize_modal(
            ["G1 X0. F100", "G81 X1. Y1. R5. Z-1. F100", "G80", "G1 X2."],
            OptimizationLevel.ADVANCED,
        )
        assert out == ["G1 X0. F100", "G81 X1. Y1. R5. Z-1.", "G80", "G1 X2."]

    def test_rigid_tap_keeps_spindle(self):
        out = optimize_modal(["S800 M3", "M29 S800"], OptimizationLevel.BASIC)
        assert out == ["S800 M3", "M29 S800"]

    def test_empty_lines_removed_comments_kept(self):
        out = optimize_modal(["F100", "F100", "F100 (NOTE)"], OptimizationLevel.BASIC)
        assert out == ["F100", "(NOTE)"]

    def test_none_is_passthrough(self):
        lines = ["G1 X1. F100", "G1 X1. F100"]
        assert optimize_modal(lines, OptimizationLevel.NONE) == lines

    def test_number_blocks_skips_comments(self):
        out = number_blocks(["%", "(HDR)", "G21", "G90"], start=10, increment=5)
        assert out == ["%", "(HDR)", "N0010 G21", "N0015 G90"]
