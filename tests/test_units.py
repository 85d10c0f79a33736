"""Tests for units module."""

import pytest
from millcam.core.units import Units


class TestUnits:
    def test_inch_to_mm(self):
        assert Units.INCH.to_mm(1.0) == pytest.approx(25.4)

    def test_mm_to_mm(self):
        assert Units.MM.to_mm(25.4) == pytest.approx(25.4)

    def test_inch_from_mm(self):
        assert Units.INCH.from_mm(25.4) == pytest.approx(1.0)

    def test_convert_between_systems(self):
        assert Units.MM.convert(50.8, Units.INCH) == pytest.approx(2.0)
        assert Units.INCH.convert(2.0, Units.MM) == pytest.approx(50.8)

    def test_gcode_modal(self):
        assert Units.INCH.gcode_modal == "G20"
        assert Units.MM.gcode_modal == "G21"

    def test_from_gcode(self):
        assert Units.from_gcode(20) is Units.INCH
        assert Units.from_gcode(21) is Units.MM
        with pytest.raises(ValueError):
            Units.from_gcode(90)

    @pytest.mark.parametrize("text,expected", [
        ("inch", Units.INCH), ("IN", Units.INCH), ("metric", Units.MM), ("G21", Units.MM),
    ])
    def test_parse_aliases(self, text, expected):
        assert Units.parse(text) is expected

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Unknown units"):
            Units.parse("furlong")

    def test_labels(self):
        assert Units.INCH.label() == "in"
        assert Units.MM.label() == "mm"
