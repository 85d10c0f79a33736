"""Unit system enum and conversion helpers."""

from enum import Enum

_ALIASES = {
    "inch": "inch", "in": "inch", "imperial": "inch", "g20": "inch",
    "mm": "mm", "metric": "mm", "g21": "mm",
}


class Units(Enum):
    INCH = "inch"
    MM = "mm"

    @property
    def per_mm(self) -> float:
        """How many of this unit make one millimetre."""
        return 1.0 / 25.4 if self is Units.INCH else 1.0

    def to_mm(self, value: float) -> float:
        return value / self.per_mm

    def from_mm(self, value: float) -> float:
        return value * self.per_mm

    def convert(self, value: float, target: "Units") -> float:
        """Express *value* (in these units) in *target* units."""
        return target.from_mm(self.to_mm(value))

    def label(self) -> str:
        return "in" if self is Units.INCH else "mm"

    @property
    def gcode_modal(self) -> str:
        """G-code modal group 6 word."""
        return "G20" if self is Units.INCH else "G21"

    @classmethod
    def from_gcode(cls, code: int) -> "Units":
        """Units selected by ``G20`` / ``G21`` (``G70`` / ``G71`` on Heidenhain)."""
        if code in (20, 70):
            return cls.INCH
        if code in (21, 71):
            return cls.MM
        raise ValueError(f"G{code} is not a units code")

    @classmethod
    def parse(cls, text: str) -> "Units":
        """Lenient lookup: ``"in"``, ``"metric"``, ``"G21"`` ..."""
        try:
            return cls(_ALIASES[text.strip().lower()])
        except KeyError:
            raise ValueError(f"Unknown units '{text}'") from None
