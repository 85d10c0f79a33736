"""Low-level G-code word and line formatting helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.program import CoordinateFormat

# Scale between a coordinate and its integer (thousandths) form
INTEGER_SCALE = 1000


def fmt(value: float, decimals: int = 4) -> str:
    """Format a float for G-code, stripping trailing zeros."""
    text = f"{value:.{decimals}f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def fmt_decimal_point(value: float, decimals: int = 3) -> str:
    """Like :func:`fmt` but keeps the decimal point (``10.`` not ``10``).

    Controllers that read a bare integer as least-input-increments need it.
    """
    text = f"{value:.{decimals}f}".rstrip("0")
    return "0." if text in ("-0.", "0.") else text


@dataclass(frozen=True)
class WordFormat:
    """How coordinate words are written for one program."""

    coordinate_format: CoordinateFormat = CoordinateFormat.DECIMAL
    decimals: int = 3

    def coord(self, value: float) -> str:
        if self.coordinate_format is CoordinateFormat.INTEGER:
            return str(int(round(value * INTEGER_SCALE)))
        return fmt_decimal_point(value, self.decimals)

    def feed(self, value: float) -> str:
        return fmt(value, 1)

    def axes(self, **words: Optional[float]) -> list[str]:
        """``X1. Y2.`` style words for every axis given a value."""
        return [f"{k.upper()}{self.coord(v)}" for k, v in words.items() if v is not None]


DEFAULT_FORMAT = WordFormat()


def rapid(
    x: Optional[float] = None,
    y: Optional[float] = None,
    z: Optional[float] = None,
    wf: WordFormat = DEFAULT_FORMAT,
) -> str:
    """G0 rapid traverse."""
    return " ".join(["G0"] + wf.axes(x=x, y=y, z=z))


def linear(
    x: Optional[float] = None,
    y: Optional[float] = None,
    z: Optional[float] = None,
    f: Optional[float] = None,
    wf: WordFormat = DEFAULT_FORMAT,
) -> str:
    """G1 linear interpolation."""
    parts = ["G1"] + wf.axes(x=x, y=y, z=z)
    if f is not None:
        parts.append(f"F{wf.feed(f)}")
    return " ".join(parts)


def arc(
    clockwise: bool,
    x: Optional[float] = None,
    y: Optional[float] = None,
    z: Optional[float] = None,
    i: Optional[float] = None,
    j: Optional[float] = None,
    f: Optional[float] = None,
    wf: WordFormat = DEFAULT_FORMAT,
) -> str:
    """G2 / G3 circular interpolation with incremental I/J centre words."""
    parts = ["G2" if clockwise else "G3"] + wf.axes(x=x, y=y, z=z, i=i, j=j)
    if f is not None:
        parts.append(f"F{wf.feed(f)}")
    return " ".join(parts)


def comment(text: str) -> str:
    """Wrap *text* in a parenthetical comment."""
    # Nested parens would end the comment early
    cleaned = text.replace("(", "").replace(")", "")
    return f"({cleaned})"


def with_comment(line: str, text: str, enabled: bool = True) -> str:
    """Append a trailing comment to *line* when *enabled*."""
    return f"{line} {comment(text)}" if enabled else line
