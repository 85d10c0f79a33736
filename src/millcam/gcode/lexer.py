"""Tokenizer shared by the G-code parser and the program validator.

A line becomes a :class:`Block` of address words.  ``( ... )`` comments and
anything after ``;`` are collected separately.  Lines that hold characters
other than words and comments raise :class:`GCodeSyntaxError`; the lenient
:func:`tokenize` logs and skips them.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterator, Optional

logger = logging.getLogger(__name__)

WORD_RE = re.compile(r"([A-Za-z])\s*([-+]?(?:\d+\.?\d*|\.\d+))")
_PAREN_COMMENT_RE = re.compile(r"\(([^)]*)\)")


class GCodeSyntaxError(ValueError):
    """A line that is not a sequence of address words."""


@dataclass(frozen=True)
class Word:
    letter: str
    value: float


@dataclass(frozen=True)
class Block:
    """One tokenized line."""
    line_number: int
    words: tuple[Word, ...] = field(default_factory=tuple)
    comment: str = ""

    def get(self, letter: str) -> Optional[float]:
        """Value of the last *letter* word on the line, or None."""
        for w in reversed(self.words):
            if w.letter == letter:
                return w.value
        return None

    def has(self, letter: str) -> bool:
        return any(w.letter == letter for w in self.words)

    def codes(self, letter: str) -> list[float]:
        """Every G or M code on the line (several may share one block)."""
        return [w.value for w in self.words if w.letter == letter]

    def has_code(self, letter: str, number: float) -> bool:
        return any(abs(v - number) < 1e-6 for v in self.codes(letter))

    @property
    def is_empty(self) -> bool:
        return not self.words


def split_comment(line: str) -> tuple[str, str]:
    """Return (code, comment text)."""
    comments = _PAREN_COMMENT_RE.findall(line)
    code = _PAREN_COMMENT_RE.sub(" ", line)
    if ";" in code:
        code, tail = code.split(";", 1)
        comments.append(tail)
    return code, " ".join(c.strip() for c in comments if c.strip())


def tokenize_line(line: str, line_number: int = 0) -> Block:
    """Tokenize one line.  Raises GCodeSyntaxError on stray characters."""
    code, text = split_comment(line)
    code = code.strip()
    if code == "%":
        code = ""
    elif code.startswith("/"):
        # Block delete is not honoured: the block always runs
        code = code[1:]
    words = []
    pos = 0
    for m in WORD_RE.finditer(code):
        gap = code[pos:m.start()]
        if gap.strip():
            raise GCodeSyntaxError(f"line {line_number}: unexpected {gap.strip()!r}")
        words.append(Word(m.group(1).upper(), float(m.group(2))))
        pos = m.end()
    tail = code[pos:].strip()
    if tail and tail != "%":
        raise GCodeSyntaxError(f"line {line_number}: unexpected {tail!r}")
    return Block(line_number=line_number, words=tuple(words), comment=text)


def tokenize(text: str) -> Iterator[Block]:
    """Yield one Block per well-formed line; malformed lines are skipped."""
    for n, line in enumerate(text.splitlines(), start=1):
        try:
            yield tokenize_line(line, n)
        except GCodeSyntaxError as exc:
            logger.debug("Skipping malformed line: %s", exc)
