"""Compiled magic byte patterns.

A magic clause compares bytes at a fixed offset, or anywhere inside an
offset window, against a literal value with an optional bit mask.  Clauses
may carry children that must match as well; siblings are alternatives.
Child offsets are absolute, counted from the start of the stream.
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field

# Extra bytes a regex clause may consume past the last start offset.
REGEX_TAIL = 256

_NUMERIC_WIDTHS = {
    "byte": (1, "big"),
    "big16": (2, "big"),
    "little16": (2, "little"),
    "host16": (2, sys.byteorder),
    "big32": (4, "big"),
    "little32": (4, "little"),
    "host32": (4, sys.byteorder),
}

_ESCAPE_RE = re.compile(r"\\(x[0-9A-Fa-f]{1,2}|[0-7]{1,3}|.)", re.DOTALL)
_SIMPLE_ESCAPES = {"n": b"\n", "r": b"\r", "t": b"\t", "\\": b"\\", "'": b"'", '"': b'"'}

PATTERN_KINDS = ("string", "hex", "regex", "unicodeLE", *_NUMERIC_WIDTHS)


@dataclass(frozen=True)
class MagicClause:
    """A single byte comparison, possibly with nested requirements."""

    value: bytes
    start: int = 0
    end: int = 0
    mask: bytes | None = None
    regex: re.Pattern | None = None
    children: tuple[MagicClause, ...] = field(default=())

    @property
    def lookahead(self) -> int:
        """Bytes of input this clause (and its children) may inspect."""
        if self.regex is not None:
            own = self.end + REGEX_TAIL
        else:
            own = self.end + len(self.value)
        return max([own] + [c.lookahead for c in self.children])

    def _match_at(self, data: bytes) -> int | None:
        """Return the literal length matched by this clause alone."""
        if self.regex is not None:
            m = self.regex.search(data, self.start, self.end + REGEX_TAIL)
            if m is None or m.start() > self.end:
                return None
            return m.end() - m.start()

        size = len(self.value)
        last = min(self.end, len(data) - size)
        if last < self.start:
            return None
        if self.mask is None:
            pos = data.find(self.value, self.start, last + size)
            return size if pos != -1 else None

        mask = int.from_bytes(self.mask, "big")
        want = int.from_bytes(self.value, "big") & mask
        for pos in range(self.start, last + 1):
            got = int.from_bytes(data[pos:pos + size], "big")
            if got & mask == want:
                return size
        return None

    def evaluate(self, data: bytes) -> int | None:
        """Match against *data*.

        Returns
        -------
        int or None
            Number of pattern bytes along the best matching chain, or
            *None* when the clause does not match.
        """
        own = self._match_at(data)
        if own is None:
            return None
        if not self.children:
            return own
        best = None
        for child in self.children:
            length = child.evaluate(data)
            if length is not None and (best is None or length > best):
                best = length
        if best is None:
            return None
        return own + best


def unescape(text: str) -> bytes:
    r"""Decode a magic string value with ``\xNN``, octal and C escapes."""
    out = bytearray()
    pos = 0
    for m in _ESCAPE_RE.finditer(text):
        out += text[pos:m.start()].encode("utf-8")
        esc = m.group(1)
        if esc[0] == "x":
            out.append(int(esc[1:], 16))
        elif esc[0] in "01234567":
            code = int(esc, 8)
            if code > 0xFF:
                raise ValueError(f"Octal escape out of range: \\{esc}")
            out.append(code)
        else:
            out += _SIMPLE_ESCAPES.get(esc, esc.encode("utf-8"))
        pos = m.end()
    out += text[pos:].encode("utf-8")
    return bytes(out)


def parse_offset(offset: int | str | None) -> tuple[int, int]:
    """Parse ``12`` or ``"0:64"`` into an inclusive ``(start, end)`` pair."""
    if offset is None or offset == "":
        return 0, 0
    if isinstance(offset, bool):
        raise ValueError(f"Invalid offset: {offset!r}")
    if isinstance(offset, int):
        start = end = offset
    else:
        parts = str(offset).split(":")
        if len(parts) > 2:
            raise ValueError(f"Invalid offset: {offset!r}")
        try:
            start = int(parts[0].strip())
            end = int(parts[1].strip()) if len(parts) == 2 else start
        except ValueError:
            raise ValueError(f"Invalid offset: {offset!r}") from None
    if start < 0 or end < start:
        raise ValueError(f"Invalid offset range: {offset!r}")
    return start, end


def _parse_hex(value: str | list) -> bytes:
    if isinstance(value, list):
        try:
            return bytes(value)
        except TypeError:
            raise ValueError(f"Invalid byte list: {value!r}") from None
    text = str(value).strip()
    if text.lower().startswith("0x"):
        text = text[2:]
    return bytes.fromhex(text.replace(" ", ""))


def _parse_numeric(kind: str, value: int | str) -> bytes:
    width, order = _NUMERIC_WIDTHS[kind]
    number = value if isinstance(value, int) else int(str(value).strip(), 0)
    try:
        return number.to_bytes(width, order)
    except OverflowError:
        raise ValueError(f"Value {value!r} does not fit in {kind}") from None


def compile_clause(
    kind: str,
    value,
    offset: int | str | None = None,
    mask=None,
    children: tuple[MagicClause, ...] = (),
) -> MagicClause:
    """Build a :class:`MagicClause` from its textual description.

    Raises
    ------
    ValueError
        If the kind is unknown or the value, mask or offset is malformed.
    """
    if kind not in PATTERN_KINDS:
        raise ValueError(f"Unknown pattern type {kind!r}")
    if value is None or value == "":
        raise ValueError("Pattern value is empty")
    start, end = parse_offset(offset)

    if kind == "regex":
        try:
            pattern = re.compile(str(value).encode("utf-8"), re.DOTALL)
        except re.error as exc:
            raise ValueError(f"Invalid regex {value!r}: {exc}") from None
        return MagicClause(value=b"", start=start, end=end, regex=pattern,
                           children=tuple(children))

    if kind == "hex":
        data = _parse_hex(value)
    elif kind == "string":
        data = unescape(str(value))
    elif kind == "unicodeLE":
        data = str(value).encode("utf-16-le")
    else:
        data = _parse_numeric(kind, value)
    if not data:
        raise ValueError("Pattern value is empty")

    mask_bytes = None
    if mask is not None:
        if kind in _NUMERIC_WIDTHS and not isinstance(mask, list):
            mask_bytes = _parse_numeric(kind, mask)
        else:
            mask_bytes = _parse_hex(mask)
        if len(mask_bytes) != len(data):
            raise ValueError(
                f"Mask length {len(mask_bytes)} does not match value length {len(data)}"
            )
    return MagicClause(value=data, start=start, end=end, mask=mask_bytes,
                       children=tuple(children))
