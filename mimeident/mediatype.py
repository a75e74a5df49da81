"""Media type identifiers such as ``application/gzip``."""

from __future__ import annotations

import re
from dataclasses import dataclass

# RFC 6838 restricted-name characters.
_TOKEN = r"[A-Za-z0-9][A-Za-z0-9!#$&^_.+-]*"
_TYPE_RE = re.compile(rf"^\s*({_TOKEN})/({_TOKEN})\s*(;.*)?$")
_PARAM_RE = re.compile(rf"^\s*({_TOKEN})\s*=\s*(\"[^\"]*\"|[^;\s]+)\s*$")


@dataclass(frozen=True)
class MediaType:
    """An immutable ``type/subtype`` pair with optional parameters.

    Category and subtype are stored lower-cased so that equality and
    hashing are case-insensitive.  Parameter names are lower-cased too;
    parameter values are kept as given.
    """

    type: str
    subtype: str
    parameters: tuple[tuple[str, str], ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "type", self.type.lower())
        object.__setattr__(self, "subtype", self.subtype.lower())
        params = tuple(sorted((k.lower(), v) for k, v in self.parameters))
        object.__setattr__(self, "parameters", params)

    @classmethod
    def parse(cls, text: str) -> MediaType:
        """Parse ``type/subtype; name=value`` text.

        Raises
        ------
        ValueError
            If *text* is not a well formed media type.
        """
        m = _TYPE_RE.match(text or "")
        if m is None:
            raise ValueError(f"Invalid media type: {text!r}")
        params: list[tuple[str, str]] = []
        for chunk in (m.group(3) or "").split(";")[1:]:
            if not chunk.strip():
                continue
            pm = _PARAM_RE.match(chunk)
            if pm is None:
                raise ValueError(f"Invalid media type parameter {chunk.strip()!r} in {text!r}")
            params.append((pm.group(1), pm.group(2).strip('"')))
        return cls(m.group(1), m.group(2), tuple(params))

    @property
    def base(self) -> MediaType:
        """This type with its parameters dropped."""
        if not self.parameters:
            return self
        return MediaType(self.type, self.subtype)

    @property
    def is_text(self) -> bool:
        return self.type == "text"

    def __str__(self) -> str:
        text = f"{self.type}/{self.subtype}"
        for name, value in self.parameters:
            text += f"; {name}={value}"
        return text


OCTET_STREAM = MediaType("application", "octet-stream")
TEXT_PLAIN = MediaType("text", "plain")
