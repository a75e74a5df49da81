"""Signature and filename based candidate discovery.

:class:`SignatureMatcher` compares the leading bytes of a stream against
the repository's magic rules (and container probes) to produce ranked
content candidates.  :class:`HintResolver` does the same for a filename
using glob rules; its candidates are only ever a secondary signal.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import BinaryIO

from mimeident.disambiguate import CONTAINER_WINDOW, probe_container
from mimeident.errors import SourceReadError
from mimeident.mediatype import MediaType
from mimeident.repository import RuleRepository

logger = logging.getLogger(__name__)

MIN_READ = 512


@dataclass(frozen=True)
class Candidate:
    """A media type suggested by one piece of evidence.

    Attributes
    ----------
    media_type : MediaType
        Canonical suggested type.
    priority : int
        Rule priority for content evidence; glob kind rank for hints
        (3 literal, 2 extension, 1 glob).
    literal_length : int
        Pattern bytes (or pattern characters for globs) that matched.
    order : int
        Declaration position of the rule, used as the final tie-break.
    source : str
        ``"magic"``, ``"container"`` or ``"glob"``.
    """

    media_type: MediaType
    priority: int
    literal_length: int
    order: int
    source: str = "magic"


def _strength(c: Candidate) -> tuple[int, int, int]:
    return (c.priority, c.literal_length, -c.order)


def _best_per_type(candidates: list[Candidate]) -> list[Candidate]:
    best: dict[MediaType, Candidate] = {}
    for c in candidates:
        current = best.get(c.media_type)
        if current is None or _strength(c) > _strength(current):
            best[c.media_type] = c
    return list(best.values())


def rank_candidates(candidates: list[Candidate], repository: RuleRepository) -> list[Candidate]:
    """Order content candidates from most to least likely.

    Higher priority wins.  Within one priority a type ranks above any of
    its own supertypes; unrelated types are ordered by longer literal
    match, then by declaration order.
    """
    remaining = _best_per_type(candidates)
    ranked: list[Candidate] = []
    for priority in sorted({c.priority for c in remaining}, reverse=True):
        group = [c for c in remaining if c.priority == priority]
        while group:
            leaves = [
                c for c in group
                if not any(o is not c and repository.is_a(o.media_type, c.media_type)
                           for o in group)
            ]
            pick = min(leaves, key=lambda c: (-c.literal_length, c.order))
            ranked.append(pick)
            group.remove(pick)
    return ranked


def read_head(reader: BinaryIO, size: int) -> bytes:
    """Read up to *size* leading bytes from *reader*.

    Short reads are retried until *size* bytes or end of stream.  A
    seekable reader is put back where it started.

    Raises
    ------
    SourceReadError
        If the reader fails.
    """
    try:
        seekable = getattr(reader, "seekable", None)
        start = reader.tell() if seekable is not None and seekable() else None
        chunks: list[bytes] = []
        remaining = size
        while remaining > 0:
            chunk = reader.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        if start is not None:
            reader.seek(start)
    except (OSError, ValueError) as exc:
        # closed or detached streams raise ValueError
        message = f"Failed to read byte source: {exc}"
        errno = getattr(exc, "errno", None)
        args = (errno, message) if errno is not None else (message,)
        raise SourceReadError(*args) from exc
    return b"".join(chunks)


class SignatureMatcher:
    """Match leading bytes against a repository's signatures.

    Parameters
    ----------
    repository : RuleRepository
        Compiled rule set.
    """

    def __init__(self, repository: RuleRepository):
        self.repository = repository
        self.max_read = self._compute_max_read()

    def _compute_max_read(self) -> int:
        """Determine how many bytes we need to read for identification."""
        needed = max(self.repository.lookahead, MIN_READ)
        if self.repository.containers:
            needed = max(needed, CONTAINER_WINDOW)
        return needed

    def match_bytes(self, data: bytes) -> list[Candidate]:
        """Return ranked candidates for the leading bytes *data*."""
        data = data[:self.max_read]
        found: list[Candidate] = []
        for rule in self.repository.signatures:
            length = rule.evaluate(data)
            if length is not None:
                found.append(Candidate(rule.media_type, rule.priority, length, rule.order))

        offset = len(self.repository.signatures)
        for rule, length in probe_container(data, self.repository.containers):
            found.append(Candidate(rule.media_type, rule.priority, length,
                                   offset + rule.order, source="container"))

        ranked = rank_candidates(found, self.repository)
        if ranked:
            logger.debug("Signature candidates: %s",
                         ", ".join(str(c.media_type) for c in ranked))
        return ranked

    def match(self, reader: BinaryIO) -> list[Candidate]:
        """Read a bounded prefix of *reader* and match it."""
        return self.match_bytes(read_head(reader, self.max_read))


class HintResolver:
    """Suggest media types from a filename using glob rules."""

    def __init__(self, repository: RuleRepository):
        self.repository = repository

    def resolve(self, filename: str | None) -> list[Candidate]:
        """Return candidates for *filename*, most specific first.

        Literal names beat extension globs, which beat general globs;
        then longer patterns win, then declaration order.
        """
        if not filename:
            return []
        name = os.path.basename(filename.replace("\\", "/"))
        if not name:
            return []
        found = [
            Candidate(g.media_type, g.rank, len(g.pattern), g.order, source="glob")
            for g in self.repository.globs
            if g.matches(name)
        ]
        return sorted(_best_per_type(found), key=lambda c: (-c.priority, -c.literal_length, c.order))
