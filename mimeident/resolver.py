"""Final type selection and extension lookup."""

from __future__ import annotations

import logging
from typing import Sequence

from mimeident.identifier import Candidate
from mimeident.mediatype import OCTET_STREAM, MediaType
from mimeident.repository import RuleRepository

logger = logging.getLogger(__name__)

GZIP = MediaType("application", "gzip")
# Gzip streams and gzipped tarballs share one signature, and rule sets
# commonly list .tgz first for gzip.
_EXTENSION_CORRECTIONS = {
    (GZIP, ".tgz"): ".gz",
}


class TypeResolver:
    """Merge content and filename evidence into one media type."""

    def __init__(self, repository: RuleRepository):
        self.repository = repository

    def _canonical(self, candidate: Candidate) -> MediaType:
        return self.repository.canonical(candidate.media_type).base

    def _tied(self, candidates: Sequence[Candidate]) -> list[MediaType]:
        """Candidates the ranking could only separate by declaration order.

        These share the top priority and the first candidate's literal
        length, and no other top-priority candidate specialises them.
        """
        first = candidates[0]
        group = [c for c in candidates if c.priority == first.priority]
        types = [self._canonical(c) for c in group]
        return [
            t for c, t in zip(group, types)
            if c.literal_length == first.literal_length
            and not any(o != t and self.repository.is_a(o, t) for o in types)
        ]

    def resolve(
        self,
        signature_candidates: Sequence[Candidate],
        hint_candidates: Sequence[Candidate] = (),
    ) -> MediaType:
        """Pick the detected type.

        Content evidence always wins when present.  Filename hints only
        choose between content candidates left equal by priority,
        hierarchy and literal length; with no content evidence the most
        specific hint is used, else ``application/octet-stream``.
        """
        if signature_candidates:
            chosen = self._canonical(signature_candidates[0])
            tied = self._tied(signature_candidates)
            if len(tied) > 1:
                for hint in hint_candidates:
                    hinted = self._canonical(hint)
                    if hinted in tied:
                        logger.debug("Filename hint %s breaks tie among %s", hinted,
                                     ", ".join(map(str, tied)))
                        return hinted
            return chosen
        if hint_candidates:
            return self._canonical(hint_candidates[0])
        return OCTET_STREAM


class ExtensionMapper:
    """Look up the preferred filename extension of a media type."""

    def __init__(self, repository: RuleRepository):
        self.repository = repository

    def extension_for(self, media_type: MediaType | str) -> str:
        """Return the preferred extension, or ``""`` when none is known.

        An unknown extension is the normal case for exotic types and is
        not an error.
        """
        if isinstance(media_type, str):
            try:
                media_type = MediaType.parse(media_type)
            except ValueError:
                return ""
        canonical = self.repository.canonical(media_type).base
        extension = self.repository.preferred_extension(canonical)
        return _EXTENSION_CORRECTIONS.get((canonical, extension), extension)
