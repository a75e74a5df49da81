"""The rule repository: an immutable, indexed rule set.

A :class:`RuleRepository` holds the declared media types together with
their hierarchy, aliases, extensions and the signature, glob and container
rules bound to them.  It validates the whole set when constructed and is
never modified afterwards, so one instance can be shared by any number of
threads.
"""

from __future__ import annotations

import fnmatch
import logging
import re
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Iterable

from mimeident.errors import ConfigError
from mimeident.mediatype import OCTET_STREAM, TEXT_PLAIN, MediaType
from mimeident.patterns import MagicClause

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 50

CONTAINER_FORMATS = ("zip",)


@dataclass(frozen=True)
class TypeDefinition:
    """A declared media type."""

    media_type: MediaType
    parent: MediaType | None = None
    aliases: tuple[MediaType, ...] = ()
    extensions: tuple[str, ...] = ()
    description: str = ""


@dataclass(frozen=True)
class SignatureRule:
    """Magic clauses bound to a media type.

    The rule matches when any one of its clauses matches.
    """

    media_type: MediaType
    clauses: tuple[MagicClause, ...]
    priority: int = DEFAULT_PRIORITY
    order: int = 0

    @property
    def lookahead(self) -> int:
        return max((c.lookahead for c in self.clauses), default=0)

    def evaluate(self, data: bytes) -> int | None:
        """Return the longest literal match length, or *None*."""
        best = None
        for clause in self.clauses:
            length = clause.evaluate(data)
            if length is not None and (best is None or length > best):
                best = length
        return best


def compile_glob(pattern: str, case_sensitive: bool = False) -> re.Pattern:
    """Validate a filename glob and compile it to a regular expression.

    Raises
    ------
    ValueError
        For empty patterns, patterns containing a path separator, or
        unbalanced character classes.
    """
    if not pattern or not pattern.strip():
        raise ValueError("Glob pattern is empty")
    if "/" in pattern or "\\" in pattern:
        raise ValueError(f"Glob pattern {pattern!r} contains a path separator")
    depth = 0
    for ch in pattern:
        if ch == "[":
            if depth:
                raise ValueError(f"Nested '[' in glob pattern {pattern!r}")
            depth = 1
        elif ch == "]" and depth:
            depth = 0
    if depth:
        raise ValueError(f"Unbalanced '[' in glob pattern {pattern!r}")
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile(fnmatch.translate(pattern), flags)


@dataclass(frozen=True)
class GlobRule:
    """A filename pattern bound to a media type."""

    pattern: str
    media_type: MediaType
    case_sensitive: bool = False
    order: int = 0
    regex: re.Pattern = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if self.regex is None:
            object.__setattr__(self, "regex", compile_glob(self.pattern, self.case_sensitive))

    @property
    def kind(self) -> str:
        """``"literal"``, ``"extension"`` or ``"glob"``."""
        if not any(ch in self.pattern for ch in "*?["):
            return "literal"
        if self.pattern.startswith("*.") and not any(ch in self.pattern[2:] for ch in "*?["):
            return "extension"
        return "glob"

    @property
    def extension(self) -> str | None:
        """The ``.ext`` suffix for extension globs, else *None*."""
        if self.kind == "extension":
            return self.pattern[1:]
        return None

    @property
    def rank(self) -> int:
        return {"literal": 3, "extension": 2, "glob": 1}[self.kind]

    def matches(self, filename: str) -> bool:
        return self.regex.match(filename) is not None


@dataclass(frozen=True)
class ContainerRule:
    """A structural probe into a container format.

    For ``zip`` containers the rule matches when an entry name matches
    *entry* (a glob), or, when *content* is given, when the entry named
    *entry* is stored uncompressed and its bytes equal *content*.
    """

    media_type: MediaType
    format: str
    entry: str
    content: bytes | None = None
    priority: int = DEFAULT_PRIORITY
    order: int = 0
    regex: re.Pattern = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if self.format not in CONTAINER_FORMATS:
            raise ValueError(f"Unknown container format {self.format!r}")
        if not self.entry:
            raise ValueError("Container rule needs an entry name")
        if self.regex is None:
            object.__setattr__(self, "regex", re.compile(fnmatch.translate(self.entry)))


class RuleRepository:
    """Immutable collection of type definitions and detection rules.

    Parameters
    ----------
    definitions : iterable of TypeDefinition
        Declared media types.
    signatures, globs, containers : iterable of rules
        Detection rules.  Their ``order`` is reassigned from their
        position, so declaration order decides otherwise equal ties.

    Raises
    ------
    ConfigError
        If a type is declared twice, an alias collides with a type or
        another alias, a parent or rule references an undeclared type, or
        the hierarchy contains a cycle.
    """

    def __init__(
        self,
        definitions: Iterable[TypeDefinition],
        signatures: Iterable[SignatureRule] = (),
        globs: Iterable[GlobRule] = (),
        containers: Iterable[ContainerRule] = (),
    ):
        defs: dict[MediaType, TypeDefinition] = {}
        for d in definitions:
            key = d.media_type.base
            if key in defs:
                raise ConfigError("duplicate type definition", str(key))
            defs[key] = d

        aliases: dict[MediaType, MediaType] = {}
        for key, d in defs.items():
            for alias in d.aliases:
                alias = alias.base
                if alias in defs:
                    raise ConfigError(f"alias {alias} is itself a declared type", str(key))
                if alias in aliases and aliases[alias] != key:
                    raise ConfigError(
                        f"alias {alias} already points to {aliases[alias]}", str(key)
                    )
                aliases[alias] = key

        self._definitions = MappingProxyType(defs)
        self._aliases = MappingProxyType(aliases)

        parents: dict[MediaType, MediaType] = {}
        for key, d in defs.items():
            if d.parent is None:
                continue
            parent = self._resolve(d.parent, str(key), "parent")
            if parent == key:
                raise ConfigError("type cannot be its own parent", str(key))
            parents[key] = parent
        self._parents = MappingProxyType(parents)
        self._check_acyclic()

        self.signatures: tuple[SignatureRule, ...] = tuple(
            replace(r, media_type=self._resolve(r.media_type, str(r.media_type), "magic"), order=i)
            for i, r in enumerate(signatures)
        )
        self.globs: tuple[GlobRule, ...] = tuple(
            replace(r, media_type=self._resolve(r.media_type, r.pattern, "glob"), order=i)
            for i, r in enumerate(globs)
        )
        self.containers: tuple[ContainerRule, ...] = tuple(
            replace(r, media_type=self._resolve(r.media_type, str(r.media_type), "container"),
                    order=i)
            for i, r in enumerate(containers)
        )

        extensions: dict[MediaType, tuple[str, ...]] = {}
        for key, d in defs.items():
            exts = list(d.extensions)
            if not exts:
                for g in self.globs:
                    if g.media_type == key and g.extension and g.extension not in exts:
                        exts.append(g.extension)
            extensions[key] = tuple(exts)
        self._extensions = MappingProxyType(extensions)

        self.lookahead: int = max((r.lookahead for r in self.signatures), default=0)

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    def _resolve(self, media_type: MediaType, rule: str, what: str) -> MediaType:
        key = self._aliases.get(media_type.base, media_type.base)
        if key not in self._definitions:
            raise ConfigError(f"{what} references undeclared type {media_type}", rule)
        return key

    def _check_acyclic(self) -> None:
        for start in self._parents:
            seen = {start}
            node = self._parents.get(start)
            while node is not None:
                if node in seen:
                    raise ConfigError("type hierarchy contains a cycle", str(start))
                seen.add(node)
                node = self._parents.get(node)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def types(self) -> tuple[MediaType, ...]:
        """Declared canonical types, in declaration order."""
        return tuple(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, media_type) -> bool:
        return self.canonical(media_type).base in self._definitions

    def definition(self, media_type: MediaType | str) -> TypeDefinition | None:
        return self._definitions.get(self.canonical(media_type).base)

    def canonical(self, media_type: MediaType | str) -> MediaType:
        """Map an alias to its canonical type, keeping parameters."""
        if isinstance(media_type, str):
            media_type = MediaType.parse(media_type)
        target = self._aliases.get(media_type.base)
        if target is None:
            return media_type
        return MediaType(target.type, target.subtype, media_type.parameters)

    def parent(self, media_type: MediaType | str) -> MediaType | None:
        """Return the supertype of *media_type*.

        Types without a declared parent specialise ``text/plain`` when
        they are textual and ``application/octet-stream`` otherwise.
        """
        key = self.canonical(media_type).base
        if key in self._parents:
            return self._parents[key]
        if key == OCTET_STREAM:
            return None
        if key.is_text and key != TEXT_PLAIN:
            return TEXT_PLAIN
        return OCTET_STREAM

    def ancestors(self, media_type: MediaType | str) -> tuple[MediaType, ...]:
        """Supertypes of *media_type*, nearest first."""
        chain: list[MediaType] = []
        node = self.parent(media_type)
        while node is not None:
            chain.append(node)
            node = self.parent(node)
        return tuple(chain)

    def is_a(self, media_type: MediaType | str, other: MediaType | str) -> bool:
        """True if *media_type* equals or specialises *other*."""
        a = self.canonical(media_type).base
        b = self.canonical(other).base
        return a == b or b in self.ancestors(a)

    def extensions(self, media_type: MediaType | str) -> tuple[str, ...]:
        """Known extensions for *media_type*, preferred first."""
        return self._extensions.get(self.canonical(media_type).base, ())

    def preferred_extension(self, media_type: MediaType | str) -> str:
        exts = self.extensions(media_type)
        return exts[0] if exts else ""

    def __repr__(self) -> str:
        return (
            f"RuleRepository(types={len(self._definitions)}, "
            f"signatures={len(self.signatures)}, globs={len(self.globs)}, "
            f"containers={len(self.containers)})"
        )
