"""Configuration sources and rule-set parsing.

A rule set is written either in the package's YAML format or in the
freedesktop / Apache Tika ``mime-info`` XML format.  Both are compiled
into a :class:`~mimeident.repository.RuleRepository`; a custom rule set
replaces the built-in one entirely.
"""

from __future__ import annotations

import functools
import logging
import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from mimeident.errors import ConfigError
from mimeident.mediatype import MediaType
from mimeident.patterns import MagicClause, compile_clause
from mimeident.repository import (
    DEFAULT_PRIORITY,
    ContainerRule,
    GlobRule,
    RuleRepository,
    SignatureRule,
    TypeDefinition,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = Path(__file__).parent / "configs" / "default_types.yaml"


@dataclass(frozen=True)
class ConfigSource:
    """Where a rule set comes from.

    At most one of *body* (inline rule-set text) and *path* (a rule-set
    file) may be given; with neither the built-in rules are used.  Blank
    values count as not given.
    """

    body: str | None = None
    path: str | None = None

    def __post_init__(self):
        if self.body is not None and not self.body.strip():
            object.__setattr__(self, "body", None)
        if self.path is not None:
            path = os.fspath(self.path)
            object.__setattr__(self, "path", path if path.strip() else None)
        if self.body is not None and self.path is not None:
            raise ConfigError("Only one of config body or config file may be used")

    @property
    def is_default(self) -> bool:
        return self.body is None and self.path is None

    def describe(self) -> str:
        if self.body is not None:
            return "<inline>"
        if self.path is not None:
            return self.path
        return "<built-in>"


# ---------------------------------------------------------------------------
# YAML
# ---------------------------------------------------------------------------

def _media_type(value: Any, rule: str) -> MediaType:
    try:
        return MediaType.parse(str(value)).base
    except ValueError as exc:
        raise ConfigError(str(exc), rule) from None


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _parse_clause(data: Any, rule: str) -> MagicClause:
    """Build a :class:`MagicClause` from a YAML mapping."""
    if not isinstance(data, dict):
        raise ConfigError(f"match entry must be a mapping, got {data!r}", rule)
    children = tuple(_parse_clause(c, rule) for c in _as_list(data.get("match")))
    try:
        return compile_clause(
            kind=data.get("type", "string"),
            value=data.get("value"),
            offset=data.get("offset"),
            mask=data.get("mask"),
            children=children,
        )
    except ValueError as exc:
        raise ConfigError(str(exc), rule) from None


def _parse_priority(value: Any, rule: str) -> int:
    if value is None:
        return DEFAULT_PRIORITY
    try:
        priority = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"invalid priority {value!r}", rule) from None
    if not 0 <= priority <= 100:
        raise ConfigError(f"priority {priority} outside 0-100", rule)
    return priority


class _RuleSetBuilder:
    """Collects definitions and rules in declaration order."""

    def __init__(self):
        self.definitions: list[TypeDefinition] = []
        self.signatures: list[SignatureRule] = []
        self.globs: list[GlobRule] = []
        self.containers: list[ContainerRule] = []

    def add_glob(self, media_type: MediaType, pattern: Any, case_sensitive: Any, rule: str):
        try:
            self.globs.append(GlobRule(pattern=str(pattern or ""), media_type=media_type,
                                       case_sensitive=bool(case_sensitive)))
        except ValueError as exc:
            raise ConfigError(str(exc), rule) from None

    def add_container(self, media_type: MediaType, data: Any, rule: str):
        if not isinstance(data, dict):
            raise ConfigError(f"container entry must be a mapping, got {data!r}", rule)
        content = data.get("content")
        try:
            self.containers.append(ContainerRule(
                media_type=media_type,
                format=str(data.get("format", "zip")),
                entry=str(data.get("entry") or ""),
                content=str(content).encode("ascii") if content is not None else None,
                priority=_parse_priority(data.get("priority"), rule),
            ))
        except (ValueError, UnicodeEncodeError) as exc:
            raise ConfigError(str(exc), rule) from None

    def build(self) -> RuleRepository:
        return RuleRepository(self.definitions, self.signatures, self.globs, self.containers)


def _parse_yaml_type(builder: _RuleSetBuilder, data: Any, index: int) -> None:
    if not isinstance(data, dict) or "type" not in data:
        raise ConfigError("type entry must be a mapping with a 'type' key", f"types[{index}]")
    rule = str(data["type"])
    media_type = _media_type(data["type"], rule)

    parent = data.get("parent")
    extensions = []
    for ext in _as_list(data.get("extensions")):
        ext = str(ext)
        extensions.append(ext if ext.startswith(".") else f".{ext}")
    builder.definitions.append(TypeDefinition(
        media_type=media_type,
        parent=_media_type(parent, rule) if parent else None,
        aliases=tuple(_media_type(a, rule) for a in _as_list(data.get("aliases"))),
        extensions=tuple(extensions),
        description=str(data.get("description", "")),
    ))

    for glob in _as_list(data.get("globs")):
        if isinstance(glob, dict):
            builder.add_glob(media_type, glob.get("pattern"), glob.get("case_sensitive"), rule)
        else:
            builder.add_glob(media_type, glob, False, rule)

    for i, magic in enumerate(_as_list(data.get("magic"))):
        where = f"{rule} magic[{i}]"
        if not isinstance(magic, dict):
            raise ConfigError(f"magic entry must be a mapping, got {magic!r}", where)
        clauses = tuple(_parse_clause(c, where) for c in _as_list(magic.get("match")))
        if not clauses:
            raise ConfigError("magic entry has no match clauses", where)
        builder.signatures.append(SignatureRule(
            media_type=media_type,
            clauses=clauses,
            priority=_parse_priority(magic.get("priority"), where),
        ))

    for i, container in enumerate(_as_list(data.get("containers"))):
        builder.add_container(media_type, container, f"{rule} containers[{i}]")


def parse_yaml(text: str) -> RuleRepository:
    """Compile a YAML rule set."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML: {exc}") from None
    if not isinstance(data, dict) or not isinstance(data.get("types"), list):
        raise ConfigError("rule set must be a mapping with a 'types' list")

    builder = _RuleSetBuilder()
    for index, entry in enumerate(data["types"]):
        _parse_yaml_type(builder, entry, index)
    return builder.build()


# ---------------------------------------------------------------------------
# mime-info XML
# ---------------------------------------------------------------------------

def _parse_xml_match(elem: ET.Element, rule: str) -> MagicClause:
    children = tuple(_parse_xml_match(c, rule) for c in elem.findall("match"))
    try:
        return compile_clause(
            kind=elem.get("type", "string"),
            value=elem.get("value"),
            offset=elem.get("offset"),
            mask=elem.get("mask"),
            children=children,
        )
    except ValueError as exc:
        raise ConfigError(str(exc), rule) from None


def parse_xml(text: str) -> RuleRepository:
    """Compile a ``mime-info`` XML rule set."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ConfigError(f"invalid XML: {exc}") from None
    if root.tag != "mime-info":
        raise ConfigError(f"expected <mime-info> root element, got <{root.tag}>")

    builder = _RuleSetBuilder()
    for index, elem in enumerate(root.findall("mime-type")):
        rule = elem.get("type") or f"mime-type[{index}]"
        media_type = _media_type(elem.get("type"), rule)
        parents = [_media_type(p.get("type"), rule) for p in elem.findall("sub-class-of")]
        if len(parents) > 1:
            raise ConfigError("at most one sub-class-of is supported", rule)
        comment = elem.findtext("_comment") or ""
        builder.definitions.append(TypeDefinition(
            media_type=media_type,
            parent=parents[0] if parents else None,
            aliases=tuple(_media_type(a.get("type"), rule) for a in elem.findall("alias")),
            description=comment.strip(),
        ))
        for glob in elem.findall("glob"):
            if glob.get("isregex", "false").lower() == "true":
                raise ConfigError("regular expression globs are not supported", rule)
            case = glob.get("case-sensitive", "false").lower() == "true"
            builder.add_glob(media_type, glob.get("pattern"), case, rule)
        for i, magic in enumerate(elem.findall("magic")):
            where = f"{rule} magic[{i}]"
            clauses = tuple(_parse_xml_match(m, where) for m in magic.findall("match"))
            if not clauses:
                raise ConfigError("magic entry has no match clauses", where)
            builder.signatures.append(SignatureRule(
                media_type=media_type,
                clauses=clauses,
                priority=_parse_priority(magic.get("priority"), where),
            ))
    return builder.build()


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def parse_rules(text: str) -> RuleRepository:
    """Compile rule-set text, choosing XML when it starts with ``<``."""
    if text.lstrip().startswith("<"):
        return parse_xml(text)
    return parse_yaml(text)


def load_config(path: str | Path | None = None) -> RuleRepository:
    """Load a rule set from a file.

    Parameters
    ----------
    path : str or Path, optional
        Rule-set file.  When *None* the built-in ``default_types.yaml``
        shipped with the package is used.

    Raises
    ------
    ConfigError
        If the file cannot be read or does not compile.
    """
    path = DEFAULT_CONFIG if path is None else Path(path)
    try:
        with open(path, "r", encoding="utf-8") as fh:
            text = fh.read()
    except OSError as exc:
        raise ConfigError(f"cannot read config file {path}: {exc.strerror or exc}") from exc
    return parse_rules(text)


@functools.lru_cache(maxsize=32)
def _build_cached(source: ConfigSource, stamp: int | None) -> RuleRepository:
    if source.body is not None:
        repository = parse_rules(source.body)
    else:
        repository = load_config(source.path)
    logger.info("Built rule repository from %s: %r", source.describe(), repository)
    return repository


def build_repository(source: ConfigSource | None = None) -> RuleRepository:
    """Return the repository for *source*, building it at most once.

    Repositories are cached per distinct configuration for the life of
    the process.  File sources are keyed on path and modification time,
    so an edited file is compiled afresh.
    """
    source = source or ConfigSource()
    stamp = None
    if source.path is not None:
        try:
            stamp = os.stat(source.path).st_mtime_ns
        except OSError as exc:
            raise ConfigError(
                f"cannot read config file {source.path}: {exc.strerror or exc}"
            ) from exc
    return _build_cached(source, stamp)
