"""mimeident - content-based media type detection driven by configurable rule sets."""

__version__ = "0.1.0"

from mimeident.errors import ConfigError, MimeIdentError, SourceReadError
from mimeident.mediatype import MediaType
from mimeident.config import ConfigSource, build_repository, load_config, parse_rules
from mimeident.repository import RuleRepository
from mimeident.identifier import Candidate, HintResolver, SignatureMatcher
from mimeident.resolver import ExtensionMapper, TypeResolver
from mimeident.detector import (
    DetectionResult,
    MimeDetector,
    MimeTypeIdentifier,
    configure,
)
from mimeident.scanner import DirectoryScanner

__all__ = [
    "ConfigError",
    "MimeIdentError",
    "SourceReadError",
    "MediaType",
    "ConfigSource",
    "build_repository",
    "load_config",
    "parse_rules",
    "RuleRepository",
    "Candidate",
    "HintResolver",
    "SignatureMatcher",
    "ExtensionMapper",
    "TypeResolver",
    "DetectionResult",
    "MimeDetector",
    "MimeTypeIdentifier",
    "configure",
    "DirectoryScanner",
]
