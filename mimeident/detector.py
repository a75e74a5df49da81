"""Public detection entry points.

:class:`MimeDetector` composes the signature matcher, hint resolver,
type resolver and extension mapper around one rule repository.
:func:`configure` returns a detector for a configuration, and
:class:`MimeTypeIdentifier` keeps a current detector that can be swapped
for a freshly built one when the configuration changes.
"""

from __future__ import annotations

import io
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Mapping

from mimeident.config import ConfigSource, build_repository
from mimeident.errors import ConfigError, SourceReadError
from mimeident.identifier import HintResolver, SignatureMatcher
from mimeident.mediatype import OCTET_STREAM
from mimeident.repository import RuleRepository
from mimeident.resolver import ExtensionMapper, TypeResolver

logger = logging.getLogger(__name__)

FILENAME_ATTRIBUTE = "filename"
MIME_TYPE_ATTRIBUTE = "mime.type"
MIME_EXTENSION_ATTRIBUTE = "mime.extension"


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of one detection."""

    mime_type: str = str(OCTET_STREAM)
    extension: str = ""

    def to_attributes(self) -> dict[str, str]:
        return {
            MIME_TYPE_ATTRIBUTE: self.mime_type,
            MIME_EXTENSION_ATTRIBUTE: self.extension,
        }


class MimeDetector:
    """Detect the media type of byte streams against one rule set.

    Instances hold no mutable state, so one detector may serve any
    number of threads.

    Parameters
    ----------
    repository : RuleRepository or None
        Compiled rule set.  When *None* the built-in rules are used.
    """

    def __init__(self, repository: RuleRepository | None = None):
        self.repository = repository if repository is not None else build_repository()
        self.matcher = SignatureMatcher(self.repository)
        self.hints = HintResolver(self.repository)
        self.resolver = TypeResolver(self.repository)
        self.extensions = ExtensionMapper(self.repository)

    def detect(
        self,
        reader: BinaryIO,
        filename: str | None = None,
        use_filename: bool = True,
    ) -> DetectionResult:
        """Detect the type of the stream *reader*.

        Only a bounded prefix is read; a seekable reader is left at the
        position it started from.

        Parameters
        ----------
        reader : binary file-like
            Source positioned at the start of the content.
        filename : str, optional
            Name hint for the content.
        use_filename : bool
            Whether *filename* is consulted at all.

        Returns
        -------
        DetectionResult
            ``application/octet-stream`` with an empty extension when
            nothing matches.

        Raises
        ------
        SourceReadError
            If *reader* cannot be read.
        """
        content = self.matcher.match(reader)
        hints = self.hints.resolve(filename) if use_filename else []
        media_type = self.resolver.resolve(content, hints)
        result = DetectionResult(str(media_type), self.extensions.extension_for(media_type))
        logger.debug("Detected %s (%r) for %r", result.mime_type, result.extension, filename)
        return result

    def detect_bytes(self, data: bytes, filename: str | None = None,
                     use_filename: bool = True) -> DetectionResult:
        return self.detect(io.BytesIO(data), filename, use_filename)

    def detect_file(self, path: str | Path, use_filename: bool = True) -> DetectionResult:
        """Detect the type of a file on disk, hinting with its name."""
        path = Path(path)
        try:
            fh = open(path, "rb")
        except OSError as exc:
            raise SourceReadError(exc.errno, f"Failed to open {path}: {exc.strerror}") from exc
        with fh:
            return self.detect(fh, path.name, use_filename)


def configure(body: str | None = None, path: str | Path | None = None) -> MimeDetector:
    """Return a detector for the given configuration.

    Parameters
    ----------
    body : str, optional
        Inline rule-set text.
    path : str or Path, optional
        Rule-set file.

    Raises
    ------
    ConfigError
        If both *body* and *path* are given or the rule set is invalid.
    """
    return MimeDetector(build_repository(ConfigSource(body=body, path=path)))


class MimeTypeIdentifier:
    """A reconfigurable detection service.

    Holds the current :class:`MimeDetector`.  :meth:`reconfigure` builds
    the new rule set first and then replaces the detector in one step,
    so calls already running keep the detector they started with.  When
    a configuration fails, every :meth:`identify` call raises a
    :class:`ConfigError` chained from that failure until a later
    configuration succeeds.

    Parameters
    ----------
    body, path : str, optional
        Initial configuration; see :func:`configure`.  A failure here is
        logged and kept rather than raised.
    use_filename : bool
        Whether the ``filename`` hint is consulted.
    """

    def __init__(self, body: str | None = None, path: str | Path | None = None,
                 use_filename: bool = True):
        self.use_filename = use_filename
        self._lock = threading.Lock()
        self._state: tuple[MimeDetector | None, ConfigError | None] = (None, None)
        try:
            self.reconfigure(body=body, path=path)
        except ConfigError:
            pass  # logged and kept by reconfigure()

    def reconfigure(self, body: str | None = None, path: str | Path | None = None) -> None:
        """Build a detector for a new configuration and swap it in.

        Raises
        ------
        ConfigError
            If the configuration is invalid; the failure is also kept for
            subsequent :meth:`identify` calls.
        """
        with self._lock:
            try:
                detector = configure(body=body, path=path)
            except ConfigError as exc:
                logger.error("Invalid MIME type configuration: %s", exc)
                self._state = (None, exc)
                raise
            self._state = (detector, None)

    @property
    def detector(self) -> MimeDetector:
        """The current detector.

        Raises a new :class:`ConfigError` chained from the stored failure,
        leaving the stored exception's traceback untouched.
        """
        detector, error = self._state
        if detector is None:
            raise ConfigError(error.reason, error.rule) from error
        return detector

    def identify(self, reader: BinaryIO, filename: str | None = None) -> DetectionResult:
        return self.detector.detect(reader, filename, self.use_filename)

    def process(self, reader: BinaryIO, attributes: Mapping[str, str]) -> dict[str, str]:
        """Identify a record's content and return its updated attributes.

        The ``filename`` attribute is used as the hint; ``mime.type`` and
        ``mime.extension`` are set on a copy of *attributes*.
        """
        result = self.identify(reader, attributes.get(FILENAME_ATTRIBUTE))
        updated = dict(attributes)
        updated.update(result.to_attributes())
        return updated
