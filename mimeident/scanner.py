"""Directory scanner for batch media type detection.

Walks a folder, runs every file through a :class:`MimeDetector` and
collects one :class:`FileReport` per file.  Files that cannot be read are
reported with an error rather than aborting the scan.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from mimeident.detector import MimeDetector

logger = logging.getLogger(__name__)


@dataclass
class FileReport:
    """Detection report for a single file."""

    path: str
    size: int = 0
    mime_type: str = ""
    extension: str = ""
    errors: list[str] = field(default_factory=list)


class DirectoryScanner:
    """Detect the media type of every file under a directory.

    Parameters
    ----------
    detector : MimeDetector or None
        Detector to use.  Defaults to one built on the built-in rules.
    use_filename : bool
        Whether file names are passed as detection hints.
    extensions : set[str] or None
        Restrict scanning to these file extensions (e.g. ``{".bin"}``).
        When *None* all files are considered.
    """

    def __init__(
        self,
        detector: MimeDetector | None = None,
        use_filename: bool = True,
        extensions: set[str] | None = None,
    ):
        self.detector = detector if detector is not None else MimeDetector()
        self.use_filename = use_filename
        self.extensions = extensions

    def scan_file(self, path: str | Path) -> FileReport:
        """Detect a single file.

        Parameters
        ----------
        path : str or Path
            File to inspect.

        Returns
        -------
        FileReport
        """
        path = Path(path)
        report = FileReport(path=str(path))

        if not path.is_file():
            report.errors.append("Not a file")
            return report

        try:
            report.size = path.stat().st_size
            result = self.detector.detect_file(path, use_filename=self.use_filename)
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
            report.errors.append(f"Read error: {exc}")
            return report

        report.mime_type = result.mime_type
        report.extension = result.extension
        return report

    def scan_directory(self, root: str | Path, recursive: bool = True) -> list[FileReport]:
        """Detect every file in a directory tree.

        Parameters
        ----------
        root : str or Path
            Root directory to scan.
        recursive : bool
            Whether to recurse into subdirectories.

        Returns
        -------
        list[FileReport]
            Reports for every file examined, in path order.
        """
        root = Path(root)
        reports: list[FileReport] = []

        if not root.is_dir():
            return reports

        iterator = root.rglob("*") if recursive else root.glob("*")

        for entry in sorted(iterator):
            if not entry.is_file():
                continue
            if self.extensions is not None:
                if entry.suffix.lower() not in self.extensions:
                    continue
            reports.append(self.scan_file(entry))

        logger.info("Scanned %d files under %s", len(reports), root)
        return reports
