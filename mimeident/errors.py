"""Exception types raised by mimeident."""

from __future__ import annotations


class MimeIdentError(Exception):
    """Base class for all mimeident errors."""


class ConfigError(MimeIdentError):
    """A rule set could not be built.

    Parameters
    ----------
    reason : str
        Human readable description of the problem.
    rule : str or None
        Identifier of the offending rule (usually the media type it is
        declared under), when one can be named.
    """

    def __init__(self, reason: str, rule: str | None = None):
        self.reason = reason
        self.rule = rule
        message = f"{rule}: {reason}" if rule else reason
        super().__init__(message)


class SourceReadError(MimeIdentError, OSError):
    """The byte source handed to the detector could not be read."""
