# atheria/errors.py
from __future__ import annotations


class AtheriaError(Exception):
    """Base class for journal errors."""


class ParseError(AtheriaError):
    """Stored note data could not be decoded."""


class RemoteWriteError(AtheriaError):
    """A write or delete against the remote store failed."""


class AnalysisError(AtheriaError):
    """Mood analysis could not be produced for an entry."""


class ContinuationError(AtheriaError):
    """Continuation text could not be generated."""
