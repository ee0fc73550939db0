# -*- coding: utf-8 -*-
"""vdbook.errors
Exceptions raised by the vdbook core.

Part of vdbook. Released under MIT license.

"""

MALFORMED_LINE = "MALFORMED_LINE"
ORPHAN_CONTINUATION = "ORPHAN_CONTINUATION"
MISSING_BEGIN = "MISSING_BEGIN"
MISSING_END = "MISSING_END"
UNEXPECTED_COMPONENT = "UNEXPECTED_COMPONENT"


class VdbookError(Exception):
    """Base error for this package."""


class ParseError(VdbookError):
    """Raised when card text cannot be parsed into a Record.

    Attributes:
        kind (str):     one of the error kind constants in this module.
        lineno (int):   the 1-based physical line number, if known.
        line (str):     the offending logical line, if known.
        path (str):     the card file, when read through a Contact.

    """
    def __init__(self, kind, message, lineno=None, line=None):
        self.kind = kind
        self.message = message
        self.lineno = lineno
        self.line = line
        self.path = None
        super().__init__(message)

    def __str__(self):
        msg = self.message
        if self.lineno is not None:
            msg = f"line {self.lineno}: {msg}"
        if self.path:
            msg = f"{self.path}: {msg}"
        return msg


class IndexingError(VdbookError):
    """Raised when an index entry or an index file cannot be built."""


class NoNameError(IndexingError):
    """Raised when a contact has no FN property."""


class PartialIndexFailure(IndexingError):
    """Raised after an index rebuild that skipped some files.

    The index has already been written when this is raised.

    Attributes:
        errors (list):  (path, exception) pairs for each skipped file.
        entries (int):  the number of index lines written.

    """
    def __init__(self, errors, entries=0):
        self.errors = errors
        self.entries = entries
        super().__init__(
            f"{len(errors)} file(s) could not be indexed")


class QueryError(VdbookError):
    """Base error for index queries."""


class SubprocessFailed(QueryError):
    """Raised when the filter command exits with a non-zero status.

    Attributes:
        returncode (int):   the exit status of the filter.
        command (list):     the argv that was run.
        output (bytes):     whatever the filter wrote to stdout.

    """
    def __init__(self, returncode, command, output=b""):
        self.returncode = returncode
        self.command = command
        self.output = output
        super().__init__(
            f"filter command {' '.join(command)!r} exited "
            f"with status {returncode}")


class QueryIOError(QueryError):
    """Raised when the index or the filter pipes cannot be read or
    written."""


class ConfigError(VdbookError):
    """Raised when a required setting is missing or the config file is
    unreadable."""
