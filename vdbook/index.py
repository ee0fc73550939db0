# -*- coding: utf-8 -*-
"""vdbook.index
The search index: one 'email<TAB>name<TAB>filepath' line per email
address of every named contact in the vdir.

Searching is delegated to an external line filter (grep -i by default)
that reads the index on stdin and prints the matching lines.

Part of vdbook. Released under MIT license.

"""
import logging
import os
import shlex
import subprocess
from collections import namedtuple

from .contact import CONTACT_EXT, Contact
from .errors import (
    IndexingError,
    NoNameError,
    ParseError,
    PartialIndexFailure,
    QueryError,
    QueryIOError,
    SubprocessFailed)
from .fileutil import atomic_open

logger = logging.getLogger(__name__)


class IndexEntry(namedtuple("IndexEntry", ["email", "name", "filepath"])):
    """One line of the index.

    Attributes:
        email (str):        the email address.
        name (str):         the display name ('' if absent).
        filepath (str):     the card file, or None if absent.

    """
    __slots__ = ()

    @classmethod
    def from_line(cls, line):
        """Parse an index line. Missing trailing fields are tolerated.

        Args:
            line (str):     an index line without its line ending.

        Returns:
            entry (obj):    an IndexEntry() object.

        """
        parts = line.split("\t")
        email = parts[0]
        name = parts[1] if len(parts) > 1 else ""
        filepath = parts[2] if len(parts) > 2 and parts[2] else None
        return cls(email, name, filepath)


def _clean_field(value):
    """Keep tabs and line breaks out of index fields."""
    return (str(value).replace("\t", " ")
            .replace("\r", " ")
            .replace("\n", " "))


def index_entry(contact):
    """Build the index lines for a contact, one per EMAIL property.
    The first FN is the name.

    Args:
        contact (obj):  a Contact() object.

    Returns:
        lines (str):    the index lines ('' if the contact has no
    email addresses).

    Raises:
        NoNameError: if the contact has no FN property.

    """
    name = contact.name
    if name is None:
        raise NoNameError(f"no name found in {contact.path}")
    name = _clean_field(name)
    path = _clean_field(contact.path)
    lines = ""
    for email in contact.emails:
        lines += f"{_clean_field(email)}\t{name}\t{path}\n"
    return lines


def rebuild_index(directory, out_path):
    """Rebuild the index from every '.vcf' file in a directory. The new
    index replaces `out_path` atomically.

    Files that can't be read, parsed or indexed are skipped; once the
    index has been written, PartialIndexFailure reports them.

    Args:
        directory (str):    the vdir.
        out_path (str):     the index file.

    Returns:
        entries (int):  the number of index lines written.

    Raises:
        IndexingError: if `directory` is not a directory.
        PartialIndexFailure: if some files were skipped.
        OSError: if the directory or the index can't be accessed.

    """
    if not os.path.isdir(directory):
        raise IndexingError(f"{directory} is not a directory")

    errors = []
    entries = 0
    with atomic_open(out_path) as out_file:
        with os.scandir(directory) as dir_entries:
            for entry in dir_entries:
                if not (entry.name.endswith(CONTACT_EXT) and
                        entry.is_file()):
                    continue
                try:
                    contact = Contact.from_file(entry.path)
                    lines = index_entry(contact)
                except (OSError,
                        UnicodeDecodeError,
                        ParseError,
                        NoNameError) as err:
                    logger.warning(
                        "error while indexing %s: %s", entry.path, err)
                    errors.append((entry.path, err))
                    continue
                out_file.write(lines)
                entries += lines.count("\n")

    logger.debug(
        "wrote %d index entries to %s (%d files skipped)",
        entries, out_path, len(errors))
    if errors:
        raise PartialIndexFailure(errors, entries)
    return entries


def append_index_entry(out_path, contact):
    """Append the index lines for one contact to the index.

    Args:
        out_path (str):     the index file.
        contact (obj):      a Contact() object.

    Returns:
        (int):  the number of lines appended.

    Raises:
        NoNameError: if the contact has no FN property.
        OSError: if the index can't be written.

    """
    lines = index_entry(contact)
    with open(out_path, "a", encoding="utf-8", newline="") as index_file:
        index_file.write(lines)
    return lines.count("\n")


def command_argv(filter_command):
    """Returns the filter command as an argv list.

    Args:
        filter_command (str or list):   a shell-quoted command line or
    an argv list.

    Raises:
        QueryError: if the command can't be split or is empty.

    """
    if isinstance(filter_command, str):
        try:
            argv = shlex.split(filter_command)
        except ValueError as err:
            raise QueryError(
                f"invalid filter command {filter_command!r}: {err}") from err
    else:
        argv = list(filter_command)
    if not argv:
        raise QueryError("filter command is empty")
    return argv


def query(index_path, filter_command, query_string):
    """Search the index with the filter command.

    The index file is handed to the filter as its stdin, and the filter
    is run as '<filter_command> <query_string>'. There is no timeout: a
    filter that never exits blocks the query.

    Args:
        index_path (str):                   the index file.
        filter_command (str or list):       the filter command.
        query_string (str):                 the search term.

    Returns:
        results (list):     IndexEntry() objects, in the order the
    filter printed them.

    Raises:
        SubprocessFailed: if the filter exits with a non-zero status.
        QueryError: if the filter command is empty or badly quoted.
        QueryIOError: if the index can't be read or the filter can't
    be run.

    """
    argv = command_argv(filter_command) + [query_string]
    try:
        with open(index_path, "rb") as index_file:
            proc = subprocess.run(
                argv,
                stdin=index_file,
                stdout=subprocess.PIPE,
                check=False)
    except OSError as err:
        raise QueryIOError(
            f"failure running {argv[0]!r} on {index_path}: {err}") from err

    if proc.returncode != 0:
        raise SubprocessFailed(proc.returncode, argv, proc.stdout)

    try:
        output = proc.stdout.decode("utf-8")
    except UnicodeDecodeError as err:
        raise QueryIOError(
            f"filter output is not valid UTF-8: {err}") from err

    results = []
    for line in output.split("\n"):
        line = line.rstrip("\r")
        if line:
            results.append(IndexEntry.from_line(line))
    logger.debug("query %r matched %d entries", query_string, len(results))
    return results


def file_query(index_path, filter_command, query_string):
    """Search the index and return only the distinct card files.

    Args:
        index_path (str):                   the index file.
        filter_command (str or list):       the filter command.
        query_string (str):                 the search term.

    Returns:
        filepaths (set):    the matching card files.

    """
    filepaths = {
        entry.filepath for entry in
        query(index_path, filter_command, query_string)
        if entry.filepath}
    return filepaths
