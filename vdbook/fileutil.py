# -*- coding: utf-8 -*-
"""vdbook.fileutil
Atomic file writes.

Part of vdbook. Released under MIT license.

"""
import os
import tempfile
from contextlib import contextmanager


@contextmanager
def atomic_open(filename, overwrite=True):
    """Open a temporary file next to `filename` for writing and move it
    into place when the block exits without an exception. On any
    failure the temporary file is removed and `filename` is left
    untouched.

    Args:
        filename (str):     the destination file.
        overwrite (bool):   replace an existing destination. If False,
    FileExistsError is raised when the destination already exists.

    Yields:
        temp_file (obj):    a text file object (UTF-8, no newline
    translation).

    """
    directory = os.path.dirname(os.path.abspath(filename))
    handle, temp_path = tempfile.mkstemp(
        dir=directory,
        prefix=".",
        suffix=".tmp")
    try:
        with os.fdopen(handle, "w", encoding="utf-8",
                       newline="") as temp_file:
            yield temp_file
            temp_file.flush()
            os.fsync(temp_file.fileno())
        if overwrite:
            os.replace(temp_path, filename)
        else:
            # link() refuses to replace an existing file
            os.link(temp_path, filename)
    finally:
        if os.path.exists(temp_path):
            os.unlink(temp_path)


def atomic_write(filename, data, overwrite=True):
    """Write a string to a file atomically.

    Args:
        filename (str):     the destination file.
        data (str):         the text to write.
        overwrite (bool):   replace an existing destination.

    """
    with atomic_open(filename, overwrite=overwrite) as out_file:
        out_file.write(data)
