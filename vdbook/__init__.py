# -*- coding: utf-8 -*-
"""vdbook
A terminal address book over a directory of vCard files, with a
grep-searchable index for mutt/neomutt address completion.

Part of vdbook. Released under MIT license.

"""
APP_NAME = "vdbook"
APP_VERS = "0.1.0"

# pylint: disable=wrong-import-position
from .contact import Contact, add_contact_from_email  # noqa: E402
from .index import (  # noqa: E402
    IndexEntry,
    append_index_entry,
    file_query,
    index_entry,
    query,
    rebuild_index)
from .vcard import Property, Record, parse, serialize  # noqa: E402
