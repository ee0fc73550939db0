# -*- coding: utf-8 -*-
"""vdbook.contact
Contacts: card records bound to files in a vdir.

Part of vdbook. Released under MIT license.

"""
import os
import uuid
from datetime import datetime, timezone
from email.parser import HeaderParser
from email.utils import parseaddr

import tzlocal

from . import APP_NAME, APP_VERS
from .errors import ParseError
from .fileutil import atomic_write
from .vcard import Record, parse, serialize

CONTACT_EXT = ".vcf"
VCARD_VERSION = "3.0"


def _rev_timestamp():
    """Returns the current time as a vCard REV timestamp (UTC)."""
    now = datetime.now(tz=tzlocal.get_localzone())
    timestr = (now.astimezone(tz=timezone.utc)
               .strftime("%Y%m%dT%H%M%SZ"))
    return timestr


def generate_record(uid, fullname=None, email=None):
    """Build a minimal card for a new contact.

    Args:
        uid (str):          the contact UID.
        fullname (str):     Optional. The display name (FN).
        email (str):        Optional. The email address.

    Returns:
        record (obj):   a Record() object.

    """
    record = Record()
    record.add("VERSION", VCARD_VERSION)
    record.add("PRODID", f"-//{APP_NAME}//{APP_NAME} {APP_VERS}//EN")
    if fullname:
        record.add("FN", fullname)
    if email:
        record.add("EMAIL", email)
    record.add("UID", uid)
    record.add("REV", _rev_timestamp())
    return record


class Contact():
    """A card bound to a file.

    Attributes:
        record (obj):   the Record() for this contact.
        path (str):     the card file (read-only).

    """
    def __init__(self, record, path):
        """Initializes a Contact() object."""
        self.record = record
        self._path = path

    def __repr__(self):
        return f"Contact({self._path!r})"

    @property
    def path(self):
        """The card file."""
        return self._path

    @property
    def name(self):
        """The first FN value, or None."""
        return self.record.get_value("FN")

    @property
    def emails(self):
        """All EMAIL values, in card order."""
        return [prop.value for prop in self.record.get_all("EMAIL")]

    @property
    def uid(self):
        """The UID value, or None."""
        return self.record.get_value("UID")

    @classmethod
    def from_file(cls, path):
        """Read and parse a card file.

        Args:
            path (str):     the card file.

        Returns:
            contact (obj):  a Contact() object.

        Raises:
            OSError: if the file can't be read.
            ParseError: if the card is malformed.

        """
        with open(path, "r", encoding="utf-8") as contact_file:
            text = contact_file.read()
        try:
            record = parse(text)
        except ParseError as err:
            err.path = path
            raise
        return cls(record, path)

    @classmethod
    def generate(cls, fullname=None, email=None, directory="."):
        """Create a new contact with a random UID. The file is not
        written.

        Args:
            fullname (str):     Optional. The display name.
            email (str):        Optional. The email address.
            directory (str):    the vdir for the new card.

        Returns:
            contact (obj):  a Contact() at an unused, absolute
        '<uid>.vcf' path.

        """
        directory = os.path.abspath(directory)
        while True:
            uid = str(uuid.uuid4())
            path = os.path.join(directory, f"{uid}{CONTACT_EXT}")
            if not os.path.exists(path):
                break
        return cls(generate_record(uid, fullname, email), path)

    def write_create(self):
        """Write the card to a new file. Never overwrites.

        Raises:
            FileExistsError: if the file already exists.

        """
        atomic_write(self._path, serialize(self.record), overwrite=False)

    def write_replace(self):
        """Write the card, replacing any existing file atomically."""
        atomic_write(self._path, serialize(self.record), overwrite=True)


def parse_from_header(value):
    """Split a From header into display name and address.

    Args:
        value (str):    the header value, e.g. '"Jane Doe" <jane@x.org>'.

    Returns:
        fullname, email (tuple):    each a string or None.

    """
    fullname, email = parseaddr(value)
    return fullname or None, email or None


def read_sender_from_email(email_txt):
    """Get the From header from a mail message.

    Args:
        email_txt (str):    the message (only the headers are read).

    Returns:
        from_line (str):    the From header, or None.

    """
    message = HeaderParser().parsestr(email_txt)
    from_line = message.get("From")
    if from_line:
        return str(from_line)
    return None


def add_contact_from_email(directory, email_txt):
    """Create a contact for the sender of a mail message.

    Args:
        directory (str):    the vdir for the new card.
        email_txt (str):    the mail message.

    Returns:
        contact (obj):  the new Contact(), already written.

    Raises:
        ValueError: if the message has no usable From header.

    """
    from_line = read_sender_from_email(email_txt)
    if not from_line:
        raise ValueError("no From header found in email")
    fullname, email = parse_from_header(from_line)
    if not email:
        raise ValueError(f"no address found in From header {from_line!r}")
    contact = Contact.generate(fullname, email, directory)
    contact.write_create()
    return contact
