"""Tests for contacts bound to card files."""
import os

import pytest

from vdbook.contact import (
    Contact,
    add_contact_from_email,
    parse_from_header,
    read_sender_from_email)
from vdbook.errors import ParseError
from vdbook.vcard import parse

MESSAGE = (
    'From: "Jane Doe" <jane@example.org>\n'
    "To: me@example.net\n"
    "Subject: hello\n"
    "\n"
    "From the body, not a header.\n"
)


def test_from_file(vdir):
    path = os.path.join(str(vdir), "bob.vcf")

    contact = Contact.from_file(path)

    assert contact.path == path
    assert contact.name == "Bob Builder"
    assert contact.emails == ["bob@example.org", "robert@work.example.com"]
    assert contact.uid == "bob"


def test_from_file_parse_error_names_the_file(tmp_path, write_card, card_texts):
    path = write_card(tmp_path, "bad.vcf", card_texts["malformed"])

    with pytest.raises(ParseError) as excinfo:
        Contact.from_file(path)

    assert excinfo.value.path == path
    assert str(excinfo.value).startswith(path)


def test_from_file_missing(tmp_path):
    with pytest.raises(OSError):
        Contact.from_file(str(tmp_path / "missing.vcf"))


def test_path_is_read_only(vdir):
    contact = Contact.from_file(os.path.join(str(vdir), "alice.vcf"))

    with pytest.raises(AttributeError):
        contact.path = "/elsewhere.vcf"


def test_generate(tmp_path):
    contact = Contact.generate("Jane Doe", "jane@example.org", str(tmp_path))

    assert os.path.dirname(contact.path) == str(tmp_path)
    assert os.path.basename(contact.path) == f"{contact.uid}.vcf"
    assert not os.path.exists(contact.path)
    record = contact.record
    assert record.get_value("VERSION") == "3.0"
    assert record.get_value("FN") == "Jane Doe"
    assert record.get_value("EMAIL") == "jane@example.org"
    assert record.get_value("REV").endswith("Z")


def test_generate_without_name_or_email(tmp_path):
    contact = Contact.generate(directory=str(tmp_path))

    assert contact.name is None
    assert contact.emails == []
    assert contact.uid


def test_generate_gives_distinct_paths(tmp_path):
    first = Contact.generate("A", None, str(tmp_path))
    second = Contact.generate("A", None, str(tmp_path))

    assert first.path != second.path


def test_write_create(tmp_path):
    contact = Contact.generate("Jane Doe", "jane@example.org", str(tmp_path))

    contact.write_create()

    assert os.listdir(str(tmp_path)) == [os.path.basename(contact.path)]
    assert Contact.from_file(contact.path).record == contact.record


def test_write_create_never_overwrites(tmp_path):
    contact = Contact.generate("Jane Doe", "jane@example.org", str(tmp_path))
    contact.write_create()
    contact.record.add("NOTE", "changed")

    with pytest.raises(FileExistsError):
        contact.write_create()

    assert "NOTE" not in Contact.from_file(contact.path).record
    assert os.listdir(str(tmp_path)) == [os.path.basename(contact.path)]


def test_write_replace(tmp_path):
    contact = Contact.generate("Jane Doe", "jane@example.org", str(tmp_path))
    contact.write_create()
    contact.record.add("NOTE", "changed")

    contact.write_replace()

    assert Contact.from_file(contact.path).record.get_value("NOTE") == (
        "changed")


def test_written_card_uses_crlf(tmp_path):
    contact = Contact.generate("Jane Doe", None, str(tmp_path))
    contact.write_create()

    with open(contact.path, "rb") as card_file:
        data = card_file.read()

    assert data.startswith(b"BEGIN:VCARD\r\nVERSION:3.0\r\n")
    assert data.endswith(b"END:VCARD\r\n")
    assert parse(data.decode("utf-8")).get_value("FN") == "Jane Doe"


@pytest.mark.parametrize("header, expected", [
    ('"Jane Doe" <jane@example.org>', ("Jane Doe", "jane@example.org")),
    ("Jane Doe <jane@example.org>", ("Jane Doe", "jane@example.org")),
    ("jane@example.org", (None, "jane@example.org")),
    ("<jane@example.org>", (None, "jane@example.org")),
])
def test_parse_from_header(header, expected):
    assert parse_from_header(header) == expected


def test_read_sender_from_email():
    assert read_sender_from_email(MESSAGE) == '"Jane Doe" <jane@example.org>'
    assert read_sender_from_email("Subject: no sender\n\nbody\n") is None


def test_add_contact_from_email(tmp_path):
    contact = add_contact_from_email(str(tmp_path), MESSAGE)

    assert os.path.isfile(contact.path)
    stored = Contact.from_file(contact.path)
    assert stored.name == "Jane Doe"
    assert stored.emails == ["jane@example.org"]


def test_add_contact_from_email_without_sender(tmp_path):
    with pytest.raises(ValueError):
        add_contact_from_email(str(tmp_path), "Subject: x\n\nbody\n")

    assert os.listdir(str(tmp_path)) == []


def test_generate_default_directory_is_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    contact = Contact.generate("Jane Doe", "jane@example.org")

    assert os.path.isabs(contact.path)
    assert os.path.dirname(contact.path) == os.getcwd()


def test_written_card_with_line_breaks_stays_readable(tmp_path):
    contact = Contact.generate("Jane Doe", "jane@example.org", str(tmp_path))
    contact.record.add("NOTE", "first line\r\nsecond line\rthird")
    contact.record.add("ADR", ";;Main St 1\r\nBack door;Town;;1234;X")

    contact.write_create()

    stored = Contact.from_file(contact.path).record
    assert stored.get_value("NOTE") == "first line\nsecond line\nthird"
    assert stored.get_value("ADR") == ";;Main St 1\nBack door;Town;;1234;X"
