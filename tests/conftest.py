"""Pytest configuration and fixtures."""
import os
import shlex
import sys

import pytest

# case-insensitive substring filter, like 'grep -i' but portable
FILTER_SCRIPT = (
    "import sys\n"
    "term = sys.argv[1].lower().encode('utf-8')\n"
    "for line in sys.stdin.buffer:\n"
    "    if term in line.lower():\n"
    "        sys.stdout.buffer.write(line)\n"
)

ALICE_CARD = (
    "BEGIN:VCARD\r\n"
    "VERSION:3.0\r\n"
    "FN:Alice Liddell\r\n"
    "EMAIL;TYPE=HOME:alice@example.org\r\n"
    "UID:alice\r\n"
    "END:VCARD\r\n"
)

BOB_CARD = (
    "BEGIN:VCARD\r\n"
    "VERSION:3.0\r\n"
    "FN:Bob Builder\r\n"
    "EMAIL;TYPE=HOME:bob@example.org\r\n"
    "EMAIL;TYPE=WORK:robert@work.example.com\r\n"
    "TEL;TYPE=CELL:+1 555 0100\r\n"
    "UID:bob\r\n"
    "END:VCARD\r\n"
)

MALFORMED_CARD = (
    "BEGIN:VCARD\r\n"
    "FN:Mallory\r\n"
    "this line has no separator\r\n"
    "EMAIL:mallory@example.org\r\n"
    "END:VCARD\r\n"
)


@pytest.fixture
def substring_filter():
    """A filter command (argv list) that prints the stdin lines
    containing its argument, ignoring case."""
    return [sys.executable, "-c", FILTER_SCRIPT]


@pytest.fixture
def write_card():
    """Return a helper that writes card text into a directory."""
    def _write(directory, filename, text):
        path = os.path.join(str(directory), filename)
        with open(path, "w", encoding="utf-8", newline="") as card_file:
            card_file.write(text)
        return path
    return _write


@pytest.fixture
def vdir(tmp_path, write_card):
    """A contacts directory holding two valid cards."""
    directory = tmp_path / "contacts"
    directory.mkdir()
    write_card(directory, "alice.vcf", ALICE_CARD)
    write_card(directory, "bob.vcf", BOB_CARD)
    return directory


@pytest.fixture
def cli_env(monkeypatch, tmp_path, vdir, substring_filter):
    """Environment for running the command line against `vdir`."""
    index_path = tmp_path / "data" / "index"
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("VDBOOK_DIR", str(vdir))
    monkeypatch.setenv("VDBOOK_INDEX", str(index_path))
    monkeypatch.setenv(
        "VDBOOK_GREP",
        " ".join(shlex.quote(x) for x in substring_filter))
    monkeypatch.delenv("EDITOR", raising=False)
    return {"vdir": vdir, "index": index_path}


@pytest.fixture
def card_texts():
    """The sample cards by name."""
    return {
        "alice": ALICE_CARD,
        "bob": BOB_CARD,
        "malformed": MALFORMED_CARD,
    }
