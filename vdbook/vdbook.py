#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""vdbook
Version:  0.1.0
License:  MIT
About:
A terminal address book over a directory of vCard files, with a
grep-searchable index for mutt/neomutt address completion.

usage: vdbook [-h] [-c <file>] [-v] for more help: vdbook <command> -h ...

commands:
  (for more help: vdbook <command> -h)
    add                 read a mail on stdin and add the sender
    config              edit configuration file (uses $EDITOR)
    edit                edit a contact file (uses $EDITOR)
    email-query         search contacts, output 'name <email>'
    file-query          search contacts, output file names
    index               rebuild the search index
    mutt-query          search contacts, output for mutt's query_command
    new                 create a new contact
    search              search contacts
    show                show the properties of a contact
    version             show version info
    watch               rebuild the index whenever contacts change

optional arguments:
  -h, --help            show this help message and exit
  -c <file>, --config <file>
                        config file
  -v, --verbose         show debug messages


Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.

"""
import argparse
import logging
import os
import shlex
import subprocess
import sys
import time

import tzlocal
from dateutil import parser as dtparser
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from . import APP_NAME, APP_VERS
from .config import default_config_file, load_config, write_default_config
from .contact import CONTACT_EXT, Contact, add_contact_from_email
from .errors import (
    ConfigError,
    IndexingError,
    NoNameError,
    ParseError,
    PartialIndexFailure,
    QueryError,
    SubprocessFailed)
from .index import (
    append_index_entry,
    file_query,
    query,
    rebuild_index)

APP_COPYRIGHT = "Copyright © 2026 the vdbook authors."
APP_LICENSE = "Released under MIT license."

logger = logging.getLogger(__name__)


class AddressBook():
    """Performs address book operations.

    Attributes:
        config (obj):       a Configuration() object.

    """
    def __init__(self, config):
        """Initializes an AddressBook() object."""
        self.config = config
        self.interactive = False
        self.ltz = tzlocal.get_localzone()

        # default colors
        self.color_listtitle = "bright_blue"
        self.color_listheader = "magenta"
        self.color_listname = "default"
        self.color_listemail = "green"
        self.color_listfile = "bright_black"
        self.color_label = "blue"

        self._verify_data_dirs()

    def _datetime_or_none(self, timestr):
        """Verify a datetime string and return a datetime object in the
        local timezone or None.

        Args:
            timestr (str): a datetime formatted string.

        Returns:
            timeobj (datetime): a valid datetime object or None.

        """
        try:
            timeobj = dtparser.parse(timestr).astimezone(tz=self.ltz)
        except (TypeError, ValueError, OverflowError, dtparser.ParserError):
            timeobj = None
        return timeobj

    @staticmethod
    def _error_exit(errormsg):
        """Print an error message and exit with a status of 1

        Args:
            errormsg (str): the error message to display.

        """
        print(f'ERROR: {errormsg}.', file=sys.stderr)
        sys.exit(1)

    @staticmethod
    def _error_pass(errormsg):
        """Print an error message but don't exit.

        Args:
            errormsg (str): the error message to display.

        """
        print(f'ERROR: {errormsg}.', file=sys.stderr)

    @staticmethod
    def _format_timestamp(timeobj, pretty=False):
        """Convert a datetime obj to a string.

        Args:
            timeobj (datetime): a datetime object.
            pretty (bool):      return a pretty formatted string.

        Returns:
            timestamp (str): "%Y-%m-%d %H:%M:%S" or "%Y-%m-%d[ %H:%M]".

        """
        if pretty:
            if timeobj.strftime("%H:%M") == "00:00":
                timestamp = timeobj.strftime("%Y-%m-%d")
            else:
                timestamp = timeobj.strftime("%Y-%m-%d %H:%M")
        else:
            timestamp = timeobj.strftime("%Y-%m-%d %H:%M:%S")
        return timestamp

    def _handle_error(self, msg):
        """Reports an error message and conditionally handles error exit
        or notification.

        Args:
            msg (str):  the error message.

        """
        if self.interactive:
            self._error_pass(msg)
        else:
            self._error_exit(msg)

    def _index_contact(self, contact):
        """Append a contact to the index, reporting but not failing on
        errors.

        Args:
            contact (obj):  a Contact() object.

        """
        try:
            append_index_entry(self.config.index_path, contact)
        except NoNameError:
            logger.debug("%s has no name, not indexed", contact.path)
        except OSError as err:
            self._error_pass(
                f"failure adding {contact.path} to the index: {err}")

    def _query(self, term):
        """Search the index and handle query errors.

        Args:
            term (str):     the search term.

        Returns:
            results (list): the matching IndexEntry() objects.

        """
        try:
            results = query(
                self.config.index_path, self.config.grep_cmd, term)
        except SubprocessFailed as err:
            # grep exits 1 when nothing matched
            if err.returncode == 1 and not err.output:
                results = []
            else:
                self._handle_error(str(err))
                results = []
        except QueryError as err:
            self._handle_error(str(err))
            results = []
        return results

    def _resolve(self, file_or_query):
        """Find exactly one contact file from a path or a search term.

        Args:
            file_or_query (str):    a card file or a search term.

        Returns:
            filename (str): the contact file.

        """
        if os.path.isfile(file_or_query):
            return file_or_query
        try:
            results = file_query(
                self.config.index_path,
                self.config.grep_cmd,
                file_or_query)
        except SubprocessFailed as err:
            if err.returncode == 1 and not err.output:
                results = set()
            else:
                self._error_exit(str(err))
        except QueryError as err:
            self._error_exit(str(err))
        if not results:
            self._error_exit("No such contact")
        elif len(results) > 1:
            self._error_exit("Ambiguous query")
        return results.pop()

    def _run_editor(self, filename):
        """Open a file in the configured editor.

        Args:
            filename (str): the file to edit.

        Returns:
            success (bool): whether the editor exited cleanly.

        """
        if not self.config.editor:
            self._handle_error("$EDITOR is required and not set")
            return False
        try:
            subprocess.run(
                shlex.split(self.config.editor) + [filename], check=True)
        except (OSError, subprocess.SubprocessError):
            self._handle_error(f"failure editing file {filename}")
            return False
        return True

    def _verify_data_dirs(self):
        """Create the contacts directory and the index directory if
        they don't exist."""
        vdir = self.config.vdir_path
        if not os.path.exists(vdir):
            try:
                os.makedirs(vdir)
            except OSError:
                self._error_exit(
                    f"{vdir} doesn't exist "
                    "and can't be created"
                )
        elif not os.path.isdir(vdir):
            self._error_exit(f"{vdir} is not a directory")
        elif not os.access(vdir, os.R_OK | os.W_OK | os.X_OK):
            self._error_exit(
                "You don't have read/write/execute permissions to "
                f"{vdir}")

        index_dir = os.path.dirname(self.config.index_path)
        try:
            os.makedirs(index_dir, exist_ok=True)
        except OSError:
            self._error_exit(
                f"{index_dir} doesn't exist and can't be created")

    def add_from_email(self, email_txt):
        """Add a new contact for the sender of a mail message and print
        the new file name.

        Args:
            email_txt (str):    the message text.

        """
        try:
            contact = add_contact_from_email(
                self.config.vdir_path, email_txt)
        except ValueError as err:
            self._error_exit(str(err))
        except OSError as err:
            self._error_exit(f"failure writing contact: {err}")
        else:
            self._index_contact(contact)
            print(contact.path)

    def edit(self, file_or_query):
        """Edit a contact file (using $EDITOR). A contact emptied in the
        editor is deleted.

        Args:
            file_or_query (str):    a card file or a search term.

        """
        filename = self._resolve(file_or_query)
        if not self._run_editor(filename):
            return
        try:
            with open(filename, "r", encoding="utf-8") as contact_file:
                content = contact_file.read()
        except OSError:
            # the editor may have removed the file
            content = ""
        if not content.strip():
            try:
                os.remove(filename)
            except FileNotFoundError:
                pass
            except OSError:
                self._handle_error(f"failure deleting {filename}")
                return
            self._handle_error("Contact emptied, file removed")
            return
        try:
            Contact.from_file(filename)
        except (ParseError, UnicodeDecodeError) as err:
            self._error_pass(f"{filename} is no longer valid: {err}")

    def email_query(self, term):
        """Search the index and print 'name <email>' for each match.

        Args:
            term (str):     the search term.

        """
        for entry in self._query(term):
            if entry.name and entry.email:
                print(f"{entry.name} <{entry.email}>")

    def file_query(self, term):
        """Search the index and print each matching contact file once.

        Args:
            term (str):     the search term.

        """
        try:
            results = file_query(
                self.config.index_path, self.config.grep_cmd, term)
        except SubprocessFailed as err:
            if err.returncode == 1 and not err.output:
                results = set()
            else:
                self._error_exit(str(err))
        except QueryError as err:
            self._error_exit(str(err))
        for filename in sorted(results):
            print(filename)

    def index(self):
        """Rebuild the index from the contacts directory."""
        if not self.interactive:
            print(f'Rebuilding index file "{self.config.index_path}"...')
        try:
            entries = rebuild_index(
                self.config.vdir_path, self.config.index_path)
        except PartialIndexFailure as err:
            # the index was written, only some contacts are missing
            print(
                f"WARNING: {len(err.errors)} contact(s) could not be "
                f"indexed, {err.entries} entries written.",
                file=sys.stderr)
        except (IndexingError, OSError) as err:
            self._handle_error(f"failure rebuilding index: {err}")
        else:
            logger.debug("index rebuilt with %d entries", entries)

    def mutt_query(self, term, disable_first_line=False):
        """Search for contacts and output in a format compatible with
        the `query_command` used by mutt/neomutt for address completion.
        Errors are ignored to keep mutt's UI intact.

        Args:
            term (str):                 the search term.
            disable_first_line (bool):  don't print the leading empty
        line mutt expects.

        """
        if not disable_first_line:
            print()
        try:
            results = query(
                self.config.index_path, self.config.grep_cmd, term)
        except QueryError as err:
            logger.debug("mutt query failed: %s", err)
            return
        for entry in results:
            if entry.email and entry.name:
                print(f"{entry.email}\t{entry.name}")

    def new(self, fullname=None, email=None):
        """Create a new contact and print its file name.

        Args:
            fullname (str): Optional. The display name.
            email (str):    Optional. The email address.

        """
        if not fullname and not email:
            self._error_exit("a name or an email address is required")
        contact = Contact.generate(
            fullname or email, email, self.config.vdir_path)
        try:
            contact.write_create()
        except OSError as err:
            self._error_exit(f"failure writing {contact.path}: {err}")
        self._index_contact(contact)
        print(contact.path)

    def search(self, term, pager=False):
        """Search the index and show the matches in a table.

        Args:
            term (str):     the search term.
            pager (bool):   Pipe output through console.pager.

        """
        results = self._query(term)
        if not results:
            print("No results.")
            return
        results = sorted(results, key=lambda x: (x.name.lower(), x.email))

        console = Console()
        search_table = Table(
            show_header=True,
            show_lines=False,
            header_style=self.color_listheader,
            box=box.SIMPLE,
            title=f"Search results ({len(results)})",
            title_justify="left",
            title_style=self.color_listtitle)
        search_table.add_column(
            "Name",
            style=self.color_listname,
            no_wrap=True,
            overflow=None)
        search_table.add_column(
            "Email",
            style=self.color_listemail,
            no_wrap=False,
            overflow="fold")
        search_table.add_column(
            "File",
            style=self.color_listfile,
            no_wrap=False,
            overflow="fold")
        for entry in results:
            search_table.add_row(
                entry.name,
                entry.email,
                os.path.basename(entry.filepath or ""))

        layout = Table.grid()
        layout.add_column("single")
        layout.add_row("")
        layout.add_row(search_table)

        # render the output with a pager if --pager or -p
        if pager:
            with console.pager():
                console.print(layout)
        else:
            console.print(layout)

    def show(self, file_or_query, pager=False):
        """Show the properties of a contact.

        Args:
            file_or_query (str):    a card file or a search term.
            pager (bool):           Pipe output through console.pager.

        """
        filename = self._resolve(file_or_query)
        try:
            contact = Contact.from_file(filename)
        except (OSError, UnicodeDecodeError, ParseError) as err:
            self._error_exit(f"failure reading {filename}: {err}")

        console = Console()
        info_table = Table(
            show_header=False,
            box=box.SIMPLE,
            title=contact.name or os.path.basename(filename),
            title_justify="left",
            title_style=self.color_listtitle)
        info_table.add_column("property", style=self.color_label)
        info_table.add_column("value", overflow="fold")
        for prop in contact.record:
            value = prop.value
            if prop.name.upper() in ("REV", "BDAY", "ANNIVERSARY"):
                timeobj = self._datetime_or_none(value)
                if timeobj:
                    value = self._format_timestamp(timeobj, pretty=True)
            types = prop.types()
            label = prop.name.lower()
            if types:
                label += f" ({','.join(types).lower()})"
            info_table.add_row(label, value)
        info_table.add_row("file", filename)

        if pager:
            with console.pager():
                console.print(info_table)
        else:
            console.print(info_table)

    def watch(self):
        """Rebuild the index whenever a contact file changes, until
        interrupted."""
        self.interactive = True
        self.index()
        observer = Observer()
        handler = FSHandler(self)
        observer.schedule(
                handler,
                self.config.vdir_path,
                recursive=False)
        observer.start()
        print(f"Watching {self.config.vdir_path} (Ctrl-C to stop)...")
        try:
            while observer.is_alive():
                time.sleep(1)
        finally:
            observer.stop()
            observer.join()


class FSHandler(FileSystemEventHandler):
    """Handler to watch for contact file changes and rebuild the index.

    Attributes:
        addressbook (obj):  the calling AddressBook() object.

    """
    def __init__(self, addressbook):
        """Initializes an FSHandler() object."""
        self.addressbook = addressbook

    def on_any_event(self, event):
        """Rebuild the index on contact file changes.

        Args:
            event (obj):    file system event.

        """
        if event.is_directory:
            return
        if event.event_type in [
                'created', 'modified', 'deleted', 'moved']:
            paths = [event.src_path, getattr(event, "dest_path", "")]
            if any(os.fsdecode(x).endswith(CONTACT_EXT) for x in paths):
                logger.debug("%s: %s", event.event_type, event.src_path)
                self.addressbook.index()


def parse_args(argv=None):
    """Parse command line arguments.

    Args:
        argv (list):    Optional. The arguments (default: sys.argv).

    Returns:
        parser, args (tuple):   the parser and the arguments provided.

    """
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description='Terminal address book over a directory of vCards.')
    parser._positionals.title = 'commands'
    parser.set_defaults(command=None)
    subparsers = parser.add_subparsers(
        metavar=f'(for more help: {APP_NAME} <command> -h)')
    pager = subparsers.add_parser('pager', add_help=False)
    pager.add_argument(
        '-p',
        '--page',
        dest='page',
        action='store_true',
        help="page output")
    add = subparsers.add_parser(
        'add',
        help='read a mail on stdin and add the sender')
    add.set_defaults(command='add')
    config = subparsers.add_parser(
        'config',
        help='edit configuration file (uses $EDITOR)')
    config.set_defaults(command='config')
    edit = subparsers.add_parser(
        'edit',
        help='edit a contact file (uses $EDITOR)')
    edit.add_argument(
        'file_or_query',
        help='contact file or search term')
    edit.set_defaults(command='edit')
    email_query = subparsers.add_parser(
        'email-query',
        help="search contacts, output 'name <email>'")
    email_query.add_argument(
        'term',
        help='search term')
    email_query.set_defaults(command='email-query')
    filequery = subparsers.add_parser(
        'file-query',
        help='search contacts, output file names')
    filequery.add_argument(
        'term',
        help='search term')
    filequery.set_defaults(command='file-query')
    index = subparsers.add_parser(
        'index',
        help='rebuild the search index')
    index.set_defaults(command='index')
    mutt = subparsers.add_parser(
        'mutt-query',
        help="search contacts, output for mutt's query_command")
    mutt.add_argument(
        'term',
        help='search term')
    mutt.add_argument(
        '-d',
        '--disable-empty-line',
        dest='disable_empty_line',
        action='store_true',
        help="don't print the leading empty line")
    mutt.set_defaults(command='mutt-query')
    new = subparsers.add_parser(
        'new',
        help='create a new contact')
    new.add_argument(
        '-n',
        '--name',
        metavar='<name>',
        dest='name',
        help='display name')
    new.add_argument(
        '-e',
        '--email',
        metavar='<email>',
        dest='email',
        help='email address')
    new.set_defaults(command='new')
    search = subparsers.add_parser(
        'search',
        parents=[pager],
        help='search contacts')
    search.add_argument(
        'term',
        help='search term')
    search.set_defaults(command='search')
    show = subparsers.add_parser(
        'show',
        parents=[pager],
        help='show the properties of a contact')
    show.add_argument(
        'file_or_query',
        help='contact file or search term')
    show.set_defaults(command='show')
    version = subparsers.add_parser(
        'version',
        help='show version info')
    version.set_defaults(command='version')
    watch = subparsers.add_parser(
        'watch',
        help='rebuild the index whenever contacts change')
    watch.set_defaults(command='watch')
    parser.add_argument(
        '-c',
        '--config',
        dest='config',
        metavar='<file>',
        help='config file')
    parser.add_argument(
        '-v',
        '--verbose',
        dest='verbose',
        action='store_true',
        help='show debug messages')
    args = parser.parse_args(argv)
    return parser, args


def _setup_logging(verbose=False):
    """Send log messages to stderr through rich.

    Args:
        verbose (bool): show debug messages.

    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=Console(stderr=True),
                show_time=False,
                show_path=False)],
        force=True)


def main(argv=None):
    """Entry point. Parses arguments, loads the configuration, creates
    an AddressBook() object, calls requested method and parameters.

    Args:
        argv (list):    Optional. The arguments (default: sys.argv).

    """
    environ = dict(os.environ)
    parser, args = parse_args(argv)
    _setup_logging(args.verbose)

    if not args.command:
        parser.print_help(sys.stderr)
        sys.exit(1)
    elif args.command == "version":
        print(f"{APP_NAME} {APP_VERS}")
        print(APP_COPYRIGHT)
        print(APP_LICENSE)
        return

    try:
        if args.config:
            config_file = os.path.abspath(os.path.expandvars(
                os.path.expanduser(args.config)))
        else:
            config_file = default_config_file(environ)
    except ConfigError as err:
        AddressBook._error_exit(str(err))

    try:
        write_default_config(config_file)
    except OSError:
        AddressBook._error_exit(
            "Config file doesn't exist "
            "and can't be created")

    if args.command == "config":
        # the config may not be loadable yet, edit it first
        editor = environ.get("EDITOR")
        if not editor:
            AddressBook._error_exit("$EDITOR is required and not set")
        try:
            subprocess.run(
                shlex.split(editor) + [config_file], check=True)
        except (OSError, subprocess.SubprocessError):
            AddressBook._error_exit("failure editing config file")
        return

    try:
        config = load_config(config_file, environ)
    except ConfigError as err:
        AddressBook._error_exit(str(err))

    book = AddressBook(config)

    if args.command == "add":
        book.add_from_email(sys.stdin.read())
    elif args.command == "edit":
        book.edit(args.file_or_query)
    elif args.command == "email-query":
        book.email_query(args.term)
    elif args.command == "file-query":
        book.file_query(args.term)
    elif args.command == "index":
        book.index()
    elif args.command == "mutt-query":
        book.mutt_query(args.term, args.disable_empty_line)
    elif args.command == "new":
        book.new(args.name, args.email)
    elif args.command == "search":
        book.search(args.term, args.page)
    elif args.command == "show":
        book.show(args.file_or_query, args.page)
    elif args.command == "watch":
        book.watch()
    else:
        sys.exit(1)


def run():
    """Console script entry point."""
    try:
        main()
    except KeyboardInterrupt:
        print("\nInterrupted.")
        sys.exit(1)


# entry point
if __name__ == "__main__":
    run()
