# -*- coding: utf-8 -*-
"""vdbook.vcard
Record model, parser and serializer for vCard text.

A card is read into a Record: a component name plus an ordered mapping
from property name to a list of Property instances. Only the line
structure of the format is interpreted here (folding, the name/params/
value split, BEGIN/END markers and value escaping); the meaning of the
properties is left to the callers.

Part of vdbook. Released under MIT license.

"""
import re

from .errors import (
    MALFORMED_LINE,
    MISSING_BEGIN,
    MISSING_END,
    ORPHAN_CONTINUATION,
    UNEXPECTED_COMPONENT,
    ParseError)

DEFAULT_COMPONENT = "VCARD"
FOLD_LENGTH = 75
LINE_ENDING = "\r\n"

# structured and list values: ';' and ',' separate components, so the
# value text is kept as written
RAW_VALUE_PROPERTIES = frozenset([
    "ADR",
    "CATEGORIES",
    "CLIENTPIDMAP",
    "GENDER",
    "N",
    "NICKNAME",
    "ORG"])

_LINE_BREAK = re.compile("\r\n|\r|\n|\u2028|\u2029")
_PROP_NAME = re.compile(r"^[A-Za-z0-9-]+$")
_ESCAPED = re.compile(r"\\([\\,;nN])")
# in raw values only newlines are decoded; '\\' is matched so that the
# second backslash of a pair never starts an escape
_RAW_ESCAPED = re.compile(r"\\([\\nN])")


def _normalize_newlines(value):
    """Turn CRLF, CR, U+2028 and U+2029 into a plain newline."""
    return _LINE_BREAK.sub("\n", value)


def escape_value(value):
    """Escape backslash, newline, comma and semicolon in a value. Any
    line break is written as a newline escape.

    Args:
        value (str):    the plain value text.

    Returns:
        escaped (str):  the value as written in a card.

    """
    escaped = (
        _normalize_newlines(value).replace("\\", "\\\\")
        .replace("\n", "\\n")
        .replace(",", "\\,")
        .replace(";", "\\;"))
    return escaped


def unescape_value(value):
    """Reverse escape_value(). Unknown escapes are kept verbatim.

    Args:
        value (str):    the value as written in a card.

    Returns:
        (str):  the plain value text.

    """
    def _replace(match):
        char = match.group(1)
        if char in "nN":
            return "\n"
        return char

    return _ESCAPED.sub(_replace, value)


def _escape_raw(value):
    """Escape line breaks in a structured value, leaving its component
    separators and escapes as written."""
    return _normalize_newlines(value).replace("\n", "\\n")


def _unescape_raw(value):
    """Reverse _escape_raw()."""
    def _replace(match):
        if match.group(1) == "\\":
            return match.group(0)
        return "\n"

    return _RAW_ESCAPED.sub(_replace, value)


def _split_unquoted(text, sep, maxsplit=-1):
    """Split text on a separator that is not inside double quotes.

    Args:
        text (str):     the text to split.
        sep (str):      a single separator character.
        maxsplit (int): the maximum number of splits (-1 for no limit).

    Returns:
        parts (list):   the split text.

    """
    parts = []
    current = []
    quoted = False
    for char in text:
        if char == '"':
            quoted = not quoted
        if (char == sep and not quoted and
                (maxsplit < 0 or len(parts) < maxsplit)):
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


class Property():
    """A single named, parameterized value of a card.

    Attributes:
        name (str):     the property name, e.g. 'EMAIL'.
        value (str):    the unescaped value (raw text for structured
    properties such as N and ADR).
        params (str):   the raw parameter string, e.g. 'TYPE=WORK'.

    """
    def __init__(self, name, value="", params=""):
        """Initializes a Property() object."""
        if not name:
            raise ValueError("property name must not be empty")
        self.name = name
        self.value = value
        self.params = params

    def __eq__(self, other):
        if not isinstance(other, Property):
            return NotImplemented
        return (self.name == other.name and
                self.params == other.params and
                self.value == other.value)

    def __repr__(self):
        return (f"Property({self.name!r}, {self.value!r}, "
                f"params={self.params!r})")

    def param_map(self):
        """Parse the parameter string into a mapping. Bare parameters
        (the vCard 2.1 'TEL;WORK;VOICE' form) are filed under TYPE.

        Returns:
            params (dict):  upper-cased keys mapped to lists of values.

        """
        params = {}
        if not self.params:
            return params
        for param in _split_unquoted(self.params, ";"):
            if not param:
                continue
            if "=" in param:
                key, _, values = param.partition("=")
                key = key.upper()
                values = [
                    this_value.strip('"') for this_value in
                    _split_unquoted(values, ",")]
            else:
                key = "TYPE"
                values = [param]
            params.setdefault(key, []).extend(values)
        return params

    def types(self):
        """Returns the TYPE parameter values, upper-cased."""
        return [x.upper() for x in self.param_map().get("TYPE", [])]


class Record():
    """An in-memory card: a component name and its properties.

    Attributes:
        component (str):    the component name (normally 'VCARD').
        props (dict):       property names mapped to lists of
    Property() objects, in the order they were added.

    """
    def __init__(self, component=DEFAULT_COMPONENT):
        """Initializes a Record() object."""
        self.component = component
        self.props = {}

    def __contains__(self, name):
        return name in self.props

    def __eq__(self, other):
        if not isinstance(other, Record):
            return NotImplemented
        return (self.component == other.component and
                self.props == other.props)

    def __iter__(self):
        for props in self.props.values():
            yield from props

    def __len__(self):
        return sum(len(props) for props in self.props.values())

    def __repr__(self):
        return f"Record({self.component!r}, {len(self)} properties)"

    def add(self, name, value, params=""):
        """Create a Property() and append it to the record.

        Args:
            name (str):     the property name.
            value (str):    the property value.
            params (str):   the raw parameter string.

        Returns:
            prop (obj):     the new Property() object.

        """
        prop = Property(name, value, params)
        self.push(prop)
        return prop

    def get_all(self, name):
        """Returns a list of every property with a given name."""
        return list(self.props.get(name, []))

    def get_first(self, name):
        """Returns the first property with a given name, or None."""
        props = self.props.get(name)
        if props:
            return props[0]
        return None

    def get_value(self, name):
        """Returns the value of the first property with a given name,
        or None."""
        prop = self.get_first(name)
        if prop is None:
            return None
        return prop.value

    def names(self):
        """Returns the property names in insertion order."""
        return list(self.props)

    def push(self, prop):
        """Append a Property() after any others of the same name.

        Args:
            prop (obj):     a Property() object.

        """
        self.props.setdefault(prop.name, []).append(prop)

    def remove(self, name, index=None):
        """Remove one or all properties with a given name.

        Args:
            name (str):     the property name.
            index (int):    Optional. The position of the property to
        remove. All properties of that name are removed if omitted.

        Returns:
            removed (list): the removed Property() objects.

        """
        if name not in self.props:
            return []
        if index is None:
            return self.props.pop(name)
        removed = [self.props[name].pop(index)]
        if not self.props[name]:
            del self.props[name]
        return removed


def _unfold(text):
    """Reassemble folded physical lines into logical lines.

    Args:
        text (str):     the raw card text.

    Yields:
        (lineno, line): the 1-based number of the first physical line
    and the unfolded logical line.

    """
    current = None
    start = None
    for lineno, physical in enumerate(_LINE_BREAK.split(text), 1):
        if physical[:1] in (" ", "\t"):
            if current is None:
                raise ParseError(
                    ORPHAN_CONTINUATION,
                    "continuation line without a preceding property",
                    lineno,
                    physical)
            current += physical[1:]
        elif physical:
            if current is not None:
                yield start, current
            current = physical
            start = lineno
    if current is not None:
        yield start, current


def _split_line(lineno, line):
    """Split a logical line into name, params and value.

    Args:
        lineno (int):   the line number (for error reporting).
        line (str):     the logical line.

    Returns:
        name, params, value (tuple):    the three parts of the line.

    """
    parts = _split_unquoted(line, ":", 1)
    if len(parts) < 2:
        raise ParseError(
            MALFORMED_LINE, "missing ':' separator", lineno, line)
    left, value = parts
    name, _, params = left.partition(";")
    if not _PROP_NAME.match(name):
        raise ParseError(
            MALFORMED_LINE,
            f"invalid property name {name!r}",
            lineno,
            line)
    return name, params, value


def parse(text):
    """Parse card text into a Record.

    Any malformed line fails the whole card. Text without BEGIN/END
    markers is read as a bare property list. Empty text gives an empty
    Record.

    Args:
        text (str):     the raw card text.

    Returns:
        record (obj):   a Record() object.

    Raises:
        ParseError: on a malformed line, an orphan continuation line or
    mismatched BEGIN/END markers.

    """
    record = Record()
    if not text.strip():
        return record

    # None: no markers seen, 'open': inside BEGIN, 'closed': after END
    state = None
    for lineno, line in _unfold(text):
        name, params, value = _split_line(lineno, line)
        marker = name.upper()
        if marker == "BEGIN":
            if state is not None:
                raise ParseError(
                    UNEXPECTED_COMPONENT,
                    f"unexpected BEGIN:{value}",
                    lineno,
                    line)
            if len(record) > 0:
                raise ParseError(
                    MISSING_BEGIN,
                    "properties found before BEGIN",
                    lineno,
                    line)
            if value.upper() != DEFAULT_COMPONENT:
                raise ParseError(
                    UNEXPECTED_COMPONENT,
                    f"expected BEGIN:{DEFAULT_COMPONENT}, got "
                    f"BEGIN:{value}",
                    lineno,
                    line)
            record.component = value
            state = "open"
        elif marker == "END":
            if state != "open":
                raise ParseError(
                    MISSING_BEGIN,
                    f"END:{value} without matching BEGIN",
                    lineno,
                    line)
            if value.upper() != record.component.upper():
                raise ParseError(
                    UNEXPECTED_COMPONENT,
                    f"expected END:{record.component}, got END:{value}",
                    lineno,
                    line)
            state = "closed"
        else:
            if state == "closed":
                raise ParseError(
                    MISSING_BEGIN,
                    f"property {name} after END:{record.component}",
                    lineno,
                    line)
            if marker in RAW_VALUE_PROPERTIES:
                value = _unescape_raw(value)
            else:
                value = unescape_value(value)
            record.push(Property(name, value, params))

    if state == "open":
        raise ParseError(
            MISSING_END, f"missing END:{record.component}")
    return record


def _fold(line, length=FOLD_LENGTH):
    """Fold a logical line so that no physical line exceeds `length`
    characters. Continuation lines start with a single space.

    Args:
        line (str):     the logical line.
        length (int):   the maximum physical line length (default: 75).

    Returns:
        folded (str):   the folded line, without a trailing line ending.

    """
    if len(line) <= length:
        return line
    chunks = [line[:length]]
    rest = line[length:]
    while rest:
        chunks.append(" " + rest[:length - 1])
        rest = rest[length - 1:]
    folded = LINE_ENDING.join(chunks)
    return folded


def _format_property(prop):
    """Returns the logical line for a Property()."""
    if prop.name.upper() in RAW_VALUE_PROPERTIES:
        value = _escape_raw(prop.value)
    else:
        value = escape_value(prop.value)
    if prop.params:
        return f"{prop.name};{prop.params}:{value}"
    return f"{prop.name}:{value}"


def serialize(record):
    """Write a Record as card text. Property names are written in the
    order they were added to the record.

    Args:
        record (obj):   a Record() object.

    Returns:
        text (str):     the card text, with CRLF line endings.

    """
    lines = [f"BEGIN:{record.component}"]
    for prop in record:
        lines.append(_fold(_format_property(prop)))
    lines.append(f"END:{record.component}")
    text = LINE_ENDING.join(lines) + LINE_ENDING
    return text
