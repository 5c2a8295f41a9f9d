"""
Copyright (C) 2012-2023, Leif Theden <leif.theden@gmail.com>

This file is part of tmxkit.

tmxkit is free software: you can redistribute it and/or modify
it under the terms of the GNU Lesser General Public License as
published by the Free Software Foundation, either version 3 of the
License, or (at your option) any later version.

tmxkit is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU Lesser General Public License for more details.

You should have received a copy of the GNU Lesser General Public
License along with tmxkit.  If not, see <https://www.gnu.org/licenses/>.

Shared parsing machinery: attribute extraction, the XML event reader,
and tag dispatch.  Every element parser in this package is written as

    optionals, required = get_attrs(attrs, [...], [...], "message")
    parse_tag(reader, "tagname", {"child": handler, ...})

"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import (
    IO,
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)
from xml.etree import ElementTree
from xml.parsers import expat

from .error import DecodingError, MalformedAttributesError, PrematureEndError, TiledError

logger = logging.getLogger(__name__)

Attributes = List[Tuple[str, str]]
Handler = Callable[[Attributes], None]

UINT32_MAX = 0xFFFFFFFF
NO_ELEMENTS = expat.errors.codes[expat.errors.XML_ERROR_NO_ELEMENTS]


# coercions.  each one takes the raw attribute text and either returns the
# converted value or raises ValueError.


def convert_to_bool(value: Any) -> bool:
    """Convert a few common variations of "true" and "false" to boolean

    Args:
        value (Any): Value to test.

    Raises:
        ValueError: If `value` cannot be converted to a boolean.

    Returns:
        bool: The converted boolean.

    """
    value = str(value).strip()
    if value:
        value = value.lower()[0]
        if value in ("1", "y", "t"):
            return True
        if value in ("-", "0", "n", "f"):
            return False
    else:
        return False
    raise ValueError('cannot parse "{}" as bool'.format(value))


def to_uint32(value: str) -> int:
    """Parse a decimal unsigned 32-bit integer.

    Only ASCII digits are accepted: no sign, no underscores.

    """
    text = value.strip()
    if not (text.isascii() and text.isdigit()):
        raise ValueError('"{0}" is not an unsigned decimal integer'.format(value))
    number = int(text)
    if not 0 <= number <= UINT32_MAX:
        raise ValueError("{0} is out of range for an unsigned 32-bit value".format(value))
    return number


def to_uint(value: str) -> int:
    number = int(value)
    if number < 0:
        raise ValueError("{0} is negative".format(value))
    return number


def to_str(value: str) -> str:
    return value


# attribute contract


@dataclass(frozen=True)
class Attr:
    """Describes one attribute to extract from an element.

    Args:
        name (str): Attribute name, matched exactly.
        coerce (Callable): Converts the raw text; raises ValueError on bad input.
        default (Any): Value used when an optional attribute is missing or rejected.
        strict (bool): For optional attributes, reject bad values instead of
            falling back to the default.

    """

    name: str
    coerce: Callable[[str], Any] = to_str
    default: Any = None
    strict: bool = False


def get_attrs(
    attrs: Attributes,
    optionals: Sequence[Attr],
    required: Sequence[Attr],
    message: str,
    element: Optional[str] = None,
) -> Tuple[Tuple[Any, ...], Tuple[Any, ...]]:
    """Extract declared attributes from an element's attribute list.

    The attribute list is scanned once.  Required attributes that are
    missing or rejected by their coercion raise MalformedAttributesError
    carrying the attribute name and `message`.  Optional attributes that
    are missing resolve to their default; a rejected optional value also
    resolves to the default unless the descriptor is strict.

    Args:
        attrs (Attributes): (name, value) pairs of the element.
        optionals (Sequence[Attr]): Optional attribute descriptors.
        required (Sequence[Attr]): Required attribute descriptors.
        message (str): Error message used for failures.
        element (Optional[str]): Element name, for error reporting.

    Returns:
        Tuple[Tuple, Tuple]: resolved optional values, resolved required values.

    Raises:
        MalformedAttributesError: on a missing or rejected required attribute,
            or a rejected strict optional attribute.

    """
    optional_values = [attr.default for attr in optionals]
    required_values: List[Any] = [None] * len(required)
    found = [False] * len(required)

    for name, raw in attrs:
        for index, attr in enumerate(optionals):
            if attr.name == name:
                try:
                    optional_values[index] = attr.coerce(raw)
                except TiledError:
                    raise
                except (ValueError, TypeError) as e:
                    if attr.strict:
                        logger.debug("rejected value %r for %s", raw, name)
                        raise MalformedAttributesError(message, name, element) from e
        for index, attr in enumerate(required):
            if attr.name == name:
                try:
                    required_values[index] = attr.coerce(raw)
                except TiledError:
                    raise
                except (ValueError, TypeError) as e:
                    logger.debug("rejected value %r for %s", raw, name)
                    raise MalformedAttributesError(message, name, element) from e
                found[index] = True

    for index, attr in enumerate(required):
        if not found[index]:
            logger.debug("missing required attribute %s", attr.name)
            raise MalformedAttributesError(message, attr.name, element)

    return tuple(optional_values), tuple(required_values)


# decode events


@dataclass
class StartElement:
    name: str
    attributes: Attributes


@dataclass
class EndElement:
    name: str


@dataclass
class Characters:
    text: str


@dataclass
class EndDocument:
    pass


Event = Union[StartElement, EndElement, Characters, EndDocument]


class EventReader:
    """Forward-only stream of XML events over a file-like object.

    Produces StartElement, Characters, EndElement and finally EndDocument.
    The character data directly inside an element is reported once, right
    after its StartElement and before the first child or the matching
    EndElement.  Text following a child's end tag is not reported.

    Malformed markup raises DecodingError.

    """

    def __init__(self, source: IO, chunk_size: int = 65536) -> None:
        self.source = source
        self.chunk_size = chunk_size
        self._parser = ElementTree.XMLPullParser(events=("start", "end"))
        self._pending: List[Event] = list()
        self._open = None  # element whose text is not reported yet
        self._finished = False

    def next(self) -> Event:
        while not self._pending:
            if self._finished:
                return EndDocument()
            self._fill()
        return self._pending.pop(0)

    def _fill(self) -> None:
        data = self.source.read(self.chunk_size)
        try:
            if data:
                self._parser.feed(data)
            else:
                self._finished = True
                self._parser.close()
            raw_events = list(self._parser.read_events())
        except ElementTree.ParseError as e:
            if self._finished and e.code == NO_ELEMENTS:
                # input ran out inside an open element
                self._flush_text()
                return
            logger.debug("xml decoding error: %s", e)
            raise DecodingError(str(e)) from e

        for kind, element in raw_events:
            self._flush_text()
            if kind == "start":
                self._pending.append(StartElement(element.tag, list(element.attrib.items())))
                self._open = element
            else:
                self._pending.append(EndElement(element.tag))
                element.clear()

    def _flush_text(self) -> None:
        # by the time the next tag arrives, the open element's text is final
        if self._open is not None:
            if self._open.text:
                self._pending.append(Characters(self._open.text))
            self._open = None


# tag dispatch


def skip_element(reader: EventReader, name: str) -> None:
    """Consume events up to and including the end of the current element."""
    depth = 0
    while True:
        event = reader.next()
        if isinstance(event, StartElement):
            depth += 1
        elif isinstance(event, EndElement):
            if depth == 0:
                return
            depth -= 1
        elif isinstance(event, EndDocument):
            raise PrematureEndError(
                "Document ended before <{0}> was closed".format(name)
            )


def parse_tag(reader: EventReader, close_tag: str, handlers: Dict[str, Handler]) -> None:
    """Walk the children of an open element until it is closed.

    Each child whose tag is in `handlers` is passed to its handler, which
    receives the child's attributes and must consume the child up to and
    including its end tag (usually by calling parse_tag again).  Children
    with unknown tags are skipped along with their whole subtree.

    Args:
        reader (EventReader): Event source positioned after the open tag.
        close_tag (str): Name of the element being walked.
        handlers (Dict[str, Handler]): Handler per child tag.

    Raises:
        PrematureEndError: if the document ends first.

    """
    while True:
        event = reader.next()
        if isinstance(event, StartElement):
            handler = handlers.get(event.name)
            if handler is None:
                logger.debug("skipping unknown element <%s> in <%s>", event.name, close_tag)
                skip_element(reader, event.name)
            else:
                handler(event.attributes)
        elif isinstance(event, EndElement):
            if event.name == close_tag:
                return
        elif isinstance(event, EndDocument):
            raise PrematureEndError(
                "Document ended before <{0}> was closed".format(close_tag)
            )


def read_text(reader: EventReader, close_tag: str) -> str:
    """Return the character data of an open element, consuming it.

    Child elements are skipped.

    """
    parts = list()
    while True:
        event = reader.next()
        if isinstance(event, Characters):
            parts.append(event.text)
        elif isinstance(event, StartElement):
            skip_element(reader, event.name)
        elif isinstance(event, EndElement):
            if event.name == close_tag:
                return "".join(parts)
        elif isinstance(event, EndDocument):
            raise PrematureEndError(
                "Document ended before <{0}> was closed".format(close_tag)
            )


def find_root(reader: EventReader, name: str, what: str) -> Attributes:
    """Advance to the first element called `name` and return its attributes."""
    while True:
        event = reader.next()
        if isinstance(event, StartElement) and event.name == name:
            return event.attributes
        if isinstance(event, EndDocument):
            raise PrematureEndError(
                "{0} document ended before <{1}> was found".format(what, name)
            )
