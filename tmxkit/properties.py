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
"""
from __future__ import annotations

import logging
from typing import Any, Dict, NamedTuple, Optional

from .error import MalformedAttributesError
from .util import Attr, EventReader, convert_to_bool, get_attrs, parse_tag, read_text

logger = logging.getLogger(__name__)

Properties = Dict[str, Any]


class Color(NamedTuple):
    red: int
    green: int
    blue: int
    alpha: int = 255

    @classmethod
    def from_hex(cls, value: str) -> Color:
        """Parse "#RRGGBB" or "#AARRGGBB"; the "#" is optional.

        Raises:
            ValueError: if `value` is not a hex color.

        """
        text = value.strip().lstrip("#")
        if len(text) not in (6, 8):
            raise ValueError('cannot parse "{}" as color'.format(value))
        channels = [int(text[i : i + 2], 16) for i in range(0, len(text), 2)]
        if len(channels) == 4:
            alpha, red, green, blue = channels
            return cls(red, green, blue, alpha)
        red, green, blue = channels
        return cls(red, green, blue)


def color_or_none(value: str) -> Optional[Color]:
    """Cast a color property.  Tiled stores an unset color as ""."""
    if not value.strip():
        return None
    return Color.from_hex(value)


# casting for properties type
prop_type = {
    "bool": convert_to_bool,
    "color": color_or_none,
    "file": str,
    "float": float,
    "int": int,
    "object": int,
    "string": str,
}


def parse_properties(reader: EventReader) -> Properties:
    """Parse the children of an open <properties> element into a dict.

    Values are cast according to their "type" attribute.  Properties
    without a "value" attribute take their value from the element text,
    which is how multi-line strings are stored.

    """
    properties = dict()

    def property_(attrs):
        (kind, value), (name,) = get_attrs(
            attrs,
            optionals=[Attr("type", default="string"), Attr("value")],
            required=[Attr("name")],
            message="property must have a name",
            element="property",
        )
        text = read_text(reader, "property")
        if value is None:
            value = text
        cast = prop_type.get(kind)
        if cast is None:
            logger.info("Type %s Not a built-in type. Defaulting to string-cast.", kind)
            cast = str
        try:
            properties[name] = cast(value)
        except ValueError as e:
            raise MalformedAttributesError(
                "property value does not match its type " + kind, "value", "property"
            ) from e

    parse_tag(reader, "properties", {"property": property_})
    return properties
