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

from dataclasses import dataclass
from typing import Optional

from .properties import Color
from .util import Attr, Attributes, EventReader, get_attrs, parse_tag, to_uint


@dataclass(frozen=True)
class Image:
    source: str  # as written in the document, relative to it
    width: int
    height: int
    trans: Optional[Color] = None


def parse_image(reader: EventReader, attrs: Attributes) -> Image:
    (trans,), (source, width, height) = get_attrs(
        attrs,
        optionals=[Attr("trans", Color.from_hex, strict=True)],
        required=[Attr("source"), Attr("width", to_uint), Attr("height", to_uint)],
        message="image must have a source, width and height with correct types",
        element="image",
    )
    parse_tag(reader, "image", {})
    return Image(source, width, height, trans)
