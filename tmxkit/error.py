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

from typing import Optional

__all__ = (
    "TiledError",
    "MalformedAttributesError",
    "DecodingError",
    "ContentDecodingError",
    "PrematureEndError",
    "UnresolvableReferenceError",
    "TiledIOError",
    "InvalidFormatError",
)


class TiledError(Exception):
    """Base class for every error raised while loading a document."""


class MalformedAttributesError(TiledError):
    """A required attribute is missing, or an attribute value was rejected."""

    def __init__(
        self, message: str, attribute: Optional[str] = None, element: Optional[str] = None
    ) -> None:
        self.message = message
        self.attribute = attribute
        self.element = element
        super().__init__(str(self))

    def __str__(self):
        where = ""
        if self.element:
            where = "<{0}> ".format(self.element)
        if self.attribute:
            where += 'attribute "{0}": '.format(self.attribute)
        return where + self.message


class DecodingError(TiledError):
    """The underlying XML stream is not well formed."""


class ContentDecodingError(TiledError):
    """Layer content could not be decoded.

    `stage` names the step that failed: base64, zlib, gzip, csv, xml or buffer.

    """

    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage
        super().__init__("{0}: {1}".format(stage, message))


class PrematureEndError(TiledError):
    """The document ended before a required closing element."""


class UnresolvableReferenceError(TiledError):
    """An external reference needs a base location that is not known."""


class TiledIOError(TiledError):
    """An external file could not be opened or read."""


class InvalidFormatError(TiledError):
    """Decoded content does not match the declared layout, or an
    enumerated attribute has an unknown value."""
