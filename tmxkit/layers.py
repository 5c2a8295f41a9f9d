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

import binascii
import gzip
import logging
import struct
import zlib
from base64 import b64decode
from collections import namedtuple
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .error import ContentDecodingError, InvalidFormatError
from .image import Image, parse_image
from .properties import Properties, parse_properties
from .util import (
    Attr,
    Attributes,
    EventReader,
    convert_to_bool,
    get_attrs,
    parse_tag,
    read_text,
    to_uint,
    to_uint32,
)

__all__ = (
    "Cell",
    "Chunk",
    "FiniteLayerData",
    "InfiniteLayerData",
    "TileFlags",
    "TileLayer",
    "ImageLayer",
    "decode_gid",
    "unpack_gids",
    "decode_cells",
)

logger = logging.getLogger(__name__)

# Tiled gid flags
GID_TRANS_FLIPX = 1 << 31
GID_TRANS_FLIPY = 1 << 30
GID_TRANS_ROT = 1 << 29
GID_MASK = GID_TRANS_FLIPX | GID_TRANS_FLIPY | GID_TRANS_ROT

flag_names = ("flipped_horizontally", "flipped_vertically", "flipped_diagonally")

TileFlags = namedtuple("TileFlags", flag_names)
empty_flags = TileFlags(False, False, False)


def decode_gid(raw_gid: int) -> Tuple[int, TileFlags]:
    """Decode a GID from TMX data.

    Args:
        raw_gid (int): GID, as stored by Tiled.

    Returns:
        Tuple[int, TileFlags]: Tuple of the GID without flip bits, and TileFlags object.

    """
    gid = raw_gid & ~GID_MASK
    if raw_gid < GID_TRANS_ROT or not gid:
        return gid, empty_flags
    return (
        gid,
        TileFlags(
            raw_gid & GID_TRANS_FLIPX == GID_TRANS_FLIPX,
            raw_gid & GID_TRANS_FLIPY == GID_TRANS_FLIPY,
            raw_gid & GID_TRANS_ROT == GID_TRANS_ROT,
        ),
    )


@dataclass(frozen=True)
class Cell:
    """Content of one grid position: a GID and its flip flags.

    GID 0 is empty space and never carries flags.

    """

    gid: int
    flip_h: bool = False
    flip_v: bool = False
    flip_d: bool = False

    @classmethod
    def from_bits(cls, raw_gid: int) -> Cell:
        gid, flags = decode_gid(raw_gid)
        return cls(gid, *flags)

    def to_bits(self) -> int:
        raw = self.gid
        if self.flip_h:
            raw |= GID_TRANS_FLIPX
        if self.flip_v:
            raw |= GID_TRANS_FLIPY
        if self.flip_d:
            raw |= GID_TRANS_ROT
        return raw

    @property
    def flags(self) -> TileFlags:
        return TileFlags(self.flip_h, self.flip_v, self.flip_d)

    @property
    def is_empty(self) -> bool:
        return self.gid == 0


def unpack_gids(
    text: str,
    encoding: Optional[str] = None,
    compression: Optional[str] = None,
) -> List[int]:
    """Return all raw gids from encoded/compressed layer data.

    Args:
        text (str): Layer data in text format.
        encoding (Optional[str]): "csv" or "base64".
        compression (Optional[str]): "zlib", "gzip" or None, base64 only.

    Returns:
        List[int]: Raw 32-bit values, flip bits included.

    Raises:
        ContentDecodingError: if a decoding stage fails.
        InvalidFormatError: on an unknown encoding or compression.

    """
    if encoding == "base64":
        try:
            data = b64decode("".join(text.split()), validate=True)
        except binascii.Error as e:
            raise ContentDecodingError("base64", str(e)) from e
        if compression == "gzip":
            try:
                data = gzip.decompress(data)
            except (OSError, EOFError, zlib.error) as e:
                raise ContentDecodingError("gzip", str(e)) from e
        elif compression == "zlib":
            try:
                data = zlib.decompress(data)
            except zlib.error as e:
                raise ContentDecodingError("zlib", str(e)) from e
        elif compression:
            raise InvalidFormatError(
                "layer compression {0} is not supported.".format(compression)
            )
        if len(data) % 4:
            raise ContentDecodingError(
                "buffer", "{0} bytes is not a whole number of tiles".format(len(data))
            )
        fmt = "<%dL" % (len(data) // 4)
        return list(struct.unpack(fmt, data))
    elif encoding == "csv":
        gids = list()
        tokens = text.split(",")
        for index, token in enumerate(tokens):
            token = token.strip()
            if not token:
                # a trailing comma, or no data at all
                if index == len(tokens) - 1:
                    break
                raise ContentDecodingError(
                    "csv", "empty value at position {0}".format(index)
                )
            try:
                gids.append(to_uint32(token))
            except ValueError as e:
                raise ContentDecodingError("csv", str(e)) from e
        return gids
    raise InvalidFormatError("layer encoding {0} is not supported.".format(encoding))


def decode_cells(raw_gids: List[int], width: int, height: int) -> List[List[Cell]]:
    """Split raw values into rows of cells, row-major.

    Raises:
        InvalidFormatError: if the number of values is not width * height.

    """
    if len(raw_gids) != width * height:
        raise InvalidFormatError(
            "expected {0}x{1}={2} tiles, found {3}".format(
                width, height, width * height, len(raw_gids)
            )
        )
    # identical values share one Cell
    cells: Dict[int, Cell] = dict()
    row: List[Cell] = list()
    rows = list()
    for raw_gid in raw_gids:
        cell = cells.get(raw_gid)
        if cell is None:
            cell = cells[raw_gid] = Cell.from_bits(raw_gid)
        row.append(cell)
        if len(row) == width:
            rows.append(row)
            row = list()
    return rows


@dataclass
class Chunk:
    """A rectangular piece of an infinite layer.  x, y is the origin, in tiles."""

    x: int
    y: int
    width: int
    height: int
    tiles: List[List[Cell]]

    def contains(self, x: int, y: int) -> bool:
        return self.x <= x < self.x + self.width and self.y <= y < self.y + self.height

    def get_tile(self, x: int, y: int) -> Cell:
        """Return the cell at local chunk coordinates."""
        return self.tiles[y][x]


@dataclass
class FiniteLayerData:
    width: int
    height: int
    rows: List[List[Cell]]

    infinite = False

    def __getitem__(self, y: int) -> List[Cell]:
        return self.rows[y]

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    def get_tile(self, x: int, y: int) -> Optional[Cell]:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise ValueError("Tile coordinates ({0},{1}) are invalid".format(x, y))
        cell = self.rows[y][x]
        return None if cell.is_empty else cell

    def iter_data(self) -> Iterable[Tuple[int, int, Cell]]:
        for y, row in enumerate(self.rows):
            for x, cell in enumerate(row):
                yield x, y, cell


@dataclass
class InfiniteLayerData:
    chunks: Dict[Tuple[int, int], Chunk] = field(default_factory=dict)

    infinite = True

    def __getitem__(self, origin: Tuple[int, int]) -> Chunk:
        return self.chunks[origin]

    def __len__(self) -> int:
        return len(self.chunks)

    def __iter__(self):
        return iter(self.chunks.values())

    def get_tile(self, x: int, y: int) -> Optional[Cell]:
        """Return the non-empty cell at map coordinates, or None."""
        for chunk in self.chunks.values():
            if chunk.contains(x, y):
                cell = chunk.get_tile(x - chunk.x, y - chunk.y)
                if not cell.is_empty:
                    return cell
        return None

    def iter_data(self) -> Iterable[Tuple[int, int, Cell]]:
        for chunk in self.chunks.values():
            for y, row in enumerate(chunk.tiles):
                for x, cell in enumerate(row):
                    yield chunk.x + x, chunk.y + y, cell


LayerData = Union[FiniteLayerData, InfiniteLayerData]


def _read_tile_elements(reader: EventReader, close_tag: str) -> List[int]:
    """Read <tile gid="..."/> children, the uncompressed XML format."""
    gids = list()

    def tile(attrs):
        (gid,), () = get_attrs(attrs, [Attr("gid", default="0")], [], "", "tile")
        try:
            gids.append(to_uint32(gid))
        except ValueError as e:
            raise ContentDecodingError("xml", str(e)) from e
        parse_tag(reader, "tile", {})

    parse_tag(reader, close_tag, {"tile": tile})
    return gids


def _read_cells(
    reader: EventReader,
    close_tag: str,
    encoding: Optional[str],
    compression: Optional[str],
    width: int,
    height: int,
) -> List[List[Cell]]:
    if encoding is None:
        raw_gids = _read_tile_elements(reader, close_tag)
    else:
        raw_gids = unpack_gids(read_text(reader, close_tag), encoding, compression)
    return decode_cells(raw_gids, width, height)


def parse_layer_data(
    reader: EventReader, attrs: Attributes, width: int, height: int, infinite: bool
) -> LayerData:
    """Decode an open <data> element.

    Finite layers yield one grid of width x height.  Infinite layers yield
    one grid per <chunk>, keyed by chunk origin; chunks are not checked for
    gaps or overlap.

    """
    (encoding, compression), () = get_attrs(
        attrs,
        optionals=[Attr("encoding"), Attr("compression")],
        required=[],
        message="",
        element="data",
    )
    compression = compression or None

    if not infinite:
        rows = _read_cells(reader, "data", encoding, compression, width, height)
        return FiniteLayerData(width, height, rows)

    chunks = dict()

    def chunk(attrs):
        (), (x, y, chunk_width, chunk_height) = get_attrs(
            attrs,
            optionals=[],
            required=[
                Attr("x", int),
                Attr("y", int),
                Attr("width", to_uint),
                Attr("height", to_uint),
            ],
            message="chunk must have x, y, width and height with correct types",
            element="chunk",
        )
        tiles = _read_cells(reader, "chunk", encoding, compression, chunk_width, chunk_height)
        chunks[(x, y)] = Chunk(x, y, chunk_width, chunk_height, tiles)

    parse_tag(reader, "data", {"chunk": chunk})
    logger.debug("decoded %d chunks", len(chunks))
    return InfiniteLayerData(chunks)


@dataclass
class TileLayer:
    """Represents a tile layer.

    `tiles` is a FiniteLayerData for finite maps and an InfiniteLayerData
    for infinite maps, never a mix.

    """

    name: str
    width: int
    height: int
    opacity: float
    visible: bool
    offset_x: float
    offset_y: float
    tiles: LayerData
    properties: Properties = field(default_factory=dict)
    layer_index: int = 0
    id: Optional[int] = None

    def __iter__(self):
        return self.iter_data()

    def iter_data(self) -> Iterable[Tuple[int, int, Cell]]:
        """Yields X, Y, Cell tuples for each non-empty tile in the layer."""
        return ((x, y, cell) for x, y, cell in self.tiles.iter_data() if cell.gid)

    def get_tile(self, x: int, y: int) -> Optional[Cell]:
        return self.tiles.get_tile(x, y)


def parse_tile_layer(
    reader: EventReader, attrs: Attributes, infinite: bool, layer_index: int
) -> TileLayer:
    (name, opacity, visible, offset_x, offset_y, layer_id), (width, height) = get_attrs(
        attrs,
        optionals=[
            Attr("name", default=""),
            Attr("opacity", float, 1.0),
            Attr("visible", convert_to_bool, True),
            Attr("offsetx", float, 0.0),
            Attr("offsety", float, 0.0),
            Attr("id", int),
        ],
        required=[Attr("width", to_uint), Attr("height", to_uint)],
        message="layer must have a width and height with correct types",
        element="layer",
    )
    tiles = None
    properties = dict()

    def data(attrs):
        nonlocal tiles
        tiles = parse_layer_data(reader, attrs, width, height, infinite)

    def properties_(attrs):
        nonlocal properties
        properties = parse_properties(reader)

    parse_tag(reader, "layer", {"data": data, "properties": properties_})

    if tiles is None:
        raise InvalidFormatError('layer "{0}" has no data'.format(name))

    return TileLayer(
        name=name,
        width=width,
        height=height,
        opacity=opacity,
        visible=visible,
        offset_x=offset_x,
        offset_y=offset_y,
        tiles=tiles,
        properties=properties,
        layer_index=layer_index,
        id=layer_id,
    )


@dataclass
class ImageLayer:
    """Represents an image layer."""

    name: str
    opacity: float
    visible: bool
    offset_x: float
    offset_y: float
    image: Optional[Image]
    properties: Properties = field(default_factory=dict)
    layer_index: int = 0


def parse_image_layer(reader: EventReader, attrs: Attributes, layer_index: int) -> ImageLayer:
    (name, opacity, visible, offset_x, offset_y), () = get_attrs(
        attrs,
        optionals=[
            Attr("name", default=""),
            Attr("opacity", float, 1.0),
            Attr("visible", convert_to_bool, True),
            Attr("offsetx", float, 0.0),
            Attr("offsety", float, 0.0),
        ],
        required=[],
        message="",
        element="imagelayer",
    )
    image = None
    properties = dict()

    def image_(attrs):
        nonlocal image
        image = parse_image(reader, attrs)

    def properties_(attrs):
        nonlocal properties
        properties = parse_properties(reader)

    parse_tag(reader, "imagelayer", {"image": image_, "properties": properties_})
    return ImageLayer(name, opacity, visible, offset_x, offset_y, image, properties, layer_index)
