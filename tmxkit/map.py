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

import io
import logging
import os
from bisect import bisect_right
from dataclasses import dataclass, field
from enum import Enum
from itertools import chain
from typing import IO, Iterable, List, Optional, Union

from .cache import DefaultResourceCache, ResourceCache
from .error import InvalidFormatError, TiledIOError
from .layers import Cell, ImageLayer, TileLayer, parse_image_layer, parse_tile_layer
from .objects import Object, ObjectGroup, parse_object_group
from .properties import Color, Properties, parse_properties
from .tileset import MapTileset, Tile, resolve_tileset
from .util import (
    Attr,
    Attributes,
    EventReader,
    convert_to_bool,
    find_root,
    get_attrs,
    parse_tag,
    to_uint,
)

__all__ = ("Map", "Orientation", "RenderOrder", "load_map")

logger = logging.getLogger(__name__)

AnyLayer = Union[TileLayer, ObjectGroup, ImageLayer]


class Orientation(Enum):
    ORTHOGONAL = "orthogonal"
    ISOMETRIC = "isometric"
    STAGGERED = "staggered"
    HEXAGONAL = "hexagonal"

    @classmethod
    def parse(cls, value: str) -> Orientation:
        try:
            return cls(value)
        except ValueError:
            raise InvalidFormatError('unknown map orientation "{0}"'.format(value)) from None


class RenderOrder(Enum):
    RIGHT_DOWN = "right-down"
    RIGHT_UP = "right-up"
    LEFT_DOWN = "left-down"
    LEFT_UP = "left-up"

    @classmethod
    def parse(cls, value: str) -> RenderOrder:
        try:
            return cls(value)
        except ValueError:
            raise InvalidFormatError('unknown render order "{0}"'.format(value)) from None


@dataclass
class Map:
    """Contains the layers, objects, and tilesets from a Tiled .tmx map.

    `tilesets` is always sorted by first GID; `tileset_for_gid` relies on it.
    Every layer has a `layer_index`, counted across all layer kinds in
    document order.

    """

    version: str
    orientation: Orientation
    width: int  # in tiles
    height: int
    tile_width: int  # in pixels
    tile_height: int
    render_order: RenderOrder = RenderOrder.RIGHT_DOWN
    infinite: bool = False
    background_color: Optional[Color] = None
    hexsidelength: Optional[int] = None
    staggeraxis: Optional[str] = None
    staggerindex: Optional[str] = None
    nextlayerid: Optional[int] = None
    nextobjectid: Optional[int] = None
    tiledversion: Optional[str] = None
    tilesets: List[MapTileset] = field(default_factory=list)
    layers: List[TileLayer] = field(default_factory=list)
    object_groups: List[ObjectGroup] = field(default_factory=list)
    image_layers: List[ImageLayer] = field(default_factory=list)
    properties: Properties = field(default_factory=dict)
    source: Optional[str] = None
    _first_gids: Optional[List[int]] = field(
        default=None, init=False, repr=False, compare=False
    )

    def __setattr__(self, name, value):
        # search keys follow `tilesets`; rebuilt on the next lookup
        if name == "tilesets":
            object.__setattr__(self, "_first_gids", None)
        object.__setattr__(self, name, value)

    def __repr__(self):
        return '<{0}: "{1}">'.format(self.__class__.__name__, self.source)

    # loading

    @classmethod
    def parse_file(cls, path, cache: Optional[ResourceCache] = None) -> Map:
        """Load a map from a .tmx file.

        Args:
            path: Filename of the map.  External tilesets are found relative to it.
            cache (Optional[ResourceCache]): Shared tileset cache; a new one by default.

        Raises:
            TiledIOError: if the file cannot be read.

        """
        path = os.fspath(path)
        try:
            with open(path, "rb") as fp:
                return cls.parse_reader(fp, path, cache)
        except OSError as e:
            msg = "Error loading map: {0}"
            logger.error(msg.format(path))
            raise TiledIOError(msg.format(path)) from e

    @classmethod
    def parse_reader(
        cls,
        reader: IO,
        path=None,
        cache: Optional[ResourceCache] = None,
        chunk_size: int = 65536,
    ) -> Map:
        """Load a map from a binary or text file-like object.

        Args:
            reader (IO): The document.
            path: Where the document came from.  Needed only when it
                references external tilesets.
            cache (Optional[ResourceCache]): Shared tileset cache; a new one by default.
            chunk_size (int): Bytes fed to the XML parser at a time.

        """
        if cache is None:
            cache = DefaultResourceCache()
        if path is not None:
            path = os.fspath(path)
        events = EventReader(reader, chunk_size)
        attrs = find_root(events, "map", "Map")
        return parse_map_element(events, attrs, path, cache)

    @classmethod
    def from_xml_string(
        cls, xml_string: str, path=None, cache: Optional[ResourceCache] = None
    ) -> Map:
        """Return a Map from a string containing xml data."""
        return cls.parse_reader(io.StringIO(xml_string), path, cache)

    # gid lookup

    def tileset_for_gid(self, gid: int) -> Optional[MapTileset]:
        """Return the tileset that owns the gid, or None.

        Binary search over the tilesets, sorted by first GID.  The search
        keys are built once and reused until `tilesets` is replaced or
        `add_tileset` is called; mutate the list in place only through
        `add_tileset`.

        """
        if not gid or not self.tilesets:
            return None
        if self._first_gids is None:
            self._first_gids = [t.first_gid for t in self.tilesets]
        index = bisect_right(self._first_gids, gid) - 1
        if index < 0:
            return None
        tileset = self.tilesets[index]
        if tileset.contains_gid(gid):
            return tileset
        return None

    def add_tileset(self, tileset: MapTileset) -> None:
        """Add a tileset to the map, keeping the tilesets sorted by first GID."""
        index = bisect_right([t.first_gid for t in self.tilesets], tileset.first_gid)
        self.tilesets.insert(index, tileset)
        self._first_gids = None
        _check_tileset_ranges(self.tilesets)

    def get_tile_properties(self, gid: int) -> Optional[Properties]:
        """Return the custom properties of a tile GID, or None."""
        tile = self.get_tile_metadata(gid)
        if tile is None:
            return None
        return tile.properties

    def get_tile_metadata(self, gid: int) -> Optional[Tile]:
        tileset = self.tileset_for_gid(gid)
        if tileset is None:
            return None
        return tileset.get_tile(gid)

    # layers

    def layers_in_order(self) -> List[AnyLayer]:
        """All layers, of every kind, in document order."""
        return sorted(
            chain(self.layers, self.object_groups, self.image_layers),
            key=lambda layer: layer.layer_index,
        )

    @property
    def visible_layers(self) -> Iterable[AnyLayer]:
        return (layer for layer in self.layers_in_order() if layer.visible)

    @property
    def objects(self) -> Iterable[Object]:
        """Returns iterator of all the objects associated with the map."""
        return chain(*self.object_groups)

    def get_layer_by_name(self, name: str) -> AnyLayer:
        """Return a layer by name.  Case-sensitive!

        Raises:
            ValueError: if layer by name does not exist

        """
        for layer in self.layers_in_order():
            if layer.name == name:
                return layer
        msg = 'Layer "{0}" not found.'
        logger.debug(msg.format(name))
        raise ValueError(msg.format(name))

    def get_tile(self, x: int, y: int, layer: int) -> Optional[Cell]:
        """Return the cell at this location of a tile layer, or None if empty.

        Args:
            x (int): The x coordinate.
            y (int): The y coordinate.
            layer (int): Index into `layers`.

        Raises:
            ValueError: if the layer or the coordinates are out of bounds.

        """
        if layer < 0:
            raise ValueError("Layer must be non-negative, was {0}".format(layer))
        try:
            tile_layer = self.layers[layer]
        except IndexError:
            raise ValueError("Layer not found: {0}".format(layer)) from None
        return tile_layer.get_tile(x, y)


def _check_tileset_ranges(tilesets: List[MapTileset]) -> None:
    # documents are trusted; overlapping ranges are reported, not rejected
    for previous, current in zip(tilesets, tilesets[1:]):
        if previous.first_gid + previous.tilecount > current.first_gid:
            logger.warning(
                'GID ranges of tilesets "%s" and "%s" overlap',
                previous.name,
                current.name,
            )


def parse_map_element(
    reader: EventReader, attrs: Attributes, path: Optional[str], cache: ResourceCache
) -> Map:
    """Assemble a Map from an open <map> element."""
    (
        render_order,
        background_color,
        infinite,
        hexsidelength,
        staggeraxis,
        staggerindex,
        nextlayerid,
        nextobjectid,
        tiledversion,
    ), (version, orientation, width, height, tile_width, tile_height) = get_attrs(
        attrs,
        optionals=[
            Attr("renderorder", RenderOrder.parse, RenderOrder.RIGHT_DOWN),
            Attr("backgroundcolor", Color.from_hex, strict=True),
            Attr("infinite", convert_to_bool, False),
            Attr("hexsidelength", int),
            Attr("staggeraxis"),
            Attr("staggerindex"),
            Attr("nextlayerid", int),
            Attr("nextobjectid", int),
            Attr("tiledversion"),
        ],
        required=[
            Attr("version"),
            Attr("orientation", Orientation.parse),
            Attr("width", to_uint),
            Attr("height", to_uint),
            Attr("tilewidth", to_uint),
            Attr("tileheight", to_uint),
        ],
        message="map must have a version, orientation, width, height, "
        "tile width and tile height with correct types",
        element="map",
    )

    tilesets = list()
    layers = list()
    object_groups = list()
    image_layers = list()
    properties = dict()
    layer_index = 0

    def tileset(attrs):
        tilesets.append(resolve_tileset(reader, attrs, path, cache))

    def layer(attrs):
        nonlocal layer_index
        layers.append(parse_tile_layer(reader, attrs, infinite, layer_index))
        layer_index += 1

    def objectgroup(attrs):
        nonlocal layer_index
        object_groups.append(parse_object_group(reader, attrs, layer_index))
        layer_index += 1

    def imagelayer(attrs):
        nonlocal layer_index
        image_layers.append(parse_image_layer(reader, attrs, layer_index))
        layer_index += 1

    def properties_(attrs):
        nonlocal properties
        properties = parse_properties(reader)

    parse_tag(
        reader,
        "map",
        {
            "tileset": tileset,
            "layer": layer,
            "objectgroup": objectgroup,
            "imagelayer": imagelayer,
            "properties": properties_,
        },
    )

    # stable sort keeps document order for equal first GIDs
    tilesets.sort(key=lambda t: t.first_gid)
    _check_tileset_ranges(tilesets)

    logger.debug(
        "loaded map %s: %d tilesets, %d layers", path, len(tilesets), layer_index
    )
    return Map(
        version=version,
        orientation=orientation,
        width=width,
        height=height,
        tile_width=tile_width,
        tile_height=tile_height,
        render_order=render_order,
        infinite=infinite,
        background_color=background_color,
        hexsidelength=hexsidelength,
        staggeraxis=staggeraxis,
        staggerindex=staggerindex,
        nextlayerid=nextlayerid,
        nextobjectid=nextobjectid,
        tiledversion=tiledversion,
        tilesets=tilesets,
        layers=layers,
        object_groups=object_groups,
        image_layers=image_layers,
        properties=properties,
        source=path,
    )


def load_map(path, cache: Optional[ResourceCache] = None) -> Map:
    """Load a .tmx file.  Same as Map.parse_file."""
    return Map.parse_file(path, cache)
