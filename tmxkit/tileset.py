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
import os
from dataclasses import dataclass, field
from typing import IO, TYPE_CHECKING, Dict, List, Optional, Tuple

from .error import TiledIOError, UnresolvableReferenceError
from .image import Image, parse_image
from .objects import ObjectGroup, parse_object_group
from .properties import Properties, parse_properties
from .util import (
    Attr,
    Attributes,
    EventReader,
    find_root,
    get_attrs,
    parse_tag,
    to_uint,
)

if TYPE_CHECKING:
    from .cache import ResourceCache

__all__ = (
    "AnimationFrame",
    "Tile",
    "Tileset",
    "MapTileset",
    "parse_tileset",
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnimationFrame:
    """One frame of a tile animation.

    `tile_id` is local to the tileset, not a GID.  `duration` is in
    milliseconds.

    """

    tile_id: int
    duration: int


def parse_animation(reader: EventReader) -> Tuple[AnimationFrame, ...]:
    frames = list()

    def frame(attrs):
        (), (tile_id, duration) = get_attrs(
            attrs,
            optionals=[],
            required=[Attr("tileid", to_uint), Attr("duration", to_uint)],
            message="a frame must have a tileid and duration",
            element="frame",
        )
        frames.append(AnimationFrame(tile_id, duration))
        parse_tag(reader, "frame", {})

    parse_tag(reader, "animation", {"frame": frame})
    return tuple(frames)


@dataclass(frozen=True)
class Tile:
    """Metadata for one tile of a tileset.

    Only tiles that carry something (properties, an image, an animation,
    colliders) are listed by Tiled.

    """

    id: int
    images: Tuple[Image, ...] = ()
    properties: Properties = field(default_factory=dict)
    objectgroup: Optional[ObjectGroup] = None
    animation: Optional[Tuple[AnimationFrame, ...]] = None
    type: Optional[str] = None
    probability: float = 1.0


def parse_tile(reader: EventReader, attrs: Attributes) -> Tile:
    (tile_type, probability), (tile_id,) = get_attrs(
        attrs,
        optionals=[
            Attr("type"),
            Attr("probability", float, 1.0),
        ],
        required=[Attr("id", to_uint)],
        message="tile must have an id with the correct type",
        element="tile",
    )
    images = list()
    properties = dict()
    objectgroup = None
    animation = None

    def image(attrs):
        images.append(parse_image(reader, attrs))

    def properties_(attrs):
        nonlocal properties
        properties = parse_properties(reader)

    def objectgroup_(attrs):
        nonlocal objectgroup
        objectgroup = parse_object_group(reader, attrs)

    def animation_(attrs):
        nonlocal animation
        animation = parse_animation(reader)

    parse_tag(
        reader,
        "tile",
        {
            "image": image,
            "properties": properties_,
            "objectgroup": objectgroup_,
            "animation": animation_,
        },
    )
    return Tile(
        id=tile_id,
        images=tuple(images),
        properties=properties,
        objectgroup=objectgroup,
        animation=animation,
        type=tile_type,
        probability=probability,
    )


@dataclass(frozen=True)
class Tileset:
    """The intrinsic part of a tileset, shared between maps.

    A Tileset has no GID range of its own; maps see it through a
    MapTileset, which adds the map's first GID.

    `source` is the file the tileset was read from: the .tsx file for
    external tilesets, the map file for embedded ones, or None when the
    document had no known location.

    """

    name: str
    tile_width: int
    tile_height: int
    spacing: int = 0
    margin: int = 0
    tilecount: int = 0
    columns: int = 0
    offset: Tuple[int, int] = (0, 0)
    images: Tuple[Image, ...] = ()
    tiles: Tuple[Tile, ...] = ()
    properties: Properties = field(default_factory=dict)
    source: Optional[str] = None
    _tiles_by_id: Dict[int, Tile] = field(
        init=False, repr=False, compare=False, default_factory=dict
    )

    def __post_init__(self):
        object.__setattr__(self, "_tiles_by_id", {tile.id: tile for tile in self.tiles})

    @classmethod
    def parse_reader(
        cls, reader: IO, path: Optional[str] = None, chunk_size: int = 65536
    ) -> Tileset:
        """Parse a standalone tileset document (.tsx).

        Args:
            reader (IO): Binary or text file-like object.
            path (Optional[str]): Location of the document, stored as `source`.

        """
        events = EventReader(reader, chunk_size)
        attrs = find_root(events, "tileset", "Tileset")
        return parse_tileset_element(events, attrs, path)

    def get_tile(self, tile_id: int) -> Optional[Tile]:
        """Return metadata for a local tile id, or None if Tiled stored none."""
        return self._tiles_by_id.get(tile_id)

    def resolve_path(self, relative: str) -> str:
        """Return `relative` (e.g. an image source) joined to this tileset's folder."""
        if self.source is None:
            return relative
        return os.path.join(os.path.dirname(self.source), relative)


def _count_tiles(
    images: List[Image], tiles: List[Tile], tile_width, tile_height, spacing, margin
) -> Tuple[int, int]:
    """Derive (tilecount, columns) when the document does not state them."""
    if images and tile_width and tile_height:
        image = images[0]
        columns = (image.width - 2 * margin + spacing) // (tile_width + spacing)
        rows = (image.height - 2 * margin + spacing) // (tile_height + spacing)
        return max(columns, 0) * max(rows, 0), max(columns, 0)
    if tiles:
        return max(tile.id for tile in tiles) + 1, 0
    return 0, 0


def parse_tileset_element(
    reader: EventReader, attrs: Attributes, source: Optional[str]
) -> Tileset:
    """Parse an open <tileset> element holding a full definition."""
    (spacing, margin, tilecount, columns), (name, tile_width, tile_height) = get_attrs(
        attrs,
        optionals=[
            Attr("spacing", to_uint, 0),
            Attr("margin", to_uint, 0),
            Attr("tilecount", to_uint),
            Attr("columns", to_uint),
        ],
        required=[
            Attr("name"),
            Attr("tilewidth", to_uint),
            Attr("tileheight", to_uint),
        ],
        message="tileset must have a name, tile width and height with correct types",
        element="tileset",
    )
    images = list()
    tiles = list()
    properties = dict()
    offset = (0, 0)

    def image(attrs):
        images.append(parse_image(reader, attrs))

    def tile(attrs):
        tiles.append(parse_tile(reader, attrs))

    def properties_(attrs):
        nonlocal properties
        properties = parse_properties(reader)

    def tileoffset(attrs):
        nonlocal offset
        (x, y), () = get_attrs(
            attrs, [Attr("x", int, 0), Attr("y", int, 0)], [], "", "tileoffset"
        )
        offset = (x, y)
        parse_tag(reader, "tileoffset", {})

    parse_tag(
        reader,
        "tileset",
        {
            "image": image,
            "tile": tile,
            "properties": properties_,
            "tileoffset": tileoffset,
        },
    )

    if tilecount is None or columns is None:
        counted, counted_columns = _count_tiles(
            images, tiles, tile_width, tile_height, spacing, margin
        )
        if tilecount is None:
            tilecount = counted
        if columns is None:
            columns = counted_columns

    tiles.sort(key=lambda t: t.id)
    return Tileset(
        name=name,
        tile_width=tile_width,
        tile_height=tile_height,
        spacing=spacing,
        margin=margin,
        tilecount=tilecount,
        columns=columns,
        offset=offset,
        images=tuple(images),
        tiles=tuple(tiles),
        properties=properties,
        source=source,
    )


@dataclass(frozen=True)
class MapTileset:
    """A tileset as seen from one map: a shared Tileset plus the map's first GID.

    Attributes not defined here are read from the shared tileset, so
    `map_tileset.name` and `map_tileset.tile_width` work as expected.

    """

    first_gid: int
    tileset: Tileset

    def __getattr__(self, item):
        if item == "tileset":
            raise AttributeError(item)
        return getattr(self.tileset, item)

    @property
    def last_gid(self) -> int:
        """Last GID of the range; first_gid - 1 for an empty tileset."""
        return self.first_gid + self.tileset.tilecount - 1

    def contains_gid(self, gid: int) -> bool:
        return self.first_gid <= gid < self.first_gid + self.tileset.tilecount

    def get_tile(self, gid: int) -> Optional[Tile]:
        """Return metadata for a GID of this tileset, or None."""
        if not self.contains_gid(gid):
            return None
        return self.tileset.get_tile(gid - self.first_gid)


def parse_tileset(
    reader: IO, first_gid: int = 1, path: Optional[str] = None
) -> MapTileset:
    """Parse a standalone tileset document and give it a GID range.

    External tilesets do not store a first GID; that lives in the map.
    If you do not need GIDs, the default of 1 works fine.

    """
    return MapTileset(first_gid, Tileset.parse_reader(reader, path))


def load_external_tileset(path: str) -> Tileset:
    """Open and parse a .tsx file."""
    logger.debug("loading external tileset %s", path)
    try:
        with open(path, "rb") as fp:
            return Tileset.parse_reader(fp, path)
    except OSError as e:
        msg = "Error loading external tileset: {0}"
        logger.error(msg.format(path))
        raise TiledIOError(msg.format(path)) from e


def resolve_tileset(
    reader: EventReader,
    attrs: Attributes,
    map_path: Optional[str],
    cache: ResourceCache,
) -> MapTileset:
    """Resolve an open <tileset> element of a map.

    Embedded definitions are parsed in place.  A reference with a
    "source" is resolved relative to the map's folder and loaded through
    `cache`, so each external file is parsed once per cache.

    Raises:
        UnresolvableReferenceError: if the tileset is external and the map
            has no known path.
        TiledIOError: if the external file cannot be read.

    """
    (source,), (first_gid,) = get_attrs(
        attrs,
        optionals=[Attr("source")],
        required=[Attr("firstgid", to_uint)],
        message="tileset must have a firstgid with the correct type",
        element="tileset",
    )
    if source is None:
        return MapTileset(first_gid, parse_tileset_element(reader, attrs, map_path))

    # a reference is an empty element
    parse_tag(reader, "tileset", {})
    if map_path is None:
        msg = "Maps with external tilesets must know their file location: {0}"
        logger.debug(msg.format(source))
        raise UnresolvableReferenceError(msg.format(source))

    path = os.path.normpath(os.path.join(os.path.dirname(map_path), source))
    tileset = cache.get_or_try_insert_tileset_with(
        path, lambda: load_external_tileset(path)
    )
    return MapTileset(first_gid, tileset)
