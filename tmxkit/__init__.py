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
import logging

from .cache import DefaultResourceCache, ResourceCache
from .error import *
from .image import Image
from .layers import (
    Cell,
    Chunk,
    FiniteLayerData,
    ImageLayer,
    InfiniteLayerData,
    TileFlags,
    TileLayer,
    decode_gid,
)
from .map import Map, Orientation, RenderOrder, load_map
from .objects import Ellipse, Object, ObjectGroup, Point, Polygon, Polyline, Rect
from .properties import Color
from .tileset import AnimationFrame, MapTileset, Tile, Tileset, parse_tileset
from .util import convert_to_bool

logger = logging.getLogger(__name__)

__version__ = (0, 1)
__author__ = "bitcraft"
__author_email__ = "leif.theden@gmail.com"
__description__ = "Loader for Tiled TMX maps and TSX tilesets - Python 3.7 +"
