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

from dataclasses import dataclass, field
from math import cos, radians, sin
from typing import List, Optional, Sequence, Tuple, Union

from .error import MalformedAttributesError
from .layers import TileFlags, decode_gid, empty_flags
from .properties import Color, Properties, parse_properties
from .util import (
    Attr,
    Attributes,
    EventReader,
    convert_to_bool,
    get_attrs,
    parse_tag,
    to_uint32,
)

PointList = List[Tuple[float, float]]


@dataclass(frozen=True)
class Rect:
    width: float
    height: float


@dataclass(frozen=True)
class Ellipse:
    width: float
    height: float


@dataclass(frozen=True)
class Polyline:
    points: PointList


@dataclass(frozen=True)
class Polygon:
    points: PointList


@dataclass(frozen=True)
class Point:
    x: float
    y: float


Shape = Union[Rect, Ellipse, Polyline, Polygon, Point]


def parse_points(text: str) -> PointList:
    """Return list of tuples representing points

    Raises:
        MalformedAttributesError: if a point is not an "x,y" pair of numbers.

    """
    points = list()
    for pair in text.split():
        values = pair.split(",")
        if len(values) != 2:
            raise MalformedAttributesError(
                "one of the points does not have an x and y coordinate", "points"
            )
        try:
            points.append((float(values[0]), float(values[1])))
        except ValueError as e:
            raise MalformedAttributesError(
                "one of the points does not have numeric coordinates", "points"
            ) from e
    return points


def rotate(
    points: Sequence[Tuple[float, float]],
    origin: Tuple[float, float],
    angle: Union[int, float],
) -> PointList:
    """Rotate a sequence of points around an axis.

    Args:
        points (Sequence[Tuple[float, float]]): sequence of points.
        origin (Tuple[float, float]): point where points are rotated around.
        angle (Union[int, float]): angle in degrees.

    Returns:
        PointList: List of rotated points.

    """
    ox, oy = origin
    sin_t = sin(radians(angle))
    cos_t = cos(radians(angle))
    new_points = list()
    for x, y in points:
        new_points.append(
            (
                ox + (cos_t * (x - ox) - sin_t * (y - oy)),
                oy + (sin_t * (x - ox) + cos_t * (y - oy)),
            )
        )
    return new_points


@dataclass
class Object:
    """Represents any Tiled Object.

    Supported shapes: Rect, Ellipse, Polyline, Polygon, Point.  Tile
    objects have a non-zero `gid`, with flip bits decoded into `flags`.

    """

    id: int
    gid: int
    name: str
    type: str
    x: float
    y: float
    width: float
    height: float
    rotation: float
    visible: bool
    shape: Shape
    properties: Properties = field(default_factory=dict)
    flags: TileFlags = empty_flags

    @property
    def as_points(self) -> PointList:
        """Outline of the object in map pixels, before rotation."""
        if isinstance(self.shape, (Polyline, Polygon)):
            return [(self.x + x, self.y + y) for x, y in self.shape.points]
        if isinstance(self.shape, Point):
            return [(self.x, self.y)]
        return [
            (self.x, self.y),
            (self.x, self.y + self.height),
            (self.x + self.width, self.y + self.height),
            (self.x + self.width, self.y),
        ]

    def apply_transformations(self) -> PointList:
        """Return all points for object, taking in account rotation."""
        return rotate(self.as_points, (self.x, self.y), self.rotation)


def parse_object(reader: EventReader, attrs: Attributes) -> Object:
    (obj_id, raw_gid, name, obj_type, width, height, visible, rotation), (x, y) = get_attrs(
        attrs,
        optionals=[
            Attr("id", int, 0),
            Attr("gid", to_uint32, 0),
            Attr("name", default=""),
            Attr("type", default=""),
            Attr("width", float, 0.0),
            Attr("height", float, 0.0),
            Attr("visible", convert_to_bool, True),
            Attr("rotation", float, 0.0),
        ],
        required=[Attr("x", float), Attr("y", float)],
        message="objects must have an x and a y number",
        element="object",
    )
    gid, flags = decode_gid(raw_gid)
    shape = None
    properties = dict()

    def ellipse(attrs):
        nonlocal shape
        shape = Ellipse(width, height)
        parse_tag(reader, "ellipse", {})

    def poly(tag, cls):
        def handler(attrs):
            nonlocal shape
            (), (points,) = get_attrs(
                attrs, [], [Attr("points")], "a {0} must have points".format(tag), tag
            )
            shape = cls(parse_points(points))
            parse_tag(reader, tag, {})

        return handler

    def point(attrs):
        nonlocal shape
        shape = Point(x, y)
        parse_tag(reader, "point", {})

    def properties_(attrs):
        nonlocal properties
        properties = parse_properties(reader)

    parse_tag(
        reader,
        "object",
        {
            "ellipse": ellipse,
            "polyline": poly("polyline", Polyline),
            "polygon": poly("polygon", Polygon),
            "point": point,
            "properties": properties_,
        },
    )

    return Object(
        id=obj_id,
        gid=gid,
        name=name,
        type=obj_type,
        x=x,
        y=y,
        width=width,
        height=height,
        rotation=rotation,
        visible=visible,
        shape=shape or Rect(width, height),
        properties=properties,
        flags=flags,
    )


@dataclass
class ObjectGroup:
    """Represents an object group.

    Collision groups attached to tiles have no `layer_index`.

    """

    name: str
    opacity: float
    visible: bool
    color: Optional[Color]
    objects: List[Object] = field(default_factory=list)
    properties: Properties = field(default_factory=dict)
    layer_index: Optional[int] = None

    def __iter__(self):
        return iter(self.objects)

    def __len__(self):
        return len(self.objects)


def parse_object_group(
    reader: EventReader, attrs: Attributes, layer_index: Optional[int] = None
) -> ObjectGroup:
    (name, opacity, visible, color), () = get_attrs(
        attrs,
        optionals=[
            Attr("name", default=""),
            Attr("opacity", float, 1.0),
            Attr("visible", convert_to_bool, True),
            Attr("color", Color.from_hex, strict=True),
        ],
        required=[],
        message="object group color must be a hex color",
        element="objectgroup",
    )
    objects = list()
    properties = dict()

    def object_(attrs):
        objects.append(parse_object(reader, attrs))

    def properties_(attrs):
        nonlocal properties
        properties = parse_properties(reader)

    parse_tag(reader, "objectgroup", {"object": object_, "properties": properties_})
    return ObjectGroup(name, opacity, visible, color, objects, properties, layer_index)
