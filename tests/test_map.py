import io
import unittest

from tmxkit import (
    Color,
    Ellipse,
    InfiniteLayerData,
    Map,
    MapTileset,
    Orientation,
    Point,
    Polygon,
    Polyline,
    Rect,
    RenderOrder,
    Tileset,
    load_map,
)
from tmxkit.error import (
    DecodingError,
    InvalidFormatError,
    MalformedAttributesError,
    PrematureEndError,
)

import builders


def parse_map_without_source(path):
    with open(path, "rb") as fp:
        return Map.parse_reader(fp)


class TestEncodings(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.grid = builders.sample_grid(100, 100)
        cls.maps = dict()
        for encoding, compression in builders.ENCODINGS:
            text = builders.map_document(cls.grid, encoding, compression)
            cls.maps[(encoding, compression)] = Map.from_xml_string(text)

    def test_all_encodings_are_the_same(self):
        reference = self.maps[("csv", None)]
        for key, m in self.maps.items():
            self.assertEqual(reference, m, key)

    def test_known_cells(self):
        for key in (("csv", None), ("base64", None), ("base64", "zlib")):
            tiles = self.maps[key].layers[0].tiles
            self.assertFalse(tiles.infinite)
            self.assertEqual(100, len(tiles))
            self.assertEqual(100, len(tiles[0]))
            self.assertEqual(100, len(tiles[99]))
            self.assertEqual(35, tiles[0][0].gid)
            self.assertEqual(17, tiles[1][0].gid)
            self.assertEqual(0, tiles[2][0].gid)
            self.assertEqual(17, tiles[2][1].gid)
            self.assertTrue(all(cell.gid == 0 for cell in tiles[99]))

    def test_matches_source_grid(self):
        rows = self.maps[("base64", "gzip")].layers[0].tiles.rows
        self.assertEqual(self.grid, [[cell.gid for cell in row] for row in rows])

    def test_map_attributes(self):
        m = self.maps[("csv", None)]
        self.assertEqual("1.10", m.version)
        self.assertIs(Orientation.ORTHOGONAL, m.orientation)
        self.assertIs(RenderOrder.RIGHT_DOWN, m.render_order)
        self.assertEqual((100, 100), (m.width, m.height))
        self.assertEqual((32, 32), (m.tile_width, m.tile_height))
        self.assertFalse(m.infinite)
        self.assertIsNone(m.source)
        self.assertIsNone(m.tilesets[0].source)


class TestFlippedGid(unittest.TestCase):
    def test_flipped_gid(self):
        m = Map.parse_file(builders.resource("flipped.tmx"))
        tiles = m.layers[0].tiles
        t1, t2 = tiles[0]
        t3, t4 = tiles[1]
        self.assertEqual(t1.gid, t2.gid)
        self.assertEqual(t2.gid, t3.gid)
        self.assertEqual(t3.gid, t4.gid)
        self.assertEqual(3, t1.gid)
        self.assertTrue(t1.flip_d)
        self.assertTrue(t1.flip_h)
        self.assertTrue(t1.flip_v)
        self.assertFalse(t2.flip_d)
        self.assertFalse(t2.flip_h)
        self.assertTrue(t2.flip_v)
        self.assertFalse(t3.flip_d)
        self.assertTrue(t3.flip_h)
        self.assertFalse(t3.flip_v)
        self.assertTrue(t4.flip_d)
        self.assertFalse(t4.flip_h)
        self.assertFalse(t4.flip_v)

    def test_flipped_cells_resolve_to_their_tileset(self):
        m = Map.parse_file(builders.resource("flipped.tmx"))
        cell = m.get_tile(0, 0, 0)
        self.assertEqual("tilesheet", m.tileset_for_gid(cell.gid).name)


class TestInfinite(unittest.TestCase):
    def test_four_chunks(self):
        chunk = [[(x + y) % 5 for x in range(32)] for y in range(32)]
        origins = [(0, 0), (-32, 0), (0, 32), (-32, 32)]
        for encoding, compression in builders.ENCODINGS:
            text = builders.infinite_map_document(
                {origin: chunk for origin in origins}, encoding, compression
            )
            m = Map.from_xml_string(text)
            self.assertTrue(m.infinite)
            chunks = m.layers[0].tiles
            self.assertIsInstance(chunks, InfiniteLayerData)
            self.assertEqual(4, len(chunks))
            self.assertEqual(set(origins), set(chunks.chunks))
            for origin in origins:
                self.assertEqual(32, chunks[origin].width)
                self.assertEqual(32, chunks[origin].height)
                self.assertEqual(origin, (chunks[origin].x, chunks[origin].y))
            self.assertEqual(1, chunks[(-32, 32)].tiles[0][1].gid)
            self.assertEqual(2, m.get_tile(-31, 33, 0).gid)

    def test_bad_chunk_fails_the_whole_map(self):
        text = builders.infinite_map_document({(0, 0): [[1, 2]]}, "csv")
        text = text.replace('width="2"', 'width="3"')
        with self.assertRaises(InvalidFormatError):
            Map.from_xml_string(text)


class TestTilesetLookup(unittest.TestCase):
    def setUp(self):
        self.m = Map.parse_file(builders.resource("two_tilesets.tmx"))

    def test_tilesets_sorted_by_first_gid(self):
        self.assertEqual([1, 85], [t.first_gid for t in self.m.tilesets])
        self.assertEqual(["tilesheet", "second"], [t.name for t in self.m.tilesets])

    def test_lookup(self):
        self.assertIsNone(self.m.tileset_for_gid(0))
        self.assertEqual("tilesheet", self.m.tileset_for_gid(1).name)
        self.assertEqual("tilesheet", self.m.tileset_for_gid(84).name)
        self.assertEqual("second", self.m.tileset_for_gid(85).name)
        self.assertEqual("second", self.m.tileset_for_gid(94).name)
        self.assertIsNone(self.m.tileset_for_gid(95))

    def test_lookup_matches_linear_scan(self):
        for gid in range(0, 100):
            expected = [t for t in self.m.tilesets if t.first_gid <= gid < t.first_gid + t.tilecount]
            found = self.m.tileset_for_gid(gid)
            if expected:
                self.assertIs(expected[0], found)
            else:
                self.assertIsNone(found)

    def test_no_tilesets(self):
        m = Map("1.10", Orientation.ORTHOGONAL, 1, 1, 32, 32)
        self.assertIsNone(m.tileset_for_gid(1))

    def test_gap_between_tilesets(self):
        m = Map("1.10", Orientation.ORTHOGONAL, 1, 1, 32, 32)
        m.tilesets = [
            MapTileset(1, Tileset("a", 16, 16, tilecount=4)),
            MapTileset(10, Tileset("b", 16, 16, tilecount=4)),
        ]
        self.assertEqual("a", m.tileset_for_gid(4).name)
        self.assertIsNone(m.tileset_for_gid(5))
        self.assertIsNone(m.tileset_for_gid(9))
        self.assertEqual("b", m.tileset_for_gid(13).name)
        self.assertIsNone(m.tileset_for_gid(14))

    def test_lookup_does_not_scan_tilesets(self):
        class CountingList(list):
            iterations = 0

            def __iter__(self):
                self.iterations += 1
                return super().__iter__()

        m = Map("1.10", Orientation.ORTHOGONAL, 1, 1, 32, 32)
        m.tilesets = CountingList(
            MapTileset(1 + 4 * i, Tileset(str(i), 16, 16, tilecount=4)) for i in range(1000)
        )
        start = m.tilesets.iterations
        for gid in range(1, 4001, 7):
            self.assertEqual(str((gid - 1) // 4), m.tileset_for_gid(gid).name)
        self.assertEqual(1, m.tilesets.iterations - start)

    def test_replacing_tilesets_refreshes_lookup(self):
        self.assertEqual("second", self.m.tileset_for_gid(90).name)
        self.m.tilesets = [MapTileset(1, Tileset("only", 16, 16, tilecount=100))]
        self.assertEqual("only", self.m.tileset_for_gid(90).name)

    def test_add_tileset(self):
        self.assertIsNone(self.m.tileset_for_gid(200))
        self.m.add_tileset(MapTileset(200, Tileset("third", 16, 16, tilecount=5)))
        self.m.add_tileset(MapTileset(95, Tileset("between", 16, 16, tilecount=5)))
        self.assertEqual(
            ["tilesheet", "second", "between", "third"], [t.name for t in self.m.tilesets]
        )
        self.assertEqual("third", self.m.tileset_for_gid(200).name)
        self.assertEqual("between", self.m.tileset_for_gid(99).name)
        self.assertIsNone(self.m.tileset_for_gid(100))

    def test_tile_properties(self):
        self.assertEqual({"kind": "rock"}, self.m.get_tile_properties(87))
        self.assertEqual({"a tile property": "123"}, self.m.get_tile_properties(1))
        self.assertIsNone(self.m.get_tile_properties(2))
        self.assertIsNone(self.m.get_tile_properties(0))

    def test_overlapping_ranges_are_kept(self):
        text = builders.map_document([[1]], "csv").replace(
            "</tileset>",
            '</tileset>\n <tileset firstgid="50" name="overlap" tilewidth="32" tileheight="32" tilecount="10"/>',
            1,
        )
        with self.assertLogs("tmxkit.map", level="WARNING"):
            m = Map.from_xml_string(text)
        self.assertEqual("overlap", m.tileset_for_gid(55).name)
        self.assertEqual("tilesheet", m.tileset_for_gid(49).name)


class TestObjectsAndLayers(unittest.TestCase):
    def setUp(self):
        self.m = parse_map_without_source(builders.resource("object_groups.tmx"))

    def test_map_properties(self):
        self.assertEqual("sunny", self.m.properties["weather"])
        self.assertEqual(3, self.m.properties["level"])
        self.assertEqual("multi\nline", self.m.properties["description"])
        self.assertEqual(Color(255, 0, 0, 128), self.m.background_color)

    def test_layer_indexes_follow_document_order(self):
        layers = self.m.layers_in_order()
        self.assertEqual(
            ["Objects", "Tiles", "Image Layer 1", "Image Layer 2"],
            [layer.name for layer in layers],
        )
        self.assertEqual([0, 1, 2, 3], [layer.layer_index for layer in layers])
        self.assertEqual(0, self.m.object_groups[0].layer_index)
        self.assertEqual(1, self.m.layers[0].layer_index)

    def test_tile_layer_metadata(self):
        layer = self.m.get_layer_by_name("Tiles")
        self.assertEqual(0.5, layer.opacity)
        self.assertFalse(layer.visible)
        self.assertEqual((4.0, -2.0), (layer.offset_x, layer.offset_y))
        self.assertEqual([(0, 0, 1), (1, 1, 2)], [(x, y, c.gid) for x, y, c in layer])
        self.assertNotIn(layer, list(self.m.visible_layers))

    def test_get_tile(self):
        self.assertEqual(1, self.m.get_tile(0, 0, 0).gid)
        self.assertIsNone(self.m.get_tile(1, 0, 0))
        with self.assertRaises(ValueError):
            self.m.get_tile(2, 0, 0)
        with self.assertRaises(ValueError):
            self.m.get_tile(0, 0, 5)

    def test_missing_layer_name(self):
        with self.assertRaises(ValueError):
            self.m.get_layer_by_name("nested")

    def test_object_group(self):
        group = self.m.object_groups[0]
        self.assertEqual(Color(255, 0, 255), group.color)
        self.assertTrue(group.properties["an object group property"])
        self.assertEqual(6, len(group))
        self.assertEqual(6, len(list(self.m.objects)))

    def test_shapes(self):
        objects = self.m.object_groups[0].objects
        box, ellipse, polygon, polyline, point, tile = objects
        self.assertEqual("box", box.name)
        self.assertEqual("spawn", box.type)
        self.assertEqual(Rect(30.0, 40.0), box.shape)
        self.assertEqual(Ellipse(8.0, 8.0), ellipse.shape)
        self.assertEqual(Polygon([(0.0, 0.0), (10.0, 0.0), (10.0, 10.0)]), polygon.shape)
        self.assertEqual(Polyline([(-1.5, 0.0), (1.0, 1.5)]), polyline.shape)
        self.assertEqual(Point(7.0, 8.0), point.shape)
        self.assertEqual([(1.0, 2.0), (11.0, 2.0), (11.0, 12.0)], polygon.as_points)

    def test_tile_object(self):
        tile = self.m.object_groups[0].objects[5]
        self.assertEqual(2, tile.gid)
        self.assertTrue(tile.flags.flipped_horizontally)
        self.assertFalse(tile.visible)
        self.assertEqual(90.0, tile.rotation)

    def test_rotated_object_points(self):
        tile = self.m.object_groups[0].objects[5]
        self.assertEqual([(0.0, 32.0), (0.0, 64.0), (32.0, 64.0), (32.0, 32.0)], tile.as_points)
        expected = [(0.0, 32.0), (-32.0, 32.0), (-32.0, 64.0), (0.0, 64.0)]
        for (x, y), (ex, ey) in zip(tile.apply_transformations(), expected):
            self.assertAlmostEqual(ex, x)
            self.assertAlmostEqual(ey, y)

    def test_unrotated_object_points(self):
        box = self.m.object_groups[0].objects[0]
        self.assertEqual(box.as_points, box.apply_transformations())
        point = self.m.object_groups[0].objects[4]
        self.assertEqual([(7.0, 8.0)], point.apply_transformations())

    def test_image_layers(self):
        first, second = self.m.image_layers
        self.assertEqual("Image Layer 1", first.name)
        self.assertIsNone(first.image)
        self.assertEqual("Image Layer 2", second.name)
        self.assertEqual("tilesheet.png", second.image.source)
        self.assertEqual((448, 192), (second.image.width, second.image.height))
        self.assertEqual(Color(255, 0, 255), second.image.trans)
        self.assertEqual(1.5, second.offset_x)


class TestErrors(unittest.TestCase):
    minimal = builders.map_document([[1]], "csv")

    def test_missing_tilewidth_on_embedded_tileset(self):
        text = self.minimal.replace(' tilewidth="32" tileheight="32" tilecount', ' tileheight="32" tilecount')
        with self.assertRaises(MalformedAttributesError) as cm:
            Map.from_xml_string(text)
        self.assertEqual("tilewidth", cm.exception.attribute)

    def test_missing_map_attribute(self):
        text = self.minimal.replace(' orientation="orthogonal"', "")
        with self.assertRaises(MalformedAttributesError) as cm:
            Map.from_xml_string(text)
        self.assertEqual("orientation", cm.exception.attribute)

    def test_unknown_orientation(self):
        text = self.minimal.replace('orientation="orthogonal"', 'orientation="spherical"')
        with self.assertRaises(InvalidFormatError):
            Map.from_xml_string(text)

    def test_unknown_render_order(self):
        text = self.minimal.replace('renderorder="right-down"', 'renderorder="sideways"')
        with self.assertRaises(InvalidFormatError):
            Map.from_xml_string(text)

    def test_bad_background_color(self):
        text = self.minimal.replace("<map ", '<map backgroundcolor="#zzzzzz" ')
        with self.assertRaises(MalformedAttributesError) as cm:
            Map.from_xml_string(text)
        self.assertEqual("backgroundcolor", cm.exception.attribute)

    def test_malformed_xml(self):
        with self.assertRaises(DecodingError):
            Map.from_xml_string(self.minimal.replace("</layer>", "</layr>"))

    def test_truncated_document(self):
        with self.assertRaises(PrematureEndError):
            Map.from_xml_string(self.minimal[: self.minimal.index("</layer>")])

    def test_unknown_elements_are_ignored(self):
        text = self.minimal.replace(
            "<layer ", '<editorsettings><export target="x" format="y"/></editorsettings>\n <layer '
        )
        self.assertEqual(Map.from_xml_string(self.minimal), Map.from_xml_string(text))

    def test_load_map(self):
        m = load_map(builders.resource("flipped.tmx"))
        self.assertEqual(builders.resource("flipped.tmx"), m.source)

    def test_bytes_reader(self):
        m = Map.parse_reader(io.BytesIO(self.minimal.encode("utf-8")))
        self.assertEqual(1, m.layers[0].tiles[0][0].gid)
