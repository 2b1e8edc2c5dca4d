"""Tests for the shapefile, KMZ/KML and GeoJSON readers."""

import io
import json
import zipfile

import pytest
import shapefile
from pyproj import CRS

from topology_pipeline import build_arc_model, detect_crs, read_geojson, read_kmz, read_shapefile

OUTER_CW = [(0.0, 0.0), (0.0, 4.0), (4.0, 4.0), (4.0, 0.0), (0.0, 0.0)]
HOLE_CCW = [(1.0, 1.0), (3.0, 1.0), (3.0, 3.0), (1.0, 3.0), (1.0, 1.0)]


@pytest.fixture
def polygon_shp(tmp_path):
    base = tmp_path / "parcels"
    w = shapefile.Writer(str(base), shapeType=shapefile.POLYGON)
    w.field("name", "C")
    w.poly([OUTER_CW, HOLE_CCW])
    w.record("donut")
    w.poly([[(5.0, 0.0), (5.0, 1.0), (6.0, 1.0), (6.0, 0.0), (5.0, 0.0)]])
    w.record("block")
    w.close()
    (tmp_path / "parcels.prj").write_text(CRS.from_epsg(4326).to_wkt())
    return base.with_suffix(".shp")


@pytest.fixture
def polyline_shp(tmp_path):
    base = tmp_path / "route"
    w = shapefile.Writer(str(base), shapeType=shapefile.POLYLINEZ)
    w.field("id", "N")
    w.linez([[(0.0, 0.0, -10.0), (1.0, 0.0, -20.0), (2.0, 1.0, -30.0)]])
    w.record(1)
    w.linez([[(2.0, 1.0, -30.0), (3.0, 3.0, -40.0)]])
    w.record(2)
    w.close()
    return base.with_suffix(".shp")


class TestPolygonShapefile:
    def test_reads_features(self, polygon_shp):
        collection, meta = read_shapefile(polygon_shp)
        assert meta.source_type == "POLYGON"
        assert meta.num_features == 2
        assert meta.num_paths == 3
        assert meta.fields == ["name"]
        assert [f.properties["name"] for f in collection.features] == ["donut", "block"]
        assert [f.id for f in collection.features] == [0, 1]

    def test_rings_closed_and_holes_flagged(self, polygon_shp):
        collection, _ = read_shapefile(polygon_shp)
        donut = collection.features[0]
        assert all(p.closed for p in donut.paths)
        assert [p.hole for p in donut.paths] == [False, True]

    def test_detects_crs(self, polygon_shp):
        _, meta = read_shapefile(polygon_shp)
        assert meta.crs_epsg == 4326
        assert meta.is_projected is False

    def test_file_objects(self, polygon_shp):
        collection, meta = read_shapefile(
            shp_file=io.BytesIO(polygon_shp.read_bytes()),
            shx_file=io.BytesIO(polygon_shp.with_suffix(".shx").read_bytes()),
            dbf_file=io.BytesIO(polygon_shp.with_suffix(".dbf").read_bytes()),
            prj_wkt=polygon_shp.with_suffix(".prj").read_text(),
        )
        assert meta.num_features == 2
        assert meta.crs_epsg == 4326
        assert collection.features[1].properties == {"name": "block"}

    def test_requires_a_source(self):
        with pytest.raises(ValueError, match="shp_path or shp_file"):
            read_shapefile()


class TestPolylineShapefile:
    def test_reads_open_paths_with_z(self, polyline_shp):
        collection, meta = read_shapefile(polyline_shp)
        assert meta.source_type == "POLYLINEZ"
        assert meta.has_z is True
        assert meta.crs_epsg is None
        first = collection.features[0].paths[0]
        assert not first.closed
        assert first.coordinates[1] == (1.0, 0.0, -20.0)

    def test_shared_endpoint_becomes_node(self, polyline_shp):
        collection, _ = read_shapefile(polyline_shp)
        model = build_arc_model(collection)
        assert len(model.arc) == 2
        assert len(model.node) == 3

    def test_rejects_point_shapes(self, tmp_path):
        base = tmp_path / "points"
        w = shapefile.Writer(str(base), shapeType=shapefile.POINT)
        w.field("id", "N")
        w.point(1.0, 2.0)
        w.record(1)
        w.close()
        with pytest.raises(ValueError, match="Unsupported shape type"):
            read_shapefile(base.with_suffix(".shp"))


class TestDetectCrs:
    def test_wkt_string(self):
        epsg, name, projected = detect_crs(CRS.from_epsg(32630).to_wkt())
        assert epsg == 32630
        assert "UTM" in name
        assert projected is True

    def test_missing_or_invalid(self, tmp_path):
        assert detect_crs(None) == (None, None, None)
        assert detect_crs(tmp_path / "absent.prj") == (None, None, None)
        assert detect_crs("not a crs") == (None, None, None)


class TestKmlInline:
    KML_LINESTRING = """\
<?xml version="1.0" encoding="UTF-8"?>
<kml xmlns="http://www.opengis.net/kml/2.2">
  <Document>
    <Placemark id="route-1">
      <name>Route</name>
      <ExtendedData><Data name="owner"><value>harbour</value></Data></ExtendedData>
      <LineString>
        <coordinates>-3.5,53.5,-10 -3.4,53.6,-20 -3.3,53.7,-30</coordinates>
      </LineString>
    </Placemark>
  </Document>
</kml>"""

    KML_POLYGON = """\
<?xml version="1.0" encoding="UTF-8"?>
<kml xmlns="http://www.opengis.net/kml/2.2">
  <Document>
    <Placemark>
      <Polygon>
        <outerBoundaryIs><LinearRing>
          <coordinates>0,0 4,0 4,4 0,4 0,0</coordinates>
        </LinearRing></outerBoundaryIs>
        <innerBoundaryIs><LinearRing>
          <coordinates>1,1 1,3 3,3 3,1 1,1</coordinates>
        </LinearRing></innerBoundaryIs>
      </Polygon>
    </Placemark>
    <Placemark><Point><coordinates>1.0,2.0,100</coordinates></Point></Placemark>
  </Document>
</kml>"""

    def test_linestring(self):
        collection, meta = read_kmz(io.BytesIO(self.KML_LINESTRING.encode()))
        assert meta.crs_epsg == 4326
        assert meta.has_z is True
        [feature] = collection.features
        assert feature.id == "route-1"
        assert feature.properties == {"name": "Route", "owner": "harbour"}
        assert feature.paths[0].coordinates[2] == (-3.3, 53.7, -30.0)
        assert not feature.paths[0].closed

    def test_polygon_rings(self):
        collection, meta = read_kmz(io.BytesIO(self.KML_POLYGON.encode()))
        # The point placemark carries no path.
        assert meta.num_features == 1
        assert meta.has_z is False
        paths = collection.features[0].paths
        assert [(p.closed, p.hole) for p in paths] == [(True, False), (True, True)]
        assert collection.features[0].id == 0

    def test_kmz_from_bytes(self):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr("doc.kml", self.KML_LINESTRING)
        buf.seek(0)
        collection, meta = read_kmz(buf)
        assert meta.source_type == "KML"
        assert len(collection.features[0].paths[0].coordinates) == 3

    def test_kmz_without_kml(self):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr("readme.txt", "nothing here")
        buf.seek(0)
        with pytest.raises(ValueError, match="No .kml file"):
            read_kmz(buf)


class TestGeoJson:
    COLLECTION = {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "id": "a",
                "properties": {"kind": "parcel"},
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [
                        [[0, 0], [4, 0], [4, 4], [0, 4], [0, 0]],
                        [[1, 1], [1, 3], [3, 3], [3, 1], [1, 1]],
                    ],
                },
            },
            {
                "type": "Feature",
                "properties": None,
                "geometry": {
                    "type": "MultiLineString",
                    "coordinates": [[[0, 0, 1], [1, 1, 2]], [[2, 2, 3], [3, 3, 4, 99]]],
                },
            },
            {"type": "Feature", "properties": {}, "geometry": {"type": "Point", "coordinates": [1, 1]}},
        ],
    }

    def test_feature_collection(self):
        collection, meta = read_geojson(self.COLLECTION)
        assert meta.source_type == "GeoJSON"
        assert meta.num_features == 2
        assert meta.num_paths == 4
        assert meta.fields == ["kind"]
        polygon, lines = collection.features
        assert polygon.id == "a"
        assert [(p.closed, p.hole) for p in polygon.paths] == [(True, False), (True, True)]
        assert lines.id == 1
        assert lines.properties == {}
        assert [p.closed for p in lines.paths] == [False, False]
        # Values past the third are dropped.
        assert lines.paths[1].coordinates[1] == (3.0, 3.0, 4.0)

    def test_bytes_and_file(self, tmp_path):
        raw = json.dumps(self.COLLECTION).encode()
        path = tmp_path / "input.geojson"
        path.write_bytes(raw)
        assert read_geojson(raw)[0] == read_geojson(path)[0] == read_geojson(self.COLLECTION)[0]

    def test_bare_geometry(self):
        collection, _ = read_geojson({"type": "LineString", "coordinates": [[0, 0], [1, 0]]})
        assert len(collection.features) == 1

    def test_multipolygon(self):
        geometry = {
            "type": "MultiPolygon",
            "coordinates": [
                [[[0, 0], [1, 0], [1, 1], [0, 0]]],
                [[[2, 2], [3, 2], [3, 3], [2, 2]]],
            ],
        }
        collection, _ = read_geojson(geometry)
        assert [p.hole for p in collection.features[0].paths] == [False, False]

    def test_unsupported_type(self):
        with pytest.raises(ValueError, match="Unsupported GeoJSON type"):
            read_geojson({"type": "Topology"})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_geojson(tmp_path / "absent.geojson")
