"""Shapely-backed implementation of the geometry facade."""

from typing import List

from shapely.errors import ShapelyError
from shapely.geometry import GeometryCollection, LineString, MultiPolygon, Point, Polygon, box
from shapely.geometry.polygon import orient
from shapely.ops import unary_union
from shapely.validation import make_valid

from .boolean_ops import GeometryEngine, rounded_rect_path
from .models import CurvePath


def _polygonal(geom):
    """Keep only the areal part of a geometry."""
    if geom.is_empty:
        return Polygon()
    if isinstance(geom, (Polygon, MultiPolygon)):
        return geom
    if isinstance(geom, GeometryCollection):
        parts = [g for g in geom.geoms if isinstance(g, (Polygon, MultiPolygon)) and not g.is_empty]
        return unary_union(parts) if parts else Polygon()
    return Polygon()


def _polygons(geom) -> List[Polygon]:
    geom = _polygonal(geom)
    if geom.is_empty:
        return []
    if isinstance(geom, MultiPolygon):
        return [g for g in geom.geoms if not g.is_empty]
    return [geom]


class ShapelyEngine(GeometryEngine):
    """Polygon booleans and buffering through shapely/GEOS.

    Curves are flattened into polygons on the way in; results come back as
    straight-segment closed paths with the exterior wound the same way as
    assembled pieces.
    """

    name = "shapely"
    precise = True
    backend_errors = (ShapelyError,)

    def __init__(self, curve_resolution: int = 16, offset_resolution: int = 8):
        super().__init__()
        self.curve_resolution = curve_resolution
        self.offset_resolution = offset_resolution

    def _from_paths(self, paths):
        polygons = []
        for path in paths:
            points = path.get_points(self.curve_resolution)
            if len(points) < 3:
                continue
            poly = Polygon(points)
            if not poly.is_valid:
                poly = make_valid(poly)
            polygons.extend(_polygons(poly))
        if not polygons:
            return Polygon()
        return _polygonal(unary_union(polygons))

    def _to_paths(self, value):
        paths = []
        for poly in sorted(_polygons(value), key=lambda p: p.area, reverse=True):
            poly = orient(poly, sign=1.0)
            paths.append(CurvePath.polygon(list(poly.exterior.coords)))
            for ring in poly.interiors:
                paths.append(CurvePath.polygon(list(ring.coords)))
        return paths

    def _union(self, values):
        return _polygonal(unary_union(values))

    def _difference(self, a, b):
        return _polygonal(a.difference(b))

    def _intersect(self, a, b):
        return _polygonal(a.intersection(b))

    def _simplify(self, value, tolerance):
        return _polygonal(value.simplify(tolerance, preserve_topology=True))

    def _offset(self, value, delta):
        return _polygonal(value.buffer(delta, quad_segs=self.offset_resolution, join_style="round"))

    def _distance(self, a, b):
        return a.distance(b)

    def _area(self, value):
        return value.area

    def _is_empty(self, value):
        return value.is_empty or value.area <= 0.0

    def _circle(self, cx, cy, r):
        return Point(cx, cy).buffer(r, quad_segs=self.curve_resolution)

    def _rect(self, x, y, w, h, corner_radius):
        if corner_radius <= 0.0:
            return box(x, y, x + w, y + h)
        return self._from_paths((rounded_rect_path(x, y, w, h, corner_radius),))

    def _capsule(self, x0, y0, x1, y1, width):
        if (x0, y0) == (x1, y1):
            return Point(x0, y0).buffer(width / 2.0, quad_segs=self.curve_resolution)
        return LineString([(x0, y0), (x1, y1)]).buffer(
            width / 2.0, quad_segs=self.curve_resolution, cap_style="round"
        )
