"""Curve, path and piece data models for laser-cut jigsaw geometry.

Paths are kept as ordered tuples of line, cubic Bézier and elliptical arc
segments with explicit endpoints. Reversal, reflection and rigid transforms
are plain tuple operations, so an edge shared by two pieces can be derived
arithmetically instead of being regenerated or re-parsed from text.

Coordinates follow SVG conventions: x grows to the right and y grows
downward, in millimetres.
"""

import math
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

Point = Tuple[float, float]

# Magic number for quarter-circle approximation with a cubic Bézier
KAPPA = 0.5522847498

# Default number of decimals written into SVG path data
SVG_PRECISION = 4


def format_number(value: float, precision: int = SVG_PRECISION) -> str:
    """Format a coordinate for SVG path data without trailing zeros."""
    text = f"{value:.{precision}f}".rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


def _fmt_point(p: Point, precision: int) -> str:
    return f"{format_number(p[0], precision)} {format_number(p[1], precision)}"


@dataclass(frozen=True)
class Affine:
    """2-D affine map ``(x, y) -> (a*x + b*y + e, c*x + d*y + f)``."""

    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    e: float = 0.0
    f: float = 0.0

    @classmethod
    def translation(cls, dx: float, dy: float) -> "Affine":
        return cls(e=dx, f=dy)

    @classmethod
    def scaling(cls, sx: float, sy: Optional[float] = None) -> "Affine":
        return cls(a=sx, d=sx if sy is None else sy)

    @classmethod
    def quarter_turns(cls, turns: int) -> "Affine":
        """Exact rotation by a multiple of 90 degrees.

        One turn maps (x, y) to (-y, x). With the y axis pointing down this
        reads as a clockwise quarter turn on screen.
        """
        turns %= 4
        if turns == 0:
            return cls()
        if turns == 1:
            return cls(a=0.0, b=-1.0, c=1.0, d=0.0)
        if turns == 2:
            return cls(a=-1.0, d=-1.0)
        return cls(a=0.0, b=1.0, c=-1.0, d=0.0)

    @classmethod
    def rotation(cls, degrees: float, origin: Point = (0.0, 0.0)) -> "Affine":
        """Rotation about an origin; multiples of 90 degrees stay exact."""
        if float(degrees) % 90.0 == 0.0:
            rotate = cls.quarter_turns(int(round(degrees / 90.0)))
        else:
            radians = math.radians(degrees)
            cos, sin = math.cos(radians), math.sin(radians)
            rotate = cls(a=cos, b=-sin, c=sin, d=cos)
        ox, oy = origin
        return cls.translation(ox, oy).compose(rotate).compose(cls.translation(-ox, -oy))

    def compose(self, inner: "Affine") -> "Affine":
        """Return the map applying ``inner`` first, then ``self``."""
        return Affine(
            a=self.a * inner.a + self.b * inner.c,
            b=self.a * inner.b + self.b * inner.d,
            c=self.c * inner.a + self.d * inner.c,
            d=self.c * inner.b + self.d * inner.d,
            e=self.a * inner.e + self.b * inner.f + self.e,
            f=self.c * inner.e + self.d * inner.f + self.f,
        )

    @property
    def determinant(self) -> float:
        return self.a * self.d - self.b * self.c

    def apply(self, p: Point) -> Point:
        x, y = p
        return (self.a * x + self.b * y + self.e, self.c * x + self.d * y + self.f)

    def apply_vector(self, v: Point) -> Point:
        x, y = v
        return (self.a * x + self.b * y, self.c * x + self.d * y)


@dataclass(frozen=True)
class LineSegment:
    """A straight segment."""

    p0: Point
    p1: Point

    @property
    def start(self) -> Point:
        return self.p0

    @property
    def end(self) -> Point:
        return self.p1

    def evaluate(self, t: float) -> Point:
        return (self.p0[0] + (self.p1[0] - self.p0[0]) * t, self.p0[1] + (self.p1[1] - self.p0[1]) * t)

    def get_points(self, num_points: int = 2) -> np.ndarray:
        return np.array([self.p0, self.p1])

    def reversed(self) -> "LineSegment":
        return LineSegment(self.p1, self.p0)

    def with_end(self, p: Point) -> "LineSegment":
        return replace(self, p1=p)

    def transformed(self, affine: Affine) -> "LineSegment":
        return LineSegment(affine.apply(self.p0), affine.apply(self.p1))

    def points(self) -> Tuple[Point, ...]:
        return (self.p0, self.p1)

    def to_svg(self, precision: int = SVG_PRECISION) -> str:
        return f"L {_fmt_point(self.p1, precision)}"


@dataclass(frozen=True)
class BezierCurve:
    """A cubic Bézier curve defined by 4 control points."""

    p0: Tuple[float, float]  # Start point
    p1: Tuple[float, float]  # Control point 1
    p2: Tuple[float, float]  # Control point 2
    p3: Tuple[float, float]  # End point

    @property
    def start(self) -> Point:
        return self.p0

    @property
    def end(self) -> Point:
        return self.p3

    def evaluate(self, t: float) -> Tuple[float, float]:
        """Evaluate the curve at parameter t (0 to 1)."""
        t2 = t * t
        t3 = t2 * t
        mt = 1 - t
        mt2 = mt * mt
        mt3 = mt2 * mt

        x = mt3 * self.p0[0] + 3 * mt2 * t * self.p1[0] + 3 * mt * t2 * self.p2[0] + t3 * self.p3[0]
        y = mt3 * self.p0[1] + 3 * mt2 * t * self.p1[1] + 3 * mt * t2 * self.p2[1] + t3 * self.p3[1]
        return (x, y)

    def get_points(self, num_points: int = 50) -> np.ndarray:
        """Generate points along the curve."""
        t_values = np.linspace(0, 1, num_points)
        points = [self.evaluate(t) for t in t_values]
        return np.array(points)

    def reversed(self) -> "BezierCurve":
        """Swap p0<->p3 and p1<->p2."""
        return BezierCurve(p0=self.p3, p1=self.p2, p2=self.p1, p3=self.p0)

    def with_end(self, p: Point) -> "BezierCurve":
        return replace(self, p3=p)

    def transformed(self, affine: Affine) -> "BezierCurve":
        return BezierCurve(
            p0=affine.apply(self.p0),
            p1=affine.apply(self.p1),
            p2=affine.apply(self.p2),
            p3=affine.apply(self.p3),
        )

    def points(self) -> Tuple[Point, ...]:
        return (self.p0, self.p1, self.p2, self.p3)

    def to_svg(self, precision: int = SVG_PRECISION) -> str:
        return (
            f"C {_fmt_point(self.p1, precision)} {_fmt_point(self.p2, precision)} "
            f"{_fmt_point(self.p3, precision)}"
        )


@dataclass(frozen=True)
class ArcSegment:
    """An elliptical arc in SVG endpoint parametrization.

    ``rotation`` is the x-axis rotation of the ellipse in degrees. The
    ``large_arc`` and ``sweep`` flags follow the SVG ``A`` command.
    """

    p0: Point
    rx: float
    ry: float
    rotation: float
    large_arc: bool
    sweep: bool
    p1: Point

    @property
    def start(self) -> Point:
        return self.p0

    @property
    def end(self) -> Point:
        return self.p1

    def center_parameters(self) -> Optional[Tuple[float, float, float, float, float, float]]:
        """Convert to center parametrization (SVG implementation notes F.6.5).

        Returns:
            Tuple of (cx, cy, rx, ry, theta1, delta_theta) with radii scaled
            up when too small to span the chord, or None for a degenerate
            arc that should be drawn as a straight line.
        """
        (x1, y1), (x2, y2) = self.p0, self.p1
        rx, ry = abs(self.rx), abs(self.ry)
        if rx == 0.0 or ry == 0.0 or (x1 == x2 and y1 == y2):
            return None

        phi = math.radians(self.rotation)
        cos_phi, sin_phi = math.cos(phi), math.sin(phi)
        dx2 = (x1 - x2) / 2.0
        dy2 = (y1 - y2) / 2.0
        x1p = cos_phi * dx2 + sin_phi * dy2
        y1p = -sin_phi * dx2 + cos_phi * dy2

        # Scale radii up if the chord does not fit
        lam = (x1p * x1p) / (rx * rx) + (y1p * y1p) / (ry * ry)
        if lam > 1.0:
            scale = math.sqrt(lam)
            rx *= scale
            ry *= scale

        num = rx * rx * ry * ry - rx * rx * y1p * y1p - ry * ry * x1p * x1p
        den = rx * rx * y1p * y1p + ry * ry * x1p * x1p
        coef = math.sqrt(max(0.0, num / den))
        if self.large_arc == self.sweep:
            coef = -coef
        cxp = coef * (rx * y1p / ry)
        cyp = coef * (-ry * x1p / rx)

        cx = cos_phi * cxp - sin_phi * cyp + (x1 + x2) / 2.0
        cy = sin_phi * cxp + cos_phi * cyp + (y1 + y2) / 2.0

        ux, uy = (x1p - cxp) / rx, (y1p - cyp) / ry
        vx, vy = (-x1p - cxp) / rx, (-y1p - cyp) / ry
        theta1 = math.atan2(uy, ux)
        delta = math.atan2(ux * vy - uy * vx, ux * vx + uy * vy)
        if not self.sweep and delta > 0:
            delta -= 2 * math.pi
        elif self.sweep and delta < 0:
            delta += 2 * math.pi
        return cx, cy, rx, ry, theta1, delta

    def evaluate(self, t: float) -> Point:
        params = self.center_parameters()
        if params is None:
            return LineSegment(self.p0, self.p1).evaluate(t)
        if t <= 0.0:
            return self.p0
        if t >= 1.0:
            return self.p1
        cx, cy, rx, ry, theta1, delta = params
        phi = math.radians(self.rotation)
        angle = theta1 + delta * t
        x = cx + rx * math.cos(phi) * math.cos(angle) - ry * math.sin(phi) * math.sin(angle)
        y = cy + rx * math.sin(phi) * math.cos(angle) + ry * math.cos(phi) * math.sin(angle)
        return (x, y)

    def get_points(self, num_points: int = 50) -> np.ndarray:
        t_values = np.linspace(0, 1, num_points)
        return np.array([self.evaluate(t) for t in t_values])

    def reversed(self) -> "ArcSegment":
        return ArcSegment(self.p1, self.rx, self.ry, self.rotation, self.large_arc, not self.sweep, self.p0)

    def with_end(self, p: Point) -> "ArcSegment":
        return replace(self, p1=p)

    def transformed(self, affine: Affine) -> "ArcSegment":
        """Map the arc through a conformal or axis-aligned affine transform.

        Raises:
            ValueError: If the transform would shear the ellipse axes.
        """
        phi = math.radians(self.rotation)
        u = affine.apply_vector((self.rx * math.cos(phi), self.rx * math.sin(phi)))
        v = affine.apply_vector((-self.ry * math.sin(phi), self.ry * math.cos(phi)))
        u_len = math.hypot(*u)
        v_len = math.hypot(*v)
        if abs(u[0] * v[0] + u[1] * v[1]) > 1e-9 * max(u_len * v_len, 1e-12):
            raise ValueError("Affine transform shears the arc ellipse")
        rotation = math.degrees(math.atan2(u[1], u[0])) % 360.0
        sweep = self.sweep if affine.determinant > 0 else not self.sweep
        return ArcSegment(
            affine.apply(self.p0), u_len, v_len, rotation, self.large_arc, sweep, affine.apply(self.p1)
        )

    def points(self) -> Tuple[Point, ...]:
        return (self.p0, self.p1)

    def to_svg(self, precision: int = SVG_PRECISION) -> str:
        return (
            f"A {format_number(self.rx, precision)} {format_number(self.ry, precision)} "
            f"{format_number(self.rotation, precision)} {int(self.large_arc)} {int(self.sweep)} "
            f"{_fmt_point(self.p1, precision)}"
        )


Segment = Union[LineSegment, BezierCurve, ArcSegment]


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned bounding box."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Point:
        return ((self.min_x + self.max_x) / 2.0, (self.min_y + self.max_y) / 2.0)

    @classmethod
    def from_points(cls, points: np.ndarray) -> "BoundingBox":
        if len(points) == 0:
            return cls(0.0, 0.0, 0.0, 0.0)
        mins = points.min(axis=0)
        maxs = points.max(axis=0)
        return cls(float(mins[0]), float(mins[1]), float(maxs[0]), float(maxs[1]))

    def padded(self, amount: float) -> "BoundingBox":
        return BoundingBox(self.min_x - amount, self.min_y - amount, self.max_x + amount, self.max_y + amount)

    def translated(self, dx: float, dy: float) -> "BoundingBox":
        return BoundingBox(self.min_x + dx, self.min_y + dy, self.max_x + dx, self.max_y + dy)

    def separated_from(self, other: "BoundingBox", gap: float = 0.0) -> bool:
        """True when the boxes are further apart than ``gap`` on some axis."""
        return (
            self.max_x + gap < other.min_x
            or self.min_x - gap > other.max_x
            or self.max_y + gap < other.min_y
            or self.min_y - gap > other.max_y
        )

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.min_x, "y": self.min_y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class CurvePath:
    """An ordered run of segments, optionally closed.

    Consecutive segments share endpoints: ``segments[i].end`` is
    ``segments[i + 1].start``.
    """

    segments: Tuple[Segment, ...]
    closed: bool = False

    @classmethod
    def from_segments(cls, segments: Sequence[Segment], closed: bool = False) -> "CurvePath":
        return cls(tuple(segments), closed)

    @classmethod
    def polygon(cls, points: Sequence[Point]) -> "CurvePath":
        """Closed path through the given vertices."""
        pts = [(float(x), float(y)) for x, y in points]
        if len(pts) > 1 and pts[0] == pts[-1]:
            pts = pts[:-1]
        segments = [LineSegment(pts[i], pts[(i + 1) % len(pts)]) for i in range(len(pts))]
        return cls(tuple(segments), closed=True)

    def __len__(self) -> int:
        return len(self.segments)

    @property
    def start(self) -> Point:
        return self.segments[0].start

    @property
    def end(self) -> Point:
        return self.segments[-1].end

    def reversed(self) -> "CurvePath":
        """Traverse the same geometry in the opposite direction."""
        return CurvePath(tuple(segment.reversed() for segment in reversed(self.segments)), self.closed)

    def transformed(self, affine: Affine) -> "CurvePath":
        return CurvePath(tuple(segment.transformed(affine) for segment in self.segments), self.closed)

    def transform(
        self,
        translate: Tuple[float, float],
        scale: Tuple[float, float] = (1.0, 1.0),
        quarter_turns: int = 0,
    ) -> "CurvePath":
        """Rotate by quarter turns, then scale, then translate.

        Args:
            translate: (x, y) offset to apply after rotation and scaling.
            scale: (sx, sy) scale factors.
            quarter_turns: Number of (x, y) -> (-y, x) rotations (0-3).

        Returns:
            Transformed path.
        """
        affine = (
            Affine.translation(*translate)
            .compose(Affine.scaling(*scale))
            .compose(Affine.quarter_turns(quarter_turns))
        )
        return self.transformed(affine)

    def translated(self, dx: float, dy: float) -> "CurvePath":
        return self.transformed(Affine.translation(dx, dy))

    def rotated(self, degrees: float, origin: Point = (0.0, 0.0)) -> "CurvePath":
        return self.transformed(Affine.rotation(degrees, origin))

    def reflected(self) -> "CurvePath":
        """Negate the y coordinate of every point (flip across y = 0)."""
        return self.transformed(Affine.scaling(1.0, -1.0))

    def mirrored(self, length: float) -> "CurvePath":
        """View of an edge from the neighbouring piece.

        Reverses segment order and negates the perpendicular axis, keeping
        the result in a local frame that again runs from (0, 0) to
        (length, 0).
        """
        return self.reversed().transformed(Affine(a=-1.0, d=-1.0, e=length))

    def extended(self, other: "CurvePath") -> "CurvePath":
        return CurvePath(self.segments + other.segments, self.closed)

    def as_closed(self) -> "CurvePath":
        return replace(self, closed=True)

    def get_points(self, points_per_curve: int = 20) -> np.ndarray:
        """Sample the path into a polyline (consecutive duplicates dropped)."""
        chunks: List[np.ndarray] = []
        for i, segment in enumerate(self.segments):
            pts = segment.get_points(points_per_curve)
            chunks.append(pts if i == 0 else pts[1:])
        if not chunks:
            return np.zeros((0, 2))
        return np.vstack(chunks)

    def bounds(self, points_per_curve: int = 20) -> BoundingBox:
        return BoundingBox.from_points(self.get_points(points_per_curve))

    def length(self, points_per_curve: int = 20) -> float:
        pts = self.get_points(points_per_curve)
        if len(pts) < 2:
            return 0.0
        return float(np.sum(np.hypot(*np.diff(pts, axis=0).T)))

    def is_finite(self) -> bool:
        for segment in self.segments:
            for x, y in segment.points():
                if not (math.isfinite(x) and math.isfinite(y)):
                    return False
        return True

    def closure_gap(self) -> float:
        """Distance between the path end and its start."""
        return math.hypot(self.end[0] - self.start[0], self.end[1] - self.start[1])

    def to_svg(self, precision: int = SVG_PRECISION) -> str:
        """Serialize to SVG path data (``M ... Z``)."""
        if not self.segments:
            return ""
        parts = [f"M {_fmt_point(self.start, precision)}"]
        parts.extend(segment.to_svg(precision) for segment in self.segments)
        if self.closed:
            parts.append("Z")
        return " ".join(parts)


def paths_to_svg(paths: Sequence[CurvePath], precision: int = SVG_PRECISION) -> str:
    """Serialize several subpaths into a single path-data string."""
    return " ".join(path.to_svg(precision) for path in paths if path.segments)


def outline_bounds(paths: Sequence[CurvePath]) -> BoundingBox:
    """Bounding box of one or more paths."""
    points = [path.get_points() for path in paths if path.segments]
    if not points:
        return BoundingBox(0.0, 0.0, 0.0, 0.0)
    return BoundingBox.from_points(np.vstack(points))


@dataclass(frozen=True)
class Piece:
    """One puzzle piece.

    Attributes:
        row: Grid row (0-indexed from the top).
        col: Grid column (0-indexed from the left).
        piece_id: Stable ID, row letter followed by column number ("A1").
        outline: Closed outer boundary (one or more subpaths after clipping).
        original: Outline before kerf/clearance compensation.
        bbox: Bounds of the outline, knobs included.
        position: Logical top-left corner of the cell.
    """

    row: int
    col: int
    piece_id: str
    outline: Tuple[CurvePath, ...]
    original: Tuple[CurvePath, ...]
    bbox: BoundingBox
    position: Point

    @property
    def path(self) -> CurvePath:
        """Primary (largest) subpath."""
        return self.outline[0]

    def to_svg(self, precision: int = SVG_PRECISION) -> str:
        return paths_to_svg(self.outline, precision)

    def with_outline(self, outline: Sequence[CurvePath], as_original: bool = False) -> "Piece":
        """Copy with a new outline; the bounding box follows the outline.

        Reshaping steps that run before kerf compensation (clipping, the
        center cutout) pass ``as_original=True`` so ``original`` follows too.
        """
        outline = tuple(outline)
        original = outline if as_original else self.original
        return replace(self, outline=outline, original=original, bbox=outline_bounds(outline))

    def bounds(self) -> BoundingBox:
        return outline_bounds(self.outline)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.piece_id,
            "row": self.row,
            "col": self.col,
            "path": self.to_svg(),
            "original_path": paths_to_svg(self.original),
            "bbox": self.bbox.to_dict(),
            "position": {"x": self.position[0], "y": self.position[1]},
        }


def piece_id(row: int, col: int) -> str:
    """Stable piece ID: row letter followed by 1-based column number."""
    return f"{chr(65 + row)}{col + 1}"


