"""Knob geometry for a single puzzle edge.

Every knob is authored in a local frame where the edge runs from (0, 0) to
(L, 0). The piece that views the edge forward lies on the +y side, so a tab
(``sign=+1``) bulges toward -y and a slot (``sign=-1``) bulges toward +y.
All dimensions are ratios of the edge length or of the smaller cell side,
never absolute millimetres.
"""

import enum
import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Tuple

from .models import KAPPA, ArcSegment, BezierCurve, CurvePath, LineSegment, Point, Segment
from .rng import SeededRandom

logger = logging.getLogger(__name__)

# Pieces whose smaller side is below this (mm) get a fragility warning
MIN_PIECE_SIZE_MM = 15.0

# Jitter above this is reduced on pieces smaller than JITTER_REDUCTION_SIZE_MM
MAX_SAFE_JITTER = 0.25
JITTER_REDUCTION_SIZE_MM = 25.0

# Classic bulb radius relative to the smaller cell side, and its hard cap
KNOB_RADIUS_RATIO = 0.18
MAX_KNOB_RADIUS_RATIO = 0.22

# Classic neck/shoulder dimensions relative to the bulb radius
NECK_WIDTH_RATIO = 0.45
NECK_LENGTH_RATIO = 0.35
SHOULDER_RATIO = 0.60

# Keep-out distance from each edge end, relative to edge length
SAFE_MARGIN_RATIO = 0.12

# Deepest any knob may reach across its edge, relative to the smaller cell side
MAX_KNOB_DEPTH_RATIO = 0.33

# Extra gap between a knob footprint and the deepest knob on a perpendicular side
CORNER_CLEARANCE_RATIO = 0.01

# Largest knob shift along the edge, relative to edge length
MAX_SHIFT_RATIO = 0.15

# Difficulty moves the knob up to this fraction of the edge length
DIFFICULTY_OFFSET_RATIO = 0.2

WARN_SMALL_PIECES = "Pieces are very small; knobs may be fragile."
WARN_KNOB_REDUCED = "Knob size reduced to prevent overlaps."
WARN_JITTER_REDUCED = "High jitter reduced to prevent overlaps."


class KnobStyle(str, enum.Enum):
    """Available knob shapes."""

    CLASSIC = "classic"
    ORGANIC = "organic"
    SIMPLE = "simple"


@dataclass(frozen=True)
class KnobSpec:
    """Tunable knob parameters shared by every edge of a puzzle."""

    # Knob family
    style: KnobStyle = KnobStyle.CLASSIC

    # Overall knob size (40-90 percent)
    size_pct: float = 65.0

    # Bulb roundness (0.6 = pointed, 1.0 = circular)
    roundness: float = 0.85

    # Random variation of all ratios (0-0.35)
    jitter: float = 0.15

    # Straight run at each end of the edge, relative to edge length
    flat_ratio: float = 0.10

    # 0 = regular grid, 100 = maximum variation in knob position and depth
    difficulty: float = 0.0

    @property
    def size_scale(self) -> float:
        """Map size_pct 40..90 onto a 0.7..1.3 multiplier."""
        return 0.7 + (self.size_pct - 40.0) / 50.0 * 0.6

    @property
    def difficulty_factor(self) -> float:
        return self.difficulty / 100.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["style"] = self.style.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnobSpec":
        """Create from dictionary."""
        values = dict(data)
        values["style"] = KnobStyle(values.get("style", KnobStyle.CLASSIC))
        return cls(**values)


@dataclass(frozen=True)
class ClassicGeometry:
    """Resolved classic knob dimensions for one edge (all in mm)."""

    knob_radius: float
    neck_width: float
    neck_length: float
    shoulder: float
    flat: float
    bulb_shift: float


@dataclass(frozen=True)
class EdgeShape:
    """Knob path for one edge in its local frame."""

    path: CurvePath
    sign: int
    knob_radius: float
    bulb_shift: float
    warnings: Tuple[str, ...] = ()


def _local(u: float, n: float, sign: int) -> Point:
    """Local-frame point ``u`` along the edge, ``n`` outward from the viewing piece."""
    return (u, -sign * n)


def _unit(dx: float, dn: float) -> Tuple[float, float]:
    norm = (dx * dx + dn * dn) ** 0.5
    return (dx / norm, dn / norm)


def size_warnings(min_dim: float, spec: KnobSpec) -> Tuple[KnobSpec, List[str]]:
    """Validate piece size against the knob parameters before any edge is drawn.

    Args:
        min_dim: The smaller side of a grid cell.
        spec: Requested knob parameters.

    Returns:
        Tuple of (possibly reduced spec, warnings).
    """
    warnings: List[str] = []
    if min_dim < MIN_PIECE_SIZE_MM:
        warnings.append(WARN_SMALL_PIECES)
    if spec.jitter > MAX_SAFE_JITTER and min_dim < JITTER_REDUCTION_SIZE_MM:
        warnings.append(WARN_JITTER_REDUCED)
        spec = KnobSpec(
            style=spec.style,
            size_pct=spec.size_pct,
            roundness=spec.roundness,
            jitter=MAX_SAFE_JITTER,
            flat_ratio=spec.flat_ratio,
            difficulty=spec.difficulty,
        )
    return spec, warnings


def depth_cap(length: float, min_dim: float) -> float:
    """Deepest any knob of the grid may reach across its edge."""
    return MAX_KNOB_DEPTH_RATIO * min(length, min_dim)


def keep_out(length: float, min_dim: float, flat: float) -> float:
    """Distance from each edge end that a knob footprint must stay clear of.

    Besides the flat run and safety margin, the footprint starts beyond the
    deepest knob a perpendicular side of the same cell can have, so knobs on
    neighbouring sides never reach each other's region.
    """
    corner = depth_cap(length, min_dim) + CORNER_CLEARANCE_RATIO * min(length, min_dim)
    return max(flat + SAFE_MARGIN_RATIO * length, corner)


def _fit_footprint(length: float, margin: float, half_width: float) -> float:
    """Scale factor (at most 1) that fits a footprint between the keep-out zones."""
    available = length - 2.0 * margin
    if available > 0 and 2.0 * half_width > available:
        return available / (2.0 * half_width)
    return 1.0


def _clamp_shift(length: float, margin: float, half_width: float, shift: float) -> float:
    """Clamp a knob shift so its footprint stays ``margin`` clear of both edge ends."""
    min_x = margin
    max_x = length - margin
    max_shift = max(0.0, min(MAX_SHIFT_RATIO * length, (max_x - min_x) / 2.0))
    shift = max(-max_shift, min(max_shift, shift))

    if length / 2.0 + shift - half_width < min_x:
        shift = min_x + half_width - length / 2.0
    if length / 2.0 + shift + half_width > max_x:
        shift = max_x - half_width - length / 2.0
    return shift


def calculate_classic_geometry(
    length: float,
    min_dim: float,
    spec: KnobSpec,
    rng: SeededRandom,
) -> Tuple[ClassicGeometry, List[str]]:
    """Resolve classic knob dimensions with safety clamps.

    Draw order from ``rng`` is fixed: jitter, radius variation, neck width,
    neck length, shoulder, position offset.

    Returns:
        Tuple of (geometry, warnings).
    """
    warnings: List[str] = []
    df = spec.difficulty_factor

    jitter_factor = 1.0 + (rng.random() - 0.5) * spec.jitter
    knob_radius = (spec.size_pct / 100.0) * KNOB_RADIUS_RATIO * min_dim
    knob_radius *= (1.0 + df * 0.5) * (0.9 + rng.random() * 0.2) * jitter_factor

    max_radius = MAX_KNOB_RADIUS_RATIO * min_dim
    if knob_radius > max_radius:
        knob_radius = max_radius
        warnings.append(WARN_KNOB_REDUCED)

    neck_width = NECK_WIDTH_RATIO * knob_radius * (0.9 + rng.random() * 0.2)
    neck_length = NECK_LENGTH_RATIO * knob_radius * (0.9 + rng.random() * 0.2)
    shoulder = SHOULDER_RATIO * knob_radius * (0.9 + rng.random() * 0.2)
    flat = spec.flat_ratio * length

    # The bulb top sits at neck_length + 2r
    factor = min(1.0, depth_cap(length, min_dim) / (neck_length + 2.0 * knob_radius))

    # The footprint must fit between the two keep-out zones
    margin = keep_out(length, min_dim, flat)
    half_width = shoulder + neck_width / 2.0 + knob_radius * 0.3
    factor *= _fit_footprint(length, margin, half_width * factor)
    if factor < 1.0:
        knob_radius *= factor
        neck_width *= factor
        neck_length *= factor
        shoulder *= factor
        half_width *= factor
        if WARN_KNOB_REDUCED not in warnings:
            warnings.append(WARN_KNOB_REDUCED)

    position_offset = (rng.random() - 0.5) * 2.0 * df * DIFFICULTY_OFFSET_RATIO * length
    position_offset += (jitter_factor - 1.0) * 0.1 * length
    bulb_shift = _clamp_shift(length, margin, half_width, position_offset)

    geometry = ClassicGeometry(
        knob_radius=knob_radius,
        neck_width=neck_width,
        neck_length=neck_length,
        shoulder=shoulder,
        flat=flat,
        bulb_shift=bulb_shift,
    )
    return geometry, warnings


def build_classic_edge(length: float, sign: int, geom: ClassicGeometry, roundness: float = 1.0) -> CurvePath:
    """Build a classic neck-and-bulb edge from (0, 0) to (length, 0).

    Shape: flat -> shoulder -> neck -> bulb (two quarter arcs) -> neck ->
    shoulder -> flat. Every joint shares its tangent direction with the
    neighbouring curve.

    Args:
        length: Edge length.
        sign: +1 for a tab, -1 for a slot.
        geom: Resolved knob dimensions.
        roundness: Scales the bulb handles; 1.0 gives a circular bulb.

    Returns:
        Open path of line and cubic segments.
    """
    r = geom.knob_radius
    mid = length / 2.0 + geom.bulb_shift

    flat_start = geom.flat
    flat_end = length - geom.flat
    shoulder_start = mid - geom.shoulder - geom.neck_width / 2.0
    shoulder_end = mid + geom.shoulder + geom.neck_width / 2.0

    # Neck base sits slightly off the baseline; bulb center above the neck
    neck_base_n = geom.neck_length * 0.5
    bulb_center_n = geom.neck_length + r
    neck_rise = bulb_center_n - neck_base_n

    # Waist: the neck leans toward the knob center before the bulb flares out
    lean_u, lean_n = _unit(0.25, 1.0)
    shoulder_handle = min(0.8 * neck_base_n / lean_n, geom.shoulder * 0.5)
    neck_handle = 0.45 * neck_rise
    bulb_handle = KAPPA * r * roundness

    def p(u: float, n: float) -> Point:
        return _local(u, n, sign)

    a = p(flat_start, 0.0)
    b = p(mid - geom.neck_width / 2.0, neck_base_n)
    c = p(mid - r, bulb_center_n)
    top = p(mid, bulb_center_n + r)
    d = p(mid + r, bulb_center_n)
    e = p(mid + geom.neck_width / 2.0, neck_base_n)
    f = p(flat_end, 0.0)

    b_u = mid - geom.neck_width / 2.0
    e_u = mid + geom.neck_width / 2.0

    segments: List[Segment] = [
        LineSegment((0.0, 0.0), a),
        # Shoulder into neck (left)
        BezierCurve(
            a,
            p(flat_start + (shoulder_start - flat_start) * 0.6, 0.0),
            p(b_u - lean_u * shoulder_handle, neck_base_n - lean_n * shoulder_handle),
            b,
        ),
        # Neck up to the bulb equator (left)
        BezierCurve(
            b,
            p(b_u + lean_u * neck_handle, neck_base_n + lean_n * neck_handle),
            p(mid - r, bulb_center_n - neck_handle),
            c,
        ),
        # Bulb quarter arcs
        BezierCurve(c, p(mid - r, bulb_center_n + bulb_handle), p(mid - bulb_handle, bulb_center_n + r), top),
        BezierCurve(top, p(mid + bulb_handle, bulb_center_n + r), p(mid + r, bulb_center_n + bulb_handle), d),
        # Neck down from the bulb equator (right)
        BezierCurve(
            d,
            p(mid + r, bulb_center_n - neck_handle),
            p(e_u - lean_u * neck_handle, neck_base_n + lean_n * neck_handle),
            e,
        ),
        # Shoulder back to the baseline (right)
        BezierCurve(
            e,
            p(e_u + lean_u * shoulder_handle, neck_base_n - lean_n * shoulder_handle),
            p(flat_end - (flat_end - shoulder_end) * 0.6, 0.0),
            f,
        ),
        LineSegment(f, (length, 0.0)),
    ]
    return CurvePath.from_segments(segments)


def generate_classic_edge(length: float, min_dim: float, spec: KnobSpec, sign: int, rng: SeededRandom) -> EdgeShape:
    """Classic style: narrow neck and round bulb from cubic Béziers."""
    geom, warnings = calculate_classic_geometry(length, min_dim, spec, rng)
    path = build_classic_edge(length, sign, geom, roundness=spec.roundness)
    return EdgeShape(
        path=path,
        sign=sign,
        knob_radius=geom.knob_radius,
        bulb_shift=geom.bulb_shift,
        warnings=tuple(warnings),
    )


def generate_organic_edge(length: float, min_dim: float, spec: KnobSpec, sign: int, rng: SeededRandom) -> EdgeShape:
    """Organic style: a near-circular bulb without a visible neck.

    The circle overlaps the edge line by a fifth of its radius, so it meets
    the line at +-0.6r from its center and is drawn as one large SVG arc.
    """
    warnings: List[str] = []
    df = spec.difficulty_factor
    flat = spec.flat_ratio * length

    position_offset = (rng.random() - 0.5) * 2.0 * df * DIFFICULTY_OFFSET_RATIO * length
    jitter_factor = 1.0 + (rng.random() - 0.5) * spec.jitter
    radius = length * 0.12 * spec.size_scale * (0.85 + rng.random() * 0.3) * jitter_factor

    # The circle reaches 1.8r across the edge and r along it
    margin = keep_out(length, min_dim, flat)
    max_radius = min(
        MAX_KNOB_RADIUS_RATIO * min_dim,
        depth_cap(length, min_dim) / 1.8,
        (length / 2.0 - margin),
    )
    if radius > max_radius:
        radius = max_radius
        warnings.append(WARN_KNOB_REDUCED)

    shift = _clamp_shift(length, margin, radius, position_offset)
    mid = length / 2.0 + shift
    chord_half = radius * 0.6

    # Tab arcs clockwise on screen (toward -y), slot arcs counter-clockwise
    sweep = sign > 0
    segments: List[Segment] = [
        LineSegment((0.0, 0.0), (mid - chord_half, 0.0)),
        ArcSegment((mid - chord_half, 0.0), radius, radius, 0.0, True, sweep, (mid + chord_half, 0.0)),
        LineSegment((mid + chord_half, 0.0), (length, 0.0)),
    ]
    return EdgeShape(
        path=CurvePath.from_segments(segments),
        sign=sign,
        knob_radius=radius,
        bulb_shift=shift,
        warnings=tuple(warnings),
    )


def generate_simple_edge(length: float, min_dim: float, spec: KnobSpec, sign: int, rng: SeededRandom) -> EdgeShape:
    """Simple style: a rectangular tab or slot of straight cuts."""
    warnings: List[str] = []
    df = spec.difficulty_factor
    flat = spec.flat_ratio * length

    position_offset = (rng.random() - 0.5) * 2.0 * df * DIFFICULTY_OFFSET_RATIO * length
    depth = length * 0.18 * spec.size_scale * (0.9 + rng.random() * 0.2)
    knob_width = length * 0.25 * spec.size_scale * (0.9 + rng.random() * 0.2)

    max_depth = min(2.0 * MAX_KNOB_RADIUS_RATIO * min_dim, depth_cap(length, min_dim))
    margin = keep_out(length, min_dim, flat)
    max_width = length - 2.0 * margin
    if depth > max_depth or knob_width > max_width:
        depth = min(depth, max_depth)
        knob_width = min(knob_width, max_width)
        warnings.append(WARN_KNOB_REDUCED)

    shift = _clamp_shift(length, margin, knob_width / 2.0, position_offset)
    mid = length / 2.0 + shift
    left = mid - knob_width / 2.0
    right = mid + knob_width / 2.0

    corners = [
        (0.0, 0.0),
        _local(left, 0.0, sign),
        _local(left, depth, sign),
        _local(right, depth, sign),
        _local(right, 0.0, sign),
        (length, 0.0),
    ]
    segments: List[Segment] = [LineSegment(corners[i], corners[i + 1]) for i in range(len(corners) - 1)]
    return EdgeShape(
        path=CurvePath.from_segments(segments),
        sign=sign,
        knob_radius=knob_width / 2.0,
        bulb_shift=shift,
        warnings=tuple(warnings),
    )


EdgeGenerator = Callable[[float, float, KnobSpec, int, SeededRandom], EdgeShape]

EDGE_GENERATORS: Dict[KnobStyle, EdgeGenerator] = {
    KnobStyle.CLASSIC: generate_classic_edge,
    KnobStyle.ORGANIC: generate_organic_edge,
    KnobStyle.SIMPLE: generate_simple_edge,
}


def generate_knob_edge(length: float, min_dim: float, spec: KnobSpec, sign: int, rng: SeededRandom) -> EdgeShape:
    """Generate one knob edge in the requested style.

    Args:
        length: Edge length L; the path runs from (0, 0) to (L, 0).
        min_dim: Smaller side of the grid cell, used for clamping.
        spec: Knob parameters.
        sign: +1 for a tab, -1 for a slot.
        rng: Stream seeded for this edge only.

    Returns:
        The edge shape and any warnings raised while clamping it.
    """
    if sign not in (1, -1):
        raise ValueError(f"Knob sign must be +1 or -1, got {sign}")
    return EDGE_GENERATORS[KnobStyle(spec.style)](length, min_dim, spec, sign, rng)


def straight_edge(length: float) -> CurvePath:
    """A border edge: a single straight segment."""
    return CurvePath.from_segments([LineSegment((0.0, 0.0), (length, 0.0))])
