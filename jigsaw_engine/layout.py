"""Placement of finished pieces on the output canvas.

Layout only moves pieces (translation, plus quarter-turn rotation when
nesting); it never changes their shape.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .boolean_ops import GeometryEngine, PathHandle
from .models import Affine, ArcSegment, BezierCurve, BoundingBox, CurvePath, Piece
from .rng import SeededRandom
from .settings import CollisionCheck, LayoutMode, NestingSettings, NestingStrategy

logger = logging.getLogger(__name__)

WARN_PACK_NO_FIT = "Pieces do not fit in selected sheet. Increase sheet size or reduce puzzle size."

# Douglas-Peucker tolerance (mm) for nesting polygons
NESTING_EPSILON = 1.0

# Bezier sample parameters used to flatten curves for nesting
CURVE_SAMPLES = (0.2, 0.4, 0.6, 0.8, 1.0)

# Samples per arc when flattening for nesting
ARC_SAMPLES = 8

# Upper bound on scored candidates per rotation
MAX_SCORED_CANDIDATES = 100

# How far a full outline may stray outside its simplified polygon (mm)
SIMPLIFIED_SLACK = 1.5 * NESTING_EPSILON


@dataclass(frozen=True)
class Placement:
    """Where one piece ended up: rotate about the origin, then translate."""

    piece_id: str
    row: int
    col: int
    x: float
    y: float
    rotation: int = 0
    polygon: Optional[np.ndarray] = field(default=None, compare=False, repr=False)

    @property
    def affine(self) -> Affine:
        return Affine.translation(self.x, self.y).compose(Affine.rotation(self.rotation))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.piece_id,
            "row": self.row,
            "col": self.col,
            "x": self.x,
            "y": self.y,
            "rotation": self.rotation,
        }


@dataclass
class LayoutResult:
    """Placement of all pieces; ``pieces`` holds the moved copies."""

    mode: LayoutMode
    width: float
    height: float
    placements: List[Placement]
    pieces: List[Piece]
    fits: bool = True
    success: bool = True
    utilization: Optional[float] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "width": self.width,
            "height": self.height,
            "fits": self.fits,
            "success": self.success,
            "utilization": self.utilization,
            "placements": [p.to_dict() for p in self.placements],
            "warnings": list(self.warnings),
        }


def place_piece(piece: Piece, placement: Placement) -> Piece:
    """Move a piece's outline and bounding box to its placement."""
    affine = placement.affine
    outline = tuple(path.transformed(affine) for path in piece.outline)
    original = tuple(path.transformed(affine) for path in piece.original)
    if placement.rotation % 360 == 0:
        bbox = piece.bbox.translated(placement.x, placement.y)
    else:
        corners = np.array(
            [
                affine.apply((piece.bbox.min_x, piece.bbox.min_y)),
                affine.apply((piece.bbox.max_x, piece.bbox.max_y)),
            ]
        )
        bbox = BoundingBox.from_points(corners)
    return Piece(
        row=piece.row,
        col=piece.col,
        piece_id=piece.piece_id,
        outline=outline,
        original=original,
        bbox=bbox,
        position=piece.position,
    )


def assembled_layout(pieces: Sequence[Piece], width: float, height: float) -> LayoutResult:
    """Identity placement at each piece's grid position."""
    placements = [Placement(p.piece_id, p.row, p.col, 0.0, 0.0) for p in pieces]
    return LayoutResult(
        mode=LayoutMode.ASSEMBLED,
        width=width,
        height=height,
        placements=placements,
        pieces=list(pieces),
    )


def packed_layout(
    pieces: Sequence[Piece],
    sheet_width: float,
    sheet_height: float,
    margin: float = 10.0,
    gap: float = 5.0,
) -> LayoutResult:
    """Row-major bin packing of padded bounding boxes.

    Packing stops at the first piece whose row would run past the bottom
    margin; the result then reports ``fits=False``.
    """
    placements: List[Placement] = []
    placed: List[Piece] = []
    x, y = margin, margin
    row_height = 0.0
    fits = True

    for piece in pieces:
        box = piece.bbox
        if x + box.width > sheet_width - margin and x > margin:
            x = margin
            y += row_height + gap
            row_height = 0.0
        if y + box.height > sheet_height - margin or x + box.width > sheet_width - margin:
            fits = False
            break

        placement = Placement(piece.piece_id, piece.row, piece.col, x - box.min_x, y - box.min_y)
        placements.append(placement)
        placed.append(place_piece(piece, placement))
        x += box.width + gap
        row_height = max(row_height, box.height)

    result = LayoutResult(
        mode=LayoutMode.PACKED,
        width=sheet_width,
        height=sheet_height,
        placements=placements,
        pieces=placed,
        fits=fits,
        success=fits,
    )
    if not fits:
        result.warnings.append(WARN_PACK_NO_FIT)
    return result


def flatten_for_nesting(path: CurvePath) -> np.ndarray:
    """Coarse polygon of a path: fixed Bezier samples, then Douglas-Peucker."""
    points = [path.start]
    for segment in path.segments:
        if isinstance(segment, BezierCurve):
            points.extend(segment.evaluate(t) for t in CURVE_SAMPLES)
        elif isinstance(segment, ArcSegment):
            points.extend(segment.evaluate(i / ARC_SAMPLES) for i in range(1, ARC_SAMPLES + 1))
        else:
            points.append(segment.end)
    if path.closed and points[-1] != points[0]:
        points.append(points[0])
    return douglas_peucker(np.array(points, dtype=float), NESTING_EPSILON)


def douglas_peucker(points: np.ndarray, epsilon: float) -> np.ndarray:
    """Simplify a polyline, keeping both endpoints."""
    if len(points) <= 2:
        return points
    start, end = points[0], points[-1]
    dx, dy = end - start
    norm = math.hypot(dx, dy)
    inner = points[1:-1]
    if norm == 0.0:
        dists = np.hypot(inner[:, 0] - start[0], inner[:, 1] - start[1])
    else:
        dists = np.abs(dy * inner[:, 0] - dx * inner[:, 1] + end[0] * start[1] - end[1] * start[0]) / norm
    index = int(np.argmax(dists)) + 1
    if dists[index - 1] > epsilon:
        left = douglas_peucker(points[: index + 1], epsilon)
        right = douglas_peucker(points[index:], epsilon)
        return np.vstack([left[:-1], right])
    return np.array([start, end])


def polygon_area(polygon: np.ndarray) -> float:
    if len(polygon) < 3:
        return 0.0
    x, y = polygon[:, 0], polygon[:, 1]
    return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))) / 2.0)


def min_point_distance(a: np.ndarray, b: np.ndarray) -> float:
    """Smallest distance between any vertex of ``a`` and any vertex of ``b``."""
    diff = a[:, None, :] - b[None, :, :]
    return float(np.sqrt((diff ** 2).sum(axis=2)).min())


def _rotate(polygon: np.ndarray, degrees: int) -> np.ndarray:
    affine = Affine.rotation(degrees)
    matrix = np.array([[affine.a, affine.c], [affine.b, affine.d]])
    return polygon @ matrix


def _bounds(polygon: np.ndarray) -> BoundingBox:
    return BoundingBox.from_points(polygon)


def _candidates(box: BoundingBox, sheet_w: float, sheet_h: float, gap: float, step: float, rng: SeededRandom):
    positions = []
    y = gap
    while y < sheet_h - box.height - gap:
        x = gap
        while x < sheet_w - box.width - gap:
            positions.append((x - box.min_x, y - box.min_y))
            x += step
        y += step
    rng.shuffle(positions)
    return positions


def _outline_at(piece: Piece, rotation: int, dx: float, dy: float) -> List[CurvePath]:
    """Full-resolution outline at a candidate placement, for exact collision tests."""
    affine = Affine.translation(dx, dy).compose(Affine.rotation(rotation))
    return [path.transformed(affine) for path in piece.outline]


def _within(box: BoundingBox, sheet_w: float, sheet_h: float, margin: float) -> bool:
    return box.min_x >= margin and box.min_y >= margin and box.max_x <= sheet_w - margin and box.max_y <= sheet_h - margin


@dataclass
class _Placed:
    polygon: np.ndarray
    bounds: BoundingBox
    handle: Optional[PathHandle] = None


def true_nesting_layout(
    pieces: Sequence[Piece],
    sheet_width: float,
    sheet_height: float,
    settings: NestingSettings = NestingSettings(),
    seed: int = 0,
    engine: Optional[GeometryEngine] = None,
) -> LayoutResult:
    """Place piece silhouettes on the sheet with rotation and collision checks.

    Pieces go largest first. For each piece and each allowed rotation, a
    shuffled grid of candidate positions is scanned. ``fast`` takes the
    first valid spot; the other strategies score up to
    ``min(max_attempts, 100)`` valid spots per rotation and keep the best.

    Args:
        pieces: Finished pieces in panel coordinates.
        sheet_width: Sheet width in mm.
        sheet_height: Sheet height in mm.
        settings: Nesting options.
        seed: Seed for candidate shuffling and scatter order.
        engine: Required for ``CollisionCheck.EXACT``.

    Returns:
        Layout with ``success`` set when every piece was placed.
    """
    rng = SeededRandom(seed)
    exact = settings.collision_check == CollisionCheck.EXACT and engine is not None
    min_gap = settings.min_gap_mm
    # A zero gap still rejects coincident vertices
    threshold = max(min_gap, 1e-9)

    items = [(piece, flatten_for_nesting(piece.path)) for piece in pieces]
    items.sort(key=lambda item: polygon_area(item[1]), reverse=True)
    if settings.scatter:
        rng.shuffle(items)

    limit = min(settings.max_attempts, MAX_SCORED_CANDIDATES)
    placed: List[_Placed] = []
    placements: List[Placement] = []
    moved: List[Piece] = []
    warnings: List[str] = []
    used_area = 0.0

    # Exact tests compare full outlines, which can reach past the simplified boxes
    prefilter_gap = min_gap + 2.0 * SIMPLIFIED_SLACK if exact else min_gap

    def collides(polygon: np.ndarray, box: BoundingBox, handle: Optional[PathHandle]) -> bool:
        for other in placed:
            if box.separated_from(other.bounds, prefilter_gap):
                continue
            if exact and handle is not None and other.handle is not None:
                if engine.distance(handle, other.handle) < threshold:
                    return True
            elif min_point_distance(polygon, other.polygon) < threshold:
                return True
        return False

    arena = engine.arena() if exact else None
    try:
        for piece, polygon in items:
            best: Optional[Tuple[float, int, float, float, np.ndarray]] = None

            for rotation in settings.rotations:
                rotated = _rotate(polygon, rotation)
                box = _bounds(rotated)
                scored = 0
                for dx, dy in _candidates(box, sheet_width, sheet_height, min_gap, settings.grid_step, rng):
                    candidate = rotated + (dx, dy)
                    cbox = box.translated(dx, dy)
                    if not _within(cbox, sheet_width, sheet_height, min_gap):
                        continue
                    handle = arena.from_path(_outline_at(piece, rotation, dx, dy)) if exact else None
                    hit = collides(candidate, cbox, handle)
                    if handle is not None:
                        handle.release()
                    if hit:
                        continue

                    if settings.strategy == NestingStrategy.FAST:
                        best = (0.0, rotation, dx, dy, candidate)
                        break
                    if settings.strategy == NestingStrategy.MAXIMIZE_SAVING:
                        score = cbox.max_y
                    else:
                        score = cbox.min_x + cbox.min_y
                    if best is None or score < best[0]:
                        best = (score, rotation, dx, dy, candidate)
                    scored += 1
                    if scored >= limit:
                        break
                if best is not None and settings.strategy == NestingStrategy.FAST:
                    break

            if best is None:
                warnings.append(f"Failed to place piece {piece.row}-{piece.col}")
                continue

            _, rotation, dx, dy, candidate = best
            handle = arena.from_path(_outline_at(piece, rotation, dx, dy)) if exact else None
            placed.append(_Placed(candidate, _bounds(candidate), handle))
            placement = Placement(piece.piece_id, piece.row, piece.col, dx, dy, rotation, candidate)
            placements.append(placement)
            moved.append(place_piece(piece, placement))
            used_area += polygon_area(candidate)
    finally:
        if arena is not None:
            arena.release_all()

    success = len(placements) == len(pieces)
    utilization = used_area / (sheet_width * sheet_height) * 100.0
    logger.debug(f"Nested {len(placements)}/{len(pieces)} pieces, utilization {utilization:.1f}%")
    return LayoutResult(
        mode=LayoutMode.TRUE_NESTING,
        width=sheet_width,
        height=sheet_height,
        placements=placements,
        pieces=moved,
        fits=success,
        success=success,
        utilization=utilization,
        warnings=warnings,
    )
