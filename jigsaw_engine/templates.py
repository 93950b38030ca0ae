"""Puzzle silhouettes, template clipping and the center cutout."""

import enum
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .boolean_ops import GeometryEngine, rounded_rect_path
from .exceptions import GeometryEngineError
from .models import Affine, ArcSegment, BoundingBox, CurvePath, Piece, paths_to_svg
from .svg_path import parse_svg_path

logger = logging.getLogger(__name__)

# Heart silhouette (viewBox 0 0 512 456.082)
HEART_D = (
    "M253.648 83.482c130.393-219.055 509.908 65.493-.513 372.6"
    "-514.788-328.942-101.873-598.697.513-372.6z"
)

# Clipped outlines shorter than this (mm) are treated as degenerate
MIN_CLIP_LENGTH = 1e-3


class TemplateShape(str, enum.Enum):
    """Available puzzle silhouettes."""

    RECTANGLE = "rectangle"
    CIRCLE = "circle"
    OVAL = "oval"
    HEART = "heart"
    HEXAGON = "hexagon"
    STAR = "star"


InsideTest = Callable[[int, int], bool]


@dataclass(frozen=True)
class TemplateOutline:
    """A puzzle silhouette and the coarse cell-inclusion test that goes with it."""

    paths: Tuple[CurvePath, ...]
    inside: InsideTest

    def to_svg(self) -> str:
        return paths_to_svg(self.paths)


@dataclass
class ClipResult:
    """Pieces that survived clipping, plus what happened to the rest."""

    pieces: List[Piece]
    dropped: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _ellipse(cx: float, cy: float, rx: float, ry: float) -> CurvePath:
    top, bottom = (cx, cy - ry), (cx, cy + ry)
    return CurvePath.from_segments(
        [
            ArcSegment(top, rx, ry, 0.0, True, True, bottom),
            ArcSegment(bottom, rx, ry, 0.0, True, True, top),
        ],
        closed=True,
    )


def _regular_points(cx: float, cy: float, radii: Sequence[float], count: int) -> List[Tuple[float, float]]:
    points = []
    for i in range(count):
        angle = (2.0 * math.pi / count) * i - math.pi / 2.0
        radius = radii[i % len(radii)]
        points.append((cx + radius * math.cos(angle), cy + radius * math.sin(angle)))
    return points


def _heart(width: float, height: float) -> CurvePath:
    heart = parse_svg_path(HEART_D)[0]
    box = heart.bounds(points_per_curve=64)
    bw = max(1e-6, box.width)
    bh = max(1e-6, box.height)
    s = min(width / bw, height / bh)
    tx = (width - bw * s) / 2.0 - box.min_x * s
    ty = (height - bh * s) / 2.0 - box.min_y * s
    return heart.transformed(Affine.translation(tx, ty).compose(Affine.scaling(s))).as_closed()


def template_outline_path(
    template: TemplateShape,
    width: float,
    height: float,
    corner_radius: float = 0.0,
) -> CurvePath:
    """Closed silhouette path centered in a ``width x height`` panel."""
    template = TemplateShape(template)
    cx, cy = width / 2.0, height / 2.0
    r = min(width, height) / 2.0

    if template == TemplateShape.CIRCLE:
        return _ellipse(cx, cy, r, r)
    if template == TemplateShape.OVAL:
        return _ellipse(cx, cy, width / 2.0, height / 2.0)
    if template == TemplateShape.HEART:
        return _heart(width, height)
    if template == TemplateShape.HEXAGON:
        return CurvePath.polygon(_regular_points(cx, cy, [r * 0.95], 6))
    if template == TemplateShape.STAR:
        return CurvePath.polygon(_regular_points(cx, cy, [r * 0.95, r * 0.4], 10))
    return rounded_rect_path(0.0, 0.0, width, height, corner_radius)


def point_in_polygon(point: Tuple[float, float], polygon: np.ndarray) -> bool:
    """Even-odd ray casting test."""
    if len(polygon) < 3:
        return False
    x, y = point
    xi, yi = polygon[:, 0], polygon[:, 1]
    xj, yj = np.roll(xi, 1), np.roll(yi, 1)
    with np.errstate(divide="ignore", invalid="ignore"):
        x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
    crosses = ((yi > y) != (yj > y)) & (x < x_cross)
    return bool(np.count_nonzero(crosses) % 2)


def cell_center_test(outline: CurvePath, width: float, height: float, rows: int, cols: int) -> InsideTest:
    """Inclusion test: is the cell's center inside the outline?"""
    polygon = outline.get_points(points_per_curve=32)
    cell_w = width / cols
    cell_h = height / rows

    def inside(row: int, col: int) -> bool:
        return point_in_polygon(((col + 0.5) * cell_w, (row + 0.5) * cell_h), polygon)

    return inside


def default_outline_provider(
    template: TemplateShape,
    width: float,
    height: float,
    rows: int,
    cols: int,
    corner_radius: float = 0.0,
) -> TemplateOutline:
    """Built-in silhouettes with a cell-center inclusion test."""
    outline = template_outline_path(template, width, height, corner_radius)
    return TemplateOutline(paths=(outline,), inside=cell_center_test(outline, width, height, rows, cols))


OutlineProvider = Callable[..., TemplateOutline]


def needs_clipping(template: TemplateShape, corner_radius: float = 0.0) -> bool:
    return TemplateShape(template) != TemplateShape.RECTANGLE or corner_radius > 0.0


def _degenerate(paths: Sequence[CurvePath]) -> bool:
    if not paths:
        return True
    if not all(path.is_finite() for path in paths):
        return True
    return sum(path.length() for path in paths) < MIN_CLIP_LENGTH


def clip_pieces(pieces: Sequence[Piece], outline: TemplateOutline, engine: GeometryEngine) -> ClipResult:
    """Intersect every piece with the silhouette.

    Pieces whose clipped result is empty or degenerate are dropped. If the
    backend fails on a piece, or the engine is not precise, the coarse
    inclusion test decides whether the unclipped piece is kept.
    """
    result = ClipResult(pieces=[])
    with engine.arena() as arena:
        template = arena.from_path(outline.paths)
        for piece in pieces:
            # An approximate intersect keeps pieces whole, so membership comes from the cell test
            if not engine.precise and not outline.inside(piece.row, piece.col):
                result.dropped.append(piece.piece_id)
                continue
            try:
                with engine.arena() as piece_arena:
                    shape = piece_arena.from_path(piece.outline)
                    clipped = piece_arena.track(engine.intersect(shape, template))
                    paths = engine.to_paths(clipped)
            except GeometryEngineError as e:
                logger.warning(f"Piece {piece.row},{piece.col}: clip failed ({e})")
                if outline.inside(piece.row, piece.col):
                    result.pieces.append(piece)
                    result.warnings.append(f"Piece {piece.row},{piece.col}: clip failed, using unclipped outline")
                else:
                    result.dropped.append(piece.piece_id)
                continue

            if _degenerate(paths):
                result.dropped.append(piece.piece_id)
                if outline.inside(piece.row, piece.col):
                    result.warnings.append(f"Piece {piece.row},{piece.col}: clipped outline was degenerate, piece dropped")
                continue

            result.pieces.append(piece.with_outline(paths, as_original=True))
    return result


def center_cutout_excluded(row: int, col: int, rows: int, cols: int, ratio: float = 0.3) -> bool:
    """True when the cell's normalized center falls inside the cutout area."""
    dx = (col + 0.5) / cols - 0.5
    dy = (row + 0.5) / rows - 0.5
    half = ratio / 2.0
    return abs(dx) < half and abs(dy) < half


def center_cutout_region(width: float, height: float, rows: int, cols: int, ratio: float = 0.3) -> Optional[BoundingBox]:
    """Bounding rectangle of all excluded cells, or None when nothing is excluded."""
    cells = [(r, c) for r in range(rows) for c in range(cols) if center_cutout_excluded(r, c, rows, cols, ratio)]
    if not cells:
        return None
    cell_w = width / cols
    cell_h = height / rows
    min_row = min(r for r, _ in cells)
    max_row = max(r for r, _ in cells)
    min_col = min(c for _, c in cells)
    max_col = max(c for _, c in cells)
    return BoundingBox(min_col * cell_w, min_row * cell_h, (max_col + 1) * cell_w, (max_row + 1) * cell_h)


def center_cutout_guide(region: BoundingBox) -> CurvePath:
    return rounded_rect_path(region.min_x, region.min_y, region.width, region.height)


def apply_center_cutout(
    pieces: Sequence[Piece],
    region: BoundingBox,
    rows: int,
    cols: int,
    ratio: float,
    engine: GeometryEngine,
) -> ClipResult:
    """Remove excluded cells and trim neighbours' knobs out of the hole."""
    result = ClipResult(pieces=[])
    with engine.arena() as arena:
        hole = arena.track(engine.rect(region.min_x, region.min_y, region.width, region.height))
        for piece in pieces:
            if center_cutout_excluded(piece.row, piece.col, rows, cols, ratio):
                result.dropped.append(piece.piece_id)
                continue
            if piece.bbox.separated_from(region):
                result.pieces.append(piece)
                continue
            try:
                with engine.arena() as piece_arena:
                    shape = piece_arena.from_path(piece.outline)
                    trimmed = piece_arena.track(engine.difference(shape, hole))
                    paths = engine.to_paths(trimmed)
            except GeometryEngineError as e:
                logger.warning(f"Piece {piece.row},{piece.col}: cutout trim failed ({e})")
                result.warnings.append(f"Piece {piece.row},{piece.col}: cutout trim failed, using untrimmed outline")
                result.pieces.append(piece)
                continue
            if _degenerate(paths):
                result.pieces.append(piece)
            else:
                result.pieces.append(piece.with_outline(paths, as_original=True))
    return result


TEMPLATE_NAMES: Dict[str, str] = {
    TemplateShape.RECTANGLE.value: "Classic Rectangle",
    TemplateShape.HEART.value: "Heart",
    TemplateShape.CIRCLE.value: "Circle",
    TemplateShape.OVAL.value: "Oval",
    TemplateShape.HEXAGON.value: "Hexagon",
    TemplateShape.STAR.value: "Star",
}
