"""Tests for silhouettes, template clipping and the center cutout."""

import numpy as np
import pytest

from jigsaw_engine.assembler import assemble_pieces
from jigsaw_engine.boolean_ops import FallbackEngine
from jigsaw_engine.edge_map import generate_shared_edge_map
from jigsaw_engine.exceptions import GeometryEngineError
from jigsaw_engine.models import BoundingBox
from jigsaw_engine.offset import apply_offset
from jigsaw_engine.shapely_engine import ShapelyEngine
from jigsaw_engine.templates import (
    TemplateOutline,
    TemplateShape,
    apply_center_cutout,
    center_cutout_excluded,
    center_cutout_region,
    clip_pieces,
    default_outline_provider,
    needs_clipping,
    point_in_polygon,
    template_outline_path,
)


def _pieces(rows: int = 4, cols: int = 4, size: float = 200.0):
    return assemble_pieces(generate_shared_edge_map(size, size, rows, cols, seed=12345))


@pytest.mark.parametrize("template", list(TemplateShape))
def test_outline_fits_panel(template: TemplateShape) -> None:
    path = template_outline_path(template, 200.0, 150.0)
    assert path.closed
    bounds = path.bounds(points_per_curve=32)
    assert bounds.min_x >= -0.1
    assert bounds.min_y >= -0.1
    assert bounds.max_x <= 200.0 + 0.1
    assert bounds.max_y <= 150.0 + 0.1


def test_heart_is_centered_and_scaled() -> None:
    bounds = template_outline_path(TemplateShape.HEART, 200.0, 200.0).bounds(points_per_curve=64)
    assert max(bounds.width, bounds.height) == pytest.approx(200.0, rel=1e-3)
    assert bounds.center == pytest.approx((100.0, 100.0), abs=0.5)


def test_point_in_polygon() -> None:
    square = np.array([(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)])
    assert point_in_polygon((5.0, 5.0), square)
    assert not point_in_polygon((15.0, 5.0), square)
    assert not point_in_polygon((5.0, 5.0), square[:2])


def test_circle_inclusion_test() -> None:
    outline = default_outline_provider(TemplateShape.CIRCLE, 200.0, 200.0, 4, 4)
    assert outline.inside(1, 1)
    assert outline.inside(2, 2)
    # Cell centers at (25, 25) fall outside the inscribed circle
    assert not outline.inside(0, 0)
    assert not outline.inside(3, 3)


def test_needs_clipping() -> None:
    assert not needs_clipping(TemplateShape.RECTANGLE)
    assert needs_clipping(TemplateShape.RECTANGLE, corner_radius=5.0)
    assert needs_clipping(TemplateShape.STAR)


def test_circle_clip_drops_corner_pieces(shapely_engine: ShapelyEngine) -> None:
    pieces = _pieces()
    outline = default_outline_provider(TemplateShape.CIRCLE, 200.0, 200.0, 4, 4)
    result = clip_pieces(pieces, outline, shapely_engine)
    assert 0 < len(result.pieces) <= len(pieces)
    for piece in result.pieces:
        for x, y in piece.path.get_points():
            assert np.hypot(x - 100.0, y - 100.0) <= 100.0 + 0.05
    assert shapely_engine.live_handles == 0


def test_clipped_outline_becomes_original(shapely_engine: ShapelyEngine) -> None:
    pieces = _pieces()
    outline = default_outline_provider(TemplateShape.CIRCLE, 200.0, 200.0, 4, 4)
    result = clip_pieces(pieces, outline, shapely_engine)
    for piece in result.pieces:
        assert piece.original == piece.outline

    grown = apply_offset(result.pieces, 0.5, shapely_engine)
    for clipped, piece in zip(result.pieces, grown.pieces):
        assert piece.original == clipped.outline
        assert piece.outline != clipped.outline


def test_fallback_clip_keeps_only_cells_inside(fallback_engine: FallbackEngine) -> None:
    pieces = _pieces()
    outline = default_outline_provider(TemplateShape.STAR, 200.0, 200.0, 4, 4)
    result = clip_pieces(pieces, outline, fallback_engine)
    inside = [p.piece_id for p in pieces if outline.inside(p.row, p.col)]
    assert [p.piece_id for p in result.pieces] == inside
    assert len(result.dropped) == len(pieces) - len(inside)
    # The star's corner cells lie outside it
    assert "A1" in result.dropped
    assert "D4" in result.dropped


def test_rounded_rectangle_clip_keeps_all(shapely_engine: ShapelyEngine) -> None:
    pieces = _pieces()
    outline = default_outline_provider(TemplateShape.RECTANGLE, 200.0, 200.0, 4, 4, corner_radius=10.0)
    result = clip_pieces(pieces, outline, shapely_engine)
    assert len(result.pieces) == len(pieces)
    assert result.dropped == []
    # Only the four corner pieces lose area
    corner = result.pieces[0]
    assert corner.bounds().min_x == pytest.approx(0.0, abs=1e-6)
    assert not corner.path.bounds().separated_from(BoundingBox(0.0, 0.0, 50.0, 50.0))


def test_clip_failure_uses_inclusion_test(shapely_engine: ShapelyEngine, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(a, b):
        raise GeometryEngineError("broken")

    monkeypatch.setattr(shapely_engine, "_intersect", broken)
    pieces = _pieces()
    outline = TemplateOutline(
        paths=(template_outline_path(TemplateShape.CIRCLE, 200.0, 200.0),),
        inside=lambda row, col: row == col,
    )
    result = clip_pieces(pieces, outline, shapely_engine)
    assert [p.piece_id for p in result.pieces] == ["A1", "B2", "C3", "D4"]
    assert len(result.dropped) == 12
    assert len(result.warnings) == 4
    # Kept pieces are unclipped
    assert result.pieces[0].outline == pieces[0].outline
    assert shapely_engine.live_handles == 0


@pytest.mark.parametrize(
    "rows,cols,excluded",
    [
        (4, 4, {(1, 1), (1, 2), (2, 1), (2, 2)}),
        (3, 3, {(1, 1)}),
        (2, 2, set()),
    ],
)
def test_center_cutout_excluded(rows: int, cols: int, excluded: set) -> None:
    cells = {(r, c) for r in range(rows) for c in range(cols) if center_cutout_excluded(r, c, rows, cols, 0.3)}
    assert cells == excluded


def test_center_cutout_region() -> None:
    region = center_cutout_region(200.0, 200.0, 4, 4, 0.3)
    assert region == BoundingBox(50.0, 50.0, 150.0, 150.0)
    assert center_cutout_region(200.0, 200.0, 2, 2, 0.3) is None


def test_apply_center_cutout(shapely_engine: ShapelyEngine) -> None:
    pieces = _pieces()
    region = center_cutout_region(200.0, 200.0, 4, 4, 0.3)
    result = apply_center_cutout(pieces, region, 4, 4, 0.3, shapely_engine)
    assert sorted(result.dropped) == ["B2", "B3", "C2", "C3"]
    assert len(result.pieces) == 12
    # Surviving neighbours have nothing left inside the hole
    inner = region.padded(-0.05)
    for piece in result.pieces:
        for x, y in piece.path.get_points():
            assert not (inner.min_x < x < inner.max_x and inner.min_y < y < inner.max_y)
        assert piece.original == piece.outline
    assert shapely_engine.live_handles == 0
