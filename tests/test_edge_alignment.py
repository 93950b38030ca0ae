"""Raster tests for puzzle piece edge alignment.

Every piece is filled into its own mask and the masks are summed. Inside
the panel, a pixel covered by no piece is a gap and a pixel covered twice
is an overlap. Only a thin band along the seams may be counted twice,
where both neighbours fill their shared boundary pixels.
"""

from typing import Dict, Sequence

import numpy as np
import pytest
from PIL import Image, ImageDraw

from jigsaw_engine.assembler import assemble_pieces
from jigsaw_engine.edge_map import generate_shared_edge_map
from jigsaw_engine.knobs import KnobSpec, KnobStyle
from jigsaw_engine.models import Piece

PX_PER_MM = 4


def coverage_map(pieces: Sequence[Piece], width: float, height: float, scale: int = PX_PER_MM) -> np.ndarray:
    """Count how many pieces cover each pixel of the panel.

    Args:
        pieces: Pieces in panel coordinates (mm).
        width: Panel width in mm.
        height: Panel height in mm.
        scale: Pixels per mm.

    Returns:
        Integer array of shape (height px, width px).
    """
    size = (int(round(width * scale)), int(round(height * scale)))
    coverage = np.zeros((size[1], size[0]), dtype=np.int32)
    for piece in pieces:
        mask = Image.new("L", size, 0)
        polygon = [(float(x) * scale, float(y) * scale) for x, y in piece.path.get_points(points_per_curve=40)]
        ImageDraw.Draw(mask).polygon(polygon, fill=1, outline=1)
        coverage += np.array(mask, dtype=np.int32)
    return coverage


def analyze_coverage(coverage: np.ndarray, border: int = 2) -> Dict[str, float]:
    """Gap and overlap percentages, ignoring a thin frame at the panel border."""
    inner = coverage[border:-border, border:-border]
    total = inner.size
    gaps = int(np.count_nonzero(inner == 0))
    overlaps = int(np.count_nonzero(inner >= 2))
    return {
        "gap_pixels": gaps,
        "overlap_pixels": overlaps,
        "gap_percentage": 100.0 * gaps / total,
        "overlap_percentage": 100.0 * overlaps / total,
    }


def render(rows: int, cols: int, seed: int, style: KnobStyle = KnobStyle.CLASSIC) -> Dict[str, float]:
    width, height = cols * 50.0, rows * 50.0
    edge_map = generate_shared_edge_map(width, height, rows, cols, seed, KnobSpec(style=style))
    return analyze_coverage(coverage_map(assemble_pieces(edge_map), width, height))


class TestEdgeAlignment:
    """Tests for edge alignment between adjacent pieces."""

    @pytest.mark.parametrize("seed", [42, 123, 456, 789, 1000])
    def test_3x3_puzzle_no_gaps(self, seed: int) -> None:
        """No pixel inside the panel is left uncovered."""
        analysis = render(3, 3, seed)
        assert analysis["gap_percentage"] < 0.5, (
            f"Found {analysis['gap_pixels']} uncovered pixels ({analysis['gap_percentage']:.2f}%) (seed={seed})"
        )

    @pytest.mark.parametrize("seed", [42, 123, 456, 789, 1000])
    def test_3x3_puzzle_no_overlap(self, seed: int) -> None:
        """Pieces do not intrude into each other beyond the shared boundary pixels."""
        analysis = render(3, 3, seed)
        assert analysis["overlap_percentage"] < 4.0, (
            f"Found {analysis['overlap_pixels']} doubly covered pixels "
            f"({analysis['overlap_percentage']:.2f}%) (seed={seed})"
        )

    @pytest.mark.parametrize("style", [KnobStyle.ORGANIC, KnobStyle.SIMPLE])
    def test_other_styles_align(self, style: KnobStyle) -> None:
        analysis = render(2, 3, 42, style)
        assert analysis["gap_percentage"] < 0.5
        assert analysis["overlap_percentage"] < 4.0

    @pytest.mark.parametrize("rows,cols", [(2, 2), (2, 4), (4, 2)])
    def test_various_grid_sizes_no_gaps(self, rows: int, cols: int) -> None:
        analysis = render(rows, cols, 42)
        assert analysis["gap_percentage"] < 0.5, f"Found gaps in {rows}x{cols} grid"

    def test_displaced_piece_is_detected(self) -> None:
        """Moving one piece off its cell opens a gap the analysis reports."""
        edge_map = generate_shared_edge_map(100.0, 100.0, 2, 2, 42, KnobSpec())
        pieces = assemble_pieces(edge_map)
        moved = pieces[0].with_outline([pieces[0].path.translated(-3.0, 0.0)])
        analysis = analyze_coverage(coverage_map([moved] + pieces[1:], 100.0, 100.0))
        assert analysis["gap_percentage"] > 0.5
