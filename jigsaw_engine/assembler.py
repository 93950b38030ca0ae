"""Assemble closed piece outlines from the shared edge map."""

import logging
import math
from typing import List, Sequence, Tuple

from .edge_map import HORIZONTAL, Edge, SharedEdgeMap
from .models import CurvePath, LineSegment, Piece, Segment, piece_id

logger = logging.getLogger(__name__)

# Largest endpoint mismatch tolerated between consecutive segments (mm)
GAP_TOLERANCE = 1e-3


def _stitch(parts: Sequence[CurvePath]) -> CurvePath:
    """Concatenate edge paths into one closed path.

    A straight correction segment is inserted wherever the end of one part
    and the start of the next are further apart than GAP_TOLERANCE. A smaller
    closing gap is removed by moving the last point onto the first.
    """
    segments: List[Segment] = []
    for part in parts:
        if segments and part.segments:
            prev_end = segments[-1].end
            start = part.start
            if math.hypot(start[0] - prev_end[0], start[1] - prev_end[1]) > GAP_TOLERANCE:
                logger.warning(f"Closing {prev_end} -> {start} gap with a correction segment")
                segments.append(LineSegment(prev_end, start))
        segments.extend(part.segments)

    path = CurvePath.from_segments(segments, closed=True)
    if not path.segments:
        return path
    if path.closure_gap() > GAP_TOLERANCE:
        return path.extended(CurvePath((LineSegment(path.end, path.start),))).as_closed()
    # Land the last point exactly on the first so the ring closes bit for bit
    return CurvePath(path.segments[:-1] + (path.segments[-1].with_end(path.start),), closed=True)


def cell_sides(edge_map: SharedEdgeMap, row: int, col: int) -> Tuple[CurvePath, CurvePath, CurvePath, CurvePath]:
    """World-frame top, right, bottom and left sides of one cell, clockwise.

    Vertical edges share the horizontal local frame and are rotated into
    place here; the bottom and left sides are the neighbours' mirrored views.
    """
    w = edge_map.cell_width
    h = edge_map.cell_height
    x0, y0 = col * w, row * h
    x1, y1 = x0 + w, y0 + h

    top = edge_map.horizontal_edge(row, col).view(forward=True)
    right = edge_map.vertical_edge(row, col + 1).view(forward=True)
    bottom = edge_map.horizontal_edge(row + 1, col).view(forward=False)
    left = edge_map.vertical_edge(row, col).view(forward=False)

    return (
        top.transform(translate=(x0, y0)),
        right.transform(translate=(x1, y0), quarter_turns=1),
        bottom.transform(translate=(x1, y1), quarter_turns=2),
        left.transform(translate=(x0, y1), quarter_turns=3),
    )


def assemble_piece(edge_map: SharedEdgeMap, row: int, col: int) -> Piece:
    """Build the closed outline of piece ``(row, col)``.

    The outline starts at the cell's top-left corner and runs clockwise on
    screen: top, right, bottom, left.
    """
    w = edge_map.cell_width
    h = edge_map.cell_height
    path = _stitch(cell_sides(edge_map, row, col))

    x0, y0 = col * w, row * h
    outline = (path,)
    return Piece(
        row=row,
        col=col,
        piece_id=piece_id(row, col),
        outline=outline,
        original=outline,
        bbox=path.bounds(),
        position=(x0, y0),
    )


def assemble_pieces(edge_map: SharedEdgeMap) -> List[Piece]:
    """Assemble every piece in row-major order."""
    return [assemble_piece(edge_map, r, c) for r in range(edge_map.rows) for c in range(edge_map.cols)]


def edge_world_path(edge_map: SharedEdgeMap, edge: Edge) -> CurvePath:
    """Place a stored edge at its grid position in the panel frame."""
    x = edge.key.col * edge_map.cell_width
    y = edge.key.row * edge_map.cell_height
    if edge.key.orientation == HORIZONTAL:
        return edge.path.transform(translate=(x, y))
    return edge.path.transform(translate=(x, y), quarter_turns=1)


def unique_cut_lines(edge_map: SharedEdgeMap) -> List[CurvePath]:
    """Every interior edge once, in the panel frame."""
    return [edge_world_path(edge_map, edge) for edge in edge_map.interior_edges()]
