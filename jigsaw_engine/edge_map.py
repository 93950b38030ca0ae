"""Shared edges between adjacent puzzle pieces.

Every grid line is generated exactly once from a sub-seed derived from its
own key, so an edge's shape depends only on the global seed and the line's
coordinates. The two pieces that share a line both read the same stored
edge: one forward, the other through :meth:`Edge.mirrored`.

Storage layout for a ``rows x cols`` grid:

* ``horizontal[r][c]`` for ``r in 0..rows`` is the top edge of piece
  ``(r, c)`` and the bottom edge of piece ``(r - 1, c)``.
* ``vertical[r][c]`` for ``c in 0..cols`` is the right edge of piece
  ``(r, c - 1)`` and the left edge of piece ``(r, c)``.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Tuple

from .knobs import KnobSpec, generate_knob_edge, size_warnings, straight_edge
from .models import CurvePath
from .rng import SeededRandom, derive_seed

logger = logging.getLogger(__name__)

HORIZONTAL = "H"
VERTICAL = "V"


@dataclass(frozen=True)
class EdgeKey:
    """Identity of one grid line segment."""

    orientation: str
    row: int
    col: int

    def __str__(self) -> str:
        return f"{self.orientation}:{self.row},{self.col}"


@dataclass(frozen=True)
class Edge:
    """One generated grid line in its local frame.

    The path runs from (0, 0) to (length, 0) as seen by the piece that owns
    the edge in the forward direction; ``is_tab`` is from that piece's
    point of view.
    """

    key: EdgeKey
    length: float
    path: CurvePath
    is_tab: bool = False
    is_border: bool = True
    sub_seed: int = 0
    knob_radius: float = 0.0

    def mirrored(self) -> CurvePath:
        """The same line as seen by the neighbouring piece."""
        return self.path.mirrored(self.length)

    def view(self, forward: bool = True) -> CurvePath:
        return self.path if forward else self.mirrored()


@dataclass(frozen=True)
class SharedEdgeMap:
    """Immutable set of all edges of one puzzle grid."""

    rows: int
    cols: int
    cell_width: float
    cell_height: float
    spec: KnobSpec
    horizontal: Tuple[Tuple[Edge, ...], ...]
    vertical: Tuple[Tuple[Edge, ...], ...]
    sub_seed_keys: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    def horizontal_edge(self, row: int, col: int) -> Edge:
        return self.horizontal[row][col]

    def vertical_edge(self, row: int, col: int) -> Edge:
        return self.vertical[row][col]

    def edge(self, key: EdgeKey) -> Edge:
        if key.orientation == HORIZONTAL:
            return self.horizontal_edge(key.row, key.col)
        if key.orientation == VERTICAL:
            return self.vertical_edge(key.row, key.col)
        raise KeyError(str(key))

    def side_view(self, key: EdgeKey, forward: bool = True) -> CurvePath:
        """Local-frame path of an edge in the requested traversal direction."""
        return self.edge(key).view(forward)

    def all_edges(self) -> Iterator[Edge]:
        for line in self.horizontal:
            yield from line
        for line in self.vertical:
            yield from line

    def interior_edges(self) -> Iterator[Edge]:
        return (edge for edge in self.all_edges() if not edge.is_border)

    def edge_counts(self) -> Dict[str, int]:
        """Interior edge counts by orientation."""
        horizontal = (self.rows - 1) * self.cols
        vertical = self.rows * (self.cols - 1)
        return {"horizontal": horizontal, "vertical": vertical, "total": horizontal + vertical}


def _make_edge(
    key: EdgeKey,
    length: float,
    border: bool,
    base_seed: int,
    min_dim: float,
    spec: KnobSpec,
    warnings: List[str],
) -> Edge:
    if border:
        return Edge(key=key, length=length, path=straight_edge(length))

    sub_seed = derive_seed(base_seed, str(key))
    rng = SeededRandom(sub_seed)
    is_tab = rng.random() > 0.5
    shape = generate_knob_edge(length, min_dim, spec, 1 if is_tab else -1, rng)
    for message in shape.warnings:
        if message not in warnings:
            warnings.append(message)

    return Edge(
        key=key,
        length=length,
        path=shape.path,
        is_tab=is_tab,
        is_border=False,
        sub_seed=sub_seed,
        knob_radius=shape.knob_radius,
    )


def generate_shared_edge_map(
    width: float,
    height: float,
    rows: int,
    cols: int,
    seed: int,
    spec: KnobSpec = KnobSpec(),
) -> SharedEdgeMap:
    """Generate every edge of a ``rows x cols`` grid once.

    Args:
        width: Panel width in mm.
        height: Panel height in mm.
        rows: Number of piece rows.
        cols: Number of piece columns.
        seed: Global 32-bit seed.
        spec: Knob parameters.

    Returns:
        The immutable edge map for this generation call.
    """
    if rows < 1 or cols < 1:
        raise ValueError(f"Grid must have at least one row and column, got {rows}x{cols}")

    cell_width = width / cols
    cell_height = height / rows
    min_dim = min(cell_width, cell_height)

    spec, warnings = size_warnings(min_dim, spec)
    seed_keys: List[str] = []

    horizontal = []
    for r in range(rows + 1):
        line = []
        for c in range(cols):
            key = EdgeKey(HORIZONTAL, r, c)
            edge = _make_edge(key, cell_width, r in (0, rows), seed, min_dim, spec, warnings)
            if not edge.is_border:
                seed_keys.append(str(key))
            line.append(edge)
        horizontal.append(tuple(line))

    vertical = []
    for r in range(rows):
        line = []
        for c in range(cols + 1):
            key = EdgeKey(VERTICAL, r, c)
            edge = _make_edge(key, cell_height, c in (0, cols), seed, min_dim, spec, warnings)
            if not edge.is_border:
                seed_keys.append(str(key))
            line.append(edge)
        vertical.append(tuple(line))

    logger.debug(f"Generated {len(seed_keys)} interior edges for {rows}x{cols} grid")

    return SharedEdgeMap(
        rows=rows,
        cols=cols,
        cell_width=cell_width,
        cell_height=cell_height,
        spec=spec,
        horizontal=tuple(horizontal),
        vertical=tuple(vertical),
        sub_seed_keys=tuple(seed_keys),
        warnings=tuple(warnings),
    )
