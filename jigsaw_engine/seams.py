"""Boolean seam construction.

An alternative to curve assembly: every interior seam gets one knob built
from facade primitives (a circle bulb unioned with a capsule neck, clipped
to a seam window). A piece is its cell rectangle, plus the knobs it owns as
tabs, minus the knobs it receives as slots. Both neighbours use the same
knob value, so they mate exactly within the backend's precision.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

from .boolean_ops import GeometryEngine, PathHandle
from .edge_map import HORIZONTAL, VERTICAL, EdgeKey
from .knobs import KnobSpec
from .models import Piece, Point, outline_bounds, piece_id
from .rng import SeededRandom, derive_seed

logger = logging.getLogger(__name__)

# Knob dimensions relative to the smaller of the seam length and cell side
DEPTH_RATIO = 0.28
BULB_WIDTH_RATIO = 0.42
NECK_WIDTH_RATIO = 0.18

# Seam window, relative to knob depth and bulb width
WINDOW_DEPTH_RATIO = 1.2
WINDOW_WIDTH_RATIO = 1.1
WINDOW_BACKSET_RATIO = 0.1


@dataclass(frozen=True)
class SeamKnob:
    """Dimensions and placement of one seam knob.

    ``first`` is the piece above (horizontal seam) or to the left (vertical
    seam) of the line, ``second`` the piece below or to the right.
    """

    key: EdgeKey
    first: Tuple[int, int]
    second: Tuple[int, int]
    tab_on_first: bool
    origin: Point
    length: float
    depth: float
    bulb_width: float
    neck_width: float
    sub_seed: int

    @property
    def owner(self) -> Tuple[int, int]:
        return self.first if self.tab_on_first else self.second

    @property
    def receiver(self) -> Tuple[int, int]:
        return self.second if self.tab_on_first else self.first

    @property
    def direction(self) -> int:
        """+1 when the knob points toward ``second`` (+x or +y)."""
        return 1 if self.tab_on_first else -1

    def to_world(self, u: float, n: float) -> Point:
        """Map seam coordinates (u along the line, n across it) to the panel."""
        ox, oy = self.origin
        if self.key.orientation == HORIZONTAL:
            return (ox + u, oy + self.direction * n)
        return (ox + self.direction * n, oy + u)


def seam_knobs(
    width: float,
    height: float,
    rows: int,
    cols: int,
    seed: int,
    spec: KnobSpec = KnobSpec(),
) -> List[SeamKnob]:
    """Draw every interior seam knob from its own sub-seed."""
    cell_w = width / cols
    cell_h = height / rows
    min_dim = min(cell_w, cell_h)
    scale = spec.size_scale

    def draw(key: EdgeKey, first, second, origin, length) -> SeamKnob:
        sub_seed = derive_seed(seed, str(key))
        rng = SeededRandom(sub_seed)
        tab_on_first = rng.random() < 0.5
        depth_var = 0.92 + rng.random() * 0.16
        bulb_var = 0.94 + rng.random() * 0.12
        neck_var = 0.95 + rng.random() * 0.10
        return SeamKnob(
            key=key,
            first=first,
            second=second,
            tab_on_first=tab_on_first,
            origin=origin,
            length=length,
            depth=DEPTH_RATIO * min_dim * scale * depth_var,
            bulb_width=BULB_WIDTH_RATIO * min(length, min_dim) * scale * bulb_var,
            neck_width=NECK_WIDTH_RATIO * min(length, min_dim) * scale * neck_var,
            sub_seed=sub_seed,
        )

    knobs = []
    for r in range(1, rows):
        for c in range(cols):
            knobs.append(draw(EdgeKey(HORIZONTAL, r, c), (r - 1, c), (r, c), (c * cell_w, r * cell_h), cell_w))
    for r in range(rows):
        for c in range(1, cols):
            knobs.append(draw(EdgeKey(VERTICAL, r, c), (r, c - 1), (r, c), (c * cell_w, r * cell_h), cell_h))
    return knobs


def build_knob(engine: GeometryEngine, knob: SeamKnob, roundness: float = 1.0) -> PathHandle:
    """Build the clipped knob shape for one seam.

    Intermediate handles are released before returning; the caller owns
    the result.
    """
    mid = knob.length / 2.0
    with engine.arena() as arena:
        bx, by = knob.to_world(mid, knob.depth / 2.0)
        bulb = arena.track(engine.circle(bx, by, knob.bulb_width / 2.0 * roundness))

        nx0, ny0 = knob.to_world(mid, 0.0)
        nx1, ny1 = knob.to_world(mid, knob.depth / 2.0)
        neck = arena.track(engine.capsule(nx0, ny0, nx1, ny1, knob.neck_width))

        shape = arena.track(engine.union([bulb, neck]))

        window_depth = knob.depth * WINDOW_DEPTH_RATIO
        # Narrow enough that knobs on perpendicular seams stay apart at the corner
        window_width = min(knob.bulb_width * WINDOW_WIDTH_RATIO, knob.length - 2.0 * knob.depth)
        ax, ay = knob.to_world(mid - window_width / 2.0, -window_depth * WINDOW_BACKSET_RATIO)
        bx2, by2 = knob.to_world(mid + window_width / 2.0, window_depth * (1.0 - WINDOW_BACKSET_RATIO))
        window = arena.track(engine.rect(min(ax, bx2), min(ay, by2), abs(bx2 - ax), abs(by2 - ay)))

        return engine.intersect(shape, window)


def build_boolean_pieces(
    engine: GeometryEngine,
    width: float,
    height: float,
    rows: int,
    cols: int,
    seed: int,
    spec: KnobSpec = KnobSpec(),
) -> Tuple[List[Piece], List[str]]:
    """Build every piece by cell-rectangle booleans.

    Returns:
        Tuple of (pieces in row-major order, interior sub-seed keys).
    """
    cell_w = width / cols
    cell_h = height / rows
    knobs = seam_knobs(width, height, rows, cols, seed, spec)

    owned: Dict[Tuple[int, int], List[int]] = {}
    received: Dict[Tuple[int, int], List[int]] = {}
    for index, knob in enumerate(knobs):
        owned.setdefault(knob.owner, []).append(index)
        received.setdefault(knob.receiver, []).append(index)

    pieces = []
    with engine.arena() as arena:
        shapes = [arena.track(build_knob(engine, knob, spec.roundness)) for knob in knobs]

        # Knobs entering the same cell from different seams must not share area
        for indices in received.values():
            claimed = shapes[indices[0]]
            for i in indices[1:]:
                shapes[i] = arena.track(engine.difference(shapes[i], claimed))
                claimed = arena.track(engine.union([claimed, shapes[i]]))

        for r in range(rows):
            for c in range(cols):
                x0, y0 = c * cell_w, r * cell_h
                cell = arena.track(engine.rect(x0, y0, cell_w, cell_h))
                tabs = [shapes[i] for i in owned.get((r, c), [])]
                shape = arena.track(engine.union([cell] + tabs)) if tabs else cell
                for i in received.get((r, c), []):
                    shape = arena.track(engine.difference(shape, shapes[i]))

                outline = tuple(engine.to_paths(shape))
                pieces.append(
                    Piece(
                        row=r,
                        col=c,
                        piece_id=piece_id(r, c),
                        outline=outline,
                        original=outline,
                        bbox=outline_bounds(outline),
                        position=(x0, y0),
                    )
                )

    logger.debug(f"Built {len(pieces)} pieces from {len(knobs)} boolean seams")
    return pieces, [str(knob.key) for knob in knobs]
