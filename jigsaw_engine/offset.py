"""Kerf and clearance compensation."""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from .boolean_ops import GeometryEngine
from .exceptions import GeometryEngineError
from .models import Piece

logger = logging.getLogger(__name__)

# Offsets smaller than this (mm) are skipped
NEGLIGIBLE_OFFSET = 0.001


def offset_delta(kerf: float, clearance: float) -> float:
    """Signed outline offset: half the kerf minus the clearance."""
    return kerf / 2.0 - clearance


@dataclass
class OffsetResult:
    pieces: List[Piece]
    delta: float
    applied: bool
    warnings: List[str] = field(default_factory=list)


def apply_offset(pieces: Sequence[Piece], delta: float, engine: GeometryEngine) -> OffsetResult:
    """Offset and simplify every piece outline by ``delta``.

    ``piece.original`` keeps the pre-offset outline. A piece whose offset
    fails keeps its current outline and adds a warning.
    """
    if abs(delta) < NEGLIGIBLE_OFFSET:
        return OffsetResult(pieces=list(pieces), delta=delta, applied=False)

    result = OffsetResult(pieces=[], delta=delta, applied=True)
    for piece in pieces:
        try:
            with engine.arena() as arena:
                shape = arena.from_path(piece.outline)
                grown = arena.track(engine.offset(shape, delta))
                cleaned = arena.track(engine.simplify(grown))
                paths = engine.to_paths(cleaned)
            if not paths:
                raise GeometryEngineError("offset produced an empty outline")
        except GeometryEngineError as e:
            logger.warning(f"Piece {piece.row},{piece.col}: offset failed ({e})")
            result.warnings.append(f"Piece {piece.row},{piece.col}: offset failed, using original")
            result.pieces.append(piece)
            continue
        result.pieces.append(piece.with_outline(paths))
    return result
