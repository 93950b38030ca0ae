"""Run summary for one generation call."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .layout import LayoutResult
from .models import Piece


def edge_counts(rows: int, cols: int) -> Dict[str, int]:
    """Interior edge counts for a ``rows x cols`` grid."""
    horizontal = (rows - 1) * cols
    vertical = rows * (cols - 1)
    return {"horizontal": horizontal, "vertical": vertical, "total": horizontal + vertical}


def merge_warnings(*groups: Iterable[str]) -> List[str]:
    """Concatenate warning lists, dropping repeats but keeping first-seen order."""
    seen = set()
    merged = []
    for group in groups:
        for message in group:
            if message not in seen:
                seen.add(message)
                merged.append(message)
    return merged


@dataclass
class Diagnostics:
    piece_count: int
    path_count: int
    offset_delta: float
    edge_count: Dict[str, int]
    layout_fits: bool
    generation_time_ms: float
    engine: str
    utilization: Optional[float] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = {
            "pieceCount": self.piece_count,
            "pathCount": self.path_count,
            "offsetDelta": self.offset_delta,
            "edgeCount": dict(self.edge_count),
            "layoutFits": self.layout_fits,
            "generationTimeMs": self.generation_time_ms,
            "engine": self.engine,
            "warnings": list(self.warnings),
        }
        if self.utilization is not None:
            data["utilization"] = self.utilization
        return data


def collect_diagnostics(
    pieces: Sequence[Piece],
    layout: LayoutResult,
    rows: int,
    cols: int,
    offset_delta: float,
    elapsed_ms: float,
    engine_name: str,
    warnings: Sequence[str] = (),
) -> Diagnostics:
    """Aggregate counts and warnings. Reads its inputs only."""
    return Diagnostics(
        piece_count=len(pieces),
        path_count=sum(len(piece.outline) for piece in layout.pieces),
        offset_delta=offset_delta,
        edge_count=edge_counts(rows, cols),
        layout_fits=layout.fits,
        generation_time_ms=elapsed_ms,
        engine=engine_name,
        utilization=layout.utilization,
        warnings=merge_warnings(warnings, layout.warnings),
    )
