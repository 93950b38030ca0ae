"""End-to-end puzzle generation pipeline.

Stages: shared edges -> piece assembly (or boolean seams) -> template clip
-> center cutout -> kerf/clearance offset -> layout -> cut document ->
diagnostics. Every stage returns new values; nothing is mutated in place.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .assembler import assemble_pieces, unique_cut_lines
from .boolean_ops import GeometryEngine, get_geometry_engine, load_geometry_engine, rounded_rect_path
from .diagnostics import Diagnostics, collect_diagnostics, merge_warnings
from .document import build_cut_document
from .edge_map import SharedEdgeMap, generate_shared_edge_map
from .knobs import size_warnings
from .layout import LayoutResult, assembled_layout, packed_layout, true_nesting_layout
from .models import CurvePath, Piece
from .offset import NEGLIGIBLE_OFFSET, apply_offset
from .seams import build_boolean_pieces
from .settings import Construction, ExportMode, LayoutMode, PuzzleSettings
from .templates import (
    TemplateShape,
    apply_center_cutout,
    center_cutout_guide,
    center_cutout_region,
    clip_pieces,
    default_outline_provider,
    needs_clipping,
)

logger = logging.getLogger(__name__)

WARN_CUT_LINES_UNSUPPORTED = (
    "Cut-lines export needs the assembled layout of a plain rectangle; exporting piece outlines instead."
)
WARN_CUT_LINES_NO_OFFSET = "Cut-lines export ignores kerf and clearance offset."


@dataclass
class JigsawOutput:
    """Everything one generation call produces."""

    svg: str
    pieces: List[Piece]
    layout: LayoutResult
    diagnostics: Diagnostics
    warnings: List[str] = field(default_factory=list)
    edge_map: Optional[SharedEdgeMap] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "svg": self.svg,
            "pieces": [piece.to_dict() for piece in self.pieces],
            "layout": self.layout.to_dict(),
            "diagnostics": self.diagnostics.to_dict(),
            "warnings": list(self.warnings),
        }


def _summary(settings: PuzzleSettings, delta: float, layout: LayoutResult, engine: GeometryEngine) -> str:
    return (
        f"Puzzle {settings.width_mm:g}x{settings.height_mm:g}mm, "
        f"{settings.rows}x{settings.columns} grid, seed {settings.seed}, "
        f"knobs {settings.knob_style.value}, kerf {settings.kerf_mm:g}mm, "
        f"clearance {settings.clearance:g}mm, offset {delta:g}mm, "
        f"layout {layout.mode.value}, engine {engine.name}"
    )


def _layout(settings: PuzzleSettings, pieces: Sequence[Piece], engine: GeometryEngine) -> LayoutResult:
    if settings.layout_mode == LayoutMode.ASSEMBLED:
        return assembled_layout(pieces, settings.width_mm, settings.height_mm)
    sheet_w, sheet_h = settings.sheet_size
    if settings.layout_mode == LayoutMode.PACKED:
        return packed_layout(pieces, sheet_w, sheet_h, settings.margin_mm, settings.gap_mm)
    return true_nesting_layout(pieces, sheet_w, sheet_h, settings.nesting, settings.seed, engine)


def generate_puzzle(settings: PuzzleSettings, engine: Optional[GeometryEngine] = None) -> JigsawOutput:
    """Generate a complete puzzle from validated settings.

    Args:
        settings: Puzzle configuration; field limits are enforced when the
            model is constructed.
        engine: Geometry backend; defaults to the process-wide engine.

    Returns:
        Pieces, layout, SVG document, diagnostics and warnings.

    Raises:
        ConfigurationError: If the sheet preset is unknown.
    """
    start = time.perf_counter()
    if settings.layout_mode != LayoutMode.ASSEMBLED:
        _ = settings.sheet_size  # validates the preset before any work

    engine = engine or get_geometry_engine()
    warnings: List[str] = list(engine.warnings)
    width, height = settings.width_mm, settings.height_mm
    rows, cols = settings.rows, settings.columns
    spec = settings.knob_spec

    # Pieces
    edge_map: Optional[SharedEdgeMap] = None
    if settings.construction == Construction.BOOLEAN:
        cell_w, cell_h = settings.cell_size
        spec, size_warns = size_warnings(min(cell_w, cell_h), spec)
        warnings.extend(size_warns)
        pieces, _ = build_boolean_pieces(engine, width, height, rows, cols, settings.seed, spec)
    else:
        edge_map = generate_shared_edge_map(width, height, rows, cols, settings.seed, spec)
        warnings.extend(edge_map.warnings)
        pieces = assemble_pieces(edge_map)
    logger.debug(f"Built {len(pieces)} pieces in {(time.perf_counter() - start) * 1000:.1f}ms")

    # Silhouette
    template = TemplateShape(settings.template)
    clipped = needs_clipping(template, settings.corner_radius_mm)
    if clipped:
        silhouette = default_outline_provider(template, width, height, rows, cols, settings.corner_radius_mm)
        clip = clip_pieces(pieces, silhouette, engine)
        pieces = clip.pieces
        warnings.extend(clip.warnings)
        outline: Sequence[CurvePath] = silhouette.paths
    else:
        outline = (rounded_rect_path(0.0, 0.0, width, height),)

    guide = None
    if settings.center_cutout:
        region = center_cutout_region(width, height, rows, cols, settings.center_cutout_ratio)
        if region is not None:
            cutout = apply_center_cutout(pieces, region, rows, cols, settings.center_cutout_ratio, engine)
            pieces = cutout.pieces
            warnings.extend(cutout.warnings)
            guide = center_cutout_guide(region)

    # Export mode
    cut_lines = None
    cut_line_keys = []
    if settings.export_mode == ExportMode.CUT_LINES:
        plain = (
            edge_map is not None
            and not clipped
            and guide is None
            and settings.layout_mode == LayoutMode.ASSEMBLED
        )
        if plain:
            cut_lines = unique_cut_lines(edge_map)
            cut_line_keys = [edge.key for edge in edge_map.interior_edges()]
        else:
            warnings.append(WARN_CUT_LINES_UNSUPPORTED)

    # Kerf and clearance
    delta = settings.offset_delta
    if cut_lines is not None:
        if abs(delta) >= NEGLIGIBLE_OFFSET:
            warnings.append(WARN_CUT_LINES_NO_OFFSET)
        delta = 0.0
    offset = apply_offset(pieces, delta, engine)
    pieces = offset.pieces
    warnings.extend(offset.warnings)

    # Layout
    layout = _layout(settings, pieces, engine)

    document = build_cut_document(
        layout,
        outline=outline if settings.layout_mode == LayoutMode.ASSEMBLED else (),
        summary=_summary(settings, delta, layout, engine),
        guide=guide if settings.layout_mode == LayoutMode.ASSEMBLED else None,
        numbering=settings.piece_numbering,
        cut_lines=cut_lines,
        cut_line_keys=cut_line_keys,
    )

    elapsed_ms = (time.perf_counter() - start) * 1000.0
    diagnostics = collect_diagnostics(
        pieces, layout, rows, cols, delta, elapsed_ms, engine.name, merge_warnings(warnings)
    )
    logger.debug(f"Generated puzzle in {elapsed_ms:.1f}ms")

    return JigsawOutput(
        svg=document,
        pieces=layout.pieces,
        layout=layout,
        diagnostics=diagnostics,
        warnings=diagnostics.warnings,
        edge_map=edge_map,
    )


async def generate_puzzle_async(settings: PuzzleSettings) -> JigsawOutput:
    """Generate a puzzle after awaiting the shared geometry engine load."""
    engine = await load_geometry_engine()
    return generate_puzzle(settings, engine)
