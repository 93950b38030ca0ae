"""SVG cut document assembly."""

from typing import Optional, Sequence

import svgwrite

from .edge_map import EdgeKey
from .layout import LayoutResult
from .models import CurvePath, format_number, paths_to_svg

CUT_STROKE = "red"
CUT_STROKE_WIDTH = 0.001
GUIDE_STROKE = "blue"
GUIDE_STROKE_WIDTH = 0.5


def _drawing(width: float, height: float) -> svgwrite.Drawing:
    w, h = format_number(width, 3), format_number(height, 3)
    # debug=False: data-* attributes are not part of the SVG profiles
    return svgwrite.Drawing(size=(f"{w}mm", f"{h}mm"), viewBox=f"0 0 {w} {h}", debug=False)


def build_cut_document(
    layout: LayoutResult,
    outline: Sequence[CurvePath] = (),
    summary: str = "",
    guide: Optional[CurvePath] = None,
    numbering: bool = False,
    cut_lines: Optional[Sequence[CurvePath]] = None,
    cut_line_keys: Sequence[EdgeKey] = (),
) -> str:
    """Serialize placed pieces into a laser-ready SVG document.

    Args:
        layout: Placed pieces and canvas size (mm).
        outline: Outer border or template outline; written once with
            ``data-part="outline"`` when non-empty.
        summary: Text for the document description.
        guide: Optional center cutout guide, drawn dashed in its own group.
        numbering: Add an engrave group with each piece ID at its center.
        cut_lines: When given, these open paths replace the closed piece
            outlines so every shared edge is cut once.
        cut_line_keys: Edge keys matching ``cut_lines``, written as
            ``data-edge``.

    Returns:
        The SVG document as a string.
    """
    dwg = _drawing(layout.width, layout.height)
    if summary:
        dwg.set_desc(title="Jigsaw puzzle cut file", desc=summary)

    cut = dwg.g(id="CUT_PIECES", fill="none", stroke=CUT_STROKE, stroke_width=CUT_STROKE_WIDTH)
    if cut_lines is None:
        for piece in layout.pieces:
            cut.add(
                dwg.path(
                    d=piece.to_svg(),
                    **{"data-piece": piece.piece_id, "data-row": str(piece.row), "data-col": str(piece.col)},
                )
            )
    else:
        keys = list(cut_line_keys) or [None] * len(cut_lines)
        for key, path in zip(keys, cut_lines):
            extra = {"data-edge": str(key)} if key is not None else {}
            cut.add(dwg.path(d=path.to_svg(), **extra))

    outline_d = paths_to_svg(outline)
    if outline_d:
        cut.add(dwg.path(d=outline_d, **{"data-part": "outline"}))
    dwg.add(cut)

    if guide is not None:
        guides = dwg.g(
            id="GUIDE_CENTER_CUTOUT",
            fill="none",
            stroke=GUIDE_STROKE,
            stroke_width=GUIDE_STROKE_WIDTH,
            stroke_dasharray="2,2",
        )
        guides.add(dwg.path(d=guide.to_svg(), **{"data-part": "center-cutout-guide"}))
        dwg.add(guides)

    if numbering and layout.pieces:
        labels = dwg.g(id="ENGRAVE_IDS", fill="black", stroke="none")
        for piece in layout.pieces:
            box = piece.bounds()
            cx, cy = box.center
            size = max(1.0, min(box.width, box.height) * 0.2)
            labels.add(
                dwg.text(
                    piece.piece_id,
                    insert=(format_number(cx, 2), format_number(cy, 2)),
                    font_size=format_number(size, 2),
                    text_anchor="middle",
                    dominant_baseline="middle",
                    font_family="Arial, sans-serif",
                    **{"data-piece": piece.piece_id},
                )
            )
        dwg.add(labels)

    return dwg.tostring()
