"""End-to-end tests for puzzle generation."""

import asyncio
import re

import pytest

from jigsaw_engine import ConfigurationError, JigsawOutput, PuzzleSettings, generate_puzzle, generate_puzzle_async
from jigsaw_engine.boolean_ops import FallbackEngine, GeometryEngine
from jigsaw_engine.generator import WARN_CUT_LINES_NO_OFFSET, WARN_CUT_LINES_UNSUPPORTED
from jigsaw_engine.settings import Construction, ExportMode, LayoutMode, NestingSettings
from jigsaw_engine.shapely_engine import ShapelyEngine
from jigsaw_engine.templates import TemplateShape


def _generate(engine: GeometryEngine, **overrides) -> JigsawOutput:
    values = {"width_mm": 100.0, "height_mm": 100.0, "rows": 2, "columns": 2, "seed": 12345}
    values.update(overrides)
    return generate_puzzle(PuzzleSettings(**values), engine)


def test_small_assembled_puzzle(shapely_engine: ShapelyEngine) -> None:
    output = _generate(shapely_engine)
    data = output.to_dict()

    assert output.diagnostics.piece_count == 4
    assert data["diagnostics"]["edgeCount"]["total"] == 4
    assert data["diagnostics"]["offsetDelta"] == pytest.approx(0.075)
    assert data["diagnostics"]["layoutFits"] is True
    assert output.svg.count('data-part="outline"') == 1
    assert len(re.findall(r'data-piece="', output.svg)) == 4
    assert [piece["id"] for piece in data["pieces"]] == ["A1", "A2", "B1", "B2"]
    assert set(data) == {"svg", "pieces", "layout", "diagnostics", "warnings"}


def test_piece_ids_on_three_by_three(shapely_engine: ShapelyEngine) -> None:
    output = _generate(shapely_engine, rows=3, columns=3)
    ids = [piece.piece_id for piece in output.pieces]
    assert len(ids) == 9
    assert {"A1", "A3", "C1", "C3"} <= set(ids)


def test_deterministic(shapely_engine: ShapelyEngine) -> None:
    first = _generate(shapely_engine, seed=777)
    second = _generate(shapely_engine, seed=777)
    other = _generate(shapely_engine, seed=778)
    assert first.svg == second.svg
    assert first.svg != other.svg


def test_offset_grows_pieces(shapely_engine: ShapelyEngine) -> None:
    tight = _generate(shapely_engine, kerf_mm=0.0, clearance_mm=0.0)
    wide = _generate(shapely_engine, kerf_mm=0.5, clearance_mm=0.0)
    assert tight.diagnostics.offset_delta == 0.0
    assert wide.diagnostics.offset_delta == pytest.approx(0.25)
    assert wide.pieces[0].bbox.width > tight.pieces[0].bbox.width


def test_packed_layout(shapely_engine: ShapelyEngine) -> None:
    output = _generate(shapely_engine, layout_mode=LayoutMode.PACKED, sheet_preset="xtool-d1")
    assert output.layout.mode == LayoutMode.PACKED
    assert output.layout.width == 400.0
    assert output.diagnostics.layout_fits
    assert 'data-part="outline"' not in output.svg
    for piece in output.pieces:
        assert piece.bbox.min_x >= 10.0 - 1e-6
        assert piece.bbox.min_y >= 10.0 - 1e-6


def test_packed_overflow_reports_not_fitting(shapely_engine: ShapelyEngine) -> None:
    output = _generate(
        shapely_engine, layout_mode=LayoutMode.PACKED, sheet_width_mm=80.0, sheet_height_mm=80.0
    )
    assert not output.diagnostics.layout_fits
    assert output.warnings


def test_true_nesting(shapely_engine: ShapelyEngine) -> None:
    output = _generate(
        shapely_engine,
        layout_mode=LayoutMode.TRUE_NESTING,
        sheet_width_mm=300.0,
        sheet_height_mm=300.0,
        nesting=NestingSettings(density=3),
    )
    assert output.layout.mode == LayoutMode.TRUE_NESTING
    assert output.diagnostics.piece_count == 4
    assert output.layout.utilization is not None
    assert "utilization" in output.diagnostics.to_dict()


def test_unknown_sheet_preset(shapely_engine: ShapelyEngine) -> None:
    with pytest.raises(ConfigurationError):
        _generate(shapely_engine, layout_mode=LayoutMode.PACKED, sheet_preset="laser-9000")


def test_unknown_sheet_preset_ignored_when_assembled(shapely_engine: ShapelyEngine) -> None:
    output = _generate(shapely_engine, sheet_preset="laser-9000")
    assert output.diagnostics.piece_count == 4


def test_heart_template(shapely_engine: ShapelyEngine) -> None:
    output = _generate(shapely_engine, rows=5, columns=5, template=TemplateShape.HEART)
    assert 0 < output.diagnostics.piece_count < 25
    assert output.svg.count('data-part="outline"') == 1


def test_center_cutout(shapely_engine: ShapelyEngine) -> None:
    output = _generate(shapely_engine, rows=5, columns=5, center_cutout=True)
    assert output.diagnostics.piece_count == 24
    assert "C3" not in [piece.piece_id for piece in output.pieces]
    assert 'id="GUIDE_CENTER_CUTOUT"' in output.svg


def test_boolean_construction(shapely_engine: ShapelyEngine) -> None:
    output = _generate(shapely_engine, construction=Construction.BOOLEAN)
    assert output.diagnostics.piece_count == 4
    assert output.edge_map is None


def test_cut_lines_export(shapely_engine: ShapelyEngine) -> None:
    output = _generate(shapely_engine, export_mode=ExportMode.CUT_LINES)
    assert len(re.findall(r'data-edge="', output.svg)) == 4
    assert 'data-piece="' not in output.svg
    assert output.diagnostics.offset_delta == 0.0
    assert WARN_CUT_LINES_NO_OFFSET in output.warnings


def test_cut_lines_need_assembled_rectangle(shapely_engine: ShapelyEngine) -> None:
    output = _generate(shapely_engine, export_mode=ExportMode.CUT_LINES, layout_mode=LayoutMode.PACKED)
    assert WARN_CUT_LINES_UNSUPPORTED in output.warnings
    assert 'data-piece="' in output.svg


def test_piece_numbering(shapely_engine: ShapelyEngine) -> None:
    output = _generate(shapely_engine, piece_numbering=True)
    assert 'id="ENGRAVE_IDS"' in output.svg


def test_fallback_engine_still_generates() -> None:
    engine = FallbackEngine(reason="test")
    output = _generate(engine)
    assert output.diagnostics.piece_count == 4
    assert output.diagnostics.engine == engine.name
    assert any("fallback" in warning for warning in output.warnings)


def test_async_generation() -> None:
    settings = PuzzleSettings(width_mm=100.0, height_mm=100.0, rows=2, columns=2)
    output = asyncio.run(generate_puzzle_async(settings))
    assert output.diagnostics.piece_count == 4
