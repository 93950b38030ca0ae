"""Tests for SVG cut document assembly."""

import xml.etree.ElementTree as ET
from typing import List

import pytest

from jigsaw_engine.assembler import assemble_pieces, unique_cut_lines
from jigsaw_engine.boolean_ops import rounded_rect_path
from jigsaw_engine.document import build_cut_document
from jigsaw_engine.edge_map import SharedEdgeMap, generate_shared_edge_map
from jigsaw_engine.layout import LayoutResult, assembled_layout
from jigsaw_engine.models import CurvePath

SVG_NS = "{http://www.w3.org/2000/svg}"


@pytest.fixture
def edge_map() -> SharedEdgeMap:
    return generate_shared_edge_map(100.0, 100.0, 2, 2, 12345)


@pytest.fixture
def layout(edge_map: SharedEdgeMap) -> LayoutResult:
    return assembled_layout(assemble_pieces(edge_map), 100.0, 100.0)


def _paths(svg: str) -> List[ET.Element]:
    return list(ET.fromstring(svg).iter(f"{SVG_NS}path"))


def test_piece_paths(layout: LayoutResult) -> None:
    outline = (rounded_rect_path(0.0, 0.0, 100.0, 100.0),)
    svg = build_cut_document(layout, outline=outline, summary="test puzzle")
    root = ET.fromstring(svg)

    assert root.get("width") == "100mm"
    assert root.get("viewBox") == "0 0 100 100"
    groups = {g.get("id"): g for g in root.iter(f"{SVG_NS}g")}
    assert set(groups) == {"CUT_PIECES"}
    assert groups["CUT_PIECES"].get("stroke") == "red"

    paths = _paths(svg)
    pieces = [p for p in paths if p.get("data-piece")]
    assert [p.get("data-piece") for p in pieces] == ["A1", "A2", "B1", "B2"]
    assert pieces[3].get("data-row") == "1"
    assert pieces[3].get("data-col") == "1"
    assert svg.count('data-part="outline"') == 1
    assert "test puzzle" in svg


def test_no_outline_when_empty(layout: LayoutResult) -> None:
    svg = build_cut_document(layout)
    assert "data-part" not in svg


def test_center_cutout_guide(layout: LayoutResult) -> None:
    guide = rounded_rect_path(25.0, 25.0, 50.0, 50.0)
    svg = build_cut_document(layout, guide=guide)
    root = ET.fromstring(svg)
    groups = {g.get("id"): g for g in root.iter(f"{SVG_NS}g")}
    assert "GUIDE_CENTER_CUTOUT" in groups
    guide_paths = list(groups["GUIDE_CENTER_CUTOUT"].iter(f"{SVG_NS}path"))
    assert guide_paths[0].get("data-part") == "center-cutout-guide"


def test_piece_numbering(layout: LayoutResult) -> None:
    svg = build_cut_document(layout, numbering=True)
    root = ET.fromstring(svg)
    labels = [t.text for t in root.iter(f"{SVG_NS}text")]
    assert labels == ["A1", "A2", "B1", "B2"]


def test_cut_lines(edge_map: SharedEdgeMap, layout: LayoutResult) -> None:
    lines = unique_cut_lines(edge_map)
    keys = [edge.key for edge in edge_map.interior_edges()]
    svg = build_cut_document(layout, cut_lines=lines, cut_line_keys=keys)
    paths = _paths(svg)

    assert not any(p.get("data-piece") for p in paths)
    assert sorted(p.get("data-edge") for p in paths) == ["H:1,0", "H:1,1", "V:0,1", "V:1,1"]
    assert all("Z" not in p.get("d") for p in paths)


def test_cut_lines_without_keys(layout: LayoutResult) -> None:
    line = CurvePath.polygon([(0.0, 0.0), (10.0, 0.0), (10.0, 10.0)])
    svg = build_cut_document(layout, cut_lines=[line])
    paths = _paths(svg)
    assert len(paths) == 1
    assert paths[0].get("data-edge") is None
