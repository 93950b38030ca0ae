"""Tests for single-edge knob generation."""

import numpy as np
import pytest

from jigsaw_engine.knobs import (
    MAX_KNOB_RADIUS_RATIO,
    WARN_JITTER_REDUCED,
    WARN_KNOB_REDUCED,
    WARN_SMALL_PIECES,
    KnobSpec,
    KnobStyle,
    calculate_classic_geometry,
    depth_cap,
    generate_knob_edge,
    size_warnings,
    straight_edge,
)
from jigsaw_engine.models import ArcSegment, BezierCurve, LineSegment
from jigsaw_engine.rng import SeededRandom

STYLES = [KnobStyle.CLASSIC, KnobStyle.ORGANIC, KnobStyle.SIMPLE]


def _edge(style: KnobStyle, sign: int, seed: int = 1, length: float = 50.0, min_dim: float = 50.0, **spec):
    return generate_knob_edge(length, min_dim, KnobSpec(style=style, **spec), sign, SeededRandom(seed))


@pytest.mark.parametrize("style", STYLES)
@pytest.mark.parametrize("sign", [1, -1])
def test_edge_runs_from_origin_to_length(style: KnobStyle, sign: int) -> None:
    shape = _edge(style, sign)
    assert shape.path.start == pytest.approx((0.0, 0.0))
    assert shape.path.end == pytest.approx((50.0, 0.0))
    assert shape.path.is_finite()


@pytest.mark.parametrize("style", STYLES)
def test_segments_are_continuous(style: KnobStyle) -> None:
    shape = _edge(style, 1)
    segments = shape.path.segments
    for prev, nxt in zip(segments, segments[1:]):
        assert prev.end == pytest.approx(nxt.start, abs=1e-9)


@pytest.mark.parametrize("style", STYLES)
def test_tab_bulges_negative_y(style: KnobStyle) -> None:
    """A tab leaves the viewing piece toward -y, a slot toward +y."""
    tab = _edge(style, 1).path.bounds()
    slot = _edge(style, -1).path.bounds()
    assert tab.min_y < -1.0
    assert tab.max_y == pytest.approx(0.0, abs=1e-6)
    assert slot.max_y > 1.0
    assert slot.min_y == pytest.approx(0.0, abs=1e-6)


@pytest.mark.parametrize("style", STYLES)
def test_same_seed_same_edge(style: KnobStyle) -> None:
    a = _edge(style, 1, seed=77)
    b = _edge(style, 1, seed=77)
    assert a.path == b.path


def test_classic_segment_types() -> None:
    segments = _edge(KnobStyle.CLASSIC, 1).path.segments
    assert isinstance(segments[0], LineSegment)
    assert isinstance(segments[-1], LineSegment)
    assert sum(isinstance(s, BezierCurve) for s in segments) == 6


def test_classic_joints_are_smooth() -> None:
    """Consecutive cubic segments share their tangent direction at every joint."""
    segments = [s for s in _edge(KnobStyle.CLASSIC, 1).path.segments if isinstance(s, BezierCurve)]
    for prev, nxt in zip(segments, segments[1:]):
        out_dir = np.subtract(prev.p3, prev.p2)
        in_dir = np.subtract(nxt.p1, nxt.p0)
        cross = out_dir[0] * in_dir[1] - out_dir[1] * in_dir[0]
        assert abs(cross) < 1e-6 * np.linalg.norm(out_dir) * np.linalg.norm(in_dir)
        assert np.dot(out_dir, in_dir) > 0


def test_organic_uses_single_arc() -> None:
    segments = _edge(KnobStyle.ORGANIC, 1).path.segments
    arcs = [s for s in segments if isinstance(s, ArcSegment)]
    assert len(arcs) == 1
    assert arcs[0].large_arc


def test_simple_is_all_lines() -> None:
    segments = _edge(KnobStyle.SIMPLE, -1).path.segments
    assert all(isinstance(s, LineSegment) for s in segments)
    assert len(segments) == 5


def test_knob_stays_clear_of_edge_ends() -> None:
    """Knob geometry starts after the flat run at both ends."""
    spec = KnobSpec(difficulty=100.0, jitter=0.35)
    for seed in range(20):
        shape = generate_knob_edge(40.0, 40.0, spec, 1, SeededRandom(seed))
        first, last = shape.path.segments[0], shape.path.segments[-1]
        assert first.end[0] >= spec.flat_ratio * 40.0 - 1e-9
        assert last.start[0] <= 40.0 - spec.flat_ratio * 40.0 + 1e-9


@pytest.mark.parametrize("style", STYLES)
@pytest.mark.parametrize("length,min_dim", [(40.0, 40.0), (60.0, 40.0), (40.0, 25.0)])
def test_knob_leaves_room_for_perpendicular_knobs(style: KnobStyle, length: float, min_dim: float) -> None:
    """No knob reaches past the depth cap, and the raised part of a knob
    stays further from each edge end than any neighbouring knob can reach."""
    spec = KnobSpec(style=style, size_pct=90.0, difficulty=100.0, jitter=0.35)
    cap = depth_cap(length, min_dim)
    for seed in range(20):
        for sign in (1, -1):
            shape = generate_knob_edge(length, min_dim, spec, sign, SeededRandom(seed))
            points = shape.path.get_points(64)
            reach = np.abs(points[:, 1])
            assert reach.max() <= cap + 1e-9
            raised = points[reach > 0.05 * min_dim]
            assert len(raised) > 0
            assert raised[:, 0].min() > cap
            assert raised[:, 0].max() < length - cap


def test_radius_capped() -> None:
    spec = KnobSpec(size_pct=90.0, difficulty=100.0)
    for seed in range(10):
        geom, _ = calculate_classic_geometry(100.0, 30.0, spec, SeededRandom(seed))
        assert geom.knob_radius <= MAX_KNOB_RADIUS_RATIO * 30.0 + 1e-9


def test_oversized_footprint_warns() -> None:
    spec = KnobSpec(size_pct=90.0, difficulty=100.0)
    _, warnings = calculate_classic_geometry(40.0, 100.0, spec, SeededRandom(1))
    assert warnings == [WARN_KNOB_REDUCED]


def test_classic_draws_six_values() -> None:
    rng = SeededRandom(3)
    calculate_classic_geometry(50.0, 50.0, KnobSpec(), rng)
    assert rng.draws == 6


def test_invalid_sign() -> None:
    with pytest.raises(ValueError):
        _edge(KnobStyle.CLASSIC, 0)


def test_size_warnings() -> None:
    spec = KnobSpec(jitter=0.35)
    reduced, warnings = size_warnings(10.0, spec)
    assert warnings == [WARN_SMALL_PIECES, WARN_JITTER_REDUCED]
    assert reduced.jitter == 0.25

    same, warnings = size_warnings(50.0, spec)
    assert warnings == []
    assert same is spec


def test_size_scale() -> None:
    assert KnobSpec(size_pct=40.0).size_scale == pytest.approx(0.7)
    assert KnobSpec(size_pct=90.0).size_scale == pytest.approx(1.3)


def test_spec_dict_round_trip() -> None:
    spec = KnobSpec(style=KnobStyle.ORGANIC, difficulty=40.0)
    data = spec.to_dict()
    assert data["style"] == "organic"
    assert KnobSpec.from_dict(data) == spec


def test_straight_edge() -> None:
    path = straight_edge(12.5)
    assert len(path) == 1
    assert path.end == (12.5, 0.0)
