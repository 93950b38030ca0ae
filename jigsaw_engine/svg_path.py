"""Convert SVG path data into engine curve paths."""

from typing import List

from svgpathtools import Arc, CubicBezier, Line, QuadraticBezier, parse_path

from .models import ArcSegment, BezierCurve, CurvePath, LineSegment, Point, Segment

# Endpoint distance under which a parsed subpath counts as closed
CLOSE_TOLERANCE = 1e-6


def _pt(z: complex) -> Point:
    return (float(z.real), float(z.imag))


def _convert(segment) -> Segment:
    if isinstance(segment, Line):
        return LineSegment(_pt(segment.start), _pt(segment.end))
    if isinstance(segment, CubicBezier):
        return BezierCurve(_pt(segment.start), _pt(segment.control1), _pt(segment.control2), _pt(segment.end))
    if isinstance(segment, QuadraticBezier):
        # Degree elevation: a quadratic is an exact cubic
        start, control, end = segment.start, segment.control, segment.end
        c1 = start + 2.0 / 3.0 * (control - start)
        c2 = end + 2.0 / 3.0 * (control - end)
        return BezierCurve(_pt(start), _pt(c1), _pt(c2), _pt(end))
    if isinstance(segment, Arc):
        return ArcSegment(
            _pt(segment.start),
            float(segment.radius.real),
            float(segment.radius.imag),
            float(segment.rotation),
            bool(segment.large_arc),
            bool(segment.sweep),
            _pt(segment.end),
        )
    raise TypeError(f"Unsupported SVG segment type: {type(segment).__name__}")


def parse_svg_path(d: str) -> List[CurvePath]:
    """Parse SVG path data into one CurvePath per continuous subpath.

    Args:
        d: SVG path data string (absolute or relative commands).

    Returns:
        Subpaths in document order; a subpath whose end meets its start is
        marked closed.
    """
    parsed = parse_path(d)
    paths: List[CurvePath] = []
    if len(parsed) == 0:
        return paths
    for subpath in parsed.continuous_subpaths():
        segments = [_convert(segment) for segment in subpath if segment.length() > 0.0]
        if not segments:
            continue
        closed = abs(subpath.start - subpath.end) < CLOSE_TOLERANCE
        paths.append(CurvePath.from_segments(segments, closed=closed))
    return paths
