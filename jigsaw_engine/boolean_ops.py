"""Boolean geometry facade.

All piece-level boolean work (union, difference, intersection, offset,
simplify and primitive construction) goes through a :class:`GeometryEngine`.
Two implementations share the contract:

* ``ShapelyEngine`` (in :mod:`jigsaw_engine.shapely_engine`) performs real
  polygon booleans and buffering.
* :class:`FallbackEngine` keeps every call signature but returns simplified
  results, so generation can still finish when shapely cannot be loaded.

Engine results are wrapped in :class:`PathHandle` objects that must be
released once they are no longer needed. :class:`PathArena` releases every
handle it tracks when its ``with`` block exits, including on error.
"""

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import get_engine_settings
from .exceptions import GeometryEngineError, ReleasedHandleError
from .models import KAPPA, Affine, BezierCurve, CurvePath, LineSegment, Segment

logger = logging.getLogger(__name__)

ENGINE_MODES = ("auto", "shapely", "fallback")

FALLBACK_WARNING = "Boolean geometry engine unavailable; using simplified fallback geometry."

PathInput = Union[CurvePath, Sequence[CurvePath]]


class PathHandle:
    """An owned reference to an engine-side path value."""

    __slots__ = ("_engine", "_value", "_released")

    def __init__(self, engine: "GeometryEngine", value: Any):
        self._engine = engine
        self._value = value
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @property
    def value(self) -> Any:
        if self._released:
            raise ReleasedHandleError("Path handle used after release")
        return self._value

    def release(self) -> None:
        """Release the underlying value. Releasing twice is a no-op."""
        if self._released:
            return
        self._released = True
        self._value = None
        self._engine._live_handles -= 1

    def __enter__(self) -> "PathHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class PathArena:
    """Scope that releases every tracked handle on exit.

    Example:
        with PathArena(engine) as arena:
            piece = arena.track(engine.from_path(outline))
            clipped = arena.track(engine.intersect(piece, template))
            paths = engine.to_paths(clipped)
    """

    def __init__(self, engine: "GeometryEngine"):
        self.engine = engine
        self._handles: List[PathHandle] = []

    def track(self, handle: PathHandle) -> PathHandle:
        self._handles.append(handle)
        return handle

    def detach(self, handle: PathHandle) -> PathHandle:
        """Stop tracking a handle; the caller now owns it."""
        self._handles = [h for h in self._handles if h is not handle]
        return handle

    def from_path(self, path: PathInput) -> PathHandle:
        return self.track(self.engine.from_path(path))

    def release_all(self) -> None:
        handles, self._handles = self._handles, []
        for handle in handles:
            handle.release()

    def __enter__(self) -> "PathArena":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release_all()


def circle_path(cx: float, cy: float, r: float) -> CurvePath:
    """Circle from four quarter-circle cubics."""
    k = KAPPA * r
    e, s, w, n = (cx + r, cy), (cx, cy + r), (cx - r, cy), (cx, cy - r)
    return CurvePath.from_segments(
        [
            BezierCurve(e, (cx + r, cy + k), (cx + k, cy + r), s),
            BezierCurve(s, (cx - k, cy + r), (cx - r, cy + k), w),
            BezierCurve(w, (cx - r, cy - k), (cx - k, cy - r), n),
            BezierCurve(n, (cx + k, cy - r), (cx + r, cy - k), e),
        ],
        closed=True,
    )


def rounded_rect_path(x: float, y: float, w: float, h: float, corner_radius: float = 0.0) -> CurvePath:
    """Axis-aligned rectangle, optionally with quarter-circle corners."""
    cr = max(0.0, min(corner_radius, min(w, h) / 2.0))
    if cr <= 0.0:
        return CurvePath.polygon([(x, y), (x + w, y), (x + w, y + h), (x, y + h)])

    k = KAPPA * cr
    x1, y1 = x + w, y + h
    segments: List[Segment] = []

    def line(p0, p1):
        if p0 != p1:
            segments.append(LineSegment(p0, p1))

    line((x + cr, y), (x1 - cr, y))
    segments.append(BezierCurve((x1 - cr, y), (x1 - cr + k, y), (x1, y + cr - k), (x1, y + cr)))
    line((x1, y + cr), (x1, y1 - cr))
    segments.append(BezierCurve((x1, y1 - cr), (x1, y1 - cr + k), (x1 - cr + k, y1), (x1 - cr, y1)))
    line((x1 - cr, y1), (x + cr, y1))
    segments.append(BezierCurve((x + cr, y1), (x + cr - k, y1), (x, y1 - cr + k), (x, y1 - cr)))
    line((x, y1 - cr), (x, y + cr))
    segments.append(BezierCurve((x, y + cr), (x, y + cr - k), (x + cr - k, y), (x + cr, y)))
    return CurvePath.from_segments(segments, closed=True)


def capsule_path(x0: float, y0: float, x1: float, y1: float, width: float) -> CurvePath:
    """Stadium shape around the segment (x0, y0)-(x1, y1)."""
    r = width / 2.0
    k = KAPPA * r
    length = math.hypot(x1 - x0, y1 - y0)
    angle = math.degrees(math.atan2(y1 - y0, x1 - x0))

    segments: List[Segment] = []
    if length > 0.0:
        segments.append(LineSegment((0.0, -r), (length, -r)))
    segments.extend(
        [
            BezierCurve((length, -r), (length + k, -r), (length + r, -k), (length + r, 0.0)),
            BezierCurve((length + r, 0.0), (length + r, k), (length + k, r), (length, r)),
        ]
    )
    if length > 0.0:
        segments.append(LineSegment((length, r), (0.0, r)))
    segments.extend(
        [
            BezierCurve((0.0, r), (-k, r), (-r, k), (-r, 0.0)),
            BezierCurve((-r, 0.0), (-r, -k), (-k, -r), (0.0, -r)),
        ]
    )
    local = CurvePath.from_segments(segments, closed=True)
    return local.transformed(Affine.translation(x0, y0).compose(Affine.rotation(angle)))


def _as_paths(path: PathInput) -> Tuple[CurvePath, ...]:
    if isinstance(path, CurvePath):
        return (path,)
    return tuple(path)


class GeometryEngine(ABC):
    """Capability interface over a 2-D boolean/offset backend."""

    name = "abstract"

    # False when results are approximations of the requested operation
    precise = True

    # Backend exception types translated into GeometryEngineError
    backend_errors: Tuple[type, ...] = ()

    def __init__(self):
        self._live_handles = 0
        self.warnings: List[str] = []

    @property
    def live_handles(self) -> int:
        """Number of handles created by this engine and not yet released."""
        return self._live_handles

    def _wrap(self, value: Any) -> PathHandle:
        self._live_handles += 1
        return PathHandle(self, value)

    def _call(self, operation: str, func: Callable[..., Any], *args: Any) -> Any:
        errors = (ValueError, TypeError, ArithmeticError) + self.backend_errors
        try:
            return func(*args)
        except errors as e:
            raise GeometryEngineError(f"{self.name} {operation} failed: {e}") from e

    def _combine(self, operation: str, func: Callable[..., Any], handles: Sequence[PathHandle], consume: bool, *extra):
        try:
            values = [h.value for h in handles]
            return self._wrap(self._call(operation, func, *values, *extra))
        finally:
            if consume:
                for handle in handles:
                    handle.release()

    # Conversion

    def from_path(self, path: PathInput) -> PathHandle:
        """Create an engine value from one or more closed curve paths."""
        return self._wrap(self._call("from_path", self._from_paths, _as_paths(path)))

    def to_paths(self, handle: PathHandle) -> List[CurvePath]:
        """Convert an engine value back to closed curve paths, largest first."""
        return self._call("to_paths", self._to_paths, handle.value)

    # Booleans

    def union(self, handles: Sequence[PathHandle], consume: bool = False) -> PathHandle:
        return self._combine("union", lambda *values: self._union(list(values)), handles, consume)

    def difference(self, a: PathHandle, b: PathHandle, consume: bool = False) -> PathHandle:
        return self._combine("difference", self._difference, [a, b], consume)

    def intersect(self, a: PathHandle, b: PathHandle, consume: bool = False) -> PathHandle:
        return self._combine("intersect", self._intersect, [a, b], consume)

    def simplify(self, handle: PathHandle, tolerance: Optional[float] = None, consume: bool = False) -> PathHandle:
        tol = get_engine_settings().SIMPLIFY_TOLERANCE if tolerance is None else tolerance
        return self._combine("simplify", self._simplify, [handle], consume, tol)

    def offset(self, handle: PathHandle, delta: float, consume: bool = False) -> PathHandle:
        """Grow (delta > 0) or shrink (delta < 0) a shape with round joins."""
        return self._combine("offset", self._offset, [handle], consume, delta)

    # Queries

    def distance(self, a: PathHandle, b: PathHandle) -> float:
        return float(self._call("distance", self._distance, a.value, b.value))

    def area(self, handle: PathHandle) -> float:
        return float(self._call("area", self._area, handle.value))

    def is_empty(self, handle: PathHandle) -> bool:
        return bool(self._call("is_empty", self._is_empty, handle.value))

    # Primitives

    def circle(self, cx: float, cy: float, r: float) -> PathHandle:
        return self._wrap(self._call("circle", self._circle, cx, cy, r))

    def rect(self, x: float, y: float, w: float, h: float, corner_radius: float = 0.0) -> PathHandle:
        return self._wrap(self._call("rect", self._rect, x, y, w, h, corner_radius))

    def capsule(self, x0: float, y0: float, x1: float, y1: float, width: float) -> PathHandle:
        return self._wrap(self._call("capsule", self._capsule, x0, y0, x1, y1, width))

    def arena(self) -> PathArena:
        return PathArena(self)

    # Backend hooks

    @abstractmethod
    def _from_paths(self, paths: Tuple[CurvePath, ...]) -> Any:
        pass

    @abstractmethod
    def _to_paths(self, value: Any) -> List[CurvePath]:
        pass

    @abstractmethod
    def _union(self, values: List[Any]) -> Any:
        pass

    @abstractmethod
    def _difference(self, a: Any, b: Any) -> Any:
        pass

    @abstractmethod
    def _intersect(self, a: Any, b: Any) -> Any:
        pass

    @abstractmethod
    def _simplify(self, value: Any, tolerance: float) -> Any:
        pass

    @abstractmethod
    def _offset(self, value: Any, delta: float) -> Any:
        pass

    @abstractmethod
    def _distance(self, a: Any, b: Any) -> float:
        pass

    @abstractmethod
    def _area(self, value: Any) -> float:
        pass

    @abstractmethod
    def _is_empty(self, value: Any) -> bool:
        pass

    @abstractmethod
    def _circle(self, cx: float, cy: float, r: float) -> Any:
        pass

    @abstractmethod
    def _rect(self, x: float, y: float, w: float, h: float, corner_radius: float) -> Any:
        pass

    @abstractmethod
    def _capsule(self, x0: float, y0: float, x1: float, y1: float, width: float) -> Any:
        pass


def _polygon_area(points: np.ndarray) -> float:
    if len(points) < 3:
        return 0.0
    x, y = points[:, 0], points[:, 1]
    return float(0.5 * abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))))


class FallbackEngine(GeometryEngine):
    """Deterministic stand-in used when the real backend cannot be loaded.

    Values are tuples of closed curve paths. ``union`` keeps every operand
    side by side, ``difference`` and ``intersect`` return the first operand,
    ``simplify`` is the identity and ``offset`` scales each path uniformly
    about its bounding-box center.
    """

    name = "fallback"
    precise = False

    def __init__(self, reason: str = ""):
        super().__init__()
        self.reason = reason
        self.warnings.append(FALLBACK_WARNING)
        logger.warning(f"Using fallback geometry engine{': ' + reason if reason else ''}")

    def _from_paths(self, paths):
        return tuple(path.as_closed() for path in paths if path.segments)

    def _to_paths(self, value):
        return sorted(value, key=lambda p: _polygon_area(p.get_points()), reverse=True)

    def _union(self, values):
        return tuple(path for value in values for path in value)

    def _difference(self, a, b):
        return a

    def _intersect(self, a, b):
        return a

    def _simplify(self, value, tolerance):
        return value

    def _offset(self, value, delta):
        result = []
        for path in value:
            box = path.bounds()
            size = (box.width + box.height) / 2.0
            if size <= 0.0:
                result.append(path)
                continue
            scale = max(0.0, 1.0 + 2.0 * delta / size)
            cx, cy = box.center
            affine = Affine.translation(cx, cy).compose(Affine.scaling(scale)).compose(Affine.translation(-cx, -cy))
            result.append(path.transformed(affine))
        return tuple(result)

    def _distance(self, a, b):
        pa = np.vstack([p.get_points() for p in a]) if a else np.zeros((0, 2))
        pb = np.vstack([p.get_points() for p in b]) if b else np.zeros((0, 2))
        if len(pa) == 0 or len(pb) == 0:
            return math.inf
        diff = pa[:, None, :] - pb[None, :, :]
        return float(np.sqrt((diff ** 2).sum(axis=2)).min())

    def _area(self, value):
        return sum(_polygon_area(p.get_points()) for p in value)

    def _is_empty(self, value):
        return len(value) == 0

    def _circle(self, cx, cy, r):
        return (circle_path(cx, cy, r),)

    def _rect(self, x, y, w, h, corner_radius):
        return (rounded_rect_path(x, y, w, h, corner_radius),)

    def _capsule(self, x0, y0, x1, y1, width):
        return (capsule_path(x0, y0, x1, y1, width),)


# Process-wide engine state
_engine: Optional[GeometryEngine] = None
_load_task: Optional["asyncio.Task[GeometryEngine]"] = None


def _create_engine(mode: Optional[str] = None) -> GeometryEngine:
    """Instantiate the configured backend, degrading to the fallback."""
    settings = get_engine_settings()
    mode = (mode or settings.GEOMETRY_ENGINE).lower()
    if mode not in ENGINE_MODES:
        raise ValueError(f"Unknown geometry engine mode: {mode}")

    if mode == "fallback":
        return FallbackEngine(reason="disabled by configuration")

    try:
        from .shapely_engine import ShapelyEngine

        engine = ShapelyEngine(
            curve_resolution=settings.CURVE_RESOLUTION,
            offset_resolution=settings.OFFSET_RESOLUTION,
        )
        logger.info(f"Loaded geometry engine: {engine.name}")
        return engine
    except (ImportError, AttributeError) as e:
        return FallbackEngine(reason=f"shapely could not be loaded ({e})")


async def _load(mode: Optional[str]) -> GeometryEngine:
    global _engine
    engine = await asyncio.to_thread(_create_engine, mode)
    _engine = engine
    return engine


async def load_geometry_engine(mode: Optional[str] = None) -> GeometryEngine:
    """Load the geometry engine once per process.

    Concurrent callers await the same in-flight load instead of starting
    their own.
    """
    global _load_task
    if _engine is not None:
        return _engine

    loop = asyncio.get_running_loop()
    if _load_task is None or _load_task.get_loop() is not loop:
        _load_task = loop.create_task(_load(mode))
    return await asyncio.shield(_load_task)


def get_geometry_engine() -> GeometryEngine:
    """Get the process-wide engine, loading it synchronously if needed."""
    global _engine
    if _engine is None:
        _engine = _create_engine()
    return _engine


def reset_geometry_engine() -> None:
    """Forget the loaded engine (used by tests and after config changes)."""
    global _engine, _load_task
    _engine = None
    _load_task = None
